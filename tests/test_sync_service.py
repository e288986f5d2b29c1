"""Tests for clocked.services.sync_service."""

from pathlib import Path

import pytest

from clocked.services.sync_service import (
    SyncService,
    discover_and_parse_all,
    discover_project_dirs,
    sync_to_store,
)
from clocked.utils.path_codec import encode_path
from helpers import entry, write_index


@pytest.fixture
def tree(projects_root, workspace):
    """Two real projects with index files plus some noise in the root."""
    app = workspace / "app"
    site = workspace / "site.io"
    app.mkdir()
    site.mkdir()
    write_index(projects_root, encode_path(str(app)), [
        entry("a1", created="2026-01-01T10:00:00Z", modified="2026-01-01T11:00:00Z", message_count=3),
        entry("a2", created="2026-01-03T10:00:00Z", modified="2026-01-03T10:30:00Z", messageCount=5),
    ])
    write_index(projects_root, encode_path(str(site)), [
        entry("s1", created="2026-01-02T08:00:00Z", modified="2026-01-02T09:00:00Z"),
        {"created": "2026-01-02T08:00:00Z"},  # invalid
    ])
    # A project directory without an index, a plain file, and a dot entry
    (projects_root / "-tmp-empty").mkdir()
    (projects_root / "-not-a-dir").write_text("x")
    (projects_root / ".DS_Store").write_text("x")
    (projects_root / "unencoded").mkdir()
    return {"app": str(app), "site": str(site)}


class TestDiscovery:
    def test_only_encoded_directories(self, projects_root, tree):
        names, errors = discover_project_dirs(projects_root)
        assert errors == []
        assert "-tmp-empty" in names
        assert "-not-a-dir" not in names
        assert ".DS_Store" not in names
        assert "unencoded" not in names
        assert len(names) == 3

    def test_missing_root(self, tmp_path):
        result = discover_and_parse_all(tmp_path / "missing")
        assert result.projects_root is None
        assert result.projects == []
        assert result.errors == []

    def test_aggregates(self, projects_root, tree):
        result = discover_and_parse_all(projects_root)
        projects = {p.path: p for p in result.projects}

        assert set(projects) == {tree["app"], tree["site"]}
        app = projects[tree["app"]]
        assert app.name == "app"
        assert app.first_activity == "2026-01-01T10:00:00.000Z"
        assert app.last_activity == "2026-01-03T10:30:00.000Z"
        assert app.session_count == 2
        assert app.message_count == 8
        assert app.total_time == 3_600_000 + 1_800_000
        assert projects[tree["site"]].name == "site.io"

        assert len(result.sessions) == 3
        assert len(result.errors) == 1

    def test_duplicate_tokens_for_one_path_merge(self, projects_root, workspace):
        project = workspace / "dup"
        project.mkdir()
        token = encode_path(str(project))
        write_index(projects_root, token, [entry("x")])
        write_index(projects_root, token + "::deadbeef", [entry("x"), entry("y")])

        result = discover_and_parse_all(projects_root)
        assert len(result.projects) == 1
        assert result.projects[0].session_count == 2
        assert sorted(s.id for s in result.sessions) == ["x", "y"]


class TestSyncToStore:
    def test_writes_projects_and_sessions(self, store, projects_root, tree):
        result = sync_to_store(store, projects_root)

        assert result.project_count == 2
        assert result.session_count == 3
        assert len(result.errors) == 1
        assert result.projects_root == str(projects_root)
        assert result.synced_paths == {tree["app"], tree["site"]}
        assert store.count_projects() == 2
        assert store.get_session("a2").message_count == 5
        # The index-less directory is not cached
        assert store.get_project("/tmp/empty") is None

    def test_idempotent(self, store, projects_root, tree):
        sync_to_store(store, projects_root)
        projects = store.list_projects(include_hidden=True)
        sessions = store.list_sessions()

        sync_to_store(store, projects_root)

        assert store.list_projects(include_hidden=True) == projects
        assert store.list_sessions() == sessions

    def test_missing_root_is_not_an_error(self, store, tmp_path):
        result = sync_to_store(store, tmp_path / "missing")
        assert result.projects_root is None
        assert result.project_count == 0
        assert result.errors == []

    def test_preserves_user_metadata(self, store, projects_root, tree):
        sync_to_store(store, projects_root)
        store.set_hidden(tree["app"], True)
        store.set_default(tree["site"])

        sync_to_store(store, projects_root)

        assert store.get_project(tree["app"]).is_hidden is True
        assert store.get_project(tree["site"]).is_default is True

    def test_does_not_delete_stale_projects(self, store, projects_root, tree):
        sync_to_store(store, projects_root)
        site_dir = projects_root / encode_path(tree["site"])
        (site_dir / "sessions-index.json").unlink()

        result = sync_to_store(store, projects_root)

        assert result.project_count == 1
        assert result.synced_paths == {tree["app"]}
        assert {tree["app"], tree["site"]} <= result.discovered_paths
        assert store.get_project(tree["site"]) is not None
        # The directory is still there, so the project is not an orphan
        assert store.delete_orphaned(result.discovered_paths) == 0
        assert store.get_project(tree["site"]) is not None

    def test_listing_failure_is_a_diagnostic(self, store, projects_root, tree, monkeypatch):
        def denied(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "iterdir", denied)
        result = sync_to_store(store, projects_root)

        assert result.listing_failed is True
        assert result.project_count == 0
        assert result.discovered_paths == set()
        assert len(result.errors) == 1
        assert result.errors[0].startswith(f"Failed to read {projects_root}")

    def test_unreadable_index_is_a_diagnostic(self, store, projects_root, tree, monkeypatch):
        real_read_bytes = Path.read_bytes
        site_index = projects_root / encode_path(tree["site"]) / "sessions-index.json"

        def read_bytes(self):
            if self == site_index:
                raise PermissionError(13, "Permission denied", str(self))
            return real_read_bytes(self)

        monkeypatch.setattr(Path, "read_bytes", read_bytes)
        result = sync_to_store(store, projects_root)

        assert result.synced_paths == {tree["app"]}
        assert tree["site"] in result.discovered_paths
        assert any(e.startswith(f"Failed to read {site_index}") for e in result.errors)

    def test_diagnostics_logged(self, store, projects_root, tree, caplog):
        with caplog.at_level("WARNING", logger="clocked.services.sync_service"):
            sync_to_store(store, projects_root)
        assert any("missing session_id" in r.getMessage() for r in caplog.records)


class TestSyncService:
    def test_sync_emits_signals(self, qapp, store, projects_root, tree):
        service = SyncService(store, projects_root=projects_root)
        started, finished = [], []
        service.sync_started.connect(lambda: started.append(True))
        service.sync_finished.connect(lambda r: finished.append(r))

        result = service.sync()

        assert started == [True]
        assert finished == [result]
        assert result.success is True
        assert result.project_count == 2
        assert service.last_result is result
        assert service.syncing is False
        service.cleanup()

    def test_prunes_orphans(self, qapp, store, projects_root, tree):
        from helpers import make_project

        store.upsert_project(make_project(path="/vanished"))
        service = SyncService(store, projects_root=projects_root)
        result = service.sync()
        assert result.orphans_removed == 1
        assert store.get_project("/vanished") is None
        service.cleanup()

    def test_truncated_index_keeps_project_and_metadata(self, qapp, store, projects_root, tree):
        service = SyncService(store, projects_root=projects_root)
        service.sync()
        group = store.create_group("Work")
        store.set_hidden(tree["app"], True)
        store.set_default(tree["app"])
        store.set_group(tree["app"], group.id)

        # Claude Code is halfway through rewriting the index
        index = projects_root / encode_path(tree["app"]) / "sessions-index.json"
        index.write_text('[{"session_id": "a1", "crea')
        result = service.sync()

        assert result.success is True
        assert result.orphans_removed == 0
        assert any("Failed to parse JSON" in e for e in result.errors)
        project = store.get_project(tree["app"])
        assert project is not None
        assert project.is_hidden is True
        assert project.is_default is True
        assert project.group_id == group.id
        assert store.get_session("a1") is not None
        service.cleanup()

    def test_removed_directory_is_pruned(self, qapp, store, projects_root, tree):
        import shutil

        service = SyncService(store, projects_root=projects_root)
        service.sync()
        shutil.rmtree(projects_root / encode_path(tree["site"]))

        result = service.sync()

        assert result.orphans_removed == 1
        assert store.get_project(tree["site"]) is None
        assert store.get_project(tree["app"]) is not None
        service.cleanup()

    def test_listing_failure_skips_pruning(self, qapp, store, projects_root, tree, monkeypatch):
        service = SyncService(store, projects_root=projects_root)
        service.sync()

        def denied(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "iterdir", denied)
        result = service.sync()

        assert result.listing_failed is True
        assert result.orphans_removed == 0
        assert store.count_projects() == 2
        service.cleanup()

    def test_no_pruning_when_disabled(self, qapp, store, projects_root, tree):
        from helpers import make_project

        store.upsert_project(make_project(path="/vanished"))
        service = SyncService(store, projects_root=projects_root, prune_orphans=False)
        assert service.sync().orphans_removed == 0
        assert store.get_project("/vanished") is not None
        service.cleanup()

    def test_missing_root_keeps_cache(self, qapp, store, tmp_path):
        from helpers import make_project

        store.upsert_project(make_project(path="/kept"))
        service = SyncService(store, projects_root=tmp_path / "missing")
        result = service.sync()
        assert result.projects_root is None
        assert store.get_project("/kept") is not None
        service.cleanup()

    def test_reentrant_sync_ignored(self, qapp, store, projects_root):
        service = SyncService(store, projects_root=projects_root)
        nested = []
        service.sync_started.connect(lambda: nested.append(service.sync()))
        service.sync()
        assert nested == [None]
        service.cleanup()

    def test_failure_reported(self, qapp, store, projects_root, tree, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("clocked.services.sync_service.sync_to_store", boom)
        service = SyncService(store, projects_root=projects_root)
        result = service.sync()
        assert result.success is False
        assert "disk on fire" in result.errors[0]
        assert service.syncing is False
        service.cleanup()

    def test_status(self, qapp, store, projects_root, tree, tmp_path):
        service = SyncService(store, projects_root=projects_root)
        service.sync()
        status = service.status()
        assert status.has_projects_root is True
        assert status.project_count == 2
        assert status.session_count == 3

        missing = SyncService(store, projects_root=tmp_path / "missing").status()
        assert missing.has_projects_root is False
        assert missing.project_count == 0
        service.cleanup()

    def test_enable_watching_tracks_index_files(self, qapp, store, projects_root, tree):
        service = SyncService(store, projects_root=projects_root)
        service.enable_watching()
        service.sync()
        watched = set(service._watcher._watcher.files())
        assert str(projects_root / encode_path(tree["app"]) / "sessions-index.json") in watched
        service.disable_watching()
        assert service._watcher is None
        service.cleanup()

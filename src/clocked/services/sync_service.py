"""Reconcile Claude Code's project tree into the cache store."""

import logging
from pathlib import Path

from PySide6.QtCore import QObject, Signal, Slot, Property

from clocked.services.cache_store import CacheStore
from clocked.services.file_watcher import IndexWatcher
from clocked.services.session_index import INDEX_FILE_NAME, parse_session_index
from clocked.types import DataStatus, DiscoveryResult, ProjectInput, SessionInput, SyncResult
from clocked.utils.path_codec import SEPARATOR, project_name

logger = logging.getLogger(__name__)

CLAUDE_PROJECTS_DIR = Path.home() / ".claude" / "projects"


def default_projects_root() -> Path:
    return CLAUDE_PROJECTS_DIR


def discover_project_dirs(projects_root: str | Path) -> tuple[list[str], list[str]]:
    """Return the encoded project directory names under ``projects_root``.

    Only directories whose name starts with the separator are candidates;
    plain files and dot entries are ignored. A listing failure is reported
    as a diagnostic, not raised.
    """
    root = Path(projects_root)
    names: list[str] = []
    try:
        for entry in sorted(root.iterdir()):
            if entry.name.startswith(".") or not entry.name.startswith(SEPARATOR):
                continue
            if entry.is_dir():
                names.append(entry.name)
    except OSError as e:
        return [], [f"Failed to read {root}: {e}"]
    return names, []


def aggregate_project(path: str, sessions: list[SessionInput]) -> ProjectInput:
    """Roll a project's sessions up into its sync-owned fields."""
    return ProjectInput(
        path=path,
        name=project_name(path),
        first_activity=min(s.created for s in sessions),
        last_activity=max(s.modified for s in sessions),
        session_count=len(sessions),
        message_count=sum(s.message_count for s in sessions),
        total_time=sum(s.duration for s in sessions),
    )


def discover_and_parse_all(projects_root: str | Path | None = None) -> DiscoveryResult:
    """Read every project's session index without touching the cache."""
    root = Path(projects_root) if projects_root is not None else default_projects_root()
    if not root.is_dir():
        return DiscoveryResult(projects_root=None)

    result = DiscoveryResult(projects_root=str(root))
    project_dirs, errors = discover_project_dirs(root)
    result.errors.extend(errors)
    result.listing_failed = bool(errors)

    # Keyed by decoded path: two directory names can decode to the same project
    by_path: dict[str, dict[str, SessionInput]] = {}
    for project_dir in project_dirs:
        parsed = parse_session_index(project_dir, root)
        result.discovered_paths.add(parsed.project_path)
        result.errors.extend(parsed.errors)
        if not parsed.sessions:
            continue
        sessions = by_path.setdefault(parsed.project_path, {})
        for session in parsed.sessions:
            sessions[session.id] = session

    for path, sessions in by_path.items():
        result.projects.append(aggregate_project(path, list(sessions.values())))
        result.sessions.extend(sessions.values())
    return result


def sync_to_store(store: CacheStore, projects_root: str | Path | None = None) -> SyncResult:
    """Run one full sync pass: discover, parse, then upsert into ``store``.

    Idempotent. Nothing is deleted here; call ``store.delete_orphaned`` with
    ``result.discovered_paths`` to prune projects whose directories are gone.
    """
    discovery = discover_and_parse_all(projects_root)

    with store.transaction():
        store.upsert_projects(discovery.projects)
        store.upsert_sessions(discovery.sessions)

    for error in discovery.errors:
        logger.warning("[Session Parser] %s", error)

    return SyncResult(
        project_count=len(discovery.projects),
        session_count=len(discovery.sessions),
        errors=discovery.errors,
        projects_root=discovery.projects_root,
        synced_paths={p.path for p in discovery.projects},
        discovered_paths=discovery.discovered_paths,
        listing_failed=discovery.listing_failed,
    )


class SyncService(QObject):
    """Runs sync passes against a cache store and reports progress to Qt."""

    sync_started = Signal()
    sync_finished = Signal(object)  # SyncResult
    syncing_changed = Signal()

    def __init__(
        self,
        store: CacheStore,
        projects_root: str | Path | None = None,
        prune_orphans: bool = True,
        parent=None,
    ):
        super().__init__(parent)
        self._store = store
        self._projects_root = Path(projects_root) if projects_root else default_projects_root()
        self._prune_orphans = prune_orphans
        self._syncing = False
        self._last_result: SyncResult | None = None
        self._watcher: IndexWatcher | None = None

    def _get_syncing(self) -> bool:
        return self._syncing

    def _set_syncing(self, value: bool):
        if self._syncing != value:
            self._syncing = value
            self.syncing_changed.emit()

    syncing = Property(bool, _get_syncing, notify=syncing_changed)

    @property
    def projects_root(self) -> Path:
        return self._projects_root

    @property
    def last_result(self) -> SyncResult | None:
        return self._last_result

    @Slot(result=object)
    def sync(self) -> SyncResult | None:
        """Run a sync pass. Returns None if one is already in progress."""
        if self._syncing:
            logger.info("Sync already in progress, ignoring request")
            return None

        self._set_syncing(True)
        self.sync_started.emit()
        try:
            result = sync_to_store(self._store, self._projects_root)
            if self._prune_orphans:
                self._prune(result)
            logger.info(
                "Synced %d projects, %d sessions (%d errors)",
                result.project_count, result.session_count, len(result.errors),
            )
        except Exception as e:
            logger.exception("Failed to sync sessions")
            result = SyncResult(
                errors=[f"Sync failed: {e}"],
                projects_root=str(self._projects_root),
                success=False,
            )
        finally:
            self._set_syncing(False)

        self._last_result = result
        if self._watcher is not None:
            self._refresh_watch_list()
        self.sync_finished.emit(result)
        return result

    def _prune(self, result: SyncResult):
        """Drop cached projects whose directory is gone from the projects root.

        Projects whose directory still exists are kept even when their index
        is missing or unreadable this pass. Nothing is pruned when the root is
        missing or could not be listed.
        """
        if result.projects_root is None:
            return
        if result.listing_failed:
            logger.warning("Skipping orphan cleanup: %s could not be listed", result.projects_root)
            return
        result.orphans_removed = self._store.delete_orphaned(result.discovered_paths)

    def status(self) -> DataStatus:
        exists = self._projects_root.is_dir()
        return DataStatus(
            has_projects_root=exists,
            projects_root=str(self._projects_root),
            project_count=self._store.count_projects() if exists else 0,
            session_count=self._store.count_sessions() if exists else 0,
        )

    def enable_watching(self):
        """Re-sync whenever a session index or the projects root changes."""
        if self._watcher is not None:
            return
        self._watcher = IndexWatcher(self)
        self._watcher.index_changed.connect(self._on_source_changed)
        self._watcher.project_changed.connect(self._on_source_changed)
        self._watcher.projects_root_changed.connect(self._on_projects_root_changed)
        self._refresh_watch_list()

    def disable_watching(self):
        if self._watcher is None:
            return
        self._watcher.stop()
        self._watcher.deleteLater()
        self._watcher = None

    def _refresh_watch_list(self):
        if not self._projects_root.is_dir():
            return
        if self._watcher.projects_root != str(self._projects_root):
            self._watcher.start(str(self._projects_root))
        project_dirs, _ = discover_project_dirs(self._projects_root)
        dirs = [str(self._projects_root / name) for name in project_dirs]
        self._watcher.watch_project_dirs(dirs)
        self._watcher.watch_index_files(
            [str(Path(d) / INDEX_FILE_NAME) for d in dirs if (Path(d) / INDEX_FILE_NAME).is_file()]
        )

    def _on_source_changed(self, path: str):
        logger.debug("Change detected at %s, re-syncing", path)
        self.sync()

    def _on_projects_root_changed(self):
        self.sync()

    def cleanup(self):
        self.disable_watching()

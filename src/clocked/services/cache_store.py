"""SQLite cache of projects, sessions, groups and settings.

The store is the system of record for everything the UI shows. Sync writes
the facts it reads from Claude Code (project activity, sessions); the user
owns the rest (hidden flag, group, default project, merges, settings) and
sync never overwrites those columns.

One ``CacheStore`` is created per process. The connection opens lazily on
first use and stays open until ``close()``.
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

import orjson

from clocked.services.analytics import DEFAULT_SUBSCRIPTION_COST, build_monthly_summary, month_bounds
from clocked.services.migrations import run_migrations
from clocked.types import (
    MonthlySummary,
    Project,
    ProjectGroup,
    ProjectInput,
    Session,
    SessionInput,
)
from clocked.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".clocked" / "cache.db"

SETTINGS_VERSION = 1
DEFAULT_SETTINGS = {
    "settingsVersion": SETTINGS_VERSION,
    "preferredEditor": "vscode",
    "subscriptionCost": DEFAULT_SUBSCRIPTION_COST,
    "theme": "system",
}

_UNSET = object()

_PROJECT_COLUMNS = """
    path, name, first_activity, last_activity, session_count, message_count,
    total_time, is_hidden, group_id, is_default, merged_into
"""

_SESSION_COLUMNS = """
    id, project_path, created, modified, duration, message_count,
    summary, first_prompt, git_branch
"""

_UPSERT_PROJECT = """
    INSERT INTO projects
        (path, name, first_activity, last_activity, session_count, message_count, total_time)
    VALUES
        (:path, :name, :first_activity, :last_activity, :session_count, :message_count, :total_time)
    ON CONFLICT(path) DO UPDATE SET
        name = excluded.name,
        first_activity = MIN(first_activity, excluded.first_activity),
        last_activity = MAX(last_activity, excluded.last_activity),
        session_count = excluded.session_count,
        message_count = excluded.message_count,
        total_time = excluded.total_time
"""

_UPSERT_SESSION = """
    INSERT INTO sessions
        (id, project_path, created, modified, duration, message_count,
         summary, first_prompt, git_branch)
    VALUES
        (:id, :project_path, :created, :modified, :duration, :message_count,
         :summary, :first_prompt, :git_branch)
    ON CONFLICT(id) DO UPDATE SET
        project_path = excluded.project_path,
        created = excluded.created,
        modified = excluded.modified,
        duration = excluded.duration,
        message_count = excluded.message_count,
        summary = excluded.summary,
        first_prompt = excluded.first_prompt,
        git_branch = excluded.git_branch
"""


class MergeError(ValueError):
    """A merge would break the one-level merge graph."""


class CacheStore:
    """Persistent cache with explicit open/close lifecycle."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = str(db_path) if db_path is not None else str(DEFAULT_DB_PATH)
        self._conn: sqlite3.Connection | None = None
        self._tx_depth = 0

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def connect(self) -> sqlite3.Connection:
        """Open the database if needed and return the connection."""
        if self._conn is not None:
            return self._conn
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit; multi-statement writes go through transaction()
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        run_migrations(conn)
        self._conn = conn
        logger.debug("Opened cache database %s", self._db_path)
        return conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._tx_depth = 0

    def __enter__(self) -> "CacheStore":
        self.connect()
        return self

    def __exit__(self, *exc):
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements atomically. Nested use joins the outer one."""
        conn = self.connect()
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield conn
            finally:
                self._tx_depth -= 1
            return

        conn.execute("BEGIN IMMEDIATE")
        self._tx_depth = 1
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()
        finally:
            self._tx_depth = 0

    def _query(self, sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
        return self.connect().execute(sql, tuple(params)).fetchall()

    def _query_one(self, sql: str, params: Iterable = ()) -> sqlite3.Row | None:
        return self.connect().execute(sql, tuple(params)).fetchone()

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def upsert_project(self, project: ProjectInput):
        """Insert a project or refresh its sync-owned fields."""
        with self.transaction() as conn:
            conn.execute(_UPSERT_PROJECT, _project_params(project))

    def upsert_projects(self, projects: list[ProjectInput]):
        with self.transaction() as conn:
            conn.executemany(_UPSERT_PROJECT, [_project_params(p) for p in projects])

    def get_project(self, path: str) -> Project | None:
        row = self._query_one(f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE path = ?", (path,))
        return _row_to_project(row) if row else None

    def list_projects(self, include_hidden: bool = False) -> list[Project]:
        where = "" if include_hidden else "WHERE is_hidden = 0"
        rows = self._query(
            f"SELECT {_PROJECT_COLUMNS} FROM projects {where} "
            "ORDER BY last_activity DESC, path ASC"
        )
        return [_row_to_project(r) for r in rows]

    def list_hidden_projects(self) -> list[Project]:
        rows = self._query(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE is_hidden = 1 "
            "ORDER BY last_activity DESC, path ASC"
        )
        return [_row_to_project(r) for r in rows]

    def count_projects(self) -> int:
        return self._query_one("SELECT COUNT(*) FROM projects")[0]

    def delete_project(self, path: str):
        """Remove a project and its sessions."""
        with self.transaction() as conn:
            self._delete_projects(conn, [path])

    def delete_all_projects(self):
        with self.transaction() as conn:
            conn.execute("DELETE FROM projects")

    def delete_orphaned(self, valid_paths: Iterable[str]) -> int:
        """Delete every project (hidden ones too) whose path is not in ``valid_paths``.

        Sessions of removed projects go with them, and merges that pointed
        at a removed project are cleared. Returns the number of projects
        removed.
        """
        keep = set(valid_paths)
        with self.transaction() as conn:
            paths = [r["path"] for r in conn.execute("SELECT path FROM projects")]
            orphans = [p for p in paths if p not in keep]
            self._delete_projects(conn, orphans)
        if orphans:
            logger.info("Removed %d orphaned projects", len(orphans))
        return len(orphans)

    def _delete_projects(self, conn: sqlite3.Connection, paths: list[str]):
        params = [(p,) for p in paths]
        conn.executemany("DELETE FROM sessions WHERE project_path = ?", params)
        conn.executemany("DELETE FROM projects WHERE path = ?", params)
        conn.executemany("UPDATE projects SET merged_into = NULL WHERE merged_into = ?", params)

    def set_hidden(self, path: str, hidden: bool):
        with self.transaction() as conn:
            conn.execute("UPDATE projects SET is_hidden = ? WHERE path = ?", (1 if hidden else 0, path))

    def set_group(self, path: str, group_id: str | None):
        with self.transaction() as conn:
            conn.execute("UPDATE projects SET group_id = ? WHERE path = ?", (group_id, path))

    def set_default(self, path: str):
        """Make ``path`` the only default project."""
        with self.transaction() as conn:
            conn.execute("UPDATE projects SET is_default = 0 WHERE is_default = 1")
            conn.execute("UPDATE projects SET is_default = 1 WHERE path = ?", (path,))

    def clear_default(self):
        with self.transaction() as conn:
            conn.execute("UPDATE projects SET is_default = 0 WHERE is_default = 1")

    def get_default_project(self) -> Project | None:
        row = self._query_one(f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE is_default = 1")
        return _row_to_project(row) if row else None

    # ------------------------------------------------------------------
    # Merge graph
    # ------------------------------------------------------------------

    def merge_projects(self, source_paths: Iterable[str], target_path: str) -> int:
        """Merge each source into ``target_path``.

        Raises MergeError without changing anything when the target does not
        exist or is itself merged into another project. A source equal to
        the target is skipped. Projects already merged into a source are
        moved to the target so the graph stays one level deep. Returns the
        number of sources updated.
        """
        with self.transaction() as conn:
            target = conn.execute(
                "SELECT merged_into FROM projects WHERE path = ?", (target_path,)
            ).fetchone()
            if target is None:
                raise MergeError(f"Target project not found: {target_path}")
            if target["merged_into"] is not None:
                raise MergeError(
                    f"Target project {target_path} is already merged into {target['merged_into']}"
                )

            updated = 0
            for source in dict.fromkeys(source_paths):
                if source == target_path:
                    continue
                cur = conn.execute(
                    "UPDATE projects SET merged_into = ? WHERE path = ?", (target_path, source)
                )
                if cur.rowcount:
                    updated += 1
                    conn.execute(
                        "UPDATE projects SET merged_into = ? WHERE merged_into = ?",
                        (target_path, source),
                    )
        logger.debug("Merged %d projects into %s", updated, target_path)
        return updated

    def unmerge_project(self, path: str):
        with self.transaction() as conn:
            conn.execute("UPDATE projects SET merged_into = NULL WHERE path = ?", (path,))

    def list_merged_projects(self, primary_path: str) -> list[Project]:
        rows = self._query(
            f"SELECT {_PROJECT_COLUMNS} FROM projects "
            "WHERE merged_into = ? AND path != ? "
            "ORDER BY last_activity DESC, path ASC",
            (primary_path, primary_path),
        )
        return [_row_to_project(r) for r in rows]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def upsert_session(self, session: SessionInput):
        with self.transaction() as conn:
            conn.execute(_UPSERT_SESSION, _session_params(session))

    def upsert_sessions(self, sessions: list[SessionInput]):
        with self.transaction() as conn:
            conn.executemany(_UPSERT_SESSION, [_session_params(s) for s in sessions])

    def get_session(self, session_id: str) -> Session | None:
        row = self._query_one(f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?", (session_id,))
        return _row_to_session(row) if row else None

    def list_sessions(self) -> list[Session]:
        rows = self._query(f"SELECT {_SESSION_COLUMNS} FROM sessions ORDER BY modified DESC, id ASC")
        return [_row_to_session(r) for r in rows]

    def list_sessions_for_project(
        self, project_path: str, limit: int | None = None, offset: int = 0
    ) -> tuple[list[Session], int]:
        """Sessions of one project, newest first, with the unpaginated total."""
        total = self._query_one(
            "SELECT COUNT(*) FROM sessions WHERE project_path = ?", (project_path,)
        )[0]
        sql = (
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE project_path = ? "
            "ORDER BY modified DESC, id ASC"
        )
        params: list = [project_path]
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += [limit, offset]
        return [_row_to_session(r) for r in self._query(sql, params)], total

    def list_sessions_in_range(self, start: str, end: str) -> list[Session]:
        """Sessions created between ``start`` and ``end`` inclusive, newest first."""
        rows = self._query(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE created >= ? AND created <= ? "
            "ORDER BY created DESC, id ASC",
            (start, end),
        )
        return [_row_to_session(r) for r in rows]

    def count_sessions(self) -> int:
        return self._query_one("SELECT COUNT(*) FROM sessions")[0]

    def delete_sessions_for_project(self, project_path: str):
        with self.transaction() as conn:
            conn.execute("DELETE FROM sessions WHERE project_path = ?", (project_path,))

    def delete_all_sessions(self):
        with self.transaction() as conn:
            conn.execute("DELETE FROM sessions")

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(self, name: str, color: str | None = None) -> ProjectGroup:
        with self.transaction() as conn:
            max_order = conn.execute("SELECT MAX(sort_order) FROM project_groups").fetchone()[0]
            group = ProjectGroup(
                id=uuid.uuid4().hex,
                name=name,
                color=color,
                created_at=utc_now(),
                sort_order=(max_order if max_order is not None else -1) + 1,
            )
            conn.execute(
                "INSERT INTO project_groups (id, name, color, created_at, sort_order) "
                "VALUES (?, ?, ?, ?, ?)",
                (group.id, group.name, group.color, group.created_at, group.sort_order),
            )
        return group

    def get_group(self, group_id: str) -> ProjectGroup | None:
        row = self._query_one(
            "SELECT id, name, color, created_at, sort_order FROM project_groups WHERE id = ?",
            (group_id,),
        )
        return _row_to_group(row) if row else None

    def list_groups(self) -> list[ProjectGroup]:
        rows = self._query(
            "SELECT id, name, color, created_at, sort_order FROM project_groups "
            "ORDER BY sort_order ASC, name ASC"
        )
        return [_row_to_group(r) for r in rows]

    def update_group(
        self, group_id: str, *, name=_UNSET, color=_UNSET, sort_order=_UNSET
    ) -> ProjectGroup | None:
        """Patch the given fields. Returns None if the group does not exist.

        A group always has a name: passing ``name=None`` raises ValueError
        and nothing is changed.
        """
        if name is None:
            raise ValueError("Group name cannot be None")
        existing = self.get_group(group_id)
        if existing is None:
            return None

        changes = {}
        if name is not _UNSET:
            changes["name"] = name
        if color is not _UNSET:
            changes["color"] = color
        if sort_order is not _UNSET:
            changes["sort_order"] = sort_order
        if not changes:
            return existing

        assignments = ", ".join(f"{column} = ?" for column in changes)
        with self.transaction() as conn:
            conn.execute(
                f"UPDATE project_groups SET {assignments} WHERE id = ?",
                (*changes.values(), group_id),
            )
        return self.get_group(group_id)

    def reorder_groups(self, group_ids: list[str]):
        """Assign sort orders 0..n-1 following ``group_ids``."""
        with self.transaction() as conn:
            conn.executemany(
                "UPDATE project_groups SET sort_order = ? WHERE id = ?",
                [(order, gid) for order, gid in enumerate(group_ids)],
            )

    def delete_group(self, group_id: str):
        """Ungroup the group's projects, then remove the group."""
        with self.transaction() as conn:
            conn.execute("UPDATE projects SET group_id = NULL WHERE group_id = ?", (group_id,))
            conn.execute("DELETE FROM project_groups WHERE id = ?", (group_id,))

    def list_projects_in_group(self, group_id: str) -> list[Project]:
        rows = self._query(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE group_id = ? "
            "ORDER BY last_activity DESC, path ASC",
            (group_id,),
        )
        return [_row_to_project(r) for r in rows]

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def monthly_summary(self, month: str) -> MonthlySummary:
        """Roll up sessions created in ``month`` (YYYY-MM, UTC).

        The value multiplier uses the ``subscriptionCost`` setting.
        """
        start, end = month_bounds(month)
        rows = self._query(
            """
            SELECT s.id, s.project_path, s.created, s.modified, s.duration,
                   s.message_count, s.summary, s.first_prompt, s.git_branch,
                   COALESCE(t.path, s.project_path) AS effective_path,
                   COALESCE(t.name, p.name) AS effective_name
            FROM sessions s
            LEFT JOIN projects p ON p.path = s.project_path
            LEFT JOIN projects t ON t.path = p.merged_into
            WHERE s.created >= ? AND s.created < ?
            ORDER BY s.created ASC, s.id ASC
            """,
            (start, end),
        )
        return build_monthly_summary(
            month,
            ((_row_to_session(r), r["effective_path"], r["effective_name"]) for r in rows),
            subscription_cost=self.subscription_cost(),
        )

    def subscription_cost(self) -> float:
        value = self.get_setting("subscriptionCost")
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid subscriptionCost setting: %r", value)
            return DEFAULT_SUBSCRIPTION_COST

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str):
        """Stored value for ``key``, else its default (None if it has none).

        Values written by older versions may not be JSON; those come back
        as the raw string.
        """
        row = self._query_one("SELECT value FROM settings WHERE key = ?", (key,))
        if row is None:
            return DEFAULT_SETTINGS.get(key)
        return _decode_setting(row["value"])

    def get_settings(self) -> dict:
        settings = dict(DEFAULT_SETTINGS)
        for row in self._query("SELECT key, value FROM settings"):
            settings[row["key"]] = _decode_setting(row["value"])
        return settings

    def set_setting(self, key: str, value):
        encoded = orjson.dumps(value).decode()
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (key, encoded, utc_now()),
            )

    def delete_setting(self, key: str):
        with self.transaction() as conn:
            conn.execute("DELETE FROM settings WHERE key = ?", (key,))

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self):
        """Drop all cached projects, sessions and groups. Settings are kept."""
        with self.transaction() as conn:
            conn.execute("DELETE FROM sessions")
            conn.execute("DELETE FROM projects")
            conn.execute("DELETE FROM project_groups")


def _decode_setting(raw: str):
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return raw


def _project_params(project: ProjectInput) -> dict:
    return {
        "path": project.path,
        "name": project.name,
        "first_activity": project.first_activity,
        "last_activity": project.last_activity,
        "session_count": project.session_count,
        "message_count": project.message_count,
        "total_time": project.total_time,
    }


def _session_params(session: SessionInput) -> dict:
    return {
        "id": session.id,
        "project_path": session.project_path,
        "created": session.created,
        "modified": session.modified,
        "duration": session.duration,
        "message_count": session.message_count,
        "summary": session.summary,
        "first_prompt": session.first_prompt,
        "git_branch": session.git_branch,
    }


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        path=row["path"],
        name=row["name"],
        first_activity=row["first_activity"],
        last_activity=row["last_activity"],
        session_count=row["session_count"] or 0,
        message_count=row["message_count"] or 0,
        total_time=row["total_time"] or 0,
        is_hidden=bool(row["is_hidden"]),
        group_id=row["group_id"],
        is_default=bool(row["is_default"]),
        merged_into=row["merged_into"],
    )


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        project_path=row["project_path"],
        created=row["created"],
        modified=row["modified"],
        duration=row["duration"],
        message_count=row["message_count"] or 0,
        summary=row["summary"],
        first_prompt=row["first_prompt"],
        git_branch=row["git_branch"],
    )


def _row_to_group(row: sqlite3.Row) -> ProjectGroup:
    return ProjectGroup(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        created_at=row["created_at"],
        sort_order=row["sort_order"] or 0,
    )

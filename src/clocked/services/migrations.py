"""Schema creation and column migrations for the cache database.

Fresh databases get the full schema from ``_TABLES``. Databases written by
older versions are brought forward by ``MIGRATIONS``: an ordered list of
column additions, each applied only when the column is missing, so running
the whole list again is a no-op. Indexes are created last because some of
them cover migrated columns.
"""

import logging
import sqlite3
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

_TABLES = """
CREATE TABLE IF NOT EXISTS project_groups (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    color       TEXT DEFAULT NULL,
    created_at  TEXT NOT NULL,
    sort_order  INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS projects (
    path            TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    first_activity  TEXT NOT NULL,
    last_activity   TEXT NOT NULL,
    session_count   INTEGER DEFAULT 0,
    message_count   INTEGER DEFAULT 0,
    total_time      INTEGER DEFAULT 0,
    is_hidden       INTEGER DEFAULT 0,
    group_id        TEXT DEFAULT NULL REFERENCES project_groups(id) ON DELETE SET NULL,
    is_default      INTEGER DEFAULT 0,
    merged_into     TEXT DEFAULT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id             TEXT PRIMARY KEY,
    project_path   TEXT NOT NULL REFERENCES projects(path),
    created        TEXT NOT NULL,
    modified       TEXT NOT NULL,
    duration       INTEGER NOT NULL,
    message_count  INTEGER DEFAULT 0,
    summary        TEXT,
    first_prompt   TEXT,
    git_branch     TEXT
);

CREATE TABLE IF NOT EXISTS settings (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT
);
"""

_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project_path)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_created ON sessions(created)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_modified ON sessions(modified)",
    "CREATE INDEX IF NOT EXISTS idx_projects_group ON projects(group_id)",
    "CREATE INDEX IF NOT EXISTS idx_projects_merged_into ON projects(merged_into)",
    "CREATE INDEX IF NOT EXISTS idx_projects_last_activity ON projects(last_activity)",
)


@dataclass(frozen=True)
class ColumnMigration:
    table: str
    column: str
    definition: str


MIGRATIONS: tuple[ColumnMigration, ...] = (
    ColumnMigration("projects", "total_time", "INTEGER DEFAULT 0"),
    ColumnMigration("projects", "is_hidden", "INTEGER DEFAULT 0"),
    ColumnMigration("projects", "group_id", "TEXT DEFAULT NULL"),
    ColumnMigration("projects", "is_default", "INTEGER DEFAULT 0"),
    ColumnMigration("projects", "merged_into", "TEXT DEFAULT NULL"),
)


def column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(row[1] == column for row in rows)


def ensure_column(conn: sqlite3.Connection, migration: ColumnMigration) -> bool:
    """Add the migration's column if it is missing. Returns True if added."""
    if column_exists(conn, migration.table, migration.column):
        return False
    conn.execute(
        f"ALTER TABLE {migration.table} ADD COLUMN {migration.column} {migration.definition}"
    )
    logger.info("Added column %s.%s", migration.table, migration.column)
    return True


def run_migrations(conn: sqlite3.Connection) -> int:
    """Create missing tables, apply column migrations and indexes. Idempotent.

    Returns the number of columns added.
    """
    conn.executescript(_TABLES)
    added = 0
    for migration in MIGRATIONS:
        if ensure_column(conn, migration):
            added += 1
    for ddl in _INDEXES:
        conn.execute(ddl)

    current = conn.execute("PRAGMA user_version").fetchone()[0]
    if current < SCHEMA_VERSION:
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        logger.info("Cache schema upgraded: %d → %d", current, SCHEMA_VERSION)
    return added

"""Session, project and group records held by the cache store."""

from dataclasses import dataclass


@dataclass
class SessionInput:
    id: str
    project_path: str
    created: str      # Normalised ISO-8601 UTC
    modified: str
    duration: int     # ms, modified - created (may be negative)
    message_count: int = 0
    summary: str | None = None
    first_prompt: str | None = None
    git_branch: str | None = None


@dataclass
class Session:
    id: str
    project_path: str
    created: str
    modified: str
    duration: int
    message_count: int = 0
    summary: str | None = None
    first_prompt: str | None = None
    git_branch: str | None = None


@dataclass
class ProjectInput:
    """The sync-owned fields of a project."""

    path: str
    name: str
    first_activity: str
    last_activity: str
    session_count: int = 0
    message_count: int = 0
    total_time: int = 0


@dataclass
class Project:
    path: str            # Decoded filesystem path
    name: str            # Last path segment
    first_activity: str
    last_activity: str
    session_count: int = 0
    message_count: int = 0
    total_time: int = 0
    is_hidden: bool = False
    group_id: str | None = None
    is_default: bool = False
    merged_into: str | None = None


@dataclass
class ProjectGroup:
    id: str
    name: str
    created_at: str
    color: str | None = None
    sort_order: int = 0

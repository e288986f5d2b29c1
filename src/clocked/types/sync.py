"""Results produced by the session index reader and the sync pass."""

from dataclasses import dataclass, field

from clocked.types.sessions import ProjectInput, SessionInput


@dataclass
class SessionIndexResult:
    project_path: str
    project_name: str
    sessions: list[SessionInput] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class DiscoveryResult:
    projects: list[ProjectInput] = field(default_factory=list)
    sessions: list[SessionInput] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    projects_root: str | None = None
    # Decoded path of every project directory found, with or without sessions
    discovered_paths: set[str] = field(default_factory=set)
    listing_failed: bool = False


@dataclass
class SyncResult:
    project_count: int = 0
    session_count: int = 0
    errors: list[str] = field(default_factory=list)
    projects_root: str | None = None   # None when the root does not exist
    synced_paths: set[str] = field(default_factory=set)
    discovered_paths: set[str] = field(default_factory=set)
    listing_failed: bool = False
    orphans_removed: int = 0
    success: bool = True


@dataclass
class DataStatus:
    has_projects_root: bool
    projects_root: str
    project_count: int = 0
    session_count: int = 0

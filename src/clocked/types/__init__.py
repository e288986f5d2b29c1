"""Type definitions for Clocked."""

from clocked.types.sessions import (
    Project,
    ProjectGroup,
    ProjectInput,
    Session,
    SessionInput,
)
from clocked.types.analytics import DailyActivity, MonthlySummary, ProjectSummary, TimeSplit
from clocked.types.transcripts import TranscriptMessage, TranscriptParseResult
from clocked.types.sync import (
    DataStatus,
    DiscoveryResult,
    SessionIndexResult,
    SyncResult,
)

__all__ = [
    "Project",
    "ProjectGroup",
    "ProjectInput",
    "Session",
    "SessionInput",
    "DailyActivity",
    "MonthlySummary",
    "ProjectSummary",
    "TimeSplit",
    "TranscriptMessage",
    "TranscriptParseResult",
    "DataStatus",
    "DiscoveryResult",
    "SessionIndexResult",
    "SyncResult",
]

"""Services for Clocked."""

from clocked.services.cache_store import CacheStore, MergeError
from clocked.services.config_manager import ConfigManager
from clocked.services.file_watcher import IndexWatcher
from clocked.services.session_index import parse_session_index
from clocked.services.sync_service import SyncService, sync_to_store
from clocked.services.time_calculator import calculate_time_split, time_split_for_sessions
from clocked.services.transcripts import parse_transcript

__all__ = [
    "CacheStore",
    "MergeError",
    "ConfigManager",
    "IndexWatcher",
    "parse_session_index",
    "SyncService",
    "sync_to_store",
    "calculate_time_split",
    "time_split_for_sessions",
    "parse_transcript",
]

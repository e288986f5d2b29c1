"""Parser for Claude Code's per-project sessions-index.json files.

Each project directory may hold a ``sessions-index.json`` written by Claude
Code: a JSON array of loosely typed session records whose keys come in
either snake_case or camelCase. This module turns one such file into
validated ``SessionInput`` records plus human-readable diagnostics for the
entries it had to skip. It never touches the cache.
"""

import logging
from pathlib import Path
from typing import Callable

import orjson

from clocked.types import SessionIndexResult, SessionInput
from clocked.utils.path_codec import decode_path, project_name
from clocked.utils.timestamps import duration_ms, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "sessions-index.json"


def _field(entry: dict, snake: str, camel: str | None = None):
    """Read a field under either naming convention, snake_case first."""
    value = entry.get(snake)
    if value in (None, "") and camel:
        value = entry.get(camel)
    return value


def _text(value) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _count(value) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


def parse_entry(
    entry, index: int, index_path: str, project_path: str
) -> tuple[SessionInput | None, str | None]:
    """Validate one index entry.

    Returns ``(session, None)`` for a usable entry and ``(None, diagnostic)``
    for one that must be skipped.
    """
    if not isinstance(entry, dict):
        return None, f"Entry {index} in {index_path} is not an object, skipping"

    session_id = _text(_field(entry, "session_id", "sessionId"))
    if session_id is None:
        return None, f"Entry {index} in {index_path} missing session_id/sessionId, skipping"

    created_raw = entry.get("created")
    modified_raw = entry.get("modified")
    if not created_raw:
        return None, f"Session {session_id} missing created timestamp, skipping"
    if not modified_raw:
        return None, f"Session {session_id} missing modified timestamp, skipping"

    created = parse_timestamp(created_raw)
    if created is None:
        return None, f"Session {session_id} has invalid created date: {created_raw}, skipping"
    modified = parse_timestamp(modified_raw)
    if modified is None:
        return None, f"Session {session_id} has invalid modified date: {modified_raw}, skipping"

    session = SessionInput(
        id=session_id,
        project_path=project_path,
        created=format_timestamp(created),
        modified=format_timestamp(modified),
        # Not clamped: a negative value means the source data is inconsistent
        duration=duration_ms(created, modified),
        message_count=_count(_field(entry, "message_count", "messageCount")),
        summary=_text(entry.get("summary")),
        first_prompt=_text(_field(entry, "first_prompt", "firstPrompt")),
        git_branch=_text(_field(entry, "git_branch", "gitBranch")),
    )
    return session, None


def parse_session_index(
    project_dir: str,
    projects_root: str | Path,
    decoder: Callable[[str], str] = decode_path,
) -> SessionIndexResult:
    """Parse the sessions-index.json of one encoded project directory.

    A missing index is not an error: the project simply has no recorded
    sessions yet. An unreadable file, invalid JSON, or a document that is
    not an array yields exactly one diagnostic and no sessions. Otherwise
    invalid entries are skipped one by one and valid ones keep their order.
    """
    index_path = Path(projects_root) / project_dir / INDEX_FILE_NAME
    decoded = decoder(project_dir)
    result = SessionIndexResult(project_path=decoded, project_name=project_name(decoded))

    try:
        content = index_path.read_bytes()
    except FileNotFoundError:
        return result
    except OSError as e:
        result.errors.append(f"Failed to read {index_path}: {e}")
        return result

    try:
        entries = orjson.loads(content)
    except orjson.JSONDecodeError as e:
        result.errors.append(f"Failed to parse JSON in {index_path}: {e}")
        return result

    if not isinstance(entries, list):
        result.errors.append(f"{index_path} does not contain an array")
        return result

    for i, entry in enumerate(entries):
        session, error = parse_entry(entry, i, str(index_path), decoded)
        if error is not None:
            result.errors.append(error)
            continue
        result.sessions.append(session)

    logger.debug(
        "Parsed %d sessions from %s (%d skipped)",
        len(result.sessions), index_path, len(result.errors),
    )
    return result

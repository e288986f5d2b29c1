"""Streaming reader for Claude Code session transcripts (.jsonl).

Only what time tracking needs is kept: user and assistant messages with a
uuid and a valid timestamp. Meta entries (command caveats and the like)
and API error messages are dropped.
"""

import logging
from pathlib import Path

import orjson

from clocked.types import TranscriptMessage, TranscriptParseResult
from clocked.utils.path_codec import encode_path
from clocked.utils.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

TRANSCRIPT_SUFFIX = ".jsonl"
MESSAGE_TYPES = ("user", "assistant")

# Max size for a single JSONL line (10MB)
MAX_LINE_SIZE = 10 * 1024 * 1024


def transcript_path(projects_root: str | Path, project_path: str, session_id: str) -> Path:
    """Where Claude Code keeps the transcript of ``session_id``."""
    return Path(projects_root) / encode_path(project_path) / f"{session_id}{TRANSCRIPT_SUFFIX}"


def parse_transcript(file_path: str | Path, session_id: str | None = None) -> TranscriptParseResult:
    """Read the messages of one transcript in chronological order.

    Blank and malformed lines are counted in ``skipped_lines``. Lines that
    parse but are not messages we track are ignored without counting.
    Messages are de-duplicated by uuid. ``session_id`` defaults to the file
    name and is used when an entry does not carry its own.
    """
    path = Path(file_path)
    session_id = session_id or path.stem
    result = TranscriptParseResult()
    seen: set[str] = set()

    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line or len(line) > MAX_LINE_SIZE:
                    result.skipped_lines += 1
                    continue
                try:
                    raw = orjson.loads(line)
                except orjson.JSONDecodeError as e:
                    logger.debug("Malformed JSON at line %d in %s: %s", line_num, path.name, e)
                    result.skipped_lines += 1
                    continue

                msg = _parse_message(raw, session_id)
                if msg is None or msg.uuid in seen:
                    continue
                seen.add(msg.uuid)
                result.messages.append(msg)
    except FileNotFoundError:
        result.errors.append(f"File not found: {path}")
    except OSError as e:
        result.errors.append(f"Error reading file {path}: {e}")

    result.messages.sort(key=lambda m: m.timestamp)
    return result


def _parse_message(raw, session_id: str) -> TranscriptMessage | None:
    if not isinstance(raw, dict):
        return None
    msg_type = raw.get("type")
    if msg_type not in MESSAGE_TYPES:
        return None
    if raw.get("isMeta") is True or raw.get("isApiErrorMessage") is True:
        return None

    timestamp = parse_timestamp(raw.get("timestamp"))
    uuid = raw.get("uuid")
    if timestamp is None or not uuid:
        return None

    return TranscriptMessage(
        uuid=str(uuid),
        session_id=raw.get("sessionId") or session_id,
        timestamp=timestamp,
        type=msg_type,
    )

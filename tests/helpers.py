"""Shared test helpers."""

from pathlib import Path

import orjson

from clocked.services.session_index import INDEX_FILE_NAME
from clocked.types import ProjectInput, SessionInput


def write_index(projects_root: Path, token: str, entries) -> Path:
    """Write a sessions-index.json under ``projects_root/token``."""
    project_dir = projects_root / token
    project_dir.mkdir(parents=True, exist_ok=True)
    index = project_dir / INDEX_FILE_NAME
    index.write_bytes(orjson.dumps(entries))
    return index


def entry(session_id, created="2026-01-01T10:00:00Z", modified="2026-01-01T11:00:00Z", **extra) -> dict:
    data = {"session_id": session_id, "created": created, "modified": modified}
    data.update(extra)
    return data


def make_project(
    path="/home/wiz/proj",
    first_activity="2026-01-01T10:00:00.000Z",
    last_activity="2026-01-01T11:00:00.000Z",
    session_count=1,
    message_count=4,
    total_time=3_600_000,
    name=None,
) -> ProjectInput:
    return ProjectInput(
        path=path,
        name=name or path.rstrip("/").rsplit("/", 1)[-1],
        first_activity=first_activity,
        last_activity=last_activity,
        session_count=session_count,
        message_count=message_count,
        total_time=total_time,
    )


def make_session(
    session_id="sess-1",
    project_path="/home/wiz/proj",
    created="2026-01-01T10:00:00.000Z",
    modified="2026-01-01T11:00:00.000Z",
    duration=3_600_000,
    message_count=4,
    summary=None,
    first_prompt=None,
    git_branch=None,
) -> SessionInput:
    return SessionInput(
        id=session_id,
        project_path=project_path,
        created=created,
        modified=modified,
        duration=duration,
        message_count=message_count,
        summary=summary,
        first_prompt=first_prompt,
        git_branch=git_branch,
    )


def write_transcript(projects_root: Path, token: str, session_id: str, records) -> Path:
    """Write ``session_id``.jsonl under ``projects_root/token``; str records are written raw."""
    project_dir = projects_root / token
    project_dir.mkdir(parents=True, exist_ok=True)
    path = project_dir / f"{session_id}.jsonl"
    lines = [r if isinstance(r, str) else orjson.dumps(r).decode() for r in records]
    path.write_text("\n".join(lines) + "\n")
    return path


def message(uuid, msg_type, timestamp, **extra) -> dict:
    data = {"uuid": uuid, "type": msg_type, "timestamp": timestamp}
    data.update(extra)
    return data

"""Human vs Claude time split from session transcripts.

The gap between two consecutive messages is credited to whoever the other
side was waiting on:

* assistant → user, user → user: human time (reading, thinking, typing)
* user → assistant, assistant → assistant: Claude time (processing)

Gaps longer than the idle threshold count as idle and are left out of
active time. Transcript timestamps mark when a message finished rather
than when it started, so the ratio is directional, not exact.
"""

import logging
from pathlib import Path
from typing import Iterable

from clocked.services.transcripts import parse_transcript, transcript_path
from clocked.types import Session, TimeSplit, TranscriptMessage
from clocked.utils.timestamps import duration_ms

logger = logging.getLogger(__name__)

# 30 minutes
DEFAULT_IDLE_THRESHOLD_MS = 30 * 60 * 1000


def _percent(part: int, total: int) -> int:
    # Half rounds up
    return int(part * 100 / total + 0.5) if total > 0 else 0


def _finish(split: TimeSplit) -> TimeSplit:
    split.active_time = split.human_time + split.claude_time
    split.human_percentage = _percent(split.human_time, split.active_time)
    split.claude_percentage = _percent(split.claude_time, split.active_time)
    return split


def calculate_time_split(
    messages: list[TranscriptMessage],
    idle_threshold_ms: int = DEFAULT_IDLE_THRESHOLD_MS,
) -> TimeSplit:
    """Split the time covered by chronologically sorted ``messages``."""
    split = TimeSplit()
    for prev, curr in zip(messages, messages[1:]):
        delta = duration_ms(prev.timestamp, curr.timestamp)
        if delta < 0:
            continue
        if delta > idle_threshold_ms:
            split.idle_time += delta
            split.gap_count += 1
            continue

        split.message_pair_count += 1
        # Whoever speaks next was the one waited on
        if curr.type == "user":
            split.human_time += delta
        else:
            split.claude_time += delta
    return _finish(split)


def aggregate_time_splits(splits: Iterable[TimeSplit]) -> TimeSplit:
    total = TimeSplit()
    for split in splits:
        total.human_time += split.human_time
        total.claude_time += split.claude_time
        total.idle_time += split.idle_time
        total.message_pair_count += split.message_pair_count
        total.gap_count += split.gap_count
    return _finish(total)


def time_split_for_sessions(
    projects_root: str | Path,
    sessions: Iterable[Session],
    idle_threshold_ms: int = DEFAULT_IDLE_THRESHOLD_MS,
) -> TimeSplit:
    """Aggregate the time split over the transcripts of ``sessions``.

    Sessions whose transcript is missing or unreadable contribute nothing.
    """
    splits = []
    for session in sessions:
        path = transcript_path(projects_root, session.project_path, session.id)
        parsed = parse_transcript(path, session.id)
        for error in parsed.errors:
            logger.debug("Transcript %s: %s", session.id, error)
        splits.append(calculate_time_split(parsed.messages, idle_threshold_ms))
    return aggregate_time_splits(splits)


def format_time_split(split: TimeSplit) -> str:
    """One-line summary for logs."""

    def fmt(ms: int) -> str:
        hours, minutes = ms // 3_600_000, ms % 3_600_000 // 60_000
        return f"{hours}h {minutes}m" if hours else f"{minutes}m"

    return (
        f"Active: {fmt(split.active_time)} | "
        f"Human: {fmt(split.human_time)} ({split.human_percentage}%) | "
        f"Claude: {fmt(split.claude_time)} ({split.claude_percentage}%) | "
        f"Idle: {fmt(split.idle_time)} | "
        f"Pairs: {split.message_pair_count}, Gaps: {split.gap_count}"
    )

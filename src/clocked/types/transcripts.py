"""Messages read from Claude Code session transcripts (.jsonl)."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class TranscriptMessage:
    uuid: str
    session_id: str
    timestamp: datetime   # aware, UTC
    type: str             # "user" | "assistant"


@dataclass
class TranscriptParseResult:
    messages: list[TranscriptMessage] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    skipped_lines: int = 0

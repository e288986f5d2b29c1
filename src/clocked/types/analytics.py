"""Monthly roll-up types."""

from dataclasses import dataclass, field


@dataclass
class DailyActivity:
    date: str             # YYYY-MM-DD
    session_count: int = 0
    total_time: int = 0   # ms


@dataclass
class ProjectSummary:
    path: str
    name: str
    session_count: int = 0
    total_time: int = 0
    estimated_cost: float = 0.0


@dataclass
class TimeSplit:
    """Human vs Claude time over one or more transcripts. Times are in ms."""
    active_time: int = 0          # human_time + claude_time
    human_time: int = 0           # after a reply, until the next user message
    claude_time: int = 0          # after a user message, until the reply
    idle_time: int = 0            # gaps longer than the idle threshold
    human_percentage: int = 0
    claude_percentage: int = 0
    message_pair_count: int = 0
    gap_count: int = 0


@dataclass
class MonthlySummary:
    month: str            # YYYY-MM
    total_sessions: int = 0
    total_time: int = 0
    estimated_cost: float = 0.0
    daily_activity: list[DailyActivity] = field(default_factory=list)
    top_projects: list[ProjectSummary] = field(default_factory=list)
    subscription_cost: float = 0.0
    usage_percentage: float = 0.0   # of the heavy-use API equivalent, capped at 100
    value_multiplier: float = 0.0   # estimated_cost / subscription_cost
    time_split: TimeSplit = field(default_factory=TimeSplit)

"""Monthly roll-ups over cached sessions."""

import re
from datetime import datetime, timezone
from typing import Iterable

from clocked.types import DailyActivity, MonthlySummary, ProjectSummary, Session
from clocked.utils.path_codec import project_name
from clocked.utils.timestamps import format_timestamp

# Estimated API-equivalent cost of one minute of session time, in USD
COST_PER_MINUTE = 0.05
TOP_PROJECTS_LIMIT = 5

# What a very active Max subscriber might spend per month at API prices, in USD
ESTIMATED_MAX_EQUIVALENT = 400
DEFAULT_SUBSCRIPTION_COST = 100

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def month_bounds(month: str) -> tuple[str, str]:
    """Return [start, end) of a YYYY-MM month as canonical UTC timestamps."""
    match = _MONTH_RE.match(month or "")
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise ValueError(f"Invalid month {month!r}, expected YYYY-MM")
    year, mon = int(match.group(1)), int(match.group(2))
    start = datetime(year, mon, 1, tzinfo=timezone.utc)
    if mon == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, mon + 1, 1, tzinfo=timezone.utc)
    return format_timestamp(start), format_timestamp(end)


def estimate_cost(duration_ms: int) -> float:
    return round(duration_ms / 60_000 * COST_PER_MINUTE, 2)


def usage_percentage(estimated_cost: float) -> float:
    """Share of the heavy-use API equivalent, 0 to 100."""
    if estimated_cost < 0:
        return 0.0
    return min(estimated_cost / ESTIMATED_MAX_EQUIVALENT * 100, 100.0)


def value_multiplier(estimated_cost: float, subscription_cost: float = DEFAULT_SUBSCRIPTION_COST) -> float:
    """API-equivalent cost per subscription dollar (8.47 means 8.47x value)."""
    if subscription_cost <= 0:
        return 0.0
    return estimated_cost / subscription_cost


def build_monthly_summary(
    month: str,
    rows: Iterable[tuple[Session, str, str | None]],
    subscription_cost: float = DEFAULT_SUBSCRIPTION_COST,
) -> MonthlySummary:
    """Aggregate a month of sessions.

    ``rows`` are ``(session, effective_path, project_name)`` tuples in
    ``created`` order. ``effective_path`` is the project the session counts
    toward: its own, or the primary it has been merged into.
    """
    summary = MonthlySummary(month=month)
    days: dict[str, DailyActivity] = {}
    projects: dict[str, ProjectSummary] = {}

    for session, path, name in rows:
        summary.total_sessions += 1
        summary.total_time += session.duration

        day_key = session.created[:10]
        day = days.get(day_key)
        if day is None:
            day = days[day_key] = DailyActivity(date=day_key)
        day.session_count += 1
        day.total_time += session.duration

        # Insertion order is first-seen order, which breaks ties below
        proj = projects.get(path)
        if proj is None:
            proj = projects[path] = ProjectSummary(path=path, name=name or project_name(path))
        proj.session_count += 1
        proj.total_time += session.duration

    summary.daily_activity = [days[k] for k in sorted(days)]
    ranked = sorted(projects.values(), key=lambda p: p.total_time, reverse=True)
    summary.top_projects = ranked[:TOP_PROJECTS_LIMIT]
    for proj in summary.top_projects:
        proj.estimated_cost = estimate_cost(proj.total_time)
    summary.estimated_cost = estimate_cost(summary.total_time)
    summary.subscription_cost = subscription_cost
    summary.usage_percentage = usage_percentage(summary.estimated_cost)
    summary.value_multiplier = value_multiplier(summary.estimated_cost, subscription_cost)
    return summary

"""
Countdown tracking for a goal's target completion date.

All functions take `today` explicitly so results never depend on the wall clock.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Literal, Optional, Union

from ikioi.models.goal import Goal

Urgency = Literal["urgent", "warning", "normal"]

URGENT_DAYS = 3
WARNING_DAYS = 7
MIN_PROGRESS_PERCENT = 5.0

DayLike = Union[date, datetime]


def target_completion_date(created: DayLike, timeframe_days: int) -> date:
    start = created.astimezone(timezone.utc).date() if isinstance(created, datetime) else created
    return start + timedelta(days=timeframe_days)


def days_left(target: Optional[date], today: DayLike) -> int:
    """Whole days until target, rounded up and never negative; 0 without a target."""
    if target is None:
        return 0
    if isinstance(today, datetime):
        current = today if today.tzinfo else today.replace(tzinfo=timezone.utc)
        deadline = datetime.combine(target, time(0, 0), tzinfo=timezone.utc)
        remaining = (deadline - current).total_seconds() / 86400
        return max(0, math.ceil(remaining))
    return max(0, (target - today).days)


def days_late(target: Optional[date], today: date) -> int:
    if target is None:
        return 0
    return max(0, (today - target).days)


def progress_percent(remaining_days: int, total_days: int) -> float:
    """Elapsed share of the timeframe, floored at 5% so the bar is never empty."""
    if total_days <= 0:
        return 0.0
    elapsed = total_days - remaining_days
    return max(MIN_PROGRESS_PERCENT, min(100.0, elapsed / total_days * 100))


def urgency(remaining_days: int) -> Urgency:
    if remaining_days <= URGENT_DAYS:
        return "urgent"
    if remaining_days <= WARNING_DAYS:
        return "warning"
    return "normal"


def requires_accountability(goal: Goal, today: date) -> bool:
    """Countdown lapsed and the user has not answered yet."""
    if goal.target_completion_date is None:
        return False
    if goal.countdown_ended or goal.accountability_prompt_shown:
        return False
    return goal.target_completion_date <= today


def find_pending_accountability(goals: Iterable[Goal], today: date) -> Optional[Goal]:
    """First goal in list order that needs the accountability prompt."""
    for goal in goals:
        if requires_accountability(goal, today):
            return goal
    return None


def countdown_view(goal: Goal, today: date) -> dict:
    remaining = days_left(goal.target_completion_date, today)
    return {
        "daysLeft": remaining,
        "daysLate": days_late(goal.target_completion_date, today),
        "progressPercent": round(progress_percent(remaining, goal.timeframe_days), 1),
        "urgency": urgency(remaining),
        "countdownActive": goal.countdown_active and not goal.countdown_ended,
        "requiresAccountability": requires_accountability(goal, today),
    }

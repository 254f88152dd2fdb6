"""Log history and dashboard statistics."""

from datetime import timezone
from typing import Dict, Iterable, List, Optional

from ikioi.models.goal import DEFAULT_MOMENTUM, DIFFICULTY_VALUES, Goal, GoalLog

WEEK_SECONDS = 7 * 24 * 60 * 60
DEFAULT_DIFFICULTY_VALUE = DIFFICULTY_VALUES["moderate"]


def sort_logs_newest_first(logs: List[GoalLog]) -> List[GoalLog]:
    return sorted(logs, key=lambda log: (log.log_date, log.created_at), reverse=True)


def calculate_log_stats(logs: List[GoalLog]) -> Optional[Dict[str, object]]:
    """
    Totals and averages over a list of logs; None when there are none.

    averageDifficulty weighs minimal..maximum as 1..5 (missing = moderate).
    averageLogsPerWeek divides by the number of distinct epoch weeks touched.
    """
    if not logs:
        return None

    total_minutes = sum(log.time_spent_minutes or 0 for log in logs)
    average_difficulty = sum(
        DIFFICULTY_VALUES.get(log.difficulty or "", DEFAULT_DIFFICULTY_VALUE) for log in logs
    ) / len(logs)

    weeks = set()
    for log in logs:
        stamp = log.created_at if log.created_at.tzinfo else log.created_at.replace(tzinfo=timezone.utc)
        weeks.add(int(stamp.timestamp() // WEEK_SECONDS))
    average_per_week = len(logs) / max(1, len(weeks))

    return {
        "totalLogs": len(logs),
        "totalMinutes": total_minutes,
        "averageDifficulty": f"{average_difficulty:.1f}",
        "averageLogsPerWeek": f"{average_per_week:.1f}",
    }


def summarize_goals(goals: Iterable[Goal]) -> Dict[str, object]:
    """
    Dashboard header figures for a user's goals.

    overallMomentum is the mean momentum of active goals only, and falls
    back to the neutral starting momentum when none are active.
    """
    goals = list(goals)
    active = [g for g in goals if g.status == "active"]
    completed = sum(1 for g in goals if g.status == "completed")
    if active:
        overall = sum(g.momentum_score for g in active) / len(active)
    else:
        overall = DEFAULT_MOMENTUM

    return {
        "activeGoals": len(active),
        "completedGoals": completed,
        "overallMomentum": round(overall, 1),
    }

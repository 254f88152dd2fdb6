"""Goal input validators.

The API validates bodies with pydantic first; these checks keep the service
safe when it is called directly as a library.
"""

from typing import Optional

from ikioi.core.errors import ValidationError
from ikioi.models.goal import (
    DAYS_PER_WEEK_RANGE,
    DIFFICULTY_LEVELS,
    EFFORT_MINUTES_RANGE,
    GOAL_STATUSES,
    MISS_REASONS,
    TIMEFRAME_DAYS_RANGE,
    GoalParams,
)


def _check_int_range(field: str, value, bounds) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if not low <= value <= high:
        raise ValidationError(f"{field} must be between {low} and {high}")


def validate_goal_params(params: GoalParams) -> None:
    if not params.name or not params.name.strip():
        raise ValidationError("name is required")
    if len(params.name) > 200:
        raise ValidationError("name must be at most 200 characters")
    _check_int_range("timeframe_days", params.timeframe_days, TIMEFRAME_DAYS_RANGE)
    _check_int_range("effort_per_day_minutes", params.effort_per_day_minutes, EFFORT_MINUTES_RANGE)
    _check_int_range("days_per_week", params.days_per_week, DAYS_PER_WEEK_RANGE)


def validate_log_fields(
    effort_rating,
    difficulty: Optional[str],
    time_spent_minutes: Optional[int] = None,
) -> None:
    if effort_rating is None:
        raise ValidationError("effort_rating is required")
    _check_int_range("effort_rating", effort_rating, (1, 5))
    if not difficulty:
        raise ValidationError("difficulty is required")
    if difficulty not in DIFFICULTY_LEVELS:
        raise ValidationError(f"difficulty must be one of: {', '.join(DIFFICULTY_LEVELS)}")
    if time_spent_minutes is not None:
        _check_int_range("time_spent_minutes", time_spent_minutes, (0, 1440))


def validate_reason(reason: Optional[str]) -> None:
    if not reason:
        raise ValidationError("reason is required")
    if reason not in MISS_REASONS:
        raise ValidationError(f"reason must be one of: {', '.join(MISS_REASONS)}")


def validate_status(status: Optional[str]) -> None:
    if status not in GOAL_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(GOAL_STATUSES)}")

"""
Goal domain model.

A Goal is an effort commitment (minutes per day, days per week, over a
timeframe). Its mutable state only changes through the momentum engine
and the accountability resolution. Snapshots are frozen; every
transition returns a new Goal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal, Optional

GoalStatus = Literal["active", "paused", "completed", "archived"]
MissReason = Literal["time", "energy", "forgot", "motivation", "external", "other"]
DifficultyLevel = Literal["minimal", "light", "moderate", "strong", "maximum"]

GOAL_STATUSES = ("active", "paused", "completed", "archived")
MISS_REASONS = ("time", "energy", "forgot", "motivation", "external", "other")
DIFFICULTY_LEVELS = ("minimal", "light", "moderate", "strong", "maximum")

# Numeric weight of each difficulty tag (log history averages)
DIFFICULTY_VALUES = {
    "minimal": 1,
    "light": 2,
    "moderate": 3,
    "strong": 4,
    "maximum": 5,
}

TIMEFRAME_DAYS_RANGE = (7, 365)
EFFORT_MINUTES_RANGE = (5, 240)
DAYS_PER_WEEK_RANGE = (1, 7)

DEFAULT_MOMENTUM = 50.0
DEFAULT_MULTIPLIER = 1.0


@dataclass(frozen=True)
class GoalParams:
    """Proposed goal definition, as submitted on creation."""

    name: str
    timeframe_days: int
    effort_per_day_minutes: int
    days_per_week: int
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "timeframeDays": self.timeframe_days,
            "effortPerDayMinutes": self.effort_per_day_minutes,
            "daysPerWeek": self.days_per_week,
        }


@dataclass(frozen=True)
class Goal:
    id: str
    user_id: str
    name: str
    description: Optional[str]
    timeframe_days: int
    effort_per_day_minutes: int
    days_per_week: int
    feasibility_score: int
    created_at: datetime
    updated_at: datetime
    target_completion_date: Optional[date] = None
    status: GoalStatus = "active"
    momentum_score: float = DEFAULT_MOMENTUM
    current_difficulty_multiplier: float = DEFAULT_MULTIPLIER
    consecutive_successes: int = 0
    consecutive_misses: int = 0
    in_recovery_mode: bool = False
    recovery_start_date: Optional[date] = None
    total_effort_logged: int = 0
    last_log_date: Optional[datetime] = None
    countdown_active: bool = True
    countdown_ended: bool = False
    accountability_prompt_shown: bool = False

    def validate(self) -> None:
        """Ensure the mutable state honours its invariants."""
        assert self.id, "id required"
        assert self.user_id, "user_id required"
        assert 0.0 <= self.momentum_score <= 100.0, f"momentum_score out of range: {self.momentum_score}"
        assert 0.5 <= self.current_difficulty_multiplier <= 1.2, (
            f"current_difficulty_multiplier out of range: {self.current_difficulty_multiplier}"
        )
        assert self.consecutive_successes >= 0 and self.consecutive_misses >= 0, "negative streak counter"
        assert not (self.consecutive_successes and self.consecutive_misses), (
            "consecutive_successes and consecutive_misses cannot both be non-zero"
        )
        assert self.status in GOAL_STATUSES, f"invalid status: {self.status}"

    def to_dict(self) -> dict:
        """Serialize to dict for JSON response."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "timeframeDays": self.timeframe_days,
            "effortPerDayMinutes": self.effort_per_day_minutes,
            "daysPerWeek": self.days_per_week,
            "feasibilityScore": self.feasibility_score,
            "status": self.status,
            "momentumScore": round(self.momentum_score, 1),
            "currentDifficultyMultiplier": round(self.current_difficulty_multiplier, 2),
            "consecutiveSuccesses": self.consecutive_successes,
            "consecutiveMisses": self.consecutive_misses,
            "inRecoveryMode": self.in_recovery_mode,
            "recoveryStartDate": self.recovery_start_date.isoformat() if self.recovery_start_date else None,
            "totalEffortLogged": self.total_effort_logged,
            "lastLogDate": self.last_log_date.isoformat() if self.last_log_date else None,
            "targetCompletionDate": self.target_completion_date.isoformat() if self.target_completion_date else None,
            "countdownActive": self.countdown_active,
            "countdownEnded": self.countdown_ended,
            "accountabilityPromptShown": self.accountability_prompt_shown,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class GoalLog:
    """One effort entry; unique per (goal_id, log_date)."""

    id: str
    goal_id: str
    user_id: str
    log_date: date
    effort_rating: int
    created_at: datetime
    difficulty: Optional[DifficultyLevel] = None
    feel_option: Optional[str] = None
    message: Optional[str] = None
    time_spent_minutes: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "goalId": self.goal_id,
            "logDate": self.log_date.isoformat(),
            "effortRating": self.effort_rating,
            "difficulty": self.difficulty,
            "feelOption": self.feel_option,
            "message": self.message,
            "timeSpentMinutes": self.time_spent_minutes,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Reflection:
    """Acknowledgement of a missed day."""

    id: str
    goal_id: str
    user_id: str
    reflection_date: date
    reason: MissReason
    created_at: datetime
    reason_details: Optional[str] = None
    acknowledged: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "goalId": self.goal_id,
            "reflectionDate": self.reflection_date.isoformat(),
            "reason": self.reason,
            "reasonDetails": self.reason_details,
            "acknowledged": self.acknowledged,
            "createdAt": self.created_at.isoformat(),
        }

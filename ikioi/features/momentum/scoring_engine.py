"""
Momentum Engine

Pure, deterministic state transitions for a goal's momentum.
No external calls, no clocks, no side effects: every function takes the
prior Goal snapshot plus the event and returns the next state.

Transitions:
- after_log: effort logged (gain 2..10, return bonus, light decay,
  recovery exit after 3 successes, difficulty ramp after 5)
- after_miss: acknowledged miss (-3, floored at 10; recovery entry
  after 3 misses)
- resolve_accountability: countdown lapsed and the user answered
  (hard reset to 100/completed or 10/paused+recovery)
"""

import math
from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Tuple

from ikioi.core.errors import ValidationError
from ikioi.models.goal import Goal
from ikioi.models.momentum import MOMENTUM_DISPLAY, MomentumLevel, MomentumUpdate


class MomentumEngine:
    """Momentum / difficulty / recovery state machine."""

    MIN_MOMENTUM = 0.0
    MAX_MOMENTUM = 100.0
    MISS_FLOOR = 10.0  # a miss never drops momentum below this

    MIN_MULTIPLIER = 0.5
    MAX_MULTIPLIER = 1.2
    RECOVERY_EXIT_CAP = 1.0

    EFFORT_GAIN_PER_POINT = 2
    WELCOME_BACK_BONUS = 5  # 2..7 days away
    COMEBACK_BONUS = 10  # more than a week away
    DECAY = 2  # 1..2 days since the previous log
    MISS_PENALTY = 3

    RECOVERY_ENTRY_MISSES = 3
    RECOVERY_EXIT_SUCCESSES = 3
    RAMP_SUCCESSES = 5
    RECOVERY_ENTRY_STEP = 0.2
    RECOVERY_EXIT_STEP = 0.1
    RAMP_STEP = 0.05

    COMPLETED_MOMENTUM = 100.0
    FAILED_MOMENTUM = 10.0

    @staticmethod
    def after_log(goal: Goal, effort_rating: int, days_since_last_log: int) -> MomentumUpdate:
        """
        Compute the momentum update for a logged effort.

        Args:
            goal: Current goal snapshot
            effort_rating: 1..5
            days_since_last_log: whole calendar days since the previous log (>= 0)

        Returns:
            MomentumUpdate (momentum clamped to 0..100)
        """
        MomentumEngine._check_rating(effort_rating)
        if days_since_last_log < 0:
            raise ValidationError("days_since_last_log must be >= 0")

        momentum = float(goal.momentum_score)
        multiplier = float(goal.current_difficulty_multiplier)
        message: Optional[str] = None
        should_exit = False

        base_gain = effort_rating * MomentumEngine.EFFORT_GAIN_PER_POINT

        return_bonus = 0
        if 1 < days_since_last_log <= 7:
            return_bonus = MomentumEngine.WELCOME_BACK_BONUS
            message = "Welcome back! Every return matters."
        elif days_since_last_log > 7:
            return_bonus = MomentumEngine.COMEBACK_BONUS
            message = "Amazing comeback! It takes courage to restart."

        momentum += base_gain + return_bonus
        # Same-day logs (0 days) carry no decay
        if days_since_last_log in (1, 2):
            momentum -= MomentumEngine.DECAY

        successes = goal.consecutive_successes + 1

        if goal.in_recovery_mode and successes >= MomentumEngine.RECOVERY_EXIT_SUCCESSES:
            should_exit = True
            multiplier = min(MomentumEngine.RECOVERY_EXIT_CAP, multiplier + MomentumEngine.RECOVERY_EXIT_STEP)
            message = "Great progress! You're back on track."

        if (
            not goal.in_recovery_mode
            and successes >= MomentumEngine.RAMP_SUCCESSES
            and multiplier < MomentumEngine.MAX_MULTIPLIER
        ):
            multiplier = min(MomentumEngine.MAX_MULTIPLIER, multiplier + MomentumEngine.RAMP_STEP)

        return MomentumUpdate(
            new_momentum=MomentumEngine._clamp(momentum, MomentumEngine.MIN_MOMENTUM),
            new_difficulty_multiplier=round(multiplier, 2),
            new_consecutive_successes=successes,
            new_consecutive_misses=0,
            should_enter_recovery=False,
            should_exit_recovery=should_exit,
            message=message,
        )

    @staticmethod
    def after_miss(goal: Goal) -> MomentumUpdate:
        """Compute the momentum update for an acknowledged missed day."""
        multiplier = float(goal.current_difficulty_multiplier)
        message: Optional[str] = None
        should_enter = False

        momentum = float(goal.momentum_score) - MomentumEngine.MISS_PENALTY
        misses = goal.consecutive_misses + 1

        if misses >= MomentumEngine.RECOVERY_ENTRY_MISSES and not goal.in_recovery_mode:
            should_enter = True
            multiplier = max(MomentumEngine.MIN_MULTIPLIER, multiplier - MomentumEngine.RECOVERY_ENTRY_STEP)
            message = "Let's ease up a bit. Recovery mode activated."

        return MomentumUpdate(
            new_momentum=MomentumEngine._clamp(momentum, MomentumEngine.MISS_FLOOR),
            new_difficulty_multiplier=round(multiplier, 2),
            new_consecutive_successes=0,
            new_consecutive_misses=misses,
            should_enter_recovery=should_enter,
            should_exit_recovery=False,
            message=message,
        )

    @staticmethod
    def log_effort(goal: Goal, effort_rating: int, days_since_last_log: int) -> Tuple[Goal, MomentumUpdate]:
        """Apply after_log to a snapshot. Log counters and timestamps are the caller's."""
        update = MomentumEngine.after_log(goal, effort_rating, days_since_last_log)
        next_goal = replace(
            goal,
            momentum_score=update.new_momentum,
            current_difficulty_multiplier=update.new_difficulty_multiplier,
            consecutive_successes=update.new_consecutive_successes,
            consecutive_misses=update.new_consecutive_misses,
            in_recovery_mode=False if update.should_exit_recovery else goal.in_recovery_mode,
            recovery_start_date=None if update.should_exit_recovery else goal.recovery_start_date,
        )
        return next_goal, update

    @staticmethod
    def miss_day(goal: Goal, today: date) -> Tuple[Goal, MomentumUpdate]:
        """Apply after_miss to a snapshot; recovery entry is stamped with today."""
        update = MomentumEngine.after_miss(goal)
        next_goal = replace(
            goal,
            momentum_score=update.new_momentum,
            current_difficulty_multiplier=update.new_difficulty_multiplier,
            consecutive_successes=update.new_consecutive_successes,
            consecutive_misses=update.new_consecutive_misses,
            in_recovery_mode=True if update.should_enter_recovery else goal.in_recovery_mode,
            recovery_start_date=today if update.should_enter_recovery else goal.recovery_start_date,
        )
        return next_goal, update

    @staticmethod
    def resolve_accountability(goal: Goal, completed: bool, today: date, now: datetime) -> Goal:
        """
        Hard reset once the countdown lapsed and the user answered.

        Completed: momentum 100, status completed.
        Not completed: momentum 10, recovery mode on, status paused.
        """
        if completed:
            return replace(
                goal,
                momentum_score=MomentumEngine.COMPLETED_MOMENTUM,
                status="completed",
                countdown_ended=True,
                accountability_prompt_shown=True,
                updated_at=now,
            )
        return replace(
            goal,
            momentum_score=MomentumEngine.FAILED_MOMENTUM,
            in_recovery_mode=True,
            recovery_start_date=goal.recovery_start_date or today,
            status="paused",
            countdown_ended=True,
            accountability_prompt_shown=True,
            updated_at=now,
        )

    @staticmethod
    def momentum_level(score: float) -> MomentumLevel:
        if score < 25:
            return "building"
        if score < 50:
            return "steady"
        if score < 75:
            return "strong"
        return "soaring"

    @staticmethod
    def momentum_display(score: float) -> dict:
        level = MomentumEngine.momentum_level(score)
        return {"level": level, **MOMENTUM_DISPLAY[level]}

    @staticmethod
    def adjusted_effort(base_minutes: int, multiplier: float) -> int:
        """Expected daily minutes under the current multiplier (half-up rounding)."""
        return int(math.floor(base_minutes * multiplier + 0.5))

    @staticmethod
    def _clamp(value: float, floor: float) -> float:
        return max(floor, min(MomentumEngine.MAX_MOMENTUM, value))

    @staticmethod
    def _check_rating(effort_rating: int) -> None:
        if isinstance(effort_rating, bool) or not isinstance(effort_rating, int):
            raise ValidationError("effort_rating must be an integer between 1 and 5")
        if not 1 <= effort_rating <= 5:
            raise ValidationError("effort_rating must be between 1 and 5")

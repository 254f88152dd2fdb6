"""
Feasibility Scoring Engine

Pure, deterministic scoring of a proposed goal at creation time.
No external calls, no randomness, no side effects.

Scoring philosophy:
- Start at 100
- Independent penalties for each sub-optimal range (daily effort,
  days per week, weekly hours, timeframe); order does not matter
- Clamp to 0..100, then bucket into one of five levels
- Below "good", propose a gentler version of the same goal
"""

from typing import List, Tuple

from ikioi.models.feasibility import FeasibilityLevel, FeasibilityResult
from ikioi.models.goal import GoalParams


class FeasibilityScoringEngine:
    """Pure deterministic feasibility scoring."""

    BASE_SCORE = 100

    # Level thresholds on the clamped score (inclusive lower bounds)
    LEVEL_THRESHOLDS: Tuple[Tuple[int, FeasibilityLevel, str], ...] = (
        (85, "excellent", "This goal is well-structured for sustainable progress."),
        (70, "good", "This goal is achievable with consistent effort."),
        (55, "moderate", "This goal is doable but may require adjustments along the way."),
        (40, "challenging", "This goal is ambitious. Consider the suggestions below."),
    )
    FALLBACK_LEVEL: Tuple[FeasibilityLevel, str] = (
        "difficult",
        "This goal may be hard to sustain. We recommend adjusting it.",
    )

    # Adjusted goals are offered below this score
    ADJUST_BELOW = 70
    ADJUSTED_TIMEFRAME_RANGE = (21, 60)
    ADJUSTED_MAX_EFFORT = 45
    ADJUSTED_DAYS_RANGE = (3, 5)

    @staticmethod
    def score(params: GoalParams) -> FeasibilityResult:
        """
        Score a proposed goal.

        Args:
            params: Proposed goal definition (already range-validated)

        Returns:
            FeasibilityResult with score, level, message, every triggered
            suggestion, and an adjusted goal when the score is below 70
        """
        penalties: List[Tuple[int, str]] = []
        penalties += FeasibilityScoringEngine._effort_penalties(params.effort_per_day_minutes)
        penalties += FeasibilityScoringEngine._days_penalties(params.days_per_week)
        penalties += FeasibilityScoringEngine._weekly_hours_penalties(
            params.effort_per_day_minutes * params.days_per_week / 60
        )
        penalties += FeasibilityScoringEngine._timeframe_penalties(params.timeframe_days)

        raw_score = FeasibilityScoringEngine.BASE_SCORE - sum(amount for amount, _ in penalties)
        score = max(0, min(100, raw_score))
        suggestions = [text for _, text in penalties if text]

        level, message = FeasibilityScoringEngine.level_for(score)

        adjusted_goal = None
        if score < FeasibilityScoringEngine.ADJUST_BELOW:
            adjusted_goal = FeasibilityScoringEngine.adjust(params)

        return FeasibilityResult(
            score=score,
            level=level,
            message=message,
            suggestions=suggestions,
            adjusted_goal=adjusted_goal,
        )

    @staticmethod
    def level_for(score: int) -> Tuple[FeasibilityLevel, str]:
        """Map a clamped score to its level and message."""
        for threshold, level, message in FeasibilityScoringEngine.LEVEL_THRESHOLDS:
            if score >= threshold:
                return level, message
        return FeasibilityScoringEngine.FALLBACK_LEVEL

    @staticmethod
    def adjust(params: GoalParams) -> GoalParams:
        """Gentler version of the goal: 21-60 days, at most 45 min, 3-5 days/week."""
        lo_days, hi_days = FeasibilityScoringEngine.ADJUSTED_TIMEFRAME_RANGE
        lo_week, hi_week = FeasibilityScoringEngine.ADJUSTED_DAYS_RANGE
        return GoalParams(
            name=params.name,
            description=params.description,
            timeframe_days=min(max(params.timeframe_days, lo_days), hi_days),
            effort_per_day_minutes=min(params.effort_per_day_minutes, FeasibilityScoringEngine.ADJUSTED_MAX_EFFORT),
            days_per_week=min(max(params.days_per_week, lo_week), hi_week),
        )

    @staticmethod
    def _effort_penalties(minutes: int) -> List[Tuple[int, str]]:
        """Daily effort; the sweet spot is 15-45 minutes."""
        if minutes > 90:
            return [(25, "Consider reducing daily effort to 60 minutes. Long sessions can lead to burnout.")]
        if minutes > 60:
            return [(15, "60+ minute sessions work best when broken into chunks.")]
        if minutes < 10:
            return [(10, "Very short sessions can be hard to maintain. Consider 15-minute blocks.")]
        return []

    @staticmethod
    def _days_penalties(days_per_week: int) -> List[Tuple[int, str]]:
        """Days per week; the sweet spot is 3-5."""
        if days_per_week == 7:
            return [(20, "Daily goals without rest days increase burnout risk. Try 5-6 days.")]
        if days_per_week == 6:
            return [(10, "")]
        if days_per_week < 3:
            return [(15, "Goals practiced fewer than 3x/week are harder to maintain. Consider adding a day.")]
        return []

    @staticmethod
    def _weekly_hours_penalties(hours_per_week: float) -> List[Tuple[int, str]]:
        """Weekly commitment; the sweet spot is 2-7 hours."""
        if hours_per_week > 15:
            return [(25, f"{hours_per_week:.1f} hours/week is a major commitment. Start smaller.")]
        if hours_per_week > 10:
            return [(15, f"{hours_per_week:.1f} hours/week is ambitious. Build up gradually.")]
        if hours_per_week < 1:
            return [(5, "")]
        return []

    @staticmethod
    def _timeframe_penalties(timeframe_days: int) -> List[Tuple[int, str]]:
        """Short timeframes make new habits harder; very long ones feel distant."""
        if timeframe_days < 14:
            return [(15, "2+ weeks helps build momentum. Consider extending to 21 days.")]
        if timeframe_days < 21:
            return [(5, "")]
        if timeframe_days > 90:
            return [(10, "Long timeframes can feel distant. Consider breaking into 30-day phases.")]
        return []

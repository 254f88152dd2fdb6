from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from ikioi.models.goal import GoalParams

FeasibilityLevel = Literal["excellent", "good", "moderate", "challenging", "difficult"]

# Ordered best to worst; used to check level monotonicity
FEASIBILITY_LEVELS = ("excellent", "good", "moderate", "challenging", "difficult")


@dataclass(frozen=True)
class FeasibilityResult:
    score: int  # 0..100, clamped
    level: FeasibilityLevel
    message: str
    suggestions: List[str] = field(default_factory=list)
    adjusted_goal: Optional[GoalParams] = None

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "level": self.level,
            "message": self.message,
            "suggestions": list(self.suggestions),
            "adjustedGoal": self.adjusted_goal.to_dict() if self.adjusted_goal else None,
        }

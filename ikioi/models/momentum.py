"""
Momentum domain model.

Momentum answers: "Am I keeping this goal alive?"
It moves in small steps on each logged effort or acknowledged miss, and is
never allowed to feel fully punishing.
"""

from dataclasses import dataclass
from typing import Literal, Optional

MomentumLevel = Literal["building", "steady", "strong", "soaring"]

MOMENTUM_DISPLAY = {
    "building": {"label": "Building", "description": "Every step counts"},
    "steady": {"label": "Steady", "description": "Consistent progress"},
    "strong": {"label": "Strong", "description": "Growing stronger"},
    "soaring": {"label": "Soaring", "description": "Incredible momentum"},
}


@dataclass(frozen=True)
class MomentumUpdate:
    """Result of one momentum transition."""

    new_momentum: float
    new_difficulty_multiplier: float
    new_consecutive_successes: int
    new_consecutive_misses: int
    should_enter_recovery: bool = False
    should_exit_recovery: bool = False
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "newMomentum": round(self.new_momentum, 1),
            "newDifficultyMultiplier": round(self.new_difficulty_multiplier, 2),
            "newConsecutiveSuccesses": self.new_consecutive_successes,
            "newConsecutiveMisses": self.new_consecutive_misses,
            "shouldEnterRecovery": self.should_enter_recovery,
            "shouldExitRecovery": self.should_exit_recovery,
            "message": self.message,
        }

"""Goal API request models."""

from typing import Optional

from pydantic import BaseModel, Field

from ikioi.models.goal import DifficultyLevel, GoalParams, GoalStatus, MissReason


class CreateGoalRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    timeframe_days: int = Field(ge=7, le=365)
    effort_per_day_minutes: int = Field(ge=5, le=240)
    days_per_week: int = Field(ge=1, le=7)

    def to_params(self) -> GoalParams:
        return GoalParams(
            name=self.name.strip(),
            description=self.description or None,
            timeframe_days=self.timeframe_days,
            effort_per_day_minutes=self.effort_per_day_minutes,
            days_per_week=self.days_per_week,
        )


class LogEffortRequest(BaseModel):
    effort_rating: int = Field(ge=1, le=5)
    difficulty: DifficultyLevel
    feel_option: Optional[str] = Field(default=None, max_length=100)
    message: Optional[str] = Field(default=None, max_length=1000)
    time_spent_minutes: Optional[int] = Field(default=None, ge=0, le=1440)


class ReflectionRequest(BaseModel):
    reason: MissReason
    reason_details: Optional[str] = Field(default=None, max_length=1000)


class AccountabilityRequest(BaseModel):
    completed: bool


class UpdateStatusRequest(BaseModel):
    status: GoalStatus

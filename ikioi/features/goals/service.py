"""
Goal lifecycle service.

Orchestrates the pure engines around a goal store:
- create: feasibility score + target completion date
- log effort: cooldown guard -> momentum transition -> atomic log/goal commit
- reflection: miss transition -> atomic reflection/goal commit
- accountability: hard reset once the countdown lapsed

Every goal write is conditional on the last_log_date read before it, so a
log committed in between is never overwritten (ConflictError instead).

Holds no scoring logic of its own. All time reads go through the injected
clock so the engines stay deterministic.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from ikioi.core.config import settings
from ikioi.core.database import create_all_tables, get_database_url
from ikioi.core.errors import (
    ConflictError,
    CooldownError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationError,
)
from ikioi.core.logging import log_event
from ikioi.features.cooldown.guard import COOLDOWN_WINDOW, CooldownStatus, check_cooldown
from ikioi.features.countdown.tracker import (
    countdown_view,
    find_pending_accountability,
    target_completion_date,
)
from ikioi.features.feasibility.scoring_engine import FeasibilityScoringEngine
from ikioi.features.goals.persistence import SqlGoalStore
from ikioi.features.goals.stats import calculate_log_stats, sort_logs_newest_first, summarize_goals
from ikioi.features.goals.store import InMemoryGoalStore
from ikioi.features.goals.validators import (
    validate_goal_params,
    validate_log_fields,
    validate_reason,
    validate_status,
)
from ikioi.features.momentum.scoring_engine import MomentumEngine
from ikioi.models.feasibility import FeasibilityResult
from ikioi.models.goal import Goal, GoalLog, GoalParams, Reflection
from ikioi.models.momentum import MomentumUpdate

# Statuses that no longer accept logs or reflections
CLOSED_STATUSES = ("completed", "archived")
LOG_HISTORY_LIMIT = 30


@dataclass(frozen=True)
class EffortResult:
    goal: Goal
    log: GoalLog
    update: MomentumUpdate

    def to_dict(self) -> dict:
        return {
            "goal": self.goal.to_dict(),
            "log": self.log.to_dict(),
            "momentum": self.update.to_dict(),
        }


@dataclass(frozen=True)
class ReflectionResult:
    goal: Goal
    reflection: Reflection
    update: MomentumUpdate

    def to_dict(self) -> dict:
        return {
            "goal": self.goal.to_dict(),
            "reflection": self.reflection.to_dict(),
            "momentum": self.update.to_dict(),
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GoalService:
    """Coordinates goal creation, effort logs, reflections and accountability."""

    def __init__(
        self,
        store=None,
        clock: Optional[Callable[[], datetime]] = None,
        cooldown_window: timedelta = COOLDOWN_WINDOW,
    ):
        self.store = store if store is not None else InMemoryGoalStore()
        self._clock = clock or _utc_now
        self.cooldown_window = cooldown_window

    def now(self) -> datetime:
        current = self._clock()
        if current.tzinfo is None:
            return current.replace(tzinfo=timezone.utc)
        return current.astimezone(timezone.utc)

    def today(self) -> date:
        return self.now().date()

    # Goals ------------------------------------------------------------
    def preview_feasibility(self, params: GoalParams) -> FeasibilityResult:
        validate_goal_params(params)
        return FeasibilityScoringEngine.score(params)

    def create_goal(
        self,
        user_id: str,
        params: GoalParams,
        *,
        request_id: Optional[str] = None,
    ) -> Tuple[Goal, FeasibilityResult]:
        self._require_user(user_id)
        validate_goal_params(params)
        feasibility = FeasibilityScoringEngine.score(params)

        now = self.now()
        goal = Goal(
            id=str(uuid4()),
            user_id=user_id,
            name=params.name.strip(),
            description=params.description,
            timeframe_days=params.timeframe_days,
            effort_per_day_minutes=params.effort_per_day_minutes,
            days_per_week=params.days_per_week,
            feasibility_score=feasibility.score,
            target_completion_date=target_completion_date(now, params.timeframe_days),
            created_at=now,
            updated_at=now,
        )
        goal.validate()
        self.store.insert_goal(goal)

        log_event(
            "info",
            "goal.created",
            request_id=request_id,
            user_id=user_id,
            goal_id=goal.id,
            event_type="goal.created",
            extra={"feasibility_score": feasibility.score, "feasibility_level": feasibility.level},
        )
        return goal, feasibility

    def get_goal(self, user_id: str, goal_id: str) -> Goal:
        """Return the goal, or NotFoundError when it is missing or owned by someone else."""
        self._require_user(user_id)
        goal = self.store.get_goal(goal_id)
        if goal is None or goal.user_id != user_id:
            raise NotFoundError(f"Goal {goal_id} not found")
        return goal

    def list_goals(self, user_id: str) -> List[Goal]:
        self._require_user(user_id)
        return self.store.list_goals(user_id)

    def pending_accountability(self, user_id: str) -> Optional[Goal]:
        return find_pending_accountability(self.list_goals(user_id), self.today())

    def summary(self, user_id: str) -> dict:
        """Active and completed counts plus overall momentum across active goals."""
        return summarize_goals(self.list_goals(user_id))

    def update_status(
        self,
        user_id: str,
        goal_id: str,
        status: str,
        *,
        request_id: Optional[str] = None,
    ) -> Goal:
        validate_status(status)
        goal = self.get_goal(user_id, goal_id)
        if goal.status == status:
            return goal

        updated = replace(goal, status=status, updated_at=self.now())
        self.store.update_goal(updated, goal.last_log_date)
        log_event(
            "info",
            "goal.status_changed",
            request_id=request_id,
            user_id=user_id,
            goal_id=goal_id,
            event_type="goal.status_changed",
            extra={"from_status": goal.status, "to_status": status},
        )
        return updated

    def delete_goal(self, user_id: str, goal_id: str, *, request_id: Optional[str] = None) -> None:
        goal = self.get_goal(user_id, goal_id)
        if not self.store.delete_goal(goal.id):
            raise NotFoundError(f"Goal {goal_id} not found")
        log_event(
            "info",
            "goal.deleted",
            request_id=request_id,
            user_id=user_id,
            goal_id=goal_id,
            event_type="goal.deleted",
        )

    # Effort -----------------------------------------------------------
    def cooldown_status(self, user_id: str, goal_id: str) -> CooldownStatus:
        goal = self.get_goal(user_id, goal_id)
        return check_cooldown(goal.last_log_date, self.now(), self.cooldown_window)

    def log_effort(
        self,
        user_id: str,
        goal_id: str,
        *,
        effort_rating: int,
        difficulty: Optional[str],
        feel_option: Optional[str] = None,
        message: Optional[str] = None,
        time_spent_minutes: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> EffortResult:
        """
        Record an effort log.

        Order: validate -> cooldown -> days since last log -> momentum ->
        one commit for the log upsert and the goal update. The commit is
        conditional on the last_log_date read here, so a concurrent log
        that slipped past the same cooldown check loses with ConflictError.

        Raises:
            ValidationError: bad fields, or the goal is completed/archived
            CooldownError: previous log is less than the cooldown window ago
            NotFoundError: goal missing or not owned by user_id
            ConflictError: the goal changed between read and commit
        """
        validate_log_fields(effort_rating, difficulty, time_spent_minutes)
        goal = self.get_goal(user_id, goal_id)
        self._require_open(goal)

        now = self.now()
        status = check_cooldown(goal.last_log_date, now, self.cooldown_window)
        if not status.allowed:
            log_event(
                "info",
                "goal.cooldown_blocked",
                request_id=request_id,
                user_id=user_id,
                goal_id=goal_id,
                event_type="goal.cooldown_blocked",
                error_code=CooldownError.code,
                extra={"remaining": status.remaining_formatted},
            )
            raise CooldownError(status.remaining, status.next_allowed_at, request_id=request_id)

        today = now.date()
        latest = self.store.latest_log(goal.id)
        days_since_last_log = max(0, (today - latest.log_date).days) if latest else 1

        next_goal, update = MomentumEngine.log_effort(goal, effort_rating, days_since_last_log)
        next_goal = replace(
            next_goal,
            total_effort_logged=goal.total_effort_logged + 1,
            last_log_date=now,
            updated_at=now,
        )
        next_goal.validate()

        log = GoalLog(
            id=str(uuid4()),
            goal_id=goal.id,
            user_id=user_id,
            log_date=today,
            effort_rating=effort_rating,
            difficulty=difficulty,
            feel_option=feel_option,
            message=message,
            time_spent_minutes=(
                time_spent_minutes if time_spent_minutes is not None else goal.effort_per_day_minutes
            ),
            created_at=now,
        )
        stored_log = self.store.commit_effort(next_goal, log, goal.last_log_date)

        log_event(
            "info",
            "goal.effort_logged",
            request_id=request_id,
            user_id=user_id,
            goal_id=goal_id,
            event_type="goal.effort_logged",
            extra={
                "effort_rating": effort_rating,
                "days_since_last_log": days_since_last_log,
                "momentum": update.new_momentum,
                "multiplier": update.new_difficulty_multiplier,
            },
        )
        if update.should_exit_recovery:
            log_event(
                "info",
                "goal.recovery_exited",
                request_id=request_id,
                user_id=user_id,
                goal_id=goal_id,
                event_type="goal.recovery_exited",
            )
        return EffortResult(goal=next_goal, log=stored_log, update=update)

    def log_history(self, user_id: str, goal_id: str, limit: int = LOG_HISTORY_LIMIT) -> dict:
        goal = self.get_goal(user_id, goal_id)
        logs = sort_logs_newest_first(self.store.list_logs(goal.id, limit=limit))
        return {
            "logs": [log.to_dict() for log in logs],
            "stats": calculate_log_stats(logs),
        }

    # Misses -----------------------------------------------------------
    def submit_reflection(
        self,
        user_id: str,
        goal_id: str,
        *,
        reason: Optional[str],
        reason_details: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ReflectionResult:
        validate_reason(reason)
        goal = self.get_goal(user_id, goal_id)
        self._require_open(goal)

        now = self.now()
        today = now.date()
        next_goal, update = MomentumEngine.miss_day(goal, today)
        next_goal = replace(next_goal, updated_at=now)
        next_goal.validate()

        reflection = Reflection(
            id=str(uuid4()),
            goal_id=goal.id,
            user_id=user_id,
            reflection_date=today,
            reason=reason,
            reason_details=reason_details,
            created_at=now,
        )
        self.store.commit_reflection(next_goal, reflection, goal.last_log_date)

        log_event(
            "info",
            "goal.reflection_recorded",
            request_id=request_id,
            user_id=user_id,
            goal_id=goal_id,
            event_type="goal.reflection_recorded",
            extra={"reason": reason, "momentum": update.new_momentum},
        )
        if update.should_enter_recovery:
            log_event(
                "info",
                "goal.recovery_entered",
                request_id=request_id,
                user_id=user_id,
                goal_id=goal_id,
                event_type="goal.recovery_entered",
                extra={"multiplier": update.new_difficulty_multiplier},
            )
        return ReflectionResult(goal=next_goal, reflection=reflection, update=update)

    # Accountability ---------------------------------------------------
    def resolve_accountability(
        self,
        user_id: str,
        goal_id: str,
        completed: bool,
        *,
        request_id: Optional[str] = None,
    ) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        if goal.countdown_ended or goal.accountability_prompt_shown:
            raise ConflictError("Accountability already resolved for this goal")

        now = self.now()
        today = now.date()
        if goal.target_completion_date is None or goal.target_completion_date > today:
            raise ValidationError("Countdown has not ended yet")

        resolved = MomentumEngine.resolve_accountability(goal, completed, today, now)
        self.store.update_goal(resolved, goal.last_log_date)

        log_event(
            "info",
            "goal.accountability_resolved",
            request_id=request_id,
            user_id=user_id,
            goal_id=goal_id,
            event_type="goal.accountability_resolved",
            extra={"completed": completed, "status": resolved.status},
        )
        return resolved

    # Views ------------------------------------------------------------
    def describe(self, goal: Goal, today: Optional[date] = None) -> dict:
        """Goal payload decorated with momentum and countdown display data."""
        view = goal.to_dict()
        view["momentumLevel"] = MomentumEngine.momentum_level(goal.momentum_score)
        view["momentumDisplay"] = MomentumEngine.momentum_display(goal.momentum_score)
        view["adjustedEffortMinutes"] = MomentumEngine.adjusted_effort(
            goal.effort_per_day_minutes, goal.current_difficulty_multiplier
        )
        view.update(countdown_view(goal, today or self.today()))
        return view

    # Internal helpers -------------------------------------------------
    @staticmethod
    def _require_user(user_id: Optional[str]) -> None:
        if not user_id:
            raise NotAuthenticatedError("User context required")

    @staticmethod
    def _require_open(goal: Goal) -> None:
        if goal.status in CLOSED_STATUSES:
            raise ValidationError(f"Goal is {goal.status}; effort can no longer be recorded")


_service: Optional[GoalService] = None
_service_lock = threading.Lock()


def _use_persistence() -> bool:
    """Check if we should use DB persistence."""
    return bool(get_database_url())


def get_goal_service() -> GoalService:
    """Process-wide service; SQL-backed when a database URL is configured."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                if _use_persistence():
                    create_all_tables()
                    store = SqlGoalStore()
                else:
                    store = InMemoryGoalStore()
                _service = GoalService(store, cooldown_window=timedelta(hours=settings.COOLDOWN_HOURS))
    return _service


def reset_goal_service() -> None:
    """Forget the cached service (tests only)."""
    global _service
    with _service_lock:
        _service = None

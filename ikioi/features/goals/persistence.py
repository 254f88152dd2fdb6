"""
SQLAlchemy-backed goal store.

Same contract as InMemoryGoalStore. Effort and reflection commits write the
log/reflection and the goal update in one transaction. Every goal update is
conditional on the previously read last_log_date, so two concurrent logs
cannot both pass the cooldown check and a stale snapshot cannot undo a log.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ikioi.core.database import check_connection, get_db_session, goal_logs, goals, reflections
from ikioi.core.errors import ConflictError, NotFoundError, PersistenceError
from ikioi.models.goal import Goal, GoalLog, Reflection

# Mutable-state columns rewritten on every goal update
_GOAL_STATE_COLUMNS = (
    "name",
    "description",
    "status",
    "momentum_score",
    "current_difficulty_multiplier",
    "consecutive_successes",
    "consecutive_misses",
    "in_recovery_mode",
    "recovery_start_date",
    "total_effort_logged",
    "last_log_date",
    "countdown_active",
    "countdown_ended",
    "accountability_prompt_shown",
    "updated_at",
)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes; everything is stored as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _goal_row(goal: Goal) -> dict:
    return {
        "id": goal.id,
        "user_id": goal.user_id,
        "name": goal.name,
        "description": goal.description,
        "timeframe_days": goal.timeframe_days,
        "effort_per_day_minutes": goal.effort_per_day_minutes,
        "days_per_week": goal.days_per_week,
        "feasibility_score": goal.feasibility_score,
        "status": goal.status,
        "momentum_score": goal.momentum_score,
        "current_difficulty_multiplier": goal.current_difficulty_multiplier,
        "consecutive_successes": goal.consecutive_successes,
        "consecutive_misses": goal.consecutive_misses,
        "in_recovery_mode": goal.in_recovery_mode,
        "recovery_start_date": goal.recovery_start_date,
        "total_effort_logged": goal.total_effort_logged,
        "last_log_date": _utc(goal.last_log_date),
        "target_completion_date": goal.target_completion_date,
        "countdown_active": goal.countdown_active,
        "countdown_ended": goal.countdown_ended,
        "accountability_prompt_shown": goal.accountability_prompt_shown,
        "created_at": _utc(goal.created_at),
        "updated_at": _utc(goal.updated_at),
    }


def _goal_state(goal: Goal) -> dict:
    row = _goal_row(goal)
    return {key: row[key] for key in _GOAL_STATE_COLUMNS}


def _write_goal_state(session, goal: Goal, expected_last_log_date: Optional[datetime]) -> None:
    """Rewrite the goal's mutable state only if last_log_date is still the value read earlier."""
    expected = _utc(expected_last_log_date)
    if expected is None:
        unchanged = goals.c.last_log_date.is_(None)
    else:
        unchanged = goals.c.last_log_date == expected

    result = session.execute(
        update(goals).where(and_(goals.c.id == goal.id, unchanged)).values(**_goal_state(goal))
    )
    if result.rowcount:
        return
    if session.execute(select(goals.c.id).where(goals.c.id == goal.id)).first() is None:
        raise NotFoundError(f"Goal {goal.id} not found")
    raise ConflictError("Goal was updated by another request; retry")


def _row_to_goal(row) -> Goal:
    return Goal(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        description=row.description,
        timeframe_days=row.timeframe_days,
        effort_per_day_minutes=row.effort_per_day_minutes,
        days_per_week=row.days_per_week,
        feasibility_score=row.feasibility_score,
        status=row.status,
        momentum_score=float(row.momentum_score),
        current_difficulty_multiplier=float(row.current_difficulty_multiplier),
        consecutive_successes=row.consecutive_successes,
        consecutive_misses=row.consecutive_misses,
        in_recovery_mode=bool(row.in_recovery_mode),
        recovery_start_date=row.recovery_start_date,
        total_effort_logged=row.total_effort_logged,
        last_log_date=_utc(row.last_log_date),
        target_completion_date=row.target_completion_date,
        countdown_active=bool(row.countdown_active),
        countdown_ended=bool(row.countdown_ended),
        accountability_prompt_shown=bool(row.accountability_prompt_shown),
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def _row_to_log(row) -> GoalLog:
    return GoalLog(
        id=row.id,
        goal_id=row.goal_id,
        user_id=row.user_id,
        log_date=row.log_date,
        effort_rating=row.effort_rating,
        difficulty=row.difficulty,
        feel_option=row.feel_option,
        message=row.message,
        time_spent_minutes=row.time_spent_minutes,
        created_at=_utc(row.created_at),
    )


def _row_to_reflection(row) -> Reflection:
    return Reflection(
        id=row.id,
        goal_id=row.goal_id,
        user_id=row.user_id,
        reflection_date=row.reflection_date,
        reason=row.reason,
        reason_details=row.reason_details,
        acknowledged=bool(row.acknowledged),
        created_at=_utc(row.created_at),
    )


class SqlGoalStore:
    """PostgreSQL (or sqlite) goal persistence."""

    @staticmethod
    def ping() -> bool:
        return check_connection()

    # Goals ------------------------------------------------------------
    @staticmethod
    def insert_goal(goal: Goal) -> Goal:
        try:
            with get_db_session() as session:
                session.execute(insert(goals).values(**_goal_row(goal)))
        except IntegrityError as e:
            raise ConflictError(f"Goal {goal.id} already exists") from e
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to create goal") from e
        return goal

    @staticmethod
    def get_goal(goal_id: str) -> Optional[Goal]:
        try:
            with get_db_session() as session:
                row = session.execute(select(goals).where(goals.c.id == goal_id)).first()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to read goal") from e
        return _row_to_goal(row) if row else None

    @staticmethod
    def list_goals(user_id: str) -> List[Goal]:
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(goals)
                    .where(goals.c.user_id == user_id)
                    .order_by(goals.c.created_at.desc())
                ).all()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to list goals") from e
        return [_row_to_goal(row) for row in rows]

    @staticmethod
    def update_goal(goal: Goal, expected_last_log_date: Optional[datetime]) -> Goal:
        try:
            with get_db_session() as session:
                _write_goal_state(session, goal, expected_last_log_date)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to update goal") from e
        return goal

    @staticmethod
    def delete_goal(goal_id: str) -> bool:
        try:
            with get_db_session() as session:
                session.execute(delete(goal_logs).where(goal_logs.c.goal_id == goal_id))
                session.execute(delete(reflections).where(reflections.c.goal_id == goal_id))
                result = session.execute(delete(goals).where(goals.c.id == goal_id))
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to delete goal") from e

    # Logs -------------------------------------------------------------
    @staticmethod
    def latest_log(goal_id: str) -> Optional[GoalLog]:
        logs = SqlGoalStore.list_logs(goal_id, limit=1)
        return logs[0] if logs else None

    @staticmethod
    def list_logs(goal_id: str, limit: int = 30) -> List[GoalLog]:
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(goal_logs)
                    .where(goal_logs.c.goal_id == goal_id)
                    .order_by(goal_logs.c.log_date.desc())
                    .limit(limit)
                ).all()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to read goal logs") from e
        return [_row_to_log(row) for row in rows]

    @staticmethod
    def commit_effort(goal: Goal, log: GoalLog, expected_last_log_date: Optional[datetime]) -> GoalLog:
        """Upsert the day's log and conditionally update the goal in one transaction."""
        values = {
            "user_id": log.user_id,
            "effort_rating": log.effort_rating,
            "difficulty": log.difficulty,
            "feel_option": log.feel_option,
            "message": log.message,
            "time_spent_minutes": log.time_spent_minutes,
            "created_at": _utc(log.created_at),
        }
        try:
            with get_db_session() as session:
                existing = session.execute(
                    select(goal_logs.c.id).where(
                        and_(goal_logs.c.goal_id == log.goal_id, goal_logs.c.log_date == log.log_date)
                    )
                ).first()
                if existing:
                    log_id = existing.id
                    session.execute(update(goal_logs).where(goal_logs.c.id == log_id).values(**values))
                else:
                    log_id = log.id
                    session.execute(
                        insert(goal_logs).values(id=log_id, goal_id=log.goal_id, log_date=log.log_date, **values)
                    )

                _write_goal_state(session, goal, expected_last_log_date)
        except IntegrityError as e:
            # Concurrent insert for the same (goal_id, log_date)
            raise ConflictError("Effort for this day was logged concurrently; retry") from e
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to record effort") from e

        return GoalLog(
            id=log_id,
            goal_id=log.goal_id,
            user_id=log.user_id,
            log_date=log.log_date,
            effort_rating=log.effort_rating,
            difficulty=log.difficulty,
            feel_option=log.feel_option,
            message=log.message,
            time_spent_minutes=log.time_spent_minutes,
            created_at=log.created_at,
        )

    # Reflections ------------------------------------------------------
    @staticmethod
    def list_reflections(goal_id: str) -> List[Reflection]:
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(reflections)
                    .where(reflections.c.goal_id == goal_id)
                    .order_by(reflections.c.created_at.desc())
                ).all()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to read reflections") from e
        return [_row_to_reflection(row) for row in rows]

    @staticmethod
    def commit_reflection(goal: Goal, reflection: Reflection, expected_last_log_date: Optional[datetime]) -> Reflection:
        try:
            with get_db_session() as session:
                _write_goal_state(session, goal, expected_last_log_date)
                session.execute(
                    insert(reflections).values(
                        id=reflection.id,
                        goal_id=reflection.goal_id,
                        user_id=reflection.user_id,
                        reflection_date=reflection.reflection_date,
                        reason=reflection.reason,
                        reason_details=reflection.reason_details,
                        acknowledged=reflection.acknowledged,
                        created_at=_utc(reflection.created_at),
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to record reflection") from e
        return reflection

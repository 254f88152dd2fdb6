"""
In-memory goal store.

Default persistence when DATABASE_URL is not configured (dev, tests).
Mirrors the SqlGoalStore contract, including the conditional update on
last_log_date and the (goal_id, log_date) upsert key.
"""

import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from ikioi.core.errors import ConflictError, NotFoundError
from ikioi.models.goal import Goal, GoalLog, Reflection


class InMemoryGoalStore:
    def __init__(self):
        self._goals: Dict[str, Goal] = {}
        self._logs: Dict[Tuple[str, date], GoalLog] = {}
        self._reflections: Dict[str, Reflection] = {}
        self._lock = threading.Lock()

    def ping(self) -> bool:
        return True

    # Goals ------------------------------------------------------------
    def insert_goal(self, goal: Goal) -> Goal:
        with self._lock:
            if goal.id in self._goals:
                raise ConflictError(f"Goal {goal.id} already exists")
            self._goals[goal.id] = goal
            return goal

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._goals.get(goal_id)

    def list_goals(self, user_id: str) -> List[Goal]:
        owned = [g for g in self._goals.values() if g.user_id == user_id]
        return sorted(owned, key=lambda g: g.created_at, reverse=True)

    def update_goal(self, goal: Goal, expected_last_log_date: Optional[datetime]) -> Goal:
        with self._lock:
            self._check_unchanged(goal.id, expected_last_log_date)
            self._goals[goal.id] = goal
            return goal

    def delete_goal(self, goal_id: str) -> bool:
        with self._lock:
            if self._goals.pop(goal_id, None) is None:
                return False
            for key in [k for k in self._logs if k[0] == goal_id]:
                del self._logs[key]
            for rid in [r.id for r in self._reflections.values() if r.goal_id == goal_id]:
                del self._reflections[rid]
            return True

    # Logs -------------------------------------------------------------
    def latest_log(self, goal_id: str) -> Optional[GoalLog]:
        logs = self.list_logs(goal_id, limit=1)
        return logs[0] if logs else None

    def list_logs(self, goal_id: str, limit: int = 30) -> List[GoalLog]:
        logs = [log for (gid, _), log in self._logs.items() if gid == goal_id]
        logs.sort(key=lambda log: log.log_date, reverse=True)
        return logs[:limit]

    def commit_effort(self, goal: Goal, log: GoalLog, expected_last_log_date: Optional[datetime]) -> GoalLog:
        """Upsert the day's log and update the goal, or neither."""
        with self._lock:
            self._check_unchanged(goal.id, expected_last_log_date)

            key = (log.goal_id, log.log_date)
            existing = self._logs.get(key)
            stored = replace(log, id=existing.id) if existing else log
            self._logs[key] = stored
            self._goals[goal.id] = goal
            return stored

    # Reflections ------------------------------------------------------
    def list_reflections(self, goal_id: str) -> List[Reflection]:
        found = [r for r in self._reflections.values() if r.goal_id == goal_id]
        return sorted(found, key=lambda r: r.created_at, reverse=True)

    def commit_reflection(
        self, goal: Goal, reflection: Reflection, expected_last_log_date: Optional[datetime]
    ) -> Reflection:
        with self._lock:
            self._check_unchanged(goal.id, expected_last_log_date)
            self._reflections[reflection.id] = reflection
            self._goals[goal.id] = goal
            return reflection

    def _check_unchanged(self, goal_id: str, expected_last_log_date: Optional[datetime]) -> None:
        # Caller holds the lock
        current = self._goals.get(goal_id)
        if current is None:
            raise NotFoundError(f"Goal {goal_id} not found")
        if current.last_log_date != expected_last_log_date:
            raise ConflictError("Goal was updated by another request; retry")

    def clear(self) -> None:
        """Clear all records (testing only)."""
        with self._lock:
            self._goals.clear()
            self._logs.clear()
            self._reflections.clear()

"""
SQL goal store tests (sqlite in memory).

Verify round-trips, newest-first ordering, the (goal_id, log_date) upsert,
the conditional goal update and cascade deletes.
"""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from ikioi.core.errors import ConflictError, CooldownError, NotFoundError
from ikioi.features.goals.service import GoalService
from ikioi.models.goal import Goal, GoalLog, GoalParams, Reflection

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_goal(goal_id="goal_1", user_id="user_1", created_at=NOW, **overrides) -> Goal:
    fields = dict(
        id=goal_id,
        user_id=user_id,
        name="Write every morning",
        description="Morning pages",
        timeframe_days=30,
        effort_per_day_minutes=20,
        days_per_week=5,
        feasibility_score=100,
        created_at=created_at,
        updated_at=created_at,
        target_completion_date=date(2026, 4, 9),
    )
    fields.update(overrides)
    return Goal(**fields)


def make_log(log_id="log_1", goal_id="goal_1", log_date=date(2026, 3, 10), rating=3, created_at=NOW) -> GoalLog:
    return GoalLog(
        id=log_id,
        goal_id=goal_id,
        user_id="user_1",
        log_date=log_date,
        effort_rating=rating,
        difficulty="moderate",
        time_spent_minutes=20,
        created_at=created_at,
    )


class TestSqlGoals:
    def test_round_trip(self, sqlite_store):
        goal = make_goal(recovery_start_date=date(2026, 3, 9), in_recovery_mode=True, current_difficulty_multiplier=0.8)
        sqlite_store.insert_goal(goal)
        assert sqlite_store.get_goal(goal.id) == goal

    def test_missing_goal(self, sqlite_store):
        assert sqlite_store.get_goal("nope") is None

    def test_duplicate_insert_conflicts(self, sqlite_store):
        sqlite_store.insert_goal(make_goal())
        with pytest.raises(ConflictError):
            sqlite_store.insert_goal(make_goal())

    def test_list_newest_first(self, sqlite_store):
        sqlite_store.insert_goal(make_goal("old", created_at=NOW))
        sqlite_store.insert_goal(make_goal("new", created_at=NOW + timedelta(hours=1)))
        sqlite_store.insert_goal(make_goal("theirs", user_id="user_2"))
        assert [g.id for g in sqlite_store.list_goals("user_1")] == ["new", "old"]

    def test_update_goal(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        updated = replace(goal, status="paused", momentum_score=33.5, updated_at=NOW + timedelta(minutes=1))
        sqlite_store.update_goal(updated, goal.last_log_date)
        assert sqlite_store.get_goal(goal.id) == updated

    def test_update_missing_goal(self, sqlite_store):
        with pytest.raises(NotFoundError):
            sqlite_store.update_goal(make_goal("ghost"), None)

    def test_ping(self, sqlite_store):
        assert sqlite_store.ping() is True


class TestSqlEffortCommit:
    def test_commit_writes_log_and_goal(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        next_goal = replace(goal, last_log_date=NOW, total_effort_logged=1, momentum_score=54.0)

        stored = sqlite_store.commit_effort(next_goal, make_log(), expected_last_log_date=None)
        assert stored.id == "log_1"
        assert sqlite_store.get_goal(goal.id) == next_goal
        assert sqlite_store.latest_log(goal.id) == make_log()

    def test_same_day_upsert_keeps_first_id(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        first_goal = replace(goal, last_log_date=NOW, total_effort_logged=1)
        sqlite_store.commit_effort(first_goal, make_log("log_1", rating=3), expected_last_log_date=None)

        later = NOW + timedelta(hours=12)
        second_goal = replace(first_goal, last_log_date=later, total_effort_logged=2)
        stored = sqlite_store.commit_effort(
            second_goal, make_log("log_2", rating=5, created_at=later), expected_last_log_date=NOW
        )

        logs = sqlite_store.list_logs(goal.id)
        assert len(logs) == 1
        assert stored.id == "log_1"
        assert logs[0].id == "log_1"
        assert logs[0].effort_rating == 5
        assert sqlite_store.get_goal(goal.id).total_effort_logged == 2

    def test_stale_expectation_rolls_back(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        sqlite_store.commit_effort(replace(goal, last_log_date=NOW), make_log(), expected_last_log_date=None)

        with pytest.raises(ConflictError):
            sqlite_store.commit_effort(
                replace(goal, last_log_date=NOW + timedelta(days=1)),
                make_log("log_2", log_date=date(2026, 3, 11)),
                expected_last_log_date=None,
            )

        assert [log.id for log in sqlite_store.list_logs(goal.id)] == ["log_1"]
        assert sqlite_store.get_goal(goal.id).last_log_date == NOW

    def test_logs_newest_first_with_limit(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        previous = None
        for offset in range(4):
            moment = NOW + timedelta(days=offset)
            sqlite_store.commit_effort(
                replace(goal, last_log_date=moment),
                make_log(f"log_{offset}", log_date=moment.date(), created_at=moment),
                expected_last_log_date=previous,
            )
            previous = moment

        assert [log.id for log in sqlite_store.list_logs(goal.id, limit=2)] == ["log_3", "log_2"]
        assert sqlite_store.latest_log(goal.id).id == "log_3"


class TestSqlReflections:
    def test_commit_reflection(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        reflection = Reflection(
            id="ref_1",
            goal_id=goal.id,
            user_id=goal.user_id,
            reflection_date=date(2026, 3, 10),
            reason="external",
            reason_details="Power outage",
            created_at=NOW,
        )
        missed = replace(goal, momentum_score=47.0, consecutive_misses=1)
        sqlite_store.commit_reflection(missed, reflection, goal.last_log_date)

        assert sqlite_store.list_reflections(goal.id) == [reflection]
        assert sqlite_store.get_goal(goal.id).consecutive_misses == 1

    def test_stale_reflection_keeps_concurrent_log(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        logged = replace(goal, last_log_date=NOW, total_effort_logged=1, consecutive_successes=1)
        sqlite_store.commit_effort(logged, make_log(), expected_last_log_date=None)

        stale_miss = replace(goal, momentum_score=47.0, consecutive_misses=1)
        reflection = Reflection(
            id="ref_1",
            goal_id=goal.id,
            user_id=goal.user_id,
            reflection_date=date(2026, 3, 10),
            reason="forgot",
            created_at=NOW,
        )
        with pytest.raises(ConflictError):
            sqlite_store.commit_reflection(stale_miss, reflection, expected_last_log_date=None)

        assert sqlite_store.get_goal(goal.id) == logged
        assert sqlite_store.list_reflections(goal.id) == []

    def test_stale_status_update_conflicts(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        sqlite_store.commit_effort(replace(goal, last_log_date=NOW), make_log(), expected_last_log_date=None)

        with pytest.raises(ConflictError):
            sqlite_store.update_goal(replace(goal, status="paused"), None)
        assert sqlite_store.get_goal(goal.id).status == "active"


class TestSqlDelete:
    def test_delete_cascades(self, sqlite_store):
        goal = make_goal()
        sqlite_store.insert_goal(goal)
        sqlite_store.commit_effort(replace(goal, last_log_date=NOW), make_log(), expected_last_log_date=None)
        sqlite_store.commit_reflection(
            replace(goal, last_log_date=NOW),
            Reflection(
                id="ref_1",
                goal_id=goal.id,
                user_id=goal.user_id,
                reflection_date=date(2026, 3, 10),
                reason="time",
                created_at=NOW,
            ),
            expected_last_log_date=NOW,
        )

        assert sqlite_store.delete_goal(goal.id) is True
        assert sqlite_store.get_goal(goal.id) is None
        assert sqlite_store.list_logs(goal.id) == []
        assert sqlite_store.list_reflections(goal.id) == []
        assert sqlite_store.delete_goal(goal.id) is False


class TestServiceOverSql:
    def test_log_then_cooldown(self, sqlite_store, clock):
        service = GoalService(sqlite_store, clock=clock)
        goal, _ = service.create_goal(
            "user_1", GoalParams(name="Stretch", timeframe_days=21, effort_per_day_minutes=15, days_per_week=5)
        )
        result = service.log_effort("user_1", goal.id, effort_rating=5, difficulty="strong")
        assert service.get_goal("user_1", goal.id).momentum_score == result.goal.momentum_score

        clock.advance(hours=3)
        with pytest.raises(CooldownError) as exc_info:
            service.log_effort("user_1", goal.id, effort_rating=5, difficulty="strong")
        assert exc_info.value.remaining_formatted == "09:00:00"

        clock.advance(hours=9)
        again = service.log_effort("user_1", goal.id, effort_rating=3, difficulty="light")
        assert again.goal.total_effort_logged == 2
        assert len(sqlite_store.list_logs(goal.id)) == 1

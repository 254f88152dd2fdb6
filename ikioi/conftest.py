# ikioi/conftest.py
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


class FixedClock:
    """Manually advanced clock injected into GoalService."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, moment: datetime) -> datetime:
        self.current = moment
        return self.current


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    from ikioi.features.goals.store import InMemoryGoalStore

    return InMemoryGoalStore()


@pytest.fixture
def goal_service(memory_store, clock):
    from ikioi.features.goals.service import GoalService

    return GoalService(memory_store, clock=clock)


@pytest.fixture
def sqlite_store():
    """SqlGoalStore over a private in-memory sqlite database."""
    from ikioi.core.database import create_all_tables, dispose_engine, drop_all_tables, init_engine
    from ikioi.features.goals.persistence import SqlGoalStore

    init_engine("sqlite://")
    create_all_tables()
    try:
        yield SqlGoalStore()
    finally:
        drop_all_tables()
        dispose_engine()


@pytest.fixture
def api_client(goal_service):
    """TestClient with the goal service swapped for the in-memory one."""
    from fastapi.testclient import TestClient

    from ikioi.features.goals.service import get_goal_service
    from ikioi.main import app

    app.dependency_overrides[get_goal_service] = lambda: goal_service
    try:
        with TestClient(app, raise_server_exceptions=False) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-User-Id": "user_alice"}

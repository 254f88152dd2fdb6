"""
Database engine, sessions and table definitions.

- One lazily built engine per process; sqlite URLs share a single
  connection (StaticPool) so `sqlite://` works in tests
- TEST_DATABASE_URL takes precedence over DATABASE_URL
- Core tables: goals, goal_logs (unique per goal and day), reflections
"""
import logging
import os
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    false,
    text,
    true,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func

from ikioi.core.config import settings

logger = logging.getLogger("ikioi")

metadata = MetaData()

# QueuePool sizing for server databases
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # seconds

_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL, then DATABASE_URL (env first, then settings)."""
    return os.getenv("TEST_DATABASE_URL") or os.getenv("DATABASE_URL") or settings.DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def init_engine(database_url: Optional[str] = None):
    """Build (or rebuild) the process engine and session factory."""
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured. Set DATABASE_URL in environment or .env file.")

    dispose_engine()
    _engine = create_engine(url, echo=False, **_engine_options(url))
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    logger.info("database.engine_ready", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine():
    if _engine is None:
        init_engine()
    return _engine


def dispose_engine() -> None:
    """Close pooled connections and forget the engine (tests switch databases)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_db_session():
    """
    Transactional session scope.

    Usage:
        with get_db_session() as session:
            session.execute(...)

    Commits on clean exit, rolls back on any exception.
    """
    if _SessionLocal is None:
        init_engine()
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables() -> None:
    """Create missing tables; existing ones are left untouched."""
    metadata.create_all(bind=get_engine())


def drop_all_tables() -> None:
    """Drop every table in metadata (tests only)."""
    metadata.drop_all(bind=get_engine())


def check_connection() -> bool:
    """True when a trivial query succeeds."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, ValueError) as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Goals table
goals = Table(
    'goals',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('name', Text, nullable=False),
    Column('description', Text, nullable=True),
    Column('timeframe_days', Integer, nullable=False),
    Column('effort_per_day_minutes', Integer, nullable=False),
    Column('days_per_week', Integer, nullable=False),
    Column('feasibility_score', Integer, nullable=False),
    Column('status', String(20), nullable=False, server_default='active'),
    Column('momentum_score', Float, nullable=False, server_default='50'),
    Column('current_difficulty_multiplier', Float, nullable=False, server_default='1.0'),
    Column('consecutive_successes', Integer, nullable=False, server_default='0'),
    Column('consecutive_misses', Integer, nullable=False, server_default='0'),
    Column('in_recovery_mode', Boolean, nullable=False, server_default=false()),
    Column('recovery_start_date', Date, nullable=True),
    Column('total_effort_logged', Integer, nullable=False, server_default='0'),
    Column('last_log_date', DateTime(timezone=True), nullable=True),
    Column('target_completion_date', Date, nullable=True),
    Column('countdown_active', Boolean, nullable=False, server_default=true()),
    Column('countdown_ended', Boolean, nullable=False, server_default=false()),
    Column('accountability_prompt_shown', Boolean, nullable=False, server_default=false()),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Composite index for list_goals pattern: (user_id, created_at)
    Index('idx_goals_user_created', 'user_id', 'created_at'),
)

# Goal logs table: one entry per goal per calendar day
goal_logs = Table(
    'goal_logs',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('goal_id', String(100), ForeignKey('goals.id', ondelete='CASCADE'), nullable=False, index=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('log_date', Date, nullable=False),
    Column('effort_rating', Integer, nullable=False),
    Column('difficulty', String(20), nullable=True),
    Column('feel_option', String(100), nullable=True),
    Column('message', Text, nullable=True),
    Column('time_spent_minutes', Integer, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint('goal_id', 'log_date', name='uq_goal_logs_goal_date'),
    Index('idx_goal_logs_goal_date', 'goal_id', 'log_date'),
)

# Reflections table: one per acknowledged missed day
reflections = Table(
    'reflections',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('goal_id', String(100), ForeignKey('goals.id', ondelete='CASCADE'), nullable=False, index=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('reflection_date', Date, nullable=False),
    Column('reason', String(20), nullable=False),
    Column('reason_details', Text, nullable=True),
    Column('acknowledged', Boolean, nullable=False, server_default=true()),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_reflections_goal_date', 'goal_id', 'reflection_date'),
)

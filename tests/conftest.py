"""Global test fixtures and utilities for studyhub tests"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from studyhub.gamification.activity import InMemoryActivitySource
from studyhub.gamification.memory_store import InMemoryGamificationStore
from studyhub.models.achievement import (
    AchievementCategory,
    AchievementCriteria,
    AchievementDefinition,
    TriggerType,
    Timeframe,
)
from studyhub.models.activity import StudySession
from studyhub.models.challenge import (
    Challenge,
    ChallengeDuration,
    ChallengeSettings,
    ChallengeType,
    TargetMetrics,
)
from studyhub.services.gamification_service import GamificationService


# Wednesday; the surrounding week starts on Sunday 2024-01-14
FIXED_NOW = datetime(2024, 1, 17, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Clock & Backend Fixtures
# ============================================================================

@pytest.fixture
def fixed_now():
    """Frozen 'now' shared by every test"""
    return FIXED_NOW


@pytest.fixture
def store():
    """Empty in-memory gamification store"""
    return InMemoryGamificationStore()


@pytest.fixture
def activity():
    """Empty in-memory activity source"""
    return InMemoryActivitySource()


@pytest.fixture
def service(store, activity, fixed_now):
    """GamificationService over the in-memory backends with a frozen clock"""
    return GamificationService(store, activity, clock=lambda: fixed_now)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_cursor():
    """Mock psycopg cursor with empty results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    return cursor


@pytest.fixture
def mock_database(mock_cursor):
    """Database whose connection() yields a connection with mock_cursor"""
    conn = AsyncMock()
    conn.cursor = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = mock_cursor
    conn.commit = AsyncMock()

    database = MagicMock()
    database.connection.return_value.__aenter__.return_value = conn
    database.conn = conn
    return database


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_definition():
    """Build an AchievementDefinition with sensible defaults"""
    def _make(
        trigger_type=TriggerType.STUDY_HOURS_TOTAL,
        target_value=10,
        timeframe=Timeframe.ALL_TIME,
        **overrides
    ):
        fields = dict(
            name="Dedicated Learner",
            description="Study for a while",
            icon="📚",
            category=AchievementCategory.STUDY_TIME,
            criteria=AchievementCriteria(
                trigger_type=trigger_type,
                target_value=target_value,
                timeframe=timeframe,
            ),
        )
        fields.update(overrides)
        return AchievementDefinition(**fields)

    return _make


@pytest.fixture
def make_challenge(fixed_now):
    """Build a draft Challenge that starts tomorrow and runs for a week"""
    def _make(
        challenge_type=ChallengeType.STUDY_HOURS,
        target_metrics=None,
        settings=None,
        start_date=None,
        end_date=None,
        **overrides
    ):
        start_date = start_date or fixed_now + timedelta(days=1)
        end_date = end_date or start_date + timedelta(days=7)
        fields = dict(
            title="January Study Sprint",
            group_id="group-1",
            created_by="creator",
            challenge_type=challenge_type,
            duration=ChallengeDuration(start_date=start_date, end_date=end_date),
            target_metrics=target_metrics or TargetMetrics(target_study_hours=100),
            settings=settings or ChallengeSettings(),
        )
        fields.update(overrides)
        return Challenge(**fields)

    return _make


@pytest.fixture
def add_session(activity):
    """Record a study session for a user"""
    def _add(user_id, start_time, minutes, subject=None):
        activity.add_session(StudySession(
            user_id=user_id,
            start_time=start_time,
            duration_minutes=minutes,
            subject=subject,
        ))

    return _add

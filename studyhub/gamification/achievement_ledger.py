"""
Achievement Ledger

Tracks per-user progress toward every achievement and awards each one at
most once per (user, achievement[, group]).

Features:
- Progress records created on first evaluation, updated on every check
- Idempotent completion detection (completed records are skipped)
- Aggregate stats on the definition: total earned, first earner, ring of
  the most recent earners
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from studyhub.config import RECENT_EARNERS_LIMIT
from studyhub.exceptions import ValidationError
from studyhub.gamification.activity import ActivitySource
from studyhub.gamification.criteria import evaluate
from studyhub.gamification.store import GamificationStore
from studyhub.models.achievement import (
    AchievementDefinition,
    AchievementStats,
    Earner,
    NewAchievement,
    ProgressContext,
    TriggerType,
    UserProgress,
)
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


def progress_group(definition: AchievementDefinition) -> Optional[str]:
    """Group component of the progress key: only group-scoped achievements carry one"""
    return None if definition.is_global else definition.group_id


def already_recorded(stats: AchievementStats, user_id: str) -> bool:
    """Whether the stats already list the user as an earner"""
    earners = [stats.first_earned_by, *stats.recent_earners]
    return any(earner is not None and earner.user_id == user_id for earner in earners)


def record_award(
    stats: AchievementStats,
    user_id: str,
    earned_at: datetime,
    recent_limit: int = RECENT_EARNERS_LIMIT
) -> AchievementStats:
    """
    Return the stats after one more award

    - total_earned is incremented
    - first_earned_by is only set if it was unset
    - the earner is pushed to the front of recent_earners, which keeps the
      newest `recent_limit` entries
    """
    earner = Earner(user_id=user_id, earned_at=earned_at)
    return AchievementStats(
        total_earned=stats.total_earned + 1,
        first_earned_by=stats.first_earned_by or earner,
        recent_earners=[earner, *stats.recent_earners][:recent_limit],
    )


async def check_and_award(
    store: GamificationStore,
    activity: ActivitySource,
    user_id: str,
    group_id: Optional[str] = None,
    trigger_type: Optional[TriggerType] = None,
    trigger_event: Optional[str] = None,
    now: Optional[datetime] = None
) -> List[NewAchievement]:
    """
    Check if user earned any achievements based on current activity

    Args:
        store: Gamification store
        activity: Source of activity facts
        user_id: User to check
        group_id: Group context; group-scoped achievements of this group are
            included alongside global ones
        trigger_type: Only check achievements with this trigger type
        trigger_event: Free-form id of the event that caused the check
        now: Evaluation time (defaults to now)

    Returns:
        Newly earned achievements (empty when nothing new was earned)

    Raises:
        StaleWriteError: If a definition's stats changed concurrently; the
            achievements awarded before it in this call stay awarded
    """
    now = now or now_utc()
    newly_earned = []

    definitions = await store.list_achievements(group_id=group_id, trigger_type=trigger_type)

    for definition in definitions:
        existing = await store.get_user_progress(user_id, definition.id, progress_group(definition))

        # Skip if already earned
        if existing and existing.is_completed:
            continue

        try:
            result = await evaluate(definition, activity, user_id, progress_group(definition), now)
        except ValidationError as e:
            logger.error(f"Skipping invalid achievement {definition.id} ({definition.name}): {e.message}")
            continue

        progress = existing or UserProgress(
            user_id=user_id,
            achievement_id=definition.id,
            group_id=progress_group(definition),
            target_value=result.target_value,
            created_at=now,
        )
        progress.current_value = result.current_value
        progress.target_value = result.target_value
        progress.updated_at = now

        if result.is_completed:
            progress.is_completed = True
            progress.completed_at = now
            progress.context = ProgressContext(
                trigger_event=trigger_event,
                related_data={"trigger_type": definition.criteria.trigger_type.value, "group_id": group_id},
            )

            # Stats first: a stale definition aborts before the award is recorded.
            # A user already listed in the stats had the progress write fail last time.
            if already_recorded(definition.stats, user_id):
                logger.warning(f"Stats for {definition.id} already include user {user_id}; recording progress only")
            else:
                definition.stats = record_award(definition.stats, user_id, now)
                definition = await store.save_achievement(definition)
            await store.save_user_progress(progress)

            newly_earned.append(NewAchievement(achievement=definition, progress=progress, earned_at=now))

            logger.info(
                f"User {user_id} earned achievement: {definition.id} "
                f"({definition.name}) +{definition.rarity_points} points"
            )
        else:
            await store.save_user_progress(progress)

    return newly_earned


async def get_user_achievements(
    store: GamificationStore,
    user_id: str,
    completed: Optional[bool] = None,
    group_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0
) -> List[Dict]:
    """
    Get user's achievement progress records with their definitions

    Returns:
        [{'achievement': AchievementDefinition, 'progress': UserProgress}],
        most recently earned first, unearned records last
    """
    records = await store.list_user_progress(user_id, completed=completed, group_id=group_id)
    records.sort(
        key=lambda p: (p.completed_at is not None, p.completed_at or p.updated_at or now_utc()),
        reverse=True
    )

    result = []
    for progress in records[offset:offset + limit]:
        definition = await store.get_achievement(progress.achievement_id)
        result.append({'achievement': definition, 'progress': progress})
    return result


async def get_achievement_leaderboard(
    store: GamificationStore,
    achievement_id: str,
    limit: int = 10
) -> List[UserProgress]:
    """Earliest completers of an achievement first"""
    completed = await store.list_completed_progress(achievement_id)
    completed.sort(key=lambda p: p.completed_at)
    return completed[:limit]

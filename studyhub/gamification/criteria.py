"""
Achievement Criteria Evaluation

Computes a user's current value for one achievement definition:

1. Resolve the window start from the criterion's timeframe
2. Look up the metric function registered for the trigger type
3. Compare the (2dp-rounded) value with the target

Metric functions are registered in METRICS, keyed by TriggerType. Adding a
trigger type means writing one coroutine and registering it there.
Evaluation has no side effects.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

from studyhub.exceptions import ValidationError
from studyhub.gamification.activity import ActivitySource
from studyhub.models.achievement import (
    AchievementCriteria,
    AchievementDefinition,
    ProgressResult,
    Timeframe,
    TriggerType,
)
from studyhub.utils.datetime_helpers import (
    ALL_TIME_START,
    now_utc,
    start_of_day,
    start_of_month,
    start_of_week,
)

logger = logging.getLogger(__name__)

MetricFn = Callable[[ActivitySource, str, AchievementCriteria, datetime, Optional[str]], Awaitable[float]]


def window_start(timeframe: Timeframe, now: datetime) -> datetime:
    """Start boundary (inclusive) of the timeframe containing now"""
    if timeframe == Timeframe.DAILY:
        return start_of_day(now)
    if timeframe == Timeframe.WEEKLY:
        return start_of_week(now)
    if timeframe == Timeframe.MONTHLY:
        return start_of_month(now)
    return ALL_TIME_START


def validate_definition(definition: AchievementDefinition) -> None:
    """
    Raise ValidationError if the definition cannot be evaluated

    Checks:
    - criterion target is at least 1
    - a group-scoped achievement references its group
    """
    if definition.criteria.target_value < 1:
        raise ValidationError(
            "Target value must be at least 1",
            field="criteria.target_value",
            value=definition.criteria.target_value,
            context={"achievement_id": definition.id}
        )
    if not definition.is_global and not definition.group_id:
        raise ValidationError(
            "Group-specific achievements must have a group reference",
            field="group_id",
            value=None,
            context={"achievement_id": definition.id}
        )


# ============================================
# Metric functions
# ============================================

async def _filtered_sessions(activity, user_id, criteria, since):
    conditions = criteria.conditions
    sessions = await activity.study_sessions(user_id, since, conditions.subjects or None)
    if conditions.subjects:
        sessions = [s for s in sessions if s.subject in conditions.subjects]
    if conditions.minimum_duration:
        sessions = [s for s in sessions if s.duration_minutes >= conditions.minimum_duration]
    return sessions


async def _study_hours(activity, user_id, criteria, since, group_id):
    sessions = await _filtered_sessions(activity, user_id, criteria, since)
    return sum(s.duration_minutes for s in sessions) / 60


async def _sessions_attended(activity, user_id, criteria, since, group_id):
    return len(await _filtered_sessions(activity, user_id, criteria, since))


async def _study_streak(activity, user_id, criteria, since, group_id):
    # Snapshot of the running counter; the timeframe does not apply
    return await activity.current_streak(user_id)


async def _goals_completed(activity, user_id, criteria, since, group_id):
    # Lifetime counter
    return await activity.goals_completed(user_id)


async def _resources_shared(activity, user_id, criteria, since, group_id):
    return await activity.resources_shared(user_id, since, group_id)


async def _challenges_won(activity, user_id, criteria, since, group_id):
    return await activity.challenges_won(user_id, since)


async def _no_activity_feed(activity, user_id, criteria, since, group_id):
    logger.debug(f"No activity feed for trigger {criteria.trigger_type.value}; evaluating to 0")
    return 0


METRICS: Dict[TriggerType, MetricFn] = {
    TriggerType.STUDY_HOURS_TOTAL: _study_hours,
    TriggerType.STUDY_HOURS_DAILY: _study_hours,
    TriggerType.SESSIONS_ATTENDED: _sessions_attended,
    TriggerType.STUDY_STREAK: _study_streak,
    TriggerType.GOALS_COMPLETED: _goals_completed,
    TriggerType.RESOURCES_SHARED: _resources_shared,
    TriggerType.CHALLENGES_WON: _challenges_won,
    TriggerType.HELP_PROVIDED: _no_activity_feed,
    TriggerType.GROUP_CONTRIBUTIONS: _no_activity_feed,
    TriggerType.SUBJECT_MASTERY: _no_activity_feed,
    TriggerType.CUSTOM: _no_activity_feed,
}


def build_result(current_value: float, target_value: float) -> ProgressResult:
    """Round, compare and clamp a raw metric value against its target"""
    current_value = round(current_value, 2)
    percentage = round(current_value / target_value * 100) if target_value else 0
    return ProgressResult(
        current_value=current_value,
        target_value=target_value,
        is_completed=current_value >= target_value,
        progress_percentage=max(0, min(100, percentage)),
    )


async def evaluate(
    definition: AchievementDefinition,
    activity: ActivitySource,
    user_id: str,
    group_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> ProgressResult:
    """
    Evaluate one achievement criterion for a user

    Args:
        definition: Achievement to evaluate
        activity: Source of activity facts
        user_id: User being evaluated
        group_id: Group context (scopes group-aware metrics)
        now: Evaluation time (defaults to now)

    Returns:
        ProgressResult with current/target values, completion flag and
        a percentage clamped to [0, 100]

    Raises:
        ValidationError: If the definition is malformed
    """
    validate_definition(definition)

    criteria = definition.criteria
    since = window_start(criteria.timeframe, now or now_utc())
    metric = METRICS.get(criteria.trigger_type, _no_activity_feed)

    current_value = await metric(activity, user_id, criteria, since, group_id)
    result = build_result(current_value, criteria.target_value)

    logger.debug(
        f"Evaluated {definition.id} ({criteria.trigger_type.value}, {criteria.timeframe.value}) "
        f"for user {user_id}: {result.current_value}/{result.target_value}"
    )
    return result

"""
Challenge Leaderboards

Derived state of a challenge, recomputed from its participants after every
mutation. Nothing here reads anything but the participant list, so the
cached leaderboard and stats can always be rebuilt.

Ranking rules:
- only active and completed participants are ranked
- descending by current value; ties keep roster order (stable sort)
- dense ranks 1..N; unranked participants carry rank 0
- the rank-1 entry is the winner only if that participant has completed
"""

import logging
from typing import Callable, Dict, List, Optional

from studyhub.models.challenge import (
    Challenge,
    ChallengeStats,
    ChallengeType,
    LeaderboardEntry,
    ParticipantStatus,
    TargetMetrics,
)

logger = logging.getLogger(__name__)

RANKED_STATUSES = (ParticipantStatus.ACTIVE, ParticipantStatus.COMPLETED)

TARGETS: Dict[ChallengeType, Callable[[TargetMetrics], Optional[float]]] = {
    ChallengeType.STUDY_HOURS: lambda m: m.target_study_hours,
    ChallengeType.DAILY_STREAK: lambda m: m.target_streak_days,
    ChallengeType.GOALS_COMPLETED: lambda m: m.target_goals_count,
    ChallengeType.SESSIONS_ATTENDED: lambda m: m.target_sessions_count,
    ChallengeType.RESOURCES_SHARED: lambda m: m.target_resources_count,
    ChallengeType.PEER_HELP: lambda m: m.target_help_actions,
    ChallengeType.CONSISTENCY: lambda m: m.target_consistency_days,
    ChallengeType.SUBJECT_MASTERY: lambda m: m.target_completion_percentage or 100,
    ChallengeType.CUSTOM: lambda m: m.custom_metric.target_value if m.custom_metric else None,
}


def target_value_for_type(challenge: Challenge) -> float:
    """The numeric target relevant to the challenge type (0 when unset)"""
    extract = TARGETS.get(challenge.challenge_type)
    if extract is None:
        return 0
    return extract(challenge.target_metrics) or 0


def overall_progress(challenge: Challenge) -> int:
    """Mean per-participant percentage of the target, each capped at 100"""
    if not challenge.participants:
        return 0
    target = target_value_for_type(challenge)
    if target == 0:
        return 0
    total = sum(min(100, p.progress.current_value / target * 100) for p in challenge.participants)
    return round(total / len(challenge.participants))


def rank_participants(challenge: Challenge) -> List[LeaderboardEntry]:
    """
    Rank the challenge's participants and store the leaderboard cache

    Writes each participant's rank and replaces challenge.leaderboard.

    Returns:
        Leaderboard entries in rank order
    """
    ranked = sorted(
        (p for p in challenge.participants if p.status in RANKED_STATUSES),
        key=lambda p: p.progress.current_value,
        reverse=True,
    )

    for participant in challenge.participants:
        participant.rank = 0

    leaderboard = []
    for index, participant in enumerate(ranked):
        participant.rank = index + 1
        leaderboard.append(LeaderboardEntry(
            user_id=participant.user_id,
            value=participant.progress.current_value,
            rank=participant.rank,
            is_winner=index == 0 and participant.status == ParticipantStatus.COMPLETED,
            achieved_at=participant.completed_at or participant.progress.last_updated,
        ))

    challenge.leaderboard = leaderboard
    return leaderboard


def compute_stats(challenge: Challenge) -> ChallengeStats:
    """Participant counts, scores, engagement rate and overall progress"""
    participants = challenge.participants
    total = len(participants)
    active = sum(1 for p in participants if p.status == ParticipantStatus.ACTIVE)
    completed = sum(1 for p in participants if p.status == ParticipantStatus.COMPLETED)

    stats = ChallengeStats(
        total_participants=total,
        active_participants=active,
        completed_participants=completed,
    )
    if total:
        values = [p.progress.current_value for p in participants]
        stats.average_progress = round(sum(values) / total, 2)
        stats.top_score = max(values)
        stats.engagement_rate = round(active / total * 100)
        stats.overall_progress = overall_progress(challenge)

    challenge.stats = stats
    return stats


def refresh_derived(challenge: Challenge) -> None:
    """Recompute every derived field of the challenge"""
    rank_participants(challenge)
    compute_stats(challenge)

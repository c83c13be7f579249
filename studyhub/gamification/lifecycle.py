"""
Challenge Lifecycle

    draft --start--> active --end----> completed
                            --cancel-> cancelled

Transitions are explicit; nothing here runs on a timer. Any other
transition raises InvalidTransitionError.
"""

import logging
from datetime import datetime
from typing import Optional

from studyhub.exceptions import InvalidTransitionError, ValidationError
from studyhub.gamification.leaderboard import refresh_derived, target_value_for_type
from studyhub.models.challenge import Challenge, ChallengeStatus, ParticipantStatus
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


def _require_status(challenge: Challenge, expected: ChallengeStatus, target: ChallengeStatus) -> None:
    if challenge.status != expected:
        raise InvalidTransitionError(
            f"Cannot move challenge from {challenge.status.value} to {target.value}; "
            f"it must be {expected.value}",
            from_status=challenge.status.value,
            to_status=target.value,
            challenge_id=challenge.id
        )


def start(challenge: Challenge) -> None:
    """
    Activate a draft challenge; registered participants become active

    Raises:
        InvalidTransitionError: Challenge is not a draft
        ValidationError: Challenge has no target for its type
    """
    _require_status(challenge, ChallengeStatus.DRAFT, ChallengeStatus.ACTIVE)

    if target_value_for_type(challenge) <= 0:
        raise ValidationError(
            f"Challenge of type {challenge.challenge_type.value} needs a positive target",
            field="target_metrics",
            context={"challenge_id": challenge.id}
        )

    challenge.status = ChallengeStatus.ACTIVE
    for participant in challenge.participants:
        if participant.status == ParticipantStatus.REGISTERED:
            participant.status = ParticipantStatus.ACTIVE

    refresh_derived(challenge)
    logger.info(f"Challenge {challenge.id} started with {challenge.stats.active_participants} active participants")


def end(challenge: Challenge, now: Optional[datetime] = None) -> Optional[str]:
    """
    Complete an active challenge and designate the winner

    The rank-1 participant, if still active, is marked completed and so
    becomes the winner.

    Returns:
        Winner's user ID, or None when nobody is ranked

    Raises:
        InvalidTransitionError: Challenge is not active
    """
    _require_status(challenge, ChallengeStatus.ACTIVE, ChallengeStatus.COMPLETED)
    now = now or now_utc()

    challenge.status = ChallengeStatus.COMPLETED
    refresh_derived(challenge)

    winner_id = None
    if challenge.leaderboard:
        leader = challenge.find_participant(challenge.leaderboard[0].user_id)
        if leader.status == ParticipantStatus.ACTIVE:
            leader.status = ParticipantStatus.COMPLETED
            leader.completed_at = now
            refresh_derived(challenge)
        winner_id = leader.user_id

    logger.info(f"Challenge {challenge.id} completed; winner: {winner_id or 'none'}")
    return winner_id


def cancel(challenge: Challenge) -> None:
    """
    Cancel an active challenge; standings are kept, nobody is promoted

    Raises:
        InvalidTransitionError: Challenge is not active
    """
    _require_status(challenge, ChallengeStatus.ACTIVE, ChallengeStatus.CANCELLED)
    challenge.status = ChallengeStatus.CANCELLED
    refresh_derived(challenge)
    logger.info(f"Challenge {challenge.id} cancelled")

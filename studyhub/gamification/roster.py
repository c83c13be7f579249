"""
Challenge Roster

Participant membership under capacity and timing rules. Withdrawn records
are kept for history and do not count against capacity; a withdrawn user
who joins again reuses their record with fresh progress.
"""

import logging
from datetime import datetime
from typing import Optional

from studyhub.exceptions import (
    AlreadyJoinedError,
    CapacityExceededError,
    ChallengeClosedError,
    LateJoinDisallowedError,
    NotParticipantError,
    ValidationError,
)
from studyhub.models.challenge import (
    Challenge,
    ChallengeStatus,
    Participant,
    ParticipantProgress,
    ParticipantStatus,
    TeamInfo,
)
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


def ensure_open(challenge: Challenge, user_id: str, operation: str) -> None:
    if challenge.status.is_terminal:
        raise ChallengeClosedError(
            f"Challenge is {challenge.status.value}; participants are frozen",
            challenge_id=challenge.id,
            user_id=user_id,
            operation=operation
        )


def join(
    challenge: Challenge,
    user_id: str,
    team_info: Optional[TeamInfo] = None,
    now: Optional[datetime] = None
) -> Participant:
    """
    Add a user to the challenge roster

    Args:
        challenge: Challenge to join (mutated in place)
        user_id: Joining user
        team_info: Team descriptor, kept only if the challenge allows teams
        now: Join time (defaults to now)

    Returns:
        The new or reactivated participant record

    Raises:
        ChallengeClosedError: Challenge is completed or cancelled
        AlreadyJoinedError: User already holds a non-withdrawn record
        CapacityExceededError: Roster is full
        LateJoinDisallowedError: Challenge started and late joins are off
        ValidationError: Team is larger than the configured team size
    """
    now = now or now_utc()
    ensure_open(challenge, user_id, "join_challenge")

    existing = challenge.find_participant(user_id)
    if existing and existing.status != ParticipantStatus.WITHDRAWN:
        raise AlreadyJoinedError(challenge_id=challenge.id, user_id=user_id, operation="join_challenge")

    if len(challenge.roster()) >= challenge.settings.max_participants:
        raise CapacityExceededError(
            max_participants=challenge.settings.max_participants,
            user_id=user_id,
            operation="join_challenge",
            context={"challenge_id": challenge.id}
        )

    if now > challenge.duration.start_date and not challenge.settings.allow_late_join:
        raise LateJoinDisallowedError(
            user_id=user_id,
            operation="join_challenge",
            context={"challenge_id": challenge.id, "start_date": challenge.duration.start_date.isoformat()}
        )

    team = None
    if challenge.settings.allow_teams and team_info:
        if len(team_info.members) > challenge.settings.team_size:
            raise ValidationError(
                f"Team has {len(team_info.members)} members; the limit is {challenge.settings.team_size}",
                field="team.members",
                value=len(team_info.members),
                user_id=user_id
            )
        team = team_info

    fields = dict(
        joined_at=now,
        status=ParticipantStatus.ACTIVE if challenge.status == ChallengeStatus.ACTIVE else ParticipantStatus.REGISTERED,
        progress=ParticipantProgress(current_value=0, milestones=[], last_updated=now),
        rank=0,
        completed_at=None,
        team=team,
    )

    if existing:
        # Reactivate withdrawn participant
        for name, value in fields.items():
            setattr(existing, name, value)
        participant = existing
    else:
        participant = Participant(user_id=user_id, **fields)
        challenge.participants.append(participant)

    logger.info(f"User {user_id} joined challenge {challenge.id} as {participant.status.value}")
    return participant


def leave(challenge: Challenge, user_id: str, now: Optional[datetime] = None) -> Participant:
    """
    Withdraw a user from the challenge

    The record stays on the roster with status withdrawn; it drops out of
    ranking and capacity.

    Raises:
        ChallengeClosedError: Challenge is completed or cancelled
        NotParticipantError: User has no non-withdrawn record
    """
    ensure_open(challenge, user_id, "leave_challenge")

    participant = challenge.find_participant(user_id)
    if not participant or participant.status == ParticipantStatus.WITHDRAWN:
        raise NotParticipantError(challenge_id=challenge.id, user_id=user_id, operation="leave_challenge")

    participant.status = ParticipantStatus.WITHDRAWN
    participant.rank = 0
    participant.progress.last_updated = now or now_utc()

    logger.info(f"User {user_id} withdrew from challenge {challenge.id}")
    return participant

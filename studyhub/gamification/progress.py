"""
Challenge Progress Tracking

Applies absolute progress values to participants, records milestone
crossings and completes participants who reach the challenge target.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from studyhub.exceptions import NotActiveParticipantError
from studyhub.gamification.leaderboard import refresh_derived, target_value_for_type
from studyhub.gamification.roster import ensure_open
from studyhub.models.challenge import (
    Challenge,
    ChallengeMilestone,
    MilestoneAchiever,
    MilestoneRecord,
    Participant,
    ParticipantStatus,
)
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


@dataclass
class ProgressUpdate:
    """What an update_progress call changed"""
    participant: Participant
    previous_value: float
    completed: bool = False
    crossed_milestones: List[ChallengeMilestone] = field(default_factory=list)


def _detect_milestones(
    challenge: Challenge,
    participant: Participant,
    previous_value: float,
    now: datetime
) -> List[ChallengeMilestone]:
    crossed = []
    new_value = participant.progress.current_value
    for milestone in sorted(challenge.milestones, key=lambda m: m.target_value):
        if not previous_value < milestone.target_value <= new_value:
            continue
        if milestone.achieved_by(participant.user_id):
            continue
        milestone.achievers.append(MilestoneAchiever(user_id=participant.user_id, achieved_at=now))
        crossed.append(milestone)
    return crossed


def update_progress(
    challenge: Challenge,
    user_id: str,
    new_value: float,
    milestone: Optional[float] = None,
    now: Optional[datetime] = None
) -> ProgressUpdate:
    """
    Set a participant's progress value

    Args:
        challenge: Challenge (mutated in place)
        user_id: Participant's user ID
        new_value: Absolute progress value (not an increment)
        milestone: Value of a milestone the caller reports as reached
        now: Update time (defaults to now)

    Returns:
        ProgressUpdate with the participant, completion flag and the
        challenge milestones crossed by this update

    Raises:
        ChallengeClosedError: Challenge is completed or cancelled
        NotActiveParticipantError: User has no active participant record
    """
    now = now or now_utc()

    ensure_open(challenge, user_id, "update_progress")

    participant = challenge.find_participant(user_id)
    if not participant or participant.status != ParticipantStatus.ACTIVE:
        raise NotActiveParticipantError(challenge_id=challenge.id, user_id=user_id, operation="update_progress")

    previous_value = participant.progress.current_value
    participant.progress.current_value = new_value
    participant.progress.last_updated = now

    if milestone is not None:
        participant.progress.milestones.append(MilestoneRecord(value=milestone, achieved_at=now, is_completed=True))

    update = ProgressUpdate(participant=participant, previous_value=previous_value)
    update.crossed_milestones = _detect_milestones(challenge, participant, previous_value, now)
    for crossed in update.crossed_milestones:
        logger.info(f"User {user_id} reached milestone '{crossed.name}' in challenge {challenge.id}")

    target = target_value_for_type(challenge)
    if target > 0 and new_value >= target:
        participant.status = ParticipantStatus.COMPLETED
        participant.completed_at = now
        update.completed = True
        logger.info(f"User {user_id} completed challenge {challenge.id} ({new_value}/{target})")

    refresh_derived(challenge)
    return update

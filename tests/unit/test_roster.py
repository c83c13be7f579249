"""Unit tests for challenge roster (studyhub/gamification/roster.py)"""
import pytest
from datetime import timedelta

from studyhub.exceptions import (
    AlreadyJoinedError,
    CapacityExceededError,
    ChallengeClosedError,
    LateJoinDisallowedError,
    NotParticipantError,
    ValidationError,
)
from studyhub.gamification import roster
from studyhub.models.challenge import (
    ChallengeSettings,
    ChallengeStatus,
    ParticipantStatus,
    TeamInfo,
)


def test_join_draft_challenge_registers(make_challenge, fixed_now):
    challenge = make_challenge()

    participant = roster.join(challenge, "alice", now=fixed_now)

    assert participant.status == ParticipantStatus.REGISTERED
    assert participant.joined_at == fixed_now
    assert participant.progress.current_value == 0
    assert challenge.find_participant("alice") is participant


def test_join_active_challenge_is_active(make_challenge, fixed_now):
    challenge = make_challenge(
        start_date=fixed_now - timedelta(days=1),
        settings=ChallengeSettings(allow_late_join=True),
        status=ChallengeStatus.ACTIVE,
    )

    participant = roster.join(challenge, "alice", now=fixed_now)

    assert participant.status == ParticipantStatus.ACTIVE


def test_capacity_frees_up_after_withdrawal(make_challenge, fixed_now):
    """Capacity 2: third join fails until someone withdraws"""
    challenge = make_challenge(settings=ChallengeSettings(max_participants=2))
    roster.join(challenge, "alice", now=fixed_now)
    roster.join(challenge, "bob", now=fixed_now)

    with pytest.raises(CapacityExceededError) as exc_info:
        roster.join(challenge, "carol", now=fixed_now)
    assert exc_info.value.max_participants == 2

    roster.leave(challenge, "bob", now=fixed_now)
    roster.join(challenge, "carol", now=fixed_now)

    assert [p.user_id for p in challenge.roster()] == ["alice", "carol"]
    assert len(challenge.participants) == 3


def test_join_twice_raises(make_challenge, fixed_now):
    challenge = make_challenge()
    roster.join(challenge, "alice", now=fixed_now)

    with pytest.raises(AlreadyJoinedError):
        roster.join(challenge, "alice", now=fixed_now)


def test_rejoin_reuses_withdrawn_record(make_challenge, fixed_now):
    challenge = make_challenge()
    original = roster.join(challenge, "alice", now=fixed_now)
    original.progress.current_value = 12
    roster.leave(challenge, "alice", now=fixed_now)

    later = fixed_now + timedelta(hours=2)
    rejoined = roster.join(challenge, "alice", now=later)

    assert rejoined is original
    assert rejoined.status == ParticipantStatus.REGISTERED
    assert rejoined.progress.current_value == 0
    assert rejoined.joined_at == later
    assert len(challenge.participants) == 1


def test_late_join_disallowed(make_challenge, fixed_now):
    challenge = make_challenge(start_date=fixed_now - timedelta(days=1))

    with pytest.raises(LateJoinDisallowedError):
        roster.join(challenge, "alice", now=fixed_now)


def test_late_join_allowed_by_setting(make_challenge, fixed_now):
    challenge = make_challenge(
        start_date=fixed_now - timedelta(days=1),
        settings=ChallengeSettings(allow_late_join=True),
    )

    participant = roster.join(challenge, "alice", now=fixed_now)
    assert participant.user_id == "alice"


def test_capacity_checked_before_late_join(make_challenge, fixed_now):
    challenge = make_challenge(settings=ChallengeSettings(max_participants=2))
    roster.join(challenge, "alice", now=fixed_now)
    roster.join(challenge, "bob", now=fixed_now)

    with pytest.raises(CapacityExceededError):
        roster.join(challenge, "carol", now=challenge.duration.start_date + timedelta(hours=1))


@pytest.mark.parametrize("status", [ChallengeStatus.COMPLETED, ChallengeStatus.CANCELLED])
def test_roster_frozen_on_closed_challenge(make_challenge, fixed_now, status):
    challenge = make_challenge()
    roster.join(challenge, "alice", now=fixed_now)
    challenge.status = status

    with pytest.raises(ChallengeClosedError):
        roster.join(challenge, "bob", now=fixed_now)
    with pytest.raises(ChallengeClosedError):
        roster.leave(challenge, "alice", now=fixed_now)


def test_team_kept_when_teams_allowed(make_challenge, fixed_now):
    challenge = make_challenge(settings=ChallengeSettings(allow_teams=True, team_size=3))
    team = TeamInfo(name="Owls", members=["alice", "bob"])

    participant = roster.join(challenge, "alice", team, now=fixed_now)

    assert participant.team.name == "Owls"


def test_team_ignored_when_teams_disallowed(make_challenge, fixed_now):
    challenge = make_challenge()

    participant = roster.join(challenge, "alice", TeamInfo(name="Owls", members=["alice"]), now=fixed_now)

    assert participant.team is None


def test_oversized_team_rejected(make_challenge, fixed_now):
    challenge = make_challenge(settings=ChallengeSettings(allow_teams=True, team_size=2))
    team = TeamInfo(name="Crowd", members=["a", "b", "c"])

    with pytest.raises(ValidationError):
        roster.join(challenge, "alice", team, now=fixed_now)
    assert challenge.participants == []


def test_leave_marks_withdrawn(make_challenge, fixed_now):
    challenge = make_challenge()
    roster.join(challenge, "alice", now=fixed_now)

    participant = roster.leave(challenge, "alice", now=fixed_now)

    assert participant.status == ParticipantStatus.WITHDRAWN
    assert participant.rank == 0
    assert challenge.roster() == []


def test_leave_without_joining_raises(make_challenge, fixed_now):
    challenge = make_challenge()

    with pytest.raises(NotParticipantError):
        roster.leave(challenge, "alice", now=fixed_now)


def test_leave_twice_raises(make_challenge, fixed_now):
    challenge = make_challenge()
    roster.join(challenge, "alice", now=fixed_now)
    roster.leave(challenge, "alice", now=fixed_now)

    with pytest.raises(NotParticipantError):
        roster.leave(challenge, "alice", now=fixed_now)

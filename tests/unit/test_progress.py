"""Unit tests for challenge progress tracking (studyhub/gamification/progress.py)"""
import pytest
from datetime import timedelta

from studyhub.exceptions import ChallengeClosedError, NotActiveParticipantError
from studyhub.gamification import lifecycle, roster
from studyhub.gamification.leaderboard import overall_progress
from studyhub.gamification.progress import target_value_for_type, update_progress
from studyhub.models.challenge import (
    ChallengeMilestone,
    ChallengeType,
    CustomMetric,
    ParticipantStatus,
    TargetMetrics,
)


@pytest.fixture
def active_challenge(make_challenge, fixed_now):
    """Active study-hours challenge (target 100, milestones 25 and 50) with alice and bob"""
    challenge = make_challenge(milestones=[
        ChallengeMilestone(name="Halfway", target_value=50),
        ChallengeMilestone(name="Warm-up", target_value=25),
    ])
    roster.join(challenge, "alice", now=fixed_now)
    roster.join(challenge, "bob", now=fixed_now)
    lifecycle.start(challenge)
    return challenge


# ============================================================================
# Target Dispatch
# ============================================================================

@pytest.mark.parametrize("challenge_type,metrics,expected", [
    (ChallengeType.STUDY_HOURS, TargetMetrics(target_study_hours=40), 40),
    (ChallengeType.DAILY_STREAK, TargetMetrics(target_streak_days=7), 7),
    (ChallengeType.GOALS_COMPLETED, TargetMetrics(target_goals_count=3), 3),
    (ChallengeType.SESSIONS_ATTENDED, TargetMetrics(target_sessions_count=12), 12),
    (ChallengeType.RESOURCES_SHARED, TargetMetrics(target_resources_count=5), 5),
    (ChallengeType.PEER_HELP, TargetMetrics(target_help_actions=8), 8),
    (ChallengeType.CONSISTENCY, TargetMetrics(target_consistency_days=21), 21),
    (ChallengeType.SUBJECT_MASTERY, TargetMetrics(), 100),
    (ChallengeType.SUBJECT_MASTERY, TargetMetrics(target_completion_percentage=80), 80),
    (ChallengeType.CUSTOM, TargetMetrics(custom_metric=CustomMetric(name="pages", target_value=300)), 300),
    (ChallengeType.CUSTOM, TargetMetrics(), 0),
    (ChallengeType.STUDY_HOURS, TargetMetrics(target_goals_count=3), 0),
])
def test_target_value_for_type(make_challenge, challenge_type, metrics, expected):
    challenge = make_challenge(challenge_type=challenge_type, target_metrics=metrics)
    assert target_value_for_type(challenge) == expected


# ============================================================================
# update_progress
# ============================================================================

def test_value_is_absolute(active_challenge, fixed_now):
    update_progress(active_challenge, "alice", 30, now=fixed_now)
    update = update_progress(active_challenge, "alice", 20, now=fixed_now + timedelta(hours=1))

    assert update.previous_value == 30
    assert update.participant.progress.current_value == 20
    assert update.participant.progress.last_updated == fixed_now + timedelta(hours=1)


def test_reaching_target_completes_participant(active_challenge, fixed_now):
    update = update_progress(active_challenge, "alice", 100, now=fixed_now)

    assert update.completed is True
    alice = active_challenge.find_participant("alice")
    assert alice.status == ParticipantStatus.COMPLETED
    assert alice.completed_at == fixed_now
    assert active_challenge.leaderboard[0].user_id == "alice"
    assert active_challenge.leaderboard[0].is_winner is True


def test_below_target_stays_active(active_challenge, fixed_now):
    update = update_progress(active_challenge, "alice", 99.5, now=fixed_now)

    assert update.completed is False
    assert update.participant.status == ParticipantStatus.ACTIVE


def test_completed_participant_cannot_update(active_challenge, fixed_now):
    update_progress(active_challenge, "alice", 100, now=fixed_now)

    with pytest.raises(NotActiveParticipantError):
        update_progress(active_challenge, "alice", 120, now=fixed_now)


def test_non_participant_cannot_update(active_challenge, fixed_now):
    with pytest.raises(NotActiveParticipantError):
        update_progress(active_challenge, "mallory", 10, now=fixed_now)


def test_registered_participant_cannot_update(make_challenge, fixed_now):
    challenge = make_challenge()
    roster.join(challenge, "alice", now=fixed_now)

    with pytest.raises(NotActiveParticipantError):
        update_progress(challenge, "alice", 10, now=fixed_now)


def test_withdrawn_participant_cannot_update(active_challenge, fixed_now):
    roster.leave(active_challenge, "bob", now=fixed_now)

    with pytest.raises(NotActiveParticipantError):
        update_progress(active_challenge, "bob", 10, now=fixed_now)


def test_ended_challenge_rejects_updates(active_challenge, fixed_now):
    update_progress(active_challenge, "alice", 50, now=fixed_now)
    update_progress(active_challenge, "bob", 40, now=fixed_now)
    assert lifecycle.end(active_challenge, now=fixed_now) == "alice"

    with pytest.raises(ChallengeClosedError):
        update_progress(active_challenge, "bob", 120, now=fixed_now + timedelta(hours=1))

    bob = active_challenge.find_participant("bob")
    assert bob.status == ParticipantStatus.ACTIVE
    assert bob.progress.current_value == 40
    assert [(e.user_id, e.rank, e.is_winner) for e in active_challenge.leaderboard] == [
        ("alice", 1, True),
        ("bob", 2, False),
    ]


def test_cancelled_challenge_gains_no_winner(active_challenge, fixed_now):
    update_progress(active_challenge, "alice", 50, now=fixed_now)
    lifecycle.cancel(active_challenge)

    with pytest.raises(ChallengeClosedError):
        update_progress(active_challenge, "bob", 120, now=fixed_now)

    assert not any(e.is_winner for e in active_challenge.leaderboard)
    assert active_challenge.find_participant("bob").progress.current_value == 0


def test_update_refreshes_ranks_and_stats(active_challenge, fixed_now):
    update_progress(active_challenge, "alice", 30, now=fixed_now)
    update_progress(active_challenge, "bob", 60, now=fixed_now)

    assert active_challenge.find_participant("bob").rank == 1
    assert active_challenge.find_participant("alice").rank == 2
    assert active_challenge.stats.top_score == 60
    assert active_challenge.stats.average_progress == 45


# ============================================================================
# Milestones
# ============================================================================

def test_crossing_milestones_records_achievers(active_challenge, fixed_now):
    update = update_progress(active_challenge, "alice", 30, now=fixed_now)
    assert [m.name for m in update.crossed_milestones] == ["Warm-up"]

    update = update_progress(active_challenge, "alice", 60, now=fixed_now)
    assert [m.name for m in update.crossed_milestones] == ["Halfway"]

    halfway = next(m for m in active_challenge.milestones if m.name == "Halfway")
    assert halfway.achieved_by("alice")
    assert not halfway.achieved_by("bob")


def test_jump_crosses_several_milestones_in_order(active_challenge, fixed_now):
    update = update_progress(active_challenge, "alice", 75, now=fixed_now)

    assert [m.name for m in update.crossed_milestones] == ["Warm-up", "Halfway"]


def test_milestone_not_recrossed_after_dip(active_challenge, fixed_now):
    update_progress(active_challenge, "alice", 30, now=fixed_now)
    update_progress(active_challenge, "alice", 10, now=fixed_now)
    update = update_progress(active_challenge, "alice", 30, now=fixed_now)

    assert update.crossed_milestones == []
    warm_up = next(m for m in active_challenge.milestones if m.name == "Warm-up")
    assert len(warm_up.achievers) == 1


def test_reported_milestone_is_recorded(active_challenge, fixed_now):
    update = update_progress(active_challenge, "alice", 12, milestone=10, now=fixed_now)

    records = update.participant.progress.milestones
    assert len(records) == 1
    assert records[0].value == 10
    assert records[0].achieved_at == fixed_now


# ============================================================================
# overall_progress
# ============================================================================

def test_overall_progress_caps_each_participant(active_challenge, fixed_now):
    update_progress(active_challenge, "alice", 150, now=fixed_now)
    update_progress(active_challenge, "bob", 50, now=fixed_now)

    assert overall_progress(active_challenge) == 75
    assert active_challenge.stats.overall_progress == 75


def test_overall_progress_empty(make_challenge):
    assert overall_progress(make_challenge()) == 0

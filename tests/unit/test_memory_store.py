"""Unit tests for the in-memory gamification store"""
import pytest
from datetime import timedelta

from studyhub.exceptions import RecordNotFoundError, StaleWriteError
from studyhub.models.achievement import TriggerType, UserProgress
from studyhub.models.challenge import ChallengeStatus


@pytest.mark.asyncio
async def test_reads_return_copies(store, make_challenge):
    challenge = await store.add_challenge(make_challenge())

    loaded = await store.get_challenge(challenge.id)
    loaded.title = "Changed"

    assert (await store.get_challenge(challenge.id)).title == "January Study Sprint"


@pytest.mark.asyncio
async def test_save_bumps_version(store, make_challenge):
    challenge = await store.add_challenge(make_challenge())

    saved = await store.save_challenge(challenge)

    assert saved.version == 1
    assert (await store.get_challenge(challenge.id)).version == 1


@pytest.mark.asyncio
async def test_save_with_stale_version_raises(store, make_challenge):
    challenge = await store.add_challenge(make_challenge())
    first = await store.get_challenge(challenge.id)
    second = await store.get_challenge(challenge.id)

    await store.save_challenge(first)

    with pytest.raises(StaleWriteError) as exc_info:
        await store.save_challenge(second)
    assert exc_info.value.expected_version == 0


@pytest.mark.asyncio
async def test_save_unknown_record_raises(store, make_challenge, make_definition):
    with pytest.raises(RecordNotFoundError):
        await store.save_challenge(make_challenge())
    with pytest.raises(RecordNotFoundError):
        await store.save_achievement(make_definition())


@pytest.mark.asyncio
async def test_achievement_version_check(store, make_definition):
    definition = await store.add_achievement(make_definition())
    await store.save_achievement(definition)

    with pytest.raises(StaleWriteError):
        await store.save_achievement(definition)


@pytest.mark.asyncio
async def test_list_achievements_scoping(store, make_definition):
    global_def = await store.add_achievement(make_definition(TriggerType.STUDY_STREAK, 3))
    group_def = await store.add_achievement(make_definition(is_global=False, group_id="group-1"))
    await store.add_achievement(make_definition(is_global=False, group_id="group-2"))

    assert {d.id for d in await store.list_achievements()} == {global_def.id}
    assert {d.id for d in await store.list_achievements(group_id="group-1")} == {global_def.id, group_def.id}
    by_trigger = await store.list_achievements(group_id="group-1", trigger_type=TriggerType.STUDY_STREAK)
    assert [d.id for d in by_trigger] == [global_def.id]


@pytest.mark.asyncio
async def test_progress_keyed_by_group(store, fixed_now):
    await store.save_user_progress(UserProgress(user_id="alice", achievement_id="a1", target_value=5))
    await store.save_user_progress(UserProgress(
        user_id="alice", achievement_id="a1", group_id="group-1", target_value=5,
        is_completed=True, completed_at=fixed_now
    ))

    assert (await store.get_user_progress("alice", "a1")).group_id is None
    assert (await store.get_user_progress("alice", "a1", "group-1")).is_completed is True
    assert len(await store.list_user_progress("alice")) == 2
    assert len(await store.list_user_progress("alice", completed=True)) == 1
    assert len(await store.list_completed_progress("a1")) == 1


@pytest.mark.asyncio
async def test_list_expired_challenges(store, make_challenge, fixed_now):
    expired = make_challenge(
        start_date=fixed_now - timedelta(days=3),
        end_date=fixed_now - timedelta(days=1),
        status=ChallengeStatus.ACTIVE,
    )
    ending_now = make_challenge(
        start_date=fixed_now - timedelta(days=3),
        end_date=fixed_now,
        status=ChallengeStatus.ACTIVE,
    )
    draft = make_challenge(start_date=fixed_now - timedelta(days=3), end_date=fixed_now - timedelta(days=1))
    for challenge in (expired, ending_now, draft):
        await store.add_challenge(challenge)

    assert [c.id for c in await store.list_expired_challenges(fixed_now)] == [expired.id]


@pytest.mark.asyncio
async def test_clear(store, make_challenge):
    challenge = await store.add_challenge(make_challenge())
    store.clear()

    with pytest.raises(RecordNotFoundError):
        await store.get_challenge(challenge.id)

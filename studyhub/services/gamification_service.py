"""
GamificationService - Gamification Operations

Exposes the engine's operations to transports (REST API, Celery tasks).
Every challenge mutation is a whole-aggregate read-modify-write:

1. load the challenge (a private copy)
2. apply the roster / lifecycle / progress function
3. save it back with a version check

A failure at step 2 leaves the store untouched. A concurrent writer makes
step 3 raise StaleWriteError; the caller decides whether to retry.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from studyhub.gamification import lifecycle, roster
from studyhub.gamification.achievement_ledger import (
    check_and_award,
    get_achievement_leaderboard,
    get_user_achievements,
)
from studyhub.gamification.activity import ActivitySource
from studyhub.gamification.criteria import validate_definition
from studyhub.gamification.leaderboard import refresh_derived
from studyhub.gamification.progress import ProgressUpdate, update_progress
from studyhub.gamification.store import GamificationStore
from studyhub.gamification.sweeper import sweep_expired_challenges
from studyhub.models.achievement import AchievementDefinition, NewAchievement, TriggerType, UserProgress
from studyhub.models.challenge import Challenge, ChallengeStatus, LeaderboardEntry, TeamInfo
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


class GamificationService:
    """
    Service for achievements and group challenges.

    Responsibilities:
    - Achievement checks and awards
    - Challenge roster, lifecycle and progress
    - Leaderboard reads
    - Expiry sweeps
    """

    def __init__(
        self,
        store: GamificationStore,
        activity: ActivitySource,
        clock: Callable = now_utc
    ):
        """
        Initialize GamificationService.

        Args:
            store: Gamification store
            activity: Source of activity facts
            clock: Returns the current UTC datetime
        """
        self.store = store
        self.activity = activity
        self.clock = clock
        logger.debug("GamificationService initialized")

    async def _mutate_challenge(self, challenge_id: str, mutation: Callable[[Challenge], Any]) -> Any:
        challenge = await self.store.get_challenge(challenge_id)
        result = mutation(challenge)
        await self.store.save_challenge(challenge)
        return result

    # ==========================================
    # Achievements
    # ==========================================

    async def create_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        """Validate and store a new achievement definition"""
        validate_definition(definition)
        return await self.store.add_achievement(definition)

    async def check_user_achievements(
        self,
        user_id: str,
        group_id: Optional[str] = None,
        trigger_type: Optional[TriggerType] = None,
        trigger_event: Optional[str] = None
    ) -> List[NewAchievement]:
        """Evaluate eligible achievements and award the newly earned ones"""
        earned = await check_and_award(
            self.store,
            self.activity,
            user_id,
            group_id=group_id,
            trigger_type=trigger_type,
            trigger_event=trigger_event,
            now=self.clock()
        )
        if earned:
            logger.info(f"User {user_id} earned {len(earned)} achievement(s)")
        return earned

    async def get_user_achievements(
        self,
        user_id: str,
        completed: Optional[bool] = None,
        group_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Dict]:
        return await get_user_achievements(self.store, user_id, completed, group_id, limit, offset)

    async def get_achievement_leaderboard(self, achievement_id: str, limit: int = 10) -> List[UserProgress]:
        return await get_achievement_leaderboard(self.store, achievement_id, limit)

    # ==========================================
    # Challenges
    # ==========================================

    async def create_challenge(self, challenge: Challenge) -> Challenge:
        """Store a challenge built by the authoring flow"""
        refresh_derived(challenge)
        return await self.store.add_challenge(challenge)

    async def get_challenge(self, challenge_id: str) -> Challenge:
        return await self.store.get_challenge(challenge_id)

    async def get_leaderboard(self, challenge_id: str) -> List[LeaderboardEntry]:
        challenge = await self.store.get_challenge(challenge_id)
        return challenge.leaderboard

    async def find_active_group_challenges(self, group_id: str) -> List[Challenge]:
        return await self.store.list_challenges(status=ChallengeStatus.ACTIVE, group_id=group_id)

    async def find_user_challenges(self, user_id: str, status: Optional[ChallengeStatus] = None) -> List[Challenge]:
        return await self.store.list_challenges(status=status, user_id=user_id)

    async def join_challenge(
        self,
        challenge_id: str,
        user_id: str,
        team_info: Optional[TeamInfo] = None
    ) -> None:
        def _join(challenge: Challenge) -> None:
            roster.join(challenge, user_id, team_info, now=self.clock())
            refresh_derived(challenge)

        await self._mutate_challenge(challenge_id, _join)

    async def leave_challenge(self, challenge_id: str, user_id: str) -> None:
        def _leave(challenge: Challenge) -> None:
            roster.leave(challenge, user_id, now=self.clock())
            refresh_derived(challenge)

        await self._mutate_challenge(challenge_id, _leave)

    async def start_challenge(self, challenge_id: str) -> None:
        await self._mutate_challenge(challenge_id, lifecycle.start)

    async def end_challenge(self, challenge_id: str) -> Optional[str]:
        """End an active challenge; returns the winner's user ID, if any"""
        return await self._mutate_challenge(challenge_id, lambda c: lifecycle.end(c, now=self.clock()))

    async def cancel_challenge(self, challenge_id: str) -> None:
        await self._mutate_challenge(challenge_id, lifecycle.cancel)

    async def update_challenge_progress(
        self,
        challenge_id: str,
        user_id: str,
        new_value: float,
        milestone: Optional[float] = None
    ) -> ProgressUpdate:
        return await self._mutate_challenge(
            challenge_id,
            lambda c: update_progress(c, user_id, new_value, milestone, now=self.clock())
        )

    async def sweep_expired_challenges(self) -> int:
        return await sweep_expired_challenges(self.store, now=self.clock())

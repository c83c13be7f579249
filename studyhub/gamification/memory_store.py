"""
In-memory gamification store

Backs tests and STORE_BACKEND=memory runs. Nothing is persisted. Records are
deep-copied on the way in and out so callers can never mutate stored state
without going through a save.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from studyhub.exceptions import RecordNotFoundError, StaleWriteError
from studyhub.gamification.store import GamificationStore
from studyhub.models.achievement import AchievementDefinition, TriggerType, UserProgress
from studyhub.models.challenge import Challenge, ChallengeStatus

logger = logging.getLogger(__name__)

ProgressKey = Tuple[str, str, Optional[str]]


class InMemoryGamificationStore(GamificationStore):
    """In-process store for achievements, progress and challenges"""

    def __init__(self):
        self._achievements: Dict[str, AchievementDefinition] = {}
        self._progress: Dict[ProgressKey, UserProgress] = {}
        self._challenges: Dict[str, Challenge] = {}
        logger.debug("InMemoryGamificationStore initialized (not persisted)")

    def clear(self) -> None:
        self._achievements.clear()
        self._progress.clear()
        self._challenges.clear()

    # Achievements ---------------------------------------------------------

    async def add_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        self._achievements[definition.id] = definition.model_copy(deep=True)
        return definition.model_copy(deep=True)

    async def get_achievement(self, achievement_id: str) -> AchievementDefinition:
        definition = self._achievements.get(achievement_id)
        if definition is None:
            raise RecordNotFoundError(
                f"Achievement {achievement_id} not found",
                record_type="Achievement",
                record_id=achievement_id
            )
        return definition.model_copy(deep=True)

    async def list_achievements(
        self,
        group_id: Optional[str] = None,
        trigger_type: Optional[TriggerType] = None
    ) -> List[AchievementDefinition]:
        result = []
        for definition in self._achievements.values():
            if not definition.is_active:
                continue
            if not (definition.is_global or (group_id and definition.group_id == group_id)):
                continue
            if trigger_type and definition.criteria.trigger_type != trigger_type:
                continue
            result.append(definition.model_copy(deep=True))
        return result

    async def save_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        stored = self._achievements.get(definition.id)
        if stored is None:
            raise RecordNotFoundError(
                f"Achievement {definition.id} not found",
                record_type="Achievement",
                record_id=definition.id
            )
        if stored.version != definition.version:
            raise StaleWriteError(
                f"Achievement {definition.id} changed since it was read",
                record_type="Achievement",
                record_id=definition.id,
                expected_version=definition.version
            )
        saved = definition.model_copy(deep=True, update={"version": definition.version + 1})
        self._achievements[definition.id] = saved
        return saved.model_copy(deep=True)

    # User progress --------------------------------------------------------

    async def get_user_progress(
        self,
        user_id: str,
        achievement_id: str,
        group_id: Optional[str] = None
    ) -> Optional[UserProgress]:
        progress = self._progress.get((user_id, achievement_id, group_id))
        return progress.model_copy(deep=True) if progress else None

    async def save_user_progress(self, progress: UserProgress) -> None:
        key = (progress.user_id, progress.achievement_id, progress.group_id)
        self._progress[key] = progress.model_copy(deep=True)

    async def list_user_progress(
        self,
        user_id: str,
        completed: Optional[bool] = None,
        group_id: Optional[str] = None
    ) -> List[UserProgress]:
        return [
            p.model_copy(deep=True)
            for p in self._progress.values()
            if p.user_id == user_id
            and (completed is None or p.is_completed == completed)
            and (group_id is None or p.group_id == group_id)
        ]

    async def list_completed_progress(self, achievement_id: str) -> List[UserProgress]:
        return [
            p.model_copy(deep=True)
            for p in self._progress.values()
            if p.achievement_id == achievement_id and p.is_completed
        ]

    # Challenges -----------------------------------------------------------

    async def add_challenge(self, challenge: Challenge) -> Challenge:
        self._challenges[challenge.id] = challenge.model_copy(deep=True)
        return challenge.model_copy(deep=True)

    async def get_challenge(self, challenge_id: str) -> Challenge:
        challenge = self._challenges.get(challenge_id)
        if challenge is None:
            raise RecordNotFoundError(
                f"Challenge {challenge_id} not found",
                record_type="Challenge",
                record_id=challenge_id
            )
        return challenge.model_copy(deep=True)

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        stored = self._challenges.get(challenge.id)
        if stored is None:
            raise RecordNotFoundError(
                f"Challenge {challenge.id} not found",
                record_type="Challenge",
                record_id=challenge.id
            )
        if stored.version != challenge.version:
            raise StaleWriteError(
                f"Challenge {challenge.id} changed since it was read",
                record_type="Challenge",
                record_id=challenge.id,
                expected_version=challenge.version
            )
        saved = challenge.model_copy(deep=True, update={"version": challenge.version + 1})
        self._challenges[challenge.id] = saved
        return saved.model_copy(deep=True)

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        group_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[Challenge]:
        result = [
            c.model_copy(deep=True)
            for c in self._challenges.values()
            if c.is_active
            and (status is None or c.status == status)
            and (group_id is None or c.group_id == group_id)
            and (user_id is None or c.find_participant(user_id) is not None)
        ]
        result.sort(key=lambda c: c.duration.end_date)
        return result

    async def list_expired_challenges(self, now: datetime) -> List[Challenge]:
        return [
            c for c in await self.list_challenges(status=ChallengeStatus.ACTIVE)
            if c.duration.end_date < now
        ]

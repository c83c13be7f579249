"""
Gamification store interface

Achievement definitions and challenges are aggregates: they are read whole,
changed in memory and written back whole. Every save is version-checked:
the stored version must still equal the version that was read, otherwise
StaleWriteError is raised and nothing is written. A successful save bumps
the version and returns the stored copy.
"""

from datetime import datetime
from typing import List, Optional

from studyhub.models.achievement import AchievementDefinition, TriggerType, UserProgress
from studyhub.models.challenge import Challenge, ChallengeStatus


class GamificationStore:
    """Persistence for achievement definitions, user progress and challenges"""

    # Achievements ---------------------------------------------------------

    async def add_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        raise NotImplementedError

    async def get_achievement(self, achievement_id: str) -> AchievementDefinition:
        raise NotImplementedError

    async def list_achievements(
        self,
        group_id: Optional[str] = None,
        trigger_type: Optional[TriggerType] = None
    ) -> List[AchievementDefinition]:
        """Active definitions that are global or owned by group_id"""
        raise NotImplementedError

    async def save_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        raise NotImplementedError

    # User progress --------------------------------------------------------

    async def get_user_progress(
        self,
        user_id: str,
        achievement_id: str,
        group_id: Optional[str] = None
    ) -> Optional[UserProgress]:
        raise NotImplementedError

    async def save_user_progress(self, progress: UserProgress) -> None:
        raise NotImplementedError

    async def list_user_progress(
        self,
        user_id: str,
        completed: Optional[bool] = None,
        group_id: Optional[str] = None
    ) -> List[UserProgress]:
        raise NotImplementedError

    async def list_completed_progress(self, achievement_id: str) -> List[UserProgress]:
        raise NotImplementedError

    # Challenges -----------------------------------------------------------

    async def add_challenge(self, challenge: Challenge) -> Challenge:
        raise NotImplementedError

    async def get_challenge(self, challenge_id: str) -> Challenge:
        raise NotImplementedError

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        raise NotImplementedError

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        group_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[Challenge]:
        """Challenges marked is_active, ordered by end date"""
        raise NotImplementedError

    async def list_expired_challenges(self, now: datetime) -> List[Challenge]:
        """Active challenges whose end date is before now"""
        raise NotImplementedError

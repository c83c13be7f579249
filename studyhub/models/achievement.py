"""Achievement models for gamification"""
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Any
from datetime import datetime
from uuid import uuid4

from studyhub.utils.datetime_helpers import ensure_utc


class AchievementCategory(str, Enum):
    """Achievement categories"""
    STUDY_TIME = "study_time"
    CONSISTENCY = "consistency"
    COLLABORATION = "collaboration"
    KNOWLEDGE = "knowledge"
    SOCIAL = "social"
    MILESTONE = "milestone"
    CHALLENGE = "challenge"
    SPECIAL = "special"


class AchievementKind(str, Enum):
    """What the achievement grants when earned"""
    BADGE = "badge"
    TITLE = "title"
    REWARD = "reward"
    POINTS = "points"


class AchievementRarity(str, Enum):
    """Achievement rarity, doubling as a points multiplier"""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def multiplier(self) -> int:
        return RARITY_MULTIPLIERS[self]


RARITY_MULTIPLIERS = {
    AchievementRarity.COMMON: 1,
    AchievementRarity.UNCOMMON: 2,
    AchievementRarity.RARE: 3,
    AchievementRarity.EPIC: 5,
    AchievementRarity.LEGENDARY: 10,
}


class TriggerType(str, Enum):
    """Activity metric an achievement criterion measures"""
    STUDY_HOURS_TOTAL = "study_hours_total"
    STUDY_HOURS_DAILY = "study_hours_daily"
    STUDY_STREAK = "study_streak"
    GOALS_COMPLETED = "goals_completed"
    SESSIONS_ATTENDED = "sessions_attended"
    RESOURCES_SHARED = "resources_shared"
    HELP_PROVIDED = "help_provided"
    CHALLENGES_WON = "challenges_won"
    GROUP_CONTRIBUTIONS = "group_contributions"
    SUBJECT_MASTERY = "subject_mastery"
    CUSTOM = "custom"


class Timeframe(str, Enum):
    """Window a metric is summed over before comparison to the target"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all-time"


class Visibility(str, Enum):
    PUBLIC = "public"
    GROUP = "group"
    PRIVATE = "private"


class CriteriaConditions(BaseModel):
    """Optional filters applied while evaluating a criterion"""
    subjects: list[str] = Field(default_factory=list)
    challenge_types: list[str] = Field(default_factory=list)
    group_types: list[str] = Field(default_factory=list)
    minimum_duration: Optional[float] = None  # minutes
    consecutive_days: Optional[int] = None
    additional_criteria: Optional[dict[str, Any]] = None


class AchievementCriteria(BaseModel):
    """Declarative rule: trigger_type measured over timeframe must reach target_value"""
    trigger_type: TriggerType
    target_value: float
    timeframe: Timeframe = Timeframe.ALL_TIME
    conditions: CriteriaConditions = Field(default_factory=CriteriaConditions)


class Badge(BaseModel):
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None


class Unlock(BaseModel):
    type: str
    description: Optional[str] = None


class AchievementReward(BaseModel):
    points: int = 0
    title: Optional[str] = None
    badge: Optional[Badge] = None
    unlocks: list[Unlock] = Field(default_factory=list)


class Earner(BaseModel):
    user_id: str
    earned_at: datetime

    @field_validator('earned_at')
    @classmethod
    def normalize_earned_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class AchievementStats(BaseModel):
    """Aggregate award statistics kept on the definition"""
    total_earned: int = 0
    first_earned_by: Optional[Earner] = None
    recent_earners: list[Earner] = Field(default_factory=list)  # newest first


class AchievementDefinition(BaseModel):
    """Achievement definition"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(..., max_length=100)
    description: str = Field(..., max_length=500)
    icon: str
    color: str = "#4F46E5"
    category: AchievementCategory
    kind: AchievementKind = AchievementKind.BADGE
    rarity: AchievementRarity = AchievementRarity.COMMON
    criteria: AchievementCriteria
    reward: AchievementReward = Field(default_factory=AchievementReward)
    is_active: bool = True
    is_global: bool = True
    group_id: Optional[str] = None  # required when is_global is False
    created_by: Optional[str] = None
    stats: AchievementStats = Field(default_factory=AchievementStats)
    version: int = 0

    @property
    def rarity_points(self) -> int:
        """Reward points scaled by the rarity multiplier"""
        return self.reward.points * self.rarity.multiplier


class ProgressContext(BaseModel):
    trigger_event: Optional[str] = None
    related_data: Optional[dict[str, Any]] = None


class UserProgress(BaseModel):
    """
    A user's progress toward one achievement (per group when the
    achievement is group-scoped). Once completed it is never reset.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    achievement_id: str
    group_id: Optional[str] = None
    current_value: float = 0
    target_value: float
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    context: ProgressContext = Field(default_factory=ProgressContext)
    visibility: Visibility = Visibility.PUBLIC
    is_displayed: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('completed_at', 'created_at', 'updated_at')
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def progress_percentage(self) -> int:
        if self.target_value == 0:
            return 0
        return max(0, min(100, round(self.current_value / self.target_value * 100)))


class ProgressResult(BaseModel):
    """Outcome of evaluating one criterion for one user"""
    current_value: float
    target_value: float
    is_completed: bool
    progress_percentage: int


class NewAchievement(BaseModel):
    """An achievement earned by the current check"""
    achievement: AchievementDefinition
    progress: UserProgress
    earned_at: datetime

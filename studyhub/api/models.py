"""Pydantic models for API request/response validation"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from studyhub.models.achievement import (
    AchievementCategory,
    AchievementCriteria,
    AchievementDefinition,
    AchievementKind,
    AchievementRarity,
    AchievementReward,
    NewAchievement,
    TriggerType,
    UserProgress,
)
from studyhub.models.challenge import (
    Challenge,
    ChallengeDuration,
    ChallengeMilestone,
    ChallengeMode,
    ChallengeRewards,
    ChallengeSettings,
    ChallengeType,
    LeaderboardEntry,
    ParticipantStatus,
    TargetMetrics,
    TeamInfo,
)


class AchievementCreateRequest(BaseModel):
    """Request to define an achievement"""
    name: str = Field(..., max_length=100)
    description: str = Field(..., max_length=500)
    icon: str = Field(..., description="Emoji or icon name")
    color: str = "#4F46E5"
    category: AchievementCategory
    kind: AchievementKind = AchievementKind.BADGE
    rarity: AchievementRarity = AchievementRarity.COMMON
    criteria: AchievementCriteria
    reward: AchievementReward = Field(default_factory=AchievementReward)
    is_global: bool = True
    group_id: Optional[str] = None
    created_by: Optional[str] = None

    def to_definition(self) -> AchievementDefinition:
        return AchievementDefinition(**self.model_dump())


class AchievementCheckRequest(BaseModel):
    """Request to evaluate a user's eligible achievements"""
    group_id: Optional[str] = Field(default=None, description="Group context of the triggering activity")
    trigger_type: Optional[TriggerType] = Field(default=None, description="Only evaluate this trigger type")
    trigger_event: Optional[str] = Field(default=None, description="Event recorded on earned progress")


class AchievementCheckResponse(BaseModel):
    """Achievements earned by a check"""
    user_id: str
    new_achievements: List[NewAchievement]
    timestamp: datetime


class UserAchievementItem(BaseModel):
    achievement: AchievementDefinition
    progress: UserProgress


class UserAchievementsResponse(BaseModel):
    """A user's achievement progress"""
    user_id: str
    achievements: List[UserAchievementItem]


class ChallengeCreateRequest(BaseModel):
    """Request to create a draft challenge"""
    title: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    group_id: str
    created_by: str
    challenge_type: ChallengeType
    challenge_mode: ChallengeMode = ChallengeMode.INDIVIDUAL
    duration: ChallengeDuration
    target_metrics: TargetMetrics = Field(default_factory=TargetMetrics)
    rules: Optional[str] = Field(default=None, max_length=2000)
    rewards: ChallengeRewards = Field(default_factory=ChallengeRewards)
    settings: ChallengeSettings = Field(default_factory=ChallengeSettings)
    milestones: List[ChallengeMilestone] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    def to_challenge(self) -> Challenge:
        return Challenge(**self.model_dump())


class JoinChallengeRequest(BaseModel):
    """Request to join a challenge"""
    user_id: str = Field(..., description="User identifier")
    team: Optional[TeamInfo] = Field(default=None, description="Team for team-mode challenges")


class ProgressUpdateRequest(BaseModel):
    """Absolute progress value for a participant"""
    value: float = Field(..., ge=0, description="New progress value (not an increment)")
    milestone: Optional[float] = Field(default=None, description="Milestone value reached, if any")


class ProgressUpdateResponse(BaseModel):
    """Result of a progress update"""
    challenge_id: str
    user_id: str
    previous_value: float
    current_value: float
    status: ParticipantStatus
    rank: int
    completed: bool
    milestones_reached: List[str]


class EndChallengeResponse(BaseModel):
    challenge_id: str
    winner_id: Optional[str] = None


class LeaderboardResponse(BaseModel):
    challenge_id: str
    leaderboard: List[LeaderboardEntry]


class SweepResponse(BaseModel):
    """Result of an expiry sweep"""
    completed: int
    timestamp: datetime


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    backend: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error response body"""
    error: str
    message: str
    user_message: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: Optional[str] = None

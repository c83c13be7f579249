"""Group challenge models"""
import math
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

import pytz
from pydantic import BaseModel, Field, field_validator, model_validator

from studyhub.utils.datetime_helpers import ensure_utc, seconds_until


class ChallengeType(str, Enum):
    """Metric a challenge is scored on"""
    STUDY_HOURS = "study_hours"
    DAILY_STREAK = "daily_streak"
    GOALS_COMPLETED = "goals_completed"
    RESOURCES_SHARED = "resources_shared"
    SESSIONS_ATTENDED = "sessions_attended"
    SUBJECT_MASTERY = "subject_mastery"
    CONSISTENCY = "consistency"
    PEER_HELP = "peer_help"
    CUSTOM = "custom"


class ChallengeMode(str, Enum):
    INDIVIDUAL = "individual"
    TEAM = "team"
    GROUP_VS_GROUP = "group_vs_group"


class ChallengeStatus(str, Enum):
    """Challenge lifecycle: draft -> active -> completed | cancelled"""
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ChallengeStatus.COMPLETED, ChallengeStatus.CANCELLED)


class ParticipantStatus(str, Enum):
    REGISTERED = "registered"
    ACTIVE = "active"
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"


class ChallengeDuration(BaseModel):
    """Closed time window of a challenge"""
    start_date: datetime
    end_date: datetime
    timezone: str = "UTC"

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure valid IANA timezone"""
        try:
            pytz.timezone(v)
        except pytz.exceptions.UnknownTimeZoneError:
            raise ValueError(f"Invalid timezone: '{v}'. Use IANA timezone (e.g., 'Europe/Stockholm')")
        return v

    @model_validator(mode='after')
    def check_window(self) -> 'ChallengeDuration':
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self

    @property
    def duration_days(self) -> int:
        return math.ceil((self.end_date - self.start_date).total_seconds() / 86400)

    def time_remaining(self, now: Optional[datetime] = None) -> int:
        """Seconds left until end_date, never negative"""
        return max(0, seconds_until(self.end_date, now))


class CustomMetric(BaseModel):
    name: Optional[str] = None
    unit: Optional[str] = None
    target_value: Optional[float] = None


class TargetMetrics(BaseModel):
    """Per-type targets; exactly one is relevant for a given challenge_type"""
    target_study_hours: Optional[float] = Field(None, ge=0)
    target_streak_days: Optional[int] = Field(None, ge=1)
    target_goals_count: Optional[int] = Field(None, ge=1)
    target_subjects: list[str] = Field(default_factory=list)
    target_completion_percentage: Optional[float] = Field(None, ge=0, le=100)
    target_sessions_count: Optional[int] = Field(None, ge=1)
    target_resources_count: Optional[int] = Field(None, ge=1)
    target_help_actions: Optional[int] = Field(None, ge=1)
    target_consistency_days: Optional[int] = Field(None, ge=1)
    custom_metric: Optional[CustomMetric] = None


class ChallengeBadge(BaseModel):
    name: str
    icon: Optional[str] = None
    description: Optional[str] = None


class ChallengeRewards(BaseModel):
    points: int = 0
    badges: list[ChallengeBadge] = Field(default_factory=list)
    custom_rewards: list[str] = Field(default_factory=list)


class ChallengeSettings(BaseModel):
    is_public: bool = True
    allow_late_join: bool = False
    max_participants: int = Field(100, ge=2)
    require_approval: bool = False
    auto_start: bool = True
    show_leaderboard: bool = True
    allow_teams: bool = False
    team_size: int = Field(2, ge=2, le=10)


class TeamInfo(BaseModel):
    name: str
    members: list[str] = Field(default_factory=list)


class MilestoneRecord(BaseModel):
    """A milestone a participant reached, in the order reached"""
    value: float
    achieved_at: datetime
    is_completed: bool = True


class ParticipantProgress(BaseModel):
    current_value: float = 0
    milestones: list[MilestoneRecord] = Field(default_factory=list)
    last_updated: datetime

    @field_validator('last_updated')
    @classmethod
    def normalize_last_updated(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Participant(BaseModel):
    user_id: str
    joined_at: datetime
    status: ParticipantStatus = ParticipantStatus.REGISTERED
    progress: ParticipantProgress
    rank: int = 0
    completed_at: Optional[datetime] = None
    team: Optional[TeamInfo] = None

    @field_validator('joined_at', 'completed_at')
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class LeaderboardEntry(BaseModel):
    """Cached ranking row; always recomputable from the participants"""
    user_id: str
    value: float
    rank: int
    is_winner: bool = False
    achieved_at: Optional[datetime] = None


class MilestoneReward(BaseModel):
    points: Optional[int] = None
    badge: Optional[str] = None
    description: Optional[str] = None


class MilestoneAchiever(BaseModel):
    user_id: str
    achieved_at: datetime


class ChallengeMilestone(BaseModel):
    """Intermediate target whose crossing is recorded separately from completion"""
    name: str
    description: Optional[str] = None
    target_value: float
    reward: Optional[MilestoneReward] = None
    achievers: list[MilestoneAchiever] = Field(default_factory=list)

    def achieved_by(self, user_id: str) -> bool:
        return any(a.user_id == user_id for a in self.achievers)


class ChallengeStats(BaseModel):
    total_participants: int = 0
    active_participants: int = 0
    completed_participants: int = 0
    average_progress: float = 0
    top_score: float = 0
    engagement_rate: int = 0
    overall_progress: int = 0


class Challenge(BaseModel):
    """Group challenge aggregate: the unit of read-modify-write"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(..., max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    group_id: str
    created_by: str
    challenge_type: ChallengeType
    challenge_mode: ChallengeMode = ChallengeMode.INDIVIDUAL
    duration: ChallengeDuration
    target_metrics: TargetMetrics = Field(default_factory=TargetMetrics)
    rules: Optional[str] = Field(None, max_length=2000)
    rewards: ChallengeRewards = Field(default_factory=ChallengeRewards)
    participants: list[Participant] = Field(default_factory=list)
    status: ChallengeStatus = ChallengeStatus.DRAFT
    settings: ChallengeSettings = Field(default_factory=ChallengeSettings)
    leaderboard: list[LeaderboardEntry] = Field(default_factory=list)
    milestones: list[ChallengeMilestone] = Field(default_factory=list)
    stats: ChallengeStats = Field(default_factory=ChallengeStats)
    tags: list[str] = Field(default_factory=list)
    is_active: bool = True
    version: int = 0

    def find_participant(self, user_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def roster(self) -> list[Participant]:
        """Participants that count against capacity"""
        return [p for p in self.participants if p.status != ParticipantStatus.WITHDRAWN]

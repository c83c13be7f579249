"""Activity facts produced by the study-tracking side of the app"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from studyhub.utils.datetime_helpers import ensure_utc


class StudySession(BaseModel):
    """A finished study session"""
    user_id: str
    start_time: datetime
    duration_minutes: float = Field(ge=0)
    subject: Optional[str] = None

    @field_validator('start_time')
    @classmethod
    def normalize_start_time(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class SharedResource(BaseModel):
    user_id: str
    created_at: datetime
    group_id: Optional[str] = None

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ChallengeWin(BaseModel):
    user_id: str
    challenge_id: str
    won_at: datetime

    @field_validator('won_at')
    @classmethod
    def normalize_won_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

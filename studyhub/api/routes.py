"""API routes for the gamification engine"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from studyhub.api.models import (
    AchievementCreateRequest,
    AchievementCheckRequest, AchievementCheckResponse,
    UserAchievementsResponse,
    ChallengeCreateRequest,
    JoinChallengeRequest,
    ProgressUpdateRequest, ProgressUpdateResponse,
    EndChallengeResponse, LeaderboardResponse, SweepResponse,
    HealthCheckResponse, ErrorResponse
)
from studyhub.config import STORE_BACKEND
from studyhub.models.achievement import AchievementDefinition, UserProgress
from studyhub.models.challenge import Challenge, ChallengeStatus
from studyhub.services.container import get_container
from studyhub.services.gamification_service import GamificationService
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def get_gamification_service() -> GamificationService:
    """FastAPI dependency returning the container's GamificationService"""
    return get_container().gamification_service


@router.get("/api/health", response_model=HealthCheckResponse)
async def health_check():
    """Health check endpoint"""
    return HealthCheckResponse(status="healthy", backend=STORE_BACKEND, timestamp=now_utc())


# ==========================================
# Achievements
# ==========================================

@router.post(
    "/api/v1/achievements",
    response_model=AchievementDefinition,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES
)
async def create_achievement(
    request: AchievementCreateRequest,
    service: GamificationService = Depends(get_gamification_service)
):
    """Define a new achievement"""
    return await service.create_achievement(request.to_definition())


@router.get(
    "/api/v1/achievements/{achievement_id}/leaderboard",
    response_model=List[UserProgress],
    responses=ERROR_RESPONSES
)
async def achievement_leaderboard(
    achievement_id: str,
    limit: int = Query(10, ge=1, le=100),
    service: GamificationService = Depends(get_gamification_service)
):
    """Earliest earners of an achievement"""
    return await service.get_achievement_leaderboard(achievement_id, limit)


@router.post(
    "/api/v1/users/{user_id}/achievements/check",
    response_model=AchievementCheckResponse,
    responses=ERROR_RESPONSES
)
async def check_achievements(
    user_id: str,
    request: AchievementCheckRequest,
    service: GamificationService = Depends(get_gamification_service)
):
    """Evaluate a user's eligible achievements and award new ones"""
    earned = await service.check_user_achievements(
        user_id,
        group_id=request.group_id,
        trigger_type=request.trigger_type,
        trigger_event=request.trigger_event
    )
    return AchievementCheckResponse(user_id=user_id, new_achievements=earned, timestamp=now_utc())


@router.get("/api/v1/users/{user_id}/achievements", response_model=UserAchievementsResponse)
async def list_user_achievements(
    user_id: str,
    completed: Optional[bool] = None,
    group_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: GamificationService = Depends(get_gamification_service)
):
    """A user's achievement progress, newest first"""
    achievements = await service.get_user_achievements(user_id, completed, group_id, limit, offset)
    return UserAchievementsResponse(user_id=user_id, achievements=achievements)


@router.get("/api/v1/users/{user_id}/challenges", response_model=List[Challenge])
async def list_user_challenges(
    user_id: str,
    challenge_status: Optional[ChallengeStatus] = Query(None, alias="status"),
    service: GamificationService = Depends(get_gamification_service)
):
    """Challenges the user has joined, soonest-ending first"""
    return await service.find_user_challenges(user_id, challenge_status)


# ==========================================
# Challenges
# ==========================================

@router.post(
    "/api/v1/challenges",
    response_model=Challenge,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES
)
async def create_challenge(
    request: ChallengeCreateRequest,
    service: GamificationService = Depends(get_gamification_service)
):
    """Create a draft challenge"""
    return await service.create_challenge(request.to_challenge())


@router.post("/api/v1/challenges/sweep", response_model=SweepResponse)
async def sweep_challenges(service: GamificationService = Depends(get_gamification_service)):
    """Complete every active challenge whose end date has passed"""
    completed = await service.sweep_expired_challenges()
    return SweepResponse(completed=completed, timestamp=now_utc())


@router.get("/api/v1/groups/{group_id}/challenges", response_model=List[Challenge])
async def list_group_challenges(
    group_id: str,
    service: GamificationService = Depends(get_gamification_service)
):
    """Active challenges of a group, soonest-ending first"""
    return await service.find_active_group_challenges(group_id)


@router.get("/api/v1/challenges/{challenge_id}", response_model=Challenge, responses=ERROR_RESPONSES)
async def get_challenge(
    challenge_id: str,
    service: GamificationService = Depends(get_gamification_service)
):
    return await service.get_challenge(challenge_id)


@router.get(
    "/api/v1/challenges/{challenge_id}/leaderboard",
    response_model=LeaderboardResponse,
    responses=ERROR_RESPONSES
)
async def get_leaderboard(
    challenge_id: str,
    service: GamificationService = Depends(get_gamification_service)
):
    leaderboard = await service.get_leaderboard(challenge_id)
    return LeaderboardResponse(challenge_id=challenge_id, leaderboard=leaderboard)


@router.post(
    "/api/v1/challenges/{challenge_id}/participants",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**ERROR_RESPONSES, 403: {"model": ErrorResponse}}
)
async def join_challenge(
    challenge_id: str,
    request: JoinChallengeRequest,
    service: GamificationService = Depends(get_gamification_service)
):
    """Join a challenge (or rejoin after withdrawing)"""
    await service.join_challenge(challenge_id, request.user_id, request.team)


@router.delete(
    "/api/v1/challenges/{challenge_id}/participants/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES
)
async def leave_challenge(
    challenge_id: str,
    user_id: str,
    service: GamificationService = Depends(get_gamification_service)
):
    """Withdraw from a challenge"""
    await service.leave_challenge(challenge_id, user_id)


@router.put(
    "/api/v1/challenges/{challenge_id}/participants/{user_id}/progress",
    response_model=ProgressUpdateResponse,
    responses=ERROR_RESPONSES
)
async def update_progress(
    challenge_id: str,
    user_id: str,
    request: ProgressUpdateRequest,
    service: GamificationService = Depends(get_gamification_service)
):
    """Set a participant's absolute progress value"""
    update = await service.update_challenge_progress(challenge_id, user_id, request.value, request.milestone)
    return ProgressUpdateResponse(
        challenge_id=challenge_id,
        user_id=user_id,
        previous_value=update.previous_value,
        current_value=update.participant.progress.current_value,
        status=update.participant.status,
        rank=update.participant.rank,
        completed=update.completed,
        milestones_reached=[m.name for m in update.crossed_milestones]
    )


@router.post(
    "/api/v1/challenges/{challenge_id}/start",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES
)
async def start_challenge(
    challenge_id: str,
    service: GamificationService = Depends(get_gamification_service)
):
    await service.start_challenge(challenge_id)


@router.post(
    "/api/v1/challenges/{challenge_id}/end",
    response_model=EndChallengeResponse,
    responses=ERROR_RESPONSES
)
async def end_challenge(
    challenge_id: str,
    service: GamificationService = Depends(get_gamification_service)
):
    winner_id = await service.end_challenge(challenge_id)
    return EndChallengeResponse(challenge_id=challenge_id, winner_id=winner_id)


@router.post(
    "/api/v1/challenges/{challenge_id}/cancel",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES
)
async def cancel_challenge(
    challenge_id: str,
    service: GamificationService = Depends(get_gamification_service)
):
    await service.cancel_challenge(challenge_id)

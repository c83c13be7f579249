"""
Gamification engine for StudyHub

- Achievement criteria evaluation over daily/weekly/monthly/all-time windows
- Idempotent achievement awarding with aggregate stats
- Group challenges: roster, lifecycle, progress and milestones
- Deterministic leaderboards
- Expiry sweep for challenges past their end date
"""

from studyhub.gamification.criteria import evaluate
from studyhub.gamification.achievement_ledger import (
    check_and_award,
    get_user_achievements,
    get_achievement_leaderboard,
)
from studyhub.gamification.leaderboard import rank_participants, refresh_derived
from studyhub.gamification.progress import update_progress, target_value_for_type
from studyhub.gamification.sweeper import sweep_expired_challenges

__all__ = [
    "evaluate",
    "check_and_award",
    "get_user_achievements",
    "get_achievement_leaderboard",
    "rank_participants",
    "refresh_derived",
    "update_progress",
    "target_value_for_type",
    "sweep_expired_challenges",
]

"""
Activity Sources

The gamification engine never writes activity data. It reads facts through
an ActivitySource:

- study sessions (duration, start time, subject) by user and time range
- the user's running streak counter
- the user's lifetime completed-goal counter
- shared resources by user / group / time range
- won challenges by user / time range

InMemoryActivitySource backs tests and local runs; the PostgreSQL source
lives in studyhub.db.queries.activity.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from studyhub.models.activity import ChallengeWin, SharedResource, StudySession

logger = logging.getLogger(__name__)


class ActivitySource:
    """Read-only access to activity facts"""

    async def study_sessions(
        self,
        user_id: str,
        since: datetime,
        subjects: Optional[List[str]] = None
    ) -> List[StudySession]:
        """Sessions started at or after `since`, optionally limited to subjects"""
        raise NotImplementedError

    async def current_streak(self, user_id: str) -> int:
        raise NotImplementedError

    async def goals_completed(self, user_id: str) -> int:
        raise NotImplementedError

    async def resources_shared(
        self,
        user_id: str,
        since: datetime,
        group_id: Optional[str] = None
    ) -> int:
        raise NotImplementedError

    async def challenges_won(self, user_id: str, since: datetime) -> int:
        raise NotImplementedError


class InMemoryActivitySource(ActivitySource):
    """In-process activity facts (not persisted)"""

    def __init__(self):
        self._sessions: Dict[str, List[StudySession]] = defaultdict(list)
        self._streaks: Dict[str, int] = {}
        self._goals: Dict[str, int] = {}
        self._resources: Dict[str, List[SharedResource]] = defaultdict(list)
        self._wins: Dict[str, List[ChallengeWin]] = defaultdict(list)

    # Recording ------------------------------------------------------------

    def add_session(self, session: StudySession) -> None:
        self._sessions[session.user_id].append(session)

    def set_streak(self, user_id: str, days: int) -> None:
        self._streaks[user_id] = days

    def set_goals_completed(self, user_id: str, count: int) -> None:
        self._goals[user_id] = count

    def add_shared_resource(self, resource: SharedResource) -> None:
        self._resources[resource.user_id].append(resource)

    def add_challenge_win(self, win: ChallengeWin) -> None:
        self._wins[win.user_id].append(win)

    def clear(self) -> None:
        self._sessions.clear()
        self._streaks.clear()
        self._goals.clear()
        self._resources.clear()
        self._wins.clear()

    # ActivitySource -------------------------------------------------------

    async def study_sessions(
        self,
        user_id: str,
        since: datetime,
        subjects: Optional[List[str]] = None
    ) -> List[StudySession]:
        sessions = [s for s in self._sessions.get(user_id, []) if s.start_time >= since]
        if subjects:
            sessions = [s for s in sessions if s.subject in subjects]
        return sessions

    async def current_streak(self, user_id: str) -> int:
        return self._streaks.get(user_id, 0)

    async def goals_completed(self, user_id: str) -> int:
        return self._goals.get(user_id, 0)

    async def resources_shared(
        self,
        user_id: str,
        since: datetime,
        group_id: Optional[str] = None
    ) -> int:
        return sum(
            1 for r in self._resources.get(user_id, [])
            if r.created_at >= since and (group_id is None or r.group_id == group_id)
        )

    async def challenges_won(self, user_id: str, since: datetime) -> int:
        return sum(1 for w in self._wins.get(user_id, []) if w.won_at >= since)

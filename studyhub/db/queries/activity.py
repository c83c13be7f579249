"""Activity fact queries (PostgreSQL activity source)"""
import logging
from datetime import datetime
from typing import List, Optional

import psycopg
from psycopg.types.json import Jsonb

from studyhub.db.connection import Database
from studyhub.exceptions import wrap_external_exception
from studyhub.gamification.activity import ActivitySource
from studyhub.models.activity import StudySession

logger = logging.getLogger(__name__)


class PostgresActivitySource(ActivitySource):
    """Reads activity facts written by the study-tracking side of the app"""

    def __init__(self, database: Database):
        self.db = database

    async def _fetchone(self, operation: str, user_id: str, query: str, params: tuple) -> Optional[dict]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation=operation, user_id=user_id) from e

    async def study_sessions(
        self,
        user_id: str,
        since: datetime,
        subjects: Optional[List[str]] = None
    ) -> List[StudySession]:
        query = """
            SELECT user_id, subject, start_time, duration_minutes
            FROM study_sessions
            WHERE user_id = %s AND start_time >= %s
        """
        params: list = [user_id, since]
        if subjects:
            query += " AND subject = ANY(%s)"
            params.append(list(subjects))

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, tuple(params))
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="study_sessions", user_id=user_id) from e

        logger.debug(f"Fetched {len(rows)} study sessions for user {user_id} since {since.isoformat()}")
        return [StudySession.model_validate(row) for row in rows]

    async def current_streak(self, user_id: str) -> int:
        row = await self._fetchone(
            "current_streak",
            user_id,
            "SELECT current_streak FROM user_progress_stats WHERE user_id = %s",
            (user_id,)
        )
        return int(row["current_streak"] or 0) if row else 0

    async def goals_completed(self, user_id: str) -> int:
        row = await self._fetchone(
            "goals_completed",
            user_id,
            "SELECT total_goals_completed FROM user_progress_stats WHERE user_id = %s",
            (user_id,)
        )
        return int(row["total_goals_completed"] or 0) if row else 0

    async def resources_shared(
        self,
        user_id: str,
        since: datetime,
        group_id: Optional[str] = None
    ) -> int:
        query = "SELECT COUNT(*) AS count FROM shared_resources WHERE shared_by = %s AND created_at >= %s"
        params: list = [user_id, since]
        if group_id:
            query += " AND group_id = %s"
            params.append(group_id)
        row = await self._fetchone("resources_shared", user_id, query, tuple(params))
        return int(row["count"]) if row else 0

    async def challenges_won(self, user_id: str, since: datetime) -> int:
        row = await self._fetchone(
            "challenges_won",
            user_id,
            """
            SELECT COUNT(*) AS count FROM challenges
            WHERE status = 'completed'
              AND doc -> 'leaderboard' @> %s
              AND updated_at >= %s
            """,
            (Jsonb([{"user_id": user_id, "is_winner": True}]), since)
        )
        return int(row["count"]) if row else 0

"""Gamification database queries (PostgreSQL store)"""
import logging
from datetime import datetime
from typing import List, Optional

import psycopg
from psycopg.types.json import Jsonb

from studyhub.db.connection import Database
from studyhub.exceptions import RecordNotFoundError, StaleWriteError, wrap_external_exception
from studyhub.gamification.store import GamificationStore
from studyhub.models.achievement import AchievementDefinition, TriggerType, UserProgress
from studyhub.models.challenge import Challenge, ChallengeStatus

logger = logging.getLogger(__name__)


def _document(model) -> Jsonb:
    # version lives in its own column
    return Jsonb(model.model_dump(mode="json", exclude={"version"}))


def _achievement_from_row(row: dict) -> AchievementDefinition:
    return AchievementDefinition.model_validate({**row["doc"], "version": row["version"]})


def _challenge_from_row(row: dict) -> Challenge:
    return Challenge.model_validate({**row["doc"], "version": row["version"]})


def _group_key(group_id: Optional[str]) -> str:
    return group_id or ""


class PostgresGamificationStore(GamificationStore):
    """GamificationStore over JSONB documents with a version column"""

    def __init__(self, database: Database):
        self.db = database

    # ==========================================
    # Achievements
    # ==========================================

    async def add_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO achievements (id, group_id, is_global, is_active, trigger_type, doc, version)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        """,
                        (
                            definition.id,
                            definition.group_id,
                            definition.is_global,
                            definition.is_active,
                            definition.criteria.trigger_type.value,
                            _document(definition),
                            definition.version,
                        )
                    )
                    await conn.commit()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="add_achievement", context={"achievement_id": definition.id}) from e

        logger.info(f"Created achievement {definition.id} ({definition.name})")
        return definition

    async def get_achievement(self, achievement_id: str) -> AchievementDefinition:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT doc, version FROM achievements WHERE id = %s",
                        (achievement_id,)
                    )
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_achievement", context={"achievement_id": achievement_id}) from e

        if not row:
            raise RecordNotFoundError(
                f"Achievement {achievement_id} not found",
                record_type="Achievement",
                record_id=achievement_id
            )
        return _achievement_from_row(row)

    async def list_achievements(
        self,
        group_id: Optional[str] = None,
        trigger_type: Optional[TriggerType] = None
    ) -> List[AchievementDefinition]:
        query = """
            SELECT doc, version FROM achievements
            WHERE is_active = TRUE
              AND (is_global = TRUE OR (%s::text IS NOT NULL AND group_id = %s))
        """
        params: list = [group_id, group_id]
        if trigger_type:
            query += " AND trigger_type = %s"
            params.append(trigger_type.value)
        query += " ORDER BY id"

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, tuple(params))
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_achievements", context={"group_id": group_id}) from e

        return [_achievement_from_row(row) for row in rows]

    async def save_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        UPDATE achievements
                        SET doc = %s,
                            is_active = %s,
                            version = version + 1,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE id = %s AND version = %s
                        RETURNING version
                        """,
                        (_document(definition), definition.is_active, definition.id, definition.version)
                    )
                    row = await cur.fetchone()
                    await conn.commit()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="save_achievement", context={"achievement_id": definition.id}) from e

        if not row:
            # Distinguish a missing record from a stale version
            await self.get_achievement(definition.id)
            raise StaleWriteError(
                f"Achievement {definition.id} changed since it was read",
                record_type="Achievement",
                record_id=definition.id,
                expected_version=definition.version
            )
        return definition.model_copy(update={"version": row["version"]})

    # ==========================================
    # User progress
    # ==========================================

    async def get_user_progress(
        self,
        user_id: str,
        achievement_id: str,
        group_id: Optional[str] = None
    ) -> Optional[UserProgress]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT doc FROM user_achievement_progress
                        WHERE user_id = %s AND achievement_id = %s AND group_key = %s
                        """,
                        (user_id, achievement_id, _group_key(group_id))
                    )
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_user_progress", user_id=user_id) from e

        return UserProgress.model_validate(row["doc"]) if row else None

    async def save_user_progress(self, progress: UserProgress) -> None:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO user_achievement_progress
                            (user_id, achievement_id, group_key, is_completed, completed_at, doc)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        ON CONFLICT (user_id, achievement_id, group_key) DO UPDATE
                        SET is_completed = EXCLUDED.is_completed,
                            completed_at = EXCLUDED.completed_at,
                            doc = EXCLUDED.doc,
                            updated_at = CURRENT_TIMESTAMP
                        """,
                        (
                            progress.user_id,
                            progress.achievement_id,
                            _group_key(progress.group_id),
                            progress.is_completed,
                            progress.completed_at,
                            Jsonb(progress.model_dump(mode="json")),
                        )
                    )
                    await conn.commit()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="save_user_progress", user_id=progress.user_id) from e

    async def list_user_progress(
        self,
        user_id: str,
        completed: Optional[bool] = None,
        group_id: Optional[str] = None
    ) -> List[UserProgress]:
        query = "SELECT doc FROM user_achievement_progress WHERE user_id = %s"
        params: list = [user_id]
        if completed is not None:
            query += " AND is_completed = %s"
            params.append(completed)
        if group_id is not None:
            query += " AND group_key = %s"
            params.append(group_id)

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, tuple(params))
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_user_progress", user_id=user_id) from e

        return [UserProgress.model_validate(row["doc"]) for row in rows]

    async def list_completed_progress(self, achievement_id: str) -> List[UserProgress]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT doc FROM user_achievement_progress
                        WHERE achievement_id = %s AND is_completed = TRUE
                        ORDER BY completed_at ASC
                        """,
                        (achievement_id,)
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_completed_progress") from e

        return [UserProgress.model_validate(row["doc"]) for row in rows]

    # ==========================================
    # Challenges
    # ==========================================

    async def add_challenge(self, challenge: Challenge) -> Challenge:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO challenges (id, group_id, status, end_date, is_active, doc, version)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        """,
                        (
                            challenge.id,
                            challenge.group_id,
                            challenge.status.value,
                            challenge.duration.end_date,
                            challenge.is_active,
                            _document(challenge),
                            challenge.version,
                        )
                    )
                    await conn.commit()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="add_challenge", context={"challenge_id": challenge.id}) from e

        logger.info(f"Created challenge {challenge.id} ({challenge.title})")
        return challenge

    async def get_challenge(self, challenge_id: str) -> Challenge:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT doc, version FROM challenges WHERE id = %s",
                        (challenge_id,)
                    )
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_challenge", context={"challenge_id": challenge_id}) from e

        if not row:
            raise RecordNotFoundError(
                f"Challenge {challenge_id} not found",
                record_type="Challenge",
                record_id=challenge_id
            )
        return _challenge_from_row(row)

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        UPDATE challenges
                        SET doc = %s,
                            status = %s,
                            end_date = %s,
                            is_active = %s,
                            version = version + 1,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE id = %s AND version = %s
                        RETURNING version
                        """,
                        (
                            _document(challenge),
                            challenge.status.value,
                            challenge.duration.end_date,
                            challenge.is_active,
                            challenge.id,
                            challenge.version,
                        )
                    )
                    row = await cur.fetchone()
                    await conn.commit()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="save_challenge", context={"challenge_id": challenge.id}) from e

        if not row:
            await self.get_challenge(challenge.id)
            raise StaleWriteError(
                f"Challenge {challenge.id} changed since it was read",
                record_type="Challenge",
                record_id=challenge.id,
                expected_version=challenge.version
            )
        return challenge.model_copy(update={"version": row["version"]})

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        group_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[Challenge]:
        query = "SELECT doc, version FROM challenges WHERE is_active = TRUE"
        params: list = []
        if status is not None:
            query += " AND status = %s"
            params.append(status.value)
        if group_id is not None:
            query += " AND group_id = %s"
            params.append(group_id)
        if user_id is not None:
            query += " AND doc -> 'participants' @> %s"
            params.append(Jsonb([{"user_id": user_id}]))
        query += " ORDER BY end_date ASC"

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, tuple(params))
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_challenges", user_id=user_id) from e

        return [_challenge_from_row(row) for row in rows]

    async def list_expired_challenges(self, now: datetime) -> List[Challenge]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT doc, version FROM challenges
                        WHERE status = 'active' AND is_active = TRUE AND end_date < %s
                        ORDER BY end_date ASC
                        """,
                        (now,)
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_expired_challenges") from e

        return [_challenge_from_row(row) for row in rows]

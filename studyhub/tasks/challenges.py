"""
Challenge maintenance tasks.

The sweep runs on the beat schedule defined in celery_app. Each run opens
its own connection pool because asyncio.run() starts a fresh event loop.
A worker process shares no state with the API, so the sweep only runs
against the postgres backend.
"""
import asyncio
import logging
from typing import Any, Dict

from studyhub.config import DATABASE_URL, STORE_BACKEND
from studyhub.db.connection import Database
from studyhub.services.container import build_backends
from studyhub.services.gamification_service import GamificationService
from studyhub.tasks.celery_app import celery_app
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


@celery_app.task(name="studyhub.tasks.challenges.sweep_expired")
def sweep_expired() -> Dict[str, Any]:
    """
    Complete every active challenge whose end date has passed.

    Returns:
        Dictionary with the number of challenges completed, whether the run
        was skipped, and the run time.
    """
    return asyncio.run(_sweep_expired_async())


async def _sweep_expired_async() -> Dict[str, Any]:
    if STORE_BACKEND != "postgres":
        logger.warning(f"Skipping expiry sweep: store backend '{STORE_BACKEND}' is not shared with workers")
        return {"completed": 0, "skipped": True, "ran_at": now_utc().isoformat()}

    database = Database(DATABASE_URL)
    await database.init_pool()

    try:
        store, activity = build_backends(STORE_BACKEND, database)
        service = GamificationService(store, activity)
        completed = await service.sweep_expired_challenges()
    finally:
        await database.close_pool()

    logger.info(f"Expiry sweep finished: {completed} challenge(s) completed")
    return {"completed": completed, "skipped": False, "ran_at": now_utc().isoformat()}

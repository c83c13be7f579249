"""
Expiry Sweep

Ends every active challenge whose end date has passed. The sweep has no
timer of its own; studyhub.tasks schedules it through Celery beat.
"""

import logging
from datetime import datetime
from typing import Optional

from studyhub.exceptions import StaleWriteError
from studyhub.gamification import lifecycle
from studyhub.gamification.store import GamificationStore
from studyhub.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


async def sweep_expired_challenges(store: GamificationStore, now: Optional[datetime] = None) -> int:
    """
    End all active challenges past their end date

    A challenge that changes concurrently is skipped and left for the next
    sweep.

    Returns:
        Number of challenges ended
    """
    now = now or now_utc()
    expired = await store.list_expired_challenges(now)
    processed = 0

    for challenge in expired:
        lifecycle.end(challenge, now)
        try:
            await store.save_challenge(challenge)
        except StaleWriteError:
            logger.warning(f"Challenge {challenge.id} changed during sweep; retrying next run")
            continue
        processed += 1

    logger.info(f"Expiry sweep ended {processed} of {len(expired)} expired challenges")
    return processed

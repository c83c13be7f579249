"""
Celery application configuration.

Beat schedule:
- Challenge expiry sweep: every SWEEP_INTERVAL_MINUTES (default 15)
"""
import logging
from datetime import timedelta

from celery import Celery
from celery.signals import setup_logging

from studyhub.config import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    LOG_LEVEL,
    SWEEP_INTERVAL_MINUTES,
)

celery_app = Celery(
    "studyhub",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=[
        "studyhub.tasks.challenges",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,

    beat_schedule={
        # Complete active challenges whose end date has passed
        "challenges-expiry-sweep": {
            "task": "studyhub.tasks.challenges.sweep_expired",
            "schedule": timedelta(minutes=SWEEP_INTERVAL_MINUTES),
        },
    },
)


@setup_logging.connect
def configure_logging(**kwargs):
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, LOG_LEVEL.upper())
    )

"""
Service Layer Package

Business logic services that sit between transports (REST API, Celery
tasks) and the gamification engine / stores.

- GamificationService: achievements, challenges, leaderboards, expiry sweeps
"""

from studyhub.services.container import ServiceContainer, get_container, init_container, build_backends
from studyhub.services.gamification_service import GamificationService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "build_backends",
    "GamificationService",
]

"""
Service Container - Dependency Injection Container

Simple DI container for the gamification service and its infrastructure.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from studyhub.gamification.activity import ActivitySource
from studyhub.gamification.store import GamificationStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    Infrastructure dependencies (store, activity source) are injected.
    """

    # Infrastructure dependencies (injected)
    store: GamificationStore
    activity: ActivitySource

    # Services (lazy-loaded via properties)
    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from studyhub.services.gamification_service import GamificationService
            self._gamification_service = GamificationService(self.store, self.activity)
            logger.debug("GamificationService instantiated")
        return self._gamification_service


# Global container instance (initialized at process start)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(store: GamificationStore, activity: ActivitySource) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        store: Gamification store
        activity: Activity source

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(store=store, activity=activity)

    logger.info(f"Service container initialized ({type(store).__name__}, {type(activity).__name__})")
    return _container


def build_backends(backend: str, database=None):
    """
    Create the store and activity source for a STORE_BACKEND value

    Args:
        backend: "memory" or "postgres"
        database: Database for the postgres backend (defaults to the global pool)

    Returns:
        (GamificationStore, ActivitySource)
    """
    if backend == "postgres":
        from studyhub.db.connection import db
        from studyhub.db.queries.activity import PostgresActivitySource
        from studyhub.db.queries.gamification import PostgresGamificationStore
        database = database or db
        return PostgresGamificationStore(database), PostgresActivitySource(database)

    from studyhub.gamification.activity import InMemoryActivitySource
    from studyhub.gamification.memory_store import InMemoryGamificationStore
    return InMemoryGamificationStore(), InMemoryActivitySource()

"""PostgreSQL implementations of the store and activity source"""

from studyhub.db.queries.activity import PostgresActivitySource
from studyhub.db.queries.gamification import PostgresGamificationStore

__all__ = ["PostgresActivitySource", "PostgresGamificationStore"]

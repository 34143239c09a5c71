"""Database connection handling."""
import asyncpg
import logging
from typing import List, Optional

from ..config.constants import DatabaseConfig
from ..core.errors import SourceUnavailableError
from .queries import TokenQueries

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Database manager with connection pooling."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.pool: Optional[asyncpg.Pool] = None
        self.queries: Optional[TokenQueries] = None

    async def initialize(self):
        """Initialize database connection pool."""
        self.pool = await asyncpg.create_pool(
            self.database_url,
            min_size=DatabaseConfig.MIN_POOL_SIZE,
            max_size=DatabaseConfig.MAX_POOL_SIZE,
            command_timeout=DatabaseConfig.COMMAND_TIMEOUT
        )
        self.queries = TokenQueries(self.pool)
        logger.info("Database pool initialized")

    async def get_active_token_addresses(self) -> List[str]:
        if self.queries is None:
            raise SourceUnavailableError("database pool is not initialized")
        try:
            return await self.queries.get_active_token_addresses()
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise SourceUnavailableError(f"active token query failed: {e}") from e

    async def get_stats(self) -> dict:
        """Pool and registry statistics for the stats report."""
        if self.pool is None or self.queries is None:
            return {}
        return {
            'active_tokens': await self.queries.count_active_tokens(),
            'pool_size': self.pool.get_size(),
            'pool_idle': self.pool.get_idle_size(),
        }

    async def close(self):
        """Close database connections."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.queries = None

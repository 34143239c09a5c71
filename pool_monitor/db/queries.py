"""
SQL queries for the token registry.
Keeps raw SQL out of the monitoring components.
"""
import asyncpg
import logging
from typing import List

from ..config.constants import DatabaseConfig

logger = logging.getLogger(__name__)


class TokenQueries:
    """Read-only queries against the ``tokens`` table."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_active_token_addresses(self) -> List[str]:
        """Return contract addresses of tokens flagged active, in table order."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(DatabaseConfig.ACTIVE_TOKENS_QUERY)
        return [row['contractaddress'] for row in rows]

    async def count_active_tokens(self) -> int:
        async with self.pool.acquire() as conn:
            count = await conn.fetchval("SELECT COUNT(*) FROM tokens WHERE active = true")
        return int(count or 0)

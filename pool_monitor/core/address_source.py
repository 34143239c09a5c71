"""
Active token address source.
Reads the set of tokens to watch from the registry table on every refresh.
"""
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .. import metrics
from .models import AddressSet
from .utils import dedupe_preserving_order, is_solana_address

logger = logging.getLogger(__name__)


class AddressSource:
    """
    Fetches active token addresses and never raises.

    Any failure in the underlying read is logged and reported as an empty
    set so the refresh loop always gets a usable value.
    """

    def __init__(self, fetch: Callable[[], Awaitable[List[str]]]):
        self._fetch = fetch
        self.fetch_count = 0
        self.failure_count = 0
        self.last_count = 0
        self.last_success: Optional[datetime] = None
        self.last_error: Optional[str] = None

    async def fetch_active_addresses(self) -> AddressSet:
        self.fetch_count += 1
        try:
            rows = await self._fetch()
        except Exception as e:
            self.failure_count += 1
            self.last_error = str(e)
            metrics.ADDRESS_FETCH_FAILURES.inc()
            logger.error(f"Error fetching token addresses from the database: {e}")
            return ()

        addresses = []
        for raw in rows or []:
            if raw is None:
                continue
            address = str(raw).strip()
            if not address:
                continue
            if not is_solana_address(address):
                logger.warning(f"Skipping malformed token address: {address!r}")
                continue
            addresses.append(address)

        result = dedupe_preserving_order(addresses)
        self.last_count = len(result)
        self.last_success = datetime.now()
        metrics.ACTIVE_ADDRESSES.set(len(result))
        logger.debug(f"Fetched {len(result)} active token addresses")
        return result

    def get_stats(self) -> Dict[str, Any]:
        return {
            'fetches': self.fetch_count,
            'fetch_failures': self.failure_count,
            'last_count': self.last_count,
            'last_success': self.last_success.isoformat() if self.last_success else None,
            'last_error': self.last_error,
        }

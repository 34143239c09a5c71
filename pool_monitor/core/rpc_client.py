"""Solana JSON-RPC client for account and token lookups."""
import aiohttp
import asyncio
import itertools
import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..config.constants import APIConfig
from ..metrics import monitor_rpc_call
from .errors import RpcError
from .models import AccountInfo
from .utils import safe_decimal, safe_int


class SolanaRpcClient:
    """Client for Solana JSON-RPC calls with retry logic and error handling."""

    def __init__(self, rpc_url: str, max_retries: int = APIConfig.MAX_RETRIES,
                 timeout: int = APIConfig.DEFAULT_TIMEOUT,
                 retry_delay: float = APIConfig.RETRY_BACKOFF_SEC,
                 commitment: str = "confirmed"):
        self.rpc_url = rpc_url
        self.session: Optional[aiohttp.ClientSession] = None
        self.max_retries = max_retries
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.commitment = commitment
        self.logger = logging.getLogger(__name__)
        self._ids = itertools.count(1)

        # Rate limiting
        self.last_request_time = 0.0
        self.min_request_interval = APIConfig.MIN_REQUEST_INTERVAL

        self.stats = {'requests': 0, 'failures': 0, 'rate_limited': 0}

    async def start(self):
        """Start HTTP session with timeout configuration."""
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        connector = aiohttp.TCPConnector(limit=100, limit_per_host=20)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            headers={'Content-Type': 'application/json'}
        )

    async def close(self):
        """Close HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def _call(self, method: str, params: List[Any]) -> Any:
        """POST one JSON-RPC request and return its ``result``; raises RpcError."""
        if not self.session:
            await self.start()

        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        last_error = "no attempts made"

        for attempt in range(self.max_retries):
            try:
                await self._rate_limit()
                self.stats['requests'] += 1

                async with self.session.post(self.rpc_url, json=payload) as response:
                    if response.status == 200:
                        body = await response.json()
                        if body.get('error'):
                            # The node understood and refused; retrying will not help
                            self.stats['failures'] += 1
                            raise RpcError(method, str(body['error'].get('message', body['error'])))
                        return body.get('result')
                    elif response.status == 429:
                        self.stats['rate_limited'] += 1
                        wait_time = (attempt + 1) * APIConfig.RATE_LIMIT_BACKOFF_SEC
                        self.logger.warning(f"Rate limited on {method}, waiting {wait_time}s")
                        last_error = "HTTP 429"
                        await asyncio.sleep(wait_time)
                        continue
                    else:
                        last_error = f"HTTP {response.status}"
                        self.logger.warning(f"{last_error} for {method}")

            except aiohttp.ClientError as e:
                last_error = f"client error: {e}"
                self.logger.warning(f"Client error for {method}: {e}")

            except asyncio.TimeoutError:
                last_error = "timeout"
                self.logger.warning(f"Timeout for {method}")

            if attempt < self.max_retries - 1:
                await asyncio.sleep((attempt + 1) * self.retry_delay)

        self.stats['failures'] += 1
        raise RpcError(method, f"failed after {self.max_retries} attempts ({last_error})")

    @monitor_rpc_call('getAccountInfo')
    async def get_account_info(self, address: str) -> Optional[AccountInfo]:
        """Owner program and lamports of an account, or None if it does not exist."""
        result = await self._call("getAccountInfo", [
            address,
            {"encoding": "base64", "commitment": self.commitment}
        ])
        value = (result or {}).get('value')
        if not value:
            return None
        return AccountInfo(
            address=address,
            owner=value.get('owner', ''),
            lamports=safe_int(value.get('lamports'), 0),
        )

    @monitor_rpc_call('getTokenSupply')
    async def get_token_supply(self, mint: str) -> Optional[Decimal]:
        """Current supply of a mint in UI units (decimals applied)."""
        result = await self._call("getTokenSupply", [mint, {"commitment": self.commitment}])
        value = (result or {}).get('value') or {}
        return safe_decimal(value.get('uiAmountString', value.get('uiAmount')))

    @monitor_rpc_call('getTokenAccountsByOwner')
    async def get_token_balance(self, owner: str, mint: str) -> Optional[Decimal]:
        """
        Balance of ``mint`` held by ``owner`` in UI units.

        Sums every token account the owner has for the mint. Returns None when
        the owner holds no account for it.
        """
        result = await self._call("getTokenAccountsByOwner", [
            owner,
            {"mint": mint},
            {"encoding": "jsonParsed", "commitment": self.commitment}
        ])
        accounts = (result or {}).get('value') or []
        if not accounts:
            return None

        total = Decimal(0)
        for account in accounts:
            token_amount = _parsed_token_amount(account)
            amount = safe_decimal(token_amount.get('uiAmountString', token_amount.get('uiAmount')))
            if amount is not None:
                total += amount
        return total

    async def _rate_limit(self):
        """Implement rate limiting between requests."""
        if self.min_request_interval <= 0:
            return
        current_time = time.time()
        elapsed = current_time - self.last_request_time

        if elapsed < self.min_request_interval:
            await asyncio.sleep(self.min_request_interval - elapsed)

        self.last_request_time = time.time()

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics."""
        return {
            'rpc_url': self.rpc_url,
            'max_retries': self.max_retries,
            'timeout': self.timeout,
            'session_active': self.session is not None and not self.session.closed,
            **self.stats
        }


def _parsed_token_amount(account: Dict[str, Any]) -> Dict[str, Any]:
    data = (account.get('account') or {}).get('data') or {}
    if not isinstance(data, dict):
        return {}
    return ((data.get('parsed') or {}).get('info') or {}).get('tokenAmount') or {}

"""
Per-event enrichment: bonding curve resolution and pool valuation.

Every transaction delivered by the stream is handled independently. A
failure while enriching one event is logged and never reaches the stream or
the refresh loop.
"""
import asyncio
import logging
import time
from decimal import Decimal, DivisionByZero, InvalidOperation
from typing import Optional, Protocol, Sequence

from .. import metrics
from ..config.constants import ProcessingIntervals, SolanaConstants
from .errors import EnrichmentError
from .models import AccountInfo, BondingCurveInfo, PoolSnapshot, RawEvent, TokenBalanceEntry, ValuationResult
from .utils import format_currency, short_address

logger = logging.getLogger(__name__)


class ChainLookups(Protocol):
    """The account and token lookups enrichment depends on."""

    async def get_account_info(self, address: str) -> Optional[AccountInfo]:
        ...

    async def get_token_supply(self, mint: str) -> Optional[Decimal]:
        ...

    async def get_token_balance(self, owner: str, mint: str) -> Optional[Decimal]:
        ...


def calculate_valuation(sol_balance: Decimal, pool_token_balance: Decimal, current_supply: Decimal,
                        sol_price_usd: Decimal = SolanaConstants.DEFAULT_SOL_PRICE_USD) -> Optional[ValuationResult]:
    """
    Price and market-cap proxy of a bonding-curve pool.

    ``sol_balance`` is in SOL, token amounts in UI units. The market value is
    a proxy derived from the curve reserve, not a traded market cap. Returns
    None when the inputs make the result undefined (nothing sold yet, empty
    pool) so callers never log a non-finite value.
    """
    try:
        sol_value_usd = Decimal(sol_balance) * Decimal(sol_price_usd)
        tokens_sold = Decimal(current_supply) - Decimal(pool_token_balance)
        price_per_token = sol_value_usd / tokens_sold
        pool_token_value_usd = price_per_token * Decimal(current_supply)
        price = pool_token_value_usd / Decimal(pool_token_balance)
        market_proxy = price * Decimal(current_supply)
    except (DivisionByZero, InvalidOperation, ZeroDivisionError):
        return None

    result = ValuationResult(
        sol_value_usd=sol_value_usd,
        tokens_sold=tokens_sold,
        price_per_token=price_per_token,
        pool_token_value_usd=pool_token_value_usd,
        price=price,
        market_proxy=market_proxy,
    )
    if not all(v.is_finite() for v in (price_per_token, pool_token_value_usd, price, market_proxy)):
        return None
    return result


class EventEnricher:
    """Turns raw transaction events into logged pool valuations."""

    def __init__(self, lookups: ChainLookups,
                 program_id: str = SolanaConstants.PUMPFUN_PROGRAM_ID,
                 sol_price_usd: Decimal = SolanaConstants.DEFAULT_SOL_PRICE_USD,
                 event_timeout: float = ProcessingIntervals.EVENT_TIMEOUT):
        self.lookups = lookups
        self.program_id = program_id
        self.sol_price_usd = Decimal(sol_price_usd)
        self.event_timeout = event_timeout

        self.stats = {
            'events': 0,
            'valuations': 0,
            'skipped': 0,
            'failures': 0,
        }

    async def resolve_bonding_curve(self, entries: Sequence[TokenBalanceEntry]) -> Optional[BondingCurveInfo]:
        """
        First balance-entry owner whose account is owned by the curve program.

        Entries are scanned in order and the scan stops at the first match,
        so the result depends on entry order rather than on any best match.
        """
        checked = set()
        for entry in entries:
            owner = entry.owner
            if not owner or owner in checked:
                continue
            checked.add(owner)

            account = await self.lookups.get_account_info(owner)
            if account is not None and account.owner == self.program_id:
                return BondingCurveInfo(address=owner, lamports=account.lamports)
        return None

    async def enrich(self, event: RawEvent) -> Optional[PoolSnapshot]:
        """
        Value the pool touched by ``event``.

        Returns None when the event carries no token balances, when no
        bonding curve can be resolved, or when the valuation is degenerate.
        Raises EnrichmentError when a required lookup comes back empty.
        """
        entries = event.post_token_balances
        if not entries:
            metrics.EVENTS_SKIPPED.labels(reason='no_balances').inc()
            logger.debug(f"Event {event.signature} has no post token balances, skipping")
            return None

        bonding_curve = await self.resolve_bonding_curve(entries)
        if bonding_curve is None:
            metrics.EVENTS_SKIPPED.labels(reason='no_bonding_curve').inc()
            logger.debug(f"No bonding curve found for event {event.signature}")
            return None

        mint = entries[0].mint
        current_supply, pool_token_balance = await asyncio.gather(
            self.lookups.get_token_supply(mint),
            self.lookups.get_token_balance(bonding_curve.address, mint),
        )
        if current_supply is None:
            raise EnrichmentError(f"no supply returned for mint {mint}")
        if pool_token_balance is None:
            raise EnrichmentError(f"bonding curve {bonding_curve.address} holds no {mint} account")

        valuation = calculate_valuation(
            bonding_curve.sol_balance, pool_token_balance, current_supply, self.sol_price_usd
        )
        if valuation is None:
            metrics.EVENTS_SKIPPED.labels(reason='degenerate').inc()
            logger.debug(
                f"Degenerate valuation suppressed for {mint}: "
                f"pool={pool_token_balance} supply={current_supply}"
            )
            return None

        return PoolSnapshot(
            mint=mint,
            bonding_curve=bonding_curve,
            pool_token_balance=pool_token_balance,
            current_supply=current_supply,
            valuation=valuation,
            signature=event.signature,
            filters=event.filters,
        )

    async def handle_event(self, event: RawEvent) -> Optional[PoolSnapshot]:
        """Per-event boundary: enrich, log the result, swallow and log any failure."""
        self.stats['events'] += 1
        start_time = time.time()
        try:
            snapshot = await asyncio.wait_for(self.enrich(event), timeout=self.event_timeout)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self.stats['failures'] += 1
            metrics.ENRICHMENT_FAILURES.labels(error_type='timeout').inc()
            logger.error(f"Timed out enriching event {event.signature} after {self.event_timeout}s")
            return None
        except Exception as e:
            self.stats['failures'] += 1
            metrics.ENRICHMENT_FAILURES.labels(error_type=type(e).__name__).inc()
            logger.error(f"Error processing stream data for {event.signature}: {e}")
            return None
        finally:
            metrics.ENRICHMENT_DURATION.observe(time.time() - start_time)

        if snapshot is None:
            self.stats['skipped'] += 1
            return None

        self.stats['valuations'] += 1
        metrics.VALUATIONS_EMITTED.inc()
        self._log_snapshot(snapshot)
        return snapshot

    def _log_snapshot(self, snapshot: PoolSnapshot):
        valuation = snapshot.valuation
        logger.info(
            f"Latest pool | CA: {snapshot.mint} | "
            f"bonding curve: {snapshot.bonding_curve.address} | "
            f"pool value: {snapshot.bonding_curve.sol_balance:.2f} SOL | "
            f"pool tokens: {snapshot.pool_token_balance} | "
            f"price: ${valuation.price} | "
            f"market cap: ${valuation.market_proxy} (~{format_currency(valuation.market_proxy)}) | "
            f"supply: {snapshot.current_supply}"
        )
        logger.debug(
            f"Valuation detail {short_address(snapshot.mint)}: "
            f"sol_usd={valuation.sol_value_usd} sold={valuation.tokens_sold} "
            f"per_token={valuation.price_per_token} pool_usd={valuation.pool_token_value_usd} "
            f"tx={snapshot.signature} filter={','.join(snapshot.filters) or '-'}"
        )

"""
Periodic refresh of the stream subscription from the active token table.

Ticks run one after another, never concurrently: a tick fetches the active
addresses, re-subscribes the stream for them and waits for that session to
finish before the fixed delay and the next tick. Every error inside a tick
is logged and the loop carries on; only ``stop()`` ends it.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .. import metrics
from ..config.constants import FILTER_NAME, LoopState, ProcessingIntervals
from .address_source import AddressSource
from .models import AddressSet, CommitmentLevel, SubscriptionFilter
from .stream_session import StreamSessionManager

logger = logging.getLogger(__name__)


class RefreshLoop:
    """Fixed-cadence scheduler that keeps the stream filter in sync with the database."""

    def __init__(self, address_source: AddressSource, session_manager: StreamSessionManager,
                 interval: float = ProcessingIntervals.REFRESH,
                 session_max_lifetime: float = ProcessingIntervals.SESSION_MAX_LIFETIME,
                 commitment: CommitmentLevel = CommitmentLevel.CONFIRMED,
                 filter_name: str = FILTER_NAME):
        self.address_source = address_source
        self.session_manager = session_manager
        self.interval = interval
        self.session_max_lifetime = session_max_lifetime
        self.commitment = commitment
        self.filter_name = filter_name

        self.state = LoopState.IDLE
        self._stop_event = asyncio.Event()

        self.ticks = 0
        self.reconfigurations = 0
        self.empty_ticks = 0
        self.failed_ticks = 0
        self.last_tick: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self):
        self._stop_event.set()

    def build_filter(self, addresses: AddressSet) -> SubscriptionFilter:
        return SubscriptionFilter.for_addresses(self.filter_name, addresses, self.commitment)

    async def run(self, max_ticks: Optional[int] = None):
        """Run ticks until stopped, or until ``max_ticks`` ticks have completed."""
        logger.info(f"Refresh loop started (interval {self.interval}s)")
        completed = 0
        while not self.stopped:
            await self.tick()
            completed += 1
            if max_ticks is not None and completed >= max_ticks:
                break
            await self._sleep(self.interval)
        logger.info(f"Refresh loop stopped after {completed} ticks")

    async def tick(self):
        """One Idle -> Active -> Idle pass. Never raises except on cancellation."""
        self.ticks += 1
        self.last_tick = datetime.now()
        self.state = LoopState.ACTIVE
        try:
            logger.info("Fetching new token addresses...")
            addresses = await self.address_source.fetch_active_addresses()

            if not addresses:
                # Any previous stream is left running
                self.empty_ticks += 1
                metrics.REFRESH_TICKS.labels(status='empty').inc()
                logger.info("No active token addresses found.")
                return

            logger.info(f"Starting new stream with {len(addresses)} token addresses...")
            handle = await self.session_manager.reconfigure(self.build_filter(addresses))
            self.reconfigurations += 1
            metrics.REFRESH_TICKS.labels(status='reconfigured').inc()

            timeout = self.session_max_lifetime if self.session_max_lifetime > 0 else None
            finished = await self._wait_for_session(handle, timeout)
            if finished:
                if handle.error is not None:
                    logger.warning(f"Stream {handle.session_id} closed with error: {handle.error}")
                else:
                    logger.info(f"Stream {handle.session_id} closed after {handle.events_received} events")
            elif not self.stopped:
                logger.info(f"Stream {handle.session_id} reached max lifetime, refreshing")

        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed_ticks += 1
            self.last_error = str(e)
            metrics.REFRESH_TICKS.labels(status='failed').inc()
            logger.error(f"Stream error, restarting in next interval... {e}")
        finally:
            self.state = LoopState.IDLE

    async def _wait_for_session(self, handle, timeout: Optional[float]) -> bool:
        """Wait for the session to end, the lifetime to elapse or the loop to stop."""
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        session_waiter = asyncio.create_task(handle.wait_closed())
        try:
            done, _ = await asyncio.wait(
                {stop_waiter, session_waiter},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (stop_waiter, session_waiter):
                if not task.done():
                    task.cancel()
            await asyncio.gather(stop_waiter, session_waiter, return_exceptions=True)
        return session_waiter in done

    async def _sleep(self, delay: float):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def get_stats(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'ticks': self.ticks,
            'reconfigurations': self.reconfigurations,
            'empty_ticks': self.empty_ticks,
            'failed_ticks': self.failed_ticks,
            'last_tick': self.last_tick.isoformat() if self.last_tick else None,
            'last_error': self.last_error,
        }

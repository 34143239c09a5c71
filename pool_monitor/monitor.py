"""
pump.fun pool monitor.

Keeps a transaction stream subscribed to the tokens marked active in the
database and logs a bonding-curve valuation for every transaction it sees.
"""
import asyncio
import signal
import sys
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List

from . import metrics
from .config.config import MonitorConfig
from .config.constants import MonitoringThresholds, SystemState
from .config.logging_config import LoggingSetup
from .core.address_source import AddressSource
from .core.enrichment import EventEnricher
from .core.models import CommitmentLevel
from .core.refresh_loop import RefreshLoop
from .core.rpc_client import SolanaRpcClient
from .core.stream_session import StreamSessionManager
from .core.system_monitor import SystemMonitor
from .core.transport import WebsocketStreamClient
from .db.db_manager import DatabaseManager


@dataclass
class MonitorStatistics:
    """Counters reported periodically and on shutdown."""
    start_time: datetime = field(default_factory=datetime.now)
    ticks: int = 0
    reconfigurations: int = 0
    failed_ticks: int = 0
    sessions_opened: int = 0
    events_processed: int = 0
    valuations_emitted: int = 0
    events_skipped: int = 0
    enrichment_failures: int = 0
    active_addresses: int = 0

    def uptime(self) -> timedelta:
        return datetime.now() - self.start_time

    def to_dict(self) -> dict:
        return {
            'uptime_seconds': self.uptime().total_seconds(),
            'ticks': self.ticks,
            'reconfigurations': self.reconfigurations,
            'failed_ticks': self.failed_ticks,
            'sessions_opened': self.sessions_opened,
            'events_processed': self.events_processed,
            'valuations_emitted': self.valuations_emitted,
            'events_skipped': self.events_skipped,
            'enrichment_failures': self.enrichment_failures,
            'active_addresses': self.active_addresses,
        }


class PoolMonitor:
    """Wires the database, RPC, stream and refresh loop together and runs them."""

    def __init__(self, config: MonitorConfig):
        self.config = config

        log_dir = config.data_dir / "logs"
        self.logger = LoggingSetup.setup_logging(log_dir, log_level=config.log_level)

        self.state = SystemState.INITIALIZING
        self.running = False
        self.shutdown_event = asyncio.Event()
        self.start_timestamp = time.time()

        # Components
        self.db_manager = DatabaseManager(config.database_url)
        self.rpc_client = SolanaRpcClient(
            config.rpc_url,
            max_retries=config.max_retries,
            timeout=config.api_timeout,
            retry_delay=config.retry_delay,
            commitment=config.commitment,
        )
        self.stream_client = WebsocketStreamClient(config.stream_url, ack_timeout=config.ack_timeout)
        self.address_source = AddressSource(self.db_manager.get_active_token_addresses)
        self.enricher = EventEnricher(
            self.rpc_client,
            program_id=config.program_id,
            sol_price_usd=config.sol_price_usd,
            event_timeout=config.event_timeout,
        )
        self.session_manager = StreamSessionManager(self.stream_client, self.enricher.handle_event)
        self.refresh_loop = RefreshLoop(
            self.address_source,
            self.session_manager,
            interval=config.refresh_interval,
            session_max_lifetime=config.session_max_lifetime,
            commitment=CommitmentLevel(config.commitment),
        )
        self.system_monitor = SystemMonitor()

        self.stats = MonitorStatistics()
        self.tasks: List[asyncio.Task] = []

        self.logger.info("Monitor initialized")

    async def start(self) -> None:
        """Initialize components and run until a shutdown signal arrives."""

        self.logger.info("=" * 80)
        self.logger.info("PUMP.FUN POOL MONITOR")
        self.logger.info(f"Program: {self.config.program_id}")
        self.logger.info(f"Stream: {self.config.stream_url}")
        self.logger.info("=" * 80)

        try:
            await self._initialize_components()
            self._setup_signal_handlers()

            self.running = True
            self.state = SystemState.RUNNING
            self._start_tasks()
            self.logger.info("Monitor started successfully")

            await self.shutdown_event.wait()

        except Exception as e:
            self.logger.critical(f"Fatal error in monitor: {e}", exc_info=True)
            self.state = SystemState.FATAL
            raise
        finally:
            await self.stop()

    async def _initialize_components(self) -> None:
        self.logger.info("Initializing components...")

        try:
            await self.db_manager.initialize()
            self.logger.info("✓ Database initialized")
        except Exception as e:
            self.logger.error(f"✗ Database initialization failed: {e}")
            raise

        await self.rpc_client.start()
        self.logger.info("✓ RPC client initialized")

        if metrics.start_metrics_server(self.config.metrics_port):
            self.logger.info("✓ Metrics exporter started")

        self.state = SystemState.READY
        self.logger.info("All components initialized")

    def _setup_signal_handlers(self) -> None:
        """Stop gracefully on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def request_shutdown(sig):
            if not self.running:
                return
            self.logger.info(f"Received signal {sig.name}, initiating graceful shutdown...")
            self.running = False
            self.refresh_loop.stop()
            self.shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, request_shutdown, sig)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(sig, lambda s, f: request_shutdown(signal.Signals(s)))

    def _start_tasks(self) -> None:
        self.tasks = [
            asyncio.create_task(self._refresh_task(), name="refresh_loop"),
            asyncio.create_task(self._stats_reporter_task(), name="stats_reporter"),
        ]
        self.logger.info(f"Started {len(self.tasks)} monitoring tasks")

    async def _refresh_task(self) -> None:
        try:
            await self.refresh_loop.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # RefreshLoop.tick() already catches per-tick errors
            self.logger.critical(f"Refresh loop crashed: {e}", exc_info=True)
            self.shutdown_event.set()

    async def _stats_reporter_task(self) -> None:
        """Report statistics periodically."""
        while self.running:
            try:
                await asyncio.sleep(self.config.stats_report_interval)
                if not self.running:
                    break
                await self.report_stats()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Stats reporter error: {e}")

    def collect_stats(self) -> dict:
        loop_stats = self.refresh_loop.get_stats()
        stream_stats = self.session_manager.get_stats()
        source_stats = self.address_source.get_stats()

        self.stats.ticks = loop_stats['ticks']
        self.stats.reconfigurations = loop_stats['reconfigurations']
        self.stats.failed_ticks = loop_stats['failed_ticks']
        self.stats.sessions_opened = stream_stats['sessions_opened']
        self.stats.events_processed = self.enricher.stats['events']
        self.stats.valuations_emitted = self.enricher.stats['valuations']
        self.stats.events_skipped = self.enricher.stats['skipped']
        self.stats.enrichment_failures = self.enricher.stats['failures']
        self.stats.active_addresses = source_stats['last_count']
        return self.stats.to_dict()

    async def report_stats(self) -> None:
        stats_dict = self.collect_stats()
        metrics.update_monitor_statistics(stats_dict)
        metrics.update_monitor_uptime(self.start_timestamp)

        self.logger.info("=" * 60)
        self.logger.info("SYSTEM STATISTICS")
        self.logger.info(f"State: {self.state.value}")
        self.logger.info(f"Uptime: {timedelta(seconds=int(stats_dict['uptime_seconds']))}")
        self.logger.info(f"Refresh: {stats_dict['ticks']} ticks, {stats_dict['reconfigurations']} reconfigurations, "
                         f"{stats_dict['failed_ticks']} failed")
        self.logger.info(f"Stream: {stats_dict['sessions_opened']} sessions, live={self.session_manager.is_live}")
        self.logger.info(f"Events: {stats_dict['events_processed']} processed, {stats_dict['valuations_emitted']} valued, "
                         f"{stats_dict['events_skipped']} skipped, {stats_dict['enrichment_failures']} failed")
        self.logger.info(f"RPC: {self.rpc_client.get_stats()}")

        try:
            db_stats = await self.db_manager.get_stats()
            self.logger.info(f"Database: {db_stats.get('active_tokens', 0)} active tokens")
        except Exception as e:
            self.logger.warning(f"Database stats unavailable: {e}")

        process_stats = self.system_monitor.get_process_stats()
        if process_stats:
            self.logger.info(f"Process: {process_stats['memory_mb']}MB, {process_stats['cpu_percent']}% CPU")
        for warning in self.system_monitor.check_resource_health()['warnings']:
            self.logger.warning(warning)

        self.logger.info("=" * 60)

    async def stop(self) -> None:
        """Gracefully stop the monitor."""

        if self.state == SystemState.STOPPED:
            return

        self.logger.info("Initiating graceful shutdown...")
        self.state = SystemState.STOPPING
        self.running = False
        self.refresh_loop.stop()
        self.shutdown_event.set()

        if self.tasks:
            self.logger.info("Cancelling tasks...")
            for task in self.tasks:
                task.cancel()
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self.tasks, return_exceptions=True),
                    timeout=MonitoringThresholds.SHUTDOWN_TIMEOUT
                )
            except asyncio.TimeoutError:
                self.logger.warning("Some tasks did not shut down gracefully")

        self.logger.info("Stopping components...")

        try:
            await self.session_manager.shutdown()
        except Exception as e:
            self.logger.error(f"Error stopping stream: {e}")

        try:
            await self.stream_client.close()
        except Exception as e:
            self.logger.error(f"Error closing stream client: {e}")

        try:
            await self.rpc_client.close()
        except Exception as e:
            self.logger.error(f"Error closing RPC client: {e}")

        try:
            await self.db_manager.close()
        except Exception as e:
            self.logger.error(f"Error closing database: {e}")

        self.logger.info(f"Final statistics: {self.collect_stats()}")
        self.state = SystemState.STOPPED
        self.logger.info("Monitor stopped successfully")


async def main() -> int:
    """Main entry point."""

    try:
        config = MonitorConfig.from_env()
        monitor = PoolMonitor(config)
        await monitor.start()

    except Exception as e:
        print(f"FATAL: {e}", file=sys.stderr)
        traceback.print_exc()
        return 1

    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

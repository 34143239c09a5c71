"""
Prometheus metrics for the pump.fun pool monitor.
Non-intrusive counters around the refresh loop, the stream and enrichment.
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, start_http_server
from functools import wraps
import time
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

# Dedicated registry so tests and embedding apps do not collide with the default one
MONITOR_REGISTRY = CollectorRegistry()

# =============================================================================
# REFRESH LOOP METRICS
# =============================================================================

REFRESH_TICKS = Counter(
    'pool_monitor_refresh_ticks_total',
    'Refresh loop ticks',
    ['status'],  # reconfigured, empty, failed
    registry=MONITOR_REGISTRY
)

ACTIVE_ADDRESSES = Gauge(
    'pool_monitor_active_addresses',
    'Number of active token addresses in the last fetch',
    registry=MONITOR_REGISTRY
)

ADDRESS_FETCH_FAILURES = Counter(
    'pool_monitor_address_fetch_failures_total',
    'Failed reads of the active token table',
    registry=MONITOR_REGISTRY
)

# =============================================================================
# STREAM METRICS
# =============================================================================

STREAM_SESSIONS = Counter(
    'pool_monitor_stream_sessions_total',
    'Stream sessions by outcome',
    ['outcome'],  # opened, setup_failed, ended, errored, superseded
    registry=MONITOR_REGISTRY
)

STREAM_SESSION_LIVE = Gauge(
    'pool_monitor_stream_session_live',
    'Whether a stream session is currently live (1) or not (0)',
    registry=MONITOR_REGISTRY
)

EVENTS_RECEIVED = Counter(
    'pool_monitor_events_received_total',
    'Transaction events delivered by the stream',
    registry=MONITOR_REGISTRY
)

# =============================================================================
# ENRICHMENT METRICS
# =============================================================================

VALUATIONS_EMITTED = Counter(
    'pool_monitor_valuations_emitted_total',
    'Valuations computed and logged',
    registry=MONITOR_REGISTRY
)

EVENTS_SKIPPED = Counter(
    'pool_monitor_events_skipped_total',
    'Events that produced no valuation',
    ['reason'],  # no_balances, no_bonding_curve, degenerate
    registry=MONITOR_REGISTRY
)

ENRICHMENT_FAILURES = Counter(
    'pool_monitor_enrichment_failures_total',
    'Events whose enrichment raised',
    ['error_type'],
    registry=MONITOR_REGISTRY
)

ENRICHMENT_DURATION = Histogram(
    'pool_monitor_enrichment_duration_seconds',
    'Time to enrich one event',
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=MONITOR_REGISTRY
)

# =============================================================================
# RPC METRICS
# =============================================================================

RPC_QUERIES = Counter(
    'pool_monitor_rpc_queries_total',
    'Solana JSON-RPC queries',
    ['method', 'status'],
    registry=MONITOR_REGISTRY
)

RPC_DURATION = Histogram(
    'pool_monitor_rpc_duration_seconds',
    'Solana JSON-RPC query duration',
    ['method'],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=MONITOR_REGISTRY
)

# =============================================================================
# MONITORING STATISTICS
# =============================================================================

MONITOR_STATISTICS = Gauge(
    'pool_monitor_statistics',
    'Monitoring statistics',
    ['metric'],
    registry=MONITOR_REGISTRY
)

MONITOR_UPTIME = Gauge(
    'pool_monitor_uptime_seconds',
    'Monitor uptime in seconds',
    registry=MONITOR_REGISTRY
)

# =============================================================================
# DECORATOR FUNCTIONS
# =============================================================================

def monitor_rpc_call(method: str):
    """Count and time a JSON-RPC call."""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
                RPC_QUERIES.labels(method=method, status='success').inc()
                return result
            except Exception:
                RPC_QUERIES.labels(method=method, status='error').inc()
                raise
            finally:
                RPC_DURATION.labels(method=method).observe(time.time() - start_time)
        return wrapper
    return decorator

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def update_monitor_statistics(stats: Dict[str, Any]):
    """Mirror MonitorStatistics counters into the statistics gauge."""
    try:
        for key, value in stats.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                MONITOR_STATISTICS.labels(metric=key).set(value)
    except Exception as e:
        logger.error(f"Error updating monitor statistics: {e}")


def update_monitor_uptime(start_time: float):
    """Update monitor uptime metric."""
    try:
        MONITOR_UPTIME.set(time.time() - start_time)
    except Exception as e:
        logger.error(f"Error updating monitor uptime: {e}")


def start_metrics_server(port: int) -> bool:
    """Expose the registry over HTTP; a port of 0 disables the exporter."""
    if port <= 0:
        return False
    start_http_server(port, registry=MONITOR_REGISTRY)
    logger.info(f"Prometheus metrics exposed on port {port}")
    return True

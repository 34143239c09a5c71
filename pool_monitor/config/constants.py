"""Constants and enums for the pump.fun pool monitor."""
from decimal import Decimal
from enum import Enum

# =============================================================================
# SOLANA CONSTANTS
# =============================================================================

class SolanaConstants:
    LAMPORTS_PER_SOL = 1_000_000_000
    PUMPFUN_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
    # Snapshot price, not refreshed at runtime
    DEFAULT_SOL_PRICE_USD = Decimal("134.7")
    MIN_ADDRESS_LENGTH = 32
    MAX_ADDRESS_LENGTH = 44


BASE58_CHARS = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

# Name of the single transaction filter sent on every refresh
FILTER_NAME = "pumpfun"


# =============================================================================
# DATABASE CONSTANTS
# =============================================================================

class DatabaseConfig:
    MIN_POOL_SIZE = 1
    MAX_POOL_SIZE = 5
    COMMAND_TIMEOUT = 30
    ACTIVE_TOKENS_QUERY = "SELECT contractaddress FROM tokens WHERE active = true;"


# =============================================================================
# API CONSTANTS
# =============================================================================

class APIConfig:
    DEFAULT_TIMEOUT = 10
    MAX_RETRIES = 3
    RETRY_BACKOFF_SEC = 1.0
    RATE_LIMIT_BACKOFF_SEC = 2.0
    MIN_REQUEST_INTERVAL = 0.0
    WS_HEARTBEAT = 30
    ACK_TIMEOUT = 10.0


# =============================================================================
# PROCESSING INTERVALS
# =============================================================================

class ProcessingIntervals:
    REFRESH = 5
    SESSION_MAX_LIFETIME = 0
    EVENT_TIMEOUT = 30
    STATS_REPORT = 300


# =============================================================================
# LOGGING CONSTANTS
# =============================================================================

class LogConfig:
    MAX_LOG_SIZE = 10 * 1024 * 1024
    MAX_ERROR_LOG_SIZE = 5 * 1024 * 1024
    LOG_BACKUP_COUNT = 5
    ERROR_LOG_BACKUP_COUNT = 3


# =============================================================================
# MONITORING THRESHOLDS
# =============================================================================

class MonitoringThresholds:
    SHUTDOWN_TIMEOUT = 10.0
    MEMORY_WARNING_THRESHOLD_MB = 512
    CPU_WARNING_THRESHOLD_PERCENT = 60.0


# =============================================================================
# ENUMS
# =============================================================================

class SystemState(Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FATAL = "fatal"


class LoopState(Enum):
    """Refresh loop state."""
    IDLE = "idle"
    ACTIVE = "active"


class SessionState(Enum):
    """Lifecycle of a single stream session."""
    OPENING = "opening"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"

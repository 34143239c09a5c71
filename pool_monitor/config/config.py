"""Configuration for the pump.fun pool monitor."""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
import logging

from .constants import APIConfig, ProcessingIntervals, SolanaConstants

logger = logging.getLogger(__name__)

COMMITMENT_LEVELS = {"processed", "confirmed", "finalized"}


@dataclass
class MonitorConfig:

    database_url: str
    rpc_url: str
    stream_url: str
    data_dir: Path
    program_id: str = SolanaConstants.PUMPFUN_PROGRAM_ID
    sol_price_usd: Decimal = SolanaConstants.DEFAULT_SOL_PRICE_USD
    commitment: str = "confirmed"
    log_level: str = "INFO"

    refresh_interval: float = ProcessingIntervals.REFRESH
    session_max_lifetime: float = ProcessingIntervals.SESSION_MAX_LIFETIME
    event_timeout: float = ProcessingIntervals.EVENT_TIMEOUT
    stats_report_interval: float = ProcessingIntervals.STATS_REPORT

    api_timeout: int = APIConfig.DEFAULT_TIMEOUT
    ack_timeout: float = APIConfig.ACK_TIMEOUT
    max_retries: int = APIConfig.MAX_RETRIES
    retry_delay: float = APIConfig.RETRY_BACKOFF_SEC
    metrics_port: int = 0

    @classmethod
    def from_env(cls) -> "MonitorConfig":

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL environment variable is required")
        rpc_url = os.getenv("RPC_URL")
        if not rpc_url:
            raise ValueError("RPC_URL environment variable is required")
        stream_url = os.getenv("STREAM_URL")
        if not stream_url:
            raise ValueError("STREAM_URL environment variable is required")

        try:
            sol_price_usd = Decimal(os.getenv("SOL_PRICE_USD", str(SolanaConstants.DEFAULT_SOL_PRICE_USD)))
        except InvalidOperation:
            raise ValueError("SOL_PRICE_USD must be a number")

        data_dir = Path(os.getenv("DATA_DIR", "./data"))
        data_dir.mkdir(parents=True, exist_ok=True)

        config = cls(
            database_url=database_url,
            rpc_url=rpc_url,
            stream_url=stream_url,
            data_dir=data_dir,
            program_id=os.getenv("PROGRAM_ID", SolanaConstants.PUMPFUN_PROGRAM_ID),
            sol_price_usd=sol_price_usd,
            commitment=os.getenv("COMMITMENT", "confirmed").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            refresh_interval=float(os.getenv("REFRESH_INTERVAL", str(ProcessingIntervals.REFRESH))),
            session_max_lifetime=float(os.getenv("SESSION_MAX_LIFETIME", str(ProcessingIntervals.SESSION_MAX_LIFETIME))),
            event_timeout=float(os.getenv("EVENT_TIMEOUT", str(ProcessingIntervals.EVENT_TIMEOUT))),
            stats_report_interval=float(os.getenv("STATS_REPORT_INTERVAL", str(ProcessingIntervals.STATS_REPORT))),
            api_timeout=int(os.getenv("API_TIMEOUT", str(APIConfig.DEFAULT_TIMEOUT))),
            ack_timeout=float(os.getenv("ACK_TIMEOUT", str(APIConfig.ACK_TIMEOUT))),
            max_retries=int(os.getenv("MAX_RETRIES", str(APIConfig.MAX_RETRIES))),
            retry_delay=float(os.getenv("RETRY_DELAY", str(APIConfig.RETRY_BACKOFF_SEC))),
            metrics_port=int(os.getenv("METRICS_PORT", "0")),
        )

        config.validate()
        return config

    def validate(self):
        """Validate configuration settings."""

        if self.commitment not in COMMITMENT_LEVELS:
            raise ValueError(f"COMMITMENT must be one of {sorted(COMMITMENT_LEVELS)}, got {self.commitment!r}")

        if self.sol_price_usd <= 0:
            raise ValueError("SOL_PRICE_USD must be positive")

        if self.refresh_interval <= 0:
            raise ValueError("REFRESH_INTERVAL must be positive")

        if self.session_max_lifetime < 0:
            raise ValueError("SESSION_MAX_LIFETIME must be non-negative")

        if self.event_timeout <= 0 or self.ack_timeout <= 0:
            raise ValueError("EVENT_TIMEOUT and ACK_TIMEOUT must be positive")

        if self.max_retries < 1:
            raise ValueError("MAX_RETRIES must be at least 1")

        if not self.stream_url.startswith(("ws://", "wss://")):
            logger.warning(f"STREAM_URL does not look like a websocket URL: {self.stream_url}")

        logger.info("Configuration loaded successfully")
        logger.info(f"Program id: {self.program_id}")
        logger.info(f"SOL price: ${self.sol_price_usd}")
        logger.info(f"Refresh interval: {self.refresh_interval}s, commitment: {self.commitment}")
        logger.info(f"Data directory: {self.data_dir}")

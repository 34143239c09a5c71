"""Logging configuration for the pump.fun pool monitor."""
import logging
import logging.handlers
import os
from pathlib import Path

from .constants import LogConfig

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
SIMPLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

MONITOR_LOG = "monitor.log"
ERROR_LOG = "errors.log"

# Libraries whose INFO chatter drowns out the valuation lines
NOISY_LOGGERS = ('asyncio', 'asyncpg', 'aiohttp')


class LoggingSetup:

    @staticmethod
    def setup_logging(log_dir: Path, log_level: str = "INFO") -> logging.Logger:
        """
        Install file and console handlers on the root logger.

        ``monitor.log`` receives everything at DEBUG, ``errors.log`` only
        errors, the console INFO and above. Calling it again for the same
        directory only updates the level.
        """
        log_dir.mkdir(parents=True, exist_ok=True)
        logger = logging.getLogger()
        logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        monitor_log = os.path.abspath(log_dir / MONITOR_LOG)
        if any(getattr(h, 'baseFilename', None) == monitor_log for h in logger.handlers):
            return logger

        detailed_formatter = logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT)
        simple_formatter = logging.Formatter(SIMPLE_FORMAT, datefmt=DATE_FORMAT)

        all_logs_handler = logging.handlers.RotatingFileHandler(
            log_dir / MONITOR_LOG,
            maxBytes=LogConfig.MAX_LOG_SIZE,
            backupCount=LogConfig.LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        all_logs_handler.setLevel(logging.DEBUG)
        all_logs_handler.setFormatter(detailed_formatter)

        error_handler = logging.handlers.RotatingFileHandler(
            log_dir / ERROR_LOG,
            maxBytes=LogConfig.MAX_ERROR_LOG_SIZE,
            backupCount=LogConfig.ERROR_LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(detailed_formatter)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(simple_formatter)

        logger.addHandler(all_logs_handler)
        logger.addHandler(error_handler)
        logger.addHandler(console_handler)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        return logger

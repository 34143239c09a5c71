"""Configuration module for the pump.fun pool monitor."""

from .config import MonitorConfig
from .constants import (
    SystemState,
    LoopState,
    SessionState,
    SolanaConstants,
    DatabaseConfig,
    APIConfig,
    ProcessingIntervals,
    LogConfig,
    MonitoringThresholds,
    FILTER_NAME,
)
from .logging_config import LoggingSetup

__all__ = [
    'MonitorConfig',
    'SystemState',
    'LoopState',
    'SessionState',
    'SolanaConstants',
    'DatabaseConfig',
    'APIConfig',
    'ProcessingIntervals',
    'LogConfig',
    'MonitoringThresholds',
    'FILTER_NAME',
    'LoggingSetup'
]

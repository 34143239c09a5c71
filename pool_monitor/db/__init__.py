"""
Database module for the pump.fun pool monitor.

This package handles all database operations:
- db_manager.py: Connection pool management
- queries.py: SQL for reading the active token registry
"""

from .db_manager import DatabaseManager
from .queries import TokenQueries

__all__ = ['DatabaseManager', 'TokenQueries']

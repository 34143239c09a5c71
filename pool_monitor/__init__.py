"""
pump.fun pool monitor.

Polls the token registry for active tokens, streams their transactions and
logs a bonding-curve price and market-cap estimate for each one.
"""

__version__ = "0.1.0"

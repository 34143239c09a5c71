"""Utility functions for the pump.fun pool monitor."""
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Tuple, Union

from ..config.constants import BASE58_CHARS, SolanaConstants


def is_solana_address(address: Any) -> bool:
    if not isinstance(address, str):
        return False
    address = address.strip()
    return (
        SolanaConstants.MIN_ADDRESS_LENGTH <= len(address) <= SolanaConstants.MAX_ADDRESS_LENGTH and
        all(c in BASE58_CHARS for c in address)
    )


def safe_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def safe_decimal(value: Any) -> Optional[Decimal]:
    """Safely parse a value to a finite Decimal."""
    if value is None or value == '' or isinstance(value, bool):
        return None

    try:
        result = Decimal(str(value))
    except (ValueError, TypeError, InvalidOperation):
        return None
    return result if result.is_finite() else None


def dedupe_preserving_order(items: Iterable[Any]) -> Tuple[Any, ...]:
    seen = set()
    ordered = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        ordered.append(item)
    return tuple(ordered)


def short_address(address: Optional[str], chars: int = 4) -> str:
    if not address:
        return "-"
    if len(address) <= chars * 2 + 3:
        return address
    return f"{address[:chars]}...{address[-chars:]}"


def format_currency(amount: Optional[Union[float, Decimal, str]], precision: int = 2) -> str:
    """Format currency amount with proper formatting."""
    if amount is None:
        return "N/A"

    try:
        value = float(amount)
        if abs(value) >= 1_000_000:
            return f"${value/1_000_000:.1f}M"
        elif abs(value) >= 1_000:
            return f"${value/1_000:.1f}K"
        else:
            return f"${value:.{precision}f}"
    except (ValueError, TypeError):
        return "N/A"

"""
Storefront - Shared Helpers
=============================
Pure utility functions with NO database or module dependencies.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def safe_int(value) -> Optional[int]:
    """Safely convert a value to int. Returns None on failure (bools rejected)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def safe_decimal(value, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Safely convert a value to Decimal. Returns default on failure."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not d.is_finite():
        return default
    return d


def to_money(value) -> Decimal:
    """Round a numeric value to cents."""
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def money_json(value) -> float:
    """Money for JSON payloads."""
    return float(to_money(value))


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def month_start_back(now: datetime, months: int) -> datetime:
    """First instant of the calendar month `months` before `now`'s month."""
    year, month = now.year, now.month - months
    while month <= 0:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)

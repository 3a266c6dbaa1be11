from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

TWOPLACES = Decimal("0.01")


def normalize_text(s: Any) -> str:
    if s is None:
        return ""
    return str(s).strip()


def optional_text(s: Any) -> str | None:
    return normalize_text(s) or None


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD (or a full ISO timestamp, keeping the date part)."""
    if s is None:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = normalize_text(s)
    if not s:
        return None
    return date.fromisoformat(s[:10])


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a number from JSON (int/float/str). Empty values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    raw = normalize_text(value).replace(",", "")
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e


def parse_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def money(value: Decimal | int | float | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_number(value: Decimal | None) -> float | None:
    """JSON-friendly number for Decimal columns."""
    if value is None:
        return None
    return float(value)


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def monthly_prefix(kind: str, today: date) -> str:
    """e.g. monthly_prefix("LOT", date(2026, 1, 5)) -> "LOT-202601"."""
    return f"{kind}-{today.year:04d}{today.month:02d}"


def next_serial(prefix: str, existing: list[str] | tuple[str, ...], width: int = 4) -> str:
    """
    Next "<prefix>-NNNN" number given the numbers already issued under that prefix.
    Uses the numeric maximum, so "-10000" sorts after "-9999".
    """
    highest = 0
    for value in existing:
        tail = (value or "").rsplit("-", 1)[-1]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return f"{prefix}-{highest + 1:0{width}d}"


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def last_n_months(n: int, today: date | None = None) -> list[str]:
    """Month keys (YYYY-MM), oldest first, ending with the current month."""
    today = today or date.today()
    year, month = today.year, today.month
    keys: list[str] = []
    for _ in range(max(1, n)):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(keys))

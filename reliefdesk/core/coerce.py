"""Lenient conversions used wherever raw answers feed arithmetic.

Every helper here is total: malformed input never raises, it falls back to a
conservative default (zero for amounts, ``False`` for flags).
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

_TRUE_STRINGS = {"true", "yes", "y", "1", "on"}
_FALSE_STRINGS = {"false", "no", "n", "0", "off", ""}
_AMOUNT_NOISE = re.compile(r"[\s$,_]")

#: Amounts beyond this magnitude are treated as unusable input.
AMOUNT_LIMIT = Decimal("1e18")


def _usable(amount: Decimal) -> bool:
    return amount.is_finite() and abs(amount) <= AMOUNT_LIMIT


def safe_decimal(value: Any, default: str = "0") -> Decimal:
    """Return ``value`` as a finite, bounded :class:`Decimal` or ``default``."""

    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, Decimal):
        return value if _usable(value) else Decimal(default)
    if isinstance(value, str):
        value = _AMOUNT_NOISE.sub("", value)
        if not value:
            return Decimal(default)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(default)
    if not _usable(result):
        return Decimal(default)
    return result


def optional_decimal(value: Any) -> Decimal | None:
    """Like :func:`safe_decimal` but keeps "no answer" distinguishable."""

    if is_blank(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = _AMOUNT_NOISE.sub("", value)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    return result if _usable(result) else None


def safe_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return False


def is_blank(value: Any) -> bool:
    """Return ``True`` when ``value`` counts as "not answered"."""

    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def parse_date(value: Any) -> date | None:
    """Parse ISO formatted dates (``YYYY-MM-DD``), ``None`` when unparseable."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def normalise_token(value: Any) -> str:
    """Lower-case a choice value and fold ``_``/spaces into ``-``."""

    if value is None:
        return ""
    return re.sub(r"[\s_]+", "-", str(value).strip().lower())


def json_sanitise(value: Any) -> Any:
    """Convert Decimals and dates into JSON friendly primitives."""

    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [json_sanitise(item) for item in value]
    if isinstance(value, dict):
        return {key: json_sanitise(val) for key, val in value.items()}
    return value

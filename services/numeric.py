from __future__ import annotations
import math
from datetime import date, datetime
from typing import Any, Optional


def parse_float_safe(value: Any) -> Optional[float]:
    """
    Locale-tolerant cell -> float. Never raises.
    None / "" -> None; numbers pass through; "1,5" -> 1.5; garbage -> None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    try:
        parsed = float(str(value).strip().replace(",", "."))
    except (TypeError, ValueError):
        return None
    return None if math.isnan(parsed) else parsed


def as_text(value: Any) -> str:
    if value is None:
        return ""
    # Excel hands long installation numbers back as floats
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_period(value: Any) -> str:
    """Period cells are 'MM/YYYY' text, but Excel may have turned them into dates."""
    if isinstance(value, (datetime, date)):
        return f"{value.month:02d}/{value.year}"
    return as_text(value)

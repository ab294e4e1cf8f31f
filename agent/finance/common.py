from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
TENTH = Decimal("0.1")


def safe_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return default
    text = text.replace(",", "")
    try:
        return float(text)
    except ValueError:
        return default


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def to_decimal(value: float) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)


def round_half_up(value: float, quantum: Decimal = CENT) -> float:
    if not is_finite_number(value):
        return 0.0
    return float(to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round2(value: float) -> float:
    return round_half_up(value, CENT)


def round1(value: float) -> float:
    return round_half_up(value, TENTH)


def fmt_money(value: Any) -> str:
    numeric = round2(safe_float(value))
    if abs(numeric - round(numeric)) < 0.005:
        return f"{int(round(numeric)):,}"
    return f"{numeric:,.2f}"

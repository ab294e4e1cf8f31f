from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .common import TENTH, is_finite_number, safe_float, to_decimal

TOTAL = 100.0
_TOTAL_DECIMAL = Decimal(100)
_MAX_ULP_STEPS = 256


class AllocationSource(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    value: float = Field(default=0.0)
    locked: bool = False


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _copy_sources(sources: Iterable[AllocationSource]) -> List[AllocationSource]:
    copies: List[AllocationSource] = []
    for source in sources:
        value = source.value if is_finite_number(source.value) else 0.0
        copies.append(AllocationSource(id=source.id, value=max(0.0, float(value)), locked=bool(source.locked)))
    return copies


def _absorber_order(sources: Sequence[AllocationSource], changed_index: int | None) -> List[int]:
    preferred: List[int] = []
    if changed_index is not None:
        preferred.append(changed_index)
    first_locked = next((idx for idx, source in enumerate(sources) if source.locked), None)
    if first_locked is not None:
        preferred.append(first_locked)
    preferred.append(len(sources) - 1)

    by_value = sorted(range(len(sources)), key=lambda idx: (-sources[idx].value, idx))
    order: List[int] = []
    for idx in [*preferred, *by_value]:
        if idx not in order:
            order.append(idx)
    return order


def _settle_float_total(values: List[float]) -> List[float]:
    """Nudge the largest value by whole ulps until ``sum(values) == 100.0``.

    Tenths are not exact binary floats, so a left-to-right ``sum`` of values
    that total exactly 100 in decimal can land one ulp off.
    """
    settled = list(values)
    idx = max(range(len(settled)), key=lambda i: settled[i])
    total = sum(settled)
    if total != TOTAL:
        settled[idx] += TOTAL - total
    for _ in range(_MAX_ULP_STEPS):
        total = sum(settled)
        if total == TOTAL:
            break
        settled[idx] = math.nextafter(settled[idx], math.inf if total < TOTAL else -math.inf)
    return settled


def normalize_total(sources: Sequence[AllocationSource], absorb_index: int | None = None) -> List[AllocationSource]:
    if not sources:
        return []
    rounded = [to_decimal(source.value).quantize(TENTH, rounding=ROUND_HALF_UP) for source in sources]
    diff = _TOTAL_DECIMAL - sum(rounded, Decimal(0))
    if diff != 0:
        for idx in _absorber_order(sources, absorb_index):
            candidate = rounded[idx] + diff
            if Decimal(0) <= candidate <= _TOTAL_DECIMAL:
                rounded[idx] = candidate
                break
    values = [float(value) for value in rounded]
    if sum(rounded, Decimal(0)) == _TOTAL_DECIMAL:
        values = _settle_float_total(values)
    return [
        AllocationSource(id=source.id, value=values[idx], locked=source.locked)
        for idx, source in enumerate(sources)
    ]


def rebalance_sources(
    sources: Sequence[AllocationSource],
    changed_id: str,
    new_value: float,
) -> List[AllocationSource]:
    result = _copy_sources(sources)
    idx = next((i for i, source in enumerate(result) if source.id == changed_id), -1)
    if idx == -1:
        return result

    other_locked_sum = sum(source.value for i, source in enumerate(result) if source.locked and i != idx)
    max_allowed = max(0.0, TOTAL - other_locked_sum)
    requested = safe_float(new_value)
    if not is_finite_number(requested):
        requested = 0.0
    clamped = _clamp(requested, 0.0, min(TOTAL, max_allowed))

    result[idx].value = clamped
    result[idx].locked = True

    locked_sum = sum(source.value for source in result if source.locked)
    remaining = TOTAL - locked_sum
    unlocked = [source for source in result if not source.locked]

    if not unlocked:
        other_sum = sum(source.value for i, source in enumerate(result) if i != idx)
        result[idx].value = _clamp(TOTAL - other_sum, 0.0, TOTAL)
        return normalize_total(result, idx)

    if len(unlocked) == 1:
        unlocked[0].value = _clamp(remaining, 0.0, TOTAL)
        return normalize_total(result, idx)

    unlocked_sum = sum(source.value for source in unlocked)
    if unlocked_sum <= 0:
        share = remaining / len(unlocked)
        for position, source in enumerate(unlocked):
            if position == len(unlocked) - 1:
                source.value = remaining - share * (len(unlocked) - 1)
            else:
                source.value = share
    else:
        for source in unlocked:
            source.value = (source.value / unlocked_sum) * remaining

    return normalize_total(result, idx)


def allocation_to_sources(allocation: Mapping[str, float], source_ids: Sequence[str]) -> List[AllocationSource]:
    return [
        AllocationSource(id=source_id, value=max(0.0, safe_float(allocation.get(source_id))), locked=False)
        for source_id in source_ids
    ]


def merge_locks(sources: Sequence[AllocationSource], locked_ids: Iterable[str]) -> List[AllocationSource]:
    locked = set(locked_ids)
    return [AllocationSource(id=source.id, value=source.value, locked=source.id in locked) for source in sources]


def sources_to_allocation(sources: Sequence[AllocationSource], source_ids: Sequence[str]) -> Dict[str, float]:
    by_id = {source.id: source for source in sources}
    out: Dict[str, float] = {}
    for source_id in source_ids:
        source = by_id.get(source_id)
        out[source_id] = _clamp(source.value, 0.0, TOTAL) if source is not None else 0.0
    return out


def get_locked_ids(sources: Sequence[AllocationSource]) -> set[str]:
    return {source.id for source in sources if source.locked}

from __future__ import annotations

from typing import Any

from .contracts import ConfidenceLevel

HIGH_CONFIDENCE_SOURCES = frozenset({"retirement_accounts", "plan_rules"})
MEDIUM_CONFIDENCE_SOURCES = ["retirement_knowledge"]


def compute_deterministic_confidence(sources: Any) -> ConfidenceLevel:
    """Confidence derived only from which data sources returned rows.

    The generator's own confidence claim is never consulted.
    """
    if not isinstance(sources, (list, tuple)):
        return "low"
    if any(source in HIGH_CONFIDENCE_SOURCES for source in sources):
        return "high"
    if list(sources) == MEDIUM_CONFIDENCE_SOURCES:
        return "medium"
    return "low"

from __future__ import annotations

import json
from typing import Any, Mapping

from ..router.contracts import DataSource, IntentName
from ..router.policy import data_sources_for_intent
from .contracts import RetirementDataV1

GUARDRAIL_PREAMBLE = (
    "Use ONLY the provided structured data below.\n"
    "If any required value is missing, explicitly state it is unavailable.\n"
    "Never fabricate financial numbers."
)
PARTICIPANT_HEADER = "### PARTICIPANT DATA"
USER_QUESTION_HEADER = "### USER QUESTION"
UNAVAILABLE = "Value unavailable"
NOT_REQUESTED = "(Not requested for this intent)"
MAX_TRANSACTIONS = 10

# (header, data source, row limit); order is the order of the rendered prompt.
DATA_SECTIONS: tuple[tuple[str, DataSource, int | None], ...] = (
    ("### ACCOUNT DATA", "retirement_accounts", None),
    ("### PLAN RULES", "plan_rules", None),
    ("### TRANSACTIONS", "account_transactions", MAX_TRANSACTIONS),
    ("### KNOWLEDGE SNIPPETS", "retirement_knowledge", None),
)
ALWAYS_INCLUDED_SOURCES: frozenset[DataSource] = frozenset({"retirement_knowledge"})


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _coerce_data(data: RetirementDataV1 | Mapping[str, Any] | None) -> RetirementDataV1:
    if isinstance(data, RetirementDataV1):
        return data
    if not isinstance(data, Mapping):
        return RetirementDataV1()
    rows: dict[str, Any] = {}
    for _, source, _ in DATA_SECTIONS:
        value = data.get(source)
        rows[source] = list(value) if isinstance(value, (list, tuple)) else None
    return RetirementDataV1.model_validate(rows)


def section_allowed(intent: IntentName, source: DataSource) -> bool:
    return source in ALWAYS_INCLUDED_SOURCES or source in data_sources_for_intent(intent)


def build_structured_prompt(
    intent: IntentName,
    data: RetirementDataV1 | Mapping[str, Any] | None,
    server_context: Mapping[str, Any] | None,
    user_message: str | None,
) -> str:
    resolved = _coerce_data(data)
    lines: list[str] = [GUARDRAIL_PREAMBLE, ""]

    lines.append(PARTICIPANT_HEADER)
    lines.append(_to_json(dict(server_context)) if isinstance(server_context, Mapping) else UNAVAILABLE)
    lines.append("")

    for header, source, limit in DATA_SECTIONS:
        lines.append(header)
        if not section_allowed(intent, source):
            lines.append(NOT_REQUESTED)
        else:
            rows = getattr(resolved, source)
            if rows:
                lines.append(_to_json(rows[:limit] if limit is not None else rows))
            else:
                lines.append(UNAVAILABLE)
        lines.append("")

    lines.append(USER_QUESTION_HEADER)
    question = user_message.strip() if isinstance(user_message, str) else ""
    lines.append(question or UNAVAILABLE)
    return "\n".join(lines)

from __future__ import annotations

from typing import Literal, get_args

IntentName = Literal[
    "balance_query",
    "loan_query",
    "withdrawal_query",
    "contribution_query",
    "enrollment_status",
    "plan_rules_query",
    "transaction_history",
    "general_retirement_knowledge",
]
DataSource = Literal["retirement_accounts", "plan_rules", "account_transactions", "retirement_knowledge"]

INTENTS: tuple[IntentName, ...] = get_args(IntentName)
DATA_SOURCES: tuple[DataSource, ...] = get_args(DataSource)
FALLBACK_INTENT: IntentName = "general_retirement_knowledge"

from __future__ import annotations

from .contracts import FALLBACK_INTENT, DataSource, IntentName

# Ordered: the first intent whose keyword occurs in the message wins.
INTENT_KEYWORD_TABLE: tuple[tuple[IntentName, tuple[str, ...]], ...] = (
    (
        "balance_query",
        (
            "balance",
            "how much",
            "total balance",
            "account value",
            "vested balance",
            "vested",
            "current balance",
            "my balance",
            "account total",
        ),
    ),
    (
        "loan_query",
        (
            "loan",
            "borrow",
            "borrow from",
            "401k loan",
            "plan loan",
            "take a loan",
            "loan amount",
            "eligible for loan",
            "loan limit",
        ),
    ),
    (
        "withdrawal_query",
        (
            "withdraw",
            "withdrawal",
            "withdraw money",
            "cash out",
            "take money out",
            "hardship",
            "distribution",
            "early withdrawal",
        ),
    ),
    (
        "contribution_query",
        (
            "contribution",
            "contribute",
            "contributing",
            "contribution rate",
            "percent",
            "paycheck",
            "salary deferral",
            "how much to contribute",
            "change contribution",
        ),
    ),
    (
        "enrollment_status",
        (
            "enrolled",
            "enrollment",
            "enroll",
            "enrollment status",
            "am i enrolled",
            "signed up",
            "join the plan",
            "start enrollment",
        ),
    ),
    (
        "plan_rules_query",
        (
            "plan rules",
            "match",
            "employer match",
            "vesting",
            "vesting schedule",
            "match percentage",
            "match limit",
            "loan allowed",
            "max loan",
            "plan details",
            "rules",
        ),
    ),
    (
        "transaction_history",
        (
            "transaction",
            "transactions",
            "history",
            "recent",
            "activity",
            "statement",
            "contributions history",
            "payment history",
        ),
    ),
)

DATA_SOURCE_MAP: dict[IntentName, list[DataSource]] = {
    "balance_query": ["retirement_accounts"],
    "loan_query": ["retirement_accounts", "plan_rules"],
    "withdrawal_query": ["retirement_accounts", "plan_rules"],
    "contribution_query": ["retirement_accounts", "plan_rules", "account_transactions"],
    "enrollment_status": ["retirement_accounts"],
    "plan_rules_query": ["plan_rules", "retirement_knowledge"],
    "transaction_history": ["account_transactions"],
    "general_retirement_knowledge": ["retirement_knowledge"],
}


def resolve_intent(message: object) -> IntentName:
    if not isinstance(message, str):
        return FALLBACK_INTENT
    lowered = message.strip().lower()
    if not lowered:
        return FALLBACK_INTENT
    for intent, keywords in INTENT_KEYWORD_TABLE:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return FALLBACK_INTENT


def data_sources_for_intent(intent: IntentName) -> list[DataSource]:
    return list(DATA_SOURCE_MAP.get(intent, DATA_SOURCE_MAP[FALLBACK_INTENT]))

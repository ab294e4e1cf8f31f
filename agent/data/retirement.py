from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

import requests

from ..config import CORE_AI_LOG_ENABLED, CORE_AI_LOG_MAX_CHARS
from ..response.contracts import DataFetchResultV1, RetirementDataV1
from ..router.contracts import DataSource, IntentName
from ..router.policy import data_sources_for_intent
from .supabase_rest import SupabaseRestClient, SupabaseRestError, get_supabase_client

logger = logging.getLogger(__name__)

AI_LOG_TABLE = "ai_logs"
ACCOUNT_LIMIT = 5
PLAN_RULES_LIMIT = 5
TRANSACTION_LIMIT = 20
KNOWLEDGE_LIMIT = 10

Rows = List[Dict[str, Any]]


def _fetch_retirement_accounts(client: SupabaseRestClient, user_id: str, company_id: str | None) -> Rows | None:
    filters = {"user_id": f"eq.{user_id}"}
    if company_id:
        filters["company_id"] = f"eq.{company_id}"
    return client.fetch_rows("retirement_accounts", filters=filters, limit=ACCOUNT_LIMIT)


def _fetch_plan_rules(client: SupabaseRestClient, user_id: str, company_id: str | None) -> Rows | None:
    if not company_id:
        return None
    return client.fetch_rows("plan_rules", filters={"company_id": f"eq.{company_id}"}, limit=PLAN_RULES_LIMIT)


def _fetch_account_transactions(client: SupabaseRestClient, user_id: str, company_id: str | None) -> Rows | None:
    filters = {"user_id": f"eq.{user_id}"}
    if company_id:
        filters["company_id"] = f"eq.{company_id}"
    return client.fetch_rows(
        "account_transactions",
        filters=filters,
        order="created_at.desc",
        limit=TRANSACTION_LIMIT,
    )


def _fetch_retirement_knowledge(client: SupabaseRestClient, user_id: str, company_id: str | None) -> Rows | None:
    filters: Dict[str, str] = {}
    if company_id:
        filters["or"] = f"(company_id.is.null,company_id.eq.{company_id})"
    return client.fetch_rows("retirement_knowledge", select="topic,content", filters=filters, limit=KNOWLEDGE_LIMIT)


FETCHERS: dict[DataSource, Callable[[SupabaseRestClient, str, str | None], Rows | None]] = {
    "retirement_accounts": _fetch_retirement_accounts,
    "plan_rules": _fetch_plan_rules,
    "account_transactions": _fetch_account_transactions,
    "retirement_knowledge": _fetch_retirement_knowledge,
}


def get_data_for_intent(
    intent: IntentName,
    user_id: str,
    company_id: str | None,
    *,
    client: SupabaseRestClient | None = None,
) -> DataFetchResultV1:
    resolved_client = client or get_supabase_client()
    fetched: dict[str, Rows | None] = {}
    for source in data_sources_for_intent(intent):
        try:
            fetched[source] = FETCHERS[source](resolved_client, user_id, company_id)
        except (SupabaseRestError, requests.RequestException) as exc:
            logger.warning("retirement_data_fetch_failed source=%s intent=%s error=%s", source, intent, exc)
            fetched[source] = None

    data = RetirementDataV1.model_validate(fetched)
    return DataFetchResultV1(data=data, sources=data.non_empty_sources())


def _truncate(value: Any, max_chars: int) -> str:
    return str(value or "")[:max_chars]


def insert_ai_log(
    *,
    user_id: str,
    company_id: str | None,
    question: str,
    detected_intent: str | None,
    response: str,
    data_sources: list[str] | None = None,
    client: SupabaseRestClient | None = None,
) -> bool:
    if not CORE_AI_LOG_ENABLED:
        return False
    row: Dict[str, Any] = {
        "user_id": user_id,
        "company_id": company_id or None,
        "question": _truncate(question, CORE_AI_LOG_MAX_CHARS),
        "detected_intent": detected_intent or None,
        "response": _truncate(response, CORE_AI_LOG_MAX_CHARS),
    }
    if data_sources:
        row["data_sources"] = list(data_sources)

    resolved_client = client or get_supabase_client()
    try:
        resolved_client.insert_rows(AI_LOG_TABLE, [row])
    except (SupabaseRestError, requests.RequestException) as exc:
        logger.warning("ai_log_insert_failed user_id=%s error=%s", user_id, exc)
        return False
    return True

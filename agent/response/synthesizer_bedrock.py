from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, Mapping

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import (
    AWS_REGION,
    BEDROCK_CONNECT_TIMEOUT,
    BEDROCK_MAX_TOKENS,
    BEDROCK_MODEL_ID,
    BEDROCK_READ_TIMEOUT,
    BEDROCK_TEMPERATURE,
)
from ..router.contracts import IntentName
from .confidence import compute_deterministic_confidence
from .contracts import ComposedReplyV1, CoreReplyV1, RetirementDataV1
from .prompt_builder import build_structured_prompt
from .schemas import invalid_core_reply_fields

logger = logging.getLogger(__name__)

EMPTY_REPLY_FALLBACK = "I couldn't generate a response. Please try again."
MODEL_NOT_CONFIGURED_MESSAGE = (
    "I'm currently unable to process your request. Please try again later or contact support."
)
RATE_LIMITED_MESSAGE = "I'm receiving a lot of questions right now. Please wait a moment and try again."
BACKEND_FAILURE_MESSAGE = "I'm having trouble right now. Please try again in a moment."
_THROTTLING_CODES = {"ThrottlingException", "TooManyRequestsException", "ServiceQuotaExceededException"}

SYSTEM_PROMPT = """You are a US retirement assistant for a participant portal.
- Use ONLY the provided structured data below. If a section says "Value unavailable", state that the information is not available. Never fabricate financial numbers.
- Keep spoken_text concise (1-3 sentences). Be professional and encouraging.
- Respond with valid JSON only, no markdown or extra text."""

JSON_SHAPE_INSTRUCTIONS = """Respond with exactly this JSON shape:
{
  "type": "<intent type, e.g. balance_answer>",
  "spoken_text": "<short answer for the user>",
  "ui_data": { "<key>": <value> for any numbers or facts to show in UI, e.g. balance, vested_balance, or {} },
  "confidence": "high" | "medium" | "low"
}"""

Generator = Callable[[str], str]


def _build_prompt(
    *,
    user_message: str,
    intent: IntentName,
    data: RetirementDataV1 | Mapping[str, Any] | None,
    server_context: Mapping[str, Any] | None,
) -> str:
    context_block = build_structured_prompt(intent, data, server_context, user_message)
    return f"{SYSTEM_PROMPT}\n\n{context_block}\n\n{JSON_SHAPE_INSTRUCTIONS}"


def _extract_text_from_converse_payload(payload: Dict[str, Any]) -> str:
    output = payload.get("output") or {}
    message = output.get("message") or {}
    content = message.get("content") or []
    texts: list[str] = []
    if isinstance(content, list):
        for item in content:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                texts.append(item["text"])
    return "\n".join(texts).strip()


def _try_parse_json(raw_text: str) -> Dict[str, Any] | None:
    text = _normalize_json_text(raw_text or "")
    if not text:
        return None

    direct = _load_json_candidate(text)
    if isinstance(direct, dict):
        return direct

    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", text, flags=re.DOTALL | re.IGNORECASE)
    if fenced:
        parsed = _load_json_candidate(fenced.group(1))
        if isinstance(parsed, dict):
            return parsed

    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    parsed = _load_json_candidate(text[start : end + 1])
    return parsed if isinstance(parsed, dict) else None


def _normalize_json_text(text: str) -> str:
    normalized = str(text or "").strip().lstrip("\ufeff")
    for source, target in {"\u201c": '"', "\u201d": '"'}.items():
        normalized = normalized.replace(source, target)
    normalized = re.sub(r"^\s*json\s*[:\-]?\s*(?=\{)", "", normalized, flags=re.IGNORECASE)
    return normalized.strip()


def _load_json_candidate(text: str) -> Dict[str, Any] | None:
    candidate = _normalize_json_text(text)
    if not candidate:
        return None

    # Second attempt tolerates trailing commas.
    for item in (candidate, re.sub(r",(\s*[}\]])", r"\1", candidate)):
        try:
            parsed = json.loads(item)
        except (json.JSONDecodeError, RecursionError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def compose_core_reply(raw_text: Any, intent: str) -> ComposedReplyV1:
    trimmed = raw_text.strip() if isinstance(raw_text, str) else ""
    fallback_text = trimmed or EMPTY_REPLY_FALLBACK

    payload = _try_parse_json(trimmed)
    if payload is None:
        if trimmed:
            logger.info("core_reply_unstructured intent=%s chars=%s", intent, len(trimmed))
        return ComposedReplyV1(type=intent, spoken_text=fallback_text, ui_data={})

    invalid = invalid_core_reply_fields(payload)
    if invalid:
        logger.warning("core_reply_schema_fallback intent=%s fields=%s", intent, ",".join(sorted(invalid)))

    reply_type = payload.get("type") if "type" in payload and "type" not in invalid else intent
    spoken_text = payload.get("spoken_text") if "spoken_text" not in invalid else None
    ui_data = payload.get("ui_data") if "ui_data" in payload and "ui_data" not in invalid else {}
    spoken = spoken_text.strip() if isinstance(spoken_text, str) else ""

    return ComposedReplyV1(
        type=str(reply_type),
        spoken_text=spoken or fallback_text,
        ui_data=dict(ui_data or {}),
    )


def _invoke_bedrock_converse(prompt: str, *, model_id: str) -> str:
    client = boto3.client(
        "bedrock-runtime",
        region_name=AWS_REGION,
        config=Config(
            connect_timeout=BEDROCK_CONNECT_TIMEOUT,
            read_timeout=BEDROCK_READ_TIMEOUT,
            retries={"mode": "standard", "max_attempts": 1},
        ),
    )
    response = client.converse(
        modelId=model_id,
        messages=[{"role": "user", "content": [{"text": prompt}]}],
        inferenceConfig={"temperature": BEDROCK_TEMPERATURE, "maxTokens": BEDROCK_MAX_TOKENS},
    )
    return _extract_text_from_converse_payload(response)


def _is_rate_limited(exc: Exception) -> bool:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error") or {}
        status = (exc.response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
        return str(error.get("Code") or "") in _THROTTLING_CODES or status == 429
    return getattr(exc, "status_code", None) == 429 or "429" in str(exc)


def _sentinel_reply(message: str, *, intent: str, sources: list[str], error: str) -> CoreReplyV1:
    return CoreReplyV1(
        reply=message,
        filtered=False,
        type=intent,
        spoken_text=message,
        ui_data={},
        confidence="low",
        data_sources=sources,
        error=error,
    )


def generate_core_reply(
    user_message: str,
    *,
    intent: IntentName,
    data: RetirementDataV1 | Mapping[str, Any] | None = None,
    server_context: Mapping[str, Any] | None = None,
    sources: list[str] | None = None,
    generate: Generator | None = None,
    model_id: str | None = None,
) -> CoreReplyV1:
    resolved_sources = list(sources or [])

    generator = generate
    if generator is None:
        resolved_model = (model_id or BEDROCK_MODEL_ID or "").strip()
        if not resolved_model:
            logger.warning("core_reply_model_not_configured intent=%s", intent)
            return _sentinel_reply(
                MODEL_NOT_CONFIGURED_MESSAGE,
                intent=intent,
                sources=resolved_sources,
                error="model_not_configured",
            )

        def generator(prompt: str) -> str:
            return _invoke_bedrock_converse(prompt, model_id=resolved_model)

    prompt_text = _build_prompt(user_message=user_message, intent=intent, data=data, server_context=server_context)
    try:
        raw_text = generator(prompt_text)
    except Exception as exc:
        if _is_rate_limited(exc):
            logger.warning("core_reply_rate_limited intent=%s", intent)
            return _sentinel_reply(RATE_LIMITED_MESSAGE, intent=intent, sources=resolved_sources, error="rate_limited")
        logger.warning("core_reply_generator_failed intent=%s error=%s", intent, exc)
        return _sentinel_reply(
            BACKEND_FAILURE_MESSAGE,
            intent=intent,
            sources=resolved_sources,
            error=f"generator_error:{type(exc).__name__}",
        )

    composed = compose_core_reply(raw_text, intent)
    return CoreReplyV1(
        reply=composed.spoken_text,
        filtered=False,
        type=composed.type,
        spoken_text=composed.spoken_text,
        ui_data=composed.ui_data,
        confidence=compute_deterministic_confidence(resolved_sources),
        data_sources=resolved_sources,
    )

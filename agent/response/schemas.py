from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft202012Validator

CONFIDENCE_ENUM = ["high", "medium", "low"]

# Shape the generator is asked to emit. Every field is optional so that a
# partially valid object still contributes its valid fields.
CORE_REPLY_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "type": {"type": "string", "minLength": 1},
        "spoken_text": {"type": "string", "minLength": 1},
        "ui_data": {"type": "object"},
        "confidence": {"type": "string", "enum": CONFIDENCE_ENUM},
    },
}

_core_reply_validator = Draft202012Validator(CORE_REPLY_JSON_SCHEMA)


def validate_core_reply_payload(payload: Dict[str, Any]) -> list[str]:
    errors = sorted(_core_reply_validator.iter_errors(payload), key=lambda item: list(item.path))
    messages: list[str] = []
    for item in errors:
        path = ".".join(str(part) for part in item.path)
        location = path if path else "$"
        messages.append(f"{location}: {item.message}")
    return messages


def invalid_core_reply_fields(payload: Dict[str, Any]) -> set[str]:
    fields: set[str] = set()
    for item in _core_reply_validator.iter_errors(payload):
        if item.path:
            fields.add(str(item.path[0]))
        else:
            fields.add("$")
    return fields

from .confidence import compute_deterministic_confidence
from .contracts import ComposedReplyV1, ConfidenceLevel, CoreReplyV1, DataFetchResultV1, RetirementDataV1
from .prompt_builder import NOT_REQUESTED, UNAVAILABLE, build_structured_prompt
from .schemas import CORE_REPLY_JSON_SCHEMA, validate_core_reply_payload
from .synthesizer_bedrock import compose_core_reply, generate_core_reply

__all__ = [
    "CORE_REPLY_JSON_SCHEMA",
    "NOT_REQUESTED",
    "UNAVAILABLE",
    "ComposedReplyV1",
    "ConfidenceLevel",
    "CoreReplyV1",
    "DataFetchResultV1",
    "RetirementDataV1",
    "build_structured_prompt",
    "compose_core_reply",
    "compute_deterministic_confidence",
    "generate_core_reply",
    "validate_core_reply_payload",
]

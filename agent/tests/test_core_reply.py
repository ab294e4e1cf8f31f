from __future__ import annotations

import json
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from botocore.exceptions import ClientError

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agent.response import (  # noqa: E402
    RetirementDataV1,
    compose_core_reply,
    compute_deterministic_confidence,
    generate_core_reply,
    validate_core_reply_payload,
)
from agent.response.synthesizer_bedrock import (  # noqa: E402
    BACKEND_FAILURE_MESSAGE,
    EMPTY_REPLY_FALLBACK,
    MODEL_NOT_CONFIGURED_MESSAGE,
    RATE_LIMITED_MESSAGE,
    SYSTEM_PROMPT,
)

VALID_REPLY = json.dumps(
    {
        "type": "balance_answer",
        "spoken_text": "Your vested balance is shown below.",
        "ui_data": {"vested_balance": 90000},
        "confidence": "high",
    }
)


class ConfidenceTests(unittest.TestCase):
    def test_confidence_rule(self) -> None:
        self.assertEqual(compute_deterministic_confidence(["plan_rules"]), "high")
        self.assertEqual(compute_deterministic_confidence(["retirement_accounts"]), "high")
        self.assertEqual(compute_deterministic_confidence(["retirement_knowledge"]), "medium")
        self.assertEqual(compute_deterministic_confidence([]), "low")
        self.assertEqual(compute_deterministic_confidence(["retirement_knowledge", "plan_rules"]), "high")

    def test_other_combinations_are_low(self) -> None:
        self.assertEqual(compute_deterministic_confidence(["account_transactions"]), "low")
        self.assertEqual(compute_deterministic_confidence(["retirement_knowledge", "account_transactions"]), "low")
        self.assertEqual(compute_deterministic_confidence(None), "low")
        self.assertEqual(compute_deterministic_confidence("plan_rules"), "low")


class ComposeReplyTests(unittest.TestCase):
    def test_adopts_fields_from_json(self) -> None:
        composed = compose_core_reply(VALID_REPLY, "balance_query")
        self.assertEqual(composed.type, "balance_answer")
        self.assertEqual(composed.spoken_text, "Your vested balance is shown below.")
        self.assertEqual(composed.ui_data, {"vested_balance": 90000})

    def test_finds_json_inside_fences_and_prose(self) -> None:
        fenced = compose_core_reply(f"Sure!\n```json\n{VALID_REPLY}\n```", "balance_query")
        embedded = compose_core_reply(f"Here you go: {VALID_REPLY} Thanks.", "balance_query")
        self.assertEqual(fenced.type, "balance_answer")
        self.assertEqual(embedded.spoken_text, "Your vested balance is shown below.")

    def test_plain_text_falls_back_to_intent(self) -> None:
        composed = compose_core_reply("  Your plan allows loans.  ", "loan_query")
        self.assertEqual(composed.type, "loan_query")
        self.assertEqual(composed.spoken_text, "Your plan allows loans.")
        self.assertEqual(composed.ui_data, {})

    def test_broken_json_never_raises(self) -> None:
        composed = compose_core_reply('{"type": "x", "spoken_text": ', "loan_query")
        self.assertEqual(composed.type, "loan_query")
        self.assertEqual(composed.spoken_text, '{"type": "x", "spoken_text":')

    def test_empty_or_non_text_uses_fixed_fallback(self) -> None:
        self.assertEqual(compose_core_reply("", "loan_query").spoken_text, EMPTY_REPLY_FALLBACK)
        self.assertEqual(compose_core_reply(None, "loan_query").spoken_text, EMPTY_REPLY_FALLBACK)

    def test_deeply_nested_json_falls_back_to_text(self) -> None:
        raw = '{"a":' + "[" * 100000 + "]" * 100000 + "}"
        composed = compose_core_reply(raw, "loan_query")
        self.assertEqual(composed.type, "loan_query")
        self.assertEqual(composed.spoken_text, raw)
        self.assertEqual(composed.ui_data, {})

        reply = generate_core_reply("loan?", intent="loan_query", generate=lambda prompt: raw)
        self.assertEqual(reply.type, "loan_query")
        self.assertIsNone(reply.error)

    def test_invalid_fields_fall_back_individually(self) -> None:
        raw = json.dumps({"type": "balance_answer", "spoken_text": "Balance unavailable.", "ui_data": [1, 2]})
        composed = compose_core_reply(raw, "balance_query")
        self.assertEqual(composed.type, "balance_answer")
        self.assertEqual(composed.spoken_text, "Balance unavailable.")
        self.assertEqual(composed.ui_data, {})

    def test_missing_spoken_text_uses_full_text(self) -> None:
        raw = json.dumps({"type": "balance_answer"})
        composed = compose_core_reply(raw, "balance_query")
        self.assertEqual(composed.spoken_text, raw)

    def test_schema_messages(self) -> None:
        self.assertEqual(validate_core_reply_payload(json.loads(VALID_REPLY)), [])
        errors = validate_core_reply_payload({"confidence": "certain"})
        self.assertEqual(len(errors), 1)
        self.assertTrue(errors[0].startswith("confidence:"))


class PublicSurfaceTests(unittest.TestCase):
    def test_exports_resolve(self) -> None:
        import agent.response as response_package

        self.assertNotIn("PROMPT_VERSION", response_package.__all__)
        for name in response_package.__all__:
            self.assertTrue(hasattr(response_package, name), msg=name)


class GenerateReplyTests(unittest.TestCase):
    def test_generator_output_is_composed_and_confidence_overridden(self) -> None:
        prompts: list[str] = []

        def fake_generate(prompt: str) -> str:
            prompts.append(prompt)
            return VALID_REPLY

        reply = generate_core_reply(
            "What is my balance?",
            intent="balance_query",
            data=RetirementDataV1(),
            server_context={"user_id": "u1"},
            sources=[],
            generate=fake_generate,
        )
        self.assertEqual(reply.confidence, "low")
        self.assertEqual(reply.reply, reply.spoken_text)
        self.assertEqual(reply.type, "balance_answer")
        self.assertEqual(reply.data_sources, [])
        self.assertIsNone(reply.error)
        self.assertFalse(reply.filtered)

        self.assertEqual(len(prompts), 1)
        self.assertTrue(prompts[0].startswith(SYSTEM_PROMPT))
        self.assertIn("### USER QUESTION\nWhat is my balance?", prompts[0])
        self.assertIn("Respond with exactly this JSON shape:", prompts[0])

    def test_sources_drive_confidence(self) -> None:
        reply = generate_core_reply(
            "What are the plan rules?",
            intent="plan_rules_query",
            sources=["plan_rules"],
            generate=lambda prompt: "Rules are listed in your plan.",
        )
        self.assertEqual(reply.confidence, "high")
        self.assertEqual(reply.type, "plan_rules_query")
        self.assertEqual(reply.data_sources, ["plan_rules"])

    def test_unconfigured_model_returns_sentinel(self) -> None:
        with patch("agent.response.synthesizer_bedrock.BEDROCK_MODEL_ID", ""):
            reply = generate_core_reply("hi", intent="general_retirement_knowledge", sources=["retirement_knowledge"])
        self.assertEqual(reply.spoken_text, MODEL_NOT_CONFIGURED_MESSAGE)
        self.assertEqual(reply.error, "model_not_configured")
        self.assertEqual(reply.confidence, "low")
        self.assertEqual(reply.data_sources, ["retirement_knowledge"])

    def test_configured_model_invokes_bedrock(self) -> None:
        with patch(
            "agent.response.synthesizer_bedrock._invoke_bedrock_converse",
            return_value=VALID_REPLY,
        ) as invoke:
            reply = generate_core_reply("balance?", intent="balance_query", model_id="test-model")
        invoke.assert_called_once()
        self.assertEqual(invoke.call_args.kwargs["model_id"], "test-model")
        self.assertEqual(reply.type, "balance_answer")

    def test_throttling_returns_rate_limited_sentinel(self) -> None:
        def throttled(prompt: str) -> str:
            raise ClientError({"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, "Converse")

        reply = generate_core_reply("hi", intent="loan_query", generate=throttled)
        self.assertEqual(reply.spoken_text, RATE_LIMITED_MESSAGE)
        self.assertEqual(reply.error, "rate_limited")

    def test_other_failures_return_generic_sentinel(self) -> None:
        def broken(prompt: str) -> str:
            raise RuntimeError("connection reset")

        with self.assertLogs("agent.response.synthesizer_bedrock", level="WARNING"):
            reply = generate_core_reply("hi", intent="loan_query", generate=broken)
        self.assertEqual(reply.spoken_text, BACKEND_FAILURE_MESSAGE)
        self.assertEqual(reply.error, "generator_error:RuntimeError")
        self.assertEqual(reply.type, "loan_query")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agent.response import NOT_REQUESTED, UNAVAILABLE, RetirementDataV1, build_structured_prompt  # noqa: E402
from agent.response.prompt_builder import GUARDRAIL_PREAMBLE  # noqa: E402
from agent.router import INTENTS  # noqa: E402

HEADERS = [
    "### PARTICIPANT DATA",
    "### ACCOUNT DATA",
    "### PLAN RULES",
    "### TRANSACTIONS",
    "### KNOWLEDGE SNIPPETS",
    "### USER QUESTION",
]
CONTEXT = {"user_id": "u1", "company_id": "c1", "email": None}


def _section(prompt: str, header: str) -> str:
    body = prompt.split(f"{header}\n", 1)[1]
    return body.split("\n### ", 1)[0].strip()


class StructuredPromptTests(unittest.TestCase):
    def test_every_header_is_present_in_order_for_every_intent(self) -> None:
        for intent in INTENTS:
            prompt = build_structured_prompt(intent, RetirementDataV1(), CONTEXT, "hi")
            self.assertTrue(prompt.startswith(GUARDRAIL_PREAMBLE))
            positions = [prompt.index(header) for header in HEADERS]
            self.assertEqual(positions, sorted(positions), msg=intent)

    def test_balance_query_sections(self) -> None:
        data = RetirementDataV1(retirement_accounts=[{"balance": 120000, "vested_balance": 90000}])
        prompt = build_structured_prompt("balance_query", data, CONTEXT, "What is my balance?")
        self.assertIn('"vested_balance": 90000', _section(prompt, "### ACCOUNT DATA"))
        self.assertEqual(_section(prompt, "### PLAN RULES"), NOT_REQUESTED)
        self.assertEqual(_section(prompt, "### TRANSACTIONS"), NOT_REQUESTED)
        self.assertEqual(_section(prompt, "### KNOWLEDGE SNIPPETS"), UNAVAILABLE)
        self.assertEqual(_section(prompt, "### USER QUESTION"), "What is my balance?")
        self.assertIn('"user_id": "u1"', _section(prompt, "### PARTICIPANT DATA"))

    def test_allowed_but_empty_sections_are_marked_unavailable(self) -> None:
        data = RetirementDataV1(retirement_accounts=[], plan_rules=None)
        prompt = build_structured_prompt("loan_query", data, CONTEXT, "loan?")
        self.assertEqual(_section(prompt, "### ACCOUNT DATA"), UNAVAILABLE)
        self.assertEqual(_section(prompt, "### PLAN RULES"), UNAVAILABLE)

    def test_transactions_are_truncated_to_ten(self) -> None:
        rows = [{"id": idx, "amount": 100 + idx} for idx in range(15)]
        prompt = build_structured_prompt("transaction_history", {"account_transactions": rows}, CONTEXT, "history")
        section = _section(prompt, "### TRANSACTIONS")
        self.assertEqual(section.count('"id":'), 10)
        self.assertIn('"id": 9', section)
        self.assertNotIn('"id": 14', section)

    def test_knowledge_is_always_included(self) -> None:
        data = RetirementDataV1(retirement_knowledge=[{"topic": "vesting", "content": "Employer money vests."}])
        prompt = build_structured_prompt("balance_query", data, CONTEXT, "hi")
        self.assertIn("Employer money vests.", _section(prompt, "### KNOWLEDGE SNIPPETS"))

    def test_missing_context_and_question(self) -> None:
        prompt = build_structured_prompt("general_retirement_knowledge", None, None, "   ")
        self.assertEqual(_section(prompt, "### PARTICIPANT DATA"), UNAVAILABLE)
        self.assertEqual(_section(prompt, "### USER QUESTION"), UNAVAILABLE)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import re
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agent.flows import WithdrawalInfoState, create_initial_withdrawal_state, get_withdrawal_response  # noqa: E402
from agent.flows.withdrawal_info import (  # noqa: E402
    ADVICE_REFUSAL,
    ELIGIBILITY_SUMMARIES,
    NEXT_STEPS_MESSAGE,
    PENALTY_DISCLAIMER,
    START_EXPLANATION,
    classify_age,
    classify_employment,
)

DOLLAR_FIGURE = re.compile(r"\$\s*\d")
SAMPLE_INPUTS = [
    "yes",
    "no",
    "62",
    "45",
    "I'm 59½",
    "over 59",
    "retired",
    "still employed",
    "restart",
    "what do you recommend",
    "$5,000 please",
    "hello",
    "",
]


def _run(inputs: list[str]) -> WithdrawalInfoState:
    state = create_initial_withdrawal_state()
    for text in inputs:
        state = get_withdrawal_response(state, text).next_state
    return state


class WithdrawalFlowTests(unittest.TestCase):
    def test_start_explains_until_user_proceeds(self) -> None:
        response = get_withdrawal_response(create_initial_withdrawal_state(), "hmm")
        self.assertEqual(response.message, START_EXPLANATION)
        self.assertEqual(response.next_state.step, "START")
        self.assertEqual(get_withdrawal_response(response.next_state, "ready").next_state.step, "AGE_CHECK")

    def test_full_flow_reaches_next_steps(self) -> None:
        state = _run(["yes", "62"])
        self.assertEqual(state.step, "EMPLOYMENT_CHECK")
        self.assertTrue(state.is_59_or_older)

        summary = get_withdrawal_response(state, "no")
        self.assertEqual(summary.next_state.step, "ELIGIBILITY_SUMMARY")
        self.assertFalse(summary.next_state.is_employed)
        self.assertIn("no longer employed", summary.message)
        self.assertTrue(summary.message.endswith(PENALTY_DISCLAIMER))
        self.assertFalse(summary.is_complete)

        next_steps = get_withdrawal_response(summary.next_state, "what does that mean")
        self.assertEqual(next_steps.next_state.step, "NEXT_STEPS")
        self.assertEqual(next_steps.message, NEXT_STEPS_MESSAGE)
        self.assertTrue(next_steps.is_complete)

    def test_next_steps_restart_resets(self) -> None:
        state = _run(["yes", "45", "yes", "ok"])
        self.assertEqual(state.step, "NEXT_STEPS")
        restarted = get_withdrawal_response(state, "start over")
        self.assertEqual(restarted.next_state, create_initial_withdrawal_state())
        self.assertFalse(restarted.is_complete)
        repeat = get_withdrawal_response(state, "thanks")
        self.assertEqual(repeat.next_state.step, "NEXT_STEPS")
        self.assertTrue(repeat.is_complete)

    def test_unrecognized_age_reprompts(self) -> None:
        state = _run(["yes"])
        response = get_withdrawal_response(state, "maybe")
        self.assertEqual(response.next_state.step, "AGE_CHECK")
        self.assertIsNone(response.next_state.is_59_or_older)

    def test_advice_is_refused_without_state_change(self) -> None:
        state = _run(["yes"])
        response = get_withdrawal_response(state, "Should I withdraw my money now?")
        self.assertEqual(response.message, ADVICE_REFUSAL)
        self.assertEqual(response.next_state, state)

    def test_summary_branches_cover_all_combinations(self) -> None:
        self.assertEqual(set(ELIGIBILITY_SUMMARIES), {(True, True), (True, False), (False, True), (False, False)})
        self.assertIn("in-service withdrawals", _summary(["yes", "yes", "yes"]))
        self.assertIn("more flexibility", _summary(["yes", "yes", "no"]))
        self.assertIn("hardship", _summary(["yes", "no", "yes"]))
        self.assertIn("different withdrawal options", _summary(["yes", "no", "no"]))

    def test_no_message_contains_a_dollar_figure(self) -> None:
        seen: set[tuple] = set()
        frontier = [create_initial_withdrawal_state()]
        while frontier:
            state = frontier.pop()
            key = tuple(state.model_dump().items())
            if key in seen:
                continue
            seen.add(key)
            for text in SAMPLE_INPUTS:
                response = get_withdrawal_response(state, text)
                self.assertIsNone(DOLLAR_FIGURE.search(response.message), msg=f"{state} + {text!r}")
                self.assertTrue(response.message)
                frontier.append(response.next_state)
        self.assertEqual({dict(key)["step"] for key in seen}, {
            "START",
            "AGE_CHECK",
            "EMPLOYMENT_CHECK",
            "ELIGIBILITY_SUMMARY",
            "NEXT_STEPS",
        })


def _summary(inputs: list[str]) -> str:
    state = create_initial_withdrawal_state()
    message = ""
    for text in inputs:
        response = get_withdrawal_response(state, text)
        state, message = response.next_state, response.message
    return message


class AgeAndEmploymentParsingTests(unittest.TestCase):
    def test_numeric_ages(self) -> None:
        self.assertTrue(classify_age("62"))
        self.assertTrue(classify_age("i'm 59.5"))
        self.assertFalse(classify_age("i'm 45"))
        self.assertFalse(classify_age("59"))

    def test_qualified_ages(self) -> None:
        self.assertTrue(classify_age("over 59"))
        self.assertFalse(classify_age("under 59.5"))

    def test_yes_no_tokens(self) -> None:
        self.assertTrue(classify_age("yes"))
        self.assertFalse(classify_age("nope"))
        self.assertIsNone(classify_age("i know"))
        self.assertIsNone(classify_age("150"))

    def test_employment_tokens(self) -> None:
        self.assertTrue(classify_employment("yes, i still work there"))
        self.assertFalse(classify_employment("i retired last year"))
        self.assertFalse(classify_employment("not employed anymore"))
        self.assertIsNone(classify_employment("hmm"))


if __name__ == "__main__":
    unittest.main()

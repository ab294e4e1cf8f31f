from __future__ import annotations

import re
import sys
import unittest
from pathlib import Path

from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agent.flows import VestingPlanData, create_initial_vesting_state, get_vesting_response  # noqa: E402
from agent.flows.vesting_info import CLARIFY_MESSAGE, FORFEITURE_MESSAGE  # noqa: E402


class VestingFlowTests(unittest.TestCase):
    def test_start_mentions_plan_data_when_present(self) -> None:
        state = create_initial_vesting_state(VestingPlanData(schedule_type="cliff", current_vesting_pct=40))
        response = get_vesting_response(state, "what is my vested balance")
        self.assertEqual(response.next_state.step, "FOLLOWUP")
        self.assertIn("Your plan uses cliff vesting.", response.message)
        self.assertIn("You're currently 40% vested", response.message)
        self.assertTrue(response.message.endswith("Would you like to see your vesting schedule?"))

    def test_start_without_plan_data(self) -> None:
        response = get_vesting_response(create_initial_vesting_state(), "")
        self.assertNotIn("Your plan uses", response.message)
        self.assertIn("Your own contributions are always yours.", response.message)

    def test_schedule_request_lists_plan_details(self) -> None:
        state = create_initial_vesting_state(VestingPlanData(schedule_type="graded", current_vesting_pct=62.5))
        followup = get_vesting_response(state, "hi").next_state
        response = get_vesting_response(followup, "show me the schedule")
        self.assertIn("- Type: graded vesting", response.message)
        self.assertIn("- Current vesting: 62.5%", response.message)
        self.assertFalse(response.is_complete)

    def test_schedule_without_data_marks_unavailable(self) -> None:
        followup = get_vesting_response(create_initial_vesting_state(), "hi").next_state
        response = get_vesting_response(followup, "yes")
        self.assertIn("- Type: (not available yet)", response.message)
        self.assertIn("- Current vesting: (not available yet)", response.message)

    def test_withdrawal_question_explains_forfeiture(self) -> None:
        followup = get_vesting_response(create_initial_vesting_state(), "hi").next_state
        self.assertEqual(get_vesting_response(followup, "can I cash out?").message, FORFEITURE_MESSAGE)
        self.assertEqual(get_vesting_response(followup, "hmm").message, CLARIFY_MESSAGE)

    def test_messages_never_contain_dollar_figures(self) -> None:
        state = create_initial_vesting_state(VestingPlanData(schedule_type="cliff", current_vesting_pct=100))
        followup = get_vesting_response(state, "").next_state
        for text in ("schedule", "withdraw", "yes", "other"):
            self.assertIsNone(re.search(r"\$\s*\d", get_vesting_response(followup, text).message))

    def test_vesting_percentage_is_bounded(self) -> None:
        with self.assertRaises(ValidationError):
            VestingPlanData(current_vesting_pct=120)


if __name__ == "__main__":
    unittest.main()

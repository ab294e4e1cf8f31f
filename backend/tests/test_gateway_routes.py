from __future__ import annotations

import os
import unittest
from pathlib import Path
import sys
from unittest.mock import patch

BACKEND = Path(__file__).resolve().parents[1]
REPO_ROOT = BACKEND.parent
for path in (BACKEND, REPO_ROOT):
    if str(path) not in sys.path:
        sys.path.append(str(path))

from fastapi.testclient import TestClient  # noqa: E402

from agent.response import DataFetchResultV1, RetirementDataV1  # noqa: E402
from agent.response.synthesizer_bedrock import generate_core_reply as real_generate_core_reply  # noqa: E402
from app.main import app  # noqa: E402

CALLER_HEADERS = {"X-User-Id": "u1", "X-Company-Id": "c1", "X-User-Email": "p@example.com"}
MODEL_REPLY = '{"type": "balance_answer", "spoken_text": "Your vested balance is $90,000.", "ui_data": {"vested_balance": 90000}}'


class HealthAndLoanRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_loan_limits_follow_vested_balance(self) -> None:
        body = self.client.get("/loans/limits", params={"vested_balance": 30000}).json()
        self.assertEqual(body["max_loan"], 15000)
        self.assertEqual(body["min_amount"], 1000)
        self.assertEqual((body["term_years_min"], body["term_years_max"]), (1, 5))

        capped = self.client.get("/loans/limits", params={"vested_balance": 200000}).json()
        self.assertEqual(capped["max_loan"], 50000)

    def test_loan_terms(self) -> None:
        response = self.client.post("/loans/terms", json={"amount": 10000, "term_years": 5})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertAlmostEqual(body["monthly_payment"], 205.17, places=2)
        self.assertEqual(body["number_of_payments"], 60)
        self.assertAlmostEqual(body["annual_rate"], 0.085)

    def test_loan_terms_rejects_invalid_input(self) -> None:
        too_small = self.client.post("/loans/terms", json={"amount": 500, "term_years": 2})
        self.assertEqual(too_small.status_code, 422)
        self.assertEqual(too_small.json()["detail"], "Minimum loan amount is $1,000.")

        too_long = self.client.post("/loans/terms", json={"amount": 5000, "term_years": 7})
        self.assertEqual(too_long.status_code, 422)
        self.assertIn("between 1 and 5 years", too_long.json()["detail"])

        over_limit = self.client.post(
            "/loans/terms",
            json={"amount": 20000, "term_years": 3, "vested_balance": 30000},
        )
        self.assertEqual(over_limit.status_code, 422)
        self.assertEqual(over_limit.json()["detail"], "Maximum loan amount is $15,000.")

    def test_loan_schedule(self) -> None:
        response = self.client.post("/loans/schedule", json={"amount": 12000, "term_years": 1, "annual_rate": 0})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["schedule"]), 12)
        self.assertEqual(body["schedule"][0]["payment"], 1000)
        self.assertEqual(body["schedule"][-1]["balance"], 0)
        self.assertEqual(body["terms"]["total_interest"], 0)


class ContributionRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)

    def test_rebalance_keeps_total_at_one_hundred(self) -> None:
        payload = {
            "sources": [
                {"id": "pretax", "value": 60},
                {"id": "roth", "value": 30},
                {"id": "after_tax", "value": 10},
            ],
            "changed_id": "pretax",
            "new_value": 70,
        }
        response = self.client.post("/contributions/rebalance", json=payload)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([source["value"] for source in body["sources"]], [70, 22.5, 7.5])
        self.assertEqual(body["total"], 100)
        self.assertEqual(body["locked_ids"], ["pretax"])

    def test_rebalance_requires_sources(self) -> None:
        response = self.client.post("/contributions/rebalance", json={"sources": [], "changed_id": "x", "new_value": 1})
        self.assertEqual(response.status_code, 422)


class AssistantRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)

    def test_loan_turns_round_trip_state(self) -> None:
        first = self.client.post("/assistant/loan/turn", json={"text": "yes", "vested_balance": 40000}).json()
        self.assertEqual(first["next_state"]["step"], "ELIGIBILITY")
        self.assertEqual(first["next_state"]["max_loan"], 20000)

        second = self.client.post("/assistant/loan/turn", json={"state": first["next_state"], "text": "cancel"}).json()
        self.assertTrue(second["is_cancelled"])
        self.assertEqual(second["next_state"]["step"], "START")

    def test_withdrawal_turns(self) -> None:
        first = self.client.post("/assistant/withdrawal/turn", json={"text": "yes"}).json()
        self.assertEqual(first["next_state"]["step"], "AGE_CHECK")
        second = self.client.post(
            "/assistant/withdrawal/turn",
            json={"state": first["next_state"], "text": "I'm 62"},
        ).json()
        self.assertEqual(second["next_state"]["step"], "EMPLOYMENT_CHECK")
        self.assertTrue(second["next_state"]["is_59_or_older"])

    def test_vesting_turn_uses_plan_data(self) -> None:
        body = self.client.post(
            "/assistant/vesting/turn",
            json={"text": "vesting?", "plan_data": {"schedule_type": "graded", "current_vesting_pct": 80}},
        ).json()
        self.assertEqual(body["next_state"]["step"], "FOLLOWUP")
        self.assertIn("graded vesting", body["message"])

    def test_enrollment_turns(self) -> None:
        first = self.client.post(
            "/assistant/enrollment/turn",
            json={"text": "I want to enroll", "is_eligible": True, "current_age": 30},
        ).json()
        self.assertEqual(first["next_state"]["step"], "RETIREMENT_AGE")
        self.assertFalse(first["is_complete"])

        second = self.client.post(
            "/assistant/enrollment/turn",
            json={"state": first["next_state"], "text": "65"},
        ).json()
        self.assertEqual(second["next_state"]["step"], "LOCATION")
        self.assertEqual(second["next_state"]["years_to_retirement"], 35)

    def test_ineligible_enrollment_completes(self) -> None:
        body = self.client.post(
            "/assistant/enrollment/turn",
            json={"text": "enroll me", "is_eligible": False},
        ).json()
        self.assertEqual(body["next_state"]["step"], "INELIGIBLE")
        self.assertTrue(body["is_complete"])

    def test_invalid_state_is_rejected(self) -> None:
        response = self.client.post("/assistant/loan/turn", json={"state": {"step": "NOPE"}, "text": "yes"})
        self.assertEqual(response.status_code, 422)
        response = self.client.post("/assistant/enrollment/turn", json={"text": "enroll", "current_age": 500})
        self.assertEqual(response.status_code, 422)


class CoreAiRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)

    def test_missing_identity_is_rejected(self) -> None:
        with patch.dict(os.environ, {"DEV_BYPASS_AUTH": "false"}):
            response = self.client.post("/core-ai/reply", json={"message": "What is my balance?"})
        self.assertEqual(response.status_code, 401)

    def test_empty_message_is_rejected(self) -> None:
        response = self.client.post("/core-ai/reply", json={"message": ""}, headers=CALLER_HEADERS)
        self.assertEqual(response.status_code, 422)

    def test_reply_pipeline(self) -> None:
        fetched = DataFetchResultV1(
            data=RetirementDataV1(retirement_accounts=[{"balance": 120000, "vested_balance": 90000}]),
            sources=["retirement_accounts"],
        )
        prompts: list[str] = []

        def fake_model(prompt: str) -> str:
            prompts.append(prompt)
            return MODEL_REPLY

        def generate_with_fake_model(*args, **kwargs):
            return real_generate_core_reply(*args, generate=fake_model, **kwargs)

        with patch("app.routes.core_ai.get_data_for_intent", return_value=fetched) as fetch, patch(
            "app.routes.core_ai.insert_ai_log", return_value=True
        ) as log_insert, patch("app.routes.core_ai.generate_core_reply", side_effect=generate_with_fake_model):
            response = self.client.post("/core-ai/reply", json={"message": "What is my balance?"}, headers=CALLER_HEADERS)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["intent"], "balance_query")
        self.assertEqual(body["confidence"], "high")
        self.assertEqual(body["spoken_text"], "Your vested balance is $90,000.")
        self.assertEqual(body["reply"], body["spoken_text"])
        self.assertEqual(body["data_sources"], ["retirement_accounts"])
        self.assertNotIn("error", body)

        fetch.assert_called_once_with("balance_query", "u1", "c1")
        self.assertIn('"user_id": "u1"', prompts[0])
        self.assertIn('"vested_balance": 90000', prompts[0])
        log_kwargs = log_insert.call_args.kwargs
        self.assertEqual(log_kwargs["detected_intent"], "balance_query")
        self.assertEqual(log_kwargs["data_sources"], ["retirement_accounts"])

    def test_dev_bypass_uses_demo_caller(self) -> None:
        fetched = DataFetchResultV1()
        with patch.dict(os.environ, {"DEV_BYPASS_AUTH": "true"}), patch(
            "app.routes.core_ai.get_data_for_intent", return_value=fetched
        ) as fetch, patch("app.routes.core_ai.insert_ai_log", return_value=True), patch(
            "app.routes.core_ai.generate_core_reply",
            side_effect=lambda *args, **kwargs: real_generate_core_reply(*args, generate=lambda prompt: "", **kwargs),
        ):
            response = self.client.post("/core-ai/reply", json={"message": "What is a Roth IRA?"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(fetch.call_args.args[1], "demo-user")
        body = response.json()
        self.assertEqual(body["intent"], "general_retirement_knowledge")
        self.assertEqual(body["confidence"], "low")


if __name__ == "__main__":
    unittest.main()

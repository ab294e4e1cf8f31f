from __future__ import annotations

import re

from .contracts import VestingInfoState, VestingPlanData, VestingScheduleType, VestingTurnResponse
from .guardrails import contains_any, normalize_input

SCHEDULE_LABELS: dict[VestingScheduleType, str] = {
    "cliff": "cliff vesting",
    "graded": "graded vesting",
}
NOT_AVAILABLE = "(not available yet)"

_SCHEDULE_REQUEST = re.compile(r"\b(schedule|vesting schedule|see schedule)\b")
_WITHDRAW_REQUEST = re.compile(r"\b(withdraw|withdrawal|cash out|distribution)")
SHOW_SCHEDULE_TERMS = ("yes", "yeah", "yep", "sure", "okay", "ok", "show me")

FORFEITURE_MESSAGE = (
    "Vesting affects how much of the employer portion you keep if you leave the company. Your own contributions "
    "are always yours; unvested employer money may be forfeited if you aren't fully vested. "
    "Want to see your vesting schedule?"
)
CLARIFY_MESSAGE = (
    "I can help with that. Do you want to see your vesting schedule, or understand how vesting works for your "
    "employer plan?"
)


def create_initial_vesting_state(plan_data: VestingPlanData | None = None) -> VestingInfoState:
    return VestingInfoState(step="START", plan_data=plan_data)


def _fmt_pct(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _intro_message(plan_data: VestingPlanData | None) -> str:
    parts = [
        "Your vested balance is the portion of your retirement account you fully own.",
        "Your own contributions are always yours.",
        "Employer contributions may vest over time, depending on your plan.",
    ]
    if plan_data is not None:
        if plan_data.schedule_type is not None:
            parts.append(f"Your plan uses {SCHEDULE_LABELS[plan_data.schedule_type]}.")
        if plan_data.current_vesting_pct is not None:
            parts.append(
                f"You're currently {_fmt_pct(plan_data.current_vesting_pct)}% vested in employer contributions."
            )
    parts.append("Would you like to see your vesting schedule?")
    return " ".join(parts)


def build_schedule_summary(plan_data: VestingPlanData | None) -> str:
    schedule_type = plan_data.schedule_type if plan_data else None
    pct = plan_data.current_vesting_pct if plan_data else None
    lines = [
        "Here's how to think about your vesting schedule:",
        f"- Type: {SCHEDULE_LABELS[schedule_type] if schedule_type else NOT_AVAILABLE}",
        f"- Current vesting: {f'{_fmt_pct(pct)}%' if pct is not None else NOT_AVAILABLE}",
        "Want to understand how vesting affects withdrawals, or go back to enrollment?",
    ]
    return "\n".join(lines)


def get_vesting_response(state: VestingInfoState, user_input: str) -> VestingTurnResponse:
    text = normalize_input(user_input)

    if state.step == "START":
        return VestingTurnResponse(
            next_state=state.model_copy(update={"step": "FOLLOWUP"}),
            message=_intro_message(state.plan_data),
        )

    if _SCHEDULE_REQUEST.search(text):
        return VestingTurnResponse(next_state=state, message=build_schedule_summary(state.plan_data))
    if _WITHDRAW_REQUEST.search(text):
        return VestingTurnResponse(next_state=state, message=FORFEITURE_MESSAGE)
    if contains_any(text, SHOW_SCHEDULE_TERMS):
        return VestingTurnResponse(next_state=state, message=build_schedule_summary(state.plan_data))
    return VestingTurnResponse(next_state=state, message=CLARIFY_MESSAGE)

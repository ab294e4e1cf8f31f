from __future__ import annotations

import logging
import re
from typing import Callable

from .contracts import WithdrawalInfoState, WithdrawalStep, WithdrawalTurnResponse
from .guardrails import Interceptor, contains_any, is_withdrawal_advice_request, normalize_input, run_interceptors

logger = logging.getLogger(__name__)

AGE_THRESHOLD = 59.5
AGE_MIN = 18
AGE_MAX = 100

START_PROCEED_TERMS = ("yes", "yeah", "yep", "sure", "okay", "ok", "continue", "go", "next", "ready", "tell me", "start")
AGE_YES_TERMS = ("yes", "yeah", "yep", "sure", "okay", "ok", "older", "over", "59")
AGE_NO_TERMS = ("no", "nope", "not", "don't", "can't", "under", "younger")
EMPLOYED_TERMS = ("yes", "yeah", "yep", "sure", "okay", "ok", "employed", "still work", "work there", "still employed")
NOT_EMPLOYED_TERMS = ("no", "nope", "not", "don't", "can't", "left", "retired", "separated", "no longer", "not employed")
RESTART_TERMS = ("restart", "again", "start over", "over", "reset")

_AGE_OLDER_QUALIFIER = re.compile(r"\b(over|older than|above|at least)\s+59(\.5)?\b")
_AGE_YOUNGER_QUALIFIER = re.compile(r"\b(under|younger than|below|less than)\s+59(\.5)?\b")
_AGE_NUMBER = re.compile(r"\b(\d+(?:\.\d+)?)\b")

ADVICE_REFUSAL = (
    "I can't provide financial advice. I'm only explaining general withdrawal rules. For guidance on your "
    "situation, please talk to a licensed professional or your plan administrator. Would you like to continue "
    "learning about withdrawal rules?"
)
START_EXPLANATION = (
    "Withdrawals from your 401(k) depend on your age and whether you're still employed with the plan sponsor. "
    "I can walk you through the general rules, with no dollar amounts or tax advice. Ready to get started?"
)
AGE_QUESTION = "Are you 59½ or older? You can say your age (like '62' or '60') or 'yes' or 'no'."
AGE_REPROMPT = "I need to know if you're 59½ or older. You can say your age (like '62' or '60') or 'yes' or 'no'."
EMPLOYMENT_QUESTION = "Got it. Are you currently employed by the company that holds this 401(k)?"
EMPLOYMENT_REPROMPT = "Are you currently employed by the company that holds this 401(k)? Say 'yes' or 'no'."
NEXT_STEPS_MESSAGE = (
    "Here are some next steps you can take: Ask 'I want to apply for a loan' to explore a 401(k) loan. "
    "Ask about rollovers if you've left your job. You can also check your dashboard for your balance and "
    "plan-specific tools. For exact amounts or advice, contact your plan administrator or a licensed professional."
)
RESTART_MESSAGE = (
    "You can ask 'How much can I withdraw?' again to learn about withdrawal rules, or try "
    "'I want to apply for a loan' or 'rollover'."
)
COMPLETED_MESSAGE = (
    "You can ask 'I want to apply for a loan,' 'rollover,' or go to your dashboard. For specific amounts or "
    "advice, contact your plan administrator or a licensed professional."
)
PENALTY_DISCLAIMER = (
    "Keep in mind that withdrawals before 59½ may be subject to taxes and an early-withdrawal penalty, while "
    "withdrawals after 59½ typically avoid the penalty (taxes still apply). Your plan administrator can provide "
    "details about your specific situation."
)

_AMOUNT_CAVEAT = "The exact amount depends on your vested balance and plan rules."
_ELIGIBLE_AMOUNT = (
    "I can't give you specific dollar amounts, but your plan administrator can tell you how much you're "
    "eligible to withdraw."
)
_OPTIONS_AVAILABLE = (
    "I can't give you specific dollar amounts, but your plan administrator can tell you what options are available."
)

# Keyed by (is_59_or_older, is_employed).
ELIGIBILITY_SUMMARIES: dict[tuple[bool, bool], str] = {
    (True, True): (
        "Because you're over 59½ and still employed, your plan may allow in-service withdrawals. "
        f"{_AMOUNT_CAVEAT} {_ELIGIBLE_AMOUNT}"
    ),
    (True, False): (
        "Because you're over 59½ and no longer employed, you generally have more flexibility with withdrawals. "
        f"{_AMOUNT_CAVEAT} {_ELIGIBLE_AMOUNT}"
    ),
    (False, True): (
        "Because you're under 59½ and still employed, plan rules often limit withdrawals to specific situations "
        f"like hardship. {_AMOUNT_CAVEAT} {_OPTIONS_AVAILABLE}"
    ),
    (False, False): (
        "Because you're under 59½ and no longer employed, different withdrawal options may apply depending on "
        f"your plan. {_AMOUNT_CAVEAT} {_OPTIONS_AVAILABLE}"
    ),
}


def create_initial_withdrawal_state() -> WithdrawalInfoState:
    return WithdrawalInfoState(step="START")


def get_eligibility_summary(state: WithdrawalInfoState) -> str:
    key = (bool(state.is_59_or_older), bool(state.is_employed))
    return f"{ELIGIBILITY_SUMMARIES[key]} {PENALTY_DISCLAIMER}"


def parse_numeric_age(text: str) -> float | None:
    match = _AGE_NUMBER.search(text)
    if not match:
        return None
    age = float(match.group(1))
    if AGE_MIN <= age <= AGE_MAX:
        return age
    return None


def classify_age(text: str) -> bool | None:
    if _AGE_OLDER_QUALIFIER.search(text):
        return True
    if _AGE_YOUNGER_QUALIFIER.search(text):
        return False
    age = parse_numeric_age(text)
    if age is not None:
        return age >= AGE_THRESHOLD
    if contains_any(text, AGE_YES_TERMS):
        return True
    if contains_any(text, AGE_NO_TERMS):
        return False
    return None


def classify_employment(text: str) -> bool | None:
    if contains_any(text, NOT_EMPLOYED_TERMS):
        return False
    if contains_any(text, EMPLOYED_TERMS):
        return True
    return None


def _advice_interceptor(state: WithdrawalInfoState, text: str) -> WithdrawalTurnResponse | None:
    if not is_withdrawal_advice_request(text):
        return None
    logger.info("withdrawal_flow_advice_refused step=%s", state.step)
    return WithdrawalTurnResponse(
        next_state=state,
        message=ADVICE_REFUSAL,
        is_complete=state.step == "NEXT_STEPS",
    )


WITHDRAWAL_INTERCEPTORS: tuple[Interceptor, ...] = (_advice_interceptor,)


def _handle_start(state: WithdrawalInfoState, text: str) -> WithdrawalTurnResponse:
    if contains_any(text, START_PROCEED_TERMS):
        return WithdrawalTurnResponse(next_state=state.model_copy(update={"step": "AGE_CHECK"}), message=AGE_QUESTION)
    return WithdrawalTurnResponse(next_state=state, message=START_EXPLANATION)


def _handle_age_check(state: WithdrawalInfoState, text: str) -> WithdrawalTurnResponse:
    is_older = classify_age(text)
    if is_older is None:
        return WithdrawalTurnResponse(next_state=state, message=AGE_REPROMPT)
    return WithdrawalTurnResponse(
        next_state=state.model_copy(update={"step": "EMPLOYMENT_CHECK", "is_59_or_older": is_older}),
        message=EMPLOYMENT_QUESTION,
    )


def _handle_employment_check(state: WithdrawalInfoState, text: str) -> WithdrawalTurnResponse:
    is_employed = classify_employment(text)
    if is_employed is None:
        return WithdrawalTurnResponse(next_state=state, message=EMPLOYMENT_REPROMPT)
    next_state = state.model_copy(update={"step": "ELIGIBILITY_SUMMARY", "is_employed": is_employed})
    return WithdrawalTurnResponse(next_state=next_state, message=get_eligibility_summary(next_state))


def _handle_eligibility_summary(state: WithdrawalInfoState, text: str) -> WithdrawalTurnResponse:
    return WithdrawalTurnResponse(
        next_state=state.model_copy(update={"step": "NEXT_STEPS"}),
        message=NEXT_STEPS_MESSAGE,
        is_complete=True,
    )


def _handle_next_steps(state: WithdrawalInfoState, text: str) -> WithdrawalTurnResponse:
    if contains_any(text, RESTART_TERMS):
        return WithdrawalTurnResponse(next_state=create_initial_withdrawal_state(), message=RESTART_MESSAGE)
    return WithdrawalTurnResponse(next_state=state, message=COMPLETED_MESSAGE, is_complete=True)


STEP_HANDLERS: dict[WithdrawalStep, Callable[[WithdrawalInfoState, str], WithdrawalTurnResponse]] = {
    "START": _handle_start,
    "AGE_CHECK": _handle_age_check,
    "EMPLOYMENT_CHECK": _handle_employment_check,
    "ELIGIBILITY_SUMMARY": _handle_eligibility_summary,
    "NEXT_STEPS": _handle_next_steps,
}


def get_withdrawal_response(state: WithdrawalInfoState, user_input: str) -> WithdrawalTurnResponse:
    text = normalize_input(user_input)

    intercepted = run_interceptors(WITHDRAWAL_INTERCEPTORS, state, text)
    if intercepted is not None:
        return intercepted

    return STEP_HANDLERS[state.step](state, text)

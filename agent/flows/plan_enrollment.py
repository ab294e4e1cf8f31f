from __future__ import annotations

import logging
import math
import re
from typing import Callable, get_args

from ..finance.allocation import (
    allocation_to_sources,
    get_locked_ids,
    merge_locks,
    rebalance_sources,
    sources_to_allocation,
)
from ..finance.common import round1
from .contracts import (
    EnrollmentCollectedData,
    EnrollmentStep,
    EnrollmentTurnResponse,
    ManualRiskLevel,
    PlanChoice,
    PlanEnrollmentState,
)
from .guardrails import contains_any, contains_substring, normalize_input

logger = logging.getLogger(__name__)

CURRENT_AGE_MIN = 14
AGE_MAX = 100
DEFAULT_CONTRIBUTION_PCT = 6.0
CONTRIBUTION_PCT_MIN = 1.0
CONTRIBUTION_PCT_MAX = 100.0
# Younger participants and long horizons are pointed at Roth.
PAY_TAX_NOW_MAX_AGE = 35
PAY_TAX_NOW_MIN_YEARS = 25
ALLOCATION_TOLERANCE = 0.01

ENROLL_INTENT_TERMS = (
    "enroll",
    "enrollment",
    "start retirement",
    "start my retirement",
    "start plan",
    "retirement plan",
    "sign up",
)
PAY_TAX_LATER_TERMS = ("pay tax later", "later", "traditional", "pre-tax", "401", "401k")
PAY_TAX_NOW_TERMS = ("pay tax now", "now", "roth", "after-tax")
UNSURE_TERMS = ("don't know", "dont know", "not sure", "no idea", "you pick", "whatever")
MANUAL_TERMS = ("choose myself", "i want to choose", "myself", "manual")
ADVISOR_TERMS = ("advisor", "talk to an advisor", "advisor later", "later")
SYSTEM_TERMS = ("system", "handle it", "let the system", "automatic", "default")
ALLOCATION_DONE_TERMS = ("done", "looks good", "continue", "next", "finished")
REVIEW_CONFIRM_TERMS = ("yes", "yeah", "yep", "ok", "okay", "submit", "confirm")
REVIEW_DECLINE_TERMS = ("no", "not now", "later")
REVIEW_EDIT_TERMS = ("edit", "change", "modify")
REVIEW_EDIT_PLAN_TERMS = ("change plan", "edit plan")
REVIEW_EDIT_RETIREMENT_TERMS = (
    "edit retirement age",
    "change retirement age",
    "edit retire age",
    "edit retirement",
    "change retirement",
)
REVIEW_EDIT_LOCATION_TERMS = ("edit location", "change location", "edit country", "change country")
RISK_LEVELS: tuple[ManualRiskLevel, ...] = get_args(ManualRiskLevel)

FUNDS_PREFIX = "funds:"
ALLOCATION_PREFIX = "alloc:"

_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%")

PLAN_LABELS: dict[PlanChoice, str] = {"PAY_TAX_LATER": "Pay tax later", "PAY_TAX_NOW": "Pay tax now"}
HANDLING_LABELS = {
    "DEFAULT": "Let the system handle it",
    "MANUAL": "You choose yourself",
    "ADVISOR": "Talk to an advisor later",
}

INTENT_PROMPT = 'To get started, say or select: "I want to enroll."'
INELIGIBLE_MESSAGE = "I checked your account. You cannot enroll in this plan right now."
INELIGIBLE_REPEAT = "You cannot enroll in this plan right now. If you think this is a mistake, contact your HR team."
CONFIRMED_MESSAGE = "Done. I submitted your enrollment."
CONFIRMED_REPEAT = "All set. Your enrollment has been submitted."
ENROLLMENT_INTRO = (
    "Let's start your enrollment. I'll use your account information to guide you through the available plan options."
)
CURRENT_AGE_QUESTION = "What is your current age?"
RETIREMENT_AGE_QUESTION = "At what age do you plan to retire?"
LOCATION_QUESTION = "Which country do you expect to retire in?"
CONTRIBUTION_QUESTION = (
    "How much of your salary do you want to save each month? Many people start with 6%. You can change this later."
)
MONEY_HANDLING_QUESTION = (
    "How do you want your money handled? Say: Let the system handle it. Or: I want to choose myself. "
    "Or: Talk to an advisor later."
)
RISK_QUESTION = "How much ups and downs are you okay with? Say conservative, moderate, growth, or aggressive."
FUNDS_PROMPT = "Pick one fund in each group, then continue."
ALLOCATION_QUESTION = "How do you want to split your money?"
ALLOCATION_MISMATCH = "That split doesn't add up yet. Please adjust it and try again."
SUBMIT_QUESTION = "You can change this later. Do you want me to submit this now?"

StepHandler = Callable[[PlanEnrollmentState, str, str], EnrollmentTurnResponse]


def create_initial_enrollment_state(
    is_eligible: bool | None = None,
    current_age: int | None = None,
) -> PlanEnrollmentState:
    return PlanEnrollmentState(
        step="INTENT",
        is_eligible=is_eligible,
        current_age=current_age,
        collected_data=EnrollmentCollectedData(current_age=current_age),
    )


def _advance(state: PlanEnrollmentState, step: EnrollmentStep, **fields: object) -> PlanEnrollmentState:
    collected = {name: value for name, value in fields.items() if name in EnrollmentCollectedData.model_fields}
    return state.model_copy(
        update={
            "step": step,
            **fields,
            "collected_data": state.collected_data.model_copy(update=collected),
        }
    )


def _reply(state: PlanEnrollmentState, message: str, *, is_complete: bool = False) -> EnrollmentTurnResponse:
    return EnrollmentTurnResponse(next_state=state, message=message, is_complete=is_complete)


def _fmt_pct(value: float) -> str:
    return f"{round1(value):g}%"


def parse_number(text: str) -> float | None:
    match = _NUMBER.search(text)
    if not match:
        return None
    value = float(match.group(1))
    return value if math.isfinite(value) else None


def parse_age(text: str) -> int | None:
    value = parse_number(text)
    return int(value) if value is not None else None


def parse_contribution_pct(text: str) -> float | None:
    if contains_any(text, UNSURE_TERMS):
        return DEFAULT_CONTRIBUTION_PCT
    percent = _PERCENT.search(text)
    if percent:
        return float(percent.group(1))
    return parse_number(text)


def recommend_plan_choice(current_age: int | None, years_to_retirement: int | None) -> PlanChoice:
    if (current_age or 0) <= PAY_TAX_NOW_MAX_AGE or (years_to_retirement or 0) >= PAY_TAX_NOW_MIN_YEARS:
        return "PAY_TAX_NOW"
    return "PAY_TAX_LATER"


def _recommendation_message(choice: PlanChoice, closing: str) -> str:
    return (
        "Based on your age, expected retirement timeline, and location, here are the plans available to you. "
        f"I suggest: {PLAN_LABELS[choice]}. You can choose the other one if you want. {closing}"
    )


def split_evenly(fund_ids: list[str]) -> dict[str, float]:
    count = len(fund_ids)
    base, extra = divmod(100, count)
    return {fund_id: float(base + (1 if idx < extra else 0)) for idx, fund_id in enumerate(fund_ids)}


def parse_fund_ids(text: str) -> list[str]:
    if not text.startswith(FUNDS_PREFIX):
        return []
    fund_ids: list[str] = []
    for part in text[len(FUNDS_PREFIX) :].split(","):
        fund_id = part.strip()
        if fund_id and fund_id not in fund_ids:
            fund_ids.append(fund_id)
    return fund_ids


def parse_allocation(text: str) -> dict[str, float] | None:
    """Parse ``alloc: fund_a:60, fund_b:40``; pairs outside 0-100 are dropped."""
    if not text.startswith(ALLOCATION_PREFIX):
        return None
    allocation: dict[str, float] = {}
    for pair in text[len(ALLOCATION_PREFIX) :].split(","):
        fund_id, sep, raw_value = pair.partition(":")
        if not sep or not fund_id.strip():
            continue
        try:
            value = float(raw_value.strip())
        except ValueError:
            continue
        if math.isfinite(value) and 0 <= value <= 100:
            allocation[fund_id.strip()] = value
    return allocation


def allocation_totals_100(allocation: dict[str, float], fund_ids: list[str]) -> bool:
    if not fund_ids or any(fund_id not in allocation for fund_id in fund_ids):
        return False
    return abs(math.fsum(allocation[fund_id] for fund_id in fund_ids) - 100) < ALLOCATION_TOLERANCE


def describe_allocation(allocation: dict[str, float], fund_ids: list[str]) -> str:
    return ", ".join(f"{fund_id} {_fmt_pct(allocation.get(fund_id, 0.0))}" for fund_id in fund_ids)


def apply_allocation_edits(
    state: PlanEnrollmentState,
    edits: dict[str, float],
) -> tuple[dict[str, float], list[str]]:
    """Apply single-fund edits in order; untouched unlocked funds absorb the change."""
    fund_ids = state.manual_fund_ids
    sources = merge_locks(allocation_to_sources(state.manual_allocations, fund_ids), state.manual_locked_fund_ids)
    for fund_id, value in edits.items():
        sources = rebalance_sources(sources, fund_id, value)
    locked = get_locked_ids(sources)
    return sources_to_allocation(sources, fund_ids), [fund_id for fund_id in fund_ids if fund_id in locked]


def build_enrollment_summary(state: PlanEnrollmentState) -> str:
    plan_label = PLAN_LABELS[state.selected_plan_choice or "PAY_TAX_LATER"]
    pct = state.contribution_percentage
    saving = _fmt_pct(pct if pct is not None else DEFAULT_CONTRIBUTION_PCT)
    handling = HANDLING_LABELS[state.investment_strategy or "DEFAULT"]
    parts = [f"Plan: {plan_label}.", f"Saving: {saving}.", f"How your money is handled: {handling}."]
    if state.investment_strategy == "MANUAL" and state.manual_fund_ids:
        parts.append(f"Split: {describe_allocation(state.manual_allocations, state.manual_fund_ids)}.")
    return " ".join(parts)


def _begin_enrollment(state: PlanEnrollmentState) -> EnrollmentTurnResponse:
    if state.is_eligible is False:
        logger.info("enrollment_ineligible step=%s", state.step)
        return _reply(_advance(state, "INELIGIBLE", is_eligible=False), INELIGIBLE_MESSAGE, is_complete=True)
    if state.current_age is None:
        return _reply(_advance(state, "CURRENT_AGE", is_eligible=True), f"{ENROLLMENT_INTRO} {CURRENT_AGE_QUESTION}")
    return _reply(
        _advance(state, "RETIREMENT_AGE", is_eligible=True, current_age=state.current_age),
        f"{ENROLLMENT_INTRO} {RETIREMENT_AGE_QUESTION}",
    )


def _handle_intent(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    if not contains_substring(text, ENROLL_INTENT_TERMS):
        return _reply(state, INTENT_PROMPT)
    return _begin_enrollment(state)


def _handle_eligibility(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    return _begin_enrollment(state)


def _handle_current_age(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    age = parse_age(text)
    if age is None:
        return _reply(state, "I didn't catch a valid age. Please enter your current age in years.")
    if age < CURRENT_AGE_MIN:
        return _reply(state, "That seems a bit low for retirement enrollment. Please enter your current age.")
    if age > AGE_MAX:
        return _reply(state, "That age looks higher than expected. Please enter your current age.")
    return _reply(_advance(state, "RETIREMENT_AGE", current_age=age), "At what age do you want to stop working?")


def _handle_retirement_age(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    if state.current_age is None:
        return _reply(_advance(state, "CURRENT_AGE"), CURRENT_AGE_QUESTION)
    retire_age = parse_age(text)
    if retire_age is None:
        return _reply(state, "I didn't catch a valid age. Please enter the age you plan to retire in years.")
    if retire_age <= state.current_age:
        return _reply(
            state,
            "That retirement age should be higher than your current age. Please enter the age you plan to retire.",
        )
    if retire_age > AGE_MAX:
        return _reply(state, "That age looks higher than expected. Please enter the age you plan to retire.")
    return _reply(
        _advance(
            state,
            "LOCATION",
            retirement_age=retire_age,
            years_to_retirement=retire_age - state.current_age,
        ),
        LOCATION_QUESTION,
    )


def _handle_location(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    country = " ".join(raw.split())
    if len(country) < 2:
        return _reply(state, LOCATION_QUESTION)
    choice = recommend_plan_choice(state.current_age, state.years_to_retirement)
    return _reply(
        _advance(state, "PLAN_RECOMMENDATION", work_country=country, recommended_plan_choice=choice),
        _recommendation_message(choice, "Which one do you want: Pay tax later, or Pay tax now?"),
    )


def _handle_plan_recommendation(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    wants_now = contains_any(text, PAY_TAX_NOW_TERMS)
    wants_later = contains_any(text, PAY_TAX_LATER_TERMS)
    if not wants_now and not wants_later:
        recommended = state.recommended_plan_choice or "PAY_TAX_LATER"
        return _reply(state, _recommendation_message(recommended, "Choose one: Pay tax later, or Pay tax now."))
    choice: PlanChoice = "PAY_TAX_NOW" if wants_now else "PAY_TAX_LATER"
    return _reply(
        _advance(
            state,
            "CONTRIBUTION",
            selected_plan_choice=choice,
            plan_type="Roth 401(k)" if choice == "PAY_TAX_NOW" else "401(k)",
        ),
        CONTRIBUTION_QUESTION,
    )


def _handle_contribution(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    pct = parse_contribution_pct(text)
    if pct is None or not CONTRIBUTION_PCT_MIN <= pct <= CONTRIBUTION_PCT_MAX:
        return _reply(state, CONTRIBUTION_QUESTION)
    return _reply(
        _advance(state, "MONEY_HANDLING", contribution_percentage=pct),
        f"Got it. I've saved your contribution rate of {_fmt_pct(pct)}. You can review or change it below. "
        f"{MONEY_HANDLING_QUESTION}",
    )


def _handle_money_handling(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    noted = "Okay. I've noted how you want your investments handled. You can adjust this if needed."
    if contains_any(text, MANUAL_TERMS):
        return _reply(_advance(state, "MANUAL_RISK", investment_strategy="MANUAL"), f"{noted} {RISK_QUESTION}")
    if contains_any(text, ADVISOR_TERMS):
        return _reply(_advance(state, "REVIEW", investment_strategy="ADVISOR"), f"{noted} Review your choices below.")
    if contains_any(text, SYSTEM_TERMS):
        return _reply(_advance(state, "REVIEW", investment_strategy="DEFAULT"), f"{noted} Review your choices below.")
    return _reply(state, MONEY_HANDLING_QUESTION)


def _handle_manual_risk(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    level = next((candidate for candidate in RISK_LEVELS if contains_any(text, [candidate])), None)
    if level is None:
        return _reply(state, RISK_QUESTION)
    return _reply(_advance(state, "MANUAL_FUNDS", manual_risk_level=level), "Okay. Next, pick one fund in each group.")


def _handle_manual_funds(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    fund_ids = parse_fund_ids(text)
    if not fund_ids:
        return _reply(state, FUNDS_PROMPT)
    allocation = split_evenly(fund_ids)
    return _reply(
        _advance(
            state,
            "MANUAL_ALLOCATION",
            manual_fund_ids=fund_ids,
            manual_allocations=allocation,
            manual_locked_fund_ids=[],
        ),
        f"{ALLOCATION_QUESTION} Right now it's {describe_allocation(allocation, fund_ids)}.",
    )


def _handle_manual_allocation(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    fund_ids = state.manual_fund_ids
    if not fund_ids:
        return _reply(_advance(state, "MANUAL_FUNDS"), FUNDS_PROMPT)

    pairs = parse_allocation(text)
    if pairs is None:
        if contains_any(text, ALLOCATION_DONE_TERMS):
            if allocation_totals_100(state.manual_allocations, fund_ids):
                return _reply(
                    _advance(state, "REVIEW", manual_allocations=dict(state.manual_allocations)),
                    "Split looks good. Review your choices below.",
                )
            return _reply(state, ALLOCATION_MISMATCH)
        return _reply(state, ALLOCATION_QUESTION)

    if not pairs or any(fund_id not in fund_ids for fund_id in pairs):
        return _reply(state, f"{ALLOCATION_QUESTION} Use the funds you picked: {', '.join(fund_ids)}.")

    if all(fund_id in pairs for fund_id in fund_ids):
        if not allocation_totals_100(pairs, fund_ids):
            return _reply(state, ALLOCATION_MISMATCH)
        allocation = {fund_id: pairs[fund_id] for fund_id in fund_ids}
        return _reply(
            _advance(state, "REVIEW", manual_allocations=allocation, manual_locked_fund_ids=[]),
            "Split looks good. Review your choices below.",
        )

    allocation, locked = apply_allocation_edits(state, pairs)
    return _reply(
        state.model_copy(update={"manual_allocations": allocation, "manual_locked_fund_ids": locked}),
        f"Updated split: {describe_allocation(allocation, fund_ids)}. "
        "Say 'done' when the split looks right, or adjust another fund.",
    )


def _handle_review(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    if contains_substring(text, REVIEW_EDIT_PLAN_TERMS):
        return _reply(_advance(state, "PLAN_RECOMMENDATION"), "Choose your plan below.")
    if contains_substring(text, REVIEW_EDIT_RETIREMENT_TERMS):
        return _reply(_advance(state, "RETIREMENT_AGE"), RETIREMENT_AGE_QUESTION)
    if contains_substring(text, REVIEW_EDIT_LOCATION_TERMS):
        return _reply(_advance(state, "LOCATION"), LOCATION_QUESTION)

    wants_edit = contains_any(text, REVIEW_EDIT_TERMS)
    declines = contains_any(text, REVIEW_DECLINE_TERMS)
    if contains_any(text, REVIEW_CONFIRM_TERMS) and not wants_edit and not declines:
        logger.info(
            "enrollment_submitted plan=%s strategy=%s",
            state.selected_plan_choice,
            state.investment_strategy,
        )
        return _reply(_advance(state, "CONFIRMED"), CONFIRMED_MESSAGE, is_complete=True)
    if wants_edit:
        if state.investment_strategy == "MANUAL":
            return _reply(
                _advance(state, "MANUAL_ALLOCATION", manual_locked_fund_ids=[]),
                "Okay. You can change how you split your money.",
            )
        return _reply(_advance(state, "MONEY_HANDLING"), "Okay. How do you want your money handled?")
    if declines:
        return _reply(state, f"Okay. {SUBMIT_QUESTION}")
    return _reply(state, f"{build_enrollment_summary(state)} {SUBMIT_QUESTION}")


def _handle_ineligible(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    return _reply(state, INELIGIBLE_REPEAT, is_complete=True)


def _handle_confirmed(state: PlanEnrollmentState, text: str, raw: str) -> EnrollmentTurnResponse:
    return _reply(state, CONFIRMED_REPEAT, is_complete=True)


STEP_HANDLERS: dict[EnrollmentStep, StepHandler] = {
    "INTENT": _handle_intent,
    "ELIGIBILITY": _handle_eligibility,
    "CURRENT_AGE": _handle_current_age,
    "RETIREMENT_AGE": _handle_retirement_age,
    "LOCATION": _handle_location,
    "PLAN_RECOMMENDATION": _handle_plan_recommendation,
    "CONTRIBUTION": _handle_contribution,
    "MONEY_HANDLING": _handle_money_handling,
    "MANUAL_RISK": _handle_manual_risk,
    "MANUAL_FUNDS": _handle_manual_funds,
    "MANUAL_ALLOCATION": _handle_manual_allocation,
    "REVIEW": _handle_review,
    "INELIGIBLE": _handle_ineligible,
    "CONFIRMED": _handle_confirmed,
}


def get_enrollment_response(state: PlanEnrollmentState, user_input: str) -> EnrollmentTurnResponse:
    text = normalize_input(user_input)
    raw = user_input if isinstance(user_input, str) else ""
    return STEP_HANDLERS[state.step](state, text, raw)

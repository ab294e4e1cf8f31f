from __future__ import annotations

import logging
import re
from typing import Callable

from ..config import DEFAULT_VESTED_BALANCE
from ..finance.common import fmt_money
from ..finance.loan import (
    DEFAULT_LOAN_ANNUAL_RATE,
    LOAN_MIN_AMOUNT,
    LOAN_TERM_YEARS_MAX,
    LOAN_TERM_YEARS_MIN,
    calculate_loan_terms,
    calculate_max_loan,
    validate_loan_amount,
    validate_loan_term,
)
from .contracts import LoanApplicationState, LoanCollectedData, LoanStep, LoanTurnResponse
from .guardrails import (
    Interceptor,
    contains_any,
    is_cancel_request,
    is_loan_advice_request,
    is_question_shaped,
    is_unrelated_question,
    normalize_input,
    run_interceptors,
)

logger = logging.getLogger(__name__)

NEGATIVE_TERMS = ("no", "nope", "not", "don't", "can't", "cannot")
START_AFFIRMATIVE_TERMS = ("yes", "yeah", "yep", "sure", "okay", "ok", "apply", "loan", "please")
ELIGIBILITY_AFFIRMATIVE_TERMS = (
    "yes",
    "yeah",
    "yep",
    "sure",
    "okay",
    "ok",
    "eligible",
    "enrolled",
    "correct",
    "right",
    "have",
    "do",
    "meet",
    "qualify",
)
ELIGIBILITY_NEGATIVE_TERMS = (*NEGATIVE_TERMS, "uneligible", "ineligible", "not eligible")
ELIGIBILITY_QUESTION_TERMS = ("eligibility", "requirements", "requirement", "need", "criteria")
RULES_QUESTION_TERMS = (
    "explain",
    "tell me",
    "clarify",
    "limit",
    "interest",
    "repayment",
    "term",
    "years",
    "maximum",
    "minimum",
    "how much",
    "how long",
    "borrow",
    "rate",
)
RULES_AFFIRMATIVE_TERMS = (
    "yes",
    "yeah",
    "yep",
    "sure",
    "okay",
    "ok",
    "good",
    "fine",
    "understood",
    "got it",
    "continue",
    "proceed",
    "next",
    "clear",
)
KEEP_TERMS = ("same", "keep", "unchanged", "keep it", "same as before", "keep the same")
REVIEW_CONFIRM_TERMS = (
    "yes",
    "yeah",
    "yep",
    "correct",
    "right",
    "confirm",
    "proceed",
    "submit",
    "finish",
    "complete",
    "okay",
    "ok",
)
REVIEW_NEGATION_TERMS = ("no", "not", "don't", "isn't", "incorrect")
REVIEW_EDIT_VERBS = ("change", "modify", "edit", "wrong", "different")
REVIEW_EDIT_TARGETS = ("amount", "term", "purpose", "years", "repayment", "loan amount")
REVIEW_EDIT_AMOUNT_TERMS = (
    "change amount",
    "change the amount",
    "different amount",
    "wrong amount",
    "modify amount",
    "edit amount",
    "change the loan amount",
    "the amount",
)
REVIEW_EDIT_TERM_TERMS = (
    "change term",
    "change the term",
    "different term",
    "wrong term",
    "modify term",
    "edit term",
    "change years",
    "change repayment",
    "the term",
    "the years",
    "the repayment",
)
REVIEW_EDIT_PURPOSE_TERMS = (
    "change purpose",
    "change the purpose",
    "different purpose",
    "wrong purpose",
    "modify purpose",
    "edit purpose",
    "the purpose",
)
REVIEW_RESTART_TERMS = ("no", "back", "start over", "begin again", "restart")

TERM_WORDS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("five", "maximum", "max", "longest"), 5),
    (("four",), 4),
    (("three",), 3),
    (("two",), 2),
    (("one",), 1),
)

VAGUE_AMOUNT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^(the\s+)?(max|maximum)(\s+amount)?\.?$",
        r"^as\s+much\s+as\s+(possible|i\s+can|i\s+can\s+borrow)",
        r"^whatever\s+i\s+can",
        r"^(the\s+)?full(\s+(amount|loan))?\.?$",
        r"^all\s+(of\s+it|of\s+my\s+balance|i\s+can)",
        r"^(full|all|max|maximum)\.?$",
        r"^(i\s+want|i'd\s+like|give\s+me|can\s+i\s+get)\s+(the\s+)?(max|maximum|full\s+amount)\.?$",
    )
)

WORD_NUMBERS = {
    "a": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
}
_COMPOUND_THOUSAND = re.compile(r"\b([a-z]+)(?:-|\s+)([a-z]+)\s+thousand\b")
_SIMPLE_THOUSAND = re.compile(r"\b([a-z]+)\s+thousand\b")
_LEADING_NUMBER = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)")
_THOUSANDS_SUFFIX = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*k\b")
_YEARS_NUMBER = re.compile(r"(\d+)\s*(?:years?|yrs?|y)\b")
_ANY_INTEGER = re.compile(r"(\d+)")

CANCEL_MESSAGE = "Loan application cancelled. If you'd like to start over, just say 'I want to apply for a loan'."
CONFIRMED_MESSAGE = (
    "Your loan application has been submitted successfully. You'll receive a confirmation email within 1-2 "
    "business days. Thank you for using our loan service!"
)
_ADVICE_CONSULT = "For financial guidance, please consult a licensed financial advisor."
_CONTINUE_PROMPT = "Would you like to continue with your loan application?"
_FLOW_PROTECTION = (
    "I'm currently helping you with your loan application. We can answer general questions after we finish this step."
)

ADVICE_REFUSALS: dict[LoanStep, str] = {
    "START": (
        "I can help you apply for a loan, but I cannot provide financial advice. Financial decisions should be made "
        f"with a licensed professional. {_CONTINUE_PROMPT}"
    ),
    "ELIGIBILITY": (
        f"I'm here to help you apply for a loan, but I cannot provide financial advice. {_ADVICE_CONSULT} "
        f"{_CONTINUE_PROMPT}"
    ),
    "RULES": (
        "I can help you apply for a loan, but I cannot provide financial advice or recommendations. "
        f"{_ADVICE_CONSULT} {_CONTINUE_PROMPT}"
    ),
    "AMOUNT": (
        "I can help you apply for a loan, but I cannot provide financial advice on loan amounts. "
        f"{_ADVICE_CONSULT} {_CONTINUE_PROMPT}"
    ),
    "PURPOSE": (
        "I can help you apply for a loan, but I cannot provide financial advice on loan purposes. "
        f"{_ADVICE_CONSULT} {_CONTINUE_PROMPT}"
    ),
    "TERM": (
        "I can help you apply for a loan, but I cannot provide financial advice on repayment terms. "
        f"{_ADVICE_CONSULT} {_CONTINUE_PROMPT}"
    ),
    "REVIEW": (
        f"I can help you apply for a loan, but I cannot provide financial advice. {_ADVICE_CONSULT} "
        f"{_CONTINUE_PROMPT}"
    ),
    "CONFIRMED": "Your loan application is complete. For financial advice, please consult a licensed financial advisor.",
}

UNRELATED_REDIRECTS: dict[LoanStep, str] = {
    "START": f"{_FLOW_PROTECTION} Would you like to start your loan application?",
    "ELIGIBILITY": f"{_FLOW_PROTECTION} Are you currently enrolled in the 401(k) plan and have a vested balance?",
    "RULES": f"{_FLOW_PROTECTION} Does the loan information sound good?",
    "AMOUNT": f"{_FLOW_PROTECTION} How much would you like to borrow?",
    "PURPOSE": f"{_FLOW_PROTECTION} What will you use this loan for?",
    "TERM": f"{_FLOW_PROTECTION} How many years would you like to repay this loan?",
    "REVIEW": f"{_FLOW_PROTECTION} Does the summary look correct?",
    "CONFIRMED": "Your loan application is complete. Is there anything else you'd like to know?",
}


def create_initial_loan_state(vested_balance: float | None = None) -> LoanApplicationState:
    balance = DEFAULT_VESTED_BALANCE if vested_balance is None else float(vested_balance)
    return LoanApplicationState(
        step="START",
        vested_balance=balance,
        max_loan=calculate_max_loan(balance),
        collected_data=LoanCollectedData(),
    )


def _reply(
    state: LoanApplicationState,
    message: str,
    *,
    is_complete: bool = False,
    is_cancelled: bool = False,
) -> LoanTurnResponse:
    return LoanTurnResponse(next_state=state, message=message, is_complete=is_complete, is_cancelled=is_cancelled)


def _years_label(years: int) -> str:
    return "year" if years == 1 else "years"


def _max_loan_text(state: LoanApplicationState) -> str:
    return f"${fmt_money(state.max_loan)}"


def _amount_range_text(state: LoanApplicationState) -> str:
    return f"${fmt_money(LOAN_MIN_AMOUNT)} up to {_max_loan_text(state)}"


def _rules_explanation(state: LoanApplicationState) -> str:
    return (
        "Here are the key loan rules: You can borrow up to 50% of your vested balance, with a maximum of $50,000. "
        f"Based on your account, that's up to {_max_loan_text(state)}. Repayment is 1 to 5 years through payroll "
        "deduction. Interest goes back into your account. If you leave employment, the loan becomes due. "
        "Does this sound good?"
    )


def _term_prompt(state: LoanApplicationState) -> str:
    if state.repayment_term is not None:
        years = state.repayment_term
        return (
            f"Thank you. Your previous repayment term was {years} {_years_label(years)}. "
            "Say 'same' to keep it, or choose 1 to 5 years."
        )
    return (
        "Thank you. Now, how many years would you like to repay this loan? You can choose between 1 and 5 years. "
        "Most people choose 5 years for lower monthly payments."
    )


def build_loan_summary(state: LoanApplicationState) -> str:
    data = state.collected_data
    parts = ["Here's a summary of your loan application:"]
    if data.loan_amount is not None:
        parts.append(f"Loan amount: ${fmt_money(data.loan_amount)}.")
    if data.loan_purpose:
        parts.append(f"Purpose: {data.loan_purpose}.")
    if data.repayment_term is not None:
        parts.append(f"Repayment term: {data.repayment_term} {_years_label(data.repayment_term)}.")
    if data.monthly_payment is not None:
        parts.append(f"Estimated monthly payment: ${fmt_money(data.monthly_payment)}.")
    if data.total_repayment is not None:
        parts.append(f"Total repayment: ${fmt_money(data.total_repayment)}.")
    return " ".join(parts)


def _cancel_interceptor(state: LoanApplicationState, text: str) -> LoanTurnResponse | None:
    if not is_cancel_request(text):
        return None
    logger.info("loan_flow_cancelled step=%s", state.step)
    return _reply(create_initial_loan_state(state.vested_balance), CANCEL_MESSAGE, is_cancelled=True)


def _advice_interceptor(state: LoanApplicationState, text: str) -> LoanTurnResponse | None:
    if not is_loan_advice_request(text):
        return None
    logger.info("loan_flow_advice_refused step=%s", state.step)
    return _reply(state, ADVICE_REFUSALS[state.step], is_complete=state.step == "CONFIRMED")


def _unrelated_interceptor(state: LoanApplicationState, text: str) -> LoanTurnResponse | None:
    if not is_unrelated_question(text):
        return None
    return _reply(state, UNRELATED_REDIRECTS[state.step], is_complete=state.step == "CONFIRMED")


LOAN_INTERCEPTORS: tuple[Interceptor, ...] = (
    _cancel_interceptor,
    _advice_interceptor,
    _unrelated_interceptor,
)


def _handle_start(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    if contains_any(text, NEGATIVE_TERMS):
        return _reply(state, "No problem. If you change your mind, just say 'I want to apply for a loan' to get started.")
    if contains_any(text, START_AFFIRMATIVE_TERMS):
        return _reply(
            state.model_copy(update={"step": "ELIGIBILITY"}),
            "Great! Let's start your loan application. First, I need to confirm your eligibility. "
            "Are you currently enrolled in the 401(k) plan and have a vested balance?",
        )
    return _reply(
        state,
        "I need to know if you'd like to apply for a loan. Please say 'yes' to continue or 'no' to cancel.",
    )


def _handle_eligibility(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    criteria = (
        "To be eligible for a 401(k) loan, you must be enrolled in the plan and have a vested balance. "
        "Are you currently enrolled in the 401(k) plan and have a vested balance?"
    )
    if contains_any(text, ELIGIBILITY_NEGATIVE_TERMS):
        return _reply(
            state,
            "To be eligible for a loan, you need to be enrolled in the 401(k) plan and have a vested balance. "
            "If you're not currently eligible, please contact your plan administrator. "
            "Would you like to check your eligibility again?",
        )
    if is_question_shaped(text):
        return _reply(state, criteria)
    if contains_any(text, ELIGIBILITY_AFFIRMATIVE_TERMS):
        return _reply(
            state.model_copy(update={"step": "RULES", "is_eligible": True}),
            "Perfect! You're eligible. Let me explain the loan rules. You can borrow up to 50% of your vested "
            f"balance, with a maximum of $50,000. Based on your account, you can borrow up to {_max_loan_text(state)}. "
            "The repayment is typically over 1 to 5 years through payroll deduction. Interest goes back into your "
            "account. Does this sound good?",
        )
    if contains_any(text, ELIGIBILITY_QUESTION_TERMS):
        return _reply(state, criteria)
    return _reply(
        state,
        "Please confirm your eligibility. Say 'yes' if you're enrolled in the 401(k) plan and have a vested "
        "balance, or 'no' if you're not sure.",
    )


def _handle_rules(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    if is_question_shaped(text) or contains_any(text, RULES_QUESTION_TERMS):
        return _reply(state, _rules_explanation(state))
    if contains_any(text, RULES_AFFIRMATIVE_TERMS):
        return _reply(
            state.model_copy(update={"step": "AMOUNT"}),
            f"Great! How much would you like to borrow? You can request any amount from {_amount_range_text(state)}.",
        )
    return _reply(
        state,
        "Please confirm you understand the loan rules. Say 'yes' to continue with your application, "
        "or ask me to explain any part of the rules.",
    )


def parse_loan_amount(text: str) -> float | None:
    for suffixed in _THOUSANDS_SUFFIX.finditer((text or "").lower()):
        digits = suffixed.group(1).replace(",", "")
        # "401k" names the plan, not an amount.
        if digits == "401":
            continue
        return float(digits) * 1000
    cleaned = re.sub(r"[^\d.]", "", text or "")
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def parse_words_to_number(text: str) -> float | None:
    normalized = normalize_input(text)
    compound = _COMPOUND_THOUSAND.search(normalized)
    if compound:
        tens = WORD_NUMBERS.get(compound.group(1))
        ones = WORD_NUMBERS.get(compound.group(2))
        if tens is not None and ones is not None and tens >= 20 and tens % 10 == 0 and 0 < ones < 10:
            return float((tens + ones) * 1000)
    simple = _SIMPLE_THOUSAND.search(normalized)
    if simple:
        value = WORD_NUMBERS.get(simple.group(1))
        if value is not None:
            return float(value * 1000)
    return None


def is_vague_amount(text: str) -> bool:
    normalized = normalize_input(text)
    return any(pattern.search(normalized) for pattern in VAGUE_AMOUNT_PATTERNS)


def _handle_amount(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    amount = parse_loan_amount(text)
    if amount is None:
        amount = parse_words_to_number(text)

    if amount is None:
        if is_vague_amount(text):
            message = (
                "Please provide a specific amount in dollars, for example $10,000 or $20,000. "
                f"You can borrow up to {_max_loan_text(state)}."
            )
        else:
            message = (
                "I didn't understand that amount. Please tell me how much you'd like to borrow. "
                f"You can request any amount from {_amount_range_text(state)}. "
                "For example, say '$10,000' or 'ten thousand dollars'."
            )
        return _reply(state, message)

    validation = validate_loan_amount(amount, state.max_loan)
    if not validation.valid:
        return _reply(
            state,
            f"{validation.error or 'Invalid amount.'} Please request an amount between "
            f"${fmt_money(LOAN_MIN_AMOUNT)} and {_max_loan_text(state)}.",
        )

    if state.loan_purpose:
        message = (
            f"Perfect! You're requesting a loan of ${fmt_money(amount)}. Your previous purpose was "
            f"\"{state.loan_purpose}\". Say 'same' to keep it, or tell me a new purpose."
        )
    else:
        message = (
            f"Perfect! You're requesting a loan of ${fmt_money(amount)}. What will you use this loan for? "
            "This is optional, but helps with planning."
        )
    return _reply(
        state.model_copy(
            update={
                "step": "PURPOSE",
                "loan_amount": amount,
                "collected_data": state.collected_data.without_terms(loan_amount=amount),
            }
        ),
        message,
    )


def _handle_purpose(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    if state.loan_purpose and contains_any(text, KEEP_TERMS):
        purpose = state.loan_purpose
    else:
        purpose = raw.strip() or "Not specified"
    next_state = state.model_copy(
        update={
            "step": "TERM",
            "loan_purpose": purpose,
            "collected_data": state.collected_data.model_copy(update={"loan_purpose": purpose}),
        }
    )
    return _reply(next_state, _term_prompt(state))


def _with_terms(state: LoanApplicationState, term_years: int) -> LoanApplicationState:
    amount = state.loan_amount or 0.0
    terms = calculate_loan_terms(amount, term_years, DEFAULT_LOAN_ANNUAL_RATE)
    collected = state.collected_data.model_copy(
        update={
            "loan_amount": amount,
            "repayment_term": term_years,
            "monthly_payment": terms.monthly_payment,
            "total_repayment": terms.total_repayment,
            "total_interest": terms.total_interest,
        }
    )
    return state.model_copy(update={"step": "REVIEW", "repayment_term": term_years, "collected_data": collected})


def _term_accepted(state: LoanApplicationState, term_years: int) -> LoanTurnResponse:
    next_state = _with_terms(state, term_years)
    monthly = next_state.collected_data.monthly_payment or 0.0
    return _reply(
        next_state,
        f"Perfect! You've chosen a {term_years}-year repayment term. Your estimated monthly payment is "
        f"${fmt_money(monthly)}. Let me review your loan application with you. {build_loan_summary(next_state)} "
        "Does this look correct? Say 'yes' to submit your application or 'no' to start over.",
    )


def parse_term_years(text: str) -> int | None:
    match = _YEARS_NUMBER.search(text)
    if match:
        return int(match.group(1))
    match = _ANY_INTEGER.search(text)
    if match:
        return int(match.group(1))
    for words, years in TERM_WORDS:
        if contains_any(text, words):
            return years
    return None


def _handle_term(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    if state.repayment_term is not None and contains_any(text, KEEP_TERMS):
        return _term_accepted(state, state.repayment_term)

    term_years = parse_term_years(text)
    if term_years is not None and validate_loan_term(term_years).valid:
        return _term_accepted(state, term_years)

    return _reply(
        state,
        f"Please choose a repayment term between {LOAN_TERM_YEARS_MIN} and {LOAN_TERM_YEARS_MAX} years. "
        "For example, say '3 years' or '5 years'. Most people choose 5 years for lower monthly payments.",
    )


def _handle_review(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    has_edit_verb = contains_any(text, REVIEW_EDIT_VERBS)
    if (
        contains_any(text, REVIEW_CONFIRM_TERMS)
        and not contains_any(text, REVIEW_NEGATION_TERMS)
        and not has_edit_verb
    ):
        logger.info("loan_flow_confirmed amount=%s term=%s", state.loan_amount, state.repayment_term)
        return _reply(
            state.model_copy(update={"step": "CONFIRMED"}),
            "Perfect! Your loan application has been submitted successfully. You'll receive a confirmation email "
            "within 1-2 business days with next steps. Thank you for using our loan service!",
            is_complete=True,
        )

    if contains_any(text, REVIEW_EDIT_AMOUNT_TERMS):
        return _reply(
            state.model_copy(
                update={
                    "step": "AMOUNT",
                    "loan_amount": None,
                    "collected_data": state.collected_data.without_terms(loan_amount=None),
                }
            ),
            f"No problem. How much would you like to borrow? You can request any amount from {_amount_range_text(state)}.",
        )

    if contains_any(text, REVIEW_EDIT_TERM_TERMS):
        return _reply(
            state.model_copy(
                update={
                    "step": "TERM",
                    "repayment_term": None,
                    "collected_data": state.collected_data.without_terms(repayment_term=None),
                }
            ),
            "No problem. How many years would you like to repay this loan? You can choose between 1 and 5 years.",
        )

    if contains_any(text, REVIEW_EDIT_PURPOSE_TERMS):
        return _reply(
            state.model_copy(
                update={
                    "step": "PURPOSE",
                    "loan_purpose": None,
                    "collected_data": state.collected_data.model_copy(update={"loan_purpose": None}),
                }
            ),
            "No problem. What will you use this loan for? This is optional, but helps with planning.",
        )

    if has_edit_verb and not contains_any(text, REVIEW_EDIT_TARGETS):
        return _reply(
            state,
            "What would you like to change? Say 'the amount', 'the term', or 'the purpose'. "
            "Or say 'start over' to begin from the beginning.",
        )

    if contains_any(text, REVIEW_RESTART_TERMS):
        return _reply(
            state.model_copy(
                update={
                    "step": "START",
                    "is_eligible": None,
                    "loan_amount": None,
                    "loan_purpose": None,
                    "repayment_term": None,
                    "collected_data": LoanCollectedData(),
                }
            ),
            "No problem! Let's start over. Would you like to apply for a 401(k) loan?",
        )

    return _reply(
        state,
        f"{build_loan_summary(state)} Does this look correct? Say 'yes' to submit your application or 'no' to start over.",
    )


def _handle_confirmed(state: LoanApplicationState, text: str, raw: str) -> LoanTurnResponse:
    return _reply(state, CONFIRMED_MESSAGE, is_complete=True)


StepHandler = Callable[[LoanApplicationState, str, str], LoanTurnResponse]

STEP_HANDLERS: dict[LoanStep, StepHandler] = {
    "START": _handle_start,
    "ELIGIBILITY": _handle_eligibility,
    "RULES": _handle_rules,
    "AMOUNT": _handle_amount,
    "PURPOSE": _handle_purpose,
    "TERM": _handle_term,
    "REVIEW": _handle_review,
    "CONFIRMED": _handle_confirmed,
}


def get_loan_response(state: LoanApplicationState, user_input: str) -> LoanTurnResponse:
    raw = user_input if isinstance(user_input, str) else ""
    text = normalize_input(raw)

    intercepted = run_interceptors(LOAN_INTERCEPTORS, state, text)
    if intercepted is not None:
        return intercepted

    return STEP_HANDLERS[state.step](state, text, raw)


process_turn = get_loan_response

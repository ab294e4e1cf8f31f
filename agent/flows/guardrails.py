from __future__ import annotations

import re
from typing import Callable, Iterable, Optional, Sequence, TypeVar

StateT = TypeVar("StateT")
ResponseT = TypeVar("ResponseT")
Interceptor = Callable[[StateT, str], Optional[ResponseT]]

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "½": ".5"})

CANCEL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^cancel",
        r"^exit",
        r"^stop",
        r"^quit",
        r"^never mind",
        r"^forget it",
        r"^don't want",
        r"^not interested",
        r"^change my mind",
        r"^no thanks",
        r"^abort",
        r"^go back",
        r"^leave",
        r"^start over$",
    )
)

LOAN_ADVICE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bshould i (take|get|borrow|apply|use)\b",
        r"\bis it (good|bad|wise|smart|better|worth)\b",
        r"\bwhat (should|would|do you recommend|do you suggest)\b",
        r"\b(recommend|suggest|advice|advise|opinion)",
        r"\b(better|best|worst) (option|choice|decision|alternative)\b",
        r"\b(good idea|bad idea|wise|smart|worth it)\b",
        r"\b(compare|comparison|vs|versus|instead)\b",
        r"\b(what if|what happens if|hypothetical)",
        r"\b(loan vs|loan or|withdrawal vs|withdrawal or)\b",
    )
)

WITHDRAWAL_ADVICE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bshould i (withdraw|take out|take)\b",
        r"\b(recommend|suggest|advice|advise|better|best|worst)",
        r"\b(withdraw|withdrawal) or (loan|borrow)\b",
        r"\b(loan|borrow) or (withdraw|withdrawal)\b",
        r"\bwhat (do you recommend|would you do|should i do)\b",
        r"\bis it (better|good|bad|wise) to\b",
    )
)

GENERIC_QUESTION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^what (is|are|can|do|does|will|would|should|how)\b",
        r"^how (do|does|can|will|would|should|much|many|long)\b",
        r"^tell me (about|more)\b",
        r"^explain\b",
        r"^help (me|with)\b",
        r"^can you (tell|explain|help|show)\b",
        r"^i (want|need|would like) to (know|learn|understand|see)\b",
    )
)

# Substring keywords that keep a question inside the loan flow.
LOAN_DOMAIN_KEYWORDS: tuple[str, ...] = (
    "loan",
    "borrow",
    "amount",
    "term",
    "repay",
    "repayment",
    "purpose",
    "eligibility",
    "eligible",
    "vested",
    "balance",
    "apply",
    "application",
    "confirm",
    "review",
    "submit",
    "max",
    "maximum",
    "limit",
    "limits",
    "interest",
    "rate",
    "payment",
    "rules",
    "requirement",
)

QUESTION_OPENERS: tuple[str, ...] = (
    "what",
    "what's",
    "how",
    "why",
    "when",
    "which",
    "am i",
    "can i",
    "do i",
    "is",
    "are",
    "does",
)


def normalize_input(text: object) -> str:
    if not isinstance(text, str):
        return ""
    collapsed = re.sub(r"\s+", " ", text.translate(_APOSTROPHES))
    return collapsed.strip().lower()


def _term_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\w']){re.escape(term.lower())}(?![\w'])")


def contains_any(text: str, terms: Iterable[str]) -> bool:
    return any(_term_pattern(term).search(text) for term in terms)


def contains_substring(text: str, terms: Iterable[str]) -> bool:
    return any(term in text for term in terms)


def matches_any(text: str, patterns: Sequence[re.Pattern[str]]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def is_question_shaped(text: str) -> bool:
    if text.endswith("?"):
        return True
    return any(text == opener or text.startswith(f"{opener} ") for opener in QUESTION_OPENERS)


def is_cancel_request(text: str) -> bool:
    return matches_any(normalize_input(text), CANCEL_PATTERNS)


def is_loan_advice_request(text: str) -> bool:
    return matches_any(normalize_input(text), LOAN_ADVICE_PATTERNS)


def is_withdrawal_advice_request(text: str) -> bool:
    return matches_any(normalize_input(text), WITHDRAWAL_ADVICE_PATTERNS)


def is_unrelated_question(text: str) -> bool:
    normalized = normalize_input(text)
    if not matches_any(normalized, GENERIC_QUESTION_PATTERNS):
        return False
    return not contains_substring(normalized, LOAN_DOMAIN_KEYWORDS)


def run_interceptors(
    interceptors: Sequence[Interceptor],
    state: StateT,
    text: str,
) -> ResponseT | None:
    for interceptor in interceptors:
        response = interceptor(state, text)
        if response is not None:
            return response
    return None

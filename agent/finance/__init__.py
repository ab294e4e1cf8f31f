from .allocation import (
    AllocationSource,
    allocation_to_sources,
    get_locked_ids,
    merge_locks,
    normalize_total,
    rebalance_sources,
    sources_to_allocation,
)
from .common import fmt_money, round1, round2, safe_float
from .loan import (
    DEFAULT_LOAN_ANNUAL_RATE,
    LOAN_MAX_ABSOLUTE,
    LOAN_MAX_PCT_OF_VESTED,
    LOAN_MIN_AMOUNT,
    LOAN_TERM_YEARS_MAX,
    LOAN_TERM_YEARS_MIN,
    AmortizationRow,
    LoanTerms,
    LoanValidation,
    calculate_loan_terms,
    calculate_max_loan,
    calculate_monthly_payment,
    get_amortization_schedule,
    validate_loan_amount,
    validate_loan_term,
)

__all__ = [
    "DEFAULT_LOAN_ANNUAL_RATE",
    "LOAN_MAX_ABSOLUTE",
    "LOAN_MAX_PCT_OF_VESTED",
    "LOAN_MIN_AMOUNT",
    "LOAN_TERM_YEARS_MAX",
    "LOAN_TERM_YEARS_MIN",
    "AllocationSource",
    "AmortizationRow",
    "LoanTerms",
    "LoanValidation",
    "allocation_to_sources",
    "calculate_loan_terms",
    "calculate_max_loan",
    "calculate_monthly_payment",
    "fmt_money",
    "get_amortization_schedule",
    "get_locked_ids",
    "merge_locks",
    "normalize_total",
    "rebalance_sources",
    "round1",
    "round2",
    "safe_float",
    "sources_to_allocation",
    "validate_loan_amount",
    "validate_loan_term",
]

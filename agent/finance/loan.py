from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict

from .common import fmt_money, is_finite_number, round2

# IRS/plan rules for 401(k) participant loans. Interest is paid back into the participant's account.
LOAN_MAX_ABSOLUTE = 50_000
LOAN_MAX_PCT_OF_VESTED = 0.5
LOAN_MIN_AMOUNT = 1_000
LOAN_TERM_YEARS_MIN = 1
LOAN_TERM_YEARS_MAX = 5
DEFAULT_LOAN_ANNUAL_RATE = 0.085
PAYMENTS_PER_YEAR = 12


class LoanValidation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    valid: bool
    error: str | None = None


class LoanTerms(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    amount: float
    term_years: int
    annual_rate: float
    monthly_payment: float
    total_repayment: float
    total_interest: float
    number_of_payments: int


class AmortizationRow(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    payment_number: int
    payment: float
    principal: float
    interest: float
    balance: float


def calculate_max_loan(vested_balance: float) -> float:
    if not is_finite_number(vested_balance) or vested_balance <= 0:
        return 0.0
    return float(min(vested_balance * LOAN_MAX_PCT_OF_VESTED, LOAN_MAX_ABSOLUTE))


def validate_loan_amount(amount: float, max_loan: float) -> LoanValidation:
    if not is_finite_number(amount) or amount <= 0:
        return LoanValidation(valid=False, error="Amount must be a positive number.")
    if amount < LOAN_MIN_AMOUNT:
        return LoanValidation(valid=False, error=f"Minimum loan amount is ${fmt_money(LOAN_MIN_AMOUNT)}.")
    if not is_finite_number(max_loan) or amount > max_loan:
        return LoanValidation(valid=False, error=f"Maximum loan amount is ${fmt_money(max_loan)}.")
    return LoanValidation(valid=True)


def validate_loan_term(term_years: float) -> LoanValidation:
    if not is_finite_number(term_years) or term_years <= 0:
        return LoanValidation(valid=False, error="Term must be a positive number of years.")
    if term_years < LOAN_TERM_YEARS_MIN or term_years > LOAN_TERM_YEARS_MAX:
        return LoanValidation(
            valid=False,
            error=f"Repayment term must be between {LOAN_TERM_YEARS_MIN} and {LOAN_TERM_YEARS_MAX} years.",
        )
    return LoanValidation(valid=True)


def _number_of_payments(term_years: float) -> int:
    if not is_finite_number(term_years) or term_years <= 0:
        return 0
    return int(round(term_years * PAYMENTS_PER_YEAR))


def calculate_monthly_payment(principal: float, annual_rate: float, term_years: float) -> float:
    if not is_finite_number(principal) or principal <= 0:
        return 0.0
    if not is_finite_number(annual_rate) or annual_rate < 0:
        return 0.0
    n = _number_of_payments(term_years)
    if n <= 0:
        return 0.0
    r = annual_rate / PAYMENTS_PER_YEAR
    if r == 0:
        return round2(principal / n)
    factor = math.pow(1 + r, n)
    return round2(principal * r * factor / (factor - 1))


def calculate_loan_terms(
    amount: float,
    term_years: int,
    annual_rate: float | None = None,
) -> LoanTerms:
    rate = DEFAULT_LOAN_ANNUAL_RATE if annual_rate is None else annual_rate
    monthly_payment = calculate_monthly_payment(amount, rate, term_years)
    number_of_payments = _number_of_payments(term_years)
    safe_amount = float(amount) if is_finite_number(amount) else 0.0
    total_repayment = round2(monthly_payment * number_of_payments)
    total_interest = round2(total_repayment - safe_amount) if total_repayment > 0 else 0.0
    return LoanTerms(
        amount=safe_amount,
        term_years=int(term_years) if is_finite_number(term_years) else 0,
        annual_rate=float(rate) if is_finite_number(rate) else 0.0,
        monthly_payment=monthly_payment,
        total_repayment=total_repayment,
        total_interest=total_interest,
        number_of_payments=number_of_payments,
    )


def get_amortization_schedule(
    amount: float,
    term_years: int,
    annual_rate: float | None = None,
) -> list[AmortizationRow]:
    terms = calculate_loan_terms(amount, term_years, annual_rate)
    if terms.monthly_payment <= 0:
        return []

    monthly_rate = terms.annual_rate / PAYMENTS_PER_YEAR
    balance = terms.amount
    rows: list[AmortizationRow] = []
    for payment_number in range(1, terms.number_of_payments + 1):
        interest = round2(balance * monthly_rate)
        if payment_number == terms.number_of_payments:
            # Last payment retires whatever cent-level residue the per-row rounding left behind.
            principal = round2(balance)
            payment = round2(principal + interest)
        else:
            principal = round2(terms.monthly_payment - interest)
            payment = terms.monthly_payment
        balance = round2(max(0.0, balance - principal))
        rows.append(
            AmortizationRow(
                payment_number=payment_number,
                payment=payment,
                principal=principal,
                interest=interest,
                balance=balance,
            )
        )
    return rows

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from agent.config import DEFAULT_VESTED_BALANCE
from agent.finance import (
    LOAN_MAX_ABSOLUTE,
    LOAN_MIN_AMOUNT,
    LOAN_TERM_YEARS_MAX,
    LOAN_TERM_YEARS_MIN,
    calculate_loan_terms,
    calculate_max_loan,
    get_amortization_schedule,
    validate_loan_amount,
    validate_loan_term,
)

router = APIRouter(prefix="/loans", tags=["loans"])


class LoanTermsPayload(BaseModel):
    amount: float
    term_years: int
    annual_rate: Optional[float] = Field(default=None, ge=0, le=1)
    vested_balance: Optional[float] = Field(default=None, ge=0)


def _validated_terms_input(payload: LoanTermsPayload) -> None:
    max_loan = calculate_max_loan(payload.vested_balance) if payload.vested_balance is not None else LOAN_MAX_ABSOLUTE
    for check in (validate_loan_amount(payload.amount, max_loan), validate_loan_term(payload.term_years)):
        if not check.valid:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=check.error)


@router.get("/limits")
def loan_limits(vested_balance: float = Query(DEFAULT_VESTED_BALANCE, ge=0)):
    return {
        "vested_balance": vested_balance,
        "max_loan": calculate_max_loan(vested_balance),
        "min_amount": LOAN_MIN_AMOUNT,
        "term_years_min": LOAN_TERM_YEARS_MIN,
        "term_years_max": LOAN_TERM_YEARS_MAX,
    }


@router.post("/terms")
def loan_terms(payload: LoanTermsPayload):
    _validated_terms_input(payload)
    return calculate_loan_terms(payload.amount, payload.term_years, payload.annual_rate).model_dump()


@router.post("/schedule")
def loan_schedule(payload: LoanTermsPayload):
    _validated_terms_input(payload)
    terms = calculate_loan_terms(payload.amount, payload.term_years, payload.annual_rate)
    schedule = get_amortization_schedule(payload.amount, payload.term_years, payload.annual_rate)
    return {"terms": terms.model_dump(), "schedule": [row.model_dump() for row in schedule]}

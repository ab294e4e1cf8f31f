from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from agent.flows import (
    LoanApplicationState,
    PlanEnrollmentState,
    VestingInfoState,
    VestingPlanData,
    WithdrawalInfoState,
    create_initial_enrollment_state,
    create_initial_loan_state,
    create_initial_vesting_state,
    create_initial_withdrawal_state,
    get_enrollment_response,
    get_vesting_response,
    get_withdrawal_response,
    process_turn,
)

router = APIRouter(prefix="/assistant", tags=["assistant"])


class LoanTurnRequest(BaseModel):
    state: Optional[LoanApplicationState] = None
    text: str = ""
    vested_balance: Optional[float] = Field(default=None, ge=0)


class WithdrawalTurnRequest(BaseModel):
    state: Optional[WithdrawalInfoState] = None
    text: str = ""


class VestingTurnRequest(BaseModel):
    state: Optional[VestingInfoState] = None
    text: str = ""
    plan_data: Optional[VestingPlanData] = None


class EnrollmentTurnRequest(BaseModel):
    state: Optional[PlanEnrollmentState] = None
    text: str = ""
    is_eligible: Optional[bool] = None
    current_age: Optional[int] = Field(default=None, ge=0, le=120)


@router.post("/loan/turn")
def loan_turn(payload: LoanTurnRequest):
    state = payload.state or create_initial_loan_state(payload.vested_balance)
    return process_turn(state, payload.text).model_dump()


@router.post("/withdrawal/turn")
def withdrawal_turn(payload: WithdrawalTurnRequest):
    state = payload.state or create_initial_withdrawal_state()
    return get_withdrawal_response(state, payload.text).model_dump()


@router.post("/vesting/turn")
def vesting_turn(payload: VestingTurnRequest):
    state = payload.state or create_initial_vesting_state(payload.plan_data)
    return get_vesting_response(state, payload.text).model_dump()


@router.post("/enrollment/turn")
def enrollment_turn(payload: EnrollmentTurnRequest):
    state = payload.state or create_initial_enrollment_state(payload.is_eligible, payload.current_age)
    return get_enrollment_response(state, payload.text).model_dump()

from .contracts import (
    EnrollmentCollectedData,
    EnrollmentStep,
    EnrollmentTurnResponse,
    LoanApplicationState,
    LoanCollectedData,
    LoanStep,
    LoanTurnResponse,
    PlanEnrollmentState,
    VestingInfoState,
    VestingPlanData,
    VestingStep,
    VestingTurnResponse,
    WithdrawalInfoState,
    WithdrawalStep,
    WithdrawalTurnResponse,
)
from .loan_application import build_loan_summary, create_initial_loan_state, get_loan_response, process_turn
from .plan_enrollment import build_enrollment_summary, create_initial_enrollment_state, get_enrollment_response
from .vesting_info import create_initial_vesting_state, get_vesting_response
from .withdrawal_info import create_initial_withdrawal_state, get_withdrawal_response

__all__ = [
    "EnrollmentCollectedData",
    "EnrollmentStep",
    "EnrollmentTurnResponse",
    "LoanApplicationState",
    "LoanCollectedData",
    "LoanStep",
    "LoanTurnResponse",
    "PlanEnrollmentState",
    "VestingInfoState",
    "VestingPlanData",
    "VestingStep",
    "VestingTurnResponse",
    "WithdrawalInfoState",
    "WithdrawalStep",
    "WithdrawalTurnResponse",
    "build_enrollment_summary",
    "build_loan_summary",
    "create_initial_enrollment_state",
    "create_initial_loan_state",
    "create_initial_vesting_state",
    "create_initial_withdrawal_state",
    "get_enrollment_response",
    "get_loan_response",
    "get_vesting_response",
    "get_withdrawal_response",
    "process_turn",
]

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

LoanStep = Literal["START", "ELIGIBILITY", "RULES", "AMOUNT", "PURPOSE", "TERM", "REVIEW", "CONFIRMED"]
WithdrawalStep = Literal["START", "AGE_CHECK", "EMPLOYMENT_CHECK", "ELIGIBILITY_SUMMARY", "NEXT_STEPS"]
VestingStep = Literal["START", "FOLLOWUP"]
VestingScheduleType = Literal["cliff", "graded"]


class LoanCollectedData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    loan_amount: float | None = None
    loan_purpose: str | None = None
    repayment_term: int | None = None
    monthly_payment: float | None = None
    total_repayment: float | None = None
    total_interest: float | None = None

    def without_terms(self, **updates: object) -> "LoanCollectedData":
        return self.model_copy(
            update={
                **updates,
                "monthly_payment": None,
                "total_repayment": None,
                "total_interest": None,
            }
        )


class LoanApplicationState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step: LoanStep = "START"
    vested_balance: float
    max_loan: float
    is_eligible: bool | None = None
    loan_amount: float | None = None
    loan_purpose: str | None = None
    repayment_term: int | None = None
    collected_data: LoanCollectedData = Field(default_factory=LoanCollectedData)


class LoanTurnResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    next_state: LoanApplicationState
    message: str = Field(min_length=1)
    is_complete: bool = False
    is_cancelled: bool = False


class WithdrawalInfoState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step: WithdrawalStep = "START"
    is_59_or_older: bool | None = None
    is_employed: bool | None = None


class WithdrawalTurnResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    next_state: WithdrawalInfoState
    message: str = Field(min_length=1)
    is_complete: bool = False


class VestingPlanData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schedule_type: VestingScheduleType | None = None
    current_vesting_pct: float | None = Field(default=None, ge=0.0, le=100.0)


class VestingInfoState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step: VestingStep = "START"
    plan_data: VestingPlanData | None = None


class VestingTurnResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    next_state: VestingInfoState
    message: str = Field(min_length=1)
    is_complete: bool = False


EnrollmentStep = Literal[
    "INTENT",
    "ELIGIBILITY",
    "CURRENT_AGE",
    "RETIREMENT_AGE",
    "LOCATION",
    "PLAN_RECOMMENDATION",
    "CONTRIBUTION",
    "MONEY_HANDLING",
    "MANUAL_RISK",
    "MANUAL_FUNDS",
    "MANUAL_ALLOCATION",
    "REVIEW",
    "INELIGIBLE",
    "CONFIRMED",
]
PlanChoice = Literal["PAY_TAX_LATER", "PAY_TAX_NOW"]
PlanType = Literal["401(k)", "Roth 401(k)"]
InvestmentStrategy = Literal["DEFAULT", "MANUAL", "ADVISOR"]
ManualRiskLevel = Literal["conservative", "moderate", "growth", "aggressive"]


class EnrollmentCollectedData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_age: int | None = None
    retirement_age: int | None = None
    years_to_retirement: int | None = None
    work_country: str | None = None
    recommended_plan_choice: PlanChoice | None = None
    selected_plan_choice: PlanChoice | None = None
    plan_type: PlanType | None = None
    contribution_percentage: float | None = None
    investment_strategy: InvestmentStrategy | None = None
    manual_risk_level: ManualRiskLevel | None = None
    manual_allocations: dict[str, float] | None = None


class PlanEnrollmentState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step: EnrollmentStep = "INTENT"
    is_eligible: bool | None = None
    current_age: int | None = Field(default=None, ge=0, le=120)
    retirement_age: int | None = None
    years_to_retirement: int | None = None
    work_country: str | None = None
    recommended_plan_choice: PlanChoice | None = None
    selected_plan_choice: PlanChoice | None = None
    plan_type: PlanType | None = None
    contribution_percentage: float | None = None
    investment_strategy: InvestmentStrategy | None = None
    manual_risk_level: ManualRiskLevel | None = None
    manual_fund_ids: list[str] = Field(default_factory=list)
    manual_allocations: dict[str, float] = Field(default_factory=dict)
    manual_locked_fund_ids: list[str] = Field(default_factory=list)
    collected_data: EnrollmentCollectedData = Field(default_factory=EnrollmentCollectedData)


class EnrollmentTurnResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    next_state: PlanEnrollmentState
    message: str = Field(min_length=1)
    is_complete: bool = False

from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

ConfidenceLevel = Literal["high", "medium", "low"]
Row = Dict[str, Any]


class RetirementDataV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    retirement_accounts: list[Row] | None = None
    plan_rules: list[Row] | None = None
    account_transactions: list[Row] | None = None
    retirement_knowledge: list[Row] | None = None

    def non_empty_sources(self) -> list[str]:
        return [name for name, rows in self.model_dump().items() if rows]


class DataFetchResultV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data: RetirementDataV1 = Field(default_factory=RetirementDataV1)
    sources: list[str] = Field(default_factory=list)


class ComposedReplyV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    spoken_text: str = Field(min_length=1)
    ui_data: Dict[str, Any] = Field(default_factory=dict)


class CoreReplyV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = "core_reply_v1"
    reply: str = Field(min_length=1)
    filtered: bool = False
    type: str
    spoken_text: str = Field(min_length=1)
    ui_data: Dict[str, Any] = Field(default_factory=dict)
    confidence: ConfidenceLevel = "low"
    data_sources: list[str] = Field(default_factory=list)
    error: str | None = None

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from agent.finance import AllocationSource, get_locked_ids, rebalance_sources

router = APIRouter(prefix="/contributions", tags=["contributions"])


class RebalancePayload(BaseModel):
    sources: list[AllocationSource] = Field(min_length=1)
    changed_id: str
    new_value: float


@router.post("/rebalance")
def rebalance(payload: RebalancePayload):
    result = rebalance_sources(payload.sources, payload.changed_id, payload.new_value)
    return {
        "sources": [source.model_dump() for source in result],
        "total": round(sum(source.value for source in result), 1),
        "locked_ids": sorted(get_locked_ids(result)),
    }

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from agent.data import get_data_for_intent, insert_ai_log
from agent.response import generate_core_reply
from agent.router import resolve_intent
from app.services.auth import caller_context

router = APIRouter(prefix="/core-ai", tags=["core-ai"])
logger = logging.getLogger(__name__)


class CoreReplyRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)


@router.post("/reply")
def core_ai_reply(payload: CoreReplyRequest, caller: Dict[str, Optional[str]] = Depends(caller_context)):
    user_id = caller["user_id"] or ""
    company_id = caller.get("company_id")
    intent = resolve_intent(payload.message)
    fetched = get_data_for_intent(intent, user_id, company_id)
    logger.info("core_ai_request user_id=%s intent=%s sources=%s", user_id, intent, ",".join(fetched.sources))

    reply = generate_core_reply(
        payload.message,
        intent=intent,
        data=fetched.data,
        server_context=caller,
        sources=fetched.sources,
    )
    insert_ai_log(
        user_id=user_id,
        company_id=company_id,
        question=payload.message,
        detected_intent=intent,
        response=reply.spoken_text,
        data_sources=reply.data_sources,
    )
    return {**reply.model_dump(exclude_none=True), "intent": intent}

from __future__ import annotations

import os
from typing import Dict, Optional

from fastapi import Header, HTTPException, status

DEMO_CALLER = {"user_id": "demo-user", "company_id": "demo-company", "email": "demo@retirement.local"}


def _get_env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is not None:
        return str(value)
    # BOM-prefixed key names show up in .env files saved by some editors.
    bom_value = os.getenv(f"\ufeff{name}")
    if bom_value is not None:
        return str(bom_value)
    return default


def dev_bypass_enabled() -> bool:
    return _get_env("DEV_BYPASS_AUTH", "false").strip().lower() == "true"


def resolve_caller(
    user_id: Optional[str],
    company_id: Optional[str],
    email: Optional[str] = None,
) -> Dict[str, Optional[str]]:
    """Caller identity as verified by the upstream gateway.

    Tokens are checked before requests reach this service; only the trusted
    identity headers are read here.
    """
    resolved_user = (user_id or "").strip()
    if not resolved_user:
        if dev_bypass_enabled():
            return dict(DEMO_CALLER)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing caller identity")
    return {
        "user_id": resolved_user,
        "company_id": (company_id or "").strip() or None,
        "email": (email or "").strip() or None,
    }


def caller_context(
    x_user_id: Optional[str] = Header(None),
    x_company_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> Dict[str, Optional[str]]:
    return resolve_caller(x_user_id, x_company_id, x_user_email)

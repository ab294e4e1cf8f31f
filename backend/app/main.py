from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Always load backend/.env regardless of current working directory.
# main.py is at backend/app/main.py -> backend/.env is parents[1]/.env
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
# Read .env as UTF-8 with BOM support to avoid a malformed first key.
load_dotenv(ENV_PATH, override=True, encoding="utf-8-sig")

from app.routes import (  # noqa: E402
    assistant,
    contributions,
    core_ai,
    loans,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title="Retirement Assistant API Gateway", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(core_ai.router)  # Data-backed single-turn replies
app.include_router(assistant.router)  # Deterministic loan / withdrawal / vesting flows
app.include_router(loans.router)  # Loan calculator
app.include_router(contributions.router)  # Contribution source rebalancing


@app.get("/health")
def health():
    return {"status": "ok"}

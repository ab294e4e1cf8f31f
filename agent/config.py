import os
from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


AWS_REGION = os.getenv("AWS_REGION", "us-west-2")
BEDROCK_MODEL_ID = os.getenv("BEDROCK_MODEL_ID", "")

# Bedrock client timeouts
BEDROCK_CONNECT_TIMEOUT = _env_int("BEDROCK_CONNECT_TIMEOUT", 10)
BEDROCK_READ_TIMEOUT = _env_int("BEDROCK_READ_TIMEOUT", 60)
BEDROCK_MAX_TOKENS = max(64, _env_int("BEDROCK_MAX_TOKENS", 800))
BEDROCK_TEMPERATURE = min(1.0, max(0.0, _env_float("BEDROCK_TEMPERATURE", 0.2)))

# Supabase (PostgREST) data collaborator
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SQL_TIMEOUT_SEC = max(1, _env_int("SQL_TIMEOUT_SEC", 20))

# Core AI reply path
CORE_AI_LOG_ENABLED = _env_bool("CORE_AI_LOG_ENABLED", True)
CORE_AI_LOG_MAX_CHARS = max(100, _env_int("CORE_AI_LOG_MAX_CHARS", 10000))

# Loan application flow
DEFAULT_VESTED_BALANCE = max(0.0, _env_float("DEFAULT_VESTED_BALANCE", 80000.0))

from .retirement import get_data_for_intent, insert_ai_log
from .supabase_rest import SupabaseRestClient, SupabaseRestError, get_supabase_client

__all__ = [
    "SupabaseRestClient",
    "SupabaseRestError",
    "get_data_for_intent",
    "get_supabase_client",
    "insert_ai_log",
]

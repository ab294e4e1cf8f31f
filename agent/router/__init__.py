from .contracts import DATA_SOURCES, FALLBACK_INTENT, INTENTS, DataSource, IntentName
from .policy import DATA_SOURCE_MAP, INTENT_KEYWORD_TABLE, data_sources_for_intent, resolve_intent

__all__ = [
    "DATA_SOURCES",
    "DATA_SOURCE_MAP",
    "FALLBACK_INTENT",
    "INTENTS",
    "INTENT_KEYWORD_TABLE",
    "DataSource",
    "IntentName",
    "data_sources_for_intent",
    "resolve_intent",
]

"""
Query routing module.
"""

from lifelog_rag.intent.constants import (
    ACTIVITY_VOCABULARY,
    DATA_TYPE_CUES,
)
from lifelog_rag.intent.classifier import (
    QueryRouter,
    get_query_router,
    analyze_query,
)
from lifelog_rag.intent.temporal import parse_temporal_intent

__all__ = [
    "ACTIVITY_VOCABULARY",
    "DATA_TYPE_CUES",
    "QueryRouter",
    "get_query_router",
    "analyze_query",
    "parse_temporal_intent",
]

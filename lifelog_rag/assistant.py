"""
Routed question answering.

Consults the query router to pick the narrowest engine entry point that
fits the question. Misrouting only narrows retrieval; the unscoped path is
always a valid answer.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from lifelog_rag.config import settings
from lifelog_rag.intent import QueryRouter, get_query_router
from lifelog_rag.models import DataType, Message, QueryAnalysis, RAGResponse
from lifelog_rag.rag.engine import RAGQueryEngine

logger = logging.getLogger(__name__)


async def answer_question(
    engine: RAGQueryEngine,
    text: str,
    user_id: str,
    history: Optional[List[Message]] = None,
    router: Optional[QueryRouter] = None,
    data_type: Optional[DataType] = None,
    activity: Optional[str] = None,
    timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Tuple[RAGResponse, QueryAnalysis]:
    """
    Answer a question, choosing the retrieval scope from the router's hints.

    Routing order:
        1. Explicit ``activity`` / ``data_type`` overrides from the caller;
           an explicit data type is never displaced by a guessed activity
        2. Suggested activity -> activity-scoped retrieval
        3. Suggested data type -> category-scoped retrieval
        4. Otherwise unscoped

    A non-empty history always takes the history-aware unscoped path, since
    the scoped entry points are single-turn.

    Counting questions get the counting instruction in the context and
    retrieve at least ``RAG_TOP_K_COUNT_QUERY`` matches on every path.

    ``now`` anchors relative dates ("yesterday"); it defaults to the
    current time, read once per call.
    """
    router = router or get_query_router()
    analysis = router.analyze(text, now=now or datetime.now(timezone.utc))

    if data_type is None and activity is None:
        activity = analysis.suggested_activity
    data_type = data_type or analysis.suggested_data_type
    date_range = analysis.temporal

    count_label = None
    top_k = None
    if analysis.is_count_query:
        count_label = data_type.value if data_type else "items"
        top_k = settings.RAG_TOP_K_COUNT_QUERY

    logger.info(
        f"🧭 Routing: count={analysis.is_count_query}, data_type={data_type.value if data_type else 'none'}, "
        f"activity={activity or 'none'}, time={date_range.time_reference if date_range else 'none'}"
    )

    if activity and not history:
        if top_k is not None:
            top_k = max(top_k, engine.activity_top_k)
        result = await engine.query_by_activity(
            text, user_id, activity,
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )
    elif data_type and not history:
        result = await engine.query_by_data_type(
            text, user_id, data_type,
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )
    elif history:
        result = await engine.query_with_history(
            text, user_id, history,
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )
    else:
        result = await engine.query(
            text, user_id,
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )

    return result, analysis

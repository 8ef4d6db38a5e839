"""
RAG query engine: embed -> retrieve -> build context -> complete.

The engine holds only its collaborator handles, so one instance can serve
concurrent requests. It never retries: a failing stage aborts the query
with that stage's typed error, and retry policy belongs to the client
wrappers.
"""

import asyncio
import logging
import time
from typing import Awaitable, Dict, List, Optional, Type, TypeVar, Union

from lifelog_rag.config import settings
from lifelog_rag.errors import CompletionFailure, EmbeddingFailure, RAGError, RetrievalFailure
from lifelog_rag.llm.models import CompletionClient
from lifelog_rag.models import (
    ByActivity,
    ByDataType,
    DataType,
    Message,
    RAGResponse,
    RetrievalScope,
    TemporalIntent,
    Unscoped,
    validate_user_id,
)
from lifelog_rag.monitoring import LangSmithTracer, MetricsCollector, get_metrics, get_tracer
from lifelog_rag.rag.context import ContextBuilder
from lifelog_rag.rag.embeddings import EmbeddingClient
from lifelog_rag.rag.vectorstore import VectorIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


class RAGQueryEngine:
    """Answers questions about a user's personal data with grounded generation."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: VectorIndex,
        llm: CompletionClient,
        context_builder: Optional[ContextBuilder] = None,
        top_k: int = None,
        activity_top_k: int = None,
        stage_timeouts: Optional[Dict[str, float]] = None,
        tracer: Optional[LangSmithTracer] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.embedder = embedder
        self.index = index
        self.llm = llm
        self.context_builder = context_builder or ContextBuilder()
        self.top_k = top_k or settings.RAG_TOP_K_RESULTS
        self.activity_top_k = activity_top_k or settings.RAG_TOP_K_ACTIVITY
        self.stage_timeouts = stage_timeouts if stage_timeouts is not None else {
            "embedding": settings.EMBEDDING_TIMEOUT_SECONDS,
            "retrieval": settings.RETRIEVAL_TIMEOUT_SECONDS,
            "completion": settings.COMPLETION_TIMEOUT_SECONDS,
        }
        self.tracer = tracer or get_tracer()
        self.metrics = metrics or get_metrics()

    # === Public entry points ===

    async def query(
        self,
        text: str,
        user_id: str,
        *,
        top_k: int = None,
        date_range: Optional[TemporalIntent] = None,
        count_label: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RAGResponse:
        """Answer from unscoped retrieval over all of the user's data."""
        return await self._run(
            text, user_id, Unscoped(),
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )

    async def query_with_history(
        self,
        text: str,
        user_id: str,
        history: List[Message],
        *,
        top_k: int = None,
        date_range: Optional[TemporalIntent] = None,
        count_label: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RAGResponse:
        """
        Answer a follow-up question.

        The history (oldest first) is forwarded to the completion call ahead
        of the new user turn. Retrieval and context building only use the
        new question.
        """
        return await self._run(
            text, user_id, Unscoped(), history=history,
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )

    async def query_by_data_type(
        self,
        text: str,
        user_id: str,
        data_type: Union[DataType, str],
        *,
        top_k: int = None,
        date_range: Optional[TemporalIntent] = None,
        count_label: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RAGResponse:
        """Answer from retrieval restricted to one source category."""
        return await self._run(
            text, user_id, ByDataType(DataType(data_type)),
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )

    async def query_by_activity(
        self,
        text: str,
        user_id: str,
        activity: str,
        *,
        top_k: int = None,
        date_range: Optional[TemporalIntent] = None,
        count_label: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RAGResponse:
        """Answer from retrieval restricted to a named activity, with a larger result set."""
        if not activity or not activity.strip():
            raise ValueError("activity must be a non-empty string")
        return await self._run(
            text, user_id, ByActivity(activity.strip().lower()),
            top_k=top_k, date_range=date_range, count_label=count_label, timeout=timeout,
        )

    # === Pipeline ===

    def _default_top_k(self, scope: RetrievalScope) -> int:
        if isinstance(scope, ByActivity):
            return self.activity_top_k
        return self.top_k

    async def _run(
        self,
        text: str,
        user_id: str,
        scope: RetrievalScope,
        history: Optional[List[Message]] = None,
        top_k: int = None,
        date_range: Optional[TemporalIntent] = None,
        count_label: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RAGResponse:
        if not text or not text.strip():
            raise ValueError("Query text must be a non-empty string")
        validate_user_id(user_id)

        k = top_k or self._default_top_k(scope)
        deadline = asyncio.get_running_loop().time() + timeout if timeout is not None else None
        timings: Dict[str, float] = {}
        started = time.perf_counter()

        self.metrics.record_query(scope.label)
        logger.info(f"🔎 Query from user {user_id} [{scope.label}, top_k={k}]: {text[:80]!r}")

        # 1. Embed the raw question
        stage_start = time.perf_counter()
        with self.tracer.trace_run("embedding", run_type="embedding", inputs={"text": text}):
            vector = await self._stage("embedding", self.embedder.embed(text), EmbeddingFailure, deadline)
            if vector is None or len(vector) == 0:
                self._record_failure("embedding")
                raise EmbeddingFailure("Embedding client returned an empty vector")
        timings["embedding_ms"] = _elapsed_ms(stage_start)
        logger.info(f"✅ Embedding generated in {timings['embedding_ms']}ms (dimension: {len(vector)})")

        # 2. Retrieve matches scoped to this user
        stage_start = time.perf_counter()
        with self.tracer.trace_run(
            "retrieval", run_type="retriever",
            inputs={"user_id": user_id, "scope": scope.label, "top_k": k},
        ) as run:
            matches = await self._stage(
                "retrieval",
                self.index.retrieve(vector, user_id, k, scope, date_range),
                RetrievalFailure,
                deadline,
            )
            run.set_output({"matches": len(matches)})
        timings["retrieval_ms"] = _elapsed_ms(stage_start)
        if not matches:
            self.metrics.increment("empty_retrievals")
            logger.info("ℹ️ No matches retrieved; answering with the no-data context")
        else:
            logger.info(f"✅ Retrieved {len(matches)} matches in {timings['retrieval_ms']}ms")

        # 3. Build the bounded context
        with self.tracer.trace_run("context_building", inputs={"matches": len(matches)}):
            built = self.context_builder.build(matches, count_label=count_label)
        if built.truncated:
            self.metrics.increment("truncated_contexts")

        # 4. Generate with history (if any) plus the new user turn
        messages = list(history or [])
        messages.append(Message(role="user", content=text))

        stage_start = time.perf_counter()
        with self.tracer.trace_run("completion", run_type="llm", inputs={"turns": len(messages)}):
            response = await self._stage(
                "completion", self.llm.complete(messages, built.text), CompletionFailure, deadline,
            )
        timings["completion_ms"] = _elapsed_ms(stage_start)
        timings["total_ms"] = _elapsed_ms(started)
        logger.info(
            f"✅ Completion in {timings['completion_ms']}ms; "
            f"query done in {timings['total_ms']}ms with {len(built.matches)} references"
        )

        # 5. Provenance in the order the model saw the matches
        return RAGResponse(response=response, context_used=built.references(), timings=timings)

    def _stage_timeout(self, stage: str, deadline: Optional[float]) -> Optional[float]:
        limit = self.stage_timeouts.get(stage)
        if deadline is not None:
            remaining = deadline - asyncio.get_running_loop().time()
            limit = remaining if limit is None else min(limit, remaining)
        return limit

    async def _stage(
        self,
        stage: str,
        call: Awaitable[T],
        failure: Type[RAGError],
        deadline: Optional[float],
    ) -> T:
        """Await one external call, mapping errors and timeouts to the stage's failure."""
        limit = self._stage_timeout(stage, deadline)
        try:
            if limit is None:
                return await call
            if limit <= 0:
                if hasattr(call, "close"):
                    call.close()
                raise asyncio.TimeoutError()
            return await asyncio.wait_for(call, timeout=limit)
        except RAGError as e:
            self._record_failure(stage)
            logger.error(f"❌ {stage} failed: {e.message}")
            raise
        except asyncio.TimeoutError as e:
            self._record_failure(stage)
            logger.error(f"❌ {stage} timed out after {limit:.1f}s")
            raise failure(f"{stage} timed out after {limit:.1f}s", cause=e) from e
        except Exception as e:
            self._record_failure(stage)
            logger.error(f"❌ {stage} failed: {e}")
            raise failure(f"{stage} failed: {e}", cause=e) from e

    def _record_failure(self, stage: str):
        self.metrics.increment(f"{stage}_failures")

"""
LangSmith tracing integration and in-process query metrics.
"""

import logging
import os
import threading
from typing import Any, Dict, Optional

from lifelog_rag.config import settings

logger = logging.getLogger(__name__)


class LangSmithTracer:
    """LangSmith tracing wrapper. Every method is a no-op when disabled."""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = False
        self._client = None
        if enabled is None:
            enabled = bool(settings.LANGSMITH_API_KEY and settings.LANGCHAIN_TRACING_V2)
        if enabled:
            self._initialize()
        else:
            logger.info("ℹ️ LangSmith tracing not configured")

    def _initialize(self):
        os.environ["LANGCHAIN_TRACING_V2"] = "true"
        os.environ["LANGCHAIN_API_KEY"] = settings.LANGSMITH_API_KEY or ""
        os.environ["LANGCHAIN_PROJECT"] = settings.LANGCHAIN_PROJECT
        os.environ["LANGCHAIN_ENDPOINT"] = settings.LANGCHAIN_ENDPOINT

        try:
            from langsmith import Client
            self._client = Client()
            self.enabled = True
            logger.info(f"✅ LangSmith tracing enabled: {settings.LANGCHAIN_PROJECT}")
        except ImportError:
            logger.warning("⚠️ langsmith package not installed. Tracing disabled.")
        except Exception as e:
            logger.warning(f"⚠️ LangSmith initialization failed: {e}")

    def trace_run(
        self,
        name: str,
        run_type: str = "chain",
        inputs: Dict[str, Any] = None,
        metadata: Dict[str, Any] = None,
    ):
        """
        Context manager for tracing a run.

        Usage:
            with tracer.trace_run("retrieval", inputs={"top_k": 10}) as run:
                ...
                run.set_output({"matches": 3})
        """
        if not self.enabled:
            return _NoOpRun()
        return _TracingRun(self._client, name, run_type, inputs or {}, metadata or {})


class _NoOpRun:
    """No-op run when tracing is disabled."""

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def set_output(self, output):
        pass


class _TracingRun:
    """Posts a LangSmith run on enter and closes it on exit."""

    def __init__(self, client, name, run_type, inputs, metadata):
        self.client = client
        self.name = name
        self.run_type = run_type
        self.inputs = inputs
        self.metadata = metadata
        self.run = None
        self._outputs: Dict[str, Any] = {}

    def __enter__(self):
        try:
            from langsmith.run_trees import RunTree
            self.run = RunTree(
                name=self.name,
                run_type=self.run_type,
                inputs=self.inputs,
                extra={"metadata": self.metadata},
                project_name=settings.LANGCHAIN_PROJECT,
                client=self.client,
            )
            self.run.post()
        except Exception as e:
            logger.warning(f"⚠️ Failed to create trace run: {e}")
            self.run = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.run:
            try:
                self.run.end(outputs=self._outputs, error=str(exc_val) if exc_type else None)
                self.run.patch()
            except Exception as e:
                logger.warning(f"⚠️ Failed to close trace run {self.name}: {e}")
        return False

    def set_output(self, output):
        self._outputs = output if isinstance(output, dict) else {"output": output}


class MetricsCollector:
    """Counts queries, empty retrievals and failures per stage."""

    COUNTERS = (
        "queries_total",
        "empty_retrievals",
        "truncated_contexts",
        "embedding_failures",
        "retrieval_failures",
        "completion_failures",
    )

    def __init__(self):
        self._lock = threading.Lock()
        self.metrics: Dict[str, int] = {name: 0 for name in self.COUNTERS}
        self.queries_by_scope: Dict[str, int] = {}

    def increment(self, metric: str, value: int = 1):
        """Increment a counter metric."""
        with self._lock:
            if metric in self.metrics:
                self.metrics[metric] += value

    def record_query(self, scope_label: str):
        with self._lock:
            self.metrics["queries_total"] += 1
            self.queries_by_scope[scope_label] = self.queries_by_scope.get(scope_label, 0) + 1

    def get_metrics(self) -> Dict[str, Any]:
        """Get all metrics."""
        with self._lock:
            return {**self.metrics, "queries_by_scope": dict(self.queries_by_scope)}


# Singleton instances
_tracer: Optional[LangSmithTracer] = None
_metrics: Optional[MetricsCollector] = None


def get_tracer() -> LangSmithTracer:
    """Get singleton tracer."""
    global _tracer
    if _tracer is None:
        _tracer = LangSmithTracer()
    return _tracer


def get_metrics() -> MetricsCollector:
    """Get singleton metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics

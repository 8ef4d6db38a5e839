"""Shared test fixtures."""

import pytest

from lifelog_rag.monitoring import LangSmithTracer, MetricsCollector
from lifelog_rag.rag.context import ContextBuilder
from lifelog_rag.rag.engine import RAGQueryEngine
from tests.fakes import FakeEmbedder, FakeIndex, FakeLLM


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def index() -> FakeIndex:
    return FakeIndex()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def engine(embedder, index, llm, metrics) -> RAGQueryEngine:
    """Engine wired to fakes, with tracing off and default stage timeouts."""
    return RAGQueryEngine(
        embedder=embedder,
        index=index,
        llm=llm,
        context_builder=ContextBuilder(max_length=8000),
        top_k=10,
        activity_top_k=20,
        tracer=LangSmithTracer(enabled=False),
        metrics=metrics,
    )

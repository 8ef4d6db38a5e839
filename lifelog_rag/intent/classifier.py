"""
Query routing using keyword and pattern matching.
Deterministic, no LLM dependency.
"""

import re
from datetime import datetime
from typing import List, Optional, Pattern, Tuple

from lifelog_rag.intent.constants import (
    ACTIVITY_VOCABULARY,
    AVERAGE_PATTERNS,
    COMPARISON_PATTERNS,
    COUNT_PATTERNS,
    DATA_TYPE_CUES,
)
from lifelog_rag.intent.temporal import parse_temporal_intent
from lifelog_rag.models import DataType, QueryAnalysis


def _compile(patterns: List[str]) -> List[Pattern]:
    return [re.compile(p) for p in patterns]


class QueryRouter:
    """Rule-based classifier suggesting a retrieval scope for a question."""

    def __init__(self, activities: Optional[List[str]] = None):
        self._count = _compile(COUNT_PATTERNS)
        self._average = _compile(AVERAGE_PATTERNS)
        self._comparison = _compile(COMPARISON_PATTERNS)
        self._data_types: List[Tuple[DataType, List[Pattern]]] = [
            (data_type, _compile(cues)) for data_type, cues in DATA_TYPE_CUES
        ]
        vocabulary = activities if activities is not None else ACTIVITY_VOCABULARY
        self._activity = re.compile(
            r"\b(" + "|".join(re.escape(a.lower()) for a in vocabulary) + r")"
        ) if vocabulary else None

    def analyze(self, text: str, now: Optional[datetime] = None) -> QueryAnalysis:
        """
        Classify a question.

        Args:
            text: Raw question text
            now: Reference time for relative dates. Without it the current
                time is read, so only calls given the same ``now`` are
                guaranteed to agree.

        Returns:
            QueryAnalysis with independent count/average/comparison flags,
            at most one suggested data type and at most one activity
        """
        lowered = text.lower().strip()

        return QueryAnalysis(
            suggested_data_type=self._suggest_data_type(lowered),
            suggested_activity=self._suggest_activity(lowered),
            is_count_query=self._any(self._count, lowered),
            is_average_query=self._any(self._average, lowered),
            is_comparison_query=self._any(self._comparison, lowered),
            temporal=parse_temporal_intent(lowered, now=now),
        )

    @staticmethod
    def _any(patterns: List[Pattern], text: str) -> bool:
        return any(p.search(text) for p in patterns)

    def _suggest_data_type(self, text: str) -> Optional[DataType]:
        for data_type, cues in self._data_types:
            if self._any(cues, text):
                return data_type
        return None

    def _suggest_activity(self, text: str) -> Optional[str]:
        if self._activity is None:
            return None
        # Earliest mention wins; plurals and other suffixed forms ("restaurants", "gyms") match
        match = self._activity.search(text)
        return match.group(1) if match else None


_router: QueryRouter = None


def get_query_router() -> QueryRouter:
    """Get the shared router built from the static vocabulary."""
    global _router
    if _router is None:
        _router = QueryRouter()
    return _router


def analyze_query(text: str, now: Optional[datetime] = None) -> QueryAnalysis:
    """Convenience function to classify a question."""
    return get_query_router().analyze(text, now=now)

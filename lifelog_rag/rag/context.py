"""
Context builder: ranks retrieved matches and serializes them into one
bounded text block for the completion request.

Ranking is a stable sort on score alone. Truncation is applied once to the
fully assembled block, so higher-ranked entries are always complete before
lower-ranked ones get cut.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from lifelog_rag.config import settings
from lifelog_rag.models import ContextReference, RetrievedMatch

logger = logging.getLogger(__name__)


# Sent in place of the context block when retrieval returns nothing
NO_DATA_CONTEXT = (
    "No relevant data found in the user's personal history. "
    "Let the user know you need more data to answer their question."
)

TRUNCATION_MARKER = "..."
VISUAL_MARKER = "📸 Photo: "
DATE_FIELDS = ("date", "createdAt", "timestamp")


@dataclass
class BuiltContext:
    """Assembled context text and the matches in the order the model sees them."""
    text: str
    matches: List[RetrievedMatch]
    truncated: bool = False

    def references(self) -> List[ContextReference]:
        return [ContextReference.from_match(m) for m in self.matches]


def rank_matches(matches: List[RetrievedMatch]) -> List[RetrievedMatch]:
    """Order by score, highest first. Ties keep arrival order."""
    return sorted(matches, key=lambda m: m.score, reverse=True)


def parse_record_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch seconds/milliseconds into a datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def record_date(metadata: dict) -> Optional[datetime]:
    """First parseable date among the known metadata date fields."""
    for key in DATE_FIELDS:
        parsed = parse_record_date(metadata.get(key))
        if parsed is not None:
            return parsed
    return None


class ContextBuilder:
    """Builds the grounding block injected into completion requests."""

    def __init__(self, max_length: int = None):
        self.max_length = max_length if max_length is not None else settings.RAG_CONTEXT_MAX_LENGTH
        if self.max_length <= len(TRUNCATION_MARKER):
            raise ValueError(f"Context budget must exceed {len(TRUNCATION_MARKER)} characters")

    def build(self, matches: List[RetrievedMatch], count_label: Optional[str] = None) -> BuiltContext:
        """
        Build the context block for a list of matches.

        Args:
            matches: Retrieved matches in arrival order (possibly empty)
            count_label: When set, prepend an explicit counting instruction
                naming this label (e.g. "photo" or "items")

        Returns:
            BuiltContext whose matches are ranked exactly as rendered
        """
        if not matches:
            return BuiltContext(text=NO_DATA_CONTEXT, matches=[])

        ranked = rank_matches(matches)
        lines = [self._render_line(i, m) for i, m in enumerate(ranked, start=1)]

        text = (
            f"Relevant information from the user's personal data ({len(ranked)} items):\n\n"
            + "\n\n".join(lines)
        )
        if count_label:
            text = (
                f"IMPORTANT: This is a COUNTING query. Count the exact number of {count_label} "
                f"in the context below and provide the specific count in your answer.\n\n"
                f"Total {count_label} found: {len(ranked)}\n\n{text}"
            )

        text, truncated = self._truncate(text)
        if truncated:
            logger.info(f"✂️ Context truncated to {self.max_length} chars ({len(ranked)} matches)")

        return BuiltContext(text=text, matches=ranked, truncated=truncated)

    def _render_line(self, position: int, match: RetrievedMatch) -> str:
        relevance = f"{match.score * 100:.1f}"
        date = record_date(match.metadata)
        date_prefix = f"[{date:%b} {date.day}, {date.year}] " if date else ""
        marker = VISUAL_MARKER if match.is_visual else ""
        return f"[{position}] ({relevance}% relevant) {date_prefix}{marker}{match.text}"

    def _truncate(self, text: str):
        if len(text) <= self.max_length:
            return text, False
        cut = self.max_length - len(TRUNCATION_MARKER)
        return text[:cut] + TRUNCATION_MARKER, True


def build_context(matches: List[RetrievedMatch], max_length: int = None) -> str:
    """Convenience function returning only the context text."""
    return ContextBuilder(max_length).build(matches).text

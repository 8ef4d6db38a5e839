"""
Request-scoped data types shared by the router, context builder and engine.
None of these are persisted.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class DataType(str, Enum):
    """Source categories of indexed personal data."""

    HEALTH = "health"
    LOCATION = "location"
    VOICE = "voice"
    PHOTO = "photo"
    TEXT = "text"


# Rendered as "described" content rather than quoted personal text
VISUAL_DATA_TYPES = {DataType.PHOTO.value}

# User ids name per-user index directories on disk
USER_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")


def validate_user_id(user_id: str) -> str:
    if not isinstance(user_id, str) or not USER_ID_RE.match(user_id):
        raise ValueError(f"Invalid user id: {user_id!r}")
    return user_id


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Message:
    """One conversation turn, oldest first in a history list."""
    role: str  # "user" | "assistant"
    content: str
    timestamp: str = field(default_factory=_utc_now_iso)

    def __post_init__(self):
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Invalid message role: {self.role!r}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass
class RetrievedMatch:
    """A scored hit from the vector index. Arrival order carries no meaning."""
    id: str
    score: float
    source_type: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_visual(self) -> bool:
        return self.source_type in VISUAL_DATA_TYPES


@dataclass
class ContextReference:
    """Provenance record for one match the model saw."""
    id: str
    score: float
    type: str
    snippet: str

    @classmethod
    def from_match(cls, match: RetrievedMatch) -> "ContextReference":
        return cls(id=match.id, score=match.score, type=match.source_type, snippet=match.text)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "score": self.score, "type": self.type, "snippet": self.snippet}


@dataclass(frozen=True)
class TemporalIntent:
    """An absolute date range resolved from a relative time reference."""
    time_reference: str
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass
class QueryAnalysis:
    """Routing hints derived from the raw question text."""
    suggested_data_type: Optional[DataType] = None
    suggested_activity: Optional[str] = None
    is_count_query: bool = False
    is_average_query: bool = False
    is_comparison_query: bool = False
    temporal: Optional[TemporalIntent] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suggestedDataType": self.suggested_data_type.value if self.suggested_data_type else None,
            "suggestedActivity": self.suggested_activity,
            "isCountQuery": self.is_count_query,
            "isAverageQuery": self.is_average_query,
            "isComparisonQuery": self.is_comparison_query,
            "timeReference": self.temporal.time_reference if self.temporal else None,
        }


# === Retrieval scopes ===

@dataclass(frozen=True)
class RetrievalScope:
    """Base of the retrieval filter variants."""

    @property
    def label(self) -> str:
        return "unscoped"


@dataclass(frozen=True)
class Unscoped(RetrievalScope):
    pass


@dataclass(frozen=True)
class ByDataType(RetrievalScope):
    data_type: DataType

    @property
    def label(self) -> str:
        return f"data_type:{self.data_type.value}"


@dataclass(frozen=True)
class ByActivity(RetrievalScope):
    activity: str

    @property
    def label(self) -> str:
        return f"activity:{self.activity}"


@dataclass
class RAGResponse:
    """Generated answer plus the provenance of its grounding."""
    response: str
    context_used: List[ContextReference]
    timings: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "contextUsed": [ref.to_dict() for ref in self.context_used],
            "timings": self.timings,
        }

"""
FAISS-based vector index with per-user persistence.

Each user owns a separate index on disk, so a query can only ever be
answered from the caller's own vectors.
"""

import asyncio
import logging
import pickle
import threading
from typing import Any, Dict, List, Optional, Protocol, Sequence

import faiss
import numpy as np

from lifelog_rag.config import settings
from lifelog_rag.errors import RetrievalFailure
from lifelog_rag.models import (
    ByActivity,
    ByDataType,
    RetrievalScope,
    RetrievedMatch,
    TemporalIntent,
    validate_user_id,
)
from lifelog_rag.rag.context import record_date

logger = logging.getLogger(__name__)


class VectorIndex(Protocol):
    """Nearest-neighbour search over one user's stored vectors."""

    async def retrieve(
        self,
        vector: List[float],
        user_id: str,
        top_k: int,
        scope: RetrievalScope,
        date_range: Optional[TemporalIntent] = None,
    ) -> List[RetrievedMatch]: ...


def matches_scope(record: Dict[str, Any], scope: RetrievalScope) -> bool:
    """Check a stored record against a retrieval scope."""
    if isinstance(scope, ByDataType):
        return record.get("type") == scope.data_type.value
    if isinstance(scope, ByActivity):
        activity = scope.activity.lower()
        if str(record.get("activity") or "").lower() == activity:
            return True
        return activity in str(record.get("text") or "").lower()
    return True


def matches_date_range(record: Dict[str, Any], date_range: Optional[TemporalIntent]) -> bool:
    if date_range is None:
        return True
    moment = record_date(record)
    if moment is None:
        return False
    if moment.tzinfo is None and date_range.start.tzinfo is not None:
        moment = moment.replace(tzinfo=date_range.start.tzinfo)
    elif moment.tzinfo is not None and date_range.start.tzinfo is None:
        moment = moment.replace(tzinfo=None)
    return date_range.contains(moment)


def _source_key(record: Dict[str, Any]) -> str:
    return str(record.get("source_id", record.get("id")))


class UserVectorStore:
    """Per-user FAISS inner-product index plus record metadata."""

    def __init__(self, user_id: str, base_dir=None, dimension: int = None):
        self.user_id = validate_user_id(user_id)
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.store_dir = (base_dir or settings.VECTORSTORE_DIR) / user_id
        self.index_path = self.store_dir / "faiss.index"
        self.records_path = self.store_dir / "records.pkl"

        self.index: Optional[faiss.Index] = None
        self.records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

        self._load_or_create()

    def _load_or_create(self):
        if self.index_path.exists() and self.records_path.exists():
            self._load()
        else:
            self._create_empty()

    def _create_empty(self):
        self.index = faiss.IndexFlatIP(self.dimension)
        self.records = []

    def _load(self):
        try:
            self.index = faiss.read_index(str(self.index_path))
            with open(self.records_path, "rb") as f:
                self.records = pickle.load(f)
            logger.info(f"✅ Loaded vector store for user: {self.user_id} ({len(self.records)} records)")
        except Exception as e:
            logger.warning(f"⚠️ Failed to load vector store for {self.user_id}: {e}")
            self._create_empty()

    def _save(self):
        self.store_dir.mkdir(parents=True, exist_ok=True)
        faiss.write_index(self.index, str(self.index_path))
        with open(self.records_path, "wb") as f:
            pickle.dump(self.records, f)
        logger.info(f"💾 Saved vector store for user: {self.user_id}")

    def add(self, records: Sequence[Dict[str, Any]], embeddings: np.ndarray):
        """
        Upsert records with their embeddings and persist.

        Entries already stored for the same source record (every chunk of
        it) are replaced, so re-ingesting a record never duplicates it.
        """
        if not records:
            return
        vectors = np.asarray(embeddings, dtype="float32").reshape(len(records), -1)
        if vectors.shape[1] != self.dimension:
            raise ValueError(f"Embedding dimension {vectors.shape[1]} != index dimension {self.dimension}")

        incoming = {_source_key(r) for r in records}
        with self._lock:
            keep = [i for i, r in enumerate(self.records) if _source_key(r) not in incoming]
            if len(keep) < len(self.records):
                self._rebuild(keep)
            self.index.add(vectors)
            self.records.extend(dict(r) for r in records)
            self._save()

    def _rebuild(self, keep: List[int]):
        # IndexFlatIP has no id removal; rebuild from the surviving vectors
        stored = self.index.reconstruct_n(0, self.index.ntotal)
        replaced = len(self.records) - len(keep)
        self.index = faiss.IndexFlatIP(self.dimension)
        if keep:
            self.index.add(np.ascontiguousarray(stored[keep], dtype="float32"))
        self.records = [self.records[i] for i in keep]
        logger.info(f"♻️ Replaced {replaced} stored entries for user: {self.user_id}")

    def search(
        self,
        vector: List[float],
        top_k: int,
        scope: RetrievalScope,
        date_range: Optional[TemporalIntent] = None,
    ) -> List[RetrievedMatch]:
        """
        Search this user's records.

        Filters are applied over the whole index before the top-K cut so a
        scoped query is not starved by unrelated nearer neighbours.
        """
        if self.index.ntotal == 0 or top_k <= 0:
            return []

        query = np.asarray(vector, dtype="float32").reshape(1, -1)
        if query.shape[1] != self.index.d:
            raise ValueError(f"Query dimension {query.shape[1]} != index dimension {self.index.d}")

        filtered = isinstance(scope, (ByDataType, ByActivity)) or date_range is not None
        k = self.index.ntotal if filtered else min(top_k, self.index.ntotal)

        with self._lock:
            scores, indices = self.index.search(query, k)

        results = []
        for score, idx in zip(scores[0], indices[0]):
            if idx < 0:
                continue
            record = self.records[idx]
            if not matches_scope(record, scope) or not matches_date_range(record, date_range):
                continue
            results.append(RetrievedMatch(
                id=str(record.get("id", idx)),
                score=min(max(float(score), 0.0), 1.0),
                source_type=str(record.get("type", "text")),
                text=str(record.get("text", "")),
                metadata=record,
            ))
            if len(results) >= top_k:
                break

        return results

    def clear(self):
        with self._lock:
            self._create_empty()
            self._save()

    @property
    def record_count(self) -> int:
        return len(self.records)


class FaissVectorIndex:
    """VectorIndex over a directory of per-user FAISS stores."""

    def __init__(self, base_dir=None, dimension: int = None):
        self.base_dir = base_dir or settings.VECTORSTORE_DIR
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self._stores: Dict[str, UserVectorStore] = {}
        self._lock = threading.Lock()

    def get_store(self, user_id: str) -> UserVectorStore:
        """Get or open the vector store for a user."""
        if user_id not in self._stores:
            with self._lock:
                if user_id not in self._stores:
                    self._stores[user_id] = UserVectorStore(user_id, self.base_dir, self.dimension)
        return self._stores[user_id]

    async def retrieve(
        self,
        vector: List[float],
        user_id: str,
        top_k: int,
        scope: RetrievalScope,
        date_range: Optional[TemporalIntent] = None,
    ) -> List[RetrievedMatch]:
        validate_user_id(user_id)
        try:
            store = self.get_store(user_id)
            return await asyncio.to_thread(store.search, vector, top_k, scope, date_range)
        except Exception as e:
            raise RetrievalFailure(f"Vector search failed for user {user_id}: {e}", cause=e) from e

    def add_records(self, user_id: str, records: Sequence[Dict[str, Any]], embeddings) -> int:
        store = self.get_store(user_id)
        store.add(records, embeddings)
        return store.record_count

    def clear(self, user_id: str):
        self.get_store(user_id).clear()

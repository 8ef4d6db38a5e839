"""
Local embedding client.
The sentence-transformers model is loaded once per process and reused.
"""

import asyncio
import logging
import threading
from typing import Dict, List, Protocol, Union

import numpy as np
from sentence_transformers import SentenceTransformer

from lifelog_rag.config import settings
from lifelog_rag.errors import EmbeddingFailure

logger = logging.getLogger(__name__)


class EmbeddingClient(Protocol):
    """Maps a text string to a fixed-length vector."""

    async def embed(self, text: str) -> List[float]: ...


class EmbeddingModel:
    """Thread-safe lazy loader around a SentenceTransformer, one per model name."""

    _instances: Dict[str, "EmbeddingModel"] = {}
    _lock = threading.Lock()

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._model: SentenceTransformer = None
        self._load_lock = threading.Lock()

    @classmethod
    def get(cls, model_name: str = None) -> "EmbeddingModel":
        name = model_name or settings.EMBEDDING_MODEL_NAME
        if name not in cls._instances:
            with cls._lock:
                if name not in cls._instances:
                    cls._instances[name] = cls(name)
        return cls._instances[name]

    def _ensure_loaded(self) -> SentenceTransformer:
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    logger.info(f"📦 Loading embedding model: {self.model_name}")
                    self._model = SentenceTransformer(self.model_name)
                    logger.info("✅ Embedding model loaded successfully")
        return self._model

    def encode(self, text: Union[str, List[str]], normalize: bool = True) -> np.ndarray:
        """
        Generate embeddings for text(s).

        Returns:
            numpy array of shape (n, dim) for list input, or (dim,) for a single string
        """
        model = self._ensure_loaded()
        kwargs = {"normalize_embeddings": normalize, "show_progress_bar": False}
        if not isinstance(text, str):
            kwargs["batch_size"] = 32
        return model.encode(text, **kwargs).astype("float32")


class SentenceTransformerEmbedder:
    """EmbeddingClient backed by a local sentence-transformers model."""

    def __init__(self, model: EmbeddingModel = None):
        self.model = model or EmbeddingModel.get()

    async def embed(self, text: str) -> List[float]:
        try:
            vector = await asyncio.to_thread(self.model.encode, text)
        except Exception as e:
            raise EmbeddingFailure(f"Embedding model {self.model.model_name} failed: {e}", cause=e) from e

        if vector.size == 0:
            raise EmbeddingFailure(f"Embedding model {self.model.model_name} returned an empty vector")
        return vector.tolist()

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Embed many texts in one batch (used by ingestion)."""
        if not texts:
            return []
        try:
            vectors = await asyncio.to_thread(self.model.encode, texts)
        except Exception as e:
            raise EmbeddingFailure(f"Embedding model {self.model.model_name} failed: {e}", cause=e) from e
        return vectors.tolist()

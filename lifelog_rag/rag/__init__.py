"""
RAG module for personal-data retrieval and grounded answering.
"""

from lifelog_rag.rag.context import BuiltContext, ContextBuilder, NO_DATA_CONTEXT, TRUNCATION_MARKER, build_context
from lifelog_rag.rag.embeddings import EmbeddingClient, EmbeddingModel, SentenceTransformerEmbedder
from lifelog_rag.rag.vectorstore import FaissVectorIndex, UserVectorStore, VectorIndex
from lifelog_rag.rag.engine import RAGQueryEngine
from lifelog_rag.rag.ingest import RecordIngester, ingest_records

__all__ = [
    "BuiltContext",
    "ContextBuilder",
    "NO_DATA_CONTEXT",
    "TRUNCATION_MARKER",
    "build_context",
    "EmbeddingClient",
    "EmbeddingModel",
    "SentenceTransformerEmbedder",
    "FaissVectorIndex",
    "UserVectorStore",
    "VectorIndex",
    "RAGQueryEngine",
    "RecordIngester",
    "ingest_records",
]

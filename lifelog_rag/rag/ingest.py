"""
Personal data ingestion.
Splits long records (diary entries, voice transcripts) into chunks, embeds
them and appends them to the owner's vector store.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from langchain_text_splitters import RecursiveCharacterTextSplitter

from lifelog_rag.config import settings
from lifelog_rag.models import DataType
from lifelog_rag.rag.embeddings import SentenceTransformerEmbedder
from lifelog_rag.rag.vectorstore import FaissVectorIndex

logger = logging.getLogger(__name__)

# Metadata carried from a source record onto each of its chunks
PASSTHROUGH_FIELDS = ("activity", "date", "createdAt", "timestamp", "place", "title")


class RecordIngester:
    """Indexes personal data records for one vector index."""

    def __init__(
        self,
        embedder: SentenceTransformerEmbedder,
        index: FaissVectorIndex,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        self.embedder = embedder
        self.index = index
        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size or settings.CHUNK_SIZE,
            chunk_overlap=chunk_overlap if chunk_overlap is not None else settings.CHUNK_OVERLAP,
            length_function=len,
            separators=["\n\n", "\n", ". ", " ", ""],
        )

    def _chunk_record(self, record: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Split one record into index entries."""
        text = (record.get("text") or "").strip()
        source_id = str(record.get("id") or "").strip()
        if not text or not source_id:
            raise ValueError("Each record needs a non-empty 'id' and 'text'")

        data_type = DataType(record.get("type", DataType.TEXT.value)).value
        pieces = self.text_splitter.split_text(text) or [text]

        entries = []
        for i, piece in enumerate(pieces):
            entry = {
                "id": source_id if len(pieces) == 1 else f"{source_id}#{i}",
                "source_id": source_id,
                "chunk_index": i,
                "type": data_type,
                "text": piece,
                "ingested_at": datetime.now(timezone.utc).isoformat(),
            }
            for key in PASSTHROUGH_FIELDS:
                if record.get(key) is not None:
                    entry[key] = record[key]
            entries.append(entry)
        return entries

    async def ingest(self, user_id: str, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Ingest records for a user.

        Args:
            user_id: Owner of the records
            records: Dicts with at least ``id``, ``text`` and optionally
                ``type``, ``activity`` and a date field

        Returns:
            Summary with processed record ids, errors and chunk counts
        """
        results: Dict[str, Any] = {
            "user_id": user_id,
            "processed": [],
            "errors": [],
            "total_chunks": 0,
            "record_count": 0,
        }

        entries: List[Dict[str, Any]] = []
        for record in records:
            try:
                chunks = self._chunk_record(record)
            except ValueError as e:
                results["errors"].append({"id": str(record.get("id", "")), "error": str(e)})
                continue
            entries.extend(chunks)
            results["processed"].append(chunks[0]["source_id"])

        if entries:
            embeddings = await self.embedder.embed_documents([e["text"] for e in entries])
            results["record_count"] = self.index.add_records(user_id, entries, embeddings)
            results["total_chunks"] = len(entries)
            logger.info(f"📄 Indexed {len(entries)} chunks for user {user_id}")

        return results


async def ingest_records(user_id: str, records: List[Dict[str, Any]], index: Optional[FaissVectorIndex] = None) -> Dict[str, Any]:
    """Convenience function using the default embedder and index."""
    ingester = RecordIngester(SentenceTransformerEmbedder(), index or FaissVectorIndex())
    return await ingester.ingest(user_id, records)

"""Tests for record ingestion."""

import pytest

from lifelog_rag.models import ByActivity, Unscoped
from lifelog_rag.rag.ingest import RecordIngester
from lifelog_rag.rag.vectorstore import FaissVectorIndex
from tests.fakes import FakeEmbedder


@pytest.fixture
def vector_index(tmp_path) -> FaissVectorIndex:
    return FaissVectorIndex(base_dir=tmp_path, dimension=3)


@pytest.fixture
def ingester(vector_index: FaissVectorIndex) -> RecordIngester:
    return RecordIngester(FakeEmbedder(vector=[1.0, 0.0, 0.0]), vector_index, chunk_size=60, chunk_overlap=0)


async def test_short_records_are_indexed_whole(ingester: RecordIngester, vector_index: FaissVectorIndex) -> None:
    result = await ingester.ingest("alice", [
        {"id": "r1", "text": "Played badminton with Sam", "type": "text", "activity": "badminton",
         "date": "2026-10-11T10:00:00Z"},
        {"id": "r2", "text": "Slept 7 hours", "type": "health"},
    ])

    assert result["processed"] == ["r1", "r2"]
    assert result["errors"] == []
    assert result["total_chunks"] == 2
    assert result["record_count"] == 2

    matches = await vector_index.retrieve([1.0, 0.0, 0.0], "alice", 10, ByActivity("badminton"))
    assert [m.id for m in matches] == ["r1"]
    assert matches[0].metadata["date"] == "2026-10-11T10:00:00Z"
    assert matches[0].metadata["source_id"] == "r1"


async def test_long_records_are_chunked(ingester: RecordIngester, vector_index: FaissVectorIndex) -> None:
    diary = ". ".join(f"Sentence number {i} about my day" for i in range(8))

    result = await ingester.ingest("alice", [{"id": "diary", "text": diary, "activity": "work"}])

    assert result["total_chunks"] > 1
    matches = await vector_index.retrieve([1.0, 0.0, 0.0], "alice", 50, Unscoped())
    assert sorted(m.id for m in matches) == sorted(f"diary#{i}" for i in range(result["total_chunks"]))
    assert all(m.metadata["activity"] == "work" for m in matches)
    assert all(m.metadata["source_id"] == "diary" for m in matches)


async def test_invalid_records_are_reported(ingester: RecordIngester) -> None:
    result = await ingester.ingest("alice", [
        {"id": "ok", "text": "Lunch at the restaurant"},
        {"id": "no-text", "text": "   "},
        {"text": "missing id"},
        {"id": "bad-type", "text": "hello", "type": "dreams"},
    ])

    assert result["processed"] == ["ok"]
    assert [e["id"] for e in result["errors"]] == ["no-text", "", "bad-type"]
    assert result["total_chunks"] == 1


async def test_nothing_valid_leaves_store_untouched(ingester: RecordIngester, vector_index: FaissVectorIndex) -> None:
    result = await ingester.ingest("alice", [{"id": "x", "text": ""}])

    assert result["total_chunks"] == 0
    assert result["record_count"] == 0
    assert vector_index.get_store("alice").record_count == 0


async def test_reingesting_a_record_replaces_it(ingester: RecordIngester, vector_index: FaissVectorIndex) -> None:
    await ingester.ingest("alice", [
        {"id": "r1", "text": "Dinner at the harbour restaurant"},
        {"id": "r2", "text": "Evening yoga"},
    ])
    result = await ingester.ingest("alice", [{"id": "r1", "text": "Dinner at the harbour restaurant, with Sam"}])

    assert result["record_count"] == 2
    matches = await vector_index.retrieve([1.0, 0.0, 0.0], "alice", 10, Unscoped())
    assert sorted(m.id for m in matches) == ["r1", "r2"]
    assert next(m for m in matches if m.id == "r1").text.endswith("with Sam")


async def test_reingesting_shorter_record_drops_old_chunks(ingester: RecordIngester, vector_index: FaissVectorIndex) -> None:
    diary = ". ".join(f"Sentence number {i} about my day" for i in range(8))
    await ingester.ingest("alice", [{"id": "diary", "text": diary}])

    await ingester.ingest("alice", [{"id": "diary", "text": "Quiet day at home"}])

    matches = await vector_index.retrieve([1.0, 0.0, 0.0], "alice", 50, Unscoped())
    assert [m.id for m in matches] == ["diary"]

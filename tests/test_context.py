"""Tests for context assembly: ranking, rendering and truncation."""

import pytest

from lifelog_rag.rag.context import (
    NO_DATA_CONTEXT,
    TRUNCATION_MARKER,
    ContextBuilder,
    build_context,
    rank_matches,
)
from tests.fakes import make_match


@pytest.fixture
def builder() -> ContextBuilder:
    return ContextBuilder(max_length=8000)


# -- empty input ---------------------------------------------------------------


def test_empty_matches_yield_sentinel(builder: ContextBuilder) -> None:
    built = builder.build([])
    assert built.text == NO_DATA_CONTEXT
    assert built.matches == []
    assert built.references() == []


def test_empty_sentinel_is_deterministic(builder: ContextBuilder) -> None:
    assert builder.build([]).text == builder.build([]).text == build_context([])


def test_empty_matches_ignore_count_label(builder: ContextBuilder) -> None:
    assert builder.build([], count_label="photo").text == NO_DATA_CONTEXT


# -- ranking -------------------------------------------------------------------


def test_rendered_order_follows_score_with_photo_marker(builder: ContextBuilder) -> None:
    matches = [
        make_match("b", 0.87, text="Walked 9,000 steps"),
        make_match("p", 0.60, source_type="photo", text="Sunset over the harbour"),
        make_match("a", 0.91, text="Played badminton at the club"),
    ]

    built = builder.build(matches)
    lines = built.text.split("\n\n")

    assert lines[0] == "Relevant information from the user's personal data (3 items):"
    assert lines[1] == "[1] (91.0% relevant) Played badminton at the club"
    assert lines[2] == "[2] (87.0% relevant) Walked 9,000 steps"
    assert lines[3] == "[3] (60.0% relevant) 📸 Photo: Sunset over the harbour"
    assert [m.score for m in built.matches] == [0.91, 0.87, 0.60]


def test_ties_keep_arrival_order() -> None:
    matches = [
        make_match("first", 0.5),
        make_match("top", 0.9),
        make_match("second", 0.5),
        make_match("third", 0.5),
    ]
    ranked = rank_matches(matches)
    assert [m.id for m in ranked] == ["top", "first", "second", "third"]


def test_ranking_does_not_mutate_input() -> None:
    matches = [make_match("low", 0.1), make_match("high", 0.9)]
    rank_matches(matches)
    assert [m.id for m in matches] == ["low", "high"]


def test_references_match_rendered_order(builder: ContextBuilder) -> None:
    matches = [make_match("x", 0.2), make_match("y", 0.8), make_match("z", 0.5, source_type="photo")]

    built = builder.build(matches)
    refs = built.references()

    assert [r.id for r in refs] == ["y", "z", "x"]
    assert refs[1].type == "photo"
    assert refs[1].snippet == "record z"
    assert len(refs) == len(matches)


def test_relevance_percent_has_one_decimal(builder: ContextBuilder) -> None:
    built = builder.build([make_match("a", 0.1234, text="slept 7 hours")])
    assert "[1] (12.3% relevant) slept 7 hours" in built.text


# -- metadata ------------------------------------------------------------------


def test_date_prefix_from_metadata(builder: ContextBuilder) -> None:
    match = make_match("d", 0.75, text="Coffee with Sam", date="2025-03-14T10:00:00Z")
    built = builder.build([match])
    assert "[1] (75.0% relevant) [Mar 14, 2025] Coffee with Sam" in built.text


def test_unparseable_date_is_skipped(builder: ContextBuilder) -> None:
    match = make_match("d", 0.75, text="Coffee", date="not a date")
    assert "[1] (75.0% relevant) Coffee" in builder.build([match]).text


def test_photo_marker_follows_date_prefix(builder: ContextBuilder) -> None:
    match = make_match("p", 0.5, source_type="photo", text="Beach", createdAt="2025-07-01T08:00:00+00:00")
    assert "(50.0% relevant) [Jul 1, 2025] 📸 Photo: Beach" in builder.build([match]).text


def test_count_label_prepends_counting_instruction(builder: ContextBuilder) -> None:
    built = builder.build([make_match("a", 0.9), make_match("b", 0.8)], count_label="photo")
    assert built.text.startswith("IMPORTANT: This is a COUNTING query.")
    assert "Total photo found: 2" in built.text


# -- truncation ----------------------------------------------------------------


def test_long_context_is_truncated_to_budget() -> None:
    builder = ContextBuilder(max_length=200)
    matches = [make_match(str(i), 0.9 - i * 0.01, text="x" * 80) for i in range(10)]

    built = builder.build(matches)

    assert len(built.text) <= 200
    assert built.text.endswith(TRUNCATION_MARKER)
    assert built.truncated is True
    # All matches remain in provenance even when their lines were cut
    assert len(built.matches) == 10


def test_highest_ranked_entry_survives_truncation() -> None:
    builder = ContextBuilder(max_length=150)
    matches = [
        make_match("low", 0.1, text="L" * 100),
        make_match("high", 0.99, text="best match"),
    ]

    built = builder.build(matches)

    assert "[1] (99.0% relevant) best match" in built.text
    assert "L" * 100 not in built.text
    assert len(built.text) <= 150


def test_short_context_is_not_truncated() -> None:
    builder = ContextBuilder(max_length=1000)
    built = builder.build([make_match("a", 0.5, text="short")])
    assert built.truncated is False
    assert not built.text.endswith(TRUNCATION_MARKER)


@pytest.mark.parametrize("budget", [50, 120, 333, 1000])
def test_budget_holds_for_any_size(budget: int) -> None:
    builder = ContextBuilder(max_length=budget)
    matches = [make_match(str(i), (i % 7) / 7, text="entry " * i) for i in range(25)]
    built = builder.build(matches, count_label="items")
    assert len(built.text) <= budget
    if built.truncated:
        assert built.text.endswith(TRUNCATION_MARKER)


def test_budget_must_exceed_marker() -> None:
    with pytest.raises(ValueError):
        ContextBuilder(max_length=len(TRUNCATION_MARKER))

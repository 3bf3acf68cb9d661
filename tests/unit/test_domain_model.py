"""Unit tests for the domain model.

Value objects are validated at construction and immutable afterwards; these
tests pin the business rules they carry.
"""

from datetime import datetime, timezone

from pydantic import ValidationError
import pytest

from palette_search.domain import (
    FieldBoost,
    HistoryEntry,
    HistorySnapshot,
    IndexedRecord,
    QueryHistoryEntry,
    RecordType,
    SearchOptions,
)


pytestmark = pytest.mark.unit


class TestIndexedRecord:
    """Test the IndexedRecord value object."""

    def test_create_derives_normalized_fields(self):
        record = IndexedRecord.create(
            id="modal-docs",
            title="Using a Modal",
            type="docs",
            path="/docs/modal",
            tags=["Overlay"],
            component_name="Modal",
            headings=["Focus Management"],
        )

        assert record.normalized.title == "using a modal"
        assert record.normalized.component_name == "modal"
        assert record.normalized.tags == ("overlay",)
        assert record.normalized.headings == ("focus management",)
        assert record.normalized.description == ""

    def test_display_fields_keep_case(self):
        record = IndexedRecord.create(id="a", title="Button", type=RecordType.STORY, path="/a")
        assert record.title == "Button"
        assert record.is_story is True

    def test_is_immutable(self):
        record = IndexedRecord.create(id="a", title="Button", type="story", path="/a")
        with pytest.raises((AttributeError, TypeError, ValidationError)):
            record.title = "Other"  # type: ignore[misc]

    @pytest.mark.parametrize("field_name", ["id", "title", "path"])
    def test_rejects_empty_mandatory_fields(self, field_name):
        values = {"id": "a", "title": "A", "path": "/a", field_name: ""}
        with pytest.raises(ValidationError):
            IndexedRecord.create(type="story", **values)

    def test_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            IndexedRecord.create(id="a", title="A", type="page", path="/a")

    def test_to_dict_omits_empty_optionals(self):
        record = IndexedRecord.create(id="a", title="A", type="docs", path="/a")
        assert record.to_dict() == {"id": "a", "title": "A", "type": "docs", "path": "/a"}


class TestSearchOptions:
    """Test SearchOptions and FieldBoost."""

    def test_empty_options_include_everything(self):
        options = SearchOptions()
        assert options.includes(RecordType.STORY)
        assert options.includes(RecordType.DOCS)

    def test_only_explicit_false_excludes(self):
        options = SearchOptions(include_stories=False, include_docs=None)
        assert not options.includes(RecordType.STORY)
        assert options.includes(RecordType.DOCS)

    def test_unset_boost_is_neutral(self):
        boost = FieldBoost(title=3)
        assert boost.factor("title") == 3
        assert boost.factor("headings") == 1.0

    def test_negative_boost_clamped_to_zero(self):
        assert FieldBoost(tags=-2).factor("tags") == 0.0

    def test_negative_max_results_clamped(self):
        assert SearchOptions(max_results=-5).max_results == 0

    def test_resolve_max_results(self):
        assert SearchOptions().resolve_max_results(50) == 50
        assert SearchOptions(max_results=20).resolve_max_results(50) == 20

    def test_cache_key_is_stable(self):
        first = SearchOptions(include_docs=True, boost=FieldBoost(title=2, tags=5))
        second = SearchOptions(boost=FieldBoost(tags=5, title=2), include_docs=True)
        assert first.cache_key() == second.cache_key()
        assert first.cache_key() != SearchOptions().cache_key()

    def test_options_are_frozen(self):
        options = SearchOptions()
        with pytest.raises(ValidationError):
            options.max_results = 3  # type: ignore[misc]


class TestHistoryEntry:
    """Test the HistoryEntry entity."""

    def test_register_selection(self):
        entry = HistoryEntry(result_id="a")
        later = datetime(2030, 1, 1, tzinfo=timezone.utc)

        entry.register_selection(later)

        assert entry.selection_count == 2
        assert entry.last_selected_at == later

    def test_count_must_be_positive(self):
        with pytest.raises(ValidationError):
            HistoryEntry(result_id="a", selection_count=0)

    def test_naive_timestamp_becomes_utc(self):
        entry = HistoryEntry(result_id="a", last_selected_at=datetime(2026, 1, 1, 8, 0))
        assert entry.last_selected_at.tzinfo is timezone.utc


class TestQueryHistoryEntry:
    """Test the QueryHistoryEntry entity."""

    def test_query_is_trimmed(self):
        assert QueryHistoryEntry(query="  button ").query == "button"

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query_rejected(self, query):
        with pytest.raises(ValidationError):
            QueryHistoryEntry(query=query)

    def test_negative_result_count_rejected(self):
        with pytest.raises(ValidationError):
            QueryHistoryEntry(query="a", result_count=-1)

    def test_frequency_assignment_is_validated(self):
        entry = QueryHistoryEntry(query="a")
        with pytest.raises(ValidationError):
            entry.frequency = 0


class TestHistorySnapshot:
    """Test the persisted history snapshot."""

    def test_detached_copy_is_independent(self):
        snapshot = HistorySnapshot(
            selections={"a": HistoryEntry(result_id="a")},
            queries=[QueryHistoryEntry(query="alpha")],
        )

        copy = snapshot.detached()
        copy.selections["a"].selection_count = 9
        copy.queries.clear()

        assert snapshot.selections["a"].selection_count == 1
        assert len(snapshot.queries) == 1

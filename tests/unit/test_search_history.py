"""Unit tests for the selection and query history store."""

from datetime import datetime, timezone
import threading
import time

import pytest

from palette_search.adapters.history_storage import AbstractHistoryStorage, InMemoryHistoryStorage
from palette_search.domain.model import HistoryEntry, HistorySnapshot, QueryHistoryEntry
from palette_search.services.search_history import SearchHistoryStore


class FailingStorage(AbstractHistoryStorage):
    """Storage whose load and save always fail."""

    def __init__(self):
        self.save_attempts = 0

    def load(self):
        raise OSError("disk unavailable")

    async def save(self, snapshot):
        self.save_attempts += 1
        raise OSError("disk full")


class GatedStorage(InMemoryHistoryStorage):
    """In-memory storage whose saves block until the test opens the gate."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()
        self.save_started = threading.Event()

    async def save(self, snapshot):
        self.save_started.set()
        self.gate.wait(timeout=5)
        await super().save(snapshot)


@pytest.fixture
def store(history_storage, fake_clock):
    return SearchHistoryStore(history_storage, clock=fake_clock)


@pytest.mark.unit
class TestRecordSelection:
    """Tests for counting selections."""

    def test_first_selection_creates_entry(self, store, fake_clock):
        entry = store.record_selection("button-story")

        assert entry.result_id == "button-story"
        assert entry.selection_count == 1
        assert entry.last_selected_at == fake_clock.now

    def test_repeated_selection_increments(self, store, fake_clock):
        store.record_selection("button-story")
        fake_clock.tick(5)
        entry = store.record_selection("button-story")

        assert entry.selection_count == 2
        assert entry.last_selected_at == fake_clock.now
        assert store.get_frequency_snapshot() == {"button-story": 2}

    def test_counts_are_monotonic(self, store):
        counts = [store.record_selection("modal-docs").selection_count for _ in range(5)]
        assert counts == [1, 2, 3, 4, 5]

    @pytest.mark.parametrize("result_id", ["", "   ", None, 42])
    def test_invalid_ids_are_ignored(self, store, history_storage, result_id):
        assert store.record_selection(result_id) is None
        assert len(store) == 0
        assert store.wait_for_saves(timeout=5)
        assert history_storage.save_count == 0

    def test_returned_entry_is_a_copy(self, store):
        entry = store.record_selection("button-story")
        entry.selection_count = 99

        assert store.get_entry("button-story").selection_count == 1

    def test_snapshot_is_detached(self, store):
        store.record_selection("button-story")
        snapshot = store.get_frequency_snapshot()
        snapshot["button-story"] = 50

        assert store.get_frequency_snapshot() == {"button-story": 1}

    def test_ids_not_in_any_corpus_are_kept(self, store):
        store.record_selection("deleted-story")
        assert "deleted-story" in store


@pytest.mark.unit
class TestRecentSuggestions:
    """Tests for the recency/frequency blend."""

    def test_newer_selection_first_when_counts_equal(self, store, fake_clock):
        store.record_selection("a")
        fake_clock.tick(3600)
        store.record_selection("b")

        assert store.get_recent_suggestions() == ["b", "a"]

    def test_frequent_selection_beats_slightly_newer(self, store, fake_clock):
        for _ in range(5):
            store.record_selection("a")
        fake_clock.tick(3600)
        store.record_selection("b")

        assert store.get_recent_suggestions() == ["a", "b"]

    def test_stale_selections_decay(self, store, fake_clock):
        for _ in range(3):
            store.record_selection("a")
        fake_clock.tick(4 * 168 * 3600)
        store.record_selection("b")

        assert store.get_recent_suggestions() == ["b", "a"]

    def test_limit(self, store):
        for result_id in ("a", "b", "c"):
            store.record_selection(result_id)

        assert len(store.get_recent_suggestions(limit=2)) == 2
        assert store.get_recent_suggestions(limit=0) == []

    def test_empty_history(self, store):
        assert store.get_recent_suggestions() == []

    def test_rejects_non_positive_half_life(self):
        with pytest.raises(ValueError, match="must be positive"):
            SearchHistoryStore(recency_half_life_hours=0)


@pytest.mark.unit
class TestPopularAndRemoval:
    """Tests for popular entries, removal and clearing."""

    def test_popular_orders_by_count(self, store, fake_clock):
        store.record_selection("a")
        for _ in range(3):
            store.record_selection("b")
        fake_clock.tick(10)
        store.record_selection("c")

        assert [entry.result_id for entry in store.get_popular()] == ["b", "c", "a"]

    def test_remove(self, store, history_storage):
        store.record_selection("a")

        assert store.remove("a") is True
        assert store.remove("a") is False
        assert store.wait_for_saves(timeout=5)
        assert "a" not in history_storage.snapshot.selections

    def test_clear(self, store, history_storage):
        store.record_selection("a")
        store.record_query("button")

        store.clear()

        assert len(store) == 0
        assert store.get_recent_queries() == []
        assert store.wait_for_saves(timeout=5)
        assert history_storage.snapshot == HistorySnapshot()


@pytest.mark.unit
class TestQueryHistory:
    """Tests for the list of past queries."""

    def test_record_query_trims_and_stores(self, store, fake_clock):
        entry = store.record_query("  button  ", result_count=3)

        assert entry.query == "button"
        assert entry.frequency == 1
        assert entry.result_count == 3
        assert entry.last_searched_at == fake_clock.now

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_blank_queries_are_ignored(self, store, query):
        assert store.record_query(query) is None
        assert store.query_count == 0

    def test_repeated_query_moves_to_front(self, store, fake_clock):
        store.record_query("button")
        fake_clock.tick(1)
        store.record_query("modal")
        fake_clock.tick(1)
        entry = store.record_query("button")

        assert entry.frequency == 2
        assert [item.query for item in store.get_recent_queries()] == ["button", "modal"]

    def test_history_is_bounded(self, history_storage, fake_clock):
        store = SearchHistoryStore(history_storage, max_queries=3, clock=fake_clock)
        for query in ("a1", "a2", "a3", "a4"):
            store.record_query(query)

        assert [item.query for item in store.get_recent_queries()] == ["a4", "a3", "a2"]

    def test_rejects_non_positive_max_queries(self):
        with pytest.raises(ValueError, match="max_queries"):
            SearchHistoryStore(max_queries=0)

    def test_recent_queries_limit(self, store):
        for query in ("a", "b", "c"):
            store.record_query(query)

        assert [item.query for item in store.get_recent_queries(limit=2)] == ["c", "b"]
        assert store.get_recent_queries(limit=0) == []

    def test_suggestions_match_prefix_case_insensitively(self, store):
        for query in ("Button", "buttons", "modal", "big button"):
            store.record_query(query)

        assert store.get_query_suggestions("BUT") == ["buttons", "Button"]
        assert store.get_query_suggestions("zzz") == []
        assert store.get_query_suggestions("  ") == []

    def test_suggestions_limit(self, store):
        for index in range(8):
            store.record_query(f"query {index}")

        assert len(store.get_query_suggestions("query")) == 5
        assert len(store.get_query_suggestions("query", limit=2)) == 2

    def test_popular_queries_by_frequency(self, store):
        store.record_query("modal")
        store.record_query("button")
        store.record_query("button")
        store.record_query("tokens")

        assert [item.query for item in store.get_popular_queries()] == ["button", "tokens", "modal"]

    def test_selection_is_attached_to_query(self, store):
        store.record_query("button", result_count=2)
        store.record_query("modal")

        store.record_selection("button-story", query="button")

        recent = store.get_recent_queries()
        assert recent[0].query == "button"
        assert recent[0].selected_result_id == "button-story"
        assert recent[0].frequency == 1

    def test_selection_from_unrecorded_query_creates_entry(self, store):
        store.record_selection("modal-docs", query="dialog")

        [entry] = store.get_recent_queries()
        assert entry.query == "dialog"
        assert entry.selected_result_id == "modal-docs"
        assert entry.result_count == 1

    def test_remove_query(self, store):
        store.record_query("button")

        assert store.remove_query("button") is True
        assert store.remove_query("button") is False
        assert store.query_count == 0

    def test_returned_query_entry_is_a_copy(self, store):
        entry = store.record_query("button")
        entry.frequency = 40

        assert store.get_recent_queries()[0].frequency == 1


@pytest.mark.unit
class TestPersistence:
    """Tests for load and save through the storage adapter."""

    def test_loads_initial_snapshot(self, fake_clock):
        selected_at = datetime(2025, 12, 31, tzinfo=timezone.utc)
        storage = InMemoryHistoryStorage(
            HistorySnapshot(
                selections={"a": HistoryEntry(result_id="a", selection_count=4, last_selected_at=selected_at)},
                queries=[QueryHistoryEntry(query="alpha", frequency=2, last_searched_at=selected_at)],
            )
        )
        store = SearchHistoryStore(storage, clock=fake_clock)

        assert store.get_frequency_snapshot() == {"a": 4}
        assert [item.query for item in store.get_recent_queries()] == ["alpha"]

    def test_mutations_are_saved_without_event_loop(self, store, history_storage):
        store.record_selection("a")
        store.record_selection("a")
        store.record_query("alpha")

        assert store.wait_for_saves(timeout=5)
        assert history_storage.save_count >= 1
        assert history_storage.snapshot.selections["a"].selection_count == 2
        assert [item.query for item in history_storage.snapshot.queries] == ["alpha"]

    def test_slow_save_does_not_delay_selection(self, fake_clock):
        storage = GatedStorage()
        store = SearchHistoryStore(storage, clock=fake_clock)

        store.record_selection("a")
        assert storage.save_started.wait(timeout=5)

        started = time.perf_counter()
        entry = store.record_selection("a")
        elapsed = time.perf_counter() - started

        assert entry.selection_count == 2
        assert elapsed < 1.0
        assert store.wait_for_saves(timeout=0.05) is False

        storage.gate.set()
        assert store.wait_for_saves(timeout=5)
        assert storage.snapshot.selections["a"].selection_count == 2

    def test_saves_coalesce_to_latest_snapshot(self, fake_clock):
        storage = GatedStorage()
        store = SearchHistoryStore(storage, clock=fake_clock)

        store.record_selection("a")
        assert storage.save_started.wait(timeout=5)
        for _ in range(4):
            store.record_selection("b")
        storage.gate.set()

        assert store.wait_for_saves(timeout=5)
        assert storage.save_count == 2
        assert storage.snapshot.selections["b"].selection_count == 4

    def test_failed_load_starts_empty(self, fake_clock, caplog):
        with caplog.at_level("WARNING"):
            store = SearchHistoryStore(FailingStorage(), clock=fake_clock)

        assert len(store) == 0
        assert "Failed to load search history" in caplog.text

    def test_failed_save_keeps_memory_state(self, fake_clock, caplog):
        storage = FailingStorage()
        store = SearchHistoryStore(storage, clock=fake_clock)

        with caplog.at_level("WARNING"):
            entry = store.record_selection("a")
            assert store.wait_for_saves(timeout=5)

        assert entry.selection_count == 1
        assert store.get_frequency_snapshot() == {"a": 1}
        assert storage.save_attempts == 1
        assert "Failed to save search history" in caplog.text

    def test_writer_survives_failed_save(self, fake_clock):
        storage = FailingStorage()
        store = SearchHistoryStore(storage, clock=fake_clock)

        store.record_selection("a")
        assert store.wait_for_saves(timeout=5)
        store.record_selection("b")
        assert store.wait_for_saves(timeout=5)

        assert storage.save_attempts == 2

    @pytest.mark.asyncio
    async def test_flush_inside_event_loop(self, store, history_storage):
        for _ in range(5):
            store.record_selection("a")
        store.record_selection("b")

        await store.flush()

        assert history_storage.snapshot.selections["a"].selection_count == 5
        assert history_storage.snapshot.selections["b"].selection_count == 1

    @pytest.mark.asyncio
    async def test_flush_without_pending_saves(self, store):
        await store.flush()

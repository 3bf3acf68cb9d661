"""Frequency-weighted history of selected results and past queries.

The store owns the in-memory snapshot: selection statistics keyed by result
id and the list of past queries, newest first. It loads the snapshot once from
the storage adapter at construction and saves a copy after every mutation.

Saves never block the caller. They are handed to a daemon writer thread that
always persists the newest pending snapshot; snapshots superseded while a
write is in flight are skipped. A failed load or save is logged and counted,
never raised, and never undoes the in-memory update.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime, timezone
import logging
import math
import threading

import anyio

from palette_search.adapters.history_storage import AbstractHistoryStorage, InMemoryHistoryStorage
from palette_search.domain.model import HistoryEntry, HistorySnapshot, QueryHistoryEntry
from palette_search.observability.metrics import HISTORY_PERSISTENCE_ERRORS


logger = logging.getLogger(__name__)

DEFAULT_RECENCY_HALF_LIFE_HOURS = 168.0
DEFAULT_MAX_QUERIES = 50
RECENCY_WEIGHT = 0.5
FREQUENCY_WEIGHT = 0.5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchHistoryStore:
    """Records selections and queries and exposes frequency and recency views of them."""

    def __init__(
        self,
        storage: AbstractHistoryStorage | None = None,
        *,
        recency_half_life_hours: float = DEFAULT_RECENCY_HALF_LIFE_HOURS,
        max_queries: int = DEFAULT_MAX_QUERIES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if recency_half_life_hours <= 0:
            raise ValueError(f"recency_half_life_hours must be positive, got {recency_half_life_hours}")
        if max_queries < 1:
            raise ValueError(f"max_queries must be at least 1, got {max_queries}")
        self._storage = storage if storage is not None else InMemoryHistoryStorage()
        self._clock = clock
        self.recency_half_life_hours = recency_half_life_hours
        self.max_queries = max_queries

        self._save_condition = threading.Condition()
        self._pending_snapshot: HistorySnapshot | None = None
        self._writing = False
        self._writer_thread: threading.Thread | None = None

        snapshot = self._load()
        self._entries: dict[str, HistoryEntry] = dict(snapshot.selections)
        self._queries: OrderedDict[str, QueryHistoryEntry] = OrderedDict(
            (entry.query, entry) for entry in snapshot.queries[:max_queries]
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, result_id: object) -> bool:
        return result_id in self._entries

    @property
    def query_count(self) -> int:
        return len(self._queries)

    def _load(self) -> HistorySnapshot:
        try:
            snapshot = self._storage.load()
        except Exception as exc:
            logger.warning("Failed to load search history, starting empty: %s", exc, exc_info=True)
            HISTORY_PERSISTENCE_ERRORS.labels(operation="load").inc()
            return HistorySnapshot()
        logger.debug(
            "Loaded %d selection and %d query history entries", len(snapshot.selections), len(snapshot.queries)
        )
        return snapshot.detached()

    # Selections

    def record_selection(self, result_id: str, query: str | None = None) -> HistoryEntry | None:
        """Count one selection of ``result_id``.

        When ``query`` is given, the query history entry it came from is
        updated too (and created if the query was never recorded).

        Returns:
            A copy of the updated entry, or None when the id is not a
            non-empty string.
        """
        if not isinstance(result_id, str) or not result_id.strip():
            logger.debug("Ignoring selection with invalid result id %r", result_id)
            return None

        now = self._clock()
        entry = self._entries.get(result_id)
        if entry is None:
            entry = HistoryEntry(result_id=result_id, selection_count=1, last_selected_at=now)
            self._entries[result_id] = entry
        else:
            entry.register_selection(now)

        if isinstance(query, str) and query.strip():
            self._attach_selection(query.strip(), result_id, now)

        self._schedule_save()
        return entry.model_copy()

    def get_frequency_snapshot(self) -> dict[str, int]:
        """Return a detached ``{result_id: selection_count}`` mapping."""
        return {result_id: entry.selection_count for result_id, entry in self._entries.items()}

    def get_entry(self, result_id: str) -> HistoryEntry | None:
        entry = self._entries.get(result_id)
        return entry.model_copy() if entry is not None else None

    def get_recent_suggestions(self, limit: int = 10) -> list[str]:
        """Return ids ranked by a blend of recency and frequency.

        Recency decays exponentially with the configured half-life; frequency
        is ``ln(1 + count)`` normalized by the most selected entry. Both lie in
        [0, 1] and are weighted equally.
        """
        if limit <= 0 or not self._entries:
            return []

        now = self._clock()
        max_frequency = math.log1p(max(entry.selection_count for entry in self._entries.values()))

        def blended(entry: HistoryEntry) -> float:
            age_hours = max(0.0, (now - entry.last_selected_at).total_seconds() / 3600)
            recency = 0.5 ** (age_hours / self.recency_half_life_hours)
            frequency = math.log1p(entry.selection_count) / max_frequency
            return RECENCY_WEIGHT * recency + FREQUENCY_WEIGHT * frequency

        ranked = sorted(
            self._entries.values(),
            key=lambda entry: (-blended(entry), -entry.last_selected_at.timestamp(), entry.result_id),
        )
        return [entry.result_id for entry in ranked[:limit]]

    def get_popular(self, limit: int = 5) -> list[HistoryEntry]:
        """Most selected entries first, most recent first on ties."""
        if limit <= 0:
            return []
        ranked = sorted(
            self._entries.values(),
            key=lambda entry: (-entry.selection_count, -entry.last_selected_at.timestamp(), entry.result_id),
        )
        return [entry.model_copy() for entry in ranked[:limit]]

    def remove(self, result_id: str) -> bool:
        """Forget one result. Returns True when an entry was removed."""
        if self._entries.pop(result_id, None) is None:
            return False
        self._schedule_save()
        return True

    def clear(self) -> None:
        """Forget all selections and queries."""
        self._entries.clear()
        self._queries.clear()
        self._schedule_save()

    # Queries

    def record_query(self, query: str, result_count: int | None = None) -> QueryHistoryEntry | None:
        """Remember a submitted query, newest first, bounded by ``max_queries``.

        Repeating a query bumps its frequency and moves it to the front.
        Returns a copy of the entry, or None for a blank query.
        """
        if not isinstance(query, str) or not query.strip():
            return None

        entry = self._touch_query(query.strip(), self._clock())
        if result_count is not None:
            entry.result_count = max(0, result_count)
        self._schedule_save()
        return entry.model_copy()

    def get_recent_queries(self, limit: int = 10) -> list[QueryHistoryEntry]:
        if limit <= 0:
            return []
        return [entry.model_copy() for entry in list(self._queries.values())[:limit]]

    def get_query_suggestions(self, partial: str, limit: int = 5) -> list[str]:
        """Past queries starting with ``partial`` (case-insensitive), newest first."""
        if not isinstance(partial, str) or not partial.strip() or limit <= 0:
            return []
        lowered = partial.lower()
        matches = [query for query in self._queries if query.lower().startswith(lowered)]
        return matches[:limit]

    def get_popular_queries(self, limit: int = 5) -> list[QueryHistoryEntry]:
        """Most frequent queries first; newer first on ties."""
        if limit <= 0:
            return []
        ranked = sorted(self._queries.values(), key=lambda entry: -entry.frequency)
        return [entry.model_copy() for entry in ranked[:limit]]

    def remove_query(self, query: str) -> bool:
        if self._queries.pop(query, None) is None:
            return False
        self._schedule_save()
        return True

    def _touch_query(self, query: str, now: datetime) -> QueryHistoryEntry:
        entry = self._queries.pop(query, None)
        if entry is None:
            entry = QueryHistoryEntry(query=query, last_searched_at=now)
        else:
            entry.frequency += 1
            entry.last_searched_at = now
        self._queries[query] = entry
        self._queries.move_to_end(query, last=False)
        while len(self._queries) > self.max_queries:
            self._queries.popitem(last=True)
        return entry

    def _attach_selection(self, query: str, result_id: str, now: datetime) -> None:
        entry = self._queries.get(query)
        if entry is None:
            entry = self._touch_query(query, now)
            entry.result_count = 1
        else:
            entry.last_searched_at = now
            self._queries.move_to_end(query, last=False)
        entry.selected_result_id = result_id

    # Persistence

    def _snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(
            selections={result_id: entry.model_copy() for result_id, entry in self._entries.items()},
            queries=[entry.model_copy() for entry in self._queries.values()],
        )

    def _schedule_save(self) -> None:
        snapshot = self._snapshot()
        with self._save_condition:
            self._pending_snapshot = snapshot
            self._ensure_writer_locked()
            self._save_condition.notify_all()

    def _ensure_writer_locked(self) -> None:
        if self._writer_thread is not None and self._writer_thread.is_alive():
            return
        thread = threading.Thread(target=self._writer_loop, name="history-writer", daemon=True)
        self._writer_thread = thread
        thread.start()

    def _writer_loop(self) -> None:
        while True:
            with self._save_condition:
                self._save_condition.wait_for(lambda: self._pending_snapshot is not None)
                snapshot, self._pending_snapshot = self._pending_snapshot, None
                self._writing = True
            try:
                anyio.run(self._save, snapshot)
            finally:
                with self._save_condition:
                    self._writing = False
                    self._save_condition.notify_all()

    async def _save(self, snapshot: HistorySnapshot) -> None:
        try:
            await self._storage.save(snapshot)
        except Exception as exc:
            logger.warning("Failed to save search history: %s", exc, exc_info=True)
            HISTORY_PERSISTENCE_ERRORS.labels(operation="save").inc()

    def wait_for_saves(self, timeout: float | None = None) -> bool:
        """Block until every scheduled save has been written.

        Returns False when ``timeout`` elapsed first.
        """
        with self._save_condition:
            return self._save_condition.wait_for(
                lambda: self._pending_snapshot is None and not self._writing, timeout=timeout
            )

    async def flush(self) -> None:
        """Wait for pending saves without blocking the event loop."""
        await anyio.to_thread.run_sync(self.wait_for_saves)

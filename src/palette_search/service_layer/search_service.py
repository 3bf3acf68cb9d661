"""Search service orchestration layer.

Chains shortcut parsing, the result cache and the ranking engine behind the
single entry point the presentation layer calls, and routes selection events
back into the history store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

from palette_search.adapters.corpus_file import load_source_records
from palette_search.adapters.history_storage import (
    AbstractHistoryStorage,
    InMemoryHistoryStorage,
    JsonFileHistoryStorage,
)
from palette_search.config import Settings
from palette_search.domain.model import HistoryEntry, IndexedRecord, QueryHistoryEntry, SearchOptions
from palette_search.observability.context import bind_search_context
from palette_search.observability.metrics import SEARCH_LATENCY, SEARCH_REQUESTS, track_latency
from palette_search.search.cache import ResultCache
from palette_search.search.index_builder import IndexBuilder
from palette_search.search.models import BuildReport, Corpus, SearchResponse
from palette_search.search.ranking import RankingEngine, normalize_query
from palette_search.search.shortcuts import ShortcutProcessor
from palette_search.services.search_history import SearchHistoryStore


logger = logging.getLogger(__name__)


class SearchService:
    """High-level search API for the command palette.

    The corpus is an immutable snapshot; ``rebuild_index`` swaps in a new one
    and clears the result cache before returning, so a cached ranking from an
    older corpus is never served.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        history_storage: AbstractHistoryStorage | None = None,
        shortcut_processor: ShortcutProcessor | None = None,
        index_builder: IndexBuilder | None = None,
        ranking_engine: RankingEngine | None = None,
        result_cache: ResultCache | None = None,
        history_store: SearchHistoryStore | None = None,
    ):
        self.settings = settings if settings is not None else Settings()
        self.shortcuts = shortcut_processor if shortcut_processor is not None else ShortcutProcessor()
        self.index_builder = index_builder if index_builder is not None else IndexBuilder()
        if ranking_engine is None:
            ranking_engine = RankingEngine(
                default_max_results=self.settings.default_max_results,
                history_bonus_weight=self.settings.history_bonus_weight,
                history_bonus_cap=self.settings.history_bonus_cap,
                fuzzy_enabled=self.settings.fuzzy_matching_enabled,
            )
        self.ranking_engine = ranking_engine
        if result_cache is None:
            result_cache = ResultCache(
                max_size=self.settings.search_cache_max_size,
                ttl_seconds=self.settings.search_cache_ttl_seconds,
            )
        self.cache = result_cache
        if history_store is None:
            if history_storage is None:
                history_storage = self._default_history_storage(self.settings)
            history_store = SearchHistoryStore(
                history_storage,
                recency_half_life_hours=self.settings.history_recency_half_life_hours,
                max_queries=self.settings.query_history_max_size,
            )
        self.history = history_store
        self._corpus = Corpus()
        self._generation = 0

    @staticmethod
    def _default_history_storage(settings: Settings) -> AbstractHistoryStorage:
        history_path = settings.get_history_path()
        if history_path is None:
            return InMemoryHistoryStorage()
        return JsonFileHistoryStorage(history_path)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SearchService:
        """Create a service and load the configured index file, if any.

        A missing or unreadable index file is logged and leaves the corpus
        empty; duplicate ids in a readable file still raise.
        """
        service = cls(settings)
        index_path = service.settings.get_index_path()
        if index_path is not None:
            try:
                records = load_source_records(index_path)
            except (OSError, ValueError) as exc:
                logger.error("Could not load search index from %s: %s", index_path, exc)
            else:
                service.rebuild_index(records)
        return service

    @property
    def corpus(self) -> Corpus:
        return self._corpus

    def rebuild_index(self, source_records: Iterable[Mapping[str, Any] | IndexedRecord]) -> BuildReport:
        """Build a new corpus, swap it in, and invalidate cached rankings.

        Each successful rebuild carries the next generation number.

        Raises:
            DuplicateRecordIdError: When two source records share an id; the
                current corpus and generation stay active.
        """
        corpus, report = self.index_builder.build_with_report(source_records, generation=self._generation + 1)
        self._generation = corpus.generation
        self._corpus = corpus
        self.cache.clear()
        return report

    def process_and_search(self, raw_query: str) -> SearchResponse:
        """Parse shortcuts off ``raw_query`` and run the search.

        Never raises for user input; a query that cannot match anything
        yields an empty response.
        """
        if not isinstance(raw_query, str):
            logger.debug("Ignoring non-string query of type %s", type(raw_query).__name__)
            return SearchResponse(query="", options=SearchOptions())

        processed = self.shortcuts.process_query(raw_query)
        if processed is None:
            return self.search(raw_query)
        return self.search(processed.query, processed.options, shortcut=processed.shortcut.prefix)

    def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        shortcut: str | None = None,
    ) -> SearchResponse:
        """Search with explicit options; shortcut prefixes are not parsed here."""
        options = options if options is not None else SearchOptions()
        display_query = query.strip() if isinstance(query, str) else ""
        normalized = normalize_query(query)
        if not normalized:
            SEARCH_REQUESTS.labels(outcome="empty").inc()
            return SearchResponse(query=display_query, options=options, shortcut=shortcut)

        with bind_search_context(shortcut=shortcut or ""):
            results = self.cache.get(normalized, options)
            cached = results is not None
            outcome = "hit" if cached else "miss"
            with track_latency(SEARCH_LATENCY, cache=outcome):
                if results is None:
                    results = tuple(
                        self.ranking_engine.search(
                            normalized,
                            options,
                            self._corpus,
                            self.history.get_frequency_snapshot(),
                        )
                    )
                    self.cache.set(normalized, options, results)

            SEARCH_REQUESTS.labels(outcome=outcome).inc()
            logger.debug("Search %r (cache %s): %d results", normalized, outcome, len(results))

        return SearchResponse(
            query=display_query,
            options=options,
            results=results,
            groups=self.ranking_engine.group_results(results),
            cached=cached,
            shortcut=shortcut,
        )

    def record_selection(self, result_id: str, query: str | None = None) -> HistoryEntry | None:
        """Register that the user picked ``result_id``, optionally from ``query``.

        Cached rankings embed history bonuses, so the cache is cleared.
        """
        entry = self.history.record_selection(result_id, query=query)
        if entry is not None:
            self.cache.clear()
            if self._corpus.get(result_id) is None:
                logger.debug("Recorded selection of %r, which is not in the current corpus", result_id)
        return entry

    def get_recent_suggestions(self, limit: int = 10) -> list[IndexedRecord]:
        """Recently and frequently selected records that still exist in the corpus."""
        if limit <= 0:
            return []
        records: list[IndexedRecord] = []
        for result_id in self.history.get_recent_suggestions(len(self.history)):
            record = self._corpus.get(result_id)
            if record is not None:
                records.append(record)
                if len(records) >= limit:
                    break
        return records

    def get_suggestions(self, partial: str, limit: int = 5) -> list[str]:
        return self.ranking_engine.get_suggestions(partial, self._corpus, limit)

    def record_query(self, query: str, result_count: int | None = None) -> QueryHistoryEntry | None:
        """Remember a submitted query. Does not touch cached rankings."""
        return self.history.record_query(query, result_count=result_count)

    def get_recent_queries(self, limit: int = 10) -> list[QueryHistoryEntry]:
        return self.history.get_recent_queries(limit)

    def get_query_suggestions(self, partial: str, limit: int = 5) -> list[str]:
        return self.history.get_query_suggestions(partial, limit)

    def get_stats(self) -> dict[str, Any]:
        return {
            "records": len(self._corpus),
            "generation": self._corpus.generation,
            "cache": self.cache.get_stats(),
            "history_entries": len(self.history),
            "history_queries": self.history.query_count,
        }

    async def close(self) -> None:
        """Wait for pending history saves."""
        await self.history.flush()

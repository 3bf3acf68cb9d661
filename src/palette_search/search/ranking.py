"""Multi-field scoring and ranking over an in-memory corpus.

Every field is compared against the lowercased query in tiers:

    exact match        10
    prefix match        8
    substring match     6
    all query tokens    4   (multi-word queries, any order)
    fuzzy match         2   (every query token within a small edit distance)

Multi-valued fields (tags, headings) score their best item plus 1 for each
additional matching item. Field scores are multiplied by the option boosts
(neutral factor 1) and summed. Matching records are then scaled by a saturating
history factor ``1 + min(cap, weight * ln(1 + selection_count))``. The factor
never exceeds ``1 + cap`` (1.5 by default), so history reorders results of
similar relevance while a single-field substring or fuzzy hit stays below an
exact match however often it was selected.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
import logging
import math

from palette_search.domain.model import SEARCH_FIELDS, IndexedRecord, SearchOptions
from palette_search.search.fuzzy import fuzzy_match, tokenize
from palette_search.search.models import Corpus, ResultGroups, ScoredResult


logger = logging.getLogger(__name__)

EXACT_SCORE = 10.0
PREFIX_SCORE = 8.0
SUBSTRING_SCORE = 6.0
ALL_TOKENS_SCORE = 4.0
FUZZY_SCORE = 2.0
ADDITIONAL_ITEM_SCORE = 1.0

DEFAULT_MAX_RESULTS = 50
DEFAULT_HISTORY_BONUS_WEIGHT = 0.25
DEFAULT_HISTORY_BONUS_CAP = 0.5


def normalize_query(query: object) -> str:
    """Lowercase and edge-trim a query; anything but a string becomes empty."""
    if not isinstance(query, str):
        return ""
    return query.strip().lower()


@lru_cache(maxsize=8192)
def _field_tokens(value: str) -> tuple[str, ...]:
    return tuple(tokenize(value))


@dataclass(frozen=True)
class PreparedQuery:
    """A normalized query with its tokens split once per search."""

    text: str
    tokens: tuple[str, ...]

    @classmethod
    def from_text(cls, normalized: str) -> PreparedQuery:
        return cls(text=normalized, tokens=tuple(tokenize(normalized)))


def score_text(query: PreparedQuery, value: str, *, fuzzy: bool = True) -> float:
    """Score one lowercased field value against the query."""
    if not value or not query.text:
        return 0.0
    if value == query.text:
        return EXACT_SCORE
    if value.startswith(query.text):
        return PREFIX_SCORE
    if query.text in value:
        return SUBSTRING_SCORE
    if len(query.tokens) > 1 and all(token in value for token in query.tokens):
        return ALL_TOKENS_SCORE
    if fuzzy and fuzzy_match(query.tokens, _field_tokens(value)):
        return FUZZY_SCORE
    return 0.0


def score_items(query: PreparedQuery, values: Sequence[str], *, fuzzy: bool = True) -> float:
    """Score a multi-valued field: best item plus a point per extra match."""
    scores = [score for score in (score_text(query, value, fuzzy=fuzzy) for value in values) if score > 0]
    if not scores:
        return 0.0
    return max(scores) + ADDITIONAL_ITEM_SCORE * (len(scores) - 1)


class RankingEngine:
    """Score, filter, order and truncate corpus records for a query.

    The engine is stateless apart from its tuning parameters; the corpus and
    history snapshot are passed in on every call.
    """

    def __init__(
        self,
        *,
        default_max_results: int = DEFAULT_MAX_RESULTS,
        history_bonus_weight: float = DEFAULT_HISTORY_BONUS_WEIGHT,
        history_bonus_cap: float = DEFAULT_HISTORY_BONUS_CAP,
        fuzzy_enabled: bool = True,
    ):
        self.default_max_results = max(0, default_max_results)
        self.history_bonus_weight = max(0.0, history_bonus_weight)
        self.history_bonus_cap = max(0.0, history_bonus_cap)
        self.fuzzy_enabled = fuzzy_enabled

    def history_bonus(self, selection_count: int) -> float:
        """Monotonic, saturating relative bonus for previously selected records.

        The returned fraction multiplies a record's relevance, so a record
        selected any number of times scores at most ``1 + cap`` times its
        relevance.
        """
        if selection_count <= 0:
            return 0.0
        return min(self.history_bonus_cap, self.history_bonus_weight * math.log1p(selection_count))

    def score_record(
        self, query: PreparedQuery, record: IndexedRecord, options: SearchOptions
    ) -> tuple[float, frozenset[str]]:
        """Return the boosted relevance score and the fields that contributed."""
        normalized = record.normalized
        fuzzy = self.fuzzy_enabled
        raw_scores = {
            "title": score_text(query, normalized.title, fuzzy=fuzzy),
            "description": score_text(query, normalized.description, fuzzy=fuzzy),
            "tags": score_items(query, normalized.tags, fuzzy=fuzzy),
            "component_name": score_text(query, normalized.component_name, fuzzy=fuzzy),
            "headings": score_items(query, normalized.headings, fuzzy=fuzzy),
        }

        total = 0.0
        matched: set[str] = set()
        for field_name in SEARCH_FIELDS:
            weighted = raw_scores[field_name] * options.boost.factor(field_name)
            if weighted > 0:
                total += weighted
                matched.add(field_name)
        return total, frozenset(matched)

    def search(
        self,
        query: str,
        options: SearchOptions | None,
        corpus: Corpus,
        history_snapshot: Mapping[str, int] | None = None,
    ) -> list[ScoredResult]:
        """Rank corpus records for ``query``.

        Args:
            query: Free-text query without any shortcut prefix
            options: Scope, boosts and result limit (None for defaults)
            corpus: Records to search
            history_snapshot: Selection count per record id

        Returns:
            Results ordered by score descending, ties in corpus order; empty
            for blank queries or when nothing matches.
        """
        normalized = normalize_query(query)
        if not normalized:
            return []

        options = options if options is not None else SearchOptions()
        history = history_snapshot or {}
        prepared = PreparedQuery.from_text(normalized)

        scored: list[tuple[float, int, ScoredResult]] = []
        for position, record in enumerate(corpus.records):
            if not options.includes(record.type):
                continue

            relevance, matched_fields = self.score_record(prepared, record, options)
            if relevance <= 0:
                continue

            bonus = relevance * self.history_bonus(history.get(record.id, 0))
            score = relevance + bonus
            scored.append((score, position, ScoredResult(record, score, matched_fields, bonus)))

        scored.sort(key=lambda item: (-item[0], item[1]))
        limit = options.resolve_max_results(self.default_max_results)
        results = [result for _, _, result in scored[:limit]]

        logger.debug("Ranked %d matches for %r, returning %d", len(scored), normalized, len(results))
        return results

    @staticmethod
    def group_results(results: Sequence[ScoredResult]) -> ResultGroups:
        """Split ranked results into stories and docs, keeping rank order."""
        stories = tuple(result for result in results if result.record.is_story)
        docs = tuple(result for result in results if not result.record.is_story)
        return ResultGroups(stories=stories, docs=docs)

    def get_suggestions(self, query: str, corpus: Corpus, limit: int = 5) -> list[str]:
        """Suggest component names and tags that start with the query."""
        normalized = normalize_query(query)
        if len(normalized) < 2 or limit <= 0:
            return []

        results = self.search(normalized, SearchOptions(max_results=limit * 3), corpus)
        suggestions: dict[str, None] = {}
        for result in results:
            record = result.record
            if record.component_name and record.normalized.component_name.startswith(normalized):
                suggestions.setdefault(record.component_name)
            for tag, tag_lower in zip(record.tags, record.normalized.tags):
                if tag_lower.startswith(normalized):
                    suggestions.setdefault(tag)
        return list(suggestions)[:limit]

"""Search data models."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from palette_search.domain.model import IndexedRecord, SearchOptions


@dataclass(frozen=True)
class Corpus:
    """Immutable snapshot of the indexed records.

    ``generation`` is assigned by the owner of the corpus (the search
    service bumps it on every rebuild); builds of the same records with the
    same generation compare equal.
    """

    records: tuple[IndexedRecord, ...] = ()
    generation: int = 0
    _by_id: Mapping[str, IndexedRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", MappingProxyType({record.id: record for record in self.records}))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[IndexedRecord]:
        return iter(self.records)

    def get(self, record_id: str) -> IndexedRecord | None:
        return self._by_id.get(record_id)


@dataclass(frozen=True)
class ScoredResult:
    """A ranked record. ``record`` is a reference into the corpus, never a copy."""

    record: IndexedRecord
    score: float
    matched_fields: frozenset[str] = frozenset()
    history_bonus: float = 0.0


@dataclass(frozen=True)
class ResultGroups:
    """Read-only split of ranked results by record type, rank order preserved."""

    stories: tuple[ScoredResult, ...] = ()
    docs: tuple[ScoredResult, ...] = ()

    @property
    def total(self) -> int:
        return len(self.stories) + len(self.docs)


@dataclass
class CacheEntry:
    """Cached ranking for one (query, options) key."""

    key: str
    value: tuple[ScoredResult, ...]
    created_at: float
    last_accessed_at: float


@dataclass(frozen=True)
class SkippedRecord:
    position: int
    reason: str
    record_id: str | None = None


@dataclass(frozen=True)
class BuildReport:
    """Outcome of one index build."""

    accepted: int = 0
    skipped: tuple[SkippedRecord, ...] = ()

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(frozen=True)
class SearchResponse:
    """Everything the presentation layer needs for one query."""

    query: str
    options: SearchOptions
    results: tuple[ScoredResult, ...] = ()
    groups: ResultGroups = field(default_factory=ResultGroups)
    cached: bool = False
    shortcut: str | None = None

    @property
    def stories(self) -> tuple[ScoredResult, ...]:
        return self.groups.stories

    @property
    def docs(self) -> tuple[ScoredResult, ...]:
        return self.groups.docs

    @property
    def total(self) -> int:
        return len(self.results)

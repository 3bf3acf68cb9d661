"""Domain model - searchable records, search options and selection history.

Value objects are immutable (frozen) and validated by Pydantic at
construction. Lowercased shadow copies of every searchable field live in
``NormalizedFields`` and are computed exactly once, when a record is created
through ``IndexedRecord.create``.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Self

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.dataclasses import dataclass


class RecordType(str, Enum):
    """Kind of searchable record."""

    STORY = "story"
    DOCS = "docs"


# Field names reported in ScoredResult.matched_fields and used for boosts
SEARCH_FIELDS: tuple[str, ...] = ("title", "description", "tags", "component_name", "headings")


@dataclass(frozen=True)
class NormalizedFields:
    """Lowercased shadow copies of a record's searchable fields."""

    title: str
    description: str = ""
    component_name: str = ""
    tags: tuple[str, ...] = ()
    headings: tuple[str, ...] = ()


@dataclass(frozen=True)
class IndexedRecord:
    """One searchable unit: a component story or a documentation page.

    Use ``IndexedRecord.create`` so the normalized fields are derived from the
    display fields instead of being passed by hand.
    """

    id: Annotated[str, Field(min_length=1)]
    title: Annotated[str, Field(min_length=1)]
    type: RecordType
    path: Annotated[str, Field(min_length=1)]
    normalized: NormalizedFields
    tags: tuple[str, ...] = ()
    component_name: str | None = None
    description: str | None = None
    headings: tuple[str, ...] = ()

    @classmethod
    def create(
        cls,
        *,
        id: str,
        title: str,
        type: RecordType | str,
        path: str,
        tags: Iterable[str] = (),
        component_name: str | None = None,
        description: str | None = None,
        headings: Iterable[str] = (),
    ) -> Self:
        """Create a record and derive its normalized shadow fields."""
        tags = tuple(tags)
        headings = tuple(headings)
        normalized = NormalizedFields(
            title=title.lower(),
            description=(description or "").lower(),
            component_name=(component_name or "").lower(),
            tags=tuple(tag.lower() for tag in tags),
            headings=tuple(heading.lower() for heading in headings),
        )
        return cls(
            id=id,
            title=title,
            type=RecordType(type),
            path=path,
            normalized=normalized,
            tags=tags,
            component_name=component_name,
            description=description,
            headings=headings,
        )

    @property
    def is_story(self) -> bool:
        return self.type is RecordType.STORY

    def to_dict(self) -> dict[str, object]:
        """Serialize display fields (normalized fields are rebuilt on load)."""
        payload: dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "type": self.type.value,
            "path": self.path,
        }
        if self.tags:
            payload["tags"] = list(self.tags)
        if self.component_name is not None:
            payload["componentName"] = self.component_name
        if self.description is not None:
            payload["description"] = self.description
        if self.headings:
            payload["headings"] = list(self.headings)
        return payload


class FieldBoost(BaseModel):
    """Per-field score multipliers. ``None`` means the neutral factor 1."""

    model_config = ConfigDict(frozen=True)

    title: float | None = None
    component_name: float | None = None
    tags: float | None = None
    description: float | None = None
    headings: float | None = None

    @field_validator("*")
    @classmethod
    def _clamp_negative(cls, value: float | None) -> float | None:
        if value is None:
            return None
        return max(0.0, value)

    def factor(self, field_name: str) -> float:
        value = getattr(self, field_name)
        return 1.0 if value is None else value


class SearchOptions(BaseModel):
    """Scope restriction, field boosts and result limit for one search.

    ``include_stories``/``include_docs`` left unset allow that record type, so
    an empty options object places no restriction on the corpus.
    """

    model_config = ConfigDict(frozen=True)

    include_stories: bool | None = None
    include_docs: bool | None = None
    boost: FieldBoost = Field(default_factory=FieldBoost)
    max_results: int | None = None

    @field_validator("max_results")
    @classmethod
    def _clamp_max_results(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return max(0, value)

    def includes(self, record_type: RecordType) -> bool:
        """Return True when records of ``record_type`` are in scope."""
        if record_type is RecordType.STORY:
            return self.include_stories is not False
        return self.include_docs is not False

    def resolve_max_results(self, default: int) -> int:
        return default if self.max_results is None else self.max_results

    def cache_key(self) -> str:
        """Stable serialization; equal option sets always produce equal keys."""
        return orjson.dumps(self.model_dump(mode="json"), option=orjson.OPT_SORT_KEYS).decode("utf-8")


class HistoryEntry(BaseModel):
    """Selection statistics for one result id.

    Mutable entity owned by the search history store.
    """

    model_config = ConfigDict(validate_assignment=True)

    result_id: str = Field(min_length=1)
    selection_count: int = Field(default=1, ge=1)
    last_selected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("last_selected_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def register_selection(self, selected_at: datetime) -> None:
        self.selection_count += 1
        self.last_selected_at = selected_at


class Shortcut(BaseModel):
    """A query-prefix operator and the options it produces."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    description: str
    icon: str | None = None
    options: SearchOptions = Field(default_factory=SearchOptions)


class ProcessedQuery(BaseModel):
    """Result of stripping a shortcut prefix off a raw query."""

    model_config = ConfigDict(frozen=True)

    query: str
    options: SearchOptions = Field(default_factory=SearchOptions)
    shortcut: Shortcut | None = None


class QueryHistoryEntry(BaseModel):
    """A past query, how often it was searched and what it led to."""

    model_config = ConfigDict(validate_assignment=True)

    query: str = Field(min_length=1)
    frequency: int = Field(default=1, ge=1)
    last_searched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    result_count: int | None = Field(default=None, ge=0)
    selected_result_id: str | None = None

    @field_validator("query")
    @classmethod
    def _strip_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be blank")
        return value

    @field_validator("last_searched_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class HistorySnapshot(BaseModel):
    """Everything the history store persists: selections by id, queries newest first."""

    selections: dict[str, HistoryEntry] = Field(default_factory=dict)
    queries: list[QueryHistoryEntry] = Field(default_factory=list)

    def detached(self) -> "HistorySnapshot":
        return self.model_copy(deep=True)

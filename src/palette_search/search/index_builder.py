"""Build the searchable corpus from raw story and documentation records.

The build is a pure, deterministic transform: the same input always yields
the same records in the same order. A record that cannot be resolved to the
mandatory fields is skipped and reported so one bad record never breaks
search over the rest of the corpus. Duplicate ids point at a broken
collaborator and raise.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

from pydantic import ValidationError

from palette_search.domain.exceptions import DuplicateRecordIdError
from palette_search.domain.model import IndexedRecord, RecordType
from palette_search.observability.metrics import INDEX_RECORD_COUNT, INDEX_SKIPPED_RECORDS
from palette_search.search.models import BuildReport, Corpus, SkippedRecord


logger = logging.getLogger(__name__)

MANDATORY_FIELDS = ("id", "title", "type", "path")

_FIELD_ALIASES = {
    "component_name": ("component_name", "componentName"),
}


class MalformedRecordError(ValueError):
    """A source record cannot be turned into an IndexedRecord."""


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _string_sequence(value: Any) -> tuple[str, ...]:
    """Coerce a tags/headings value into an ordered, de-duplicated tuple."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = [value]
    elif isinstance(value, (set, frozenset)):
        items = sorted(item for item in value if isinstance(item, str))
    elif isinstance(value, Iterable):
        items = value
    else:
        return ()

    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        text = _text(item)
        if text is None or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return tuple(result)


def _lookup(source: Mapping[str, Any], field_name: str) -> Any:
    for alias in _FIELD_ALIASES.get(field_name, (field_name,)):
        if alias in source:
            return source[alias]
    return None


def _record_type(value: Any) -> RecordType:
    if isinstance(value, RecordType):
        return value
    if isinstance(value, str):
        try:
            return RecordType(value.strip().lower())
        except ValueError:
            pass
    raise MalformedRecordError(f"unknown record type {value!r}")


def normalize_source_record(source: Mapping[str, Any] | IndexedRecord) -> IndexedRecord:
    """Resolve one raw record into an IndexedRecord.

    Raises:
        MalformedRecordError: When a mandatory field is missing or invalid.
    """
    if isinstance(source, IndexedRecord):
        return source
    if not isinstance(source, Mapping):
        raise MalformedRecordError(f"expected a mapping, got {type(source).__name__}")

    values = {name: _text(source.get(name)) for name in ("id", "title", "path")}
    missing = [name for name in MANDATORY_FIELDS if name != "type" and values[name] is None]
    if source.get("type") is None:
        missing.append("type")
    if missing:
        raise MalformedRecordError(f"missing mandatory field(s): {', '.join(sorted(missing))}")

    try:
        return IndexedRecord.create(
            id=values["id"],
            title=values["title"],
            type=_record_type(source["type"]),
            path=values["path"],
            tags=_string_sequence(source.get("tags")),
            component_name=_text(_lookup(source, "component_name")),
            description=_text(source.get("description")),
            headings=_string_sequence(source.get("headings")),
        )
    except ValidationError as exc:
        raise MalformedRecordError(str(exc)) from exc


class IndexBuilder:
    """Turn heterogeneous source records into an immutable ``Corpus``."""

    def build(self, source_records: Iterable[Mapping[str, Any] | IndexedRecord], generation: int = 0) -> Corpus:
        corpus, _ = self.build_with_report(source_records, generation)
        return corpus

    def build_with_report(
        self, source_records: Iterable[Mapping[str, Any] | IndexedRecord], generation: int = 0
    ) -> tuple[Corpus, BuildReport]:
        """Build a corpus and report which records were skipped and why.

        Raises:
            DuplicateRecordIdError: When two records share an id.
        """
        records: list[IndexedRecord] = []
        skipped: list[SkippedRecord] = []
        positions: dict[str, int] = {}

        for position, source in enumerate(source_records):
            try:
                record = normalize_source_record(source)
            except MalformedRecordError as exc:
                record_id = _text(source.get("id")) if isinstance(source, Mapping) else None
                logger.warning("Skipping source record #%d (%s): %s", position, record_id or "no id", exc)
                skipped.append(SkippedRecord(position=position, reason=str(exc), record_id=record_id))
                continue

            if record.id in positions:
                raise DuplicateRecordIdError(record.id, positions[record.id], position)
            positions[record.id] = position
            records.append(record)

        corpus = Corpus(records=tuple(records), generation=generation)
        report = BuildReport(accepted=len(records), skipped=tuple(skipped))

        INDEX_RECORD_COUNT.labels().set(len(records))
        if skipped:
            INDEX_SKIPPED_RECORDS.labels().inc(len(skipped))
        logger.info(
            "Built search index generation %d: %d records, %d skipped",
            corpus.generation,
            report.accepted,
            report.skipped_count,
        )
        return corpus, report

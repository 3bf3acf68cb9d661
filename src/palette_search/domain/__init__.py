"""Domain layer - records, options, history entries and shortcuts.

No infrastructure dependencies live here; storage and ranking code build on
these types.
"""

from palette_search.domain.exceptions import DuplicateRecordIdError, InvalidShortcutError
from palette_search.domain.model import (
    SEARCH_FIELDS,
    FieldBoost,
    HistoryEntry,
    HistorySnapshot,
    IndexedRecord,
    NormalizedFields,
    ProcessedQuery,
    QueryHistoryEntry,
    RecordType,
    SearchOptions,
    Shortcut,
)


__all__ = [
    "SEARCH_FIELDS",
    "DuplicateRecordIdError",
    "FieldBoost",
    "HistoryEntry",
    "HistorySnapshot",
    "IndexedRecord",
    "InvalidShortcutError",
    "NormalizedFields",
    "ProcessedQuery",
    "QueryHistoryEntry",
    "RecordType",
    "SearchOptions",
    "Shortcut",
]

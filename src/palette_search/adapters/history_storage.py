"""Storage adapters for selection and query history.

The history store only keeps the in-memory snapshot; loading and persisting
it goes through one of these adapters. Both operations may fail, and the
store treats any failure as "no history available".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
from pathlib import Path
import shutil

import anyio
from pydantic import ValidationError

from palette_search.domain.model import HistoryEntry, HistorySnapshot, QueryHistoryEntry


logger = logging.getLogger(__name__)

HISTORY_FORMAT_VERSION = 2


class AbstractHistoryStorage(ABC):
    """Load and persist ``HistorySnapshot`` values."""

    @abstractmethod
    def load(self) -> HistorySnapshot:
        """Load the persisted snapshot. Called once, when the store starts."""
        raise NotImplementedError

    @abstractmethod
    async def save(self, snapshot: HistorySnapshot) -> None:
        """Persist a full snapshot, replacing the previous one."""
        raise NotImplementedError


class InMemoryHistoryStorage(AbstractHistoryStorage):
    """Keeps the last saved snapshot in memory. Used in tests and when no file is configured."""

    def __init__(self, initial: HistorySnapshot | None = None):
        self._snapshot = (initial if initial is not None else HistorySnapshot()).detached()
        self.save_count = 0

    def load(self) -> HistorySnapshot:
        return self._snapshot.detached()

    async def save(self, snapshot: HistorySnapshot) -> None:
        self._snapshot = snapshot.detached()
        self.save_count += 1

    @property
    def snapshot(self) -> HistorySnapshot:
        return self._snapshot.detached()


def _parse_selections(raw_entries: list) -> dict[str, HistoryEntry]:
    entries: dict[str, HistoryEntry] = {}
    for raw in raw_entries:
        try:
            entry = HistoryEntry.model_validate(raw)
        except ValidationError as exc:
            logger.debug("Dropping malformed history entry %r: %s", raw, exc)
            continue
        existing = entries.get(entry.result_id)
        if existing is not None:
            # Duplicate ids are merged
            entry = HistoryEntry(
                result_id=entry.result_id,
                selection_count=existing.selection_count + entry.selection_count,
                last_selected_at=max(existing.last_selected_at, entry.last_selected_at),
            )
        entries[entry.result_id] = entry
    return entries


def _parse_queries(raw_queries: list) -> list[QueryHistoryEntry]:
    queries: dict[str, QueryHistoryEntry] = {}
    for raw in raw_queries:
        try:
            entry = QueryHistoryEntry.model_validate(raw)
        except ValidationError as exc:
            logger.debug("Dropping malformed query history entry %r: %s", raw, exc)
            continue
        existing = queries.get(entry.query)
        if existing is not None:
            newer = entry if entry.last_searched_at >= existing.last_searched_at else existing
            entry = newer.model_copy(update={"frequency": existing.frequency + entry.frequency})
        queries[entry.query] = entry
    return sorted(queries.values(), key=lambda item: item.last_searched_at, reverse=True)


def _parse_snapshot(payload: object) -> HistorySnapshot:
    if not isinstance(payload, dict):
        raise ValueError("history payload must be a JSON object")
    raw_entries = payload.get("entries", [])
    raw_queries = payload.get("queries", [])
    if not isinstance(raw_entries, list) or not isinstance(raw_queries, list):
        raise ValueError("history 'entries' and 'queries' must be lists")
    return HistorySnapshot(selections=_parse_selections(raw_entries), queries=_parse_queries(raw_queries))


class JsonFileHistoryStorage(AbstractHistoryStorage):
    """Persist history as a JSON document, written atomically via a temp file.

    Files written before query history existed (format version 1, no
    ``queries`` key) load with an empty query list.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def load(self) -> HistorySnapshot:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return HistorySnapshot()
        return _parse_snapshot(json.loads(content))

    async def save(self, snapshot: HistorySnapshot) -> None:
        payload = {
            "version": HISTORY_FORMAT_VERSION,
            "entries": [entry.model_dump(mode="json") for entry in snapshot.selections.values()],
            "queries": [entry.model_dump(mode="json") for entry in snapshot.queries],
        }
        await self._write_json(payload)

    async def _write_json(self, payload: dict) -> None:
        await anyio.to_thread.run_sync(lambda: self.path.parent.mkdir(parents=True, exist_ok=True))
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        async with await anyio.open_file(tmp_path, "w", encoding="utf-8") as fp:
            await fp.write(json.dumps(payload, indent=2, sort_keys=True))
        await anyio.to_thread.run_sync(shutil.move, str(tmp_path), str(self.path))

"""Read raw source records from, and write built indexes to, JSON files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import orjson

from palette_search.search.models import Corpus


logger = logging.getLogger(__name__)


def load_source_records(path: Path | str) -> list[dict[str, Any]]:
    """Load raw records from a JSON file.

    The file holds either a list of records or an object with a ``records``
    list (the shape ``save_corpus`` writes).

    Raises:
        FileNotFoundError: When the file does not exist.
        ValueError: When the file is not valid JSON or has the wrong shape.
    """
    data = Path(path).read_bytes()
    try:
        payload = orjson.loads(data)
    except orjson.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("records")
    if not isinstance(payload, list):
        raise ValueError(f"Expected a list of records in {path}")

    logger.debug("Loaded %d source records from %s", len(payload), path)
    return payload


def save_corpus(corpus: Corpus, path: Path | str) -> Path:
    """Write the corpus display fields as a JSON index file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {"records": [record.to_dict() for record in corpus.records]}
    target.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    logger.info("Search index saved to %s with %d entries", target, len(corpus))
    return target

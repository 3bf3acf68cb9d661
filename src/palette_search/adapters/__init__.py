"""Adapters layer - history persistence and index file I/O."""

from .corpus_file import load_source_records, save_corpus
from .history_storage import AbstractHistoryStorage, InMemoryHistoryStorage, JsonFileHistoryStorage


__all__ = [
    "AbstractHistoryStorage",
    "InMemoryHistoryStorage",
    "JsonFileHistoryStorage",
    "load_source_records",
    "save_corpus",
]

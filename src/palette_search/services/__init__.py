"""Stateful services used by the search service layer."""

from .search_history import SearchHistoryStore


__all__ = [
    "SearchHistoryStore",
]

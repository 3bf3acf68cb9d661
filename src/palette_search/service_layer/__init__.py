"""Service layer - orchestration of the search engine components."""

from .search_service import SearchService


__all__ = [
    "SearchService",
]

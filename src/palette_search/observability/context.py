"""Context propagation for correlating log lines of one search."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4


search_context: ContextVar[dict | None] = ContextVar("search_context", default=None)


def generate_search_id() -> str:
    """Generate a 16-char hex search ID."""
    return uuid4().hex[:16]


def get_search_context() -> dict:
    """Get the current search context (empty when outside a search)."""
    return search_context.get() or {}


@contextmanager
def bind_search_context(**extra: object) -> Iterator[str]:
    """Bind a fresh search ID for the duration of the block."""
    search_id = generate_search_id()
    token = search_context.set({"search_id": search_id, **extra})
    try:
        yield search_id
    finally:
        search_context.reset(token)

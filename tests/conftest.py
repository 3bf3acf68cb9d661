"""Shared test fixtures and configuration."""

from datetime import datetime, timedelta, timezone
import os
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(REPO_ROOT / "src"))


# Complete test environment that overrides every config value
TEST_ENV = {
    "DEFAULT_MAX_RESULTS": "50",
    "FUZZY_MATCHING_ENABLED": "true",
    "HISTORY_BONUS_WEIGHT": "0.25",
    "HISTORY_BONUS_CAP": "0.5",
    "SEARCH_CACHE_MAX_SIZE": "50",
    "SEARCH_CACHE_TTL_SECONDS": "300",
    "HISTORY_FILE": "",
    "HISTORY_RECENCY_HALF_LIFE_HOURS": "168",
    "QUERY_HISTORY_MAX_SIZE": "50",
    "INDEX_FILE": "",
    "LOG_LEVEL": "info",
    "LOG_JSON": "false",
}


for key, value in TEST_ENV.items():
    os.environ[key] = value

from palette_search.adapters.history_storage import InMemoryHistoryStorage
from palette_search.search.index_builder import IndexBuilder


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset environment variables to test defaults before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


class FakeClock:
    """Manually advanced clock for cache and history tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.monotonic = 1000.0

    def __call__(self) -> datetime:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)
        self.monotonic += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def button_records():
    """One story titled Button and one doc titled Button Guide."""
    return [
        {"id": "button-story", "title": "Button", "type": "story", "path": "?path=/story/button--primary"},
        {"id": "button-guide", "title": "Button Guide", "type": "docs", "path": "?path=/docs/button-guide--page"},
    ]


@pytest.fixture
def sample_records():
    """A small Storybook-like corpus of stories and documentation pages."""
    return [
        {
            "id": "mermaid-diagram-main",
            "title": "Components/MermaidDiagram",
            "type": "story",
            "path": "?path=/story/components-mermaiddiagram--flowchart",
            "tags": ["autodocs", "component", "diagram", "visualization"],
            "description": "A React component for rendering Mermaid diagrams with full support for all diagram types.",
            "componentName": "MermaidDiagram",
        },
        {
            "id": "mermaid-diagram-gantt",
            "title": "Components/MermaidDiagram - Gantt Chart",
            "type": "story",
            "path": "?path=/story/components-mermaiddiagram--ganttchart",
            "tags": ["autodocs", "gantt", "chart", "timeline"],
            "description": "Gantt chart example showing project timeline",
            "componentName": "MermaidDiagram",
        },
        {
            "id": "modal-default",
            "title": "Overlays/Dialog - Default",
            "type": "story",
            "path": "?path=/story/overlays-dialog--default",
            "tags": ["overlay", "interactive"],
            "description": "Default dialog story",
            "componentName": "Modal",
        },
        {
            "id": "modal-docs",
            "title": "Using a modal window",
            "type": "docs",
            "path": "?path=/docs/overlays-modal--page",
            "headings": ["Overview", "Accessibility", "Focus management"],
            "tags": ["documentation", "overlay"],
            "description": "How to open and close dialogs",
        },
        {
            "id": "tokens-docs",
            "title": "Design Tokens",
            "type": "docs",
            "path": "?path=/docs/design-tokens--page",
            "headings": ["Design Tokens", "Color System", "Typography", "Spacing"],
            "tags": ["documentation", "tokens", "design", "system"],
            "description": "Design system tokens and guidelines for consistent styling.",
        },
    ]


@pytest.fixture
def sample_corpus(sample_records):
    return IndexBuilder().build(sample_records)


@pytest.fixture
def history_storage():
    return InMemoryHistoryStorage()

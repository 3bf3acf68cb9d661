"""Query shortcut operators.

A shortcut is a prefix such as ``s:`` or ``new:`` at the very start of a raw
query. It is stripped off and turned into ``SearchOptions`` (scope
restriction, field boosts, result limit). The catalog is a plain data table,
validated once when a processor is created.
"""

from collections.abc import Sequence
import logging

from palette_search.domain.exceptions import InvalidShortcutError
from palette_search.domain.model import FieldBoost, ProcessedQuery, SearchOptions, Shortcut


logger = logging.getLogger(__name__)

DEFAULT_ICON = "🔍"

DEFAULT_SHORTCUTS: tuple[Shortcut, ...] = (
    Shortcut(
        prefix="d:",
        description="Search documentation only",
        icon="📄",
        options=SearchOptions(include_stories=False, include_docs=True),
    ),
    Shortcut(
        prefix="s:",
        description="Search stories only",
        icon="🎨",
        options=SearchOptions(include_stories=True, include_docs=False),
    ),
    Shortcut(
        prefix="c:",
        description="Search by component name",
        icon="🧩",
        options=SearchOptions(boost=FieldBoost(component_name=5, title=3, tags=1, description=1, headings=1)),
    ),
    Shortcut(
        prefix="t:",
        description="Search by tags",
        icon="🏷️",
        options=SearchOptions(boost=FieldBoost(tags=5, title=2, component_name=2, description=1, headings=1)),
    ),
    Shortcut(
        prefix="h:",
        description="Search headings in documentation",
        icon="📑",
        options=SearchOptions(
            include_stories=False,
            include_docs=True,
            boost=FieldBoost(headings=5, title=3, description=2, tags=1, component_name=1),
        ),
    ),
    Shortcut(
        prefix="new:",
        description="Search recently added content",
        icon="✨",
        options=SearchOptions(max_results=20),
    ),
)


class ShortcutProcessor:
    """Detect and apply shortcut prefixes.

    Only position 0 of the raw query is ever inspected; a colon later in the
    query is part of the search text.
    """

    def __init__(self, shortcuts: Sequence[Shortcut] = DEFAULT_SHORTCUTS):
        self._shortcuts = tuple(shortcuts)
        self._validate_catalog(self._shortcuts)
        # Longest prefix first so one prefix can never shadow a longer one
        self._by_length = sorted(self._shortcuts, key=lambda shortcut: len(shortcut.prefix), reverse=True)

    @staticmethod
    def _validate_catalog(shortcuts: Sequence[Shortcut]) -> None:
        seen: set[str] = set()
        for position, shortcut in enumerate(shortcuts):
            prefix = shortcut.prefix
            if len(prefix) < 2 or not prefix.endswith(":"):
                raise InvalidShortcutError(
                    f"Shortcut #{position} prefix {prefix!r} must be a non-empty name followed by ':'"
                )
            if prefix != prefix.strip() or " " in prefix:
                raise InvalidShortcutError(f"Shortcut #{position} prefix {prefix!r} must not contain whitespace")
            if not shortcut.description.strip():
                raise InvalidShortcutError(f"Shortcut {prefix!r} has an empty description")
            folded = prefix.lower()
            if folded in seen:
                raise InvalidShortcutError(f"Duplicate shortcut prefix {prefix!r}")
            seen.add(folded)

    def _match(self, raw: str) -> Shortcut | None:
        if not isinstance(raw, str):
            return None
        lowered = raw.lower()
        for shortcut in self._by_length:
            if lowered.startswith(shortcut.prefix.lower()):
                return shortcut
        return None

    def has_shortcut(self, raw: str) -> bool:
        """Check whether the raw query starts with a known prefix."""
        return self._match(raw) is not None

    def process_query(self, raw: str) -> ProcessedQuery | None:
        """Strip a leading shortcut and produce the options it stands for.

        Returns:
            ProcessedQuery with the edge-trimmed remainder (possibly empty),
            or None when the query does not start with a known prefix.
        """
        shortcut = self._match(raw)
        if shortcut is None:
            return None

        remainder = raw[len(shortcut.prefix) :].strip()
        logger.debug("Applied shortcut %s to query %r", shortcut.prefix, remainder)
        return ProcessedQuery(query=remainder, options=shortcut.options, shortcut=shortcut)

    def get_shortcuts(self) -> tuple[Shortcut, ...]:
        return self._shortcuts

    def get_shortcut_suggestions(self, partial: str) -> list[Shortcut]:
        """Filter the catalog by prefix start or description substring."""
        if not partial.strip():
            return list(self._shortcuts)

        lowered = partial.lower()
        return [
            shortcut
            for shortcut in self._shortcuts
            if shortcut.prefix.lower().startswith(lowered) or lowered in shortcut.description.lower()
        ]

    @staticmethod
    def format_shortcut(shortcut: Shortcut) -> str:
        return f"{shortcut.icon or DEFAULT_ICON} {shortcut.prefix} {shortcut.description}"

    def get_help_text(self) -> str:
        return "\n".join(self.format_shortcut(shortcut) for shortcut in self._shortcuts)

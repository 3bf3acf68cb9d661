"""Exceptions raised for collaborator bugs.

User input never raises: malformed queries and records are skipped or
defaulted where they are read. The errors below signal a broken catalog or
corpus supplied by calling code and are raised loudly.
"""


class InvalidShortcutError(ValueError):
    """A shortcut catalog entry is malformed or duplicated."""


class DuplicateRecordIdError(ValueError):
    """Two source records share the same id."""

    def __init__(self, record_id: str, first_position: int, duplicate_position: int):
        self.record_id = record_id
        self.first_position = first_position
        self.duplicate_position = duplicate_position
        super().__init__(
            f"Duplicate record id {record_id!r} at positions {first_position} and {duplicate_position}"
        )

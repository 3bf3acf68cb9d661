"""Fuzzy matching for typo-tolerant search.

This module provides edit distance calculation and token-level fuzzy
comparison used as the lowest scoring tier of the ranking engine.

Fixed thresholds:
- Max edit distance of 1 for short tokens (3-5 chars)
- Max edit distance of 2 for longer tokens (6+ chars)
- No fuzzy matching for very short tokens (1-2 chars); those must be an
  exact prefix of some field token
"""

from __future__ import annotations

from collections.abc import Sequence
import re


_TOKEN_PATTERN = re.compile(r"[^\W_]+")


def tokenize(text: str) -> list[str]:
    """Split lowercase text into alphanumeric tokens.

    Examples:
        >>> tokenize("components/mermaiddiagram - flowchart")
        ['components', 'mermaiddiagram', 'flowchart']
    """
    return _TOKEN_PATTERN.findall(text)


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Uses dynamic programming for O(m*n) time complexity, with optional
    early termination when distance exceeds max_distance.

    Args:
        s1: First string.
        s2: Second string.
        max_distance: If provided, return max_distance+1 early when
            distance is guaranteed to exceed this threshold.

    Returns:
        The minimum number of single-character edits (insertions,
        deletions, substitutions) needed to change s1 into s2.
        If max_distance is set and exceeded, returns max_distance+1.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("", "abc")
        3
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)

    if max_distance is not None and abs(m - n) > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = curr_row[0]
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
            row_min = min(row_min, curr_row[i])

        if max_distance is not None and row_min > max_distance:
            return max_distance + 1

        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def get_max_edit_distance(term_length: int) -> int:
    """Get the maximum allowed edit distance for a token based on its length.

    Args:
        term_length: Length of the query token.

    Returns:
        Maximum allowed edit distance.
    """
    if term_length <= 2:
        return 0
    if term_length <= 5:
        return 1
    return 2


def token_matches(query_token: str, field_tokens: Sequence[str]) -> bool:
    """Return True when ``query_token`` is close to some field token.

    A field token matches when it starts with the query token, when the whole
    token is within the length-dependent edit distance, or when its prefix of
    the same length is (so a typo in a partially typed word still matches).
    """
    max_distance = get_max_edit_distance(len(query_token))
    for field_token in field_tokens:
        if field_token.startswith(query_token):
            return True
        if max_distance == 0:
            continue
        if levenshtein_distance(query_token, field_token, max_distance) <= max_distance:
            return True
        if len(field_token) > len(query_token):
            head = field_token[: len(query_token)]
            if levenshtein_distance(query_token, head, max_distance) <= max_distance:
                return True
    return False


def fuzzy_match(query_tokens: Sequence[str], field_tokens: Sequence[str]) -> bool:
    """Return True when every query token fuzzily matches the field tokens."""
    if not query_tokens or not field_tokens:
        return False
    return all(token_matches(token, field_tokens) for token in query_tokens)

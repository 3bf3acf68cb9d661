"""
Search indexing and ranking package.

This package provides a pure-Python in-memory search stack:
- shortcuts: Query prefix operators (s:, d:, c:, t:, h:, new:)
- index_builder: Raw story/doc records -> immutable Corpus
- fuzzy: Edit distance and token-level typo tolerance
- ranking: Multi-field tiered scoring, boosts and history bonus
- cache: Bounded LRU cache of ranked results
- models: Corpus, ScoredResult and response containers
"""

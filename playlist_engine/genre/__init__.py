"""
Genre Normalization and Similarity
==================================
- Deterministic canonicalization of raw genre tags
- Per-pool raw <-> canonical mappings with near-duplicate merging
- Related-genre suggestions from co-occurrence plus a static taxonomy
"""

from .normalize import (
    GenreMappings,
    build_genre_mappings,
    normalize_genre,
    normalize_track_genres,
    split_genre_string,
)
from .similarity import (
    STATIC_GENRE_TAXONOMY,
    GenreCoOccurrence,
    SimilarGenre,
    build_genre_co_occurrence,
    get_similar_genres,
    load_taxonomy_overrides,
    rank_similar_genres,
)

__all__ = [
    # Normalization
    'GenreMappings',
    'build_genre_mappings',
    'normalize_genre',
    'normalize_track_genres',
    'split_genre_string',
    # Similarity
    'STATIC_GENRE_TAXONOMY',
    'GenreCoOccurrence',
    'SimilarGenre',
    'build_genre_co_occurrence',
    'get_similar_genres',
    'load_taxonomy_overrides',
    'rank_similar_genres',
]

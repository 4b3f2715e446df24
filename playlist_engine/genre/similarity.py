"""
Genre Similarity Module
=======================
Suggests genres related to a user's selection.

Signals, in precedence order:
1. Library co-occurrence: how often two canonical genres are tagged on the
   same track (only tracks carrying >= 2 distinct genres contribute)
2. Static taxonomy fallback: hand-curated siblings/subgenres, weight 1,
   consulted only when co-occurrence yields fewer than ``limit`` candidates

Suggestions are restricted to genres present in the current library and
never repeat a selected genre. Ranking: score descending, then alphabetical.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import yaml

from playlist_engine.genre.normalize import GenreMappings, normalize_genre, normalize_track_genres
from playlist_engine.tracks import Track

logger = logging.getLogger(__name__)

DEFAULT_SIMILAR_LIMIT = 6
TAXONOMY_WEIGHT = 1

STATIC_GENRE_TAXONOMY: Dict[str, List[str]] = {
    "Rock": ["Classic Rock", "Indie Rock", "Punk", "Hard Rock", "Progressive Rock",
             "Alternative Rock", "Soft Rock", "Southern Rock", "Folk Rock"],
    "Indie Rock": ["Rock", "Alternative Rock", "Indie", "Indie Pop"],
    "Alternative Rock": ["Rock", "Indie Rock", "Grunge", "Punk Rock"],
    "Progressive Rock": ["Rock", "Art Rock", "Psychedelic Rock"],
    "Classic Rock": ["Rock", "Hard Rock", "Blues Rock"],
    "Hard Rock": ["Rock", "Heavy Metal", "Classic Rock"],
    "Punk Rock": ["Rock", "Punk", "Alternative Rock"],
    "Punk": ["Punk Rock", "Rock", "Alternative", "Post-Punk"],
    "Metal": ["Heavy Metal", "Death Metal", "Black Metal", "Power Metal", "Thrash Metal"],
    "Heavy Metal": ["Metal", "Hard Rock", "Rock"],
    "Death Metal": ["Metal", "Heavy Metal", "Black Metal"],
    "Jazz": ["Smooth Jazz", "Jazz Fusion", "Acid Jazz", "Bebop", "Swing", "Blues"],
    "Smooth Jazz": ["Jazz", "R&B", "Soul"],
    "Jazz Fusion": ["Jazz", "Fusion", "Progressive Rock"],
    "Acid Jazz": ["Jazz", "Funk", "Soul"],
    "Electronic": ["House", "Techno", "Trance", "Ambient", "IDM", "EDM"],
    "House": ["Electronic", "Disco", "Techno"],
    "Techno": ["Electronic", "House", "Industrial"],
    "Trance": ["Electronic", "House", "Ambient"],
    "Ambient": ["Electronic", "Drone", "New Age"],
    "Hip Hop": ["Rap", "R&B", "Soul", "Funk"],
    "Rap": ["Hip Hop", "R&B", "Soul"],
    "R&B": ["Soul", "Hip Hop", "Funk", "Gospel"],
    "Soul": ["R&B", "Funk", "Gospel", "Blues"],
    "Pop": ["Pop Rock", "Dance", "Indie Pop", "Electropop"],
    "Pop Rock": ["Pop", "Rock", "Soft Rock"],
    "Folk": ["Folk Rock", "Country", "Singer-Songwriter", "Celtic", "Bluegrass"],
    "Folk Rock": ["Folk", "Rock", "Country Rock"],
    "Country": ["Folk", "Bluegrass", "Americana", "Country Rock"],
    "Classical": ["Baroque", "Romantic", "Opera", "Chamber Music", "Symphony"],
    "Reggae": ["Dub", "Ska", "Dancehall"],
    "Ska": ["Reggae", "Rock", "Punk"],
    "Blues": ["Blues Rock", "Jazz", "Soul", "R&B"],
}


@dataclass(frozen=True)
class SimilarGenre:
    """One ranked suggestion."""
    genre: str
    score: int
    source: str  # "co_occurrence" | "taxonomy" | "co_occurrence+taxonomy"


@dataclass
class GenreCoOccurrence:
    """
    Symmetric pair counts between canonical genres.

    counts[a][b] == counts[b][a] == number of tracks tagged with both a and b.
    """
    counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    tracks_seen: int = 0

    def add_normalized(self, genres: Iterable[str]) -> None:
        unique: List[str] = []
        for genre in genres:
            if genre and genre not in unique:
                unique.append(genre)
        self.tracks_seen += 1
        for i, first in enumerate(unique):
            for second in unique[i + 1:]:
                row_a = self.counts.setdefault(first, {})
                row_b = self.counts.setdefault(second, {})
                row_a[second] = row_a.get(second, 0) + 1
                row_b[first] = row_b.get(first, 0) + 1

    def add_track(self, track: Track, mappings: Optional[GenreMappings] = None) -> None:
        self.add_normalized(normalize_track_genres(track.effective_genres, mappings))

    def get(self, genre: str) -> Dict[str, int]:
        return self.counts.get(genre, {})


def build_genre_co_occurrence(
    tracks: Iterable[Track],
    mappings: Optional[GenreMappings] = None,
) -> GenreCoOccurrence:
    co_occurrence = GenreCoOccurrence()
    for track in tracks:
        co_occurrence.add_track(track, mappings)
    logger.debug(
        "Genre co-occurrence built: tracks=%d genres=%d",
        co_occurrence.tracks_seen,
        len(co_occurrence.counts),
    )
    return co_occurrence


def load_taxonomy_overrides(
    filepath: str,
    base: Optional[Mapping[str, Sequence[str]]] = None,
) -> Dict[str, List[str]]:
    """
    Merge a YAML taxonomy file onto ``base`` (the static taxonomy by default).

    File format: mapping of genre -> list of related genres. Entries replace
    the base entry for the same canonical genre.

    Raises:
        FileNotFoundError: when ``filepath`` does not exist
        ValueError: when the file is not a genre -> list mapping
    """
    merged: Dict[str, List[str]] = {
        key: list(values) for key, values in (base or STATIC_GENRE_TAXONOMY).items()
    }
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Genre taxonomy file not found: {filepath}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Genre taxonomy must be a mapping: {filepath}")

    for genre, related in data.items():
        if not isinstance(related, list):
            raise ValueError(f"Taxonomy entry for {genre!r} must be a list")
        merged[normalize_genre(str(genre))] = [str(r) for r in related]

    logger.info("Loaded %d genre taxonomy overrides from %s", len(data), filepath)
    return merged


def _find_taxonomy_key(genre: str, taxonomy: Mapping[str, Sequence[str]]) -> Optional[str]:
    lower = normalize_genre(genre).lower()
    for key in taxonomy:
        if key.lower() == lower:
            return key
    return None


def rank_similar_genres(
    selected: Sequence[str],
    library_genres: Sequence[str],
    co_occurrence: GenreCoOccurrence,
    limit: int = DEFAULT_SIMILAR_LIMIT,
    taxonomy: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[SimilarGenre]:
    """Scored variant of get_similar_genres()."""
    taxonomy = taxonomy if taxonomy is not None else STATIC_GENRE_TAXONOMY

    library_display: Dict[str, str] = {}
    for genre in library_genres:
        canonical = normalize_genre(genre)
        if canonical:
            library_display.setdefault(canonical, genre)

    selected_set = {normalize_genre(g) for g in selected}
    selected_set.discard("")
    if not selected_set:
        return []

    scores: Dict[str, int] = {}
    sources: Dict[str, set] = {}

    for genre in sorted(selected_set):
        for co_genre, count in co_occurrence.get(genre).items():
            canonical = normalize_genre(co_genre)
            if canonical in selected_set or canonical not in library_display:
                continue
            scores[co_genre] = scores.get(co_genre, 0) + count
            sources.setdefault(co_genre, set()).add("co_occurrence")

    if len(scores) < limit:
        for genre in sorted(selected_set):
            key = _find_taxonomy_key(genre, taxonomy)
            if key is None:
                continue
            for related in taxonomy[key]:
                canonical = normalize_genre(related)
                if canonical in selected_set or canonical not in library_display:
                    continue
                display = library_display[canonical]
                scores[display] = scores.get(display, 0) + TAXONOMY_WEIGHT
                sources.setdefault(display, set()).add("taxonomy")

    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        SimilarGenre(genre=genre, score=score, source="+".join(sorted(sources[genre])))
        for genre, score in ranked
    ]


def get_similar_genres(
    selected: Sequence[str],
    library_genres: Sequence[str],
    co_occurrence: GenreCoOccurrence,
    limit: int = DEFAULT_SIMILAR_LIMIT,
    taxonomy: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[str]:
    """
    Suggest up to ``limit`` library genres related to ``selected``.

    Args:
        selected: Genres the user already picked (any spelling)
        library_genres: Genres present in the current library (display spelling)
        co_occurrence: Pair counts built from the library
        limit: Maximum suggestions
        taxonomy: Optional taxonomy override (defaults to the static table)

    Returns:
        Genre names, best first
    """
    return [
        item.genre
        for item in rank_similar_genres(selected, library_genres, co_occurrence, limit, taxonomy)
    ]

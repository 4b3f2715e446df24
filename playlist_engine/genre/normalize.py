"""
Genre Normalization Module
==========================
Deterministic canonicalization of free-text genre tags.

Rules:
- Trim + strip trailing "Music"/"Genre"/"Style" and leading "(The) Music"
- Standardize dash, ampersand and slash variants
- Split comma-separated tag lists into independent entries
- Map common variants through a fixed table ("hip-hop" -> "Hip Hop")
- Otherwise title-case, preserving all-caps acronyms and keeping small
  words ("of", "the", "in", ...) lowercase unless first

normalize_genre() is idempotent: normalize_genre(normalize_genre(x)) ==
normalize_genre(x).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from playlist_engine.tracks import Track

_SUFFIX_RE = re.compile(r"\s+(music|genre|style)$", re.IGNORECASE)
_PREFIX_RE = re.compile(r"^(the\s+)?music\s+", re.IGNORECASE)
_DASH_RE = re.compile("[-\u2013\u2014\u2015]")
_AMP_RE = re.compile(r"&amp;?", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")
_ACRONYM_RE = re.compile(r"^[A-Z]{2,}$")

# Variant spellings resolved after separator folding (keys are lowercase)
GENRE_VARIATIONS: Dict[str, str] = {
    "hip-hop": "Hip Hop",
    "hip hop": "Hip Hop",
    "hiphop": "Hip Hop",
    "rock n roll": "Rock & Roll",
    "rock and roll": "Rock & Roll",
    "rock'n'roll": "Rock & Roll",
    "rock 'n' roll": "Rock & Roll",
    "pop rock": "Pop Rock",
    "pop-rock": "Pop Rock",
    "dance electronic": "Dance Electronic",
    "dance-electronic": "Dance Electronic",
    "folk rock": "Folk Rock",
    "folk-rock": "Folk Rock",
    "country folk": "Country Folk",
    "country-folk": "Country Folk",
    "alternative rock": "Alternative Rock",
    "alt rock": "Alternative Rock",
    "alt-rock": "Alternative Rock",
    "heavy metal": "Heavy Metal",
    "death metal": "Death Metal",
    "black metal": "Black Metal",
    "power metal": "Power Metal",
    "progressive rock": "Progressive Rock",
    "prog rock": "Progressive Rock",
    "prog-rock": "Progressive Rock",
    "indie rock": "Indie Rock",
    "indie-rock": "Indie Rock",
    "punk rock": "Punk Rock",
    "punk-rock": "Punk Rock",
    "classic rock": "Classic Rock",
    "soft rock": "Soft Rock",
    "hard rock": "Hard Rock",
    "jazz fusion": "Jazz Fusion",
    "smooth jazz": "Smooth Jazz",
    "acid jazz": "Acid Jazz",
    "trip hop": "Trip Hop",
    "trip-hop": "Trip Hop",
    "drum and bass": "Drum & Bass",
    "drum n bass": "Drum & Bass",
    "drum-n-bass": "Drum & Bass",
    "lo-fi": "Lofi",
    "lo fi": "Lofi",
    "synth-pop": "Synthpop",
    "synth pop": "Synthpop",
}

# Whole-string special cases checked before title-casing (keys are lowercase)
CAPITALIZATION_SPECIAL_CASES: Dict[str, str] = {
    "r&b": "R&B",
    "rnb": "R&B",
    "r and b": "R&B",
    "r & b": "R&B",
    "edm": "EDM",
    "idm": "IDM",
    "dnb": "DnB",
    "drum and bass": "Drum & Bass",
    "drum & bass": "Drum & Bass",
    "uk garage": "UK Garage",
    "uk": "UK",
    "usa": "USA",
}

SMALL_WORDS: Set[str] = {
    "a", "an", "as", "at", "but", "by", "for", "if", "in",
    "of", "on", "or", "the", "to", "up",
}


def split_genre_string(genre: str) -> List[str]:
    """
    Split a raw tag on commas ("Rock, Pop" -> ["Rock", "Pop"]).

    Returns an empty list for blank input.
    """
    if not genre or not genre.strip():
        return []
    parts = [part.strip() for part in genre.split(",")]
    parts = [part for part in parts if part]
    return parts or [genre.strip()]


def _normalize_special_characters(genre: str) -> str:
    normalized = _DASH_RE.sub("-", genre)
    normalized = _AMP_RE.sub("&", normalized)
    normalized = normalized.replace("/", " ")
    normalized = _WS_RE.sub(" ", normalized)
    return normalized.strip()


def _strip_affixes(genre: str) -> str:
    previous = None
    while previous != genre:
        previous = genre
        genre = _SUFFIX_RE.sub("", genre)
        genre = _PREFIX_RE.sub("", genre).strip()
    return genre


def _tokenize(genre: str) -> List[Tuple[str, str]]:
    """Split into ("word", text) / ("sep", "-"|"&") tokens; whitespace is dropped."""
    tokens: List[Tuple[str, str]] = []
    current = ""
    for char in genre:
        if char in "-&":
            if current:
                tokens.append(("word", current))
                current = ""
            tokens.append(("sep", char))
        elif char.isspace():
            if current:
                tokens.append(("word", current))
                current = ""
        else:
            current += char
    if current:
        tokens.append(("word", current))
    return tokens


def _capitalize_word(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def _normalize_capitalization(genre: str) -> str:
    special = CAPITALIZATION_SPECIAL_CASES.get(genre.lower())
    if special:
        return special

    tokens = _tokenize(genre)
    parts: List[str] = []
    after_ampersand = False

    for index, (kind, value) in enumerate(tokens):
        prev_kind = tokens[index - 1][0] if index > 0 else None
        has_next = index < len(tokens) - 1

        if kind == "sep":
            parts.append(" & " if value == "&" else "-")
            continue

        # A word following a rewritten "and" reads as following "&"
        is_first = index == 0 or prev_kind == "sep" or after_ampersand
        needs_space = index > 0 and prev_kind == "word"
        prefix = " " if needs_space else ""
        after_ampersand = False

        if len(value) >= 2 and _ACRONYM_RE.match(value):
            parts.append(prefix + value)
        elif value.lower() == "and" and not is_first and has_next:
            parts.append(prefix + "&")
            after_ampersand = True
        elif is_first:
            parts.append(prefix + _capitalize_word(value))
        elif value.lower() in SMALL_WORDS:
            parts.append(prefix + value.lower())
        else:
            parts.append(prefix + _capitalize_word(value))

    return _WS_RE.sub(" ", "".join(parts)).strip()


def normalize_genre(genre: str) -> str:
    """
    Canonicalize a single genre string.

    Examples:
        "hip-hop" -> "Hip Hop"
        "drum and bass" -> "Drum & Bass"
        "Ambient Music" -> "Ambient"
        "post-punk" -> "Post-Punk"

    Blank input yields "".
    """
    if not genre or not genre.strip():
        return ""

    normalized = _strip_affixes(_normalize_special_characters(genre))
    if not normalized:
        return ""

    variation = GENRE_VARIATIONS.get(normalized.lower())
    if variation:
        return variation

    result = _normalize_capitalization(normalized)
    # "Hip - Hop" only becomes a table key once separators are tightened
    return GENRE_VARIATIONS.get(result.lower(), result)


def _find_closest_genre(normalized: str, existing: Iterable[str]) -> str:
    """
    Resolve ``normalized`` against already-registered canonical genres.

    Case-insensitive equality wins; otherwise the first substring containment
    returns whichever of the two strings is longer.
    """
    lower = normalized.lower()
    existing = list(existing)

    if normalized in existing:
        return normalized

    for candidate in existing:
        if candidate.lower() == lower:
            return candidate

    for candidate in existing:
        candidate_lower = candidate.lower()
        if lower in candidate_lower or candidate_lower in lower:
            return candidate if len(candidate) > len(normalized) else normalized

    return normalized


@dataclass
class GenreMappings:
    """
    Bidirectional raw <-> normalized genre mapping for one candidate pool.

    Attributes:
        original_to_normalized: Every raw (comma-split) part -> one canonical genre
        normalized_to_originals: Canonical genre -> all raw spellings seen
        normalized_to_track_count: Canonical genre -> number of distinct tracks
    """
    original_to_normalized: Dict[str, str] = field(default_factory=dict)
    normalized_to_originals: Dict[str, Set[str]] = field(default_factory=dict)
    normalized_to_track_count: Dict[str, int] = field(default_factory=dict)

    def resolve(self, raw: str) -> Optional[str]:
        """Canonical genre for a raw part, None when unseen."""
        return self.original_to_normalized.get(raw)


class GenreMappingAccumulator:
    """
    Incremental builder behind build_genre_mappings().

    Folds raw genre tags track by track. New normalized forms are merged
    into an existing canonical genre when one is a close match.
    """

    def __init__(self) -> None:
        self._mappings = GenreMappings()
        self._genre_tracks: Dict[str, Set[str]] = {}

    def _canonical_for(self, part: str) -> str:
        known = self._mappings.original_to_normalized.get(part)
        if known:
            return known

        normalized = normalize_genre(part)
        if not normalized:
            return ""
        registered = self._genre_tracks.keys()
        closest = _find_closest_genre(normalized, registered)
        if closest != normalized and closest in self._genre_tracks:
            canonical = closest
        else:
            canonical = normalized
            self._genre_tracks.setdefault(canonical, set())

        self._mappings.original_to_normalized[part] = canonical
        self._mappings.normalized_to_originals.setdefault(canonical, set()).add(part)
        return canonical

    def normalize_track_genres(self, raw_genres: Iterable[str]) -> List[str]:
        """Canonical genres for one track's raw tags, deduplicated, in tag order."""
        result: List[str] = []
        for raw in raw_genres or ():
            for part in split_genre_string(raw):
                canonical = self._canonical_for(part)
                if canonical and canonical not in result:
                    result.append(canonical)
        return result

    def add_track(self, track_id: str, raw_genres: Iterable[str]) -> List[str]:
        canonical = self.normalize_track_genres(raw_genres)
        for genre in canonical:
            self._genre_tracks.setdefault(genre, set()).add(track_id)
        return canonical

    def finalize(self) -> GenreMappings:
        self._mappings.normalized_to_track_count = {
            genre: len(track_ids)
            for genre, track_ids in self._genre_tracks.items()
            if track_ids
        }
        return self._mappings


def build_genre_mappings(tracks: Iterable[Track]) -> GenreMappings:
    """Fold every track's raw genre tags into a GenreMappings structure."""
    accumulator = GenreMappingAccumulator()
    for track in tracks:
        accumulator.add_track(track.id, track.effective_genres)
    return accumulator.finalize()


def normalize_track_genres(
    raw_genres: Iterable[str],
    mappings: Optional[GenreMappings] = None,
) -> List[str]:
    """
    Canonical genres for a list of raw tags.

    With ``mappings``, parts already seen resolve through the pool's merged
    vocabulary; unseen parts fall back to normalize_genre().
    """
    result: List[str] = []
    for raw in raw_genres or ():
        for part in split_genre_string(raw):
            canonical = None
            if mappings is not None:
                canonical = mappings.resolve(part)
            if not canonical:
                canonical = normalize_genre(part)
            if canonical and canonical not in result:
                result.append(canonical)
    return result

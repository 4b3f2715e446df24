"""
Matching Index
==============
Per-request in-memory lookup structure over the candidate pool.

Built once per generation request and never mutated afterwards:
- genre -> track ids (normalized genres)
- artist -> track ids
- tempo bucket -> track ids (slow/medium/fast/unknown always present)
- duration bucket -> track ids
- track id -> TrackMetadata (everything scoring needs, derived once)

Every track id in all_track_ids has exactly one TrackMetadata entry and a
track appears under by_genre[g] only if g is one of its normalized genres.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from playlist_engine.genre.normalize import GenreMappingAccumulator, GenreMappings
from playlist_engine.string_utils import normalize_name_key
from playlist_engine.tags.inference import TagCache
from playlist_engine.tags.tempo import ALL_TEMPO_BUCKETS, get_tempo_bucket
from playlist_engine.tracks import Track

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_DURATION = "unknown"

# (label, lower bound inclusive, upper bound exclusive)
DURATION_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("0-60", 0.0, 60.0),
    ("60-180", 60.0, 180.0),
    ("180-300", 180.0, 300.0),
    ("300-600", 300.0, 600.0),
    ("600+", 600.0, float("inf")),
)


def get_duration_bucket(duration_seconds: Optional[float]) -> str:
    if duration_seconds is None or duration_seconds <= 0:
        return UNKNOWN_DURATION
    for label, low, high in DURATION_BUCKETS:
        if low <= duration_seconds < high:
            return label
    return UNKNOWN_DURATION


@dataclass(frozen=True)
class TrackMetadata:
    """Scoring-ready view of one track."""
    track_id: str
    title: str
    artist: str
    artist_key: str
    album: str
    genres: Tuple[str, ...]
    normalized_genres: Tuple[str, ...]
    year: Optional[int]
    duration: Optional[float]
    bpm: Optional[float]
    tempo_bucket: str
    duration_bucket: str
    moods: Tuple[str, ...] = ()
    activities: Tuple[str, ...] = ()

    @property
    def album_key(self) -> str:
        if not self.album:
            return ""
        return f"{self.artist_key}::{normalize_name_key(self.album)}"

    @property
    def decade(self) -> Optional[int]:
        if not self.year or self.year <= 0:
            return None
        return (self.year // 10) * 10


@dataclass(frozen=True)
class MatchingIndex:
    by_genre: Dict[str, FrozenSet[str]]
    by_artist: Dict[str, FrozenSet[str]]
    by_tempo_bucket: Dict[str, FrozenSet[str]]
    by_duration_bucket: Dict[str, FrozenSet[str]]
    all_track_ids: Tuple[str, ...]
    track_metadata: Dict[str, TrackMetadata]
    genre_mappings: GenreMappings
    _genre_keys: Dict[str, str] = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return len(self.all_track_ids)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self.track_metadata

    def metadata(self, track_id: str) -> TrackMetadata:
        return self.track_metadata[track_id]

    def resolve_genre(self, genre: str) -> Optional[str]:
        """Library spelling of a genre, matched case-insensitively."""
        if not genre:
            return None
        return self._genre_keys.get(genre.strip().lower())

    def genre_tracks(self, genre: str) -> FrozenSet[str]:
        key = self.resolve_genre(genre)
        if key is None:
            return frozenset()
        return self.by_genre.get(key, frozenset())

    @property
    def genres(self) -> List[str]:
        return sorted(self.by_genre)


def _freeze(groups: Dict[str, set]) -> Dict[str, FrozenSet[str]]:
    return {key: frozenset(ids) for key, ids in groups.items()}


def build_matching_index(
    tracks: Sequence[Track],
    *,
    tag_cache: Optional[TagCache] = None,
) -> MatchingIndex:
    """
    Build the index for a candidate pool.

    Args:
        tracks: Candidate pool (duplicate ids keep the first occurrence)
        tag_cache: Resolves canonical mood/activity categories per track;
            a fresh cache is used when omitted
    """
    cache = tag_cache if tag_cache is not None else TagCache()
    accumulator = GenreMappingAccumulator()

    by_genre: Dict[str, set] = {}
    by_artist: Dict[str, set] = {}
    by_tempo: Dict[str, set] = {bucket: set() for bucket in ALL_TEMPO_BUCKETS}
    by_duration: Dict[str, set] = {}
    metadata: Dict[str, TrackMetadata] = {}
    order: List[str] = []

    for track in tracks:
        if track.id in metadata:
            continue
        normalized = tuple(accumulator.add_track(track.id, track.effective_genres))
        artist = track.artist.strip() or UNKNOWN_ARTIST
        tempo_bucket = get_tempo_bucket(track.bpm)
        duration_bucket = get_duration_bucket(track.duration_seconds)
        tags = cache.tags_for(track)

        metadata[track.id] = TrackMetadata(
            track_id=track.id,
            title=track.title,
            artist=artist,
            artist_key=normalize_name_key(artist),
            album=track.album.strip(),
            genres=tuple(track.effective_genres),
            normalized_genres=normalized,
            year=track.year,
            duration=track.duration_seconds,
            bpm=track.bpm,
            tempo_bucket=tempo_bucket,
            duration_bucket=duration_bucket,
            moods=tags.moods,
            activities=tags.activities,
        )
        order.append(track.id)

        for genre in normalized:
            by_genre.setdefault(genre, set()).add(track.id)
        by_artist.setdefault(artist, set()).add(track.id)
        by_tempo[tempo_bucket].add(track.id)
        by_duration.setdefault(duration_bucket, set()).add(track.id)

    index = MatchingIndex(
        by_genre=_freeze(by_genre),
        by_artist=_freeze(by_artist),
        by_tempo_bucket=_freeze(by_tempo),
        by_duration_bucket=_freeze(by_duration),
        all_track_ids=tuple(order),
        track_metadata=metadata,
        genre_mappings=accumulator.finalize(),
        _genre_keys={genre.lower(): genre for genre in sorted(by_genre)},
    )
    logger.info(
        "stage=index | tracks=%d genres=%d artists=%d cache=%s",
        len(order), len(by_genre), len(by_artist), cache.stats,
    )
    return index


@dataclass(frozen=True)
class LibrarySummary:
    """
    Compact library description handed to strategy generation.

    Attributes:
        top_genres: (genre, track count), most common first
        avg_duration_seconds: Mean of known durations, None when no durations
        tempo_distribution: Bucket -> track count
    """
    track_count: int
    artist_count: int
    top_genres: Tuple[Tuple[str, int], ...]
    avg_duration_seconds: Optional[float]
    tempo_distribution: Dict[str, int]

    @property
    def genre_names(self) -> List[str]:
        return [genre for genre, _ in self.top_genres]


def summarize_library(index: MatchingIndex, *, max_genres: int = 20) -> LibrarySummary:
    genre_counts = Counter({genre: len(ids) for genre, ids in index.by_genre.items()})
    top = sorted(genre_counts.items(), key=lambda item: (-item[1], item[0]))[:max_genres]

    durations = [m.duration for m in index.track_metadata.values() if m.duration and m.duration > 0]
    avg_duration = sum(durations) / len(durations) if durations else None

    return LibrarySummary(
        track_count=len(index),
        artist_count=len(index.by_artist),
        top_genres=tuple(top),
        avg_duration_seconds=avg_duration,
        tempo_distribution={bucket: len(ids) for bucket, ids in index.by_tempo_bucket.items()},
    )

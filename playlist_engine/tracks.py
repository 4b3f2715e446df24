"""
Track records consumed by the engine.

Tracks are produced upstream (library scan + metadata enrichment) and are
read-only for the duration of a generation run.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


def _as_tuple(values: Any) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(str(v) for v in values if v is not None)


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if result != result:  # NaN
        return None
    return result


def _as_int(value: Any) -> Optional[int]:
    number = _as_float(value)
    return int(number) if number is not None else None


@dataclass(frozen=True)
class EnhancedMetadata:
    """Optional enrichment attached to a track (explicit mood/activity tags, genre override)."""
    mood: Tuple[str, ...] = ()
    activity: Tuple[str, ...] = ()
    genres: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["EnhancedMetadata"]:
        if not data:
            return None
        return cls(
            mood=_as_tuple(data.get("mood")),
            activity=_as_tuple(data.get("activity")),
            genres=_as_tuple(data.get("genres")),
        )


@dataclass(frozen=True)
class Track:
    """
    A single library track.

    Attributes:
        id: Stable track identifier
        genres: Raw genre strings as tagged (may contain "Rock, Pop" style lists)
        duration_seconds: Track length, None when unknown
        bpm: Upstream-provided tempo, None when unknown
        added_at: Epoch milliseconds when the track entered the library
        updated_at: Epoch milliseconds of the last record update
        enhanced: Optional enrichment (mood/activity tags, genre override)
    """
    id: str
    title: str = ""
    artist: str = ""
    album: str = ""
    genres: Tuple[str, ...] = ()
    year: Optional[int] = None
    duration_seconds: Optional[float] = None
    bpm: Optional[float] = None
    added_at: Optional[int] = None
    updated_at: Optional[int] = None
    enhanced: Optional[EnhancedMetadata] = None

    @property
    def effective_genres(self) -> Tuple[str, ...]:
        """Enhanced genre override when present, raw genres otherwise."""
        if self.enhanced is not None and self.enhanced.genres:
            return self.enhanced.genres
        return self.genres

    @property
    def mood_tags(self) -> Tuple[str, ...]:
        return self.enhanced.mood if self.enhanced is not None else ()

    @property
    def activity_tags(self) -> Tuple[str, ...]:
        return self.enhanced.activity if self.enhanced is not None else ()

    @property
    def recency_timestamp(self) -> Optional[int]:
        """added_at, falling back to updated_at for older records."""
        return self.added_at if self.added_at is not None else self.updated_at

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Track":
        """
        Build a Track from a library record.

        Accepts flat snake_case/camelCase keys as well as the nested
        ``tags`` / ``tech`` / ``enhancedMetadata`` layout used by library exports.
        """
        tags = data.get("tags") or {}
        tech = data.get("tech") or {}
        merged: Dict[str, Any] = {**tech, **tags, **data}

        track_id = _first(merged, "trackFileId", "track_id", "id")
        if track_id is None:
            raise ValueError("Track record is missing an id")

        enhanced_raw = _first(merged, "enhanced", "enhancedMetadata", "enhanced_metadata")
        return cls(
            id=str(track_id),
            title=str(_first(merged, "title") or ""),
            artist=str(_first(merged, "artist") or ""),
            album=str(_first(merged, "album") or ""),
            genres=_as_tuple(_first(merged, "genres")),
            year=_as_int(_first(merged, "year")),
            duration_seconds=_as_float(_first(merged, "duration_seconds", "durationSeconds", "duration")),
            bpm=_as_float(_first(merged, "bpm")),
            added_at=_as_int(_first(merged, "added_at", "addedAt")),
            updated_at=_as_int(_first(merged, "updated_at", "updatedAt")),
            enhanced=EnhancedMetadata.from_dict(enhanced_raw),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "genres": list(self.genres),
            "year": self.year,
            "duration_seconds": self.duration_seconds,
            "bpm": self.bpm,
            "added_at": self.added_at,
            "updated_at": self.updated_at,
        }
        if self.enhanced is not None:
            result["enhanced"] = {
                "mood": list(self.enhanced.mood),
                "activity": list(self.enhanced.activity),
                "genres": list(self.enhanced.genres),
            }
        return result


def load_tracks(records: Iterable[Mapping[str, Any]]) -> List[Track]:
    """Convert raw library records to Track objects, dropping duplicate ids."""
    seen = set()
    tracks: List[Track] = []
    for record in records:
        track = Track.from_dict(record)
        if track.id in seen:
            continue
        seen.add(track.id)
        tracks.append(track)
    return tracks

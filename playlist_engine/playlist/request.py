"""
Playlist Request Model
======================
The user-facing request, its validation, and default filling.

normalize_playlist_request() rules:
- source_pool defaults to "all"
- source_pool "recent" with neither recent_window nor recent_track_count
  defaults recent_window to "30d" (a supplied count is never overridden)
- mood/activity entries are trimmed and mapped to canonical categories;
  unrecognized entries are kept as typed (fail-open), then deduplicated
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from playlist_engine.playlist.errors import ValidationError
from playlist_engine.string_utils import dedupe_preserving_order
from playlist_engine.tags.activity import normalize_activity_category
from playlist_engine.tags.mood import normalize_mood_category
from playlist_engine.tags.tempo import (
    TEMPO_BUCKET_ACTIVITIES,
    TEMPO_BUCKET_MOODS,
    TEMPO_BUCKET_RANGES,
    TEMPO_BUCKETS,
)

logger = logging.getLogger(__name__)

LENGTH_TYPES = ("tracks", "minutes")
SOURCE_POOLS = ("all", "recent")
DEFAULT_RECENT_WINDOW = "30d"
DEFAULT_SURPRISE = 0.5


@dataclass(frozen=True)
class BpmRange:
    min: float
    max: float

    def contains(self, bpm: float) -> bool:
        return self.min <= bpm <= self.max


@dataclass(frozen=True)
class TempoSpec:
    bucket: Optional[str] = None
    bpm_range: Optional[BpmRange] = None

    @property
    def is_empty(self) -> bool:
        return self.bucket is None and self.bpm_range is None


@dataclass(frozen=True)
class LengthSpec:
    type: str = "tracks"
    value: float = 20


@dataclass(frozen=True)
class PlaylistRequest:
    """
    What the user asked for.

    Attributes:
        genres: Requested genres (free text, normalized later against the library)
        mood / activity: Requested mood and activity terms
        tempo: Bucket and/or explicit BPM range
        length: Target length in tracks or minutes
        surprise: 0 = always pick the best candidate, 1 = widest sampling window
        source_pool: "all" or "recent"
        recent_window: "7d", "30d" or "90d" (recent pool only)
        recent_track_count: Take the N most recently added tracks instead of a window
        instructions: Free-text additional instructions
        min_artists: Minimum number of distinct artists wanted
        disallowed_artists: Artists never to include
        suggested_artists / suggested_albums / suggested_tracks: Soft preferences
        min_duration_seconds / max_duration_seconds: Per-track duration bounds
        seed: Random seed for surprise>0 sampling (derived from the request when None)
    """
    genres: Tuple[str, ...] = ()
    mood: Tuple[str, ...] = ()
    activity: Tuple[str, ...] = ()
    tempo: TempoSpec = field(default_factory=TempoSpec)
    length: LengthSpec = field(default_factory=LengthSpec)
    surprise: float = DEFAULT_SURPRISE
    source_pool: Optional[str] = None
    recent_window: Optional[str] = None
    recent_track_count: Optional[int] = None
    instructions: Optional[str] = None
    min_artists: Optional[int] = None
    disallowed_artists: Tuple[str, ...] = ()
    suggested_artists: Tuple[str, ...] = ()
    suggested_albums: Tuple[str, ...] = ()
    suggested_tracks: Tuple[str, ...] = ()
    min_duration_seconds: Optional[float] = None
    max_duration_seconds: Optional[float] = None
    seed: Optional[int] = None

    @property
    def target_tracks(self) -> Optional[int]:
        return int(self.length.value) if self.length.type == "tracks" else None

    @property
    def target_seconds(self) -> Optional[float]:
        return float(self.length.value) * 60.0 if self.length.type == "minutes" else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlaylistRequest":
        """
        Build a request from a camelCase or snake_case dict.

        Raises:
            ValidationError: A field has the wrong shape
        """
        if not isinstance(data, Mapping):
            raise ValidationError("request", f"expected a mapping, got {type(data).__name__}")

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        length_raw = pick("length")
        if length_raw is None:
            raise ValidationError("length", "is required")
        if not isinstance(length_raw, Mapping):
            raise ValidationError("length", "expected {type, value}")
        length = LengthSpec(
            type=str(length_raw.get("type", "tracks")),
            value=_number("length.value", length_raw.get("value")),
        )

        return cls(
            genres=_string_tuple("genres", pick("genres")),
            mood=_string_tuple("mood", pick("mood", "moods")),
            activity=_string_tuple("activity", pick("activity", "activities")),
            tempo=_tempo_from_raw(pick("tempo")),
            length=length,
            surprise=_number("surprise", pick("surprise", default=DEFAULT_SURPRISE)),
            source_pool=pick("sourcePool", "source_pool"),
            recent_window=pick("recentWindow", "recent_window"),
            recent_track_count=_optional_int("recentTrackCount", pick("recentTrackCount", "recent_track_count")),
            instructions=pick("llmAdditionalInstructions", "instructions"),
            min_artists=_optional_int("minArtists", pick("minArtists", "min_artists")),
            disallowed_artists=_string_tuple("disallowedArtists", pick("disallowedArtists", "disallowed_artists")),
            suggested_artists=_string_tuple("suggestedArtists", pick("suggestedArtists", "suggested_artists")),
            suggested_albums=_string_tuple("suggestedAlbums", pick("suggestedAlbums", "suggested_albums")),
            suggested_tracks=_suggested_titles(pick("suggestedTracks", "suggested_tracks")),
            min_duration_seconds=_optional_number(
                "minDurationSeconds", pick("minDurationSeconds", "min_duration_seconds")
            ),
            max_duration_seconds=_optional_number(
                "maxDurationSeconds", pick("maxDurationSeconds", "max_duration_seconds")
            ),
            seed=_optional_int("seed", pick("seed")),
        )

    def to_dict(self) -> Dict[str, Any]:
        tempo: Dict[str, Any] = {}
        if self.tempo.bucket is not None:
            tempo["bucket"] = self.tempo.bucket
        if self.tempo.bpm_range is not None:
            tempo["bpmRange"] = {"min": self.tempo.bpm_range.min, "max": self.tempo.bpm_range.max}
        result: Dict[str, Any] = {
            "genres": list(self.genres),
            "mood": list(self.mood),
            "activity": list(self.activity),
            "tempo": tempo,
            "length": {"type": self.length.type, "value": self.length.value},
            "surprise": self.surprise,
            "sourcePool": self.source_pool,
            "recentWindow": self.recent_window,
            "recentTrackCount": self.recent_track_count,
            "llmAdditionalInstructions": self.instructions,
            "minArtists": self.min_artists,
            "disallowedArtists": list(self.disallowed_artists),
            "suggestedArtists": list(self.suggested_artists),
            "suggestedAlbums": list(self.suggested_albums),
            "suggestedTracks": list(self.suggested_tracks),
            "minDurationSeconds": self.min_duration_seconds,
            "maxDurationSeconds": self.max_duration_seconds,
            "seed": self.seed,
        }
        return result


def _string_tuple(field_name: str, value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ValidationError(field_name, f"expected a list of strings, got {type(value).__name__}")
    return tuple(str(v) for v in value if v is not None)


def _suggested_titles(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, Mapping)):
        value = [value]
    titles: List[str] = []
    for item in value:
        if isinstance(item, Mapping):
            title = item.get("title")
            if title:
                titles.append(str(title))
        elif item:
            titles.append(str(item))
    return tuple(titles)


def _number(field_name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(field_name, "expected a number, got bool")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, f"expected a number, got {value!r}") from None


def _optional_number(field_name: str, value: Any) -> Optional[float]:
    return None if value is None else _number(field_name, value)


def _optional_int(field_name: str, value: Any) -> Optional[int]:
    return None if value is None else int(_number(field_name, value))


def _tempo_from_raw(raw: Any) -> TempoSpec:
    if raw is None:
        return TempoSpec()
    if isinstance(raw, str):
        return TempoSpec(bucket=raw.strip().lower() or None)
    if not isinstance(raw, Mapping):
        raise ValidationError("tempo", f"expected a mapping or bucket name, got {type(raw).__name__}")

    bucket = raw.get("bucket")
    bpm_raw = raw.get("bpmRange", raw.get("bpm_range"))
    bpm_range = None
    if bpm_raw is not None:
        if not isinstance(bpm_raw, Mapping):
            raise ValidationError("tempo.bpmRange", "expected {min, max}")
        bpm_range = BpmRange(
            min=_number("tempo.bpmRange.min", bpm_raw.get("min")),
            max=_number("tempo.bpmRange.max", bpm_raw.get("max")),
        )
    return TempoSpec(
        bucket=str(bucket).strip().lower() if bucket else None,
        bpm_range=bpm_range,
    )


def validate_request(request: PlaylistRequest) -> None:
    """
    Check request shape.

    Raises:
        ValidationError: First offending field
    """
    if request.length.type not in LENGTH_TYPES:
        raise ValidationError("length.type", f"must be one of {LENGTH_TYPES}, got {request.length.type!r}")
    if not math.isfinite(request.length.value):
        raise ValidationError("length.value", f"must be a finite number, got {request.length.value}")
    if request.length.value <= 0:
        raise ValidationError("length.value", f"must be > 0, got {request.length.value}")
    if request.length.type == "tracks" and request.length.value < 1:
        raise ValidationError("length.value", f"track count must be >= 1, got {request.length.value}")
    if not 0.0 <= request.surprise <= 1.0:
        raise ValidationError("surprise", f"must be in [0, 1], got {request.surprise}")
    if request.tempo.bucket is not None and request.tempo.bucket not in TEMPO_BUCKETS:
        raise ValidationError("tempo.bucket", f"must be one of {TEMPO_BUCKETS}, got {request.tempo.bucket!r}")
    bpm_range = request.tempo.bpm_range
    if bpm_range is not None:
        if bpm_range.min <= 0:
            raise ValidationError("tempo.bpmRange.min", f"must be > 0, got {bpm_range.min}")
        if bpm_range.min > bpm_range.max:
            raise ValidationError(
                "tempo.bpmRange", f"min ({bpm_range.min}) must not exceed max ({bpm_range.max})"
            )
    if request.source_pool is not None and request.source_pool not in SOURCE_POOLS:
        raise ValidationError("sourcePool", f"must be one of {SOURCE_POOLS}, got {request.source_pool!r}")
    if request.recent_track_count is not None and request.recent_track_count < 0:
        raise ValidationError("recentTrackCount", f"must be >= 0, got {request.recent_track_count}")
    if request.min_artists is not None and request.min_artists < 1:
        raise ValidationError("minArtists", f"must be >= 1, got {request.min_artists}")
    low, high = request.min_duration_seconds, request.max_duration_seconds
    if low is not None and high is not None and low > high:
        raise ValidationError(
            "minDurationSeconds", f"min duration ({low}) must not exceed max duration ({high})"
        )


def _normalize_terms(values: Iterable[str], normalizer) -> Tuple[str, ...]:
    result: List[str] = []
    for value in values:
        trimmed = " ".join(str(value).split())
        if not trimmed:
            continue
        result.append(normalizer(trimmed) or trimmed)
    return tuple(dedupe_preserving_order(result))


def normalize_mood_terms(values: Iterable[str]) -> Tuple[str, ...]:
    return _normalize_terms(values, normalize_mood_category)


def normalize_activity_terms(values: Iterable[str]) -> Tuple[str, ...]:
    return _normalize_terms(values, normalize_activity_category)


def normalize_playlist_request(request: PlaylistRequest) -> PlaylistRequest:
    """Fill defaults and canonicalize mood/activity terms. Returns a new request."""
    source_pool = request.source_pool or "all"
    recent_window = request.recent_window
    if source_pool == "recent" and recent_window is None and request.recent_track_count is None:
        recent_window = DEFAULT_RECENT_WINDOW

    genres = tuple(dedupe_preserving_order(
        " ".join(g.split()) for g in request.genres if g and g.strip()
    ))

    normalized = replace(
        request,
        source_pool=source_pool,
        recent_window=recent_window,
        genres=genres,
        mood=normalize_mood_terms(request.mood),
        activity=normalize_activity_terms(request.activity),
    )
    logger.debug(
        "Normalized request: pool=%s window=%s mood=%s activity=%s",
        normalized.source_pool, normalized.recent_window,
        list(normalized.mood), list(normalized.activity),
    )
    return normalized


def apply_tempo_mappings_to_request(request: PlaylistRequest) -> PlaylistRequest:
    """
    Expand a bucket-only tempo request for strategy generation.

    Fills a missing BPM range from TEMPO_BUCKET_RANGES and merges the bucket's
    implied moods and activities into the request. Returns a new request;
    requests without a bucket are returned unchanged.
    """
    bucket = request.tempo.bucket
    if bucket not in TEMPO_BUCKET_RANGES:
        return request

    tempo = request.tempo
    if tempo.bpm_range is None:
        low, high = TEMPO_BUCKET_RANGES[bucket]
        tempo = replace(tempo, bpm_range=BpmRange(min=low, max=high))

    return replace(
        request,
        tempo=tempo,
        mood=tuple(dedupe_preserving_order(list(request.mood) + TEMPO_BUCKET_MOODS[bucket])),
        activity=tuple(dedupe_preserving_order(list(request.activity) + TEMPO_BUCKET_ACTIVITIES[bucket])),
    )

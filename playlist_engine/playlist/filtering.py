"""
Candidate pool filtering.

- apply_recent_filter(): restrict the library to recently added tracks
  (by count or by time window) when the request asks for the recent pool
- build_candidate_pool(): genre / excluded-genre / strict-tempo /
  disallowed-artist / duration-bound filters over the Matching Index
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from playlist_engine.genre.normalize import normalize_genre
from playlist_engine.playlist.errors import MatchingError
from playlist_engine.playlist.matching_index import MatchingIndex
from playlist_engine.playlist.request import PlaylistRequest
from playlist_engine.playlist.strategy import PlaylistStrategy
from playlist_engine.string_utils import name_key_set
from playlist_engine.tags.tempo import UNKNOWN
from playlist_engine.tracks import Track

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_WINDOW_DAYS = 30
RECENT_WINDOW_DAYS: Dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}
_WINDOW_RE = re.compile(r"^\s*(\d+)\s*d\s*$", re.IGNORECASE)


def window_days(recent_window: Optional[str]) -> int:
    """Days covered by a recent window; unknown or missing windows mean 30."""
    if not recent_window:
        return DEFAULT_WINDOW_DAYS
    if recent_window in RECENT_WINDOW_DAYS:
        return RECENT_WINDOW_DAYS[recent_window]
    match = _WINDOW_RE.match(recent_window)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    logger.warning("Unrecognized recent window %r; using %dd", recent_window, DEFAULT_WINDOW_DAYS)
    return DEFAULT_WINDOW_DAYS


def apply_recent_filter(
    tracks: Sequence[Track],
    request: PlaylistRequest,
    *,
    now: Optional[int] = None,
) -> List[Track]:
    """
    Restrict to recently added tracks when ``request.source_pool == "recent"``.

    With recent_track_count > 0: the N most recent tracks by added_at
    (falling back to updated_at); tracks with neither timestamp sort last.
    Otherwise: tracks whose timestamp is within the window before ``now``
    (epoch milliseconds, defaults to the current time).
    """
    if request.source_pool != "recent":
        return list(tracks)

    count = request.recent_track_count
    if count is not None and count > 0:
        ranked = sorted(
            tracks,
            key=lambda t: (t.recency_timestamp is not None, t.recency_timestamp or 0),
            reverse=True,
        )
        result = ranked[:count]
        logger.info("stage=recent_filter | mode=count before=%d after=%d", len(tracks), len(result))
        return result

    now_ms = int(time.time() * 1000) if now is None else int(now)
    days = window_days(request.recent_window)
    cutoff = now_ms - days * DAY_MS
    result = [
        t for t in tracks
        if t.recency_timestamp is not None and t.recency_timestamp >= cutoff
    ]
    logger.info(
        "stage=recent_filter | mode=window days=%d before=%d after=%d",
        days, len(tracks), len(result),
    )
    return result


@dataclass(frozen=True)
class CandidatePool:
    """
    Attributes:
        track_ids: Surviving candidates, in library order
        stats: Per-stage counts (stage name -> count after the stage)
    """
    track_ids: Tuple[str, ...]
    stats: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.track_ids)


def resolve_requested_genres(index: MatchingIndex, genres: Sequence[str]) -> List[str]:
    """
    Library genres matching the requested ones.

    Exact (case-insensitive) first, then the normalized spelling, then
    substring containment in either direction.
    """
    resolved: List[str] = []
    for genre in genres:
        if not genre or not genre.strip():
            continue
        key = index.resolve_genre(genre) or index.resolve_genre(normalize_genre(genre))
        if key is not None:
            matches = [key]
        else:
            lower = genre.strip().lower()
            matches = [g for g in index.genres if lower in g.lower() or g.lower() in lower]
        for match in matches:
            if match not in resolved:
                resolved.append(match)
    return resolved


def build_candidate_pool(
    *,
    tracks: Sequence[Track],
    request: PlaylistRequest,
    strategy: PlaylistStrategy,
    index: MatchingIndex,
) -> CandidatePool:
    """
    Filter the indexed tracks down to the assembly candidates.

    Raises:
        MatchingError: code="empty_pool" when nothing survives
    """
    stats: Dict[str, Any] = {"input": len(index)}
    candidate_ids: List[str] = list(index.all_track_ids)

    wanted = list(strategy.constraints.required_genres) + list(request.genres)
    if wanted:
        genres = resolve_requested_genres(index, wanted)
        allowed: Set[str] = set()
        for genre in genres:
            allowed |= index.by_genre.get(genre, frozenset())
        candidate_ids = [tid for tid in candidate_ids if tid in allowed]
        stats["resolved_genres"] = genres
    stats["genre"] = len(candidate_ids)

    excluded = {g.lower() for g in strategy.constraints.excluded_genres}
    excluded |= {normalize_genre(g).lower() for g in strategy.constraints.excluded_genres}
    excluded.discard("")
    if excluded:
        candidate_ids = [
            tid for tid in candidate_ids
            if not any(g.lower() in excluded for g in index.track_metadata[tid].normalized_genres)
        ]
    stats["excluded_genres"] = len(candidate_ids)

    guidance = strategy.tempo_guidance
    if guidance.target_bucket and not guidance.allow_variation:
        candidate_ids = [
            tid for tid in candidate_ids
            if index.track_metadata[tid].tempo_bucket in (guidance.target_bucket, UNKNOWN)
        ]
    stats["tempo"] = len(candidate_ids)

    disallowed = name_key_set(request.disallowed_artists)
    if disallowed:
        candidate_ids = [
            tid for tid in candidate_ids
            if index.track_metadata[tid].artist_key not in disallowed
        ]
    stats["disallowed_artists"] = len(candidate_ids)

    low = request.min_duration_seconds
    high = request.max_duration_seconds
    if low is not None or high is not None:
        def _within(tid: str) -> bool:
            duration = index.track_metadata[tid].duration
            if duration is None or duration <= 0:
                return True
            if low is not None and duration < low:
                return False
            return high is None or duration <= high

        candidate_ids = [tid for tid in candidate_ids if _within(tid)]
    stats["duration"] = len(candidate_ids)

    logger.info(
        "stage=candidate_pool | before=%d genre=%d excluded=%d tempo=%d artists=%d after=%d",
        stats["input"], stats["genre"], stats["excluded_genres"], stats["tempo"],
        stats["disallowed_artists"], stats["duration"],
    )

    if not candidate_ids:
        raise MatchingError(
            "empty_pool",
            "No tracks match the request after filtering",
            details={"stats": stats, "library_tracks": len(tracks)},
        )
    return CandidatePool(track_ids=tuple(candidate_ids), stats=stats)

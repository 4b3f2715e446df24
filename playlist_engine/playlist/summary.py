"""
Playlist summary statistics.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from playlist_engine.playlist.matching_index import MatchingIndex


@dataclass(frozen=True)
class PlaylistSummary:
    """
    Attributes:
        genre_mix / tempo_mix / artist_mix: Counts over the selected tracks
        total_duration: Sum of known durations (seconds)
        avg_duration / min_duration / max_duration: Over known durations only;
            None when no selected track has a duration
    """
    track_count: int
    genre_mix: Dict[str, int] = field(default_factory=dict)
    tempo_mix: Dict[str, int] = field(default_factory=dict)
    artist_mix: Dict[str, int] = field(default_factory=dict)
    total_duration: float = 0.0
    avg_duration: Optional[float] = None
    min_duration: Optional[float] = None
    max_duration: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trackCount": self.track_count,
            "genreMix": dict(self.genre_mix),
            "tempoMix": dict(self.tempo_mix),
            "artistMix": dict(self.artist_mix),
            "totalDuration": self.total_duration,
            "avgDuration": self.avg_duration,
            "minDuration": self.min_duration,
            "maxDuration": self.max_duration,
        }


def summarize_playlist(selections: Iterable[Any], index: MatchingIndex) -> PlaylistSummary:
    """
    Summarize selected tracks.

    ``selections`` may be track ids or objects with a ``track_id`` attribute.
    """
    genres: Counter = Counter()
    tempos: Counter = Counter()
    artists: Counter = Counter()
    durations = []
    count = 0

    for item in selections:
        track_id = getattr(item, "track_id", item)
        meta = index.track_metadata[track_id]
        count += 1
        genres.update(meta.normalized_genres)
        tempos[meta.tempo_bucket] += 1
        artists[meta.artist] += 1
        if meta.duration and meta.duration > 0:
            durations.append(meta.duration)

    total = float(sum(durations))
    return PlaylistSummary(
        track_count=count,
        genre_mix=dict(genres.most_common()),
        tempo_mix=dict(tempos.most_common()),
        artist_mix=dict(artists.most_common()),
        total_duration=round(total, 2),
        avg_duration=round(total / len(durations), 2) if durations else None,
        min_duration=min(durations) if durations else None,
        max_duration=max(durations) if durations else None,
    )

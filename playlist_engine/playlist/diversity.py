"""
Diversity rules for playlist assembly.

SelectionState accumulates what has been chosen so far. filter_eligible()
applies the hard rules from DiversityRules before scoring:
- tracks already chosen are excluded
- an artist inside its spacing cooldown is excluded
- an artist at max_tracks_per_artist is excluded
- an album at max_tracks_per_album is excluded (when the cap is set)
- genre cooldown: a track is excluded when it has non-anchor genres and
  every one of them appeared within the last genre_spacing positions
  (anchor genres = required/primary/requested, never cooled down)
- minutes mode: a track that would overshoot target * (1 + tolerance)
  is excluded

The soft side of diversity (album repeats, decade dominance) is the
diversity scorer in scoring.py.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from playlist_engine.playlist.matching_index import MatchingIndex, TrackMetadata
from playlist_engine.playlist.strategy import DiversityRules

logger = logging.getLogger(__name__)

REJECT_CHOSEN = "already_chosen"
REJECT_ARTIST_SPACING = "artist_spacing"
REJECT_ARTIST_CAP = "artist_cap"
REJECT_ALBUM_CAP = "album_cap"
REJECT_GENRE_COOLDOWN = "genre_cooldown"
REJECT_DURATION = "duration_overshoot"


@dataclass
class SelectionState:
    """Mutable per-assembly record of chosen tracks. Mutated once per accepted track."""
    artist_counts: Counter = field(default_factory=Counter)
    genre_counts: Counter = field(default_factory=Counter)
    album_counts: Counter = field(default_factory=Counter)
    artist_last_position: Dict[str, int] = field(default_factory=dict)
    genre_last_position: Dict[str, int] = field(default_factory=dict)
    chosen: List[str] = field(default_factory=list)
    chosen_metadata: List[TrackMetadata] = field(default_factory=list)
    total_duration: float = 0.0

    @property
    def count(self) -> int:
        return len(self.chosen)

    @property
    def next_position(self) -> int:
        return len(self.chosen)

    def record(self, meta: TrackMetadata, duration: float) -> None:
        position = self.next_position
        self.chosen.append(meta.track_id)
        self.chosen_metadata.append(meta)
        self.artist_counts[meta.artist_key] += 1
        self.artist_last_position[meta.artist_key] = position
        if meta.album_key:
            self.album_counts[meta.album_key] += 1
        for genre in meta.normalized_genres:
            self.genre_counts[genre] += 1
            self.genre_last_position[genre] = position
        self.total_duration += duration

    def recent(self, window: int) -> List[TrackMetadata]:
        if window <= 0:
            return []
        return self.chosen_metadata[-window:]


@dataclass(frozen=True)
class EligibilityResult:
    """
    Attributes:
        eligible: Candidate ids that pass every hard rule, in candidate order
        rejected: Rejection reason -> number of candidates rejected for it
    """
    eligible: Tuple[str, ...]
    rejected: Dict[str, int] = field(default_factory=dict)


def rejection_reason(
    meta: TrackMetadata,
    state: SelectionState,
    rules: DiversityRules,
    *,
    anchor_genres: FrozenSet[str] = frozenset(),
    duration: Optional[float] = None,
    max_total_duration: Optional[float] = None,
    chosen: Optional[Set[str]] = None,
) -> Optional[str]:
    """First hard rule ``meta`` violates, or None when eligible."""
    chosen_ids = chosen if chosen is not None else set(state.chosen)
    if meta.track_id in chosen_ids:
        return REJECT_CHOSEN

    position = state.next_position
    last = state.artist_last_position.get(meta.artist_key)
    if last is not None and position - last <= rules.artist_spacing:
        return REJECT_ARTIST_SPACING

    if state.artist_counts[meta.artist_key] >= rules.max_tracks_per_artist:
        return REJECT_ARTIST_CAP

    if rules.max_tracks_per_album is not None and meta.album_key:
        if state.album_counts[meta.album_key] >= rules.max_tracks_per_album:
            return REJECT_ALBUM_CAP

    if rules.genre_spacing > 0:
        free_genres = [g for g in meta.normalized_genres if g.lower() not in anchor_genres]
        if free_genres and all(
            g in state.genre_last_position and position - state.genre_last_position[g] <= rules.genre_spacing
            for g in free_genres
        ):
            return REJECT_GENRE_COOLDOWN

    if max_total_duration is not None and duration is not None:
        if state.total_duration + duration > max_total_duration:
            return REJECT_DURATION

    return None


def filter_eligible(
    candidate_ids: Iterable[str],
    index: MatchingIndex,
    state: SelectionState,
    rules: DiversityRules,
    *,
    anchor_genres: Iterable[str] = (),
    max_total_duration: Optional[float] = None,
    default_track_seconds: float = 180.0,
) -> EligibilityResult:
    """Apply every hard rule to a candidate list."""
    anchors = frozenset(g.lower() for g in anchor_genres)
    chosen = set(state.chosen)
    eligible: List[str] = []
    rejected: Counter = Counter()

    for track_id in candidate_ids:
        meta = index.track_metadata[track_id]
        duration = meta.duration if meta.duration and meta.duration > 0 else default_track_seconds
        reason = rejection_reason(
            meta, state, rules,
            anchor_genres=anchors,
            duration=duration,
            max_total_duration=max_total_duration,
            chosen=chosen,
        )
        if reason is None:
            eligible.append(track_id)
        else:
            rejected[reason] += 1

    return EligibilityResult(eligible=tuple(eligible), rejected=dict(rejected))


def anchor_genres_for(
    required: Sequence[str],
    primary: Sequence[str],
    requested: Sequence[str],
) -> FrozenSet[str]:
    return frozenset(g.lower() for g in list(required) + list(primary) + list(requested) if g)

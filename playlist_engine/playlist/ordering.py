"""
Energy levels and transition annotation for an assembled playlist.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from playlist_engine.playlist.matching_index import MatchingIndex, TrackMetadata
from playlist_engine.playlist.strategy import (
    HIGH,
    HIGH_ENERGY_MOODS,
    LOW,
    LOW_ENERGY_MOODS,
    OrderingSection,
    resolve_section,
)
from playlist_engine.tags.inference import infer_activity_from_bpm, infer_mood_from_genres
from playlist_engine.tags.tempo import MEDIUM, tempo_distance

logger = logging.getLogger(__name__)

HIGH_ENERGY_ACTIVITIES = frozenset({"workout", "running", "party", "dance"})
LOW_ENERGY_ACTIVITIES = frozenset({"sleep", "meditation", "relaxing", "reading"})

# Multiplicative transition factors
SAME_ARTIST_FACTOR = 0.2
SAME_ALBUM_FACTOR = 0.5
GENRE_CONTINUITY_FACTOR = 1.1
GENRE_CHANGE_FACTOR = 0.9
TAG_CONTINUITY_FACTOR = 1.05
TAG_CHANGE_FACTOR = 0.95
TEMPO_SMOOTH_FACTOR = 1.2
TEMPO_JUMP_FACTOR = 0.8
CLOSE_YEAR_FACTOR = 1.05
DISTANT_YEAR_FACTOR = 0.95
CLOSE_YEAR_GAP = 5
DISTANT_YEAR_GAP = 20


def derive_energy_level(moods: Iterable[str], activities: Iterable[str]) -> str:
    """
    +1 per high-energy mood/activity, -1 per low-energy one.
    A total of 2 or more is "high", -2 or less is "low", anything else "medium".
    """
    score = 0
    for mood in moods:
        lower = mood.lower()
        if lower in HIGH_ENERGY_MOODS:
            score += 1
        elif lower in LOW_ENERGY_MOODS:
            score -= 1
    for activity in activities:
        lower = activity.lower()
        if lower in HIGH_ENERGY_ACTIVITIES:
            score += 1
        elif lower in LOW_ENERGY_ACTIVITIES:
            score -= 1

    if score >= 2:
        return HIGH
    if score <= -2:
        return LOW
    return MEDIUM


def track_energy_level(meta: TrackMetadata) -> Optional[str]:
    """Energy level from tags, else from genre/BPM inference; None without any signal."""
    moods = list(meta.moods) or infer_mood_from_genres(meta.normalized_genres)
    activities = list(meta.activities) or infer_activity_from_bpm(meta.bpm)
    if not moods and not activities:
        return None
    return derive_energy_level(moods, activities)


def calculate_transition_score(current: TrackMetadata, previous: Optional[TrackMetadata]) -> float:
    """How smoothly ``current`` follows ``previous`` (1.0 = neutral)."""
    if previous is None:
        return 1.0

    score = 1.0
    if current.artist_key == previous.artist_key:
        score *= SAME_ARTIST_FACTOR
    if current.album_key and current.album_key == previous.album_key:
        score *= SAME_ALBUM_FACTOR

    if set(current.normalized_genres) & set(previous.normalized_genres):
        score *= GENRE_CONTINUITY_FACTOR
    else:
        score *= GENRE_CHANGE_FACTOR

    current_tags = {t.lower() for t in current.moods + current.activities}
    previous_tags = {t.lower() for t in previous.moods + previous.activities}
    if current_tags and previous_tags:
        score *= TAG_CONTINUITY_FACTOR if current_tags & previous_tags else TAG_CHANGE_FACTOR

    distance = tempo_distance(current.tempo_bucket, previous.tempo_bucket)
    if distance is not None:
        score *= TEMPO_SMOOTH_FACTOR if distance <= 1 else TEMPO_JUMP_FACTOR

    if current.year and previous.year:
        gap = abs(current.year - previous.year)
        if gap < CLOSE_YEAR_GAP:
            score *= CLOSE_YEAR_FACTOR
        elif gap > DISTANT_YEAR_GAP:
            score *= DISTANT_YEAR_FACTOR

    return round(score, 4)


@dataclass(frozen=True)
class OrderedTrack:
    position: int
    track_id: str
    section: str
    transition_score: float
    energy_level: Optional[str]
    reasons: Tuple[str, ...] = ()


def annotate_order(
    selections: Sequence,
    sections: Sequence[OrderingSection],
    index: MatchingIndex,
) -> List[OrderedTrack]:
    """
    Attach position, section, energy and transition score to each selection.

    ``selections`` are assembly selections (``track_id``, ``section``,
    ``reasons``); a selection without a section is placed by its position.
    """
    ordered: List[OrderedTrack] = []
    previous: Optional[TrackMetadata] = None
    total = len(selections)

    for position, selection in enumerate(selections):
        meta = index.track_metadata[selection.track_id]
        section_name = getattr(selection, "section", None)
        if not section_name:
            section_name = resolve_section(sections, position / total if total else 0.0).name
        ordered.append(OrderedTrack(
            position=position,
            track_id=meta.track_id,
            section=section_name,
            transition_score=calculate_transition_score(meta, previous),
            energy_level=track_energy_level(meta),
            reasons=tuple(r.explanation for r in getattr(selection, "reasons", ())),
        ))
        previous = meta

    if ordered:
        avg = sum(t.transition_score for t in ordered[1:]) / max(1, len(ordered) - 1)
        logger.debug("Transition annotation: tracks=%d avg_transition=%.3f", len(ordered), avg)
    return ordered

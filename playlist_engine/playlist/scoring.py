"""
Scoring Engine
==============
Per-criterion candidate scorers. Each returns a ScoreResult with a score in
[0, 1] and human-readable reasons. Scorers are pure: they read the Matching
Index metadata, the strategy and the current SelectionState, and never raise
for missing optional fields (BPM, tags, duration, year).

Criteria (weighted by strategy.scoring_weights, weights are relative):
- genre:     requested-genre affinity averaged with genre-mix fit
- tempo:     bucket equality/adjacency or distance from an explicit BPM range
- mood:      explicit tags -> genre inference -> tempo inference -> neutral 0.5
- activity:  explicit tags -> BPM -> genre -> duration -> neutral 0.5
- diversity: soft penalties for album repeats and decade dominance

score_candidate() adds the flow-arc section alignment term, the duration
fit term (minutes mode) and suggestion bonuses on top of the weighted sum.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from playlist_engine.genre.normalize import normalize_genre
from playlist_engine.playlist.config import EngineConfig
from playlist_engine.playlist.diversity import SelectionState
from playlist_engine.playlist.matching_index import TrackMetadata
from playlist_engine.playlist.ordering import track_energy_level
from playlist_engine.playlist.request import PlaylistRequest, TempoSpec
from playlist_engine.playlist.strategy import (
    DiversityRules,
    GenreMixGuidance,
    OrderingSection,
    PlaylistStrategy,
)
from playlist_engine.string_utils import name_key_set, normalize_name_key
from playlist_engine.tags.activity import normalize_activity_category
from playlist_engine.tags.inference import (
    infer_activity_from_bpm,
    infer_activity_from_duration,
    infer_activity_from_genres,
    infer_mood_from_genres,
    infer_mood_from_tempo,
)
from playlist_engine.tags.mood import normalize_mood_category
from playlist_engine.tags.tempo import UNKNOWN, tempo_distance

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5

PARTIAL_GENRE_FACTOR = 0.7
MISSING_REQUIRED_GENRE_FACTOR = 0.3

LEVEL_MATCH = 1.0
LEVEL_ADJACENT = 0.6
LEVEL_OPPOSITE = 0.2

SUGGESTED_ARTIST_BONUS = 0.3
SUGGESTED_ALBUM_BONUS = 0.3
SUGGESTED_TRACK_BONUS = 0.5

_ENERGY_ORDER = {"low": 0, "medium": 1, "high": 2}


@dataclass(frozen=True)
class TrackReason:
    type: str
    explanation: str
    score: Optional[float] = None


@dataclass(frozen=True)
class ScoreResult:
    score: float
    reasons: Tuple[TrackReason, ...] = ()


def _clip(value: float) -> float:
    return min(1.0, max(0.0, value))


def _result(kind: str, score: float, explanation: Optional[str] = None) -> ScoreResult:
    score = round(_clip(score), 4)
    if explanation is None:
        return ScoreResult(score=score)
    return ScoreResult(score=score, reasons=(TrackReason(kind, explanation, score),))


def _level_score(distance: Optional[int]) -> float:
    if distance is None:
        return NEUTRAL_SCORE
    return {0: LEVEL_MATCH, 1: LEVEL_ADJACENT}.get(distance, LEVEL_OPPOSITE)


# =============================================================================
# Genre
# =============================================================================

def _genre_keys(genres: Iterable[str]) -> FrozenSet[str]:
    keys = set()
    for genre in genres:
        if not genre:
            continue
        keys.add(genre.strip().lower())
        normalized = normalize_genre(genre)
        if normalized:
            keys.add(normalized.lower())
    return frozenset(keys)


def _partial_genre_match(genre_key: str, track_keys: Iterable[str]) -> bool:
    return any(genre_key in t or t in genre_key for t in track_keys)


def _matched_genres(track_keys: FrozenSet[str], wanted: Sequence[str]) -> Tuple[List[str], List[str]]:
    exact: List[str] = []
    partial: List[str] = []
    for genre in wanted:
        keys = _genre_keys([genre])
        if keys & track_keys:
            exact.append(genre)
        elif any(_partial_genre_match(k, track_keys) for k in keys):
            partial.append(genre)
    return exact, partial


def calculate_genre_match(
    meta: TrackMetadata,
    requested_genres: Sequence[str],
    required_genres: Sequence[str] = (),
) -> ScoreResult:
    """
    Requested-genre affinity.

    Exact (case-insensitive, normalization-aware) matches score
    matched / requested; substring matches count 0.7 each. A track matching
    none of the required genres is multiplied by 0.3.
    """
    wanted = [g for g in requested_genres if g and g.strip()]
    if not wanted:
        return _result("genre", 1.0)

    track_keys = frozenset(g.lower() for g in meta.normalized_genres)
    exact, partial = _matched_genres(track_keys, wanted)
    score = (len(exact) + PARTIAL_GENRE_FACTOR * len(partial)) / len(wanted)

    required = [g for g in required_genres if g and g.strip()]
    if required:
        req_exact, req_partial = _matched_genres(track_keys, required)
        if not req_exact and not req_partial:
            score *= MISSING_REQUIRED_GENRE_FACTOR

    if exact:
        explanation = f"Genre matches {', '.join(exact)}"
    elif partial:
        explanation = f"Genre related to {', '.join(partial)}"
    else:
        explanation = "Genre outside the requested genres"
    return _result("genre", score, explanation)


def calculate_genre_mix_fit(
    meta: TrackMetadata,
    guidance: Optional[GenreMixGuidance],
    chosen: Sequence[TrackMetadata],
) -> ScoreResult:
    """
    How well the candidate keeps the primary/secondary genre ratio on target.

    Without guidance or secondary genres the score is 1.0. When primary
    genres are over-represented among the chosen tracks, secondary-genre
    candidates are boosted to 1.0. Tracks outside both lists score lower the
    less their genres resemble either list.
    """
    if guidance is None or not guidance.secondary_genres:
        return _result("genre_mix", 1.0)

    primary = _genre_keys(guidance.primary_genres)
    secondary = _genre_keys(guidance.secondary_genres)

    def classify(m: TrackMetadata) -> Optional[str]:
        keys = frozenset(g.lower() for g in m.normalized_genres)
        if keys & primary:
            return "primary"
        if keys & secondary:
            return "secondary"
        return None

    counts = Counter(classify(m) for m in chosen)
    classified = counts["primary"] + counts["secondary"]
    primary_share = counts["primary"] / classified if classified else None
    over_primary = primary_share is not None and primary_share > guidance.primary_ratio

    kind = classify(meta)
    if kind == "secondary":
        if over_primary:
            return _result(
                "genre_mix", 1.0,
                f"Boosts secondary genre share (primary at {primary_share:.0%}, "
                f"target {guidance.primary_ratio:.0%})",
            )
        return _result("genre_mix", 0.8, "Matches a secondary genre")
    if kind == "primary":
        if over_primary:
            return _result("genre_mix", 0.7, "Primary genres already over-represented")
        return _result("genre_mix", 1.0, "Matches a primary genre")

    track_keys = [g.lower() for g in meta.normalized_genres]
    if not track_keys:
        return _result("genre_mix", 0.3, "No genre information for genre mix")
    targets = primary | secondary
    related = sum(1 for key in track_keys if _partial_genre_match(key, targets))
    return _result(
        "genre_mix",
        0.2 + 0.4 * related / len(track_keys),
        "Outside the primary/secondary genre mix",
    )


# =============================================================================
# Diversity
# =============================================================================

def calculate_diversity(
    meta: TrackMetadata,
    state: SelectionState,
    rules: DiversityRules,
    config: EngineConfig,
) -> ScoreResult:
    """
    Soft penalties for attributes already over-represented in the selection.

    Album repeats beyond the album cap (strategy value, else the engine
    default) and a candidate from a decade dominating the recent window are
    penalized proportionally; artist repeats cost a little.
    """
    score = 1.0
    reasons: List[TrackReason] = []

    album_cap = rules.max_tracks_per_album or config.default_album_cap
    if meta.album_key:
        album_count = state.album_counts[meta.album_key]
        if album_count >= album_cap:
            penalty = 0.3 * (album_count - album_cap + 1)
            score -= penalty
            reasons.append(TrackReason(
                "diversity", f"Album '{meta.album}' already used {album_count} times", -penalty,
            ))

    artist_count = state.artist_counts[meta.artist_key]
    if artist_count:
        penalty = 0.1 * artist_count
        score -= penalty
        reasons.append(TrackReason(
            "diversity", f"{meta.artist} already appears {artist_count} time(s)", -penalty,
        ))

    decade = meta.decade
    window = [m.decade for m in state.recent(config.decade_window) if m.decade is not None]
    if decade is not None and len(window) >= 3:
        dominant, dominant_count = Counter(window).most_common(1)[0]
        share = dominant_count / len(window)
        if dominant == decade and share >= config.decade_dominance:
            penalty = 0.3 * share
            score -= penalty
            reasons.append(TrackReason(
                "diversity", f"Recent picks dominated by the {decade}s ({share:.0%})", -penalty,
            ))

    score = round(_clip(score), 4)
    if not reasons:
        reasons.append(TrackReason("diversity", "Adds variety", score))
    return ScoreResult(score=score, reasons=tuple(reasons))


# =============================================================================
# Mood / activity
# =============================================================================

def _requested_categories(values: Iterable[str], normalizer) -> Dict[str, str]:
    """lowercase key -> display name, canonical category where recognized."""
    result: Dict[str, str] = {}
    for value in values:
        if not value or not value.strip():
            continue
        name = normalizer(value) or value.strip()
        result.setdefault(name.lower(), name)
    return result


def _first_match(candidates: Iterable[str], requested: Dict[str, str]) -> List[str]:
    matched: List[str] = []
    for candidate in candidates:
        name = requested.get(candidate.lower())
        if name and name not in matched:
            matched.append(name)
    return matched


def calculate_mood_match(meta: TrackMetadata, requested_moods: Sequence[str]) -> ScoreResult:
    """
    Explicit mood tags first; genre and tempo inference as fallbacks.

    Tags that miss the request fall through to inference. A track without a
    matching signal scores the neutral 0.5, never 0.
    """
    requested = _requested_categories(requested_moods, normalize_mood_category)
    if not requested:
        return _result("mood", 1.0)

    if meta.moods:
        matched = _first_match(meta.moods, requested)
        if matched:
            return _result(
                "mood", 0.8 + 0.2 * len(matched) / len(requested),
                f"Mood matches {', '.join(matched)}",
            )

    matched = _first_match(infer_mood_from_genres(meta.normalized_genres), requested)
    if matched:
        return _result("mood", 0.7, f"Genre suggests {', '.join(matched)} mood")

    matched = _first_match(infer_mood_from_tempo(meta.tempo_bucket), requested)
    if matched:
        return _result("mood", 0.6, f"{meta.tempo_bucket.capitalize()} tempo suggests {', '.join(matched)} mood")

    if meta.moods:
        return _result("mood", NEUTRAL_SCORE, f"Mood tags ({', '.join(meta.moods)}) differ from request")
    return _result("mood", NEUTRAL_SCORE, "No mood metadata; neutral mood score")


def calculate_activity_match(meta: TrackMetadata, requested_activities: Sequence[str]) -> ScoreResult:
    """
    Explicit activity tags first; then BPM, genre and duration inference.

    Tags that miss the request fall through to inference. Every fallback step
    scores at least 0.5.
    """
    requested = _requested_categories(requested_activities, normalize_activity_category)
    if not requested:
        return _result("activity", 1.0)

    if meta.activities:
        matched = _first_match(meta.activities, requested)
        if matched:
            return _result(
                "activity", 0.8 + 0.2 * len(matched) / len(requested),
                f"Tagged for {', '.join(matched)}",
            )

    matched = _first_match(infer_activity_from_bpm(meta.bpm), requested)
    if matched:
        return _result("activity", 0.7, f"{meta.bpm:.0f} BPM suits {', '.join(matched)}")

    matched = _first_match(infer_activity_from_genres(meta.normalized_genres), requested)
    if matched:
        return _result("activity", 0.65, f"Genre suits {', '.join(matched)}")

    matched = _first_match(infer_activity_from_duration(meta.duration), requested)
    if matched:
        return _result("activity", 0.6, f"Track length suits {', '.join(matched)}")

    if meta.activities:
        return _result(
            "activity", NEUTRAL_SCORE,
            f"Activity tags ({', '.join(meta.activities)}) differ from request",
        )
    return _result("activity", NEUTRAL_SCORE, "No activity metadata; neutral activity score")


# =============================================================================
# Tempo / section / duration
# =============================================================================

def calculate_tempo_match(meta: TrackMetadata, tempo: TempoSpec) -> ScoreResult:
    """
    Bucket requests: 1.0 same bucket, 0.6 adjacent, 0.2 opposite.
    BPM-range requests: 1.0 inside, linear decay with distance outside
    (one range width, at least 10 BPM, reaches 0). Unknown BPM scores 0.5.
    """
    if tempo.bpm_range is not None:
        bpm_range = tempo.bpm_range
        if meta.bpm is None or meta.bpm <= 0:
            return _result("tempo", NEUTRAL_SCORE, "BPM unknown")
        if bpm_range.contains(meta.bpm):
            return _result(
                "tempo", 1.0,
                f"{meta.bpm:.0f} BPM within {bpm_range.min:.0f}-{bpm_range.max:.0f}",
            )
        distance = min(abs(meta.bpm - bpm_range.min), abs(meta.bpm - bpm_range.max))
        width = max(bpm_range.max - bpm_range.min, 10.0)
        return _result(
            "tempo", 1.0 - distance / width,
            f"{meta.bpm:.0f} BPM is {distance:.0f} BPM outside {bpm_range.min:.0f}-{bpm_range.max:.0f}",
        )

    if tempo.bucket:
        if meta.tempo_bucket == UNKNOWN:
            return _result("tempo", NEUTRAL_SCORE, "Tempo unknown")
        distance = tempo_distance(meta.tempo_bucket, tempo.bucket)
        if distance == 0:
            return _result("tempo", LEVEL_MATCH, f"{meta.tempo_bucket.capitalize()} tempo as requested")
        return _result(
            "tempo", _level_score(distance),
            f"{meta.tempo_bucket.capitalize()} tempo, {tempo.bucket} requested",
        )

    return _result("tempo", 1.0)


def calculate_section_alignment(
    meta: TrackMetadata,
    section: Optional[OrderingSection],
    energy: Optional[str] = None,
) -> ScoreResult:
    """Average tempo/energy agreement with the active flow-arc section."""
    if section is None:
        return _result("section", 1.0)

    parts: List[float] = []
    if section.tempo_target:
        parts.append(_level_score(tempo_distance(meta.tempo_bucket, section.tempo_target)))
    if section.energy_level:
        if energy is None or energy not in _ENERGY_ORDER or section.energy_level not in _ENERGY_ORDER:
            parts.append(NEUTRAL_SCORE)
        else:
            parts.append(_level_score(abs(_ENERGY_ORDER[energy] - _ENERGY_ORDER[section.energy_level])))

    if not parts:
        return _result("section", 1.0)
    score = sum(parts) / len(parts)
    return _result("section", score, f"Fits the {section.name} section ({score:.2f})")


def calculate_duration_fit(
    meta: TrackMetadata,
    *,
    remaining_seconds: float,
    remaining_slots: int,
    default_track_seconds: float = 180.0,
) -> ScoreResult:
    """Linear fit to the average remaining duration per slot, 50% tolerance."""
    if remaining_seconds <= 0:
        return _result("duration", 0.0)
    target = remaining_seconds / max(1, remaining_slots)
    duration = meta.duration if meta.duration and meta.duration > 0 else default_track_seconds
    score = max(0.0, 1.0 - abs(duration - target) / (target * 0.5))
    return _result("duration", score, f"{duration:.0f}s vs {target:.0f}s per remaining slot")


# =============================================================================
# Combination
# =============================================================================

@dataclass(frozen=True)
class ScoringContext:
    """Per-request inputs shared by every candidate score."""
    request: PlaylistRequest
    strategy: PlaylistStrategy
    config: EngineConfig
    requested_genres: Tuple[str, ...] = ()
    suggested_artist_keys: FrozenSet[str] = frozenset()
    suggested_album_keys: FrozenSet[str] = frozenset()
    suggested_title_keys: FrozenSet[str] = frozenset()
    target_seconds: Optional[float] = None
    target_tracks: Optional[int] = None

    @classmethod
    def build(
        cls,
        request: PlaylistRequest,
        strategy: PlaylistStrategy,
        config: EngineConfig,
        *,
        target_tracks: Optional[int] = None,
    ) -> "ScoringContext":
        return cls(
            request=request,
            strategy=strategy,
            config=config,
            requested_genres=tuple(request.genres),
            suggested_artist_keys=frozenset(name_key_set(request.suggested_artists)),
            suggested_album_keys=frozenset(name_key_set(request.suggested_albums)),
            suggested_title_keys=frozenset(name_key_set(request.suggested_tracks)),
            target_seconds=request.target_seconds,
            target_tracks=target_tracks if target_tracks is not None else request.target_tracks,
        )


def suggestion_bonus(meta: TrackMetadata, context: ScoringContext) -> ScoreResult:
    """Unclipped bonus for suggested artists, albums and titles."""
    bonus = 0.0
    reasons: List[TrackReason] = []
    if meta.artist_key in context.suggested_artist_keys:
        bonus += SUGGESTED_ARTIST_BONUS
        reasons.append(TrackReason("suggestion", f"Suggested artist {meta.artist}", SUGGESTED_ARTIST_BONUS))
    if meta.album and normalize_name_key(meta.album) in context.suggested_album_keys:
        bonus += SUGGESTED_ALBUM_BONUS
        reasons.append(TrackReason("suggestion", f"Suggested album {meta.album}", SUGGESTED_ALBUM_BONUS))
    if meta.title and normalize_name_key(meta.title) in context.suggested_title_keys:
        bonus += SUGGESTED_TRACK_BONUS
        reasons.append(TrackReason("suggestion", f"Suggested track {meta.title}", SUGGESTED_TRACK_BONUS))
    return ScoreResult(score=round(bonus, 4), reasons=tuple(reasons))


@dataclass(frozen=True)
class CandidateScore:
    """
    Attributes:
        total: Ranking score (weighted criteria + section/duration terms + bonuses)
        components: Criterion name -> score
        reasons: Every reason produced by the component scorers
    """
    track_id: str
    total: float
    components: Dict[str, float] = field(default_factory=dict)
    reasons: Tuple[TrackReason, ...] = ()


def score_candidate(
    meta: TrackMetadata,
    context: ScoringContext,
    state: SelectionState,
    section: Optional[OrderingSection] = None,
) -> CandidateScore:
    """Combine every scorer into one ranking score for ``meta`` at the current position."""
    strategy = context.strategy
    config = context.config
    weights = strategy.scoring_weights

    genre_match = calculate_genre_match(meta, context.requested_genres, strategy.constraints.required_genres)
    genre_mix = calculate_genre_mix_fit(meta, strategy.genre_mix_guidance, state.chosen_metadata)
    tempo = calculate_tempo_match(meta, context.request.tempo)
    mood = calculate_mood_match(meta, context.request.mood)
    activity = calculate_activity_match(meta, context.request.activity)
    diversity = calculate_diversity(meta, state, strategy.diversity_rules, config)

    genre_score = (genre_match.score + genre_mix.score) / 2.0
    components: Dict[str, float] = {
        "genre": round(genre_score, 4),
        "tempo": tempo.score,
        "mood": mood.score,
        "activity": activity.score,
        "diversity": diversity.score,
    }
    weighted = (
        weights.genre_match * genre_score
        + weights.tempo_match * tempo.score
        + weights.mood_match * mood.score
        + weights.activity_match * activity.score
        + weights.diversity * diversity.score
    )
    total = weighted / weights.total if weights.total > 0 else 0.0

    reasons: List[TrackReason] = []
    for part in (genre_match, genre_mix, tempo, mood, activity, diversity):
        reasons.extend(part.reasons)

    alignment = calculate_section_alignment(meta, section, track_energy_level(meta))
    components["section"] = alignment.score
    total += config.section_alignment_weight * alignment.score
    reasons.extend(alignment.reasons)

    if context.target_seconds is not None:
        remaining = context.target_seconds - state.total_duration
        expected = context.target_tracks or max(1, round(context.target_seconds / config.default_track_seconds))
        fit = calculate_duration_fit(
            meta,
            remaining_seconds=remaining,
            remaining_slots=max(1, expected - state.count),
            default_track_seconds=config.default_track_seconds,
        )
        components["duration"] = fit.score
        total += config.duration_fit_weight * fit.score
        reasons.extend(fit.reasons)

    bonus = suggestion_bonus(meta, context)
    if bonus.score:
        components["suggestion"] = bonus.score
        total += bonus.score
        reasons.extend(bonus.reasons)

    return CandidateScore(
        track_id=meta.track_id,
        total=round(total, 6),
        components=components,
        reasons=tuple(reasons),
    )

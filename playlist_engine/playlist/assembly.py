"""
Playlist Assembly
=================
The selection loop: one pick per position until the length target is met or
no eligible candidate remains.

Per position:
1. Normalized position p = count / target_tracks (or duration / target_seconds)
   resolves the active flow-arc section
2. Hard diversity rules reduce the pool to eligible candidates
3. Every eligible candidate is scored (criteria + section alignment +
   duration fit + suggestion bonuses)
4. surprise=0: highest score wins, ties broken by track id.
   surprise>0: sample among the top K proportionally to score, with
   K = 1 + round(surprise * (max_top_k - 1)) and an injected numpy Generator
5. SelectionState is updated

When the request sets min_artists and the loop ends with fewer distinct
artists, enforce_min_artists() swaps the weakest repeated-artist picks for
the best tracks by unseen artists. This applies to every strategy, not just
the built-in heuristic whose artist cap already accounts for min_artists.

Running out of candidates is not an error: the loop stops and reports a
MatchingError as the stop reason alongside the under-filled selection.
"""
from __future__ import annotations

import json
import logging
import math
import zlib
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from playlist_engine.playlist.config import EngineConfig, default_engine_config
from playlist_engine.playlist.diversity import SelectionState, anchor_genres_for, filter_eligible
from playlist_engine.playlist.errors import MatchingError
from playlist_engine.playlist.filtering import CandidatePool
from playlist_engine.playlist.matching_index import MatchingIndex, TrackMetadata
from playlist_engine.playlist.request import PlaylistRequest
from playlist_engine.playlist.scoring import CandidateScore, ScoringContext, TrackReason, score_candidate
from playlist_engine.playlist.strategy import (
    OrderingSection,
    PlaylistStrategy,
    normalize_positions,
    resolve_section,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackSelection:
    track_id: str
    position: int
    score: float
    section: str
    components: Dict[str, float] = field(default_factory=dict)
    reasons: Tuple[TrackReason, ...] = ()


@dataclass(frozen=True)
class AssemblyResult:
    """
    Attributes:
        selections: Chosen tracks in playlist order
        target_met: Whether the length target was reached
        stop_reason: Why selection ended early (None when the target was met)
        stats: Diagnostics (target, rejections per rule, sampling window)
    """
    selections: Tuple[TrackSelection, ...]
    target_met: bool
    stop_reason: Optional[MatchingError] = None
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def track_ids(self) -> List[str]:
        return [s.track_id for s in self.selections]

    @property
    def under_filled(self) -> bool:
        return not self.target_met


def derive_seed(request: PlaylistRequest) -> int:
    """request.seed when given, else a CRC32 of the request's canonical JSON."""
    if request.seed is not None:
        return int(request.seed)
    payload = json.dumps(request.to_dict(), sort_keys=True, default=str)
    return zlib.crc32(payload.encode("utf-8"))


def top_k_for(surprise: float, max_top_k: int, eligible_count: int) -> int:
    """Sampling window size: 1 at surprise=0, max_top_k at surprise=1."""
    k = 1 + int(math.floor(surprise * (max_top_k - 1) + 0.5))
    return max(1, min(k, eligible_count))


def select_candidate(
    scored: Sequence[CandidateScore],
    *,
    surprise: float,
    config: EngineConfig,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[CandidateScore, int]:
    """Pick one candidate. Returns (choice, window size used)."""
    ranked = sorted(scored, key=lambda c: (-c.total, c.track_id))
    k = top_k_for(surprise, config.max_top_k, len(ranked))
    if k == 1 or rng is None:
        return ranked[0], 1

    window = ranked[:k]
    weights = np.array([max(c.total, config.min_sampling_weight) for c in window], dtype=float)
    probabilities = weights / weights.sum()
    choice = int(rng.choice(len(window), p=probabilities))
    return window[choice], k


def _pool_ids(pool: Union[CandidatePool, Sequence[str]]) -> List[str]:
    if isinstance(pool, CandidatePool):
        return list(pool.track_ids)
    return list(pool)


def _estimated_track_count(
    track_ids: Sequence[str],
    index: MatchingIndex,
    target_seconds: float,
    default_track_seconds: float,
) -> int:
    durations = [
        index.track_metadata[tid].duration for tid in track_ids
        if index.track_metadata[tid].duration and index.track_metadata[tid].duration > 0
    ]
    avg = sum(durations) / len(durations) if durations else default_track_seconds
    return max(1, int(math.ceil(target_seconds / avg)))


def _track_seconds(meta: TrackMetadata, config: EngineConfig) -> float:
    return meta.duration if meta.duration and meta.duration > 0 else config.default_track_seconds


def enforce_min_artists(
    selections: Sequence[TrackSelection],
    *,
    min_artists: int,
    candidate_ids: Sequence[str],
    index: MatchingIndex,
    context: ScoringContext,
    state: SelectionState,
    sections: Sequence[OrderingSection],
    config: EngineConfig,
    min_total_duration: Optional[float] = None,
    max_total_duration: Optional[float] = None,
) -> Tuple[List[TrackSelection], int]:
    """
    Swap tracks by repeated artists for tracks by unseen artists until
    ``min_artists`` distinct artists are present or no swap is possible.

    The lowest-scoring selection whose artist appears more than once is
    replaced first, by the best-scoring unused track of an unseen artist.
    A swap keeps the position and section of the replaced track and never
    moves the total duration outside the minutes-mode bounds.

    Returns:
        (selections, number of swaps made)
    """
    result = list(selections)
    artist_counts = Counter(index.track_metadata[s.track_id].artist_key for s in result)
    if len(artist_counts) >= min_artists:
        return result, 0

    chosen = {s.track_id for s in result}
    best_by_artist: Dict[str, CandidateScore] = {}
    for track_id in candidate_ids:
        if track_id in chosen:
            continue
        meta = index.track_metadata[track_id]
        if meta.artist_key in artist_counts:
            continue
        scored = score_candidate(meta, context, state)
        best = best_by_artist.get(meta.artist_key)
        if best is None or (-scored.total, scored.track_id) < (-best.total, best.track_id):
            best_by_artist[meta.artist_key] = scored
    replacements = sorted(best_by_artist.values(), key=lambda c: (-c.total, c.track_id))

    total_duration = sum(_track_seconds(index.track_metadata[s.track_id], config) for s in result)
    sections_by_name = {section.name: section for section in sections}
    swaps = 0
    for slot in sorted(range(len(result)), key=lambda i: (result[i].score, -i)):
        if len(artist_counts) >= min_artists or not replacements:
            break
        old = result[slot]
        old_meta = index.track_metadata[old.track_id]
        if artist_counts[old_meta.artist_key] < 2:
            continue

        old_seconds = _track_seconds(old_meta, config)
        for rank, candidate in enumerate(replacements):
            new_meta = index.track_metadata[candidate.track_id]
            new_total = total_duration - old_seconds + _track_seconds(new_meta, config)
            if max_total_duration is not None and new_total > max_total_duration:
                continue
            if (
                min_total_duration is not None
                and total_duration >= min_total_duration
                and new_total < min_total_duration
            ):
                continue

            rescored = score_candidate(new_meta, context, state, sections_by_name.get(old.section))
            result[slot] = TrackSelection(
                track_id=candidate.track_id,
                position=old.position,
                score=rescored.total,
                section=old.section,
                components=rescored.components,
                reasons=rescored.reasons,
            )
            artist_counts[old_meta.artist_key] -= 1
            artist_counts[new_meta.artist_key] += 1
            total_duration = new_total
            replacements.pop(rank)
            swaps += 1
            logger.debug(
                "min_artists swap at position %d: %s -> %s",
                old.position, old.track_id, candidate.track_id,
            )
            break

    if len(artist_counts) < min_artists:
        logger.warning(
            "Only %d distinct artists available; %d requested",
            len(artist_counts), min_artists,
        )
    return result, swaps


def _replay_state(selections: Sequence[TrackSelection], index: MatchingIndex, config: EngineConfig) -> SelectionState:
    state = SelectionState()
    for selection in selections:
        meta = index.track_metadata[selection.track_id]
        state.record(meta, _track_seconds(meta, config))
    return state


def assemble_playlist(
    *,
    pool: Union[CandidatePool, Sequence[str]],
    request: PlaylistRequest,
    strategy: PlaylistStrategy,
    index: MatchingIndex,
    config: Optional[EngineConfig] = None,
    rng: Optional[np.random.Generator] = None,
    anchor_genres: Sequence[str] = (),
) -> AssemblyResult:
    """
    Run the selection loop over ``pool``.

    Args:
        pool: Candidate track ids (all present in ``index``)
        request: Normalized request (length, surprise, tags, tempo)
        strategy: Weights, diversity rules and ordering plan
        index: Matching Index over the pool
        config: Engine knobs (defaults when omitted)
        rng: Random source for surprise>0; seeded from the request when omitted
        anchor_genres: Extra genres exempt from the genre cooldown
            (e.g. library spellings of the requested genres)

    Returns:
        AssemblyResult; never raises for an exhausted pool
    """
    config = config or default_engine_config()
    candidate_ids = _pool_ids(pool)
    sections = normalize_positions(strategy.ordering_plan)
    rules = strategy.diversity_rules

    target_tracks = request.target_tracks
    target_seconds = request.target_seconds
    max_total_duration = None
    min_total_duration = None
    if target_seconds is not None:
        max_total_duration = target_seconds * (1.0 + config.duration_tolerance)
        min_total_duration = target_seconds * (1.0 - config.duration_tolerance)
        estimated_tracks = _estimated_track_count(
            candidate_ids, index, target_seconds, config.default_track_seconds,
        )
    else:
        estimated_tracks = target_tracks

    if rng is None and request.surprise > 0:
        rng = np.random.default_rng(derive_seed(request))

    mix = strategy.genre_mix_guidance
    anchors = anchor_genres_for(
        strategy.constraints.required_genres,
        mix.primary_genres if mix is not None else (),
        list(request.genres) + list(anchor_genres),
    )
    context = ScoringContext.build(request, strategy, config, target_tracks=estimated_tracks)

    state = SelectionState()
    selections: List[TrackSelection] = []
    rejections: Counter = Counter()
    windows: List[int] = []
    stop_reason: Optional[MatchingError] = None

    def target_met() -> bool:
        if target_tracks is not None:
            return state.count >= target_tracks
        return state.total_duration >= min_total_duration

    while not target_met():
        position = state.count
        if position >= len(candidate_ids):
            stop_reason = MatchingError(
                "pool_exhausted",
                f"All {len(candidate_ids)} candidates used at position {position}",
                position=position,
            )
            break

        if target_tracks is not None:
            progress = position / target_tracks
        else:
            progress = state.total_duration / target_seconds
        section = resolve_section(sections, progress)

        eligibility = filter_eligible(
            candidate_ids, index, state, rules,
            anchor_genres=anchors,
            max_total_duration=max_total_duration,
            default_track_seconds=config.default_track_seconds,
        )
        rejections.update(eligibility.rejected)
        if not eligibility.eligible:
            stop_reason = MatchingError(
                "no_eligible_candidates",
                f"No eligible candidates at position {position}",
                position=position,
                details={"rejected": dict(eligibility.rejected)},
            )
            break

        scored = [
            score_candidate(index.track_metadata[tid], context, state, section)
            for tid in eligibility.eligible
        ]
        choice, window = select_candidate(scored, surprise=request.surprise, config=config, rng=rng)
        windows.append(window)

        meta = index.track_metadata[choice.track_id]
        state.record(meta, _track_seconds(meta, config))
        selections.append(TrackSelection(
            track_id=choice.track_id,
            position=position,
            score=choice.total,
            section=section.name,
            components=choice.components,
            reasons=choice.reasons,
        ))

    swaps = 0
    if request.min_artists and len(state.artist_counts) < request.min_artists:
        swapped, swaps = enforce_min_artists(
            selections,
            min_artists=request.min_artists,
            candidate_ids=candidate_ids,
            index=index,
            context=context,
            state=state,
            sections=sections,
            config=config,
            min_total_duration=min_total_duration,
            max_total_duration=max_total_duration,
        )
        if swaps:
            selections = swapped
            state = _replay_state(selections, index, config)

    met = target_met()
    stats: Dict[str, Any] = {
        "pool": len(candidate_ids),
        "target_tracks": target_tracks,
        "target_seconds": target_seconds,
        "selected": len(selections),
        "total_duration": round(state.total_duration, 2),
        "rejections": dict(rejections),
        "max_window": max(windows) if windows else 0,
        "distinct_artists": len(state.artist_counts),
        "min_artists_swaps": swaps,
    }
    logger.info(
        "stage=assembly | pool=%d target=%s selected=%d stop=%s",
        len(candidate_ids),
        target_tracks if target_tracks is not None else f"{target_seconds:.0f}s",
        len(selections),
        stop_reason.code if stop_reason is not None else "target_met",
    )
    if stop_reason is not None and not met:
        logger.warning("Playlist under-filled: %s", stop_reason.message)

    return AssemblyResult(
        selections=tuple(selections),
        target_met=met,
        stop_reason=None if met else stop_reason,
        stats=stats,
    )

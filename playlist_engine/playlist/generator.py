"""
Playlist Generator
==================
End-to-end orchestration of one generation request.

Stages:
    validate -> normalize -> recent filter -> index -> instructions/hints
    -> library summary -> strategy -> candidate pool -> assembly
    -> order annotation -> summary

Usage:
    result = generate_playlist(tracks=tracks, request=PlaylistRequest.from_dict(raw))
    result.track_ids, result.under_filled, result.summary
"""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from playlist_engine.genre.similarity import build_genre_co_occurrence, get_similar_genres
from playlist_engine.logging_utils import stage_timer, truncate_list
from playlist_engine.playlist.assembly import AssemblyResult, TrackSelection, assemble_playlist
from playlist_engine.playlist.config import EngineConfig, default_engine_config
from playlist_engine.playlist.errors import MatchingError
from playlist_engine.playlist.filtering import apply_recent_filter, build_candidate_pool
from playlist_engine.playlist.instructions import (
    apply_instruction_hints_to_request,
    merge_instructions_into_request,
    parse_strategy_hints_from_instructions,
)
from playlist_engine.playlist.matching_index import build_matching_index, summarize_library
from playlist_engine.playlist.ordering import OrderedTrack, annotate_order
from playlist_engine.playlist.request import PlaylistRequest, normalize_playlist_request, validate_request
from playlist_engine.playlist.strategy import (
    PlaylistStrategy,
    StrategyGenerator,
    normalize_positions,
    resolve_strategy,
)
from playlist_engine.playlist.summary import PlaylistSummary, summarize_playlist
from playlist_engine.tags.inference import InferenceHook, TagCache
from playlist_engine.tracks import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedPlaylist:
    """
    Attributes:
        id: Deterministic id (library root + normalized request + selected ids)
        track_ids: Selected track ids in playlist order
        ordered_tracks: Per-track position, section, energy, transition score, reasons
        requested_length: The request's LengthSpec as a dict
        under_filled: True when fewer tracks/minutes than requested were found
        stop_reason: Structured reason for an under-filled playlist
        stats: Per-stage diagnostics
    """
    id: str
    title: str
    description: str
    track_ids: Tuple[str, ...]
    ordered_tracks: Tuple[OrderedTrack, ...]
    selections: Tuple[TrackSelection, ...]
    summary: PlaylistSummary
    strategy: PlaylistStrategy
    request: PlaylistRequest
    requested_length: Dict[str, Any]
    under_filled: bool
    stop_reason: Optional[Dict[str, Any]] = None
    similar_genres: Tuple[str, ...] = ()
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "trackIds": list(self.track_ids),
            "tracks": [
                {
                    "position": t.position,
                    "trackId": t.track_id,
                    "section": t.section,
                    "energyLevel": t.energy_level,
                    "transitionScore": t.transition_score,
                    "score": s.score,
                    "reasons": list(t.reasons),
                }
                for t, s in zip(self.ordered_tracks, self.selections)
            ],
            "summary": self.summary.to_dict(),
            "strategy": self.strategy.to_dict(),
            "request": self.request.to_dict(),
            "requestedLength": dict(self.requested_length),
            "underFilled": self.under_filled,
            "stopReason": self.stop_reason,
            "similarGenres": list(self.similar_genres),
            "stats": self.stats,
        }


def playlist_id(library_root: Optional[str], request: PlaylistRequest, track_ids: Sequence[str]) -> str:
    payload = json.dumps(
        {"library": library_root or "", "request": request.to_dict(), "tracks": list(track_ids)},
        sort_keys=True,
        default=str,
    )
    return hashlib.md5(payload.encode("utf-8")).hexdigest()[:16]


def _as_hook(
    inference_hook: Union[InferenceHook, Callable[[Track], Mapping[str, Any]], None],
    config: EngineConfig,
) -> Optional[InferenceHook]:
    if inference_hook is None or isinstance(inference_hook, InferenceHook):
        return inference_hook
    return InferenceHook(
        inference_hook,
        timeout_seconds=config.inference_timeout,
        max_consecutive_failures=config.inference_max_failures,
    )


def generate_playlist(
    *,
    tracks: Sequence[Track],
    request: PlaylistRequest,
    config: Optional[EngineConfig] = None,
    strategy: Optional[PlaylistStrategy] = None,
    strategy_generator: Optional[StrategyGenerator] = None,
    rng: Optional[np.random.Generator] = None,
    inference_hook: Union[InferenceHook, Callable[[Track], Mapping[str, Any]], None] = None,
    library_root: Optional[str] = None,
    now: Optional[int] = None,
    taxonomy: Optional[Mapping[str, Sequence[str]]] = None,
) -> GeneratedPlaylist:
    """
    Generate one playlist.

    Args:
        tracks: Library tracks (read-only)
        request: User request
        config: Engine knobs (defaults when omitted)
        strategy: Externally supplied strategy; instruction terms are not
            merged into the request in this mode
        strategy_generator: Callable producing a strategy; failures fall back
            to the built-in heuristic
        rng: numpy Generator for surprise>0 sampling (seeded from the request
            when omitted)
        inference_hook: Optional external mood/activity inference (timeout-capped)
        library_root: Library identity for the tag cache and playlist id
        now: Epoch milliseconds used by the recent filter
        taxonomy: Genre taxonomy for related-genre suggestions (static table by default)

    Raises:
        ValidationError: Malformed request
    """
    config = config or default_engine_config()
    stats: Dict[str, Any] = {"library_tracks": len(tracks)}

    with stage_timer("Request validation", logger):
        validate_request(request)
        effective = normalize_playlist_request(request)

    with stage_timer("Recent filter", logger):
        pool_tracks = apply_recent_filter(tracks, effective, now=now)
    stats["recent_pool"] = len(pool_tracks)

    hook = _as_hook(inference_hook, config)
    tag_cache = TagCache(library_root=library_root, inference_hook=hook)
    try:
        with stage_timer("Matching index", logger):
            index = build_matching_index(pool_tracks, tag_cache=tag_cache)
    finally:
        if hook is not None:
            hook.close()
    stats["tag_cache"] = tag_cache.stats
    if hook is not None:
        stats["inference"] = hook.stats

    if effective.instructions:
        if strategy is None:
            effective = merge_instructions_into_request(effective, index.genres)
        hints = parse_strategy_hints_from_instructions(effective.instructions)
        effective = apply_instruction_hints_to_request(effective, hints)

    with stage_timer("Strategy", logger):
        library_summary = summarize_library(index)
        if strategy is not None:
            resolved = replace(strategy, ordering_plan=normalize_positions(strategy.ordering_plan))
        else:
            resolved = resolve_strategy(
                effective, library_summary,
                generator=strategy_generator,
                default_track_seconds=config.default_track_seconds,
            )
    stats["strategy_fallback"] = resolved.fallback_used

    similar: Tuple[str, ...] = ()
    if effective.genres:
        co_occurrence = build_genre_co_occurrence(pool_tracks, index.genre_mappings)
        similar = tuple(get_similar_genres(
            effective.genres, index.genres, co_occurrence,
            limit=config.similar_genre_limit, taxonomy=taxonomy,
        ))

    selections: Tuple[TrackSelection, ...] = ()
    stop_reason: Optional[MatchingError] = None
    target_met = False
    try:
        with stage_timer("Candidate pool", logger):
            pool = build_candidate_pool(tracks=pool_tracks, request=effective, strategy=resolved, index=index)
        stats["candidate_pool"] = pool.stats
        with stage_timer("Assembly", logger):
            assembly: AssemblyResult = assemble_playlist(
                pool=pool,
                request=effective,
                strategy=resolved,
                index=index,
                config=config,
                rng=rng,
                anchor_genres=pool.stats.get("resolved_genres", ()),
            )
        selections = assembly.selections
        stop_reason = assembly.stop_reason
        target_met = assembly.target_met
        stats["assembly"] = assembly.stats
    except MatchingError as exc:
        logger.warning("No candidates for request: %s", exc.message)
        stop_reason = exc
        stats["candidate_pool"] = exc.details.get("stats", {})

    ordered = annotate_order(selections, resolved.ordering_plan, index)
    summary = summarize_playlist(selections, index)
    track_ids = tuple(s.track_id for s in selections)

    result = GeneratedPlaylist(
        id=playlist_id(library_root, effective, track_ids),
        title=resolved.title,
        description=resolved.description,
        track_ids=track_ids,
        ordered_tracks=tuple(ordered),
        selections=selections,
        summary=summary,
        strategy=resolved,
        request=effective,
        requested_length={"type": effective.length.type, "value": effective.length.value},
        under_filled=not target_met,
        stop_reason=stop_reason.to_dict() if stop_reason is not None else None,
        similar_genres=similar,
        stats=stats,
    )
    logger.info(
        "stage=generate | selected=%d requested=%s %s under_filled=%s artists=%s",
        len(track_ids), effective.length.value, effective.length.type, result.under_filled,
        truncate_list(list(summary.artist_mix), max_items=3),
    )
    return result

"""
Free-text instruction parsing.

Turns "additional instructions" into extra mood/activity/genre terms and a
small set of strategy hints. Nothing here raises: empty or unparseable text
yields empty results.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from playlist_engine.playlist.request import PlaylistRequest
from playlist_engine.string_utils import dedupe_preserving_order
from playlist_engine.tags.activity import map_activity_tags_to_categories, normalize_activity_category
from playlist_engine.tags.mood import map_mood_tags_to_categories, normalize_mood_category
from playlist_engine.tags.tempo import FAST, SLOW

logger = logging.getLogger(__name__)

STOPWORDS = frozenset(
    "the a an and or but for with to of in on at is it my i me like some more "
    "less only no not all any be so just very too that this".split()
)

_STRIP_RE = re.compile(r"[^\w'-]")

FAST_ONLY_RE = re.compile(r"\b(no slow|upbeat only|fast only|high energy|no chill)\b")
SLOW_ONLY_RE = re.compile(r"\b(slow only|chill only|calm only|no fast|relaxing only)\b")
VARIETY_RE = re.compile(r"\b(more variety|mix it up|diverse|eclectic|varied|different)\b")
PREDICTABLE_RE = re.compile(r"\b(safe|predictable|familiar|same vibe)\b")
SHORT_TRACKS_RE = re.compile(r"\b(short tracks?|under 3 min(utes)?)\b")
LONG_TRACKS_RE = re.compile(r"\b(long tracks?|extended|over 5 min(utes)?)\b")

SURPRISE_BOOST = 0.2
SHORT_TRACK_MAX_SECONDS = 180.0
LONG_TRACK_MIN_SECONDS = 300.0


@dataclass(frozen=True)
class InstructionHints:
    tempo_bucket: Optional[str] = None
    surprise_boost: float = 0.0
    min_duration_seconds: Optional[float] = None
    max_duration_seconds: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.tempo_bucket is None
            and self.surprise_boost == 0.0
            and self.min_duration_seconds is None
            and self.max_duration_seconds is None
        )


def extract_instruction_tokens(text: Optional[str]) -> List[str]:
    """
    Lowercased unigrams plus adjacent bigrams, stopwords dropped.

    >>> extract_instruction_tokens("Road trip with the gang!")
    ['road', 'trip', 'gang', 'road trip', 'trip gang']
    """
    if not text:
        return []
    words = []
    for raw in str(text).lower().split():
        word = _STRIP_RE.sub("", raw)
        if len(word) >= 2 and word not in STOPWORDS:
            words.append(word)
    bigrams = [f"{a} {b}" for a, b in zip(words, words[1:])]
    return dedupe_preserving_order(words + bigrams)


def parse_mood_from_instructions(text: Optional[str]) -> List[str]:
    tokens = extract_instruction_tokens(text)
    direct = [normalize_mood_category(t) for t in tokens]
    mapped = map_mood_tags_to_categories(tokens)
    return dedupe_preserving_order([m for m in direct if m] + mapped)


def parse_activity_from_instructions(text: Optional[str]) -> List[str]:
    tokens = extract_instruction_tokens(text)
    direct = [normalize_activity_category(t) for t in tokens]
    mapped = map_activity_tags_to_categories(tokens)
    return dedupe_preserving_order([a for a in direct if a] + mapped)


def parse_genres_from_instructions(text: Optional[str], known_genres: Iterable[str]) -> List[str]:
    """Genres mentioned in the text, limited to ``known_genres`` and spelled as known."""
    known = {}
    for genre in known_genres or ():
        known.setdefault(str(genre).lower(), str(genre))
    if not known:
        return []
    return dedupe_preserving_order(
        known[token] for token in extract_instruction_tokens(text) if token in known
    )


def parse_strategy_hints_from_instructions(text: Optional[str]) -> InstructionHints:
    if not text:
        return InstructionHints()
    lower = str(text).lower()

    tempo_bucket = None
    if FAST_ONLY_RE.search(lower):
        tempo_bucket = FAST
    elif SLOW_ONLY_RE.search(lower):
        tempo_bucket = SLOW

    boost = 0.0
    if VARIETY_RE.search(lower):
        boost += SURPRISE_BOOST
    if PREDICTABLE_RE.search(lower):
        boost -= SURPRISE_BOOST

    return InstructionHints(
        tempo_bucket=tempo_bucket,
        surprise_boost=boost,
        max_duration_seconds=SHORT_TRACK_MAX_SECONDS if SHORT_TRACKS_RE.search(lower) else None,
        min_duration_seconds=LONG_TRACK_MIN_SECONDS if LONG_TRACKS_RE.search(lower) else None,
    )


def apply_instruction_hints_to_request(
    request: PlaylistRequest,
    hints: InstructionHints,
) -> PlaylistRequest:
    """
    Merge hints into a request.

    The tempo bucket is only overridden when the request has no explicit BPM
    range. Surprise is clamped to [0, 1] after the boost. Duration bounds are
    copied only where the request leaves them unset.
    """
    if hints.is_empty:
        return request

    tempo = request.tempo
    if hints.tempo_bucket is not None and tempo.bpm_range is None:
        tempo = replace(tempo, bucket=hints.tempo_bucket)

    surprise = min(1.0, max(0.0, request.surprise + hints.surprise_boost))

    updated = replace(
        request,
        tempo=tempo,
        surprise=surprise,
        min_duration_seconds=(
            request.min_duration_seconds
            if request.min_duration_seconds is not None
            else hints.min_duration_seconds
        ),
        max_duration_seconds=(
            request.max_duration_seconds
            if request.max_duration_seconds is not None
            else hints.max_duration_seconds
        ),
    )
    logger.debug(
        "Applied instruction hints: tempo=%s surprise=%.2f->%.2f duration=[%s, %s]",
        updated.tempo.bucket, request.surprise, surprise,
        updated.min_duration_seconds, updated.max_duration_seconds,
    )
    return updated


def merge_instructions_into_request(
    request: PlaylistRequest,
    known_genres: Iterable[str],
) -> PlaylistRequest:
    """Union mood/activity/genre terms parsed from the instructions into the request."""
    text = request.instructions
    if not text or not text.strip():
        return request

    moods = parse_mood_from_instructions(text)
    activities = parse_activity_from_instructions(text)
    genres = parse_genres_from_instructions(text, known_genres)

    merged = replace(
        request,
        mood=tuple(dedupe_preserving_order(list(request.mood) + moods)),
        activity=tuple(dedupe_preserving_order(list(request.activity) + activities)),
        genres=tuple(dedupe_preserving_order(list(request.genres) + genres)),
    )
    logger.info(
        "stage=instructions | moods=+%d activities=+%d genres=+%d",
        len(merged.mood) - len(request.mood),
        len(merged.activity) - len(request.activity),
        len(merged.genres) - len(request.genres),
    )
    return merged

"""
Tag Inference
=============
Heuristic mood/activity inference for tracks without explicit tags, plus the
per-request tag cache.

Inference sources (weakest signals, used only as scoring fallbacks):
- Genre keywords ("ambient" -> Calm, "metal" -> Workout)
- Tempo bucket (fast -> Energetic / Workout)
- Duration (short tracks -> Workout/Party, long tracks -> Relaxing/Reading)

TagCache replaces process-wide memoization: it is created per request,
keyed by (library_root, track_id), and invalidated explicitly.

Usage:
    cache = TagCache(library_root="/music", inference_hook=InferenceHook(fn))
    moods = cache.moods_for(track)
    cache.invalidate(track.id)
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from playlist_engine.string_utils import dedupe_preserving_order
from playlist_engine.tags.activity import map_activity_tags_to_categories
from playlist_engine.tags.mood import map_mood_tags_to_categories
from playlist_engine.tags.tempo import (
    TEMPO_BUCKET_ACTIVITIES,
    TEMPO_BUCKET_MOODS,
    get_tempo_bucket,
)
from playlist_engine.tracks import Track

logger = logging.getLogger(__name__)

DEFAULT_INFERENCE_TIMEOUT = 2.0
DEFAULT_MAX_CONSECUTIVE_FAILURES = 3

# (genre keywords, implied mood categories); keywords match inside the lowercased genre
GENRE_MOOD_RULES: List[Tuple[Tuple[str, ...], Tuple[str, ...]]] = [
    (("ambient", "chill", "downtempo"), ("Calm", "Dreamy")),
    (("metal", "hardcore", "punk", "thrash"), ("Intense", "Aggressive")),
    (("jazz", "folk", "bossa nova"), ("Relaxed", "Mellow", "Peaceful")),
    (("indie", "acoustic", "singer-songwriter", "americana"), ("Reflective", "Mellow")),
    (("edm", "house", "techno", "trance", "electro"), ("Energetic", "Euphoric", "Exciting")),
    (("disco", "funk", "dance pop"), ("Upbeat", "Happy")),
    (("grunge", "alternative rock"), ("Dark", "Reflective", "Melancholic")),
    (("classical", "orchestral", "piano"), ("Peaceful", "Reflective", "Calm")),
    (("reggae", "ska", "latin", "reggaeton"), ("Relaxed", "Upbeat", "Happy")),
    (("gospel", "worship"), ("Uplifting", "Euphoric")),
    (("blues", "soul"), ("Melancholic", "Reflective", "Mellow")),
    (("synth", "synthwave", "new wave"), ("Nostalgic", "Dreamy")),
]

GENRE_ACTIVITY_RULES: List[Tuple[Tuple[str, ...], Tuple[str, ...]]] = [
    (("ambient", "chill", "downtempo"), ("Relaxing", "Meditation")),
    (("ambient", "world", "new age"), ("Yoga",)),
    (("lofi", "classical", "piano", "acoustic"), ("Study", "Reading")),
    (("lofi", "chiptune", "electronic", "synth"), ("Gaming",)),
    (("edm", "dance", "house", "techno", "electro"), ("Party", "Dance", "Workout")),
    (("hip hop", "rap", "trap"), ("Workout", "Party")),
    (("metal", "hardcore", "punk"), ("Workout",)),
    (("jazz", "folk"), ("Relaxing", "Reading")),
    (("pop", "disco", "funk"), ("Cleaning", "Dance")),
]

SHORT_TRACK_RANGE = (60.0, 180.0)
LONG_TRACK_MIN = 300.0
SHORT_TRACK_ACTIVITIES: Tuple[str, ...] = ("Workout", "Running", "Party")
LONG_TRACK_ACTIVITIES: Tuple[str, ...] = ("Relaxing", "Meditation", "Reading")


def _apply_genre_rules(
    genres: Iterable[str],
    rules: List[Tuple[Tuple[str, ...], Tuple[str, ...]]],
) -> List[str]:
    inferred: List[str] = []
    for genre in genres or ():
        lower = str(genre).lower()
        for keywords, categories in rules:
            if any(keyword in lower for keyword in keywords):
                inferred.extend(categories)
    return dedupe_preserving_order(inferred)


def infer_mood_from_genres(genres: Iterable[str]) -> List[str]:
    """Mood categories implied by genre keywords."""
    return _apply_genre_rules(genres, GENRE_MOOD_RULES)


def infer_mood_from_tempo(tempo_bucket: Optional[str]) -> List[str]:
    return list(TEMPO_BUCKET_MOODS.get(tempo_bucket or "", ()))


def infer_activity_from_genres(genres: Iterable[str]) -> List[str]:
    """Activity categories implied by genre keywords."""
    return _apply_genre_rules(genres, GENRE_ACTIVITY_RULES)


def infer_activity_from_bpm(bpm: Optional[float]) -> List[str]:
    return list(TEMPO_BUCKET_ACTIVITIES.get(get_tempo_bucket(bpm), ()))


def infer_activity_from_duration(duration_seconds: Optional[float]) -> List[str]:
    if duration_seconds is None or duration_seconds <= 0:
        return []
    low, high = SHORT_TRACK_RANGE
    if low <= duration_seconds <= high:
        return list(SHORT_TRACK_ACTIVITIES)
    if duration_seconds >= LONG_TRACK_MIN:
        return list(LONG_TRACK_ACTIVITIES)
    return []


class InferenceHook:
    """
    Wraps an optional external tag-inference callable.

    The callable receives a Track and returns ``{"mood": [...], "activity": [...]}``.
    Calls run on one owned single-worker thread pool and are capped by
    ``timeout_seconds``. Errors, timeouts and malformed results yield None.

    After ``max_consecutive_failures`` failed calls in a row the hook disables
    itself and returns None without calling ``fn`` again. A hung call keeps its
    worker busy, so later calls would only queue behind it. Call close() (or
    use the hook as a context manager) to release the worker.
    """

    def __init__(
        self,
        fn: Callable[[Track], Mapping[str, Any]],
        timeout_seconds: float = DEFAULT_INFERENCE_TIMEOUT,
        max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
    ):
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
        if max_consecutive_failures < 1:
            raise ValueError(f"max_consecutive_failures must be >= 1, got {max_consecutive_failures}")
        self._fn = fn
        self.timeout_seconds = timeout_seconds
        self.max_consecutive_failures = max_consecutive_failures
        self.calls = 0
        self.failures = 0
        self.timeouts = 0
        self.consecutive_failures = 0
        self.disabled = False
        self._executor: Optional[ThreadPoolExecutor] = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tag-inference")
        return self._executor

    def _record_failure(self) -> None:
        self.consecutive_failures += 1
        if not self.disabled and self.consecutive_failures >= self.max_consecutive_failures:
            self.disabled = True
            logger.warning(
                "Tag inference disabled after %d consecutive failures",
                self.consecutive_failures,
            )

    def __call__(self, track: Track) -> Optional[Dict[str, List[str]]]:
        if self.disabled:
            return None

        self.calls += 1
        future = self._get_executor().submit(self._fn, track)
        try:
            result = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            future.cancel()
            self.timeouts += 1
            self._record_failure()
            logger.warning(
                "Tag inference timed out after %.2fs for track %s",
                self.timeout_seconds, track.id,
            )
            return None
        except Exception as exc:
            self.failures += 1
            self._record_failure()
            logger.warning("Tag inference failed for track %s: %s", track.id, exc)
            return None

        if not isinstance(result, Mapping):
            self.failures += 1
            self._record_failure()
            logger.warning(
                "Tag inference returned %s for track %s; expected a mapping",
                type(result).__name__, track.id,
            )
            return None

        self.consecutive_failures = 0
        return {
            "mood": [str(t) for t in result.get("mood") or () if t],
            "activity": [str(t) for t in result.get("activity") or () if t],
        }

    def close(self) -> None:
        """Release the worker thread. Safe to call more than once; a later call starts a new worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def __enter__(self) -> "InferenceHook":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "timeouts": self.timeouts,
            "disabled": self.disabled,
        }


@dataclass(frozen=True)
class TrackTags:
    """Canonical mood/activity categories for one track and where they came from."""
    moods: Tuple[str, ...]
    activities: Tuple[str, ...]
    source: str  # "explicit", "hook" or "none"


class TagCache:
    """
    Per-request cache of canonical mood/activity categories.

    Explicit enhanced-metadata tags are mapped through the category tables.
    When a track has neither and an inference hook is configured, the hook is
    consulted once; its result is cached too (including failures, as empty).
    """

    def __init__(self, library_root: Optional[str] = None, inference_hook: Optional[InferenceHook] = None):
        self.library_root = library_root or ""
        self.inference_hook = inference_hook
        self._entries: Dict[Tuple[str, str], TrackTags] = {}
        self._hits = 0
        self._misses = 0

    def _key(self, track_id: str) -> Tuple[str, str]:
        return (self.library_root, str(track_id))

    def tags_for(self, track: Track) -> TrackTags:
        key = self._key(track.id)
        cached = self._entries.get(key)
        if cached is not None:
            self._hits += 1
            return cached

        self._misses += 1
        tags = self._resolve(track)
        self._entries[key] = tags
        return tags

    def _resolve(self, track: Track) -> TrackTags:
        moods = map_mood_tags_to_categories(track.mood_tags)
        activities = map_activity_tags_to_categories(track.activity_tags)
        if moods or activities:
            return TrackTags(tuple(moods), tuple(activities), "explicit")

        if self.inference_hook is not None:
            inferred = self.inference_hook(track)
            if inferred:
                moods = map_mood_tags_to_categories(inferred["mood"])
                activities = map_activity_tags_to_categories(inferred["activity"])
                if moods or activities:
                    return TrackTags(tuple(moods), tuple(activities), "hook")

        return TrackTags((), (), "none")

    def moods_for(self, track: Track) -> Tuple[str, ...]:
        return self.tags_for(track).moods

    def activities_for(self, track: Track) -> Tuple[str, ...]:
        return self.tags_for(track).activities

    def invalidate(self, track_id: Optional[str] = None) -> int:
        """Drop one track's entry (or every entry for this library root). Returns the count removed."""
        if track_id is not None:
            return 1 if self._entries.pop(self._key(track_id), None) is not None else 0

        keys = [k for k in self._entries if k[0] == self.library_root]
        for key in keys:
            del self._entries[key]
        logger.debug("Tag cache invalidated: %d entries", len(keys))
        return len(keys)

    @property
    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, track_id: object) -> bool:
        return self._key(str(track_id)) in self._entries

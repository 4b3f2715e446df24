"""
Tempo buckets.

BPM is provided upstream; the engine only buckets it:
slow < 90 <= medium < 140 <= fast. Missing BPM is "unknown".
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

SLOW = "slow"
MEDIUM = "medium"
FAST = "fast"
UNKNOWN = "unknown"

TEMPO_BUCKETS: Tuple[str, ...] = (SLOW, MEDIUM, FAST)
ALL_TEMPO_BUCKETS: Tuple[str, ...] = (SLOW, MEDIUM, FAST, UNKNOWN)

SLOW_MAX_BPM = 90.0
FAST_MIN_BPM = 140.0

# Nominal BPM ranges for a request that names a bucket but no explicit range
TEMPO_BUCKET_RANGES: Dict[str, Tuple[float, float]] = {
    SLOW: (60.0, 89.0),
    MEDIUM: (90.0, 139.0),
    FAST: (140.0, 200.0),
}

TEMPO_BUCKET_MOODS: Dict[str, List[str]] = {
    SLOW: ["Calm", "Relaxed", "Peaceful"],
    MEDIUM: ["Upbeat", "Uplifting"],
    FAST: ["Energetic", "Intense", "Exciting"],
}

TEMPO_BUCKET_ACTIVITIES: Dict[str, List[str]] = {
    SLOW: ["Sleep", "Reading", "Meditation", "Relaxing", "Yoga"],
    MEDIUM: ["Work", "Study", "Commute", "Cooking", "Cleaning", "Gaming"],
    FAST: ["Workout", "Running", "Party", "Dance", "Cycling"],
}

_BUCKET_ORDER = {SLOW: 0, MEDIUM: 1, FAST: 2}


def get_tempo_bucket(bpm: Optional[float]) -> str:
    """Bucket a BPM value; None/NaN/non-positive -> "unknown"."""
    if bpm is None or bpm != bpm or bpm <= 0:
        return UNKNOWN
    if bpm < SLOW_MAX_BPM:
        return SLOW
    if bpm < FAST_MIN_BPM:
        return MEDIUM
    return FAST


def bucket_for_bpm_range(bpm_min: float, bpm_max: float) -> str:
    """Representative bucket for an explicit BPM range."""
    if bpm_min < SLOW_MAX_BPM:
        return SLOW
    if bpm_max > FAST_MIN_BPM:
        return FAST
    return MEDIUM


def tempo_distance(first: Optional[str], second: Optional[str]) -> Optional[int]:
    """0 for equal buckets, 1 for adjacent, 2 for slow<->fast; None if either is unknown."""
    if first not in _BUCKET_ORDER or second not in _BUCKET_ORDER:
        return None
    return abs(_BUCKET_ORDER[first] - _BUCKET_ORDER[second])


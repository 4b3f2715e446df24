"""
Mood, Activity and Tempo Tags
=============================
- Closed mood/activity vocabularies with keyword synonym tables
- Tempo buckets derived from upstream BPM
- Heuristic inference and the per-request tag cache
"""

from .activity import (
    ACTIVITY_CATEGORIES,
    get_activity_categories,
    map_activity_tags_to_categories,
    normalize_activity_category,
)
from .inference import (
    InferenceHook,
    TagCache,
    TrackTags,
    infer_activity_from_bpm,
    infer_activity_from_duration,
    infer_activity_from_genres,
    infer_mood_from_genres,
    infer_mood_from_tempo,
)
from .mood import (
    MOOD_CATEGORIES,
    get_mood_categories,
    map_mood_tags_to_categories,
    normalize_mood_category,
)
from .tempo import (
    FAST,
    MEDIUM,
    SLOW,
    UNKNOWN,
    bucket_for_bpm_range,
    get_tempo_bucket,
    tempo_distance,
)

__all__ = [
    # Vocabularies
    'ACTIVITY_CATEGORIES',
    'MOOD_CATEGORIES',
    'get_activity_categories',
    'get_mood_categories',
    'map_activity_tags_to_categories',
    'map_mood_tags_to_categories',
    'normalize_activity_category',
    'normalize_mood_category',
    # Tempo
    'FAST',
    'MEDIUM',
    'SLOW',
    'UNKNOWN',
    'bucket_for_bpm_range',
    'get_tempo_bucket',
    'tempo_distance',
    # Inference
    'InferenceHook',
    'TagCache',
    'TrackTags',
    'infer_activity_from_bpm',
    'infer_activity_from_duration',
    'infer_activity_from_genres',
    'infer_mood_from_genres',
    'infer_mood_from_tempo',
]

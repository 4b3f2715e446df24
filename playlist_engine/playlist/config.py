"""
Engine tuning knobs.

EngineConfig is immutable and threaded through assembly and scoring.
Values come from default_engine_config(), optionally overridden from the
``engine`` section of config.yaml.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class EngineConfig:
    """
    Attributes:
        max_top_k: Candidate window sampled from at surprise=1 (K=1 at surprise=0)
        min_sampling_weight: Floor on a candidate's sampling weight
        section_alignment_weight: Weight of the flow-arc section alignment term
        duration_fit_weight: Weight of the duration fit term (minutes mode only)
        default_track_seconds: Duration assumed for tracks with unknown length
        duration_tolerance: Allowed overshoot of a minutes target (fraction)
        default_album_cap: Album repeat threshold used by the diversity scorer
            when the strategy sets no album cap
        decade_window: Number of recent picks inspected for decade dominance
        decade_dominance: Share of the window one decade must hold to be penalized
        inference_timeout: Seconds allowed per external tag-inference call
        inference_max_failures: Consecutive inference failures before the hook is disabled
        similar_genre_limit: Related genres suggested per request
    """
    max_top_k: int = 10
    min_sampling_weight: float = 1e-6
    section_alignment_weight: float = 0.2
    duration_fit_weight: float = 0.15
    default_track_seconds: float = 180.0
    duration_tolerance: float = 0.05
    default_album_cap: int = 2
    decade_window: int = 5
    decade_dominance: float = 0.6
    inference_timeout: float = 2.0
    inference_max_failures: int = 3
    similar_genre_limit: int = 6

    def __post_init__(self) -> None:
        if self.max_top_k < 1:
            raise ValueError(f"max_top_k must be >= 1, got {self.max_top_k}")
        if self.default_track_seconds <= 0:
            raise ValueError(f"default_track_seconds must be > 0, got {self.default_track_seconds}")
        if not 0.0 <= self.duration_tolerance <= 1.0:
            raise ValueError(f"duration_tolerance must be in [0, 1], got {self.duration_tolerance}")
        if not 0.0 < self.decade_dominance <= 1.0:
            raise ValueError(f"decade_dominance must be in (0, 1], got {self.decade_dominance}")
        if self.inference_timeout <= 0:
            raise ValueError(f"inference_timeout must be > 0, got {self.inference_timeout}")
        if self.inference_max_failures < 1:
            raise ValueError(f"inference_max_failures must be >= 1, got {self.inference_max_failures}")


_FIELD_TYPES = {f.name: f.type for f in fields(EngineConfig)}


def default_engine_config(*, overrides: Optional[Dict[str, Any]] = None) -> EngineConfig:
    """
    Return engine defaults with optional overrides applied.

    Args:
        overrides: Flat dict of EngineConfig field names -> values
            (e.g. the ``engine`` section of config.yaml)

    Raises:
        ValueError: Unknown key or invalid value
    """
    config = EngineConfig()
    if not overrides:
        return config

    unknown = sorted(set(overrides) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"Unknown engine config keys: {unknown}")

    coerced: Dict[str, Any] = {}
    for key, value in overrides.items():
        caster = int if _FIELD_TYPES[key] in ("int", int) else float
        try:
            coerced[key] = caster(value)
        except (TypeError, ValueError):
            raise ValueError(f"engine.{key} must be numeric, got {value!r}") from None
    return replace(config, **coerced)

"""
Playlist Strategy
=================
Declarative generation plan: scoring weights, diversity rules, an ordering
plan of named flow-arc sections, tempo guidance and genre-mix guidance.

A strategy is produced once per request, either by an external generator or
by fallback_strategy(). The engine treats both identically apart from the
``fallback_used`` flag.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from playlist_engine.playlist.errors import StrategyError
from playlist_engine.playlist.matching_index import LibrarySummary
from playlist_engine.playlist.request import PlaylistRequest, apply_tempo_mappings_to_request
from playlist_engine.tags.tempo import FAST, MEDIUM, SLOW, TEMPO_BUCKETS, bucket_for_bpm_range

logger = logging.getLogger(__name__)

LOW = "low"
HIGH = "high"
ENERGY_LEVELS = (LOW, MEDIUM, HIGH)

HIGH_ENERGY_MOODS = frozenset({"energetic", "upbeat", "exciting", "intense"})
LOW_ENERGY_MOODS = frozenset({"calm", "relaxed", "peaceful", "mellow"})

ARC_MIN_TRACKS = 10
PRIMARY_RATIO = 0.7
SECONDARY_RATIO = 0.3
MAX_TITLE_LENGTH = 100
MAX_VIBE_TAGS = 10


@dataclass(frozen=True)
class ScoringWeights:
    """Relative criterion weights (need not sum to 1)."""
    genre_match: float = 0.3
    tempo_match: float = 0.25
    mood_match: float = 0.2
    activity_match: float = 0.15
    diversity: float = 0.1

    @property
    def total(self) -> float:
        return self.genre_match + self.tempo_match + self.mood_match + self.activity_match + self.diversity

    def as_dict(self) -> Dict[str, float]:
        return {
            "genre": self.genre_match,
            "tempo": self.tempo_match,
            "mood": self.mood_match,
            "activity": self.activity_match,
            "diversity": self.diversity,
        }


@dataclass(frozen=True)
class StrategyConstraints:
    required_genres: Tuple[str, ...] = ()
    excluded_genres: Tuple[str, ...] = ()
    min_tracks: Optional[int] = None
    max_tracks: Optional[int] = None
    min_duration: Optional[float] = None
    max_duration: Optional[float] = None


@dataclass(frozen=True)
class DiversityRules:
    """
    Hard eligibility rules applied during assembly.

    Attributes:
        max_tracks_per_artist: Artist cap for the whole playlist
        artist_spacing: Positions an artist must wait before repeating
        genre_spacing: Positions a genre stays "recent" for the genre cooldown
        max_tracks_per_album: Album cap (None = no hard cap)
    """
    max_tracks_per_artist: int = 3
    artist_spacing: int = 3
    genre_spacing: int = 2
    max_tracks_per_album: Optional[int] = None


@dataclass(frozen=True)
class OrderingSection:
    name: str
    start_position: float
    end_position: float
    tempo_target: Optional[str] = None
    energy_level: Optional[str] = None

    def contains(self, position: float) -> bool:
        return self.start_position <= position < self.end_position


@dataclass(frozen=True)
class TempoGuidance:
    target_bucket: Optional[str] = None
    bpm_range: Optional[Tuple[float, float]] = None
    allow_variation: bool = True


@dataclass(frozen=True)
class GenreMixGuidance:
    primary_genres: Tuple[str, ...]
    secondary_genres: Tuple[str, ...] = ()
    primary_ratio: float = PRIMARY_RATIO
    secondary_ratio: float = SECONDARY_RATIO


DEFAULT_SECTION = OrderingSection(name="peak", start_position=0.0, end_position=1.0)


@dataclass(frozen=True)
class PlaylistStrategy:
    title: str
    description: str = ""
    constraints: StrategyConstraints = field(default_factory=StrategyConstraints)
    scoring_weights: ScoringWeights = field(default_factory=ScoringWeights)
    diversity_rules: DiversityRules = field(default_factory=DiversityRules)
    ordering_plan: Tuple[OrderingSection, ...] = (DEFAULT_SECTION,)
    vibe_tags: Tuple[str, ...] = ()
    tempo_guidance: TempoGuidance = field(default_factory=TempoGuidance)
    genre_mix_guidance: Optional[GenreMixGuidance] = None
    fallback_used: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlaylistStrategy":
        """
        Parse an externally produced (camelCase) strategy.

        Raises:
            StrategyError: Missing or malformed fields
        """
        if not isinstance(data, Mapping):
            raise StrategyError(f"Strategy must be a mapping, got {type(data).__name__}")
        try:
            return _strategy_from_dict(data)
        except StrategyError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StrategyError(f"Malformed strategy: {exc}", details={"exception": type(exc).__name__}) from exc

    def to_dict(self) -> Dict[str, Any]:
        weights = self.scoring_weights
        rules = self.diversity_rules
        result: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "constraints": {
                "requiredGenres": list(self.constraints.required_genres),
                "excludedGenres": list(self.constraints.excluded_genres),
                "minTracks": self.constraints.min_tracks,
                "maxTracks": self.constraints.max_tracks,
                "minDuration": self.constraints.min_duration,
                "maxDuration": self.constraints.max_duration,
            },
            "scoringWeights": {
                "genreMatch": weights.genre_match,
                "tempoMatch": weights.tempo_match,
                "moodMatch": weights.mood_match,
                "activityMatch": weights.activity_match,
                "diversity": weights.diversity,
            },
            "diversityRules": {
                "maxTracksPerArtist": rules.max_tracks_per_artist,
                "artistSpacing": rules.artist_spacing,
                "genreSpacing": rules.genre_spacing,
                "maxTracksPerAlbum": rules.max_tracks_per_album,
            },
            "orderingPlan": {
                "sections": [
                    {
                        "name": s.name,
                        "startPosition": s.start_position,
                        "endPosition": s.end_position,
                        "tempoTarget": s.tempo_target,
                        "energyLevel": s.energy_level,
                    }
                    for s in self.ordering_plan
                ]
            },
            "vibeTags": list(self.vibe_tags),
            "tempoGuidance": {
                "targetBucket": self.tempo_guidance.target_bucket,
                "bpmRange": (
                    {"min": self.tempo_guidance.bpm_range[0], "max": self.tempo_guidance.bpm_range[1]}
                    if self.tempo_guidance.bpm_range else None
                ),
                "allowVariation": self.tempo_guidance.allow_variation,
            },
            "genreMixGuidance": None,
            "fallbackUsed": self.fallback_used,
        }
        mix = self.genre_mix_guidance
        if mix is not None:
            result["genreMixGuidance"] = {
                "primaryGenres": list(mix.primary_genres),
                "secondaryGenres": list(mix.secondary_genres),
                "mixRatio": {"primary": mix.primary_ratio, "secondary": mix.secondary_ratio},
            }
        return result


def _tuple_of_str(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _optional(value: Any, caster: Callable[[Any], Any]) -> Any:
    return None if value is None else caster(value)


def _strategy_from_dict(data: Mapping[str, Any]) -> PlaylistStrategy:
    title = data["title"]
    if not isinstance(title, str) or not title.strip():
        raise StrategyError("Strategy title must be a non-empty string")

    raw_constraints = data.get("constraints") or {}
    constraints = StrategyConstraints(
        required_genres=_tuple_of_str(raw_constraints.get("requiredGenres")),
        excluded_genres=_tuple_of_str(raw_constraints.get("excludedGenres")),
        min_tracks=_optional(raw_constraints.get("minTracks"), int),
        max_tracks=_optional(raw_constraints.get("maxTracks"), int),
        min_duration=_optional(raw_constraints.get("minDuration"), float),
        max_duration=_optional(raw_constraints.get("maxDuration"), float),
    )

    defaults = ScoringWeights()
    raw_weights = data.get("scoringWeights") or {}
    weights = ScoringWeights(
        genre_match=float(raw_weights.get("genreMatch", defaults.genre_match)),
        tempo_match=float(raw_weights.get("tempoMatch", defaults.tempo_match)),
        mood_match=float(raw_weights.get("moodMatch", defaults.mood_match)),
        activity_match=float(raw_weights.get("activityMatch", defaults.activity_match)),
        diversity=float(raw_weights.get("diversity", defaults.diversity)),
    )
    if any(w < 0 for w in weights.as_dict().values()) or weights.total <= 0:
        raise StrategyError("Scoring weights must be non-negative with a positive total",
                            details={"weights": weights.as_dict()})

    rule_defaults = DiversityRules()
    raw_rules = data.get("diversityRules") or {}
    rules = DiversityRules(
        max_tracks_per_artist=int(raw_rules.get("maxTracksPerArtist", rule_defaults.max_tracks_per_artist)),
        artist_spacing=int(raw_rules.get("artistSpacing", rule_defaults.artist_spacing)),
        genre_spacing=int(raw_rules.get("genreSpacing", rule_defaults.genre_spacing)),
        max_tracks_per_album=_optional(raw_rules.get("maxTracksPerAlbum"), int),
    )
    if rules.max_tracks_per_artist < 1:
        raise StrategyError("maxTracksPerArtist must be >= 1")

    raw_sections = (data.get("orderingPlan") or {}).get("sections") or []
    sections = tuple(
        OrderingSection(
            name=str(s.get("name") or f"section_{i + 1}"),
            start_position=float(s["startPosition"]),
            end_position=float(s["endPosition"]),
            tempo_target=_checked_choice(s.get("tempoTarget"), TEMPO_BUCKETS, "tempoTarget"),
            energy_level=_checked_choice(s.get("energyLevel"), ENERGY_LEVELS, "energyLevel"),
        )
        for i, s in enumerate(raw_sections)
    )

    raw_tempo = data.get("tempoGuidance") or {}
    bpm_raw = raw_tempo.get("bpmRange")
    tempo = TempoGuidance(
        target_bucket=_checked_choice(raw_tempo.get("targetBucket"), TEMPO_BUCKETS, "targetBucket"),
        bpm_range=(float(bpm_raw["min"]), float(bpm_raw["max"])) if bpm_raw else None,
        allow_variation=bool(raw_tempo.get("allowVariation", True)),
    )

    mix = None
    raw_mix = data.get("genreMixGuidance")
    if raw_mix:
        ratio = raw_mix.get("mixRatio") or {}
        mix = GenreMixGuidance(
            primary_genres=_tuple_of_str(raw_mix.get("primaryGenres")),
            secondary_genres=_tuple_of_str(raw_mix.get("secondaryGenres")),
            primary_ratio=float(ratio.get("primary", PRIMARY_RATIO)),
            secondary_ratio=float(ratio.get("secondary", SECONDARY_RATIO)),
        )

    return PlaylistStrategy(
        title=title.strip(),
        description=str(data.get("description") or ""),
        constraints=constraints,
        scoring_weights=weights,
        diversity_rules=rules,
        ordering_plan=normalize_positions(sections),
        vibe_tags=_tuple_of_str(data.get("vibeTags")),
        tempo_guidance=tempo,
        genre_mix_guidance=mix,
        fallback_used=bool(data.get("fallbackUsed", False)),
    )


def _checked_choice(value: Any, choices: Sequence[str], name: str) -> Optional[str]:
    if value is None:
        return None
    lowered = str(value).lower()
    if lowered not in choices:
        raise StrategyError(f"{name} must be one of {tuple(choices)}, got {value!r}")
    return lowered


# =============================================================================
# Section positions
# =============================================================================

def normalize_positions(sections: Sequence[OrderingSection]) -> Tuple[OrderingSection, ...]:
    """
    Make section ranges contiguous, non-overlapping and spanning [0, 1].

    Works on a sorted copy; the caller's sections are never modified.
    Zero-width sections are dropped and the last section always ends at 1.
    """
    ordered = sorted(sections, key=lambda s: (s.start_position, s.end_position))
    if not ordered:
        return (DEFAULT_SECTION,)

    clamped: List[Tuple[OrderingSection, float]] = []
    cursor = 0.0
    for i, section in enumerate(ordered):
        start = max(cursor, min(max(section.start_position, 0.0), 1.0))
        if i + 1 < len(ordered):
            end = min(section.end_position, ordered[i + 1].start_position)
        else:
            end = min(section.end_position, 1.0)
        if end <= start:
            end = min(start + 0.1, 1.0)
        clamped.append((section, end))
        cursor = end

    result: List[OrderingSection] = []
    cursor = 0.0
    for section, end in clamped:
        if end <= cursor:
            continue
        result.append(replace(section, start_position=cursor, end_position=end))
        cursor = end

    if not result:
        return (replace(ordered[0], start_position=0.0, end_position=1.0),)
    result[-1] = replace(result[-1], end_position=1.0)
    return tuple(result)


def resolve_section(sections: Sequence[OrderingSection], position: float) -> OrderingSection:
    """Section whose [start, end) contains ``position``; the last section owns 1.0."""
    if not sections:
        return DEFAULT_SECTION
    p = min(max(position, 0.0), 1.0)
    for section in sections:
        if section.contains(p):
            return section
    return sections[-1]


# =============================================================================
# Built-in heuristic
# =============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _energy_from_moods(moods: Sequence[str]) -> str:
    lowered = {m.lower() for m in moods}
    if lowered & HIGH_ENERGY_MOODS:
        return HIGH
    if lowered & LOW_ENERGY_MOODS:
        return LOW
    return MEDIUM


def _target_track_count(request: PlaylistRequest, avg_track_seconds: float) -> int:
    if request.length.type == "minutes":
        return max(1, math.ceil(request.length.value / (avg_track_seconds / 60.0)))
    return max(1, int(request.length.value))


def _tempo_target(request: PlaylistRequest) -> str:
    if request.tempo.bucket:
        return request.tempo.bucket
    if request.tempo.bpm_range is not None:
        return bucket_for_bpm_range(request.tempo.bpm_range.min, request.tempo.bpm_range.max)
    return MEDIUM


def _flow_arc(target_tracks: int, tempo_target: str, energy: str) -> Tuple[OrderingSection, ...]:
    if target_tracks < ARC_MIN_TRACKS:
        return (OrderingSection("peak", 0.0, 1.0, tempo_target, energy),)
    return (
        OrderingSection("warmup", 0.0, 0.2, MEDIUM if tempo_target == FAST else tempo_target, LOW),
        OrderingSection("peak", 0.2, 0.8, tempo_target, energy),
        OrderingSection("cooldown", 0.8, 1.0, MEDIUM if tempo_target == SLOW else SLOW, LOW),
    )


def _title(request: PlaylistRequest, primary: Sequence[str]) -> str:
    mood = request.mood[0] if request.mood else ""
    genres = " & ".join(primary[:2]) if primary else "Mixed"
    if request.activity:
        title = f"{mood} {genres} for {request.activity[0]}"
    else:
        title = f"{mood} {genres} Mix"
    return " ".join(title.split())[:MAX_TITLE_LENGTH]


def fallback_strategy(
    request: PlaylistRequest,
    summary: Optional[LibrarySummary] = None,
    *,
    default_track_seconds: float = 180.0,
) -> PlaylistStrategy:
    """
    Deterministic built-in strategy.

    Surprise loosens diversity rules (multiplier 0.5 at surprise=0, 1.0 at
    surprise=1) and enables tempo variation above 0.3. Playlists of 10+
    tracks get a warmup/peak/cooldown arc; shorter ones a single peak section.
    """
    avg_seconds = default_track_seconds
    if summary is not None and summary.avg_duration_seconds:
        avg_seconds = summary.avg_duration_seconds
    target = _target_track_count(request, avg_seconds)

    tempo_target = _tempo_target(request)
    energy = _energy_from_moods(request.mood)

    multiplier = 0.5 + 0.5 * request.surprise
    max_per_artist = max(1, _round_half_up(3 * multiplier))
    if request.min_artists:
        max_per_artist = min(max(1, target // request.min_artists), max_per_artist)

    library_genres = summary.genre_names if summary is not None else []
    if request.genres:
        primary = list(request.genres[:3])
        secondary = list(request.genres[3:])
    else:
        primary = library_genres[:3]
        secondary = library_genres[3:6]

    genre_mix = None
    if primary:
        genre_mix = GenreMixGuidance(primary_genres=tuple(primary), secondary_genres=tuple(secondary))

    bpm_range = None
    if request.tempo.bpm_range is not None:
        bpm_range = (request.tempo.bpm_range.min, request.tempo.bpm_range.max)

    length_label = (
        f"{int(request.length.value)} minutes" if request.length.type == "minutes"
        else f"{target} tracks"
    )
    description = f"{length_label} of {', '.join(primary) if primary else 'music from your library'}"
    if request.mood:
        description += f", {', '.join(m.lower() for m in request.mood)}"
    if request.activity:
        description += f", for {', '.join(a.lower() for a in request.activity)}"

    strategy = PlaylistStrategy(
        title=_title(request, primary),
        description=description,
        constraints=StrategyConstraints(
            required_genres=tuple(request.genres),
            min_tracks=target if request.length.type == "tracks" else None,
            max_tracks=target if request.length.type == "tracks" else None,
            min_duration=request.min_duration_seconds,
            max_duration=request.max_duration_seconds,
        ),
        scoring_weights=ScoringWeights(),
        diversity_rules=DiversityRules(
            max_tracks_per_artist=max_per_artist,
            artist_spacing=max(1, _round_half_up(5 * multiplier)),
            genre_spacing=max(1, _round_half_up(3 * multiplier)),
        ),
        ordering_plan=_flow_arc(target, tempo_target, energy),
        vibe_tags=tuple((list(request.mood) + list(request.activity) + primary)[:MAX_VIBE_TAGS]),
        tempo_guidance=TempoGuidance(
            target_bucket=tempo_target,
            bpm_range=bpm_range,
            allow_variation=request.surprise > 0.3,
        ),
        genre_mix_guidance=genre_mix,
        fallback_used=True,
    )
    logger.debug(
        "Fallback strategy: target=%d tempo=%s energy=%s artist_cap=%d sections=%d",
        target, tempo_target, energy, max_per_artist, len(strategy.ordering_plan),
    )
    return strategy


StrategyGenerator = Callable[[PlaylistRequest, Optional[LibrarySummary]], Union[PlaylistStrategy, Mapping[str, Any]]]


def resolve_strategy(
    request: PlaylistRequest,
    summary: Optional[LibrarySummary] = None,
    *,
    generator: Optional[StrategyGenerator] = None,
    default_track_seconds: float = 180.0,
) -> PlaylistStrategy:
    """
    Strategy for a request: the external generator's when it succeeds, the
    built-in heuristic otherwise (with fallback_used=True).

    The generator sees the request with its tempo bucket expanded into a BPM
    range and the bucket's moods and activities.
    """
    if generator is None:
        return fallback_strategy(request, summary, default_track_seconds=default_track_seconds)

    try:
        produced = generator(apply_tempo_mappings_to_request(request), summary)
        if isinstance(produced, Mapping):
            produced = PlaylistStrategy.from_dict(produced)
        if not isinstance(produced, PlaylistStrategy):
            raise StrategyError(f"Strategy generator returned {type(produced).__name__}")
        return replace(
            produced,
            ordering_plan=normalize_positions(produced.ordering_plan),
            fallback_used=False,
        )
    except StrategyError as exc:
        logger.warning("Strategy rejected, using fallback: %s", exc)
    except Exception as exc:
        logger.warning("Strategy generator failed, using fallback: %s: %s", type(exc).__name__, exc)

    return fallback_strategy(request, summary, default_track_seconds=default_track_seconds)

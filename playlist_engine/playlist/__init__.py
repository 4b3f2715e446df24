from .assembly import AssemblyResult, TrackSelection, assemble_playlist
from .config import EngineConfig, default_engine_config
from .errors import ErrorType, MatchingError, PlaylistError, StrategyError, ValidationError
from .filtering import CandidatePool, apply_recent_filter, build_candidate_pool
from .generator import GeneratedPlaylist, generate_playlist
from .matching_index import (
    LibrarySummary,
    MatchingIndex,
    TrackMetadata,
    build_matching_index,
    summarize_library,
)
from .request import (
    BpmRange,
    LengthSpec,
    PlaylistRequest,
    TempoSpec,
    apply_tempo_mappings_to_request,
    normalize_playlist_request,
    validate_request,
)
from .strategy import (
    PlaylistStrategy,
    fallback_strategy,
    normalize_positions,
    resolve_section,
    resolve_strategy,
)
from .summary import PlaylistSummary, summarize_playlist

from . import instructions
from . import scoring
from . import diversity
from . import ordering

__all__ = [
    # Orchestration
    "GeneratedPlaylist",
    "generate_playlist",
    # Request
    "BpmRange",
    "LengthSpec",
    "PlaylistRequest",
    "TempoSpec",
    "apply_tempo_mappings_to_request",
    "normalize_playlist_request",
    "validate_request",
    # Errors
    "ErrorType",
    "MatchingError",
    "PlaylistError",
    "StrategyError",
    "ValidationError",
    # Config
    "EngineConfig",
    "default_engine_config",
    # Index
    "LibrarySummary",
    "MatchingIndex",
    "TrackMetadata",
    "build_matching_index",
    "summarize_library",
    # Pool
    "CandidatePool",
    "apply_recent_filter",
    "build_candidate_pool",
    # Strategy
    "PlaylistStrategy",
    "fallback_strategy",
    "normalize_positions",
    "resolve_section",
    "resolve_strategy",
    # Assembly
    "AssemblyResult",
    "TrackSelection",
    "assemble_playlist",
    # Summary
    "PlaylistSummary",
    "summarize_playlist",
    # Submodules
    "instructions",
    "scoring",
    "diversity",
    "ordering",
]

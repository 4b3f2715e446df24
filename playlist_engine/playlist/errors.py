"""
Playlist engine error taxonomy.

ValidationError is raised for malformed requests. MatchingError describes
why assembly stopped early; the loop records it instead of raising, and only
build_candidate_pool raises it (for an empty pool). StrategyError signals a
failed external strategy and always triggers the built-in fallback.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    VALIDATION = "validation"
    MATCHING = "matching"
    STRATEGY = "strategy"
    GENERATION = "generation"


class PlaylistError(Exception):
    """Base class for engine errors."""

    error_type: ErrorType = ErrorType.GENERATION

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": dict(self.details),
        }


class ValidationError(PlaylistError):
    """Malformed request; ``field`` names the offending request field."""

    error_type = ErrorType.VALIDATION

    def __init__(self, field: str, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{field}: {message}", details=details)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["field"] = self.field
        return result


class MatchingError(PlaylistError):
    """
    No candidates left to choose from.

    Codes:
        empty_pool: nothing survived candidate filtering
        no_eligible_candidates: candidates remain but all are blocked by diversity rules
        pool_exhausted: every candidate has been chosen
    """

    error_type = ErrorType.MATCHING

    def __init__(
        self,
        code: str,
        message: str,
        *,
        position: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)
        self.code = code
        self.position = position

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["code"] = self.code
        result["position"] = self.position
        return result


class StrategyError(PlaylistError):
    """External strategy generation failed or returned an unusable strategy."""

    error_type = ErrorType.STRATEGY

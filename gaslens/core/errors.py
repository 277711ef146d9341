"""Error codes and exception types for the gaslens engine.

Data-quality problems (malformed bytecode, short source maps, broken trace
entries) never raise; they are counted in diagnostics objects. The
exceptions below are reserved for outer surfaces (artifact loading) and for
programmer errors (invalid calling contracts).
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes surfaced to collaborators."""

    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    ARTIFACT_INVALID = "ARTIFACT_INVALID"
    CONTRACT_AMBIGUOUS = "CONTRACT_AMBIGUOUS"
    CONTRACT_NOT_FOUND = "CONTRACT_NOT_FOUND"
    TOUR_INVALID_INDEX = "TOUR_INVALID_INDEX"
    FUNCTION_NOT_FOUND = "FUNCTION_NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    ABI_INVALID = "ABI_INVALID"


class GasLensError(Exception):
    """Base error with a machine-readable code."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code.value, "message": self.message}


class ArtifactError(GasLensError):
    """Compiler artifact could not be read or interpreted."""


class TourError(GasLensError, ValueError):
    """Invalid call into the tour navigator."""


class SimulationError(GasLensError):
    """A simulated function call could not be carried out."""

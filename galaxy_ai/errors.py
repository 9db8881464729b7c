"""
Error hierarchy for the Galaxy AI decision engine.

All custom exceptions inherit from GalaxyAIError so callers can catch every
engine failure in one place. Each error carries a machine-readable code and a
context dictionary identifying the decision and state involved.

Usage:
    from galaxy_ai.errors import NetworkShapeError

    try:
        network.load(path)
    except NetworkShapeError as e:
        logger.warning(f"Discarding weights: {e}")
"""
from typing import Any, Dict, Optional

__all__ = [
    "GalaxyAIError",
    "NetworkShapeError",
    "LayoutMismatchError",
    "SearchExhaustedError",
    "SampleCapacityError",
    "SimulationError",
]


class GalaxyAIError(Exception):
    """
    Base exception for all Galaxy AI errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "GALAXY_AI_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class NetworkShapeError(GalaxyAIError):
    """
    Persisted weights do not match the in-memory network shape.

    The engine recovers from this by bootstrapping a fresh network.
    """
    code: str = "NETWORK_SHAPE"

    def __init__(
        self,
        message: str,
        expected: Optional[tuple] = None,
        found: Optional[tuple] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.expected = expected
        self.found = found
        if expected is not None:
            self.context["expected"] = expected
        if found is not None:
            self.context["found"] = found


class LayoutMismatchError(GalaxyAIError):
    """A feature vector was fed to a network built for another layout."""
    code: str = "LAYOUT_MISMATCH"


class SearchExhaustedError(GalaxyAIError):
    """
    No legal candidate was found for a mandatory decision.

    The rules engine guarantees at least one legal choice exists, so this
    always indicates a broken invariant and is never recovered from.

    Attributes:
        kind: Name of the decision kind that failed
    """
    code: str = "SEARCH_EXHAUSTED"

    def __init__(
        self,
        message: str,
        kind: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.kind = kind
        self.context["kind"] = kind


class SampleCapacityError(GalaxyAIError):
    """A bounded sample table overflowed."""
    code: str = "SAMPLE_CAPACITY"


class SimulationError(GalaxyAIError):
    """A hypothetical-only operation was applied to a real game state."""
    code: str = "SIMULATION"

"""
Sternhalma Error Hierarchy

Unified exception hierarchy for consistent error handling across the codebase.
All custom exceptions inherit from SternhalmaError for easy catching and
filtering.

Illegal interactive operations (selecting an opponent piece, confirming
outside a pending turn) are NOT raised through this hierarchy; the turn
engine reports them as ``TurnResult`` failures. These exceptions are for
contract violations and infrastructure failures.

Usage:
    from sternhalma.errors import NotYourPieceError, StorageError

    try:
        moves = get_valid_moves(state, origin)
    except NotYourPieceError as e:
        logger.warning(f"Rejected selection: {e.message}")
"""

from typing import Any

__all__ = [
    # AI errors
    "AIError",
    "ConfigurationError",
    # Game model errors
    "InvalidCoordinateError",
    "InvalidMoveError",
    "InvalidStateError",
    "NoLegalMovesError",
    "NoPieceError",
    "NotYourPieceError",
    "RulesViolationError",
    # Base error
    "SternhalmaError",
    # Infrastructure errors
    "StorageError",
    # Training errors
    "TrainingError",
    "TrainingStateMismatchError",
]


class SternhalmaError(Exception):
    """Base exception for all Sternhalma errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "STERNHALMA_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
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

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Game Model Errors
# =============================================================================


class InvalidCoordinateError(SternhalmaError):
    """Cube coordinate that violates q + r + s == 0, or a malformed key."""
    code: str = "INVALID_COORDINATE"


class InvalidStateError(SternhalmaError):
    """Corrupted or unexpected game state.

    Raised when the game state is in an invalid configuration that
    should not be possible through normal gameplay (a piece on an
    off-board key, a changed piece count, an unknown current player).
    """
    code: str = "INVALID_STATE"


class RulesViolationError(SternhalmaError):
    """Request that violates the movement rules.

    Attributes:
        coord_key: Textual key of the offending cell, when there is one
    """
    code: str = "RULES_VIOLATION"

    def __init__(
        self,
        message: str,
        coord_key: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.coord_key = coord_key
        if coord_key:
            self.context["coord"] = coord_key


class NoPieceError(RulesViolationError):
    """Move generation requested for a cell that holds no piece."""
    code: str = "NO_PIECE"


class NotYourPieceError(RulesViolationError):
    """Move generation requested for a piece of a non-current player."""
    code: str = "NOT_YOUR_PIECE"


class InvalidMoveError(SternhalmaError):
    """Move that cannot be applied to current state.

    Raised when a move is structurally valid but cannot be applied
    to the current game state (e.g., not among the legal destinations
    during replay of a serialized turn).
    """
    code: str = "INVALID_MOVE"


# =============================================================================
# AI Errors
# =============================================================================


class AIError(SternhalmaError):
    """Base class for AI-related errors."""
    code: str = "AI_ERROR"


class NoLegalMovesError(AIError):
    """The side to move has no legal move anywhere on the board.

    The turn engine skips finished players, so reaching this indicates
    a blocked position in a custom layout or a caller bug.
    """
    code: str = "NO_LEGAL_MOVES"


# =============================================================================
# Training Errors
# =============================================================================


class TrainingError(SternhalmaError):
    """Base class for training-related errors."""
    code: str = "TRAINING_ERROR"


class TrainingStateMismatchError(TrainingError):
    """Persisted training state does not fit the current config.

    The scheduler treats this as an absent record and cold-starts.
    """
    code: str = "TRAINING_STATE_MISMATCH"


# =============================================================================
# Infrastructure Errors
# =============================================================================


class StorageError(SternhalmaError):
    """Persistence collaborator failed to read or write a record."""
    code: str = "STORAGE_ERROR"


class ConfigurationError(SternhalmaError):
    """Invalid configuration value."""
    code: str = "CONFIGURATION_ERROR"

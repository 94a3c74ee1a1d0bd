"""Exception types shared across the observer core."""

from __future__ import annotations


class ReasoningError(RuntimeError):
    """Raised when the reasoning collaborator fails or returns an unusable payload."""


class SummarizationError(RuntimeError):
    """Raised when a session summary could not be produced."""


class StorageError(RuntimeError):
    """Raised by the storage collaborator when a write cannot be completed."""


class InvariantViolation(RuntimeError):
    """Raised when the task state machine reaches an impossible state."""


class SessionStateError(RuntimeError):
    """Raised when an operation is not valid for the current session state."""


class SessionNotFoundError(LookupError):
    """Raised when a session id does not match the active session."""


class QuestionNotFoundError(LookupError):
    """Raised when a question id is unknown to the session."""


__all__ = [
    "InvariantViolation",
    "QuestionNotFoundError",
    "ReasoningError",
    "SessionNotFoundError",
    "SessionStateError",
    "StorageError",
    "SummarizationError",
]

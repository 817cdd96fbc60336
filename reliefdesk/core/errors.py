"""Error taxonomy shared by the engines, the store and the HTTP layer."""
from __future__ import annotations


class ReliefError(Exception):
    """Base class for all domain errors."""


class ValidationFailure(ReliefError):
    """Raised when user supplied answers fail validation.

    ``errors`` maps a field key to a user facing message so callers can render
    every problem inline next to the offending field.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors)) or "<none>"
        super().__init__(f"validation failed for: {fields}")


class StateViolation(ReliefError):
    """Raised on misuse of the engine, e.g. editing a submitted session."""


class StorageError(ReliefError):
    """Raised by session stores when persistence fails."""


class SessionNotFound(StorageError):
    """Raised when a session id is unknown to the store."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"session {session_id!r} not found")

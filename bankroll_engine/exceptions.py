"""
Custom exception hierarchy for the Bankroll Engine.

Provides structured error handling with clear error types and messages.
"""

from typing import Optional, Dict, Any


class EngineError(Exception):
    """Base exception for all engine-related errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class StakingError(EngineError):
    """Base exception for stake calculation errors."""
    pass


class InvalidConfiguration(StakingError):
    """Raised when strategy settings or bankroll inputs are not usable."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="INVALID_CONFIGURATION", **kwargs)
        if field:
            self.details["field"] = field


class InvalidOdds(StakingError):
    """Raised when odds at or below 1.0 reach a calculator."""

    def __init__(self, odds: float, **kwargs):
        message = f"Odds must be greater than 1.0 (got {odds})"
        super().__init__(message, error_code="INVALID_ODDS", **kwargs)
        self.details["odds"] = odds


class SequenceExhausted(StakingError):
    """Raised when an outcome is recorded after a strategy reached a terminal state."""

    def __init__(self, message: str, strategy: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="SEQUENCE_EXHAUSTED", **kwargs)
        if strategy:
            self.details["strategy"] = strategy


class SessionError(EngineError):
    """Base exception for session lifecycle errors."""
    pass


class NoActiveSession(SessionError):
    """Raised when an operation needs an active session and there is none."""

    def __init__(self, message: str = "No active session", **kwargs):
        super().__init__(message, error_code="NO_ACTIVE_SESSION", **kwargs)


class PersistenceError(EngineError):
    """Raised when the persistence collaborator fails to store or delete data."""

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="PERSISTENCE_ERROR", **kwargs)
        if url:
            self.details["url"] = url


class ConfigurationError(EngineError):
    """Raised when application configuration errors occur."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)
        if config_key:
            self.details["config_key"] = config_key


class SessionNotFound(SessionError):
    """Raised when a stored session id does not exist."""

    def __init__(self, session_id: int, **kwargs):
        super().__init__(f"Session {session_id} not found", error_code="SESSION_NOT_FOUND", **kwargs)
        self.details["session_id"] = session_id

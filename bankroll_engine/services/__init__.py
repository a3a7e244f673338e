"""
Service layer for business logic separation.

Services hold session lifecycle and storage, keeping API endpoints thin.
"""

from .persistence import (
    SessionRepository,
    InMemorySessionRepository,
    HttpSessionRepository,
    create_repository,
)
from .session_orchestrator import SessionOrchestrator, SessionContext

__all__ = [
    "SessionRepository",
    "InMemorySessionRepository",
    "HttpSessionRepository",
    "create_repository",
    "SessionOrchestrator",
    "SessionContext",
]

"""
Shared router dependencies.
"""

from fastapi import Request

from ..services import SessionOrchestrator


def get_orchestrator(request: Request) -> SessionOrchestrator:
    """Orchestrator created at startup and stored on the application state."""
    return request.app.state.orchestrator


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")

"""
Bankroll Engine - Main Package Exports

The FastAPI application lives in ``bankroll_engine.app``; importing it
configures logging and builds the session orchestrator.
"""

from .config import ENGINE_VERSION
from .exceptions import (
    EngineError,
    InvalidConfiguration,
    InvalidOdds,
    SequenceExhausted,
    NoActiveSession,
    SessionNotFound,
    PersistenceError,
)
from .models import Bet, Session

# Package metadata
__version__ = ENGINE_VERSION
__description__ = "Money management engine for sports betting sessions"

__all__ = [
    # Models
    'Bet',
    'Session',

    # Exceptions
    'EngineError',
    'InvalidConfiguration',
    'InvalidOdds',
    'SequenceExhausted',
    'NoActiveSession',
    'SessionNotFound',
    'PersistenceError',

    # Metadata
    '__version__',
    '__description__',
    'ENGINE_VERSION'
]

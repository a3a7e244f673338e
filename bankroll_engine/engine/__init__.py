"""
Bankroll Engine
Public Engine Interface

Stable, import-safe API surface exposed to the services and routers.
Routers MUST go through this module instead of importing calculators directly.

Contents:
- Stake calculators for flat, percentage, D'Alembert, Profit Fall,
  Masaniello, fractional Kelly and Beat the Delay staking
- Kelly probability helpers (margin removal, Poisson 1X2)
- Beat the Delay advisory EV estimator
- Strategy recommender and session badges
"""

from typing import Any, Dict, List
import logging

from ..config import ENGINE_VERSION, SUPPORTED_STRATEGIES
from .strategies import StakeResult, compute_next_stake, initial_state, CALCULATORS
from .recommender import Recommendation, StrategyRecommender, get_recommendations
from .badges import Badge, evaluate_badges
from .kelly import (
    analyze_outcomes,
    dynamic_kelly_fraction,
    kelly_fraction_for,
    normalize_implied_probabilities,
    plan_allocations,
    poisson_outcome_probabilities,
)
from .beat_delay import (
    DelayEvaluation,
    auto_capture_rate,
    evaluate_delay,
    recovery_rate_from_history,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Versioning
# ---------------------------------------------------------------------

__version__ = ENGINE_VERSION

# ---------------------------------------------------------------------
# Strategy catalogue
# ---------------------------------------------------------------------

_STRATEGY_INFO: Dict[str, Dict[str, Any]] = {
    "flat": {
        "name": "Flat",
        "description": "Fixed stake on every bet",
        "settings": ["baseStake"],
        "risk": "low",
    },
    "percentage": {
        "name": "Percentuale",
        "description": "Fixed share of the initial bankroll",
        "settings": ["bankrollPercentage"],
        "risk": "low",
    },
    "dalembert": {
        "name": "D'Alembert",
        "description": "Stake grows one unit after a loss and resets after a win",
        "settings": ["dalembertUnit", "stopLoss"],
        "risk": "medium",
    },
    "profitfall": {
        "name": "Profit Fall",
        "description": "Each stake recovers accumulated losses plus a profit margin",
        "settings": ["stakeIniziale", "margineProfitto", "profitFallStopLoss"],
        "risk": "high",
    },
    "masaniello": {
        "name": "Masaniello",
        "description": "Multi-event sequence targeting a minimum number of wins",
        "settings": ["totalEvents", "minimumWins", "riskFactor", "eventOdds"],
        "risk": "medium",
    },
    "kelly": {
        "name": "Kelly Ridotto",
        "description": "Fractional Kelly stakes over a set of value events with a risk cap",
        "settings": ["kellyFraction", "maxRiskPercentage", "maxSingleStake", "events"],
        "risk": "medium",
    },
    "beat-delay": {
        "name": "Beat the Delay",
        "description": "D'Alembert progression with an advisory expected-value estimate",
        "settings": [
            "baseStake", "stopLoss", "currentDelay", "historicalFrequency",
            "avgDelay", "maxDelay", "currentOdds", "captureRate", "recoveryRate",
        ],
        "risk": "medium",
    },
}


def get_available_strategies() -> List[str]:
    return list(SUPPORTED_STRATEGIES)


def get_strategy_info() -> Dict[str, Dict[str, Any]]:
    return {key: dict(info) for key, info in _STRATEGY_INFO.items()}


# ---------------------------------------------------------------------
# Engine lifecycle
# ---------------------------------------------------------------------

_ENGINE_INITIALIZED = False


def initialize_engine() -> None:
    """Engine bootstrap hook. Safe to call more than once."""
    global _ENGINE_INITIALIZED

    if _ENGINE_INITIALIZED:
        logger.debug("[ENGINE INIT] Engine already initialized; skipping")
        return

    missing = set(SUPPORTED_STRATEGIES) - set(CALCULATORS)
    if missing:
        raise RuntimeError(f"No calculator registered for: {', '.join(sorted(missing))}")

    _ENGINE_INITIALIZED = True
    logger.info(f"[ENGINE INIT] Bankroll Engine v{__version__} initialized")
    for key, info in _STRATEGY_INFO.items():
        logger.info(f"[ENGINE INIT]   - {key}: {info['name']} (risk {info['risk']})")


def get_engine_status() -> Dict[str, Any]:
    return {
        "version": __version__,
        "initialized": _ENGINE_INITIALIZED,
        "strategies": get_available_strategies(),
        "strategy_count": len(SUPPORTED_STRATEGIES),
    }


__all__ = [
    "__version__",
    "StakeResult",
    "compute_next_stake",
    "initial_state",
    "Recommendation",
    "StrategyRecommender",
    "get_recommendations",
    "Badge",
    "evaluate_badges",
    "analyze_outcomes",
    "dynamic_kelly_fraction",
    "kelly_fraction_for",
    "normalize_implied_probabilities",
    "plan_allocations",
    "poisson_outcome_probabilities",
    "DelayEvaluation",
    "auto_capture_rate",
    "evaluate_delay",
    "recovery_rate_from_history",
    "initialize_engine",
    "get_engine_status",
    "get_available_strategies",
    "get_strategy_info",
]

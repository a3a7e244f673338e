"""
Configuration management for the Bankroll Engine service.

Centralizes all configuration settings, environment variables, and constants.
"""

import os
from typing import Dict, Any
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent

# Logging Configuration
LOG_DIR = Path(os.getenv("BANKROLL_LOG_DIR", str(BASE_DIR / "logs")))
LOG_FILE = LOG_DIR / "bankroll_engine.log"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 10
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Engine Configuration
ENGINE_VERSION = "1.0.0"

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "5000"))
API_TITLE = "Bankroll Engine API"
API_DESCRIPTION = (
    "Money management sessions for sports betting: staking strategies, "
    "bet-by-bet stake progression, bankroll tracking and strategy recommendations."
)

# Persistence Configuration
PERSISTENCE_BACKEND = os.getenv("PERSISTENCE_BACKEND", "memory").lower()
PERSISTENCE_BASE_URL = os.getenv("PERSISTENCE_BASE_URL", "http://localhost:8000")
PERSISTENCE_TIMEOUT = float(os.getenv("PERSISTENCE_TIMEOUT", "10.0"))

# Staking defaults
DEFAULT_ODDS = float(os.getenv("DEFAULT_ODDS", "2.0"))
MIN_ODDS = 1.0  # odds must be strictly greater than this
MIN_STAKE = float(os.getenv("MIN_STAKE", "0.01"))
MAX_STAKE = float(os.getenv("MAX_STAKE", "100000.0"))
MAX_BANKROLL = float(os.getenv("MAX_BANKROLL", "10000000.0"))
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "€")

# Beat the Delay advisory
DEFAULT_EV_THRESHOLD = float(os.getenv("DEFAULT_EV_THRESHOLD", "0.08"))
RECOVERY_ALERT_THRESHOLD = float(os.getenv("RECOVERY_ALERT_THRESHOLD", "0.10"))
DELAY_BOOST_FACTOR = 0.10       # max +10% probability from delay anomaly
DELAY_EPSILON = 0.01
RECOVERY_WINDOW = 5             # bets inspected after a loss
DEFAULT_CAPTURE_RATE = 75.0

# Kelly
DEFAULT_KELLY_FRACTION = 0.25
MAX_DYNAMIC_KELLY_FRACTION = 0.75
POISSON_MAX_GOALS = 6

# Recommender
RECOMMENDER_CONFIDENCE_CAP = 0.95
RECOMMENDER_DEFAULT_CONFIDENCE = 0.7

# Default Strategy
DEFAULT_STRATEGY = "flat"

# Supported Strategies
SUPPORTED_STRATEGIES = [
    "flat",
    "percentage",
    "dalembert",
    "profitfall",
    "masaniello",
    "kelly",
    "beat-delay",
]

def get_config() -> Dict[str, Any]:
    """Get complete configuration dictionary."""
    return {
        "engine": {
            "version": ENGINE_VERSION,
        },
        "api": {
            "host": API_HOST,
            "port": API_PORT,
            "title": API_TITLE,
        },
        "logging": {
            "log_dir": str(LOG_DIR),
            "log_file": str(LOG_FILE),
            "log_level": LOG_LEVEL,
        },
        "persistence": {
            "backend": PERSISTENCE_BACKEND,
            "base_url": PERSISTENCE_BASE_URL,
            "timeout": PERSISTENCE_TIMEOUT,
        },
        "staking": {
            "default_odds": DEFAULT_ODDS,
            "min_stake": MIN_STAKE,
            "max_stake": MAX_STAKE,
            "max_bankroll": MAX_BANKROLL,
            "default_ev_threshold": DEFAULT_EV_THRESHOLD,
            "default_kelly_fraction": DEFAULT_KELLY_FRACTION,
        },
        "strategies": {
            "default": DEFAULT_STRATEGY,
            "supported": SUPPORTED_STRATEGIES,
        },
    }


def validate_config() -> bool:
    """Validate configuration values."""
    errors = []

    if API_PORT < 1 or API_PORT > 65535:
        errors.append("API_PORT must be between 1 and 65535")

    if MIN_STAKE < 0:
        errors.append("MIN_STAKE cannot be negative")

    if MAX_STAKE <= MIN_STAKE:
        errors.append("MAX_STAKE must be greater than MIN_STAKE")

    if DEFAULT_ODDS <= MIN_ODDS:
        errors.append("DEFAULT_ODDS must be greater than 1")

    if PERSISTENCE_BACKEND not in ("memory", "http"):
        errors.append("PERSISTENCE_BACKEND must be 'memory' or 'http'")

    if PERSISTENCE_TIMEOUT <= 0:
        errors.append("PERSISTENCE_TIMEOUT must be positive")

    if errors:
        raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    return True

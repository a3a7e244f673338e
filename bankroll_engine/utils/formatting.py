"""
Display formatting helpers for amounts, percentages and strategy names.
"""

from typing import Optional

from ..config import CURRENCY_SYMBOL

STRATEGY_DISPLAY_NAMES = {
    "flat": "Flat",
    "percentage": "Percentuale",
    "dalembert": "D'Alembert",
    "profitfall": "Profit Fall",
    "masaniello": "Masaniello",
    "kelly": "Kelly Ridotto",
    "beat-delay": "Beat the Delay",
}


def format_currency(amount: float, symbol: Optional[str] = None) -> str:
    """Format an amount with two decimals and thousands separators, e.g. ``-€1,234.50``."""
    symbol = CURRENCY_SYMBOL if symbol is None else symbol
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_percentage(value: float, decimals: int = 2, signed: bool = False) -> str:
    if signed:
        return f"{value:+.{decimals}f}%"
    return f"{value:.{decimals}f}%"


def get_strategy_display_name(strategy: str) -> str:
    """Human readable strategy name; unknown tags are returned unchanged."""
    return STRATEGY_DISPLAY_NAMES.get(str(strategy).strip().lower(), strategy)

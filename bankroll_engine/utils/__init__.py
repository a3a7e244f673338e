"""
Utility helpers shared by routers and logging.
"""

from .formatting import format_currency, format_percentage, get_strategy_display_name

__all__ = [
    "format_currency",
    "format_percentage",
    "get_strategy_display_name",
]

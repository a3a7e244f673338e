import pytest

from bankroll_engine.logging_config import safe_log
from bankroll_engine.utils import format_currency, format_percentage, get_strategy_display_name


@pytest.mark.parametrize("amount,expected", [
    (1234.5, "€1,234.50"),
    (-1234.5, "-€1,234.50"),
    (0, "€0.00"),
])
def test_format_currency(amount, expected):
    assert format_currency(amount, symbol="€") == expected


def test_format_currency_custom_symbol():
    assert format_currency(10, symbol="$") == "$10.00"


def test_format_percentage():
    assert format_percentage(12.346) == "12.35%"
    assert format_percentage(5, decimals=0, signed=True) == "+5%"
    assert format_percentage(-2.5, signed=True) == "-2.50%"


def test_strategy_display_names():
    assert get_strategy_display_name("beat-delay") == "Beat the Delay"
    assert get_strategy_display_name(" Kelly ") == "Kelly Ridotto"
    assert get_strategy_display_name("martingale") == "martingale"


def test_safe_log_is_ascii():
    message = safe_log("Bankroll: €1,000.00 → €1,010.00")
    assert message == "Bankroll: EUR 1,000.00 -> EUR 1,010.00"
    assert message.isascii()

"""
Beat the Delay: D'Alembert style level progression plus an advisory
expected-value estimator built on delay statistics.

The estimator only informs the user; it never changes the stake and never
blocks a bet.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Sequence

from ..config import (
    DEFAULT_CAPTURE_RATE,
    DEFAULT_EV_THRESHOLD,
    DELAY_BOOST_FACTOR,
    DELAY_EPSILON,
    RECOVERY_ALERT_THRESHOLD,
    RECOVERY_WINDOW
)
from ..exceptions import InvalidOdds
from ..models import Bet, BeatDelaySettings, BeatDelayState

logger = logging.getLogger(__name__)


@dataclass
class DelayEvaluation:
    """Result of one advisory evaluation."""
    anomaly_index: float
    base_probability: float
    estimated_probability: float
    expected_value: float
    should_play: bool
    recovery_alert: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def anomaly_index(current_delay: float, avg_delay: float, max_delay: float) -> float:
    """How far the current delay sits between average and maximum, clamped to [0, 1]."""
    delta = (current_delay - avg_delay) / (max_delay - avg_delay + DELAY_EPSILON)
    return max(0.0, min(delta, 1.0))


def adjusted_probability(
    historical_frequency: float,
    current_delay: float,
    avg_delay: float,
    max_delay: float,
    recovery_rate: float
) -> float:
    """
    Win probability boosted by the delay anomaly (max +10%) and the recovery rate.

    Args:
        historical_frequency: Historical hit frequency in percent
    """
    anomaly = anomaly_index(current_delay, avg_delay, max_delay)
    p = (historical_frequency / 100) * (1 + anomaly * DELAY_BOOST_FACTOR) * (1 + recovery_rate)
    return min(p, 1.0)


def expected_value(probability: float, odds: float) -> float:
    return probability * (odds - 1) - (1 - probability)


def evaluate_delay(
    current_delay: float,
    historical_frequency: float,
    avg_delay: float,
    max_delay: float,
    odds: float,
    recovery_rate: float = 0.0,
    ev_threshold: float = DEFAULT_EV_THRESHOLD,
    recovery_alert_threshold: float = RECOVERY_ALERT_THRESHOLD
) -> DelayEvaluation:
    """Compute the advisory play / skip decision for the next bet."""
    if odds is None or odds <= 1:
        raise InvalidOdds(odds)

    anomaly = anomaly_index(current_delay, avg_delay, max_delay)
    p = adjusted_probability(historical_frequency, current_delay, avg_delay, max_delay, recovery_rate)
    ev = expected_value(p, odds)

    evaluation = DelayEvaluation(
        anomaly_index=anomaly,
        base_probability=historical_frequency / 100,
        estimated_probability=p,
        expected_value=ev,
        should_play=ev >= ev_threshold,
        recovery_alert=recovery_rate > recovery_alert_threshold
    )
    logger.debug(
        f"[BEAT-DELAY] anomaly={anomaly:.3f} p={p:.4f} ev={ev:.3f} "
        f"play={'YES' if evaluation.should_play else 'NO'}"
    )
    return evaluation


def evaluate_settings(settings: BeatDelaySettings, odds: Optional[float]) -> Optional[DelayEvaluation]:
    """Evaluate the advisory inputs stored in session settings; None when no odds are known."""
    quote = odds if odds is not None else settings.current_odds
    if quote is None or quote <= 1:
        return None
    return evaluate_delay(
        settings.current_delay,
        settings.historical_frequency,
        settings.avg_delay,
        settings.max_delay,
        quote,
        recovery_rate=settings.recovery_rate,
        ev_threshold=settings.ev_threshold
    )


def apply_evaluation(state: BeatDelayState, evaluation: Optional[DelayEvaluation]) -> BeatDelayState:
    """Copy the advisory fields of an evaluation onto a (new) state."""
    new_state = state.model_copy(deep=True)
    if evaluation is None:
        return new_state
    new_state.anomaly_index = evaluation.anomaly_index
    new_state.estimated_probability = evaluation.estimated_probability
    new_state.expected_value = evaluation.expected_value
    new_state.should_play = evaluation.should_play
    return new_state


# ---------------------------------------------------------------------
# History analytics
# ---------------------------------------------------------------------

def recovery_rate_from_history(outcomes: Sequence[bool], window: int = RECOVERY_WINDOW) -> float:
    """
    Share of losses followed by at least one win within the next ``window`` bets.

    Only losses with a full window after them are counted.
    """
    attempts = 0
    successes = 0
    for i in range(len(outcomes) - window):
        if not outcomes[i]:
            attempts += 1
            if any(outcomes[i + 1:i + 1 + window]):
                successes += 1
    return successes / attempts if attempts else 0.0


def auto_capture_rate(bets: Sequence[Bet]) -> float:
    """
    Capture rate in percent derived from past Beat the Delay bets.

    Wins over placed bets, bounded to 50-95, then reduced by up to 10 points
    for small samples and clamped to 55-90. Defaults to 75 without history.
    """
    total_bets = len(bets)
    placed = sum(1 for bet in bets if bet.stake > 0)
    if placed == 0:
        return DEFAULT_CAPTURE_RATE

    wins = sum(1 for bet in bets if bet.win)
    actual = wins / placed * 100
    smoothed = max(50.0, min(95.0, actual))
    confidence_adjustment = min(10.0, total_bets / 10)
    final_rate = smoothed - (10 - confidence_adjustment)
    return max(55.0, min(90.0, final_rate))

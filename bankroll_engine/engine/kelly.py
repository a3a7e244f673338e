"""
Fractional Kelly staking.

Plans a cycle of events from the session settings, sizes each stake with a
fraction of the Kelly criterion and settles the events one outcome at a time.
Also hosts the probability helpers used by the Kelly calculator endpoints:
bookmaker margin removal, a Poisson 1X2 goal model and the dynamic fraction
derived from a risk tolerance score.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import MAX_DYNAMIC_KELLY_FRACTION, POISSON_MAX_GOALS
from ..exceptions import InvalidConfiguration, InvalidOdds, SequenceExhausted
from ..models import KellyAllocation, KellyEvent, KellySettings, KellyState

logger = logging.getLogger(__name__)

OUTCOME_LABELS = ("1", "X", "2")


def _check_odds(odds: float) -> None:
    if odds is None or odds <= 1:
        raise InvalidOdds(odds)


def full_kelly(probability: float, odds: float) -> float:
    """Full Kelly fraction ``(p*b - (1-p)) / b`` with ``b = odds - 1``. May be negative."""
    _check_odds(odds)
    b = odds - 1
    return (probability * b - (1 - probability)) / b


def kelly_fraction_for(
    probability: float,
    odds: float,
    fraction: float = 1.0
) -> float:
    """Reduced Kelly share of bankroll, rounded to 4 decimals; 0 when there is no edge."""
    reduced = full_kelly(probability, odds) * fraction
    return round(reduced, 4) if reduced > 0 else 0.0


def risk_level(adjusted_kelly: float) -> str:
    if adjusted_kelly > 0.15:
        return "high"
    if adjusted_kelly > 0.08:
        return "medium"
    return "low"


def dynamic_kelly_fraction(risk_tolerance: float) -> float:
    """
    Map a 0-100 risk tolerance score to a Kelly fraction.

    Conservative (0-30) -> 10-25%, moderate (31-70) -> 25-50%,
    aggressive (71-100) -> 50-75%. Never above 0.75.
    """
    if risk_tolerance < 0 or risk_tolerance > 100:
        raise InvalidConfiguration(
            f"Risk tolerance must be between 0 and 100 (got {risk_tolerance})",
            field="riskTolerance"
        )

    if risk_tolerance <= 30:
        percent = 10 + (risk_tolerance / 30) * 15
    elif risk_tolerance <= 70:
        percent = 25 + ((risk_tolerance - 30) / 40) * 25
    else:
        percent = 50 + ((risk_tolerance - 70) / 30) * 25

    return min(percent / 100, MAX_DYNAMIC_KELLY_FRACTION)


def normalize_implied_probabilities(odds: Sequence[float]) -> List[float]:
    """Remove the bookmaker margin from a set of odds (1/q normalized to sum 1)."""
    if not odds:
        raise InvalidConfiguration("At least one odds value is required", field="odds")
    for q in odds:
        _check_odds(q)

    implied = 1.0 / np.asarray(odds, dtype=float)
    normalized = implied / implied.sum()
    return [round(float(p), 4) for p in normalized]


def poisson_outcome_probabilities(
    avg_home: float,
    avg_away: float,
    max_goals: int = POISSON_MAX_GOALS
) -> List[float]:
    """
    Home / draw / away probabilities from independent Poisson goal counts.

    Scores above ``max_goals`` are ignored, so the three values sum to
    slightly less than 1 for high scoring averages.
    """
    if avg_home <= 0 or avg_away <= 0:
        raise InvalidConfiguration(
            "Average goals must be positive",
            field="avgHome" if avg_home <= 0 else "avgAway"
        )
    if max_goals < 0:
        raise InvalidConfiguration("max_goals cannot be negative", field="maxGoals")

    goals = np.arange(max_goals + 1)
    factorials = np.array([math.factorial(int(k)) for k in goals], dtype=float)
    home = np.exp(-avg_home) * np.power(avg_home, goals) / factorials
    away = np.exp(-avg_away) * np.power(avg_away, goals) / factorials

    # rows are home goals, columns away goals
    grid = np.outer(home, away)
    home_win = float(np.tril(grid, -1).sum())
    draw = float(np.trace(grid))
    away_win = float(np.triu(grid, 1).sum())

    return [round(home_win, 4), round(draw, 4), round(away_win, 4)]


def analyze_outcomes(probabilities: Sequence[float], odds: Sequence[float]) -> Dict:
    """
    Classic and half Kelly for a 1X2 market plus a value recommendation.

    Returns:
        Dict with ``probabilities``, ``kelly`` (per outcome ``classic`` and
        ``reduced``), ``best_outcome`` and ``recommendation``
    """
    if len(probabilities) != 3 or len(odds) != 3:
        raise InvalidConfiguration("A 1X2 market needs exactly three probabilities and odds")

    kelly = {}
    for label, p, q in zip(OUTCOME_LABELS, probabilities, odds):
        kelly[label] = {
            "classic": kelly_fraction_for(p, q),
            "reduced": kelly_fraction_for(p, q, 0.5),
        }

    best_outcome, best_value = None, 0.0
    for label in OUTCOME_LABELS:
        if kelly[label]["reduced"] > best_value:
            best_outcome, best_value = label, kelly[label]["reduced"]

    if best_outcome is None:
        recommendation = "No value bet - do not play"
    elif best_value < 0.02:
        recommendation = f"Best value: outcome {best_outcome} - low value"
    elif best_value < 0.05:
        recommendation = f"Best value: outcome {best_outcome} - moderate value"
    elif best_value < 0.10:
        recommendation = f"Best value: outcome {best_outcome} - good value"
    else:
        recommendation = f"Best value: outcome {best_outcome} - high value"

    return {
        "probabilities": dict(zip(OUTCOME_LABELS, probabilities)),
        "kelly": kelly,
        "best_outcome": best_outcome,
        "recommendation": recommendation,
    }


# ---------------------------------------------------------------------
# Cycle planning
# ---------------------------------------------------------------------

def plan_allocations(
    events: Sequence[KellyEvent],
    bankroll: float,
    fraction: float,
    max_single_stake: float,
    max_risk_percentage: float
) -> Tuple[List[KellyAllocation], float]:
    """
    Size every event of a cycle.

    Events without an edge get stake 0 and are not recommended. When the
    recommended total exceeds ``bankroll * max_risk_percentage / 100`` all
    recommended stakes are scaled down proportionally so the total equals the cap.

    Returns:
        (allocations, total_stake_allocated)
    """
    allocations: List[KellyAllocation] = []
    for index, event in enumerate(events):
        fk = full_kelly(event.estimated_probability, event.bookmaker_odds)
        allocation = KellyAllocation(
            id=event.id or str(index + 1),
            name=event.name,
            bookmaker_odds=event.bookmaker_odds,
            estimated_probability=event.estimated_probability,
            full_kelly=fk,
        )
        if fk > 0:
            adjusted = fk * fraction
            allocation.adjusted_kelly = adjusted
            allocation.stake = min(bankroll * adjusted, max_single_stake)
            allocation.recommended = True
            allocation.risk_level = risk_level(adjusted)
        allocations.append(allocation)

    stakes = np.array([a.stake for a in allocations], dtype=float)
    total = float(stakes.sum())
    cap = bankroll * max_risk_percentage / 100

    if total > cap and total > 0:
        scale = cap / total
        logger.debug(f"[KELLY] Scaling stakes by {scale:.4f} (total {total:.2f} > cap {cap:.2f})")
        for allocation in allocations:
            allocation.stake = allocation.stake * scale
        total = cap

    return allocations, total


def plan_cycle(settings: KellySettings, bankroll: float, sessions_completed: int = 0) -> KellyState:
    allocations, total = plan_allocations(
        settings.events,
        bankroll,
        settings.kelly_fraction,
        settings.max_single_stake,
        settings.max_risk_percentage
    )
    return KellyState(
        events=allocations,
        total_stake_allocated=total,
        sessions_completed=sessions_completed
    )


def next_pending(state: KellyState) -> Optional[int]:
    """Index of the first recommended event that has not been settled."""
    for index, allocation in enumerate(state.events):
        if allocation.recommended and allocation.result == "pending":
            return index
    return None


def kelly_quote(settings: KellySettings, bankroll: float, state: KellyState) -> Tuple[float, Optional[float], KellyState]:
    """
    Stake and odds of the next event, planning a cycle when none is open.

    Returns:
        (stake, odds, state); stake is 0 and odds None when the plan has no
        recommended events.
    """
    if not state.events or state.is_completed:
        state = plan_cycle(settings, bankroll, state.sessions_completed)

    index = next_pending(state)
    if index is None:
        return 0.0, None, state
    allocation = state.events[index]
    return allocation.stake, allocation.bookmaker_odds, state


def settle_kelly(settings: KellySettings, bankroll: float, state: KellyState, win: bool) -> KellyState:
    """Settle the next pending event; start a fresh cycle once every recommended event is settled."""
    if not state.events or state.is_completed:
        state = plan_cycle(settings, bankroll, state.sessions_completed)
    else:
        state = state.model_copy(deep=True)

    index = next_pending(state)
    if index is None:
        raise SequenceExhausted(
            "Kelly plan has no recommended events to settle",
            strategy="kelly"
        )

    state.events[index].result = "won" if win else "lost"

    if next_pending(state) is None:
        completed = state.sessions_completed + 1
        logger.info(f"[KELLY] Cycle {completed} completed; planning next cycle")
        state = plan_cycle(settings, bankroll, completed)

    return state


__all__ = [
    "full_kelly",
    "kelly_fraction_for",
    "risk_level",
    "dynamic_kelly_fraction",
    "normalize_implied_probabilities",
    "poisson_outcome_probabilities",
    "analyze_outcomes",
    "plan_allocations",
    "plan_cycle",
    "next_pending",
    "kelly_quote",
    "settle_kelly",
]

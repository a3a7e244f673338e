"""
Masaniello multi-event progression.

A sequence of ``total_events`` bets that targets at least ``minimum_wins``
wins. Each stake is a share of the remaining sequence bankroll weighted by how
many losses the sequence can still absorb.
"""

import logging
from typing import Optional, Tuple

from ..exceptions import InvalidOdds, SequenceExhausted
from ..models import MasanielloSettings, MasanielloState

logger = logging.getLogger(__name__)


def masaniello_initial_state(settings: MasanielloSettings, bankroll: float) -> MasanielloState:
    return MasanielloState(
        remaining_bankroll=bankroll,
        event_results=["pending"] * settings.total_events
    )


def _event_odds(settings: MasanielloSettings, index: int) -> float:
    if index >= settings.total_events or index >= len(settings.event_odds):
        raise SequenceExhausted(
            f"Event {index + 1} is outside the {settings.total_events}-event sequence",
            strategy="masaniello"
        )
    odds = settings.event_odds[index]
    if odds <= 1:
        raise InvalidOdds(odds)
    return odds


def masaniello_quote(settings: MasanielloSettings, state: MasanielloState) -> Tuple[float, Optional[float]]:
    """
    Stake and odds for the current event.

    ``stake = remaining_bankroll * risk_factor / 100 / (events_remaining - wins_needed + 1)``.
    A completed sequence quotes 0 with no odds.
    """
    if state.is_completed:
        return 0.0, None

    odds = _event_odds(settings, state.current_event)
    events_remaining = settings.total_events - state.current_event
    wins_needed = max(settings.minimum_wins - state.events_won, 0)
    divisor = max(events_remaining - wins_needed + 1, 1)

    stake = state.remaining_bankroll * settings.risk_factor / 100 / divisor
    return max(stake, 0.0), odds


def _apply_termination(settings: MasanielloSettings, state: MasanielloState) -> None:
    wins_needed = settings.minimum_wins - state.events_won
    events_remaining = settings.total_events - state.current_event

    if state.events_won >= settings.minimum_wins:
        state.is_completed = True
        state.is_successful = True
    elif wins_needed > events_remaining:
        state.is_completed = True
        state.is_successful = False
    elif state.current_event >= settings.total_events:
        state.is_completed = True
        state.is_successful = state.events_won >= settings.minimum_wins


def settle_masaniello(
    settings: MasanielloSettings,
    state: MasanielloState,
    win: bool,
    stake: float,
    odds: float
) -> MasanielloState:
    """Record the outcome of the current event and run the termination checks."""
    if state.is_completed:
        raise SequenceExhausted(
            "Masaniello sequence is already completed",
            strategy="masaniello"
        )
    index = state.current_event
    _event_odds(settings, index)
    if odds <= 1:
        raise InvalidOdds(odds)

    new_state = state.model_copy(deep=True)
    results = list(new_state.event_results)
    if len(results) < settings.total_events:
        results.extend(["pending"] * (settings.total_events - len(results)))

    if win:
        new_state.events_won += 1
        results[index] = "won"
        new_state.remaining_bankroll += stake * (odds - 1)
    else:
        new_state.events_lost += 1
        results[index] = "lost"
        new_state.remaining_bankroll -= stake

    new_state.event_results = results
    new_state.current_event = index + 1
    _apply_termination(settings, new_state)

    if new_state.is_completed:
        logger.info(
            f"[MASANIELLO] Sequence completed after {new_state.current_event} events "
            f"({new_state.events_won} won) - {'SUCCESS' if new_state.is_successful else 'FAILED'}"
        )

    return new_state

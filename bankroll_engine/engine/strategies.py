"""
Stake calculators.

One pure function per strategy behind ``compute_next_stake``. Calculators
never mutate the state they receive: every call returns a new state object,
and all input validation happens before that state is built, so a raised
error leaves the caller's state untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..exceptions import InvalidConfiguration, InvalidOdds, SequenceExhausted
from ..models import (
    BeatDelaySettings,
    BeatDelayState,
    DalembertSettings,
    DalembertState,
    FlatSettings,
    FlatState,
    KellySettings,
    KellyState,
    MasanielloSettings,
    MasanielloState,
    PercentageSettings,
    PercentageState,
    ProfitFallSettings,
    ProfitFallState,
    StrategyKind,
    StrategySettings,
    StrategyState,
    normalize_strategy,
)
from .beat_delay import apply_evaluation, evaluate_settings
from .kelly import kelly_quote, settle_kelly
from .masaniello import masaniello_initial_state, masaniello_quote, settle_masaniello

logger = logging.getLogger(__name__)


@dataclass
class StakeResult:
    """Next stake plus the state it was computed from."""
    stake: float
    updated_state: StrategyState
    odds: Optional[float] = None           # set when the strategy dictates the next odds
    advisory: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StakeRequest:
    """Inputs shared by every calculator."""
    settings: StrategySettings
    base_bankroll: float
    previous_outcome: Optional[bool]
    state: StrategyState
    current_odds: Optional[float]
    settled_stake: Optional[float] = None
    settled_odds: Optional[float] = None

    @property
    def settle_odds(self) -> Optional[float]:
        return self.settled_odds if self.settled_odds is not None else self.current_odds


def _require_odds(odds: Optional[float]) -> float:
    if odds is None or odds <= 1:
        raise InvalidOdds(odds)
    return odds


# ---------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------

def calculate_flat(request: StakeRequest) -> StakeResult:
    settings: FlatSettings = request.settings
    return StakeResult(stake=settings.base_stake, updated_state=FlatState())


def calculate_percentage(request: StakeRequest) -> StakeResult:
    settings: PercentageSettings = request.settings
    stake = request.base_bankroll * settings.bankroll_percentage / 100
    return StakeResult(stake=stake, updated_state=PercentageState())


def _level_after(level: int, outcome: Optional[bool]) -> int:
    if outcome is None:
        return level
    return 0 if outcome else level + 1


def calculate_dalembert(request: StakeRequest) -> StakeResult:
    settings: DalembertSettings = request.settings
    state: DalembertState = request.state
    level = _level_after(state.current_level, request.previous_outcome)
    return StakeResult(
        stake=settings.dalembert_unit * (1 + level),
        updated_state=DalembertState(current_level=level)
    )


def profit_fall_stake(settings: ProfitFallSettings, state: ProfitFallState, odds: float) -> float:
    """Stake that recovers ``accumulated_loss`` plus the desired profit on a win at ``odds``."""
    if state.accumulated_loss <= 0:
        return settings.stake_iniziale
    return (state.accumulated_loss + settings.desired_profit) / (_require_odds(odds) - 1)


def calculate_profit_fall(request: StakeRequest) -> StakeResult:
    settings: ProfitFallSettings = request.settings
    state: ProfitFallState = request.state
    odds = _require_odds(request.current_odds)

    if request.previous_outcome is None:
        new_state = state.model_copy()
    elif request.previous_outcome:
        new_state = ProfitFallState()
    else:
        if request.settled_stake is not None:
            settled = request.settled_stake
        else:
            settled = profit_fall_stake(settings, state, _require_odds(request.settle_odds))
        new_state = ProfitFallState(
            accumulated_loss=state.accumulated_loss + settled,
            current_step=state.current_step + 1,
            is_sequence_active=True
        )

    return StakeResult(
        stake=profit_fall_stake(settings, new_state, odds),
        updated_state=new_state
    )


def calculate_masaniello(request: StakeRequest) -> StakeResult:
    settings: MasanielloSettings = request.settings
    state: MasanielloState = request.state

    if request.previous_outcome is None:
        new_state = state.model_copy(deep=True)
    else:
        if state.is_completed:
            raise SequenceExhausted(
                "Masaniello sequence is already completed",
                strategy="masaniello"
            )
        settled_stake = request.settled_stake
        settled_odds = request.settled_odds
        if settled_stake is None or settled_odds is None:
            quoted_stake, quoted_odds = masaniello_quote(settings, state)
            settled_stake = quoted_stake if settled_stake is None else settled_stake
            settled_odds = quoted_odds if settled_odds is None else settled_odds
        new_state = settle_masaniello(
            settings, state, request.previous_outcome, settled_stake, _require_odds(settled_odds)
        )

    stake, odds = masaniello_quote(settings, new_state)
    return StakeResult(stake=stake, updated_state=new_state, odds=odds)


def calculate_kelly(request: StakeRequest) -> StakeResult:
    settings: KellySettings = request.settings
    state: KellyState = request.state

    if request.previous_outcome is None:
        new_state = state.model_copy(deep=True)
    else:
        new_state = settle_kelly(settings, request.base_bankroll, state, request.previous_outcome)

    stake, odds, new_state = kelly_quote(settings, request.base_bankroll, new_state)
    return StakeResult(
        stake=stake,
        updated_state=new_state,
        odds=odds,
        advisory={
            "totalStakeAllocated": new_state.total_stake_allocated,
            "sessionsCompleted": new_state.sessions_completed,
        }
    )


def calculate_beat_delay(request: StakeRequest) -> StakeResult:
    settings: BeatDelaySettings = request.settings
    state: BeatDelayState = request.state

    if request.current_odds is not None:
        _require_odds(request.current_odds)

    level = _level_after(state.level, request.previous_outcome)
    if request.previous_outcome is None:
        consecutive_losses = state.consecutive_losses
        total_staked = state.total_staked
    else:
        settled = request.settled_stake
        if settled is None:
            settled = settings.base_stake * (1 + state.level)
        consecutive_losses = 0 if request.previous_outcome else state.consecutive_losses + 1
        total_staked = state.total_staked + settled

    evaluation = evaluate_settings(settings, request.current_odds)
    new_state = apply_evaluation(
        BeatDelayState(
            level=level,
            consecutive_losses=consecutive_losses,
            total_staked=total_staked
        ),
        evaluation
    )
    return StakeResult(
        stake=settings.base_stake * (1 + level),
        updated_state=new_state,
        advisory=evaluation.to_dict() if evaluation else {}
    )


CALCULATORS: Dict[str, Callable[[StakeRequest], StakeResult]] = {
    "flat": calculate_flat,
    "percentage": calculate_percentage,
    "dalembert": calculate_dalembert,
    "profitfall": calculate_profit_fall,
    "masaniello": calculate_masaniello,
    "kelly": calculate_kelly,
    "beat-delay": calculate_beat_delay,
}

if set(CALCULATORS) != set(StrategyKind.__args__):
    raise RuntimeError("Every strategy kind needs exactly one calculator")


# ---------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------

def initial_state(settings: StrategySettings, initial_bankroll: float) -> StrategyState:
    """Zero state for a fresh session."""
    kind = settings.strategy
    if kind == "flat":
        return FlatState()
    if kind == "percentage":
        return PercentageState()
    if kind == "dalembert":
        return DalembertState()
    if kind == "profitfall":
        return ProfitFallState()
    if kind == "masaniello":
        return masaniello_initial_state(settings, initial_bankroll)
    if kind == "kelly":
        return KellyState()
    return BeatDelayState()


def compute_next_stake(
    strategy: str,
    settings: StrategySettings,
    base_bankroll: float,
    previous_outcome: Optional[bool],
    state: StrategyState,
    current_odds: Optional[float],
    *,
    settled_stake: Optional[float] = None,
    settled_odds: Optional[float] = None
) -> StakeResult:
    """
    Compute the next stake and the updated strategy state.

    Args:
        strategy: Strategy tag; must match ``settings`` and ``state``
        settings: Decoded strategy settings
        base_bankroll: Session initial bankroll
        previous_outcome: True (win), False (loss) or None for the opening quote
        state: Current strategy state (never mutated)
        current_odds: Odds for the next bet
        settled_stake: Stake of the bet being settled, when known
        settled_odds: Odds of the bet being settled, when known

    Raises:
        InvalidConfiguration: Bankroll not positive or mismatched strategy variants
        InvalidOdds: Odds at or below 1.0
        SequenceExhausted: Outcome recorded on a terminal sequence
    """
    kind = normalize_strategy(strategy)

    if base_bankroll is None or base_bankroll <= 0:
        raise InvalidConfiguration(
            f"Bankroll must be positive (got {base_bankroll})",
            field="initialBankroll"
        )
    if settings.strategy != kind or state.strategy != kind:
        raise InvalidConfiguration(
            f"Strategy mismatch: requested '{kind}', settings '{settings.strategy}', "
            f"state '{state.strategy}'",
            field="strategy"
        )
    if current_odds is not None and current_odds <= 1:
        raise InvalidOdds(current_odds)
    if settled_odds is not None and settled_odds <= 1:
        raise InvalidOdds(settled_odds)
    if settled_stake is not None and settled_stake < 0:
        raise InvalidConfiguration(
            f"Settled stake cannot be negative (got {settled_stake})",
            field="stake"
        )

    request = StakeRequest(
        settings=settings,
        base_bankroll=base_bankroll,
        previous_outcome=previous_outcome,
        state=state,
        current_odds=current_odds,
        settled_stake=settled_stake,
        settled_odds=settled_odds
    )
    result = CALCULATORS[kind](request)

    logger.debug(
        f"[STAKE] {kind} outcome={previous_outcome} odds={current_odds} "
        f"-> stake={result.stake:.2f}"
    )
    return result

"""
Session Orchestrator

Owns the single active money management session:
- Session start with settings validation and the opening stake
- Atomic outcome recording (bet stored before state is committed)
- Re-quoting the pending stake when the odds change
- Session reset and stored history access
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_ODDS, MAX_BANKROLL
from ..engine import (
    auto_capture_rate,
    compute_next_stake,
    evaluate_badges,
    get_recommendations,
    initial_state,
    recovery_rate_from_history,
)
from ..engine.kelly import next_pending
from ..exceptions import (
    InvalidConfiguration,
    InvalidOdds,
    NoActiveSession,
    SequenceExhausted,
    SessionNotFound,
)
from ..models import (
    Bet,
    Session,
    StrategySettings,
    StrategyState,
    normalize_strategy,
    parse_strategy_settings,
    serialize_strategy_settings,
)
from ..logging_config import safe_log
from ..schemas import SessionProgress, SessionSnapshot, StartSessionRequest
from ..utils.formatting import format_currency, format_percentage
from .persistence import InMemorySessionRepository, SessionRepository

logger = logging.getLogger("bankroll_api.services")


@dataclass
class SessionContext:
    """Everything the orchestrator commits together after each operation."""
    session: Session
    settings: StrategySettings
    state: StrategyState
    next_stake: float
    odds: float
    bets: List[Bet] = field(default_factory=list)
    past_bets: List[Bet] = field(default_factory=list)
    advisory: Dict[str, Any] = field(default_factory=dict)

    @property
    def potential_win(self) -> float:
        return self.next_stake * self.odds

    @property
    def is_terminal(self) -> bool:
        return self.session.status != "active"


def session_status(settings: StrategySettings, state: StrategyState, bankroll: float) -> str:
    """Session status implied by the strategy state and stop losses."""
    if state.strategy == "masaniello" and state.is_completed:
        return "completed"
    if bankroll <= 0:
        return "stopped"
    if state.strategy == "dalembert" and settings.stop_loss is not None:
        if state.current_level >= settings.stop_loss:
            return "stopped"
    if state.strategy == "beat-delay" and settings.stop_loss is not None:
        if state.level >= settings.stop_loss:
            return "stopped"
    if state.strategy == "profitfall" and state.accumulated_loss > settings.profit_fall_stop_loss:
        return "stopped"
    if state.strategy == "kelly" and next_pending(state) is None:
        return "stopped"
    return "active"


def session_advisory(
    strategy: str,
    advisory: Dict[str, Any],
    bets: List[Bet],
    past_bets: Optional[List[Bet]] = None
) -> Dict[str, Any]:
    """
    Calculator advisory plus history analytics for Beat the Delay sessions.

    The capture rate pools ``past_bets`` (earlier Beat the Delay sessions) with
    the active session; the recovery rate looks at the active session only.
    """
    merged = dict(advisory)
    if strategy == "beat-delay":
        merged["captureRate"] = auto_capture_rate(list(past_bets or []) + bets)
        merged["recoveryRate"] = recovery_rate_from_history([bet.win for bet in bets])
    return merged


def session_progress(session: Session) -> SessionProgress:
    profit = session.current_bankroll - session.initial_bankroll
    target_amount = session.initial_bankroll * session.target_return / 100
    if target_amount > 0:
        target_progress = max(0.0, min(100.0, profit / target_amount * 100))
    else:
        target_progress = 100.0 if profit >= 0 else 0.0
    return SessionProgress(
        profit=profit,
        roi=profit / session.initial_bankroll * 100,
        target_amount=target_amount,
        target_progress=target_progress,
        target_reached=session.current_bankroll >= session.initial_bankroll + target_amount
    )


class SessionOrchestrator:
    """Service driving one active session at a time."""

    def __init__(self, repository: Optional[SessionRepository] = None):
        self.repository = repository or InMemorySessionRepository()
        self._lock = threading.Lock()
        self._context: Optional[SessionContext] = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_context(self) -> SessionContext:
        if self._context is None:
            raise NoActiveSession()
        return self._context

    @staticmethod
    def _check_odds(odds: Optional[float]) -> float:
        if odds is None or odds <= 1:
            raise InvalidOdds(odds)
        return odds

    @staticmethod
    def _to_snapshot(context: SessionContext) -> SessionSnapshot:
        return SessionSnapshot(
            session=context.session,
            next_stake=context.next_stake,
            potential_win=context.potential_win,
            odds=context.odds,
            state=context.state,
            progress=session_progress(context.session),
            advisory=context.advisory,
            is_terminal=context.is_terminal
        )

    def _strategy_history(self, strategy: str) -> List[Bet]:
        """Bets of every stored session that used ``strategy``."""
        bets: List[Bet] = []
        for stored in self.repository.list_sessions():
            if stored.strategy == strategy:
                bets.extend(self.repository.list_bets(stored.id))
        return bets

    # ------------------------------------------------------------------
    # start_session
    # ------------------------------------------------------------------
    def start_session(self, request: StartSessionRequest) -> SessionSnapshot:
        """
        Validate settings, build the zero state and quote the first stake.

        Raises:
            InvalidConfiguration: Bad bankroll, strategy or settings (nothing changed)
            InvalidOdds: Opening odds at or below 1.0
            PersistenceError: Session could not be stored (nothing changed)
        """
        strategy = normalize_strategy(request.strategy)
        bankroll = request.initial_bankroll
        if bankroll is None or bankroll <= 0:
            raise InvalidConfiguration(
                f"Initial bankroll must be positive (got {bankroll})",
                field="initialBankroll"
            )
        if bankroll > MAX_BANKROLL:
            raise InvalidConfiguration(
                f"Initial bankroll cannot exceed {MAX_BANKROLL}",
                field="initialBankroll"
            )

        settings = parse_strategy_settings(request.strategy_settings, strategy)

        opening_odds = request.current_odds
        if opening_odds is None and strategy == "beat-delay":
            opening_odds = settings.current_odds
        odds = self._check_odds(opening_odds if opening_odds is not None else DEFAULT_ODDS)

        state = initial_state(settings, bankroll)
        result = compute_next_stake(strategy, settings, bankroll, None, state, odds)

        target_return = request.target_return
        if settings.target_return is not None and "target_return" not in request.model_fields_set:
            target_return = settings.target_return

        session = Session(
            name=request.name,
            initial_bankroll=bankroll,
            current_bankroll=bankroll,
            target_return=target_return,
            strategy=strategy,
            strategy_settings=serialize_strategy_settings(settings),
            status=session_status(settings, result.updated_state, bankroll)
        )

        past_bets = self._strategy_history(strategy) if strategy == "beat-delay" else []

        with self._lock:
            stored = self.repository.create_session(session)
            self._context = SessionContext(
                session=stored,
                settings=settings,
                state=result.updated_state,
                next_stake=result.stake,
                odds=result.odds or odds,
                past_bets=past_bets,
                advisory=session_advisory(strategy, result.advisory, [], past_bets)
            )
            snapshot = self._to_snapshot(self._context)

        logger.info(safe_log(
            f"[SESSION] Started #{stored.id} '{stored.name}' | Strategy: {strategy} | "
            f"Bankroll: {format_currency(bankroll)} | First stake: {format_currency(result.stake)}"
        ))
        return snapshot

    # ------------------------------------------------------------------
    # record_outcome
    # ------------------------------------------------------------------
    def record_outcome(self, win: bool, current_odds: Optional[float] = None) -> SessionSnapshot:
        """
        Settle the pending bet and quote the next one.

        Args:
            win: Outcome of the pending bet
            current_odds: Odds for the next bet (defaults to the pending bet's odds)

        Raises:
            NoActiveSession: No session started
            SequenceExhausted: Session already completed or stopped
            InvalidOdds: ``current_odds`` at or below 1.0
            PersistenceError: Bet could not be stored (nothing changed)
        """
        with self._lock:
            context = self._require_context()
            session = context.session

            if context.is_terminal:
                raise SequenceExhausted(
                    f"Session #{session.id} is {session.status}; start a new session",
                    strategy=session.strategy
                )

            next_odds = self._check_odds(current_odds if current_odds is not None else context.odds)
            stake = context.next_stake
            odds = context.odds

            result = compute_next_stake(
                session.strategy,
                context.settings,
                session.initial_bankroll,
                win,
                context.state,
                next_odds,
                settled_stake=stake,
                settled_odds=odds
            )

            bankroll_before = session.current_bankroll
            potential_win = stake * odds
            bankroll_after = bankroll_before + (potential_win - stake) if win else bankroll_before - stake

            bet = Bet(
                session_id=session.id,
                bet_number=session.bet_count + 1,
                stake=stake,
                odds=odds,
                potential_win=potential_win,
                win=win,
                profit=bankroll_after - bankroll_before,
                bankroll_before=bankroll_before,
                bankroll_after=bankroll_after
            )
            updated = session.model_copy(update={
                "current_bankroll": bankroll_after,
                "bet_count": session.bet_count + 1,
                "wins": session.wins + (1 if win else 0),
                "losses": session.losses + (0 if win else 1),
                "status": session_status(context.settings, result.updated_state, bankroll_after),
                "updated_at": datetime.now(timezone.utc),
            })

            # nothing is committed unless the store accepted the bet
            stored_session, stored_bet = self.repository.record_bet(updated, bet)

            bets = context.bets + [stored_bet]
            self._context = SessionContext(
                session=stored_session,
                settings=context.settings,
                state=result.updated_state,
                next_stake=result.stake,
                odds=result.odds or next_odds,
                bets=bets,
                past_bets=context.past_bets,
                advisory=session_advisory(session.strategy, result.advisory, bets, context.past_bets)
            )
            snapshot = self._to_snapshot(self._context)

        logger.info(safe_log(
            f"[BET] #{stored_bet.bet_number} {'WIN' if win else 'LOSS'} | "
            f"Stake: {format_currency(stake)} @ {odds:.2f} | "
            f"Bankroll: {format_currency(bankroll_before)} -> {format_currency(bankroll_after)} | "
            f"Next stake: {format_currency(result.stake)}"
        ))
        if stored_session.status != "active":
            progress = session_progress(stored_session)
            logger.info(
                f"[SESSION] #{stored_session.id} {stored_session.status.upper()} | "
                f"ROI: {format_percentage(progress.roi, signed=True)}"
            )
        return snapshot

    # ------------------------------------------------------------------
    # set_odds
    # ------------------------------------------------------------------
    def set_odds(self, odds: float) -> SessionSnapshot:
        """Re-quote the pending stake at new odds without touching history."""
        with self._lock:
            context = self._require_context()
            session = context.session
            if context.is_terminal:
                raise SequenceExhausted(
                    f"Session #{session.id} is {session.status}",
                    strategy=session.strategy
                )
            odds = self._check_odds(odds)

            result = compute_next_stake(
                session.strategy,
                context.settings,
                session.initial_bankroll,
                None,
                context.state,
                odds
            )
            self._context = SessionContext(
                session=session,
                settings=context.settings,
                state=result.updated_state,
                next_stake=result.stake,
                odds=result.odds or odds,
                bets=list(context.bets),
                past_bets=context.past_bets,
                advisory=session_advisory(session.strategy, result.advisory, context.bets, context.past_bets)
            )
            snapshot = self._to_snapshot(self._context)

        logger.info(f"[STAKE] Re-quoted at {odds:.2f} -> {result.stake:.2f}")
        return snapshot

    # ------------------------------------------------------------------
    # reset / snapshot
    # ------------------------------------------------------------------
    def reset_session(self) -> int:
        """
        Delete the active session and its bets.

        Returns:
            Id of the deleted session
        """
        with self._lock:
            context = self._require_context()
            session_id = context.session.id
            self.repository.delete_session(session_id)
            self._context = None

        logger.info(f"[SESSION] Reset #{session_id}")
        return session_id

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._to_snapshot(self._require_context())

    @property
    def has_active_session(self) -> bool:
        return self._context is not None

    # ------------------------------------------------------------------
    # Stored history
    # ------------------------------------------------------------------
    def list_sessions(self) -> List[Session]:
        return self.repository.list_sessions()

    def get_session(self, session_id: int) -> Session:
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def list_bets(self, session_id: int) -> List[Bet]:
        self.get_session(session_id)
        return self.repository.list_bets(session_id)

    def badges(self, session_id: int):
        session = self.get_session(session_id)
        return evaluate_badges(session, self.repository.list_bets(session_id))

    def recommendations(self):
        return get_recommendations(self.repository.list_sessions(), self.repository.bets_by_session())

import os
import tempfile

# keep test log files out of the package directory
os.environ.setdefault("BANKROLL_LOG_DIR", tempfile.mkdtemp(prefix="bankroll_logs_"))

import pytest
from fastapi.testclient import TestClient

from bankroll_engine.exceptions import PersistenceError
from bankroll_engine.models import Bet, Session
from bankroll_engine.services import InMemorySessionRepository, SessionOrchestrator


def build_bets(outcomes, stake=10.0, odds=2.0, initial=1000.0, session_id=1):
    """Consistent bet history for a list of win/loss outcomes."""
    bets = []
    bankroll = initial
    for number, win in enumerate(outcomes, start=1):
        after = bankroll + stake * (odds - 1) if win else bankroll - stake
        bets.append(Bet(
            id=number,
            session_id=session_id,
            bet_number=number,
            stake=stake,
            odds=odds,
            potential_win=stake * odds,
            win=win,
            profit=after - bankroll,
            bankroll_before=bankroll,
            bankroll_after=after
        ))
        bankroll = after
    return bets


def build_session(bets=(), initial=1000.0, strategy="flat", session_id=1, target_return=10.0):
    current = bets[-1].bankroll_after if bets else initial
    return Session(
        id=session_id,
        name=f"Session {session_id}",
        initial_bankroll=initial,
        current_bankroll=current,
        target_return=target_return,
        strategy=strategy,
        bet_count=len(bets),
        wins=sum(1 for b in bets if b.win),
        losses=sum(1 for b in bets if not b.win)
    )


class FlakyRepository(InMemorySessionRepository):
    """In-memory store whose writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def record_bet(self, session, bet):
        if self.fail_writes:
            raise PersistenceError("storage unavailable", url="memory://bets")
        return super().record_bet(session, bet)

    def create_session(self, session):
        if self.fail_writes:
            raise PersistenceError("storage unavailable", url="memory://sessions")
        return super().create_session(session)


@pytest.fixture
def make_bets():
    return build_bets


@pytest.fixture
def make_session():
    return build_session


@pytest.fixture
def repository():
    return FlakyRepository()


@pytest.fixture
def orchestrator(repository):
    return SessionOrchestrator(repository)


@pytest.fixture
def client(repository):
    from bankroll_engine.app import app

    app.state.orchestrator = SessionOrchestrator(repository)
    with TestClient(app) as test_client:
        yield test_client

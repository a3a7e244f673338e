import pytest

from bankroll_engine.exceptions import (
    InvalidConfiguration,
    InvalidOdds,
    NoActiveSession,
    PersistenceError,
    SequenceExhausted,
    SessionNotFound,
)
from bankroll_engine.schemas import StartSessionRequest


def start(orchestrator, strategy, settings=None, bankroll=1000.0, **extra):
    request = StartSessionRequest(
        name="Test",
        initial_bankroll=bankroll,
        strategy=strategy,
        strategy_settings=settings or {},
        **extra
    )
    return orchestrator.start_session(request)


class TestStartSession:

    def test_opening_snapshot(self, orchestrator):
        snapshot = start(orchestrator, "flat", {"baseStake": 20}, current_odds=1.9)

        assert snapshot.session.id == 1
        assert snapshot.session.current_bankroll == 1000
        assert snapshot.session.status == "active"
        assert snapshot.next_stake == 20
        assert snapshot.odds == 1.9
        assert snapshot.potential_win == pytest.approx(38.0)
        assert snapshot.progress.target_amount == pytest.approx(100.0)
        assert orchestrator.has_active_session

    def test_settings_target_return_applies_when_request_omits_it(self, orchestrator):
        snapshot = start(orchestrator, "flat", {"targetReturn": 25})
        assert snapshot.session.target_return == 25

    @pytest.mark.parametrize("bankroll", [0, -50])
    def test_rejects_non_positive_bankroll(self, orchestrator, bankroll):
        with pytest.raises(InvalidConfiguration):
            start(orchestrator, "flat", bankroll=bankroll)
        assert not orchestrator.has_active_session

    def test_bad_settings_keep_previous_session(self, orchestrator):
        start(orchestrator, "flat", {"baseStake": 15})

        with pytest.raises(InvalidConfiguration):
            start(orchestrator, "masaniello", {"totalEvents": 2, "minimumWins": 5})

        assert orchestrator.snapshot().next_stake == 15

    def test_rejects_invalid_opening_odds(self, orchestrator):
        with pytest.raises(InvalidOdds):
            start(orchestrator, "flat", current_odds=1.0)

    def test_failed_store_leaves_no_session(self, orchestrator, repository):
        repository.fail_writes = True

        with pytest.raises(PersistenceError):
            start(orchestrator, "flat")

        assert not orchestrator.has_active_session


class TestRecordOutcome:

    def test_requires_active_session(self, orchestrator):
        with pytest.raises(NoActiveSession):
            orchestrator.record_outcome(True)

    def test_win_and_loss_update_bankroll(self, orchestrator):
        start(orchestrator, "flat", {"baseStake": 10}, current_odds=2.5)

        after_win = orchestrator.record_outcome(True)
        assert after_win.session.current_bankroll == pytest.approx(1015.0)
        assert after_win.session.wins == 1

        after_loss = orchestrator.record_outcome(False, current_odds=1.8)
        assert after_loss.session.current_bankroll == pytest.approx(1005.0)
        assert after_loss.session.losses == 1
        assert after_loss.session.bet_count == 2
        assert after_loss.odds == 1.8

        bets = orchestrator.list_bets(after_loss.session.id)
        assert [b.bet_number for b in bets] == [1, 2]
        assert bets[0].profit == pytest.approx(15.0)
        assert bets[1].bankroll_before == pytest.approx(1015.0)
        assert bets[1].odds == 2.5

    def test_profit_fall_session_nets_desired_profit(self, orchestrator):
        start(
            orchestrator, "profitfall",
            {"stakeIniziale": 10, "margineProfitto": 10, "profitFallStopLoss": 500},
            current_odds=2.0
        )

        assert orchestrator.record_outcome(False, current_odds=1.8).next_stake == pytest.approx(13.75)
        assert orchestrator.record_outcome(False, current_odds=2.2).next_stake == pytest.approx(20.625)
        final = orchestrator.record_outcome(True)

        assert final.session.current_bankroll == pytest.approx(1001.0)
        assert final.next_stake == pytest.approx(10.0)

    def test_failed_persistence_commits_nothing(self, orchestrator, repository):
        start(orchestrator, "dalembert", {"dalembertUnit": 5})
        orchestrator.record_outcome(False)
        before = orchestrator.snapshot().model_dump()

        repository.fail_writes = True
        with pytest.raises(PersistenceError):
            orchestrator.record_outcome(False)

        assert orchestrator.snapshot().model_dump() == before
        assert len(orchestrator.list_bets(before["session"]["id"])) == 1

    def test_invalid_next_odds_commit_nothing(self, orchestrator):
        start(orchestrator, "flat")
        before = orchestrator.snapshot().model_dump()

        with pytest.raises(InvalidOdds):
            orchestrator.record_outcome(True, current_odds=0.8)

        assert orchestrator.snapshot().model_dump() == before

    def test_masaniello_completion_is_terminal(self, orchestrator):
        start(orchestrator, "masaniello", {"totalEvents": 5, "minimumWins": 3, "riskFactor": 5})

        for _ in range(3):
            snapshot = orchestrator.record_outcome(False)

        assert snapshot.session.status == "completed"
        assert snapshot.is_terminal
        assert snapshot.state.is_successful is False
        with pytest.raises(SequenceExhausted):
            orchestrator.record_outcome(True)

    def test_dalembert_stop_loss(self, orchestrator):
        start(orchestrator, "dalembert", {"dalembertUnit": 10, "stopLoss": 2})

        assert orchestrator.record_outcome(False).session.status == "active"
        snapshot = orchestrator.record_outcome(False)

        assert snapshot.session.status == "stopped"
        with pytest.raises(SequenceExhausted):
            orchestrator.record_outcome(True)

    def test_empty_bankroll_stops_session(self, orchestrator):
        start(orchestrator, "flat", {"baseStake": 50}, bankroll=100)

        orchestrator.record_outcome(False)
        snapshot = orchestrator.record_outcome(False)

        assert snapshot.session.current_bankroll == 0
        assert snapshot.session.status == "stopped"

    def test_beat_delay_advisory_tracks_history(self, orchestrator):
        opening = start(orchestrator, "beat-delay", {"baseStake": 5, "currentOdds": 2.0})
        assert opening.advisory["captureRate"] == 75.0
        assert "expected_value" in opening.advisory

        snapshot = orchestrator.record_outcome(False)
        assert snapshot.next_stake == 10
        assert snapshot.advisory["captureRate"] == 55.0

    def test_beat_delay_advisory_follows_new_odds(self, orchestrator):
        opening = start(orchestrator, "beat-delay", {"baseStake": 5, "currentOdds": 2.0, "historicalFrequency": 40})
        assert opening.advisory["expected_value"] == pytest.approx(-0.2)

        snapshot = orchestrator.record_outcome(False, current_odds=5.0)

        assert snapshot.odds == 5.0
        assert snapshot.advisory["expected_value"] == pytest.approx(1.0)
        assert snapshot.advisory["should_play"] is True
        assert orchestrator.set_odds(2.0).advisory["expected_value"] == pytest.approx(-0.2)

    def test_capture_rate_pools_earlier_beat_delay_sessions(self, orchestrator):
        start(orchestrator, "beat-delay", {"baseStake": 5})
        orchestrator.record_outcome(True)
        orchestrator.record_outcome(True)
        start(orchestrator, "flat", {"baseStake": 5})
        orchestrator.record_outcome(False)

        snapshot = start(orchestrator, "beat-delay", {"baseStake": 5})
        assert snapshot.advisory["captureRate"] == pytest.approx(85.2)
        assert snapshot.advisory["recoveryRate"] == 0.0

        after_loss = orchestrator.record_outcome(False)
        # two wins out of three pooled bets
        assert after_loss.advisory["captureRate"] == pytest.approx(200 / 3 - 9.7)

    def test_profit_fall_stops_only_beyond_limit(self, orchestrator):
        start(
            orchestrator, "profitfall",
            {"stakeIniziale": 10, "margineProfitto": 10, "profitFallStopLoss": 10},
            current_odds=2.0
        )

        at_limit = orchestrator.record_outcome(False)
        assert at_limit.state.accumulated_loss == pytest.approx(10.0)
        assert at_limit.session.status == "active"

        beyond = orchestrator.record_outcome(False)
        assert beyond.session.status == "stopped"
        assert beyond.is_terminal

    def test_kelly_plan_without_value_is_terminal(self, orchestrator):
        snapshot = start(orchestrator, "kelly", {
            "events": [{"bookmakerOdds": 1.5, "estimatedProbability": 0.5}]
        })

        assert snapshot.next_stake == 0
        assert snapshot.session.status == "stopped"
        assert snapshot.is_terminal
        with pytest.raises(SequenceExhausted):
            orchestrator.record_outcome(True)


class TestOddsAndReset:

    def test_set_odds_requotes_without_history(self, orchestrator):
        start(orchestrator, "profitfall", {"stakeIniziale": 10, "margineProfitto": 10}, current_odds=2.0)
        orchestrator.record_outcome(False)

        snapshot = orchestrator.set_odds(3.0)

        assert snapshot.next_stake == pytest.approx(5.5)
        assert snapshot.odds == 3.0
        assert snapshot.session.bet_count == 1

    def test_reset_deletes_session(self, orchestrator):
        session_id = start(orchestrator, "flat").session.id
        orchestrator.record_outcome(True)

        assert orchestrator.reset_session() == session_id
        assert orchestrator.list_sessions() == []
        with pytest.raises(NoActiveSession):
            orchestrator.snapshot()
        with pytest.raises(SessionNotFound):
            orchestrator.list_bets(session_id)

    def test_badges_for_stored_session(self, orchestrator):
        session_id = start(orchestrator, "flat").session.id
        orchestrator.record_outcome(True)
        orchestrator.record_outcome(True)

        unlocked = {b.id for b in orchestrator.badges(session_id) if b.unlocked}
        assert {"streak_1", "wins_1", "roi_1"} <= unlocked

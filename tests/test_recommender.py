import random

import pytest

from bankroll_engine.engine import StrategyRecommender, get_recommendations
from bankroll_engine.engine.recommender import DEFAULT_REASON, calculate_session_metrics


class TestSessionMetrics:

    def test_alternating_history(self, make_bets, make_session):
        bets = make_bets([True, False] * 5)
        metrics = calculate_session_metrics(make_session(bets), bets)

        assert metrics.win_rate == pytest.approx(0.5)
        assert metrics.avg_odds == pytest.approx(2.0)
        assert metrics.volatility == pytest.approx(10.0)
        assert metrics.roi == pytest.approx(0.0)
        assert metrics.longest_win_streak == 1
        assert metrics.longest_lose_streak == 1
        assert metrics.streakiness == pytest.approx(1.0)

    def test_streaks(self, make_bets, make_session):
        bets = make_bets([True, True, True, False, False, True])
        metrics = calculate_session_metrics(make_session(bets), bets)

        assert metrics.longest_win_streak == 3
        assert metrics.longest_lose_streak == 2
        # win streaks 3 and 1, loss streak 2
        assert metrics.streakiness == pytest.approx((2.0 + 2.0) / 2)

    def test_empty_session(self, make_session):
        metrics = calculate_session_metrics(make_session(), [])
        assert metrics.win_rate == 0.0
        assert metrics.volatility == 0.0


class TestRecommender:

    def test_no_history_defaults_to_flat(self):
        recommendations = get_recommendations([], {})

        assert len(recommendations) == 1
        assert recommendations[0].strategy == "flat"
        assert recommendations[0].confidence == 0.7
        assert recommendations[0].reason == DEFAULT_REASON

    def test_alternating_history_scores(self, make_bets, make_session):
        bets = make_bets([True, False] * 5)
        recommendations = get_recommendations([make_session(bets)], {1: bets})

        scores = {r.strategy: r.confidence for r in recommendations}
        assert scores == {"flat": 0.9, "percentage": 0.4, "dalembert": 0.9}
        # ties are broken by strategy name
        assert [r.strategy for r in recommendations] == ["dalembert", "flat", "percentage"]

    def test_sorted_by_confidence(self, make_bets, make_session):
        bets = make_bets([True, True, False, True, True, True, False, True], odds=2.5)
        recommendations = get_recommendations([make_session(bets)], {1: bets})

        confidences = [r.confidence for r in recommendations]
        assert confidences == sorted(confidences, reverse=True)
        assert all(c <= 0.95 for c in confidences)

    def test_bet_order_does_not_matter(self, make_bets, make_session):
        bets = make_bets([True, False, False, False, True, True, False, True, True, False])
        session = make_session(bets)
        shuffled = list(bets)
        random.Random(7).shuffle(shuffled)

        expected = get_recommendations([session], {1: bets})
        actual = get_recommendations([session], {1: shuffled})

        assert [r.to_dict() for r in actual] == [r.to_dict() for r in expected]

    def test_aggregates_across_sessions(self, make_bets, make_session):
        first = make_bets([False] * 5, session_id=1)
        second = make_bets([True] * 5, session_id=2)
        recommender = StrategyRecommender(
            [make_session(first, session_id=1), make_session(second, session_id=2)],
            {1: first, 2: second}
        )

        metrics = recommender.aggregate_metrics()

        assert metrics["avg_win_rate"] == pytest.approx(0.5)
        assert metrics["max_lose_streak"] == 5

    def test_reason_follows_confidence_band(self, make_bets, make_session):
        bets = make_bets([True, False] * 5)
        recommendations = get_recommendations([make_session(bets)], {1: bets})

        percentage = next(r for r in recommendations if r.strategy == "percentage")
        assert percentage.reason.startswith("Percentage staking may not be")

import pytest

from bankroll_engine.engine import (
    analyze_outcomes,
    compute_next_stake,
    dynamic_kelly_fraction,
    initial_state,
    kelly_fraction_for,
    normalize_implied_probabilities,
    plan_allocations,
    poisson_outcome_probabilities,
)
from bankroll_engine.engine.kelly import full_kelly, risk_level
from bankroll_engine.exceptions import InvalidConfiguration, InvalidOdds, SequenceExhausted
from bankroll_engine.models import KellyEvent, parse_strategy_settings


def event(p, odds, name=""):
    return KellyEvent(name=name, bookmaker_odds=odds, estimated_probability=p)


class TestKellyMath:

    def test_full_kelly(self):
        assert full_kelly(0.6, 2.0) == pytest.approx(0.2)
        assert full_kelly(0.4, 3.0) == pytest.approx(0.1)
        assert full_kelly(0.3, 2.0) < 0

    def test_reduced_fraction_is_rounded_and_non_negative(self):
        assert kelly_fraction_for(0.6, 2.0, 0.5) == 0.1
        assert kelly_fraction_for(0.55, 1.9) == pytest.approx(0.05, abs=1e-4)
        assert kelly_fraction_for(0.3, 2.0) == 0.0

    def test_invalid_odds(self):
        with pytest.raises(InvalidOdds):
            full_kelly(0.5, 1.0)

    @pytest.mark.parametrize("adjusted,level", [(0.2, "high"), (0.1, "medium"), (0.05, "low")])
    def test_risk_levels(self, adjusted, level):
        assert risk_level(adjusted) == level

    @pytest.mark.parametrize("tolerance,fraction", [
        (0, 0.10),
        (30, 0.25),
        (50, 0.375),
        (70, 0.50),
        (100, 0.75),
    ])
    def test_dynamic_fraction(self, tolerance, fraction):
        assert dynamic_kelly_fraction(tolerance) == pytest.approx(fraction)

    def test_dynamic_fraction_out_of_range(self):
        with pytest.raises(InvalidConfiguration):
            dynamic_kelly_fraction(101)


class TestAllocations:

    def test_no_edge_means_zero_stake(self):
        allocations, total = plan_allocations(
            [event(0.3, 2.0), event(0.5, 2.0), event(0.6, 2.0)],
            bankroll=1000, fraction=0.25, max_single_stake=100, max_risk_percentage=20
        )

        assert [a.stake for a in allocations[:2]] == [0.0, 0.0]
        assert [a.recommended for a in allocations] == [False, False, True]
        assert allocations[2].stake == pytest.approx(50.0)
        assert total == pytest.approx(50.0)

    def test_single_stake_cap(self):
        allocations, _ = plan_allocations(
            [event(0.9, 2.0)], bankroll=1000, fraction=1.0, max_single_stake=100, max_risk_percentage=100
        )
        assert allocations[0].stake == 100

    def test_risk_cap_scales_proportionally(self):
        allocations, total = plan_allocations(
            [event(0.6, 2.0), event(0.7, 2.0)],
            bankroll=1000, fraction=0.25, max_single_stake=100, max_risk_percentage=10
        )

        stakes = [a.stake for a in allocations]
        assert sum(stakes) == pytest.approx(100.0)
        assert total == pytest.approx(100.0)
        assert stakes[1] / stakes[0] == pytest.approx(2.0)

    def test_event_ids_default_to_position(self):
        allocations, _ = plan_allocations(
            [event(0.6, 2.0), event(0.6, 2.0)], 1000, 0.25, 100, 20
        )
        assert [a.id for a in allocations] == ["1", "2"]


class TestKellyCalculator:

    @pytest.fixture
    def settings(self):
        return parse_strategy_settings({
            "kellyFraction": 0.25,
            "maxRiskPercentage": 20,
            "maxSingleStake": 100,
            "events": [
                {"name": "Home win", "bookmakerOdds": 2.0, "estimatedProbability": 0.6},
                {"name": "Draw", "quotaBookmaker": 2.0, "probabilitaStimata": 0.4},
                {"name": "Away win", "bookmakerOdds": 3.0, "estimatedProbability": 0.4},
            ],
        }, "kelly")

    def test_cycle_settles_recommended_events_in_order(self, settings):
        state = initial_state(settings, 1000)

        opening = compute_next_stake("kelly", settings, 1000, None, state, 2.0)
        assert opening.stake == pytest.approx(50.0)
        assert opening.odds == 2.0
        assert opening.advisory["totalStakeAllocated"] == pytest.approx(75.0)

        second = compute_next_stake("kelly", settings, 1000, True, opening.updated_state, 2.0)
        assert second.stake == pytest.approx(25.0)
        assert second.odds == 3.0
        assert second.updated_state.events[0].result == "won"
        assert second.updated_state.events[1].result == "pending"

    def test_completed_cycle_starts_a_new_plan(self, settings):
        opening = compute_next_stake("kelly", settings, 1000, None, initial_state(settings, 1000), 2.0)
        second = compute_next_stake("kelly", settings, 1000, True, opening.updated_state, 2.0)
        third = compute_next_stake("kelly", settings, 1000, False, second.updated_state, 2.0)

        assert third.updated_state.sessions_completed == 1
        assert third.advisory["sessionsCompleted"] == 1
        assert all(a.result == "pending" for a in third.updated_state.events)
        assert third.stake == pytest.approx(50.0)

    def test_plan_without_value_cannot_settle(self):
        settings = parse_strategy_settings(
            {"events": [{"bookmakerOdds": 1.5, "estimatedProbability": 0.5}]}, "kelly"
        )
        opening = compute_next_stake("kelly", settings, 1000, None, initial_state(settings, 1000), 2.0)

        assert opening.stake == 0
        assert opening.odds is None
        with pytest.raises(SequenceExhausted):
            compute_next_stake("kelly", settings, 1000, True, opening.updated_state, 2.0)


class TestProbabilities:

    def test_margin_removal(self):
        probabilities = normalize_implied_probabilities([2.0, 3.5, 4.0])

        assert sum(probabilities) == pytest.approx(1.0, abs=1e-3)
        assert probabilities[0] == pytest.approx(0.4828, abs=1e-4)

    def test_poisson_symmetry(self):
        home, draw, away = poisson_outcome_probabilities(1.5, 1.5)

        assert home == pytest.approx(away)
        assert 0.95 < home + draw + away <= 1.0

    def test_poisson_favours_stronger_side(self):
        home, _, away = poisson_outcome_probabilities(2.1, 0.8)
        assert home > away

    def test_poisson_needs_positive_averages(self):
        with pytest.raises(InvalidConfiguration):
            poisson_outcome_probabilities(0, 1.2)

    def test_analyze_outcomes_picks_best_value(self):
        analysis = analyze_outcomes([0.5, 0.3, 0.2], [2.2, 3.0, 4.0])

        assert analysis["best_outcome"] == "1"
        assert analysis["kelly"]["1"]["classic"] == pytest.approx(0.0833, abs=1e-4)
        assert analysis["kelly"]["X"]["classic"] == 0.0
        assert analysis["recommendation"].endswith("moderate value")

    def test_analyze_outcomes_without_value(self):
        analysis = analyze_outcomes([0.3, 0.3, 0.3], [2.0, 2.0, 2.0])

        assert analysis["best_outcome"] is None
        assert analysis["recommendation"] == "No value bet - do not play"

import pytest

SESSION_URL = "/api/v1/session"


def start_session(client, strategy="dalembert", settings=None, **extra):
    payload = {
        "name": "API session",
        "initialBankroll": 1000,
        "strategy": strategy,
        "strategySettings": settings if settings is not None else {"dalembertUnit": 5},
        **extra,
    }
    return client.post(SESSION_URL, json=payload)


class TestServiceEndpoints:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "beat-delay" in response.json()["available_strategies"]

    def test_health_sets_tracing_headers(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["active_session"] is False
        assert response.headers["X-Request-ID"].startswith("req_")
        assert "X-Engine-Version" in response.headers
        assert "X-Processing-Time" in response.headers

    def test_incoming_request_id_is_kept(self, client):
        response = client.get(SESSION_URL, headers={"X-Request-ID": "trace-42"})

        assert response.headers["X-Request-ID"] == "trace-42"
        assert response.json()["request_id"] == "trace-42"

    def test_engine_info(self, client):
        body = client.get("/engine-info").json()
        assert set(body["strategies"]) == set(body["available_strategies"])
        assert body["configuration"]["persistence"]["backend"] == "memory"


class TestSessionEndpoints:

    def test_session_lifecycle(self, client):
        started = start_session(client)
        assert started.status_code == 201
        body = started.json()
        assert body["nextStake"] == 5
        assert body["session"]["strategy"] == "dalembert"
        assert body["state"] == {"strategy": "dalembert", "currentLevel": 0}

        after_loss = client.post(f"{SESSION_URL}/outcome", json={"win": False, "currentOdds": 1.9})
        assert after_loss.status_code == 200
        assert after_loss.json()["nextStake"] == 10
        assert after_loss.json()["session"]["currentBankroll"] == 995
        assert after_loss.json()["odds"] == 1.9

        requoted = client.post(f"{SESSION_URL}/odds", json={"odds": 2.4})
        assert requoted.json()["potentialWin"] == pytest.approx(24.0)

        assert client.get(SESSION_URL).json()["session"]["betCount"] == 1

        sessions = client.get("/api/v1/sessions").json()
        assert sessions["total"] == 1
        session_id = sessions["sessions"][0]["id"]

        bets = client.get(f"/api/v1/sessions/{session_id}/bets").json()
        assert bets["total"] == 1
        assert bets["bets"][0]["win"] is False
        assert bets["bets"][0]["odds"] == 2.0

        badges = client.get(f"/api/v1/sessions/{session_id}/badges").json()
        assert len(badges["badges"]) == 21

        reset = client.delete(SESSION_URL)
        assert reset.json() == {"status": "reset", "sessionId": session_id}
        assert client.get(SESSION_URL).status_code == 404

    def test_target_progress(self, client):
        start_session(client, "flat", {"baseStake": 50}, targetReturn=5, currentOdds=2.0)

        body = client.post(f"{SESSION_URL}/outcome", json={"win": True}).json()

        assert body["progress"]["targetReached"] is True
        assert body["progress"]["roi"] == pytest.approx(5.0)


class TestErrorMapping:

    def test_no_active_session(self, client):
        response = client.post(f"{SESSION_URL}/outcome", json={"win": True})

        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "NO_ACTIVE_SESSION"
        assert body["status_code"] == 404

    def test_unknown_strategy(self, client):
        response = start_session(client, "martingale", {})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_CONFIGURATION"
        assert response.json()["details"]["field"] == "strategy"

    def test_non_positive_bankroll(self, client):
        response = client.post(SESSION_URL, json={"initialBankroll": 0, "strategy": "flat"})
        assert response.status_code == 400

    def test_invalid_odds(self, client):
        start_session(client)

        response = client.post(f"{SESSION_URL}/outcome", json={"win": True, "currentOdds": 0.9})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_ODDS"

    def test_exhausted_sequence(self, client):
        start_session(client, "masaniello", {"totalEvents": 3, "minimumWins": 3})
        client.post(f"{SESSION_URL}/outcome", json={"win": False})

        response = client.post(f"{SESSION_URL}/outcome", json={"win": True})

        assert response.status_code == 409
        assert response.json()["error_code"] == "SEQUENCE_EXHAUSTED"

    def test_persistence_failure(self, client, repository):
        start_session(client)
        repository.fail_writes = True

        response = client.post(f"{SESSION_URL}/outcome", json={"win": False})

        assert response.status_code == 502
        assert response.json()["error_code"] == "PERSISTENCE_ERROR"
        assert client.get(SESSION_URL).json()["session"]["betCount"] == 0

    def test_unknown_stored_session(self, client):
        response = client.get("/api/v1/sessions/99/bets")

        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_malformed_body(self, client):
        assert client.post(f"{SESSION_URL}/outcome", json={}).status_code == 422


class TestCalculatorEndpoints:

    def test_strategy_catalogue(self, client):
        body = client.get("/api/v1/strategies").json()

        assert len(body["strategies"]) == 7
        assert body["default"] == "flat"
        assert body["details"]["beat-delay"]["displayName"] == "Beat the Delay"

    def test_stake_preview(self, client):
        response = client.post("/api/v1/stake/preview", json={
            "strategy": "profitfall",
            "strategySettings": {"stakeIniziale": 10, "margineProfitto": 10},
            "bankroll": 1000,
            "previousOutcome": False,
            "state": {"accumulatedLoss": 0},
            "currentOdds": 1.8,
            "settledStake": 10,
            "settledOdds": 2.0,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["stake"] == pytest.approx(13.75)
        assert body["state"]["accumulatedLoss"] == pytest.approx(10.0)

    def test_stake_preview_rejects_bad_odds(self, client):
        response = client.post("/api/v1/stake/preview", json={
            "strategy": "flat", "bankroll": 1000, "currentOdds": 1.0
        })
        assert response.status_code == 400

    def test_kelly_plan_with_risk_cap(self, client):
        response = client.post("/api/v1/kelly/plan", json={
            "bankroll": 1000,
            "kellyFraction": 0.25,
            "maxRiskPercentage": 10,
            "events": [
                {"name": "A", "bookmakerOdds": 2.0, "estimatedProbability": 0.6},
                {"name": "B", "bookmakerOdds": 2.0, "estimatedProbability": 0.7},
                {"name": "C", "bookmakerOdds": 2.0, "estimatedProbability": 0.3},
            ],
        })

        body = response.json()
        assert body["totalStake"] == pytest.approx(100.0)
        assert body["capped"] is True
        assert body["recommendedCount"] == 2
        assert body["allocations"][2]["stake"] == 0

    def test_kelly_plan_fraction_from_risk_tolerance(self, client):
        body = client.post("/api/v1/kelly/plan", json={"bankroll": 500, "riskTolerance": 70}).json()
        assert body["kellyFraction"] == pytest.approx(0.5)

    def test_probabilities_from_odds(self, client):
        body = client.post("/api/v1/kelly/probabilities", json={
            "method": "odds", "odds": [2.0, 3.5, 4.0]
        }).json()

        assert set(body["probabilities"]) == {"1", "X", "2"}
        # margin-free probabilities never show value against the same odds
        assert body["bestOutcome"] is None

    def test_probabilities_from_poisson(self, client):
        body = client.post("/api/v1/kelly/probabilities", json={
            "method": "poisson", "avgHome": 1.6, "avgAway": 1.1
        }).json()

        assert body["probabilities"]["1"] > body["probabilities"]["2"]
        assert body["kelly"] == {}

    def test_poisson_requires_averages(self, client):
        response = client.post("/api/v1/kelly/probabilities", json={"method": "poisson", "avgHome": 1.2})
        assert response.status_code == 400

    def test_beat_delay_evaluation(self, client):
        body = client.post("/api/v1/beat-delay/evaluate", json={
            "currentDelay": 5,
            "historicalFrequency": 50,
            "avgDelay": 5,
            "maxDelay": 15,
            "odds": 2.2,
            "outcomes": [False, True, False, False, False, False, False, False],
        }).json()

        assert body["recoveryRate"] == pytest.approx(0.5)
        assert body["recoveryAlert"] is True
        assert body["shouldPlay"] is True


class TestRecommendationEndpoints:

    def test_without_history(self, client):
        body = client.get("/api/v1/recommendations").json()

        assert body["sessionsAnalyzed"] == 0
        assert body["recommendations"][0]["strategy"] == "flat"
        assert body["recommendations"][0]["confidence"] == 0.7

    def test_supplied_history(self, client, make_bets, make_session):
        bets = make_bets([True, False] * 5)
        payload = {
            "sessions": [make_session(bets).to_json_dict()],
            "betsBySession": {"1": [bet.to_json_dict() for bet in bets]},
        }

        body = client.post("/api/v1/recommendations", json=payload).json()

        assert body["sessionsAnalyzed"] == 1
        assert [r["strategy"] for r in body["recommendations"]] == ["dalembert", "flat", "percentage"]

    def test_stored_history(self, client):
        start_session(client, "flat", {"baseStake": 10})
        client.post(f"{SESSION_URL}/outcome", json={"win": True})

        body = client.get("/api/v1/recommendations").json()

        assert body["sessionsAnalyzed"] == 1
        assert len(body["recommendations"]) == 3

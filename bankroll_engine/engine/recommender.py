"""
Recommends staking strategies from past session performance
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Any, Sequence
import logging

import numpy as np

from ..config import RECOMMENDER_CONFIDENCE_CAP, RECOMMENDER_DEFAULT_CONFIDENCE
from ..models import Bet, Session

logger = logging.getLogger(__name__)

DEFAULT_REASON = "To get started, flat staking is the safest and simplest strategy to manage."

REASONS = {
    "flat": (
        "Flat staking is recommended because your betting pattern shows noticeable "
        "volatility. A fixed stake keeps risk low and the bankroll stable.",
        "Flat staking is a balanced choice that helps manage risk, although it may not "
        "maximise returns with your current betting pattern.",
        "Flat staking is simple and safe, but your betting profile could get better "
        "results from other strategies.",
    ),
    "percentage": (
        "Percentage staking is strongly recommended: your ROI is good and your win rate "
        "is favourable. Stakes will follow the size of your bankroll.",
        "Percentage staking would adapt your stakes to bankroll changes, which could "
        "suit your betting pattern.",
        "Percentage staking may not be the best fit for your current betting profile.",
    ),
    "dalembert": (
        "The D'Alembert system is highly recommended because your results alternate "
        "between wins and losses. It recovers losses gradually.",
        "The D'Alembert system could work for you, especially if you keep betting on low "
        "odds and want a gradual recovery of losses.",
        "The D'Alembert system does not fit your current pattern, which includes long "
        "losing streaks or high odds.",
    ),
}


@dataclass
class SessionMetrics:
    win_rate: float = 0.0
    avg_odds: float = 0.0
    volatility: float = 0.0
    roi: float = 0.0
    longest_win_streak: int = 0
    longest_lose_streak: int = 0
    streakiness: float = 0.0


@dataclass
class Recommendation:
    strategy: str
    confidence: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_session_metrics(session: Session, bets: Sequence[Bet]) -> SessionMetrics:
    """Win rate, odds, volatility, ROI and streak profile of one session."""
    if not bets:
        return SessionMetrics()

    ordered = sorted(bets, key=lambda b: b.bet_number)

    wins = sum(1 for b in ordered if b.win)
    win_rate = wins / len(ordered)
    avg_odds = float(np.mean([b.odds for b in ordered]))
    roi = (session.current_bankroll - session.initial_bankroll) / session.initial_bankroll * 100

    # population std-dev of per-bet bankroll deltas
    balances = np.array([session.initial_bankroll] + [b.bankroll_after for b in ordered], dtype=float)
    volatility = float(np.std(np.diff(balances)))

    win_streaks: List[int] = []
    lose_streaks: List[int] = []
    current_win = current_lose = 0
    longest_win = longest_lose = 0

    for bet in ordered:
        if bet.win:
            current_win += 1
            if current_lose > 0:
                lose_streaks.append(current_lose)
                current_lose = 0
        else:
            current_lose += 1
            if current_win > 0:
                win_streaks.append(current_win)
                current_win = 0
        longest_win = max(longest_win, current_win)
        longest_lose = max(longest_lose, current_lose)

    if current_win > 0:
        win_streaks.append(current_win)
    if current_lose > 0:
        lose_streaks.append(current_lose)

    avg_win_streak = float(np.mean(win_streaks)) if win_streaks else 0.0
    avg_lose_streak = float(np.mean(lose_streaks)) if lose_streaks else 0.0

    return SessionMetrics(
        win_rate=win_rate,
        avg_odds=avg_odds,
        volatility=volatility,
        roi=roi,
        longest_win_streak=longest_win,
        longest_lose_streak=longest_lose,
        streakiness=(avg_win_streak + avg_lose_streak) / 2
    )


class StrategyRecommender:
    """Scores flat, percentage and D'Alembert staking against a betting history"""

    def __init__(self, sessions: Sequence[Session], bets_by_session: Dict[int, Sequence[Bet]]):
        self.sessions = list(sessions)
        self.bets_by_session = bets_by_session or {}

    def aggregate_metrics(self) -> Dict[str, float]:
        """Mean of the per-session metrics (max for the longest losing streak)."""
        metrics = [
            calculate_session_metrics(s, self.bets_by_session.get(s.id, []))
            for s in self.sessions
        ]
        return {
            "avg_win_rate": float(np.mean([m.win_rate for m in metrics])),
            "avg_odds": float(np.mean([m.avg_odds for m in metrics])),
            "avg_volatility": float(np.mean([m.volatility for m in metrics])),
            "avg_roi": float(np.mean([m.roi for m in metrics])),
            "avg_streakiness": float(np.mean([m.streakiness for m in metrics])),
            "max_lose_streak": max(m.longest_lose_streak for m in metrics),
        }

    @staticmethod
    def flat_confidence(metrics: Dict[str, float]) -> float:
        confidence = 0.5
        if metrics["avg_volatility"] > 0.1:
            confidence += 0.2
        if metrics["avg_streakiness"] < 1.5:
            confidence += 0.2
        if metrics["avg_win_rate"] < 0.4:
            confidence += 0.1
        return min(RECOMMENDER_CONFIDENCE_CAP, confidence)

    @staticmethod
    def percentage_confidence(metrics: Dict[str, float]) -> float:
        confidence = 0.4
        if metrics["avg_roi"] > 10:
            confidence += 0.2
        if metrics["avg_win_rate"] > 0.5:
            confidence += 0.2
        if 0.05 < metrics["avg_volatility"] < 0.15:
            confidence += 0.1
        return min(RECOMMENDER_CONFIDENCE_CAP, confidence)

    @staticmethod
    def dalembert_confidence(metrics: Dict[str, float]) -> float:
        confidence = 0.3
        if metrics["avg_streakiness"] < 2:
            confidence += 0.2
        if metrics["avg_odds"] < 2.2:
            confidence += 0.2
        if metrics["max_lose_streak"] < 4:
            confidence += 0.2
        return min(RECOMMENDER_CONFIDENCE_CAP, confidence)

    @staticmethod
    def _reason(strategy: str, confidence: float) -> str:
        strong, moderate, weak = REASONS[strategy]
        if confidence > 0.7:
            return strong
        if confidence > 0.5:
            return moderate
        return weak

    def recommend(self) -> List[Recommendation]:
        """Recommendations sorted by confidence (highest first), ties by strategy name."""
        if not self.sessions:
            return [Recommendation("flat", RECOMMENDER_DEFAULT_CONFIDENCE, DEFAULT_REASON)]

        metrics = self.aggregate_metrics()
        scores = {
            "flat": self.flat_confidence(metrics),
            "percentage": self.percentage_confidence(metrics),
            "dalembert": self.dalembert_confidence(metrics),
        }

        recommendations = [
            # round away float noise from the additive scoring (0.5 + 0.2 + 0.2)
            Recommendation(strategy, round(confidence, 6), self._reason(strategy, confidence))
            for strategy, confidence in scores.items()
        ]
        recommendations.sort(key=lambda r: (-r.confidence, r.strategy))

        logger.info(
            f"[RECOMMEND] {len(self.sessions)} sessions -> "
            + ", ".join(f"{r.strategy}={r.confidence:.2f}" for r in recommendations)
        )
        return recommendations


def get_recommendations(
    sessions: Sequence[Session],
    bets_by_session: Dict[int, Sequence[Bet]]
) -> List[Recommendation]:
    return StrategyRecommender(sessions, bets_by_session).recommend()

"""
Session achievements.

Badges are derived from a session and its bets on demand; nothing is stored.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Sequence

from ..models import Bet, Session

DISCIPLINE_MIN_BETS = 10
DISCIPLINE_MAX_STAKE_SHARE = 0.2
COMEBACK_DRAWDOWN_PERCENT = 30


@dataclass
class Badge:
    id: str
    name: str
    description: str
    level: str  # bronze | silver | gold | platinum
    unlocked: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def longest_win_streak(bets: Sequence[Bet]) -> int:
    current = longest = 0
    for bet in bets:
        current = current + 1 if bet.win else 0
        longest = max(longest, current)
    return longest


def count_wins(bets: Sequence[Bet]) -> int:
    return sum(1 for bet in bets if bet.win)


def session_roi(session: Session) -> float:
    return (session.current_bankroll / session.initial_bankroll - 1) * 100


def has_recovery_after_losses(bets: Sequence[Bet], losses: int) -> bool:
    """A win immediately after at least ``losses`` consecutive losses."""
    consecutive = 0
    for i, bet in enumerate(bets):
        if bet.win:
            consecutive = 0
            continue
        consecutive += 1
        if consecutive >= losses and i + 1 < len(bets) and bets[i + 1].win:
            return True
    return False


def has_comeback(bets: Sequence[Bet], session: Session, drawdown_percent: float) -> bool:
    """Back to break-even after the bankroll fell by ``drawdown_percent`` or more."""
    if len(bets) < 3:
        return False

    lowest = session.initial_bankroll
    lowest_index = -1
    for i, bet in enumerate(bets):
        if bet.bankroll_after < lowest:
            lowest = bet.bankroll_after
            lowest_index = i

    if lowest_index in (-1, len(bets) - 1):
        return False

    drop = (session.initial_bankroll - lowest) / session.initial_bankroll * 100
    if drop < drawdown_percent:
        return False
    return session.current_bankroll > lowest and session.current_bankroll >= session.initial_bankroll


def max_progression_level(bets: Sequence[Bet]) -> int:
    """Highest level of a +1 per loss / -1 per win progression."""
    level = highest = 0
    for bet in bets:
        if not bet.win:
            level += 1
            highest = max(highest, level)
        elif level > 0:
            level -= 1
    return highest


def has_discipline(bets: Sequence[Bet], session: Session) -> bool:
    limit = session.initial_bankroll * DISCIPLINE_MAX_STAKE_SHARE
    return len(bets) >= DISCIPLINE_MIN_BETS and not any(bet.stake > limit for bet in bets)


def target_reached(session: Session) -> bool:
    return session.current_bankroll >= session.initial_bankroll * (1 + session.target_return / 100)


def evaluate_badges(session: Session, bets: Sequence[Bet]) -> List[Badge]:
    """Every badge with its unlocked flag for one session."""
    ordered = sorted(bets, key=lambda b: b.bet_number)
    streak = longest_win_streak(ordered)
    wins = count_wins(ordered)
    roi = session_roi(session)
    is_dalembert = session.strategy == "dalembert"
    level = max_progression_level(ordered) if is_dalembert else 0

    return [
        Badge("streak_1", "Lucky Beginner", "Win 2 bets in a row", "bronze", streak >= 2),
        Badge("streak_2", "Riding the Wave", "Win 3 bets in a row", "silver", streak >= 3),
        Badge("streak_3", "On Fire", "Win 5 bets in a row", "gold", streak >= 5),
        Badge("streak_4", "Unstoppable", "Win 7 or more bets in a row", "platinum", streak >= 7),

        Badge("wins_1", "First Win", "Win your first bet", "bronze", wins >= 1),
        Badge("wins_2", "Collector", "Reach 5 total wins", "silver", wins >= 5),
        Badge("wins_3", "Champion", "Reach 10 total wins", "gold", wins >= 10),
        Badge("wins_4", "Legend", "Reach 20 or more total wins", "platinum", wins >= 20),

        Badge("roi_1", "First Profit", "Reach a positive ROI", "bronze", roi > 0),
        Badge("roi_2", "Solid Investor", "Reach a 10% ROI", "silver", roi >= 10),
        Badge("roi_3", "Expert Investor", "Reach a 25% ROI", "gold", roi >= 25),
        Badge("roi_4", "Investment Guru", "Reach a 50% or higher ROI", "platinum", roi >= 50),

        Badge("recovery_1", "Resilient", "Win after 2 consecutive losses", "bronze",
              has_recovery_after_losses(ordered, 2)),
        Badge("recovery_2", "Turnaround", "Win after 3 consecutive losses", "silver",
              has_recovery_after_losses(ordered, 3)),
        Badge("recovery_3", "Phoenix", "Win after 4 consecutive losses", "gold",
              has_recovery_after_losses(ordered, 4)),
        Badge("recovery_4", "Rebirth", "Return to profit after losing 30% or more of the bankroll",
              "platinum", has_comeback(ordered, session, COMEBACK_DRAWDOWN_PERCENT)),

        Badge("dalembert_1", "Apprentice Alchemist", "Reach level 2 of the D'Alembert progression",
              "bronze", is_dalembert and level >= 2),
        Badge("dalembert_2", "Expert Alchemist", "Reach level 3 of the D'Alembert progression",
              "silver", is_dalembert and level >= 3),
        Badge("dalembert_3", "D'Alembert Master", "Reach level 5 of the D'Alembert progression",
              "gold", is_dalembert and level >= 5),

        Badge("discipline_1", "Disciplined", "Complete 10 or more bets without overstaking",
              "gold", has_discipline(ordered, session)),

        Badge("target_1", "Target Reached", "Reach the session target return", "platinum",
              target_reached(session)),
    ]

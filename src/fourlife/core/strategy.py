"""
Behavioral strategies for the population layer.

Every archetype is a value with one capability:

    decide(history, opponent_id, opponent_reputation, opponent_last_move) -> Move

Strategies are pure: they read a bounded window of the agent's own
interaction outcomes, the opponent's visible reputation and the move the
opponent last played toward this agent (None before a first encounter),
and never mutate anything. The engine records the resulting moves into the
window that adaptive strategies consume on the next epoch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence


class Move(Enum):
    COOPERATE = "cooperate"
    DEFECT = "defect"


class Archetype(Enum):
    """Closed set of behavioral archetypes."""
    COOPERATIVE = "cooperative"
    DEFECTING = "defecting"
    RECIPROCATING = "reciprocating"
    CAUTIOUS = "cautious"
    ADAPTIVE = "adaptive"


ARCHETYPE_LABELS: dict[Archetype, str] = {
    Archetype.COOPERATIVE: "Cooperator",
    Archetype.DEFECTING: "Defector",
    Archetype.RECIPROCATING: "Reciprocator",
    Archetype.CAUTIOUS: "Cautious",
    Archetype.ADAPTIVE: "Adaptive",
}


@dataclass(frozen=True)
class Outcome:
    """One interaction as remembered by one of its participants."""
    epoch: int
    opponent_id: str
    move: Move
    opponent_move: Move
    payoff: float  # Net balance change for this agent


class Strategy(Protocol):
    def decide(
        self,
        history: Sequence[Outcome],
        opponent_id: str,
        opponent_reputation: float,
        opponent_last_move: Move | None = None,
    ) -> Move: ...


@dataclass(frozen=True)
class AlwaysCooperate:
    def decide(self, history, opponent_id, opponent_reputation, opponent_last_move=None):
        return Move.COOPERATE


@dataclass(frozen=True)
class AlwaysDefect:
    def decide(self, history, opponent_id, opponent_reputation, opponent_last_move=None):
        return Move.DEFECT


@dataclass(frozen=True)
class Reciprocate:
    """Tit-for-tat: mirror the opponent's last move toward us; open with cooperation."""

    def decide(self, history, opponent_id, opponent_reputation, opponent_last_move=None):
        if opponent_last_move is None:
            return Move.COOPERATE
        return opponent_last_move


@dataclass(frozen=True)
class Cautious:
    """Defect until the opponent's reputation clears ``threshold``."""
    threshold: float = 0.5

    def decide(self, history, opponent_id, opponent_reputation, opponent_last_move=None):
        return Move.COOPERATE if opponent_reputation > self.threshold else Move.DEFECT


@dataclass(frozen=True)
class Adaptive:
    """
    Play whichever move has paid better over the history window.

    With no history the opponent's reputation decides. With only one move
    tried, keep it unless it has been losing resources on average.
    """
    reputation_threshold: float = 0.5

    def decide(self, history, opponent_id, opponent_reputation, opponent_last_move=None):
        payoffs: dict[Move, list[float]] = {Move.COOPERATE: [], Move.DEFECT: []}
        for outcome in history:
            payoffs[outcome.move].append(outcome.payoff)

        tried = [m for m, values in payoffs.items() if values]
        if not tried:
            if opponent_reputation >= self.reputation_threshold:
                return Move.COOPERATE
            return Move.DEFECT

        means = {m: sum(v) / len(v) for m, v in payoffs.items() if v}
        if len(tried) == 1:
            only = tried[0]
            if means[only] >= 0:
                return only
            return Move.DEFECT if only is Move.COOPERATE else Move.COOPERATE

        if means[Move.DEFECT] > means[Move.COOPERATE]:
            return Move.DEFECT
        return Move.COOPERATE


def build_strategies(cautious_threshold: float = 0.5) -> dict[Archetype, Strategy]:
    """Strategy registry; every archetype has exactly one entry."""
    return {
        Archetype.COOPERATIVE: AlwaysCooperate(),
        Archetype.DEFECTING: AlwaysDefect(),
        Archetype.RECIPROCATING: Reciprocate(),
        Archetype.CAUTIOUS: Cautious(threshold=cautious_threshold),
        Archetype.ADAPTIVE: Adaptive(),
    }


STRATEGIES: dict[Archetype, Strategy] = build_strategies()


def decide(
    archetype: Archetype,
    history: Sequence[Outcome],
    opponent_id: str,
    opponent_reputation: float,
    strategies: dict[Archetype, Strategy] | None = None,
    opponent_last_move: Move | None = None,
) -> Move:
    registry = strategies or STRATEGIES
    return registry[archetype].decide(
        history, opponent_id, opponent_reputation, opponent_last_move,
    )


def defection_rate(history: Sequence[Outcome]) -> float:
    if not history:
        return 0.0
    return sum(1 for o in history if o.move is Move.DEFECT) / len(history)


def defection_leaning(archetype: Archetype, history: Sequence[Outcome]) -> bool:
    """Defecting archetype, or an agent that has mostly defected recently."""
    return archetype is Archetype.DEFECTING or defection_rate(history) > 0.5

"""Tests for archetype strategies."""

from collections import deque

from fourlife.core.strategy import (
    STRATEGIES,
    Adaptive,
    Archetype,
    Cautious,
    Move,
    Outcome,
    Reciprocate,
    build_strategies,
    decide,
    defection_leaning,
    defection_rate,
)

C, D = Move.COOPERATE, Move.DEFECT


def _outcome(opponent: str, move: Move, opponent_move: Move, payoff: float = 0.0, epoch: int = 0) -> Outcome:
    return Outcome(epoch=epoch, opponent_id=opponent, move=move, opponent_move=opponent_move, payoff=payoff)


class TestFixedStrategies:
    def test_always_cooperate(self):
        assert decide(Archetype.COOPERATIVE, [], "b", 0.0) is C

    def test_always_defect(self):
        assert decide(Archetype.DEFECTING, [], "b", 1.0) is D


class TestReciprocate:
    def test_opens_with_cooperation(self):
        assert Reciprocate().decide([], "b", 0.0) is C

    def test_mirrors_last_move_toward_self(self):
        assert Reciprocate().decide([], "b", 0.5, D) is D
        assert Reciprocate().decide([], "b", 0.5, C) is C

    def test_own_history_does_not_drive_the_reply(self):
        history = [_outcome("b", C, D)]
        assert Reciprocate().decide(history, "b", 0.5, C) is C
        assert Reciprocate().decide(history, "b", 0.5) is C

    def test_defection_older_than_window_is_remembered(self):
        history = deque(maxlen=10)
        history.append(_outcome("villain", C, D, epoch=0))
        for i in range(10):
            history.append(_outcome(f"friend{i}", C, C, epoch=1))
        assert all(o.opponent_id != "villain" for o in history)
        assert Reciprocate().decide(history, "villain", 0.5, D) is D

    def test_module_decide_passes_last_move(self):
        assert decide(Archetype.RECIPROCATING, [], "b", 0.5, opponent_last_move=D) is D


class TestCautious:
    def test_defects_at_threshold(self):
        assert Cautious().decide([], "b", 0.5) is D

    def test_cooperates_above_threshold(self):
        assert Cautious().decide([], "b", 0.51) is C

    def test_configurable_threshold(self):
        strategies = build_strategies(cautious_threshold=0.2)
        assert decide(Archetype.CAUTIOUS, [], "b", 0.3, strategies) is C


class TestAdaptive:
    def test_empty_history_uses_reputation(self):
        assert Adaptive().decide([], "b", 0.5) is C
        assert Adaptive().decide([], "b", 0.4) is D

    def test_keeps_profitable_single_move(self):
        history = [_outcome("b", C, C, 2.3), _outcome("c", C, C, 2.3)]
        assert Adaptive().decide(history, "d", 0.0) is C

    def test_abandons_losing_single_move(self):
        history = [_outcome("b", C, D, -5.0)]
        assert Adaptive().decide(history, "b", 1.0) is D

    def test_picks_better_mean(self):
        history = [_outcome("b", C, C, 2.3), _outcome("c", D, C, 2.8)]
        assert Adaptive().decide(history, "d", 0.5) is D

    def test_tie_prefers_cooperation(self):
        history = [_outcome("b", C, C, 1.0), _outcome("c", D, D, 1.0)]
        assert Adaptive().decide(history, "d", 0.5) is C


class TestRegistry:
    def test_every_archetype_registered(self):
        assert set(STRATEGIES) == set(Archetype)

    def test_defection_rate(self):
        assert defection_rate([]) == 0.0
        history = [_outcome("b", D, C), _outcome("b", D, C), _outcome("b", C, C)]
        assert defection_rate(history) == 2 / 3

    def test_defection_leaning(self):
        assert defection_leaning(Archetype.DEFECTING, [])
        assert not defection_leaning(Archetype.COOPERATIVE, [])
        mostly_defect = [_outcome("b", D, C), _outcome("c", D, C), _outcome("d", C, C)]
        assert defection_leaning(Archetype.ADAPTIVE, mostly_defect)

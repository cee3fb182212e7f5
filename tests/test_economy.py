"""Tests for ATP costs, transfers, the quality ramp and epoch settlement."""

from collections import deque

import pytest

from fourlife.core.actions import ACTIONS, ActionCategory, actions_in, get_action
from fourlife.core.agent import Agent
from fourlife.core.config import SocietyConfig
from fourlife.core.economy import (
    EpochLedger,
    QualityRamp,
    action_cost,
    atp_multiplier,
    settle_action,
    transfer,
)
from fourlife.core.strategy import Archetype, Move, Outcome

C, D = Move.COOPERATE, Move.DEFECT


def _agent(agent_id: str, **kwargs) -> Agent:
    return Agent(
        id=agent_id,
        name=agent_id.upper(),
        archetype=kwargs.pop("archetype", Archetype.COOPERATIVE),
        lineage_id=f"lineage_{agent_id}",
        **kwargs,
    )


class TestMultiplier:
    def test_reference_points(self):
        assert atp_multiplier(0.9) == 1.0
        assert atp_multiplier(0.5) == pytest.approx(4.0)
        assert atp_multiplier(0.1) == 10.0

    def test_zero_consistency_hits_ceiling(self):
        assert atp_multiplier(0.0) == 10.0

    def test_between(self):
        assert atp_multiplier(0.8) == pytest.approx(1.5625)

    def test_action_cost_rounds(self):
        assert action_cost(5, 0.95) == 5
        assert action_cost(5, 0.5) == 20
        assert action_cost(5, 0.8) == 8  # 7.8125


class TestTransfer:
    def test_fee_is_burned(self):
        receipt = transfer(100.0, 50.0, 10.0)
        assert receipt.sender_after == pytest.approx(90.0)
        assert receipt.receiver_after == pytest.approx(59.5)
        assert receipt.delivered == pytest.approx(9.5)
        assert receipt.burned == pytest.approx(0.5)

    def test_system_total_shrinks_by_fee(self):
        receipt = transfer(100.0, 100.0, 40.0, fee_rate=0.05)
        before = 200.0
        after = receipt.sender_after + receipt.receiver_after
        assert before - after == pytest.approx(0.05 * 40.0)

    def test_circular_transfers_shrink(self):
        a, b = 100.0, 100.0
        for _ in range(10):
            r = transfer(a, b, 10.0)
            a, b = r.sender_after, r.receiver_after
            r = transfer(b, a, 10.0)
            b, a = r.sender_after, r.receiver_after
        assert a + b < 200.0

    def test_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            transfer(10.0, 10.0, -1.0)

    def test_rejects_bad_fee(self):
        with pytest.raises(ValueError):
            transfer(10.0, 10.0, 1.0, fee_rate=1.0)
        with pytest.raises(ValueError):
            transfer(10.0, 10.0, 1.0, fee_rate=-0.1)


class TestQualityRamp:
    def test_calibration_points(self):
        ramp = QualityRamp()
        assert ramp.fraction(0.30) == pytest.approx(0.0)
        assert ramp.fraction(0.70) == pytest.approx(0.60)
        assert ramp.fraction(0.85) == pytest.approx(0.84)
        assert ramp.fraction(1.0) == pytest.approx(1.0)

    def test_below_minimum_earns_nothing(self):
        ramp = QualityRamp()
        assert ramp.fraction(0.05) == 0.0
        assert ramp.fraction(0.29) == 0.0

    def test_interpolates_between_points(self):
        assert QualityRamp().fraction(0.5) == pytest.approx(0.3)

    def test_custom_curve(self):
        ramp = QualityRamp([(0.0, 0.0), (1.0, 0.5)])
        assert ramp.fraction(0.5) == pytest.approx(0.25)
        assert ramp.reward(1.0, 40.0) == pytest.approx(20.0)

    def test_needs_two_points(self):
        with pytest.raises(ValueError):
            QualityRamp([(0.5, 0.5)])


class TestSettleAction:
    def test_contribution_reward_and_cost(self):
        action = ACTIONS["meaningful_contribution"]
        s = settle_action(0.95, action, QualityRamp())
        assert s.cost == 15
        assert s.reward == pytest.approx(30.0)
        assert s.balance_delta == pytest.approx(15.0)

    def test_low_consistency_taxes_cost(self):
        s = settle_action(0.85, ACTIONS["meaningful_contribution"], QualityRamp())
        assert s.cost == 21  # 15 / 0.85**2 = 20.76
        assert s.balance_delta == pytest.approx(9.0)

    def test_spam_never_pays(self):
        s = settle_action(0.95, ACTIONS["spam"], QualityRamp())
        assert s.reward == 0.0
        assert s.balance_delta < 0

    def test_flat_delta_and_cost_combine(self):
        s = settle_action(0.95, ACTIONS["help_peer"], QualityRamp())
        assert s.balance_delta == pytest.approx(-10.0)
        assert s.temperament_delta == pytest.approx(0.02)


class TestActionCatalog:
    def test_unknown_action(self):
        with pytest.raises(KeyError, match="Unknown action"):
            get_action("teleport")

    def test_categories(self):
        assert len(actions_in(ActionCategory.CONTRIBUTION)) == 4
        assert {a.key for a in actions_in(ActionCategory.SELFISH)} == {
            "take_shortcut", "exploit_loophole", "withhold_information",
        }


class TestEpochLedger:
    def test_nothing_applies_before_commit(self):
        a, b = _agent("a"), _agent("b")
        ledger = EpochLedger(epoch=0, fee_rate=0.05)
        ledger.transfer("a", "b", 10.0)
        ledger.charge("a", 1.0)
        assert a.balance == 100.0 and b.balance == 100.0

    def test_commit_applies_all_deltas(self):
        a, b = _agent("a"), _agent("b")
        agents = {"a": a, "b": b}
        ledger = EpochLedger(epoch=0, fee_rate=0.05)
        ledger.transfer("a", "b", 10.0)
        ledger.credit("b", 2.0)
        anomalies = ledger.commit(agents, SocietyConfig())
        assert anomalies == []
        assert a.balance == pytest.approx(90.0)
        assert b.balance == pytest.approx(111.5)
        assert ledger.burned == pytest.approx(0.5)
        assert ledger.minted == pytest.approx(2.0)

    def test_records_outcomes_and_moves(self):
        a, b = _agent("a"), _agent("b")
        ledger = EpochLedger(epoch=3, fee_rate=0.05)
        ledger.record("a", "b", Move.COOPERATE, Move.DEFECT, -5.0)
        ledger.commit({"a": a, "b": b}, SocietyConfig())
        assert len(a.history) == 1
        assert a.history[0].payoff == -5.0
        assert a.total_cooperations == 1
        assert a.total_interactions == 1
        assert a.last_moves["b"] is Move.COOPERATE
        assert a.last_interaction["b"] == 3

    def test_trust_deltas_accumulate_and_clip(self):
        a, b = _agent("a"), _agent("b")
        ledger = EpochLedger(epoch=0, fee_rate=0.05)
        ledger.adjust_trust("a", "b", 0.4)
        ledger.adjust_trust("a", "b", 0.4)
        ledger.commit({"a": a, "b": b}, SocietyConfig())
        assert a.trust_map["b"] == 1.0
        assert "a" not in b.trust_map

    def test_negative_balance_is_clamped_and_reported(self):
        a = _agent("a", balance=2.0)
        ledger = EpochLedger(epoch=0, fee_rate=0.05)
        ledger.charge("a", 5.0)
        anomalies = ledger.commit({"a": a}, SocietyConfig())
        assert a.balance == 0.0
        assert len(anomalies) == 1
        assert anomalies[0].field == "balance"
        assert anomalies[0].raw_value == pytest.approx(-3.0)

    def test_steady_play_recovers_consistency(self):
        a = _agent("a", consistency=0.85)
        ledger = EpochLedger(epoch=0, fee_rate=0.05)
        ledger.record("a", "b", Move.COOPERATE, Move.COOPERATE, 2.3)
        ledger.record("a", "c", Move.COOPERATE, Move.COOPERATE, 2.3)
        ledger.commit({"a": a}, SocietyConfig())
        assert a.consistency == pytest.approx(0.87)

    def test_switching_moves_erodes_consistency(self):
        a = _agent("a", consistency=0.85, history=deque(maxlen=10))
        a.history.append(Outcome(0, "b", Move.DEFECT, Move.DEFECT, -1.0))
        ledger = EpochLedger(epoch=1, fee_rate=0.05)
        ledger.record("a", "b", Move.COOPERATE, Move.COOPERATE, 2.3)
        ledger.commit({"a": a}, SocietyConfig())
        assert a.consistency == pytest.approx(0.75)

    def test_consistency_ignores_recording_order(self):
        first, second = _agent("a", consistency=0.85), _agent("a", consistency=0.85)
        for agent, moves in ((first, [C, D, C]), (second, [C, C, D])):
            ledger = EpochLedger(epoch=0, fee_rate=0.05)
            for partner, move in zip("bcd", moves):
                ledger.record("a", partner, move, Move.COOPERATE, 0.0)
            ledger.commit({"a": agent}, SocietyConfig())
        assert first.consistency == pytest.approx(second.consistency)
        assert first.consistency == pytest.approx(0.85 + 0.02 * 2 / 3 - 0.1 / 3)

    def test_majority_history_sets_the_usual_move(self):
        a = _agent("a", consistency=0.5, history=deque(maxlen=10))
        a.history.extend([
            Outcome(0, "b", Move.DEFECT, Move.DEFECT, -1.0),
            Outcome(0, "c", Move.DEFECT, Move.DEFECT, -1.0),
            Outcome(0, "d", Move.COOPERATE, Move.DEFECT, -5.0),
        ])
        ledger = EpochLedger(epoch=1, fee_rate=0.05)
        ledger.record("a", "b", Move.DEFECT, Move.DEFECT, -1.0)
        ledger.commit({"a": a}, SocietyConfig())
        assert a.consistency == pytest.approx(0.52)

    def test_epoch_outcomes_enter_history_by_opponent(self):
        a = _agent("a")
        ledger = EpochLedger(epoch=0, fee_rate=0.05)
        ledger.record("a", "c", Move.COOPERATE, Move.COOPERATE, 2.3)
        ledger.record("a", "b", Move.COOPERATE, Move.COOPERATE, 2.3)
        ledger.commit({"a": a}, SocietyConfig())
        assert [o.opponent_id for o in a.history] == ["b", "c"]

    def test_discard_prevents_commit(self):
        a = _agent("a")
        ledger = EpochLedger(epoch=0, fee_rate=0.05)
        ledger.charge("a", 50.0)
        ledger.discard()
        with pytest.raises(RuntimeError):
            ledger.commit({"a": a}, SocietyConfig())
        assert a.balance == 100.0

"""
ATP economics: costs, rewards, transfers, and atomic settlement.

Three rules shape the economy:

* Consistency multiplies cost. ``atp_multiplier(ci)`` is 1.0 for a steady
  agent (CI >= 0.9) and ``1 / ci**2`` below that, capped at 10x.
* Value transfers burn a fee. The receiver gets ``(1 - fee) * amount``;
  the remainder leaves the system, so circular transfers can only shrink
  balances.
* Quality is rewarded on a ramp. Below the first calibration point a
  contribution earns nothing; above it the reward fraction follows the
  configured calibration curve.

Individual-layer actions settle through ``settle_action``; population-layer
epochs settle through ``EpochLedger``, which accumulates every delta of one
epoch from the pre-epoch snapshot and applies them in one ``commit()``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Sequence

import numpy as np

from fourlife.core.config import DEFAULT_QUALITY_POINTS
from fourlife.core.strategy import Move, Outcome
from fourlife.core.trust import round_half_up

if TYPE_CHECKING:
    from fourlife.core.actions import Action
    from fourlife.core.agent import Agent
    from fourlife.core.config import SocietyConfig


MULTIPLIER_CEILING = 10.0
STEADY_CONSISTENCY = 0.9


def atp_multiplier(consistency: float) -> float:
    """Cost multiplier for an agent with the given consistency index."""
    if consistency >= STEADY_CONSISTENCY:
        return 1.0
    if consistency <= 0.0:
        return MULTIPLIER_CEILING
    return min(MULTIPLIER_CEILING, 1.0 / consistency ** 2)


def action_cost(base_cost: float, consistency: float) -> int:
    return round_half_up(base_cost * atp_multiplier(consistency))


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class TransferReceipt:
    sender_after: float
    receiver_after: float
    delivered: float
    burned: float


def split_fee(amount: float, fee_rate: float) -> tuple[float, float]:
    """Return (delivered, burned) for a transfer of ``amount``."""
    if amount < 0:
        raise ValueError(f"Transfer amount must be >= 0, got {amount}")
    if not 0.0 <= fee_rate < 1.0:
        raise ValueError(f"Fee rate must be in [0, 1), got {fee_rate}")
    burned = amount * fee_rate
    return amount - burned, burned


def transfer(
    sender_balance: float,
    receiver_balance: float,
    amount: float,
    fee_rate: float = 0.05,
) -> TransferReceipt:
    """Move ``amount`` from sender to receiver, burning ``fee_rate`` of it."""
    delivered, burned = split_fee(amount, fee_rate)
    return TransferReceipt(
        sender_after=sender_balance - amount,
        receiver_after=receiver_balance + delivered,
        delivered=delivered,
        burned=burned,
    )


# ---------------------------------------------------------------------------
# Quality ramp
# ---------------------------------------------------------------------------
class QualityRamp:
    """
    Piecewise reward curve defined by calibration points.

    ``fraction(q)`` is 0 below the first point's quality, follows the
    points in between, and holds the last point's fraction above it.
    """

    def __init__(self, points: Sequence[tuple[float, float]] = DEFAULT_QUALITY_POINTS):
        pts = sorted((float(q), float(f)) for q, f in points)
        if len(pts) < 2:
            raise ValueError("QualityRamp needs at least two calibration points")
        self.qualities = np.array([q for q, _ in pts])
        self.fractions = np.array([f for _, f in pts])

    @property
    def min_quality(self) -> float:
        return float(self.qualities[0])

    def fraction(self, quality: float) -> float:
        q = float(np.clip(quality, 0.0, 1.0))
        if q < self.min_quality:
            return 0.0
        return float(np.interp(q, self.qualities, self.fractions))

    def reward(self, quality: float, value: float) -> float:
        return self.fraction(quality) * value


# ---------------------------------------------------------------------------
# Individual-layer settlement
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ActionSettlement:
    """All deltas of one action, computed from a single pre-action state."""
    cost: int
    reward: float
    balance_delta: float
    talent_delta: float
    training_delta: float
    temperament_delta: float
    consistency_delta: float


def settle_action(consistency: float, action: Action, ramp: QualityRamp) -> ActionSettlement:
    cost = action_cost(action.base_cost, consistency)
    reward = ramp.reward(action.quality, action.value) if action.quality is not None else 0.0
    return ActionSettlement(
        cost=cost,
        reward=reward,
        balance_delta=action.atp_delta + reward - cost,
        talent_delta=action.talent_delta,
        training_delta=action.training_delta,
        temperament_delta=action.temperament_delta,
        consistency_delta=action.ci_delta,
    )


# ---------------------------------------------------------------------------
# Population-layer settlement
# ---------------------------------------------------------------------------
@dataclass
class AgentDelta:
    balance: float = 0.0
    talent: float = 0.0
    training: float = 0.0
    temperament: float = 0.0
    moves: list[Move] = field(default_factory=list)
    outcomes: list[Outcome] = field(default_factory=list)
    cooperations: int = 0
    defections: int = 0


@dataclass(frozen=True)
class Anomaly:
    """An invariant violation that was clamped during commit."""
    agent_id: str
    field: str
    raw_value: float
    clamped_value: float


def _unit(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


class EpochLedger:
    """
    Accumulates one epoch of settlement.

    Nothing touches an agent until ``commit()``. Deltas are keyed by agent
    id, so an agent taking part in several interactions gets one combined
    update no matter the pairing order.
    """

    def __init__(self, epoch: int, fee_rate: float):
        self.epoch = epoch
        self.fee_rate = fee_rate
        self.deltas: dict[str, AgentDelta] = {}
        self.trust_deltas: dict[tuple[str, str], float] = {}  # (observer, target)
        self.moves_toward: dict[tuple[str, str], Move] = {}   # (actor, partner)
        self.burned = 0.0
        self.minted = 0.0
        self.open = True

    def delta(self, agent_id: str) -> AgentDelta:
        if agent_id not in self.deltas:
            self.deltas[agent_id] = AgentDelta()
        return self.deltas[agent_id]

    def charge(self, agent_id: str, amount: float) -> None:
        self.delta(agent_id).balance -= amount

    def credit(self, agent_id: str, amount: float) -> None:
        self.delta(agent_id).balance += amount
        self.minted += amount

    def transfer(self, sender_id: str, receiver_id: str, amount: float) -> float:
        """Book a fee-bearing transfer. Returns the amount delivered."""
        delivered, burned = split_fee(amount, self.fee_rate)
        self.delta(sender_id).balance -= amount
        self.delta(receiver_id).balance += delivered
        self.burned += burned
        return delivered

    def adjust_trust(self, observer_id: str, target_id: str, change: float) -> None:
        key = (observer_id, target_id)
        self.trust_deltas[key] = self.trust_deltas.get(key, 0.0) + change

    def record(
        self, agent_id: str, partner_id: str, move: Move,
        partner_move: Move, payoff: float,
    ) -> None:
        d = self.delta(agent_id)
        d.moves.append(move)
        d.outcomes.append(Outcome(
            epoch=self.epoch, opponent_id=partner_id, move=move,
            opponent_move=partner_move, payoff=payoff,
        ))
        if move is Move.COOPERATE:
            d.cooperations += 1
        else:
            d.defections += 1
        self.moves_toward[(agent_id, partner_id)] = move

    def discard(self) -> None:
        """Drop every in-flight delta; the ledger can no longer commit."""
        self.deltas.clear()
        self.trust_deltas.clear()
        self.moves_toward.clear()
        self.burned = 0.0
        self.minted = 0.0
        self.open = False

    def commit(self, agents: Mapping[str, Agent], config: SocietyConfig) -> list[Anomaly]:
        """Apply every delta at once. Returns clamped invariant violations."""
        if not self.open:
            raise RuntimeError(f"Ledger for epoch {self.epoch} is closed")
        anomalies: list[Anomaly] = []

        for agent_id, d in self.deltas.items():
            agent = agents.get(agent_id)
            if agent is None or not agent.is_alive:
                continue

            raw = agent.balance + d.balance
            if not math.isfinite(raw):
                anomalies.append(Anomaly(agent_id, "balance", raw, 0.0))
                raw = 0.0
            elif raw < 0:
                anomalies.append(Anomaly(agent_id, "balance", raw, 0.0))
                raw = 0.0
            agent.balance = raw

            agent.talent = _unit(agent.talent + d.talent)
            agent.training = _unit(agent.training + d.training)
            agent.temperament = _unit(agent.temperament + d.temperament)
            agent.consistency = _unit(
                agent.consistency + self._consistency_change(agent, d.moves, config)
            )

            agent.history.extend(sorted(d.outcomes, key=lambda o: o.opponent_id))
            agent.total_interactions += len(d.outcomes)
            agent.total_cooperations += d.cooperations
            agent.total_defections += d.defections
            for outcome in d.outcomes:
                agent.last_interaction[outcome.opponent_id] = self.epoch

        for (observer_id, target_id), change in self.trust_deltas.items():
            observer = agents.get(observer_id)
            if observer is None or not observer.is_alive:
                continue
            current = observer.trust_in(target_id, config.initial_pairwise_trust)
            observer.trust_map[target_id] = _unit(current + change)

        for (actor_id, partner_id), move in self.moves_toward.items():
            actor = agents.get(actor_id)
            if actor is not None and actor.is_alive:
                actor.last_moves[partner_id] = move

        for agent in agents.values():
            if agent.is_alive:
                agent.balance_history.append(agent.balance)

        self.open = False
        return anomalies

    @staticmethod
    def _consistency_change(agent: Agent, moves: list[Move], config: SocietyConfig) -> float:
        """Steady play recovers consistency; departing from the usual move erodes it.

        The usual move is the majority of the remembered history, or of this
        epoch's moves for an agent with no history (ties count as cooperation).
        The result depends only on how many moves differ from it, not on the
        order they were recorded in.
        """
        if not moves:
            return 0.0
        reference = [o.move for o in agent.history] or moves
        defections = sum(1 for m in reference if m is Move.DEFECT)
        usual = Move.DEFECT if defections * 2 > len(reference) else Move.COOPERATE
        switch_rate = sum(1 for m in moves if m is not usual) / len(moves)
        return (
            config.consistency_recovery * (1.0 - switch_rate)
            - config.consistency_decay * switch_rate
        )

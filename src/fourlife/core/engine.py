"""
Main simulation engine for the population layer.

Runs a society of archetype-driven agents over epochs. Every epoch:
1. Schedule pairings from the pre-epoch trust state
2. Decide moves (strategies read pre-epoch history and reputation)
3. Settle into an epoch ledger and commit it atomically
4. Death, karma and rebirth
5. Coalitions, isolation and regime detection
6. Record metrics and snapshot
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from fourlife.core.agent import Agent, AgentSnapshot
from fourlife.core.config import ARCHETYPE_NAMES, SocietyConfig
from fourlife.core.economy import Anomaly, EpochLedger, atp_multiplier
from fourlife.core.events import EventLog, EventType, Significance, SimEvent
from fourlife.core.lifecycle import DeathCause, LifecycleError, LifecycleManager
from fourlife.core.scheduler import InteractionScheduler
from fourlife.core.strategy import Archetype, Move, build_strategies, decide
from fourlife.core.trust import reputation
from fourlife.metrics.collector import EpochMetrics, MetricsCollector
from fourlife.social.coalitions import Coalition, CoalitionDetector
from fourlife.social.isolation import IsolationDetector
from fourlife.social.stability import Regime, StabilityDetector

logger = logging.getLogger(__name__)


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


# ---------------------------------------------------------------------------
# Name generation (simple deterministic names for agents)
# ---------------------------------------------------------------------------
_FIRST_NAMES = [
    "Alice", "Bob", "Carol", "Dave", "Eve", "Frank", "Grace", "Heidi",
    "Ivan", "Judy", "Mallory", "Niaj", "Olivia", "Peggy", "Rupert", "Sybil",
    "Trent", "Victor", "Walter", "Yara",
]


def _generate_name(index: int) -> str:
    name = _FIRST_NAMES[index % len(_FIRST_NAMES)]
    cycle = index // len(_FIRST_NAMES)
    return name if cycle == 0 else f"{name}-{cycle + 1}"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class EpochSnapshot:
    """Public state of the society at the close of one epoch."""
    epoch: int
    agents: tuple[AgentSnapshot, ...]
    metrics: EpochMetrics
    coalitions: tuple[Coalition, ...]
    pairings: tuple[tuple[str, str], ...]

    @property
    def interactions(self) -> int:
        return len(self.pairings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "epoch": self.epoch,
            "agents": [a.to_dict() for a in self.agents],
            "metrics": self.metrics.to_dict(),
            "coalitions": [c.to_dict() for c in self.coalitions],
            "pairings": [list(p) for p in self.pairings],
        }


@dataclass(frozen=True)
class SimulationResult:
    config: SocietyConfig
    epochs: tuple[EpochSnapshot, ...]
    events: tuple[SimEvent, ...]
    final_metrics: EpochMetrics | None
    aborted: bool = False

    @property
    def final_agents(self) -> tuple[AgentSnapshot, ...]:
        return self.epochs[-1].agents if self.epochs else ()

    def events_of(self, event_type: EventType) -> list[SimEvent]:
        return [e for e in self.events if e.event_type is event_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "epochs": [s.to_dict() for s in self.epochs],
            "events": [e.to_dict() for e in self.events],
            "final_metrics": self.final_metrics.to_dict() if self.final_metrics else None,
            "aborted": self.aborted,
        }


# ---------------------------------------------------------------------------
# Simulation Engine
# ---------------------------------------------------------------------------
class SocietyEngine:
    """Main simulation loop."""

    def __init__(self, config: SocietyConfig):
        self.config = config.validate()
        self.strategies = build_strategies(config.cautious_threshold)
        self.scheduler = InteractionScheduler(config)
        self.lifecycle = LifecycleManager(config, self._new_id)
        self.reset()

    def reset(self) -> None:
        """Drop all run state: RNG, analyzers, population, snapshots and events."""
        cfg = self.config
        self.rng = np.random.default_rng(cfg.random_seed)

        # Stateful components
        self.coalitions = CoalitionDetector(cfg)
        self.isolation = IsolationDetector(cfg)
        self.stability = StabilityDetector(cfg)
        self.collector = MetricsCollector(cfg)

        # State
        self.population: list[Agent] = []
        self.history: list[EpochSnapshot] = []
        self.events = EventLog()
        self._next_agent_id = 0

    def run(self, epochs: int | None = None, cancel: CancelToken | None = None) -> SimulationResult:
        """Run the simulation; stop early (aborted) if ``cancel`` is set."""
        epochs = epochs or self.config.epochs
        self.reset()
        self.population = self._create_initial_population()
        aborted = False

        for epoch in range(epochs):
            if cancel is not None and cancel.is_set():
                aborted = True
                break
            snapshot = self.step(epoch, cancel)
            if snapshot is None:
                aborted = True
                break
            self.history.append(snapshot)

        if aborted:
            logger.info(
                "Run %r aborted after %d settled epochs",
                self.config.experiment_name, len(self.history),
            )
        return SimulationResult(
            config=self.config,
            epochs=tuple(self.history),
            events=self.events.freeze(),
            final_metrics=self.history[-1].metrics if self.history else None,
            aborted=aborted,
        )

    # ------------------------------------------------------------------
    # Initial population
    # ------------------------------------------------------------------
    def _create_initial_population(self) -> list[Agent]:
        """Generate the founding population in archetype order."""
        cfg = self.config
        pop: list[Agent] = []
        for name in ARCHETYPE_NAMES:
            for _ in range(cfg.archetype_distribution.get(name, 0)):
                index = len(pop)
                agent = Agent(
                    id=self._new_id(),
                    name=_generate_name(index),
                    archetype=Archetype(name),
                    lineage_id=f"lineage_{index + 1:04d}",
                    talent=cfg.initial_trust,
                    training=cfg.initial_trust,
                    temperament=cfg.initial_trust,
                    consistency=cfg.initial_consistency,
                    balance=cfg.initial_balance,
                    history=deque(maxlen=cfg.history_window),
                )
                agent.balance_history.append(agent.balance)
                pop.append(agent)
        return pop

    # ------------------------------------------------------------------
    # Epoch loop
    # ------------------------------------------------------------------
    def step(self, epoch: int, cancel: CancelToken | None = None) -> EpochSnapshot | None:
        """Run one epoch. Returns None if cancelled before the commit."""
        cfg = self.config
        by_id = {a.id: a for a in self.population}

        # === Phase 1: Scheduling ===
        schedule = self.scheduler.schedule(self.population, self.rng)

        # === Phase 2: Decisions and settlement (pre-epoch state) ===
        reputations = self._reputations()
        ledger = EpochLedger(epoch, cfg.transfer_fee_rate)
        mutual = 0
        for initiator_id, target_id in schedule.pairings:
            a, b = by_id[initiator_id], by_id[target_id]
            move_a = decide(
                a.archetype, a.history, b.id, reputations[b.id], self.strategies,
                opponent_last_move=b.last_moves.get(a.id),
            )
            move_b = decide(
                b.archetype, b.history, a.id, reputations[a.id], self.strategies,
                opponent_last_move=a.last_moves.get(b.id),
            )
            self._settle(ledger, a, move_a, b, move_b)
            self._settle(ledger, b, move_b, a, move_a)
            if move_a is Move.COOPERATE and move_b is Move.COOPERATE:
                mutual += 1
        for agent in self.population:
            if agent.is_alive:
                ledger.charge(agent.id, cfg.upkeep_cost)

        if cancel is not None and cancel.is_set():
            ledger.discard()
            return None

        # === Phase 3: Commit ===
        burned = ledger.burned
        anomalies = ledger.commit(by_id, cfg)
        anomalies.extend(self._sweep_invariants())
        for anomaly in anomalies:
            self._report_anomaly(epoch, anomaly)

        # === Phase 4: Life cycle ===
        deaths, rebirths = self._process_life_cycle(epoch)

        # === Phase 5: Structure ===
        update = self.coalitions.update(self.population, epoch, self.rng)
        for c in update.dissolved:
            self.events.emit(
                epoch, EventType.COALITION_DISSOLVED, sorted(c.members),
                Significance.INFO, coalition_id=c.id, size=c.size,
            )
        for c in update.formed:
            self.events.emit(
                epoch, EventType.COALITION_FORMED, sorted(c.members),
                Significance.MILESTONE, coalition_id=c.id, size=c.size,
                average_trust=c.average_trust,
            )
        for agent_id, rate in self.isolation.update(self.population, schedule):
            self.events.emit(
                epoch, EventType.DEFECTOR_ISOLATED, [agent_id],
                Significance.MILESTONE, proposal_rate=rate,
            )

        # === Phase 6: Metrics ===
        metrics = self.collector.collect(
            epoch, self.population,
            interactions=schedule.interaction_count,
            mutual_cooperations=mutual,
            refusals=schedule.refusals,
            burned=burned,
            coalitions=update.coalitions,
            network_density=self.coalitions.density(),
            deaths=deaths,
            rebirths=rebirths,
        )
        for regime in self.stability.update(
            epoch, metrics.mean_trust, metrics.cooperation_rate,
            metrics.mean_pairwise_trust, metrics.interactions,
        ):
            self._report_regime(epoch, regime, metrics)

        snapshot = EpochSnapshot(
            epoch=epoch,
            agents=tuple(a.snapshot() for a in self.population),
            metrics=metrics,
            coalitions=update.coalitions,
            pairings=schedule.pairings,
        )
        # Dead agents appear in the snapshot of the epoch they died in, then leave.
        self.population = [a for a in self.population if a.is_alive]
        self._forget_departed()

        logger.debug(
            "epoch=%d alive=%d interactions=%d coop=%.2f gini=%.3f coalitions=%d",
            epoch, metrics.alive_count, metrics.interactions,
            metrics.cooperation_rate, metrics.gini, metrics.coalition_count,
        )
        return snapshot

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------
    def _settle(
        self, ledger: EpochLedger, actor: Agent, move: Move,
        partner: Agent, partner_move: Move,
    ) -> None:
        """Book one side of an interaction."""
        cfg = self.config
        cost = cfg.interaction_cost * atp_multiplier(actor.consistency)
        ledger.charge(actor.id, cost)
        payoff = -cost

        if move is Move.COOPERATE:
            ledger.transfer(actor.id, partner.id, cfg.transfer_amount)
            payoff -= cfg.transfer_amount
        if partner_move is Move.COOPERATE:
            payoff += cfg.transfer_amount * (1.0 - cfg.transfer_fee_rate)
        mutual = move is Move.COOPERATE and partner_move is Move.COOPERATE
        if mutual:
            ledger.credit(actor.id, cfg.cooperation_reward)
            payoff += cfg.cooperation_reward

        ledger.record(actor.id, partner.id, move, partner_move, payoff)

        d = ledger.delta(actor.id)
        d.training += cfg.training_gain
        if move is Move.COOPERATE:
            d.temperament += cfg.temperament_gain
        else:
            d.temperament -= cfg.temperament_loss
        if mutual:
            d.talent += cfg.talent_gain

        # The actor's view of its partner
        if partner_move is Move.COOPERATE:
            change = cfg.trust_gain_cooperate
        elif move is Move.COOPERATE:
            change = -cfg.trust_loss_defected
        else:
            change = -cfg.trust_loss_defected * cfg.mutual_defection_factor
        ledger.adjust_trust(actor.id, partner.id, change)

    def _reputations(self) -> dict[str, float]:
        """Mean trust that other alive agents hold toward each agent."""
        alive = [a for a in self.population if a.is_alive]
        return {
            a.id: reputation(
                (o.trust_map[a.id] for o in alive if o.id != a.id and a.id in o.trust_map),
                default=self.config.initial_pairwise_trust,
            )
            for a in alive
        }

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------
    def _sweep_invariants(self) -> list[Anomaly]:
        """Clamp stored values that escaped [0, 1] or went non-finite."""
        anomalies: list[Anomaly] = []
        for agent in self.population:
            if not agent.is_alive:
                continue
            for name in ("talent", "training", "temperament", "consistency"):
                value = getattr(agent, name)
                fixed = self._clamp_unit(value)
                if fixed != value:
                    setattr(agent, name, fixed)
                    anomalies.append(Anomaly(agent.id, name, value, fixed))
            for other_id, value in list(agent.trust_map.items()):
                fixed = self._clamp_unit(value)
                if fixed != value:
                    agent.trust_map[other_id] = fixed
                    anomalies.append(Anomaly(agent.id, f"trust[{other_id}]", value, fixed))
        return anomalies

    @staticmethod
    def _clamp_unit(value: float) -> float:
        if not math.isfinite(value):
            return 0.0
        return min(1.0, max(0.0, value))

    def _report_anomaly(self, epoch: int, anomaly: Anomaly) -> None:
        logger.warning(
            "epoch %d: %s.%s was %r, clamped to %r",
            epoch, anomaly.agent_id, anomaly.field, anomaly.raw_value, anomaly.clamped_value,
        )
        raw = anomaly.raw_value if math.isfinite(anomaly.raw_value) else None
        self.events.emit(
            epoch, EventType.ANOMALY, [anomaly.agent_id], Significance.ANOMALY,
            field=anomaly.field, raw_value=raw, clamped_value=anomaly.clamped_value,
        )

    # ------------------------------------------------------------------
    # Life cycle
    # ------------------------------------------------------------------
    def _process_life_cycle(self, epoch: int) -> tuple[int, int]:
        deaths = rebirths = 0
        newborn: list[Agent] = []
        for agent in list(self.population):
            cause = self.lifecycle.check(agent)
            if cause is None:
                continue
            child = self._handle_death(agent, cause, epoch)
            deaths += 1
            if child is not None:
                newborn.append(child)
                rebirths += 1
        self.population.extend(newborn)
        return deaths, rebirths

    def _forget_departed(self) -> None:
        """Drop per-partner state keyed by agents no longer in the population."""
        alive = {a.id for a in self.population}
        for agent in self.population:
            for mapping in (agent.trust_map, agent.last_moves, agent.last_interaction):
                for gone in [k for k in mapping if k not in alive]:
                    del mapping[gone]

    def _handle_death(self, agent: Agent, cause: DeathCause, epoch: int) -> Agent | None:
        """Kill ``agent`` and continue its lineage if karma allows."""
        try:
            tier = self.lifecycle.process_death(agent, cause, epoch)
        except LifecycleError as exc:
            logger.warning("epoch %d: %s", epoch, exc)
            self.events.emit(
                epoch, EventType.ANOMALY, [agent.id], Significance.ANOMALY,
                field="life_cycle", raw_value=None, clamped_value=None,
            )
            self.events.emit(
                epoch, EventType.LINEAGE_ENDED, [agent.id], Significance.WARNING,
                lineage_id=agent.lineage_id, generation=agent.generation,
            )
            return None

        self.events.emit(
            epoch, EventType.AGENT_DEATH, [agent.id], Significance.WARNING,
            cause=cause.value, karma_tier=tier.value,
            effective_trust=agent.effective_trust, balance=agent.balance,
            generation=agent.generation,
        )
        if not self.lifecycle.may_rebirth(agent):
            self.events.emit(
                epoch, EventType.LINEAGE_ENDED, [agent.id], Significance.MILESTONE,
                lineage_id=agent.lineage_id, generation=agent.generation,
                karma_tier=tier.value,
            )
            return None

        child = self.lifecycle.rebirth(agent, epoch)
        child.balance_history.append(child.balance)
        self.events.emit(
            epoch, EventType.AGENT_REBIRTH, [agent.id, child.id], Significance.MILESTONE,
            lineage_id=child.lineage_id, generation=child.generation,
            karma_tier=tier.value, trust=child.talent, balance=child.balance,
            consistency=child.consistency,
        )
        return child

    def _report_regime(self, epoch: int, regime: Regime, metrics: EpochMetrics) -> None:
        if regime is Regime.STABLE:
            self.events.emit(
                epoch, EventType.SOCIETY_STABLE, (), Significance.MILESTONE,
                mean_trust=metrics.mean_trust, cooperation_rate=metrics.cooperation_rate,
            )
        elif regime is Regime.COOPERATION_SURGE:
            self.events.emit(
                epoch, EventType.COOPERATION_SURGE, (), Significance.MILESTONE,
                cooperation_rate=metrics.cooperation_rate,
            )
        else:
            self.events.emit(
                epoch, EventType.TRUST_COLLAPSE, (), Significance.WARNING,
                mean_pairwise_trust=metrics.mean_pairwise_trust,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def find_agent(self, agent_id: str) -> Agent | None:
        for a in self.population:
            if a.id == agent_id:
                return a
        return None

    def _new_id(self) -> str:
        self._next_agent_id += 1
        return f"agent_{self._next_agent_id:06d}"


def run(config: SocietyConfig, cancel: CancelToken | None = None) -> SimulationResult:
    """Validate ``config`` and run it to completion (or cancellation)."""
    config.validate()
    return SocietyEngine(config).run(cancel=cancel)

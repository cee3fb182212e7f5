"""
Core agent dataclass for the population layer.

Agents carry a behavioral archetype, a three-dimensional trust tensor
(talent, training, temperament), a consistency index, an ATP balance, and
a bounded window of recent interaction outcomes. Pairwise trust toward
other agents is tracked per partner and smoothed into coalition edges by
the structural analyzer.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from fourlife.core.lifecycle import DeathCause
from fourlife.core.strategy import Archetype, Move, Outcome
from fourlife.core.trust import KarmaTier, composite_score, effective_score


@dataclass
class Agent:
    """A simulated member of the society."""

    # === Identity ===
    id: str
    name: str
    archetype: Archetype
    lineage_id: str
    generation: int = 1

    # === Trust tensor (T3) + consistency ===
    talent: float = 0.5
    training: float = 0.5
    temperament: float = 0.5
    consistency: float = 0.85

    # === Economy ===
    balance: float = 100.0

    # === Life cycle ===
    is_alive: bool = True
    death_cause: DeathCause | None = None
    death_epoch: int | None = None
    karma_tier: KarmaTier | None = None
    born_epoch: int = 0

    # === Social ===
    coalition_id: str | None = None
    trust_map: dict[str, float] = field(default_factory=dict)          # agent_id -> trust
    last_moves: dict[str, Move] = field(default_factory=dict)         # partner_id -> our move
    last_interaction: dict[str, int] = field(default_factory=dict)    # partner_id -> epoch

    # === History ===
    history: deque[Outcome] = field(default_factory=lambda: deque(maxlen=10))
    balance_history: list[float] = field(default_factory=list)

    # === Counters ===
    total_interactions: int = 0
    total_cooperations: int = 0
    total_defections: int = 0

    @property
    def composite_trust(self) -> float:
        return composite_score(self.talent, self.training, self.temperament)

    @property
    def effective_trust(self) -> float:
        return effective_score(self.talent, self.training, self.temperament, self.consistency)

    @property
    def cooperation_rate(self) -> float:
        if self.total_interactions == 0:
            return 0.0
        return self.total_cooperations / self.total_interactions

    def trust_in(self, other_id: str, default: float) -> float:
        return self.trust_map.get(other_id, default)

    def snapshot(self) -> AgentSnapshot:
        return AgentSnapshot(
            id=self.id,
            name=self.name,
            archetype=self.archetype.value,
            lineage_id=self.lineage_id,
            generation=self.generation,
            talent=float(self.talent),
            training=float(self.training),
            temperament=float(self.temperament),
            consistency=float(self.consistency),
            composite_trust=float(self.composite_trust),
            effective_trust=float(self.effective_trust),
            balance=float(self.balance),
            is_alive=self.is_alive,
            death_cause=self.death_cause.value if self.death_cause else None,
            karma_tier=self.karma_tier.value if self.karma_tier else None,
            coalition_id=self.coalition_id,
            cooperation_rate=float(self.cooperation_rate),
            total_interactions=self.total_interactions,
            trust_edges=tuple(sorted(
                (k, float(v)) for k, v in self.trust_map.items()
            )),
        )

    def __repr__(self) -> str:
        status = "alive" if self.is_alive else "dead"
        return (
            f"Agent(id={self.id!r}, name={self.name!r}, "
            f"archetype={self.archetype.value}, gen={self.generation}, "
            f"balance={self.balance:.1f}, {status})"
        )


@dataclass(frozen=True)
class AgentSnapshot:
    """Immutable public state of one agent at one epoch."""
    id: str
    name: str
    archetype: str
    lineage_id: str
    generation: int
    talent: float
    training: float
    temperament: float
    consistency: float
    composite_trust: float
    effective_trust: float
    balance: float
    is_alive: bool
    death_cause: str | None
    karma_tier: str | None
    coalition_id: str | None
    cooperation_rate: float
    total_interactions: int
    trust_edges: tuple[tuple[str, float], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "archetype": self.archetype,
            "lineage_id": self.lineage_id,
            "generation": self.generation,
            "talent": self.talent,
            "training": self.training,
            "temperament": self.temperament,
            "consistency": self.consistency,
            "composite_trust": self.composite_trust,
            "effective_trust": self.effective_trust,
            "balance": self.balance,
            "is_alive": self.is_alive,
            "death_cause": self.death_cause,
            "karma_tier": self.karma_tier,
            "coalition_id": self.coalition_id,
            "cooperation_rate": self.cooperation_rate,
            "total_interactions": self.total_interactions,
            "trust_edges": [list(e) for e in self.trust_edges],
        }

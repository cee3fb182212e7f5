"""
Life cycle: death, karma, and rebirth.

States: Alive -> Dead -> (Reborn -> Alive | permanently Dead).

An agent dies when its ATP balance is exhausted or its effective trust
collapses below the floor. The karma tier is fixed from the effective score
at that instant, and decides whether (and how) the lineage continues.

The population layer mutates ``Agent`` records through ``LifecycleManager``.
The individual layer works on immutable ``LifeRecord`` values: a lineage is
an append-only tuple of them, and rebirth appends rather than edits.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from fourlife.core.trust import (
    KarmaTier,
    composite_score,
    effective_score,
    karma_tier,
    starting_conditions,
)

if TYPE_CHECKING:
    from fourlife.core.agent import Agent
    from fourlife.core.config import LifeConfig, SocietyConfig


class DeathCause(Enum):
    ATP_EXHAUSTION = "atp_exhaustion"
    TRUST_COLLAPSE = "trust_collapse"


class LifecycleError(RuntimeError):
    """Raised on an illegal life-cycle transition."""


def check_death(balance: float, effective: float, floor: float = 0.05) -> DeathCause | None:
    """Resource exhaustion takes precedence over trust collapse."""
    if balance <= 0:
        return DeathCause.ATP_EXHAUSTION
    if effective < floor:
        return DeathCause.TRUST_COLLAPSE
    return None


# ---------------------------------------------------------------------------
# Population layer
# ---------------------------------------------------------------------------
class LifecycleManager:
    """Applies death and rebirth to population-layer agents."""

    def __init__(self, config: SocietyConfig, new_id: Callable[[], str]):
        self.config = config
        self._new_id = new_id

    def check(self, agent: Agent) -> DeathCause | None:
        if not agent.is_alive:
            return None
        return check_death(agent.balance, agent.effective_trust, self.config.trust_collapse_floor)

    def process_death(self, agent: Agent, cause: DeathCause, epoch: int) -> KarmaTier:
        """Mark ``agent`` dead and fix its karma tier."""
        if not agent.is_alive:
            raise LifecycleError(f"{agent.id} is already dead (epoch {agent.death_epoch})")
        agent.is_alive = False
        agent.death_cause = cause
        agent.death_epoch = epoch
        agent.karma_tier = karma_tier(agent.effective_trust)
        agent.coalition_id = None
        return agent.karma_tier

    def may_rebirth(self, agent: Agent) -> bool:
        if not self.config.enable_rebirth or agent.karma_tier is None:
            return False
        return agent.karma_tier.can_rebirth or self.config.rebirth_constrained

    def rebirth(self, agent: Agent, epoch: int) -> Agent:
        """New life for a dead agent's lineage: new id, same lineage, generation + 1."""
        from fourlife.core.agent import Agent

        if agent.is_alive:
            raise LifecycleError(f"{agent.id} is alive; only the dead are reborn")
        if not self.may_rebirth(agent):
            raise LifecycleError(
                f"Lineage {agent.lineage_id} cannot continue "
                f"(karma: {agent.karma_tier.value if agent.karma_tier else None})"
            )
        start = starting_conditions(agent.karma_tier, agent.effective_trust)
        return Agent(
            id=self._new_id(),
            name=agent.name,
            archetype=agent.archetype,
            lineage_id=agent.lineage_id,
            generation=agent.generation + 1,
            talent=start.trust,
            training=start.trust,
            temperament=start.trust,
            consistency=start.ci,
            balance=start.atp,
            born_epoch=epoch,
            history=deque(maxlen=self.config.history_window),
        )


# ---------------------------------------------------------------------------
# Individual layer
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class LifeRecord:
    """One life of the karma journey, as of its latest tick."""
    life_number: int
    tick: int
    talent: float
    training: float
    temperament: float
    consistency: float
    balance: float
    alive: bool = True
    death_cause: DeathCause | None = None
    karma_tier: KarmaTier | None = None
    choices: tuple[str, ...] = ()

    @property
    def composite(self) -> float:
        return composite_score(self.talent, self.training, self.temperament)

    @property
    def effective(self) -> float:
        return effective_score(self.talent, self.training, self.temperament, self.consistency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "life_number": self.life_number,
            "tick": self.tick,
            "talent": self.talent,
            "training": self.training,
            "temperament": self.temperament,
            "consistency": self.consistency,
            "balance": self.balance,
            "alive": self.alive,
            "death_cause": self.death_cause.value if self.death_cause else None,
            "karma_tier": self.karma_tier.value if self.karma_tier else None,
            "choices": list(self.choices),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> LifeRecord:
        return cls(
            life_number=int(d["life_number"]),
            tick=int(d["tick"]),
            talent=float(d["talent"]),
            training=float(d["training"]),
            temperament=float(d["temperament"]),
            consistency=float(d["consistency"]),
            balance=float(d["balance"]),
            alive=bool(d["alive"]),
            death_cause=DeathCause(d["death_cause"]) if d.get("death_cause") else None,
            karma_tier=KarmaTier(d["karma_tier"]) if d.get("karma_tier") else None,
            choices=tuple(d.get("choices", ())),
        )


Lineage = tuple[LifeRecord, ...]


def first_life(config: LifeConfig) -> LifeRecord:
    return LifeRecord(
        life_number=1,
        tick=0,
        talent=config.initial_talent,
        training=config.initial_training,
        temperament=config.initial_temperament,
        consistency=config.initial_consistency,
        balance=config.initial_balance,
    )


def end_life(record: LifeRecord, cause: DeathCause) -> LifeRecord:
    if not record.alive:
        raise LifecycleError(f"Life {record.life_number} has already ended")
    return replace(
        record, alive=False, death_cause=cause, karma_tier=karma_tier(record.effective),
    )


def current_life(lineage: Lineage) -> LifeRecord:
    if not lineage:
        raise LifecycleError("Lineage is empty")
    return lineage[-1]


def start_next_life(lineage: Lineage, rebirth_constrained: bool = False) -> Lineage:
    """Append the next life, seeded from the karma of the current one."""
    last = current_life(lineage)
    if last.alive:
        raise LifecycleError(f"Life {last.life_number} is still alive")
    if not (last.karma_tier.can_rebirth or rebirth_constrained):
        raise LifecycleError(
            f"Life {last.life_number} ended Constrained; the lineage is over"
        )
    start = starting_conditions(last.karma_tier, last.effective)
    reborn = LifeRecord(
        life_number=last.life_number + 1,
        tick=0,
        talent=start.trust,
        training=start.trust,
        temperament=start.trust,
        consistency=start.ci,
        balance=start.atp,
    )
    return lineage + (reborn,)

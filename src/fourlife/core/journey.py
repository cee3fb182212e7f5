"""
Karma journey: the individual layer.

One agent lives a sequence of lives. Each tick it takes one action from the
catalog; the action is settled against the pre-action state, the trust
tensor and consistency move, and death is checked. A dead life is scored
into a karma tier, and (for Honored and Neutral karma) the next life starts
from karma-derived conditions. Lives are immutable ``LifeRecord`` values in
an append-only lineage.

``KarmaJourney`` is the interactive driver (one ``act()`` per user choice);
``run_journey`` plays a whole journey with an automated policy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable

import numpy as np

from fourlife.core.actions import ACTIONS, Action, ActionCategory, actions_in, get_action
from fourlife.core.config import LifeConfig
from fourlife.core.economy import QualityRamp, settle_action
from fourlife.core.events import EventLog, EventType, Significance, SimEvent
from fourlife.core.lifecycle import (
    LifecycleError,
    Lineage,
    LifeRecord,
    check_death,
    current_life,
    end_life,
    first_life,
    start_next_life,
)

logger = logging.getLogger(__name__)

Policy = Callable[[LifeRecord, np.random.Generator], Action]

# Per-life cap for automated journeys configured without one
MAX_TICKS_PER_LIFE = 10_000


def _clamp(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


@dataclass(frozen=True)
class TickSnapshot:
    """One settled action and the life record it produced."""
    step: int
    action: str
    cost: int
    reward: float
    trust_before: float
    trust_after: float
    balance_before: float
    balance_after: float
    record: LifeRecord

    @property
    def life_number(self) -> int:
        return self.record.life_number

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "action": self.action,
            "cost": self.cost,
            "reward": self.reward,
            "trust_before": self.trust_before,
            "trust_after": self.trust_after,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "record": self.record.to_dict(),
        }


@dataclass(frozen=True)
class LifeSummary:
    life_number: int
    ticks: int
    final_balance: float
    final_effective: float
    alive: bool
    death_cause: str | None
    karma_tier: str | None
    cooperative_choices: int
    selfish_choices: int

    @classmethod
    def of(cls, record: LifeRecord) -> LifeSummary:
        categories = [ACTIONS[k].category for k in record.choices if k in ACTIONS]
        return cls(
            life_number=record.life_number,
            ticks=record.tick,
            final_balance=record.balance,
            final_effective=record.effective,
            alive=record.alive,
            death_cause=record.death_cause.value if record.death_cause else None,
            karma_tier=record.karma_tier.value if record.karma_tier else None,
            cooperative_choices=sum(1 for c in categories if c is ActionCategory.COOPERATIVE),
            selfish_choices=sum(1 for c in categories if c is ActionCategory.SELFISH),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "life_number": self.life_number,
            "ticks": self.ticks,
            "final_balance": self.final_balance,
            "final_effective": self.final_effective,
            "alive": self.alive,
            "death_cause": self.death_cause,
            "karma_tier": self.karma_tier,
            "cooperative_choices": self.cooperative_choices,
            "selfish_choices": self.selfish_choices,
        }


@dataclass(frozen=True)
class JourneyResult:
    config: LifeConfig
    ticks: tuple[TickSnapshot, ...]
    events: tuple[SimEvent, ...]
    lives: tuple[LifeSummary, ...]
    lineage: Lineage

    @property
    def final_metrics(self) -> dict[str, Any]:
        last = self.lineage[-1]
        return {
            "lives": len(self.lineage),
            "total_ticks": len(self.ticks),
            "final_balance": last.balance,
            "final_effective": last.effective,
            "alive": last.alive,
            "karma_tiers": [l.karma_tier for l in self.lives if l.karma_tier],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "ticks": [t.to_dict() for t in self.ticks],
            "events": [e.to_dict() for e in self.events],
            "lives": [l.to_dict() for l in self.lives],
            "final_metrics": self.final_metrics,
        }


class KarmaJourney:
    """Interactive driver for one agent's sequence of lives."""

    def __init__(self, config: LifeConfig | None = None):
        self.config = (config or LifeConfig()).validate()
        self.ramp = QualityRamp(self.config.quality_points)
        self.reset()

    def reset(self) -> None:
        """Discard every life and start over from the first one."""
        self._lineage: Lineage = (first_life(self.config),)
        self._ticks: list[TickSnapshot] = []
        self._events = EventLog()
        self._step = 0
        self._emit_birth(self._lineage[-1])

    @classmethod
    def from_lineage(cls, lineage: Lineage, config: LifeConfig | None = None) -> KarmaJourney:
        """Resume a journey from a stored lineage, e.g. one loaded from ProgressStore.

        Ticks and events start empty; the step counter continues from the
        total ticks already lived.
        """
        journey = cls(config)
        lineage = tuple(lineage)
        current_life(lineage)  # raises LifecycleError when empty
        journey._lineage = lineage
        journey._ticks = []
        journey._events = EventLog()
        journey._step = sum(life.tick for life in lineage)
        return journey

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def lineage(self) -> Lineage:
        return self._lineage

    @property
    def current(self) -> LifeRecord:
        return current_life(self._lineage)

    @property
    def ticks(self) -> tuple[TickSnapshot, ...]:
        return tuple(self._ticks)

    @property
    def events(self) -> tuple[SimEvent, ...]:
        return self._events.freeze()

    @property
    def can_rebirth(self) -> bool:
        life = self.current
        if life.alive or life.karma_tier is None:
            return False
        return life.karma_tier.can_rebirth or self.config.rebirth_constrained

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def act(self, action: Action | str) -> TickSnapshot:
        """Settle one action on the current life."""
        if isinstance(action, str):
            action = get_action(action)
        life = self.current
        if not life.alive:
            raise LifecycleError(f"Life {life.life_number} has ended; start the next life first")

        cfg = self.config
        settlement = settle_action(life.consistency, action, self.ramp)
        raw_balance = life.balance + settlement.balance_delta
        updated = replace(
            life,
            tick=life.tick + 1,
            talent=_clamp(life.talent + settlement.talent_delta),
            training=_clamp(life.training + settlement.training_delta),
            temperament=_clamp(life.temperament + settlement.temperament_delta),
            consistency=_clamp(life.consistency + settlement.consistency_delta),
            balance=max(0.0, raw_balance),
            choices=life.choices + (action.key,),
        )
        self._step += 1

        cause = check_death(raw_balance, updated.effective, cfg.trust_collapse_floor)
        if cause is not None:
            updated = end_life(updated, cause)

        self._lineage = self._lineage[:-1] + (updated,)
        tick = TickSnapshot(
            step=self._step,
            action=action.key,
            cost=settlement.cost,
            reward=settlement.reward,
            trust_before=life.effective,
            trust_after=updated.effective,
            balance_before=life.balance,
            balance_after=updated.balance,
            record=updated,
        )
        self._ticks.append(tick)
        self._emit_tick_events(life, updated)
        logger.debug(
            "life=%d tick=%d action=%s cost=%d balance=%.1f effective=%.3f",
            updated.life_number, updated.tick, action.key, settlement.cost,
            updated.balance, updated.effective,
        )
        return tick

    def start_next_life(self) -> LifeRecord:
        """Rebirth the dead current life; raises LifecycleError if not allowed."""
        previous = self.current
        self._lineage = start_next_life(self._lineage, self.config.rebirth_constrained)
        reborn = self.current
        self._events.emit(
            self._step, EventType.AGENT_REBIRTH, [self.config.agent_name],
            Significance.MILESTONE, life_number=reborn.life_number,
            karma_tier=previous.karma_tier.value, trust=reborn.talent,
            balance=reborn.balance, consistency=reborn.consistency,
        )
        self._emit_birth(reborn)
        return reborn

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def _emit(self, event_type: EventType, significance: Significance, life: LifeRecord, **data: Any) -> None:
        self._events.emit(
            self._step, event_type, [self.config.agent_name], significance,
            life_number=life.life_number, **data,
        )

    def _emit_birth(self, life: LifeRecord) -> None:
        self._emit(
            EventType.BIRTH, Significance.INFO, life,
            balance=life.balance, effective_trust=life.effective,
        )

    def _emit_tick_events(self, before: LifeRecord, after: LifeRecord) -> None:
        cfg = self.config
        if after.alive and before.balance > cfg.atp_crisis_level >= after.balance:
            self._emit(EventType.ATP_CRISIS, Significance.WARNING, after, balance=after.balance)
        if before.effective < cfg.agency_threshold <= after.effective:
            self._emit(
                EventType.THRESHOLD_CROSSED, Significance.MILESTONE, after,
                effective_trust=after.effective,
            )
        if after.alive:
            return

        self._emit(
            EventType.AGENT_DEATH, Significance.WARNING, after,
            cause=after.death_cause.value, karma_tier=after.karma_tier.value,
            effective_trust=after.effective, ticks=after.tick,
        )
        if len(self._lineage) > 1:
            previous = self._lineage[-2]
            change = after.effective - previous.effective
            if change > cfg.maturation_delta:
                self._emit(EventType.MATURATION, Significance.MILESTONE, after, change=change)
            elif abs(change) < cfg.consistency_delta:
                self._emit(EventType.CONSISTENCY, Significance.INFO, after, change=change)
        if not self.can_rebirth:
            self._emit(
                EventType.LINEAGE_ENDED, Significance.MILESTONE, after,
                karma_tier=after.karma_tier.value,
            )


# ---------------------------------------------------------------------------
# Automated policies
# ---------------------------------------------------------------------------
def cooperative_policy(life: LifeRecord, rng: np.random.Generator) -> Action:
    """Steady cooperator: deliver, help, and train when it can afford it."""
    if life.balance < 20:
        return ACTIONS["consistent_delivery"]
    options = ("consistent_delivery", "help_peer", "complete_training")
    return ACTIONS[options[life.tick % len(options)]]


def selfish_policy(life: LifeRecord, rng: np.random.Generator) -> Action:
    options = actions_in(ActionCategory.SELFISH)
    return options[int(rng.integers(len(options)))]


def random_policy(life: LifeRecord, rng: np.random.Generator) -> Action:
    keys = sorted(ACTIONS)
    return ACTIONS[keys[int(rng.integers(len(keys)))]]


POLICIES: dict[str, Policy] = {
    "cooperative": cooperative_policy,
    "selfish": selfish_policy,
    "random": random_policy,
}


def run_journey(config: LifeConfig | None = None, policy: Policy | str = cooperative_policy) -> JourneyResult:
    """
    Play a whole journey with an automated policy.

    Each life runs until death or ``ticks_per_life`` ticks (0 falls back to
    ``MAX_TICKS_PER_LIFE``).
    A life that survives the cap ends the journey; so do a lineage that
    cannot continue and ``max_lives`` reached.
    """
    if isinstance(policy, str):
        if policy not in POLICIES:
            raise KeyError(f"Unknown policy: '{policy}'. Available: {list(POLICIES.keys())}")
        policy = POLICIES[policy]

    journey = KarmaJourney(config)
    cfg = journey.config
    rng = np.random.default_rng(cfg.random_seed)

    while True:
        while journey.current.alive:
            if journey.current.tick >= (cfg.ticks_per_life or MAX_TICKS_PER_LIFE):
                break
            journey.act(policy(journey.current, rng))
        if journey.current.alive or not journey.can_rebirth:
            break
        if len(journey.lineage) >= cfg.max_lives:
            break
        journey.start_next_life()

    return JourneyResult(
        config=cfg,
        ticks=journey.ticks,
        events=journey.events,
        lives=tuple(LifeSummary.of(life) for life in journey.lineage),
        lineage=journey.lineage,
    )

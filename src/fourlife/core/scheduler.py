"""
Interaction scheduling: who meets whom in an epoch.

Every alive agent, in a seeded shuffled order, makes a fixed number of
proposals. A proposer only considers partners it still trusts at least
``refusal_threshold``, weighted by trust raised to ``partner_selectivity``;
the target accepts only if it trusts the proposer at least as much. A pair
meets at most once per epoch.

The proposal counts are kept alongside the pairings: falling incoming
proposals are how the isolation detector sees an agent being shunned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from fourlife.core.agent import Agent
    from fourlife.core.config import SocietyConfig


@dataclass(frozen=True)
class EpochSchedule:
    pairings: tuple[tuple[str, str], ...]   # (initiator, target), in play order
    proposals_received: dict[str, int] = field(default_factory=dict)
    expected_proposals: float = 0.0         # Per agent, under uniform choice
    refusals: int = 0

    @property
    def interaction_count(self) -> int:
        return len(self.pairings)


class InteractionScheduler:
    """Selects the pairings of one epoch from the pre-epoch trust state."""

    def __init__(self, config: SocietyConfig):
        self.config = config

    def schedule(self, agents: Sequence[Agent], rng: np.random.Generator) -> EpochSchedule:
        cfg = self.config
        alive = [a for a in agents if a.is_alive]
        n = len(alive)
        received = {a.id: 0 for a in alive}
        if n < 2:
            return EpochSchedule(pairings=(), proposals_received=received)

        order = [alive[i] for i in rng.permutation(n)]
        by_id = {a.id: a for a in alive}
        paired: set[frozenset[str]] = set()
        pairings: list[tuple[str, str]] = []
        refusals = 0

        for initiator in order:
            proposed: set[str] = set()
            for _ in range(cfg.interactions_per_agent):
                candidates = []
                weights = []
                for other in alive:
                    if other.id == initiator.id or other.id in proposed:
                        continue
                    if frozenset((initiator.id, other.id)) in paired:
                        continue
                    trust = initiator.trust_in(other.id, cfg.initial_pairwise_trust)
                    if trust < cfg.refusal_threshold:
                        continue
                    candidates.append(other.id)
                    weights.append(trust ** cfg.partner_selectivity)
                if not candidates:
                    break

                w = np.array(weights, dtype=float)
                if w.sum() <= 0:
                    w = np.ones(len(candidates))
                target_id = candidates[rng.choice(len(candidates), p=w / w.sum())]
                proposed.add(target_id)
                received[target_id] += 1

                target = by_id[target_id]
                if target.trust_in(initiator.id, cfg.initial_pairwise_trust) < cfg.refusal_threshold:
                    refusals += 1
                    continue
                paired.add(frozenset((initiator.id, target_id)))
                pairings.append((initiator.id, target_id))

        return EpochSchedule(
            pairings=tuple(pairings),
            proposals_received=received,
            expected_proposals=float(cfg.interactions_per_agent),
            refusals=refusals,
        )

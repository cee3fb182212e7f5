"""
Coalition detection over the smoothed trust network.

Edges join agents that interacted recently. Each edge carries an
exponential moving average of bilateral trust (the mean of both
directions). Edges above ``coalition_threshold`` are strong; recent edges
at or below it are weak.

Coalitions grow by constrained agglomeration: strong edges are taken in
descending weight order and two clusters merge only if no weak edge would
end up inside the merged cluster. A refinement pass then lets an agent
bordering two clusters move when joining the other cluster gives it a
higher average internal trust than its current cluster has, as long as the
cluster it leaves stays connected with at least two members.

Coalition identity is its member set. Any membership change dissolves the
old coalition and forms a new one.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

import networkx as nx
import numpy as np

if TYPE_CHECKING:
    from fourlife.core.agent import Agent
    from fourlife.core.config import SocietyConfig


@dataclass(frozen=True)
class Coalition:
    id: str
    members: frozenset[str]
    average_trust: float
    total_balance: float
    dominant_archetype: str
    formed_epoch: int

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "members": sorted(self.members),
            "average_trust": self.average_trust,
            "total_balance": self.total_balance,
            "dominant_archetype": self.dominant_archetype,
            "formed_epoch": self.formed_epoch,
        }


@dataclass(frozen=True)
class CoalitionUpdate:
    coalitions: tuple[Coalition, ...]
    formed: tuple[Coalition, ...] = ()
    dissolved: tuple[Coalition, ...] = ()


def _pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a < b else (b, a)


class CoalitionDetector:
    """Maintains the trust graph and the current coalition partition."""

    def __init__(self, config: SocietyConfig):
        self.config = config
        self.graph = nx.Graph()
        self.smoothed: dict[tuple[str, str], float] = {}
        self.coalitions: dict[frozenset[str], Coalition] = {}
        self._next_coalition_id = 0

    # ------------------------------------------------------------------
    # Trust graph
    # ------------------------------------------------------------------
    def update_graph(self, agents: Sequence[Agent], epoch: int) -> nx.Graph:
        """Refresh smoothed edge weights from the committed trust state."""
        cfg = self.config
        alive = sorted((a for a in agents if a.is_alive), key=lambda a: a.id)
        oldest = epoch - cfg.coalition_recency_epochs + 1
        alpha = cfg.trust_smoothing

        graph = nx.Graph()
        graph.add_nodes_from(a.id for a in alive)
        smoothed: dict[tuple[str, str], float] = {}

        for i, a in enumerate(alive):
            for b in alive[i + 1:]:
                seen = [
                    t for t in (a.last_interaction.get(b.id), b.last_interaction.get(a.id))
                    if t is not None
                ]
                if not seen or max(seen) < oldest:
                    continue
                key = _pair(a.id, b.id)
                bilateral = 0.5 * (
                    a.trust_in(b.id, cfg.initial_pairwise_trust)
                    + b.trust_in(a.id, cfg.initial_pairwise_trust)
                )
                prev = self.smoothed.get(key, bilateral)
                weight = prev + alpha * (bilateral - prev)
                smoothed[key] = weight
                graph.add_edge(*key, weight=weight, strong=weight > cfg.coalition_threshold)

        self.smoothed = smoothed
        self.graph = graph
        return graph

    def strong_subgraph(self) -> nx.Graph:
        strong = nx.Graph()
        strong.add_nodes_from(self.graph.nodes)
        strong.add_edges_from(
            (u, v, d) for u, v, d in self.graph.edges(data=True) if d["strong"]
        )
        return strong

    def density(self) -> float:
        """Fraction of possible pairs joined by a strong edge."""
        if self.graph.number_of_nodes() < 2:
            return 0.0
        return float(nx.density(self.strong_subgraph()))

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------
    def _has_weak_edge(self, left: frozenset[str], right: frozenset[str]) -> bool:
        for u in left:
            for v in right:
                data = self.graph.get_edge_data(u, v)
                if data is not None and not data["strong"]:
                    return True
        return False

    def _agglomerate(self) -> list[frozenset[str]]:
        cluster_of: dict[str, frozenset[str]] = {
            n: frozenset((n,)) for n in self.graph.nodes
        }
        strong_edges = sorted(
            (
                (-d["weight"], *_pair(u, v))
                for u, v, d in self.graph.edges(data=True) if d["strong"]
            ),
        )
        for _, u, v in strong_edges:
            cu, cv = cluster_of[u], cluster_of[v]
            if cu is cv or self._has_weak_edge(cu, cv):
                continue
            merged = cu | cv
            for member in merged:
                cluster_of[member] = merged

        unique = {id(c): c for c in cluster_of.values()}
        return sorted(unique.values(), key=lambda c: sorted(c))

    def _internal_trust(self, cluster: frozenset[str]) -> float:
        """Mean smoothed weight over the edges inside ``cluster``."""
        weights = [d["weight"] for _, _, d in self.graph.subgraph(cluster).edges(data=True)]
        return float(np.mean(weights)) if weights else 0.0

    def _refine(
        self, clusters: list[frozenset[str]], rng: np.random.Generator,
    ) -> list[frozenset[str]]:
        clusters = list(clusters)
        strong = self.strong_subgraph()

        for agent_id in sorted(self.graph.nodes):
            home_idx = next(i for i, c in enumerate(clusters) if agent_id in c)
            home = clusters[home_idx]
            remainder = home - {agent_id}
            if len(remainder) < 2 or not nx.is_connected(strong.subgraph(remainder)):
                continue

            best_idx, best_trust = None, self._internal_trust(home)
            for idx, other in enumerate(clusters):
                if idx == home_idx or len(other) < 2:
                    continue
                if not any(strong.has_edge(agent_id, m) for m in other):
                    continue
                if self._has_weak_edge(frozenset((agent_id,)), other):
                    continue
                trust = self._internal_trust(other | {agent_id})
                if trust > best_trust:
                    best_idx, best_trust = idx, trust
                elif trust == best_trust and best_idx is None and rng.random() < 0.5:
                    best_idx = idx

            if best_idx is not None:
                clusters[best_idx] = clusters[best_idx] | {agent_id}
                clusters[home_idx] = remainder

        return clusters

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------
    def update(
        self, agents: Sequence[Agent], epoch: int, rng: np.random.Generator,
    ) -> CoalitionUpdate:
        self.update_graph(agents, epoch)
        clusters = self._refine(self._agglomerate(), rng)
        by_id = {a.id: a for a in agents}

        current: dict[frozenset[str], Coalition] = {}
        formed: list[Coalition] = []
        for members in clusters:
            if len(members) < 2:
                continue
            previous = self.coalitions.get(members)
            if previous is None:
                coalition = self._build(members, by_id, epoch, self._new_id())
                formed.append(coalition)
            else:
                coalition = self._build(members, by_id, previous.formed_epoch, previous.id)
            current[members] = coalition

        dissolved = [c for m, c in self.coalitions.items() if m not in current]
        self.coalitions = current

        membership = {m: c.id for c in current.values() for m in c.members}
        for agent in agents:
            agent.coalition_id = membership.get(agent.id) if agent.is_alive else None

        ordered = tuple(sorted(current.values(), key=lambda c: c.id))
        return CoalitionUpdate(
            coalitions=ordered,
            formed=tuple(formed),
            dissolved=tuple(sorted(dissolved, key=lambda c: c.id)),
        )

    def _build(
        self, members: frozenset[str], by_id: dict[str, Agent],
        formed_epoch: int, coalition_id: str,
    ) -> Coalition:
        archetypes = Counter(by_id[m].archetype.value for m in members)
        top = max(archetypes.values())
        return Coalition(
            id=coalition_id,
            members=members,
            average_trust=self._internal_trust(members),
            total_balance=float(sum(by_id[m].balance for m in members)),
            dominant_archetype=min(a for a, n in archetypes.items() if n == top),
            formed_epoch=formed_epoch,
        )

    def _new_id(self) -> str:
        self._next_coalition_id += 1
        return f"coalition_{self._next_coalition_id:04d}"

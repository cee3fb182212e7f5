"""
Metrics Collector: per-epoch society statistics.

Descriptive only: trust levels, cooperation, wealth inequality and the
coalition structure of one committed epoch. Provides time series
extraction and export for visualization.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Sequence

import numpy as np

from fourlife.core.strategy import Archetype

if TYPE_CHECKING:
    from fourlife.core.agent import Agent
    from fourlife.core.config import SocietyConfig
    from fourlife.social.coalitions import Coalition


def gini(values: Sequence[float]) -> float:
    """Gini coefficient of non-negative values; 0 for empty or all-zero input."""
    x = np.sort(np.asarray(values, dtype=float))
    n = x.size
    if n == 0 or x.sum() <= 0:
        return 0.0
    index = np.arange(1, n + 1)
    return float((2.0 * np.sum(index * x)) / (n * x.sum()) - (n + 1) / n)


@dataclass(frozen=True)
class EpochMetrics:
    """Society statistics for one epoch."""

    epoch: int
    alive_count: int
    max_generation: int

    # Trust
    mean_trust: float              # Mean effective trust of alive agents
    mean_pairwise_trust: float
    pairwise_trust_variance: float

    # Cooperation
    interactions: int
    mutual_cooperations: int
    cooperation_rate: float        # Mutual cooperations / interactions
    refusals: int

    # Economy
    total_balance: float
    mean_balance: float
    gini: float
    burned_total: float            # Cumulative fees burned

    # Structure
    coalition_count: int
    largest_coalition: int
    network_density: float
    archetype_counts: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    # Life cycle
    deaths: int = 0
    rebirths: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["archetype_counts"] = dict(self.archetype_counts)
        return data


class MetricsCollector:
    """Collects and aggregates metrics across epochs."""

    def __init__(self, config: SocietyConfig):
        self.config = config
        self.metrics_history: list[EpochMetrics] = []
        self._burned_total = 0.0

    def collect(
        self,
        epoch: int,
        agents: Sequence[Agent],
        *,
        interactions: int = 0,
        mutual_cooperations: int = 0,
        refusals: int = 0,
        burned: float = 0.0,
        coalitions: Sequence[Coalition] = (),
        network_density: float = 0.0,
        deaths: int = 0,
        rebirths: int = 0,
    ) -> EpochMetrics:
        """Collect metrics for one committed epoch."""
        alive = [a for a in agents if a.is_alive]
        balances = [a.balance for a in alive]
        self._burned_total += burned

        pairwise = self._pairwise_trust(alive)
        archetype_counts = {arch.value: 0 for arch in Archetype}
        for a in alive:
            archetype_counts[a.archetype.value] += 1

        metrics = EpochMetrics(
            epoch=epoch,
            alive_count=len(alive),
            max_generation=max((a.generation for a in agents), default=0),
            mean_trust=float(np.mean([a.effective_trust for a in alive])) if alive else 0.0,
            mean_pairwise_trust=float(pairwise.mean()) if pairwise.size else self.config.initial_pairwise_trust,
            pairwise_trust_variance=float(pairwise.var()) if pairwise.size else 0.0,
            interactions=interactions,
            mutual_cooperations=mutual_cooperations,
            cooperation_rate=mutual_cooperations / interactions if interactions else 0.0,
            refusals=refusals,
            total_balance=float(sum(balances)),
            mean_balance=float(np.mean(balances)) if balances else 0.0,
            gini=gini(balances),
            burned_total=self._burned_total,
            coalition_count=len(coalitions),
            largest_coalition=max((c.size for c in coalitions), default=0),
            network_density=network_density,
            archetype_counts=MappingProxyType(archetype_counts),
            deaths=deaths,
            rebirths=rebirths,
        )
        self.metrics_history.append(metrics)
        return metrics

    def get_time_series(self, field_name: str) -> list[Any]:
        """Extract a time series for a specific metric field."""
        return [getattr(m, field_name) for m in self.metrics_history]

    def export_for_visualization(self) -> list[dict[str, Any]]:
        """Export all metrics as a list of JSON-serializable dicts."""
        return [m.to_dict() for m in self.metrics_history]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _pairwise_trust(self, alive: Sequence[Agent]) -> np.ndarray:
        """Every directed trust value between alive agents, defaults included."""
        default = self.config.initial_pairwise_trust
        values = [
            a.trust_in(b.id, default)
            for a in alive for b in alive if a.id != b.id
        ]
        return np.array(values, dtype=float)

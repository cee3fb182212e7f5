"""
Experiment Runner: batch execution, parameter sweeps and multi-seed runs.

The runner only executes configurations and reports how they differ.
Comparing outcomes across runs is left to the consumer of the results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from fourlife.core.config import SocietyConfig
from fourlife.core.engine import SimulationResult, run
from fourlife.core.events import EventType


@dataclass
class ExperimentResult:
    """Result of a single experiment run."""
    config: SocietyConfig
    result: SimulationResult
    final_alive: int
    total_deaths: int
    isolation_events: int
    mean_cooperation_rate: float
    final_gini: float
    mean_balance_by_archetype: dict[str, float]


@dataclass
class BatchResult:
    """Results of several runs plus how their configs differ from the first."""
    results: dict[str, ExperimentResult]
    config_diffs: dict[str, Any]


def _mean_balance_by_archetype(result: SimulationResult) -> dict[str, float]:
    groups: dict[str, list[float]] = {}
    for agent in result.final_agents:
        groups.setdefault(agent.archetype, []).append(agent.balance)
    return {k: float(np.mean(v)) for k, v in sorted(groups.items())}


class ExperimentRunner:
    """
    Run, batch and sweep simulation experiments.
    """

    def run_experiment(self, config: SocietyConfig) -> ExperimentResult:
        """Run a single experiment and return results."""
        result = run(config)
        coop = [s.metrics.cooperation_rate for s in result.epochs if s.metrics.interactions > 0]
        return ExperimentResult(
            config=config,
            result=result,
            final_alive=result.final_metrics.alive_count if result.final_metrics else 0,
            total_deaths=len(result.events_of(EventType.AGENT_DEATH)),
            isolation_events=len(result.events_of(EventType.DEFECTOR_ISOLATED)),
            mean_cooperation_rate=float(np.mean(coop)) if coop else 0.0,
            final_gini=result.final_metrics.gini if result.final_metrics else 0.0,
            mean_balance_by_archetype=_mean_balance_by_archetype(result),
        )

    def run_batch(self, configs: dict[str, SocietyConfig]) -> BatchResult:
        """Run several experiments; diff every config against the first."""
        results: dict[str, ExperimentResult] = {}
        for name, config in configs.items():
            results[name] = self.run_experiment(config)

        config_names = list(configs.keys())
        diffs: dict[str, Any] = {}
        if len(config_names) >= 2:
            base = configs[config_names[0]]
            for name in config_names[1:]:
                diffs[f"{config_names[0]}_vs_{name}"] = base.diff(configs[name])

        return BatchResult(results=results, config_diffs=diffs)

    def run_parameter_sweep(
        self,
        base_config: SocietyConfig,
        param_name: str,
        values: list[Any],
    ) -> dict[str, ExperimentResult]:
        """
        Sweep a single parameter across multiple values.

        Args:
            base_config: Base configuration to modify
            param_name: Name of the parameter to sweep (attribute on SocietyConfig)
            values: List of values to test

        Returns:
            Dict mapping value label -> ExperimentResult
        """
        if param_name not in base_config.to_dict():
            raise KeyError(f"Unknown parameter: '{param_name}'")

        results: dict[str, ExperimentResult] = {}
        for val in values:
            config_dict = base_config.to_dict()
            config_dict[param_name] = val
            config_dict["experiment_name"] = f"sweep_{param_name}={val}"
            config = SocietyConfig.from_dict(config_dict)

            label = f"{param_name}={val}"
            results[label] = self.run_experiment(config)

        return results

    def run_multi_seed(
        self,
        config: SocietyConfig,
        seeds: list[int],
    ) -> list[ExperimentResult]:
        """
        Run the same configuration with multiple random seeds.

        Useful for measuring variance in outcomes.
        """
        results: list[ExperimentResult] = []
        for seed in seeds:
            config_dict = config.to_dict()
            config_dict["random_seed"] = seed
            config_dict["experiment_name"] = f"{config.experiment_name}_seed{seed}"
            results.append(self.run_experiment(SocietyConfig.from_dict(config_dict)))
        return results

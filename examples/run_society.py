#!/usr/bin/env python3
"""Run a 4-Life society simulation and print results."""

import sys

from fourlife.core.engine import run
from fourlife.core.events import EventType
from fourlife.experiment.presets import get_preset


def main():
    config = get_preset(sys.argv[1] if len(sys.argv) > 1 else "isolation_demo")

    print(f"=== 4-Life Society: {config.experiment_name} ===")
    print(f"Population: {config.population_size}")
    print(f"Archetypes: {config.archetype_distribution}")
    print(f"Epochs: {config.epochs}")
    print()

    result = run(config)

    print(f"{'Epoch':>5} {'Alive':>5} {'Int':>4} {'Coop':>5} {'Trust':>6} "
          f"{'Pair':>6} {'Gini':>6} {'Coal':>4} {'Burned':>7}")
    print("-" * 60)

    for snap in result.epochs:
        m = snap.metrics
        print(
            f"{m.epoch:5d} {m.alive_count:5d} {m.interactions:4d} "
            f"{m.cooperation_rate:5.2f} {m.mean_trust:6.3f} "
            f"{m.mean_pairwise_trust:6.3f} {m.gini:6.3f} "
            f"{m.coalition_count:4d} {m.burned_total:7.1f}"
        )

    print()
    print(f"=== Final State (Epoch {result.final_metrics.epoch}) ===")
    balances: dict[str, list[float]] = {}
    for agent in result.final_agents:
        balances.setdefault(agent.archetype, []).append(agent.balance)
    for archetype, values in sorted(balances.items()):
        print(f"  {archetype:15s}: mean balance {sum(values) / len(values):8.1f} ({len(values)} agents)")

    print(f"\nEvents:")
    for event_type in EventType:
        count = len(result.events_of(event_type))
        if count:
            print(f"  {event_type.value:20s}: {count}")

    for event in result.events_of(EventType.DEFECTOR_ISOLATED):
        print(f"  epoch {event.step:3d}: {event.agent_ids[0]} isolated "
              f"(proposal rate {event.data['proposal_rate']:.2f})")


if __name__ == "__main__":
    main()

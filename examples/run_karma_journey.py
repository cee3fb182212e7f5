#!/usr/bin/env python3
"""Play an automated karma journey and print each life."""

import sys

from fourlife.core.config import LifeConfig
from fourlife.core.journey import run_journey


def main():
    policy = sys.argv[1] if len(sys.argv) > 1 else "random"
    config = LifeConfig(agent_name="Wanderer", random_seed=42, max_lives=5, ticks_per_life=60)

    print(f"=== Karma Journey: {config.agent_name} ({policy} policy) ===")
    result = run_journey(config, policy)

    print(f"{'Life':>4} {'Ticks':>5} {'ATP':>7} {'Eff':>6} {'Coop':>4} {'Self':>4} "
          f"{'Death':>15} {'Karma':>12}")
    print("-" * 66)
    for life in result.lives:
        print(
            f"{life.life_number:4d} {life.ticks:5d} {life.final_balance:7.1f} "
            f"{life.final_effective:6.3f} {life.cooperative_choices:4d} "
            f"{life.selfish_choices:4d} {life.death_cause or 'alive':>15} "
            f"{life.karma_tier or '-':>12}"
        )

    print(f"\nEvents:")
    for event in result.events:
        if event.significance.value in ("milestone", "warning"):
            print(f"  step {event.step:4d} life {event.life_number}: {event.event_type.value} {event.data}")


if __name__ == "__main__":
    main()

"""
Experiment presets: pre-configured society and journey templates.

Each society preset returns a SocietyConfig with a specific archetype mix
and payoff setting, designed to test one question about how trust and
cooperation evolve. Journey presets return a LifeConfig.
"""

from __future__ import annotations

from typing import Callable

from fourlife.core.config import LifeConfig, SocietyConfig


# ---------------------------------------------------------------------------
# Society presets
# ---------------------------------------------------------------------------
def baseline() -> SocietyConfig:
    """Standard baseline configuration with default parameters."""
    return SocietyConfig(experiment_name="baseline")


def cooperative_majority() -> SocietyConfig:
    """Most agents cooperate. Do defectors thrive or get isolated?"""
    return SocietyConfig(
        experiment_name="cooperative_majority",
        population_size=12,
        archetype_distribution={
            "cooperative": 5, "defecting": 2, "reciprocating": 3,
            "cautious": 1, "adaptive": 1,
        },
    )


def hostile_world() -> SocietyConfig:
    """Defectors outnumber cooperators; a richer reward for mutual cooperation."""
    return SocietyConfig(
        experiment_name="hostile_world",
        population_size=12,
        archetype_distribution={
            "cooperative": 2, "defecting": 5, "reciprocating": 2,
            "cautious": 2, "adaptive": 1,
        },
        cooperation_reward=5.0,
    )


def reciprocity_rules() -> SocietyConfig:
    """Tit-for-tat dominates. The evolution of cooperation."""
    return SocietyConfig(
        experiment_name="reciprocity_rules",
        population_size=12,
        archetype_distribution={
            "cooperative": 1, "defecting": 2, "reciprocating": 7,
            "cautious": 1, "adaptive": 1,
        },
    )


def trust_scarce() -> SocietyConfig:
    """Mostly cautious agents; trust is slow to earn and quick to lose."""
    return SocietyConfig(
        experiment_name="trust_scarce",
        population_size=10,
        archetype_distribution={
            "cooperative": 1, "defecting": 1, "reciprocating": 2,
            "cautious": 5, "adaptive": 1,
        },
        trust_gain_cooperate=0.05,
        trust_loss_defected=0.15,
        cooperation_reward=5.5,
    )


def all_adaptive() -> SocietyConfig:
    """Pure learning society. Strategy emerges from interaction."""
    return SocietyConfig(
        experiment_name="all_adaptive",
        population_size=10,
        archetype_distribution={
            "cooperative": 0, "defecting": 0, "reciprocating": 0,
            "cautious": 0, "adaptive": 10,
        },
    )


def isolation_demo() -> SocietyConfig:
    """Six cooperators and four defectors: the defectors end up shunned."""
    return SocietyConfig(
        experiment_name="isolation_demo",
        random_seed=7,
        population_size=10,
        archetype_distribution={
            "cooperative": 6, "defecting": 4, "reciprocating": 0,
            "cautious": 0, "adaptive": 0,
        },
        epochs=50,
        transfer_fee_rate=0.05,
    )


# Registry of all society presets
PRESETS: dict[str, Callable[[], SocietyConfig]] = {
    "baseline": baseline,
    "cooperative_majority": cooperative_majority,
    "hostile_world": hostile_world,
    "reciprocity_rules": reciprocity_rules,
    "trust_scarce": trust_scarce,
    "all_adaptive": all_adaptive,
    "isolation_demo": isolation_demo,
}


def get_preset(name: str) -> SocietyConfig:
    """Get a preset config by name."""
    if name not in PRESETS:
        raise KeyError(f"Unknown preset: '{name}'. Available: {list(PRESETS.keys())}")
    return PRESETS[name]()


def list_presets() -> list[str]:
    """Return list of available preset names."""
    return list(PRESETS.keys())


# ---------------------------------------------------------------------------
# Journey presets
# ---------------------------------------------------------------------------
def gentle_start() -> LifeConfig:
    return LifeConfig(
        agent_name="Newcomer",
        max_lives=3,
        ticks_per_life=40,
        initial_balance=150.0,
        initial_talent=0.3,
        initial_training=0.3,
        initial_temperament=0.3,
    )


def harsh_world() -> LifeConfig:
    """Little ATP, low starting trust, and more lives to learn in."""
    return LifeConfig(
        agent_name="Survivor",
        max_lives=5,
        ticks_per_life=30,
        initial_balance=60.0,
        initial_talent=0.2,
        initial_training=0.2,
        initial_temperament=0.2,
    )


def fast_learner() -> LifeConfig:
    return LifeConfig(
        agent_name="Scholar",
        max_lives=5,
        ticks_per_life=30,
        initial_talent=0.25,
        initial_training=0.25,
        initial_temperament=0.25,
    )


LIFE_PRESETS: dict[str, Callable[[], LifeConfig]] = {
    "gentle_start": gentle_start,
    "harsh_world": harsh_world,
    "fast_learner": fast_learner,
}


def get_life_preset(name: str) -> LifeConfig:
    """Get a journey preset config by name."""
    if name not in LIFE_PRESETS:
        raise KeyError(f"Unknown preset: '{name}'. Available: {list(LIFE_PRESETS.keys())}")
    return LIFE_PRESETS[name]()


def list_life_presets() -> list[str]:
    return list(LIFE_PRESETS.keys())

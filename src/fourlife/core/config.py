"""
Master configuration for the 4-Life trust-economy simulation.

ALL tunable parameters live here. Nothing in the simulation is hardcoded:
payoffs, trust dynamics, coalition/isolation thresholds and the quality
ramp are all sliders.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any


ARCHETYPE_NAMES = ("cooperative", "defecting", "reciprocating", "cautious", "adaptive")

DEFAULT_QUALITY_POINTS: tuple[tuple[float, float], ...] = (
    (0.30, 0.0),
    (0.70, 0.60),
    (0.85, 0.84),
    (1.00, 1.00),
)


class ConfigError(ValueError):
    """Raised when a configuration is rejected before a run starts."""


class _Serializable:
    """to_dict / from_dict / JSON / diff helpers shared by the config classes."""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (excludes private fields)."""
        d: dict[str, Any] = {}
        for k, v in self.__dict__.items():
            if k.startswith("_"):
                continue
            if isinstance(v, tuple):
                v = [list(x) if isinstance(x, tuple) else x for x in v]
            elif isinstance(v, dict):
                v = dict(v)
            d[k] = v
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]):
        """Deserialize from a dict."""
        return cls(**{k: v for k, v in d.items() if not k.startswith("_")})

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_json(cls, s: str):
        return cls.from_dict(json.loads(s))

    def diff(self, other) -> dict[str, tuple[Any, Any]]:
        """Return parameters that differ between two configs."""
        diffs: dict[str, tuple[Any, Any]] = {}
        mine, theirs = self.to_dict(), other.to_dict()
        for k, v1 in mine.items():
            v2 = theirs.get(k)
            if v1 != v2:
                diffs[k] = (v1, v2)
        return diffs


def _check_unit(name: str, value: float, errors: list[str]) -> None:
    if not (isinstance(value, (int, float)) and 0.0 <= value <= 1.0):
        errors.append(f"{name} must be in [0, 1], got {value!r}")


@dataclass
class SocietyConfig(_Serializable):
    """
    Population-layer configuration.

    ``archetype_distribution`` maps archetype name -> agent count and must
    sum to ``population_size``. Call ``validate()`` (``run()`` does) before
    using a hand-built config.
    """

    # === Experiment identity ===
    experiment_name: str = "default"
    random_seed: int | None = None

    # === Population ===
    population_size: int = 12
    archetype_distribution: dict[str, int] = field(default_factory=lambda: {
        "cooperative": 3,
        "defecting": 2,
        "reciprocating": 4,
        "cautious": 2,
        "adaptive": 1,
    })
    epochs: int = 50

    # === Economy (ATP) ===
    initial_balance: float = 100.0
    transfer_fee_rate: float = 0.05
    interaction_cost: float = 1.0
    transfer_amount: float = 4.0      # Given to the partner on cooperation
    cooperation_reward: float = 3.5   # Minted for each side of a mutual cooperation
    upkeep_cost: float = 1.0          # Flat metabolic cost per epoch

    # === Scheduling ===
    interactions_per_agent: int = 2
    refusal_threshold: float = 0.2
    partner_selectivity: float = 2.0

    # === Pairwise trust dynamics ===
    initial_pairwise_trust: float = 0.5
    trust_gain_cooperate: float = 0.08
    trust_loss_defected: float = 0.12
    mutual_defection_factor: float = 0.3

    # === Agent trust (T3) and consistency dynamics ===
    initial_trust: float = 0.5
    initial_consistency: float = 0.85
    talent_gain: float = 0.005        # Per mutual cooperation
    training_gain: float = 0.002      # Per completed interaction
    temperament_gain: float = 0.01    # Per own cooperation
    temperament_loss: float = 0.02    # Per own defection
    consistency_recovery: float = 0.02
    consistency_decay: float = 0.1

    # === Strategies ===
    history_window: int = 10
    cautious_threshold: float = 0.5

    # === Life cycle ===
    trust_collapse_floor: float = 0.05
    enable_rebirth: bool = True
    rebirth_constrained: bool = False

    # === Structural analysis ===
    coalition_threshold: float = 0.6
    coalition_recency_epochs: int = 5
    trust_smoothing: float = 0.5
    isolation_threshold: float = 0.25
    isolation_window: int = 5
    stability_window: int = 5
    stability_band: float = 0.05
    cooperation_surge_threshold: float = 0.7
    society_collapse_threshold: float = 0.3

    def validate(self) -> SocietyConfig:
        """Reject inconsistent configurations. Returns self for chaining."""
        errors: list[str] = []

        if self.population_size < 0:
            errors.append(f"population_size must be >= 0, got {self.population_size}")
        unknown = sorted(set(self.archetype_distribution) - set(ARCHETYPE_NAMES))
        if unknown:
            errors.append(f"Unknown archetypes {unknown}. Choose from: {list(ARCHETYPE_NAMES)}")
        if any(c < 0 for c in self.archetype_distribution.values()):
            errors.append("archetype counts must be >= 0")
        total = sum(self.archetype_distribution.values())
        if total != self.population_size:
            errors.append(
                f"archetype_distribution sums to {total}, "
                f"expected population_size={self.population_size}"
            )
        if self.epochs <= 0:
            errors.append(f"epochs must be > 0, got {self.epochs}")
        if not math.isfinite(self.initial_balance) or self.initial_balance < 0:
            errors.append(f"initial_balance must be >= 0, got {self.initial_balance}")
        if not 0.0 <= self.transfer_fee_rate < 1.0:
            errors.append(f"transfer_fee_rate must be in [0, 1), got {self.transfer_fee_rate}")
        for name in ("interaction_cost", "transfer_amount", "cooperation_reward", "upkeep_cost"):
            if getattr(self, name) < 0:
                errors.append(f"{name} must be >= 0")
        if self.interactions_per_agent < 0:
            errors.append("interactions_per_agent must be >= 0")
        if self.history_window < 1:
            errors.append("history_window must be >= 1")
        for name in ("isolation_window", "stability_window", "coalition_recency_epochs"):
            if getattr(self, name) < 1:
                errors.append(f"{name} must be >= 1")
        for name in (
            "refusal_threshold", "initial_pairwise_trust", "initial_trust",
            "initial_consistency", "cautious_threshold", "trust_collapse_floor",
            "coalition_threshold", "trust_smoothing", "isolation_threshold",
            "stability_band", "cooperation_surge_threshold",
            "society_collapse_threshold",
        ):
            _check_unit(name, getattr(self, name), errors)

        if errors:
            raise ConfigError("; ".join(errors))
        return self


@dataclass
class LifeConfig(_Serializable):
    """Individual-layer (karma journey) configuration."""

    agent_name: str = "Agent-1"
    random_seed: int | None = None

    max_lives: int = 3
    ticks_per_life: int = 50  # 0 = act until death

    # === Starting conditions of the first life ===
    initial_talent: float = 0.5
    initial_training: float = 0.5
    initial_temperament: float = 0.5
    initial_consistency: float = 0.85
    initial_balance: float = 100.0

    trust_collapse_floor: float = 0.05
    rebirth_constrained: bool = False

    # === Quality ramp calibration (quality, reward fraction) ===
    quality_points: tuple[tuple[float, float], ...] = DEFAULT_QUALITY_POINTS

    # === Event thresholds ===
    atp_crisis_level: float = 10.0
    agency_threshold: float = 0.5
    maturation_delta: float = 0.05
    consistency_delta: float = 0.02

    def __post_init__(self) -> None:
        self.quality_points = tuple(tuple(p) for p in self.quality_points)

    def validate(self) -> LifeConfig:
        errors: list[str] = []
        if self.max_lives < 1:
            errors.append(f"max_lives must be >= 1, got {self.max_lives}")
        if self.ticks_per_life < 0:
            errors.append(f"ticks_per_life must be >= 0, got {self.ticks_per_life}")
        if not math.isfinite(self.initial_balance) or self.initial_balance < 0:
            errors.append(f"initial_balance must be >= 0, got {self.initial_balance}")
        for name in (
            "initial_talent", "initial_training", "initial_temperament",
            "initial_consistency", "trust_collapse_floor", "agency_threshold",
        ):
            _check_unit(name, getattr(self, name), errors)
        qualities = [q for q, _ in self.quality_points]
        if len(qualities) < 2 or qualities != sorted(qualities):
            errors.append("quality_points needs >= 2 points in ascending quality order")
        if errors:
            raise ConfigError("; ".join(errors))
        return self

"""
Trust / karma scoring.

Trust is a three-dimensional tensor (talent, training, temperament) folded
into a weighted composite. The consistency index (CI) suppresses it
super-linearly: every sub-dimension is scaled by CI squared before the
composite is taken, so one bad pattern taints all three dimensions.

Karma is the three-way classification of the effective score at the moment
of death; it sets the starting conditions of the next life.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

import numpy as np


TRUST_WEIGHTS = {"talent": 0.3, "training": 0.3, "temperament": 0.4}

HONORED_ABOVE = 0.7
CONSTRAINED_BELOW = 0.3


class KarmaTier(Enum):
    """Classification of an agent's effective trust at death."""
    HONORED = "honored"
    NEUTRAL = "neutral"
    CONSTRAINED = "constrained"

    @property
    def can_rebirth(self) -> bool:
        return self is not KarmaTier.CONSTRAINED


@dataclass(frozen=True)
class StartingConditions:
    """Next-life stats derived from karma."""
    trust: float
    atp: float
    ci: float


def composite_score(talent: float, training: float, temperament: float) -> float:
    return (
        TRUST_WEIGHTS["talent"] * talent
        + TRUST_WEIGHTS["training"] * training
        + TRUST_WEIGHTS["temperament"] * temperament
    )


def effective_score(
    talent: float, training: float, temperament: float, consistency: float,
) -> float:
    """Composite score after scaling every sub-dimension by consistency squared."""
    ci_mod = consistency ** 2
    return composite_score(talent * ci_mod, training * ci_mod, temperament * ci_mod)


def karma_tier(effective: float) -> KarmaTier:
    """Classify an effective score. Both boundaries are exclusive."""
    if effective > HONORED_ABOVE:
        return KarmaTier.HONORED
    if effective < CONSTRAINED_BELOW:
        return KarmaTier.CONSTRAINED
    return KarmaTier.NEUTRAL


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def starting_conditions(tier: KarmaTier, effective_at_death: float) -> StartingConditions:
    """Starting trust / ATP / CI for the life after a death at ``tier``."""
    if tier is KarmaTier.HONORED:
        bonus = round_half_up((effective_at_death - 0.5) * 80)
        return StartingConditions(trust=0.6, atp=float(100 + bonus), ci=0.85)
    if tier is KarmaTier.NEUTRAL:
        return StartingConditions(trust=0.5, atp=100.0, ci=0.8)
    return StartingConditions(trust=0.4, atp=80.0, ci=0.7)


def reputation(trust_toward: Iterable[float], default: float = 0.5) -> float:
    """Mean trust other agents hold toward someone; ``default`` if nobody does."""
    values = np.fromiter(trust_toward, dtype=float)
    if values.size == 0:
        return default
    return float(values.mean())

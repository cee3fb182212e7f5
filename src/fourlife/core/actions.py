"""
Action catalog for the individual (karma journey) layer.

Each action carries a base ATP cost (scaled by the consistency multiplier at
settlement), a flat ATP delta, optional quality-ramped reward, and deltas to
the trust tensor and consistency index.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActionCategory(Enum):
    COOPERATIVE = "cooperative"
    SELFISH = "selfish"
    RISKY = "risky"
    NEUTRAL = "neutral"
    CONTRIBUTION = "contribution"


@dataclass(frozen=True)
class Action:
    key: str
    label: str
    category: ActionCategory
    base_cost: float = 0.0
    atp_delta: float = 0.0
    talent_delta: float = 0.0
    training_delta: float = 0.0
    temperament_delta: float = 0.0
    ci_delta: float = 0.0
    # Quality-ramped reward: paid as ramp(quality) * value
    value: float = 0.0
    quality: float | None = None


ACTIONS: dict[str, Action] = {
    # --- Everyday choices ---
    "help_peer": Action(
        key="help_peer", label="Help a peer", category=ActionCategory.COOPERATIVE,
        base_cost=5, atp_delta=-5,
        training_delta=0.005, temperament_delta=0.02, ci_delta=0.015,
    ),
    "complete_training": Action(
        key="complete_training", label="Complete training", category=ActionCategory.COOPERATIVE,
        base_cost=10, atp_delta=-10,
        talent_delta=0.01, training_delta=0.04, ci_delta=0.01,
    ),
    "consistent_delivery": Action(
        key="consistent_delivery", label="Consistent delivery", category=ActionCategory.COOPERATIVE,
        base_cost=0, atp_delta=5,
        training_delta=0.01, temperament_delta=0.025, ci_delta=0.02,
    ),
    "take_shortcut": Action(
        key="take_shortcut", label="Take a shortcut", category=ActionCategory.SELFISH,
        base_cost=2, atp_delta=15,
        training_delta=-0.005, temperament_delta=-0.02, ci_delta=-0.03,
    ),
    "exploit_loophole": Action(
        key="exploit_loophole", label="Exploit a loophole", category=ActionCategory.SELFISH,
        base_cost=5, atp_delta=25,
        talent_delta=0.01, temperament_delta=-0.04, ci_delta=-0.06,
    ),
    "withhold_information": Action(
        key="withhold_information", label="Withhold information", category=ActionCategory.SELFISH,
        base_cost=3, atp_delta=8,
        temperament_delta=-0.015, ci_delta=-0.02,
    ),
    "attempt_innovation": Action(
        key="attempt_innovation", label="Attempt innovation", category=ActionCategory.RISKY,
        base_cost=8, atp_delta=-8,
        talent_delta=0.03, training_delta=0.01, temperament_delta=-0.005, ci_delta=0.005,
    ),
    "challenge_authority": Action(
        key="challenge_authority", label="Challenge authority", category=ActionCategory.RISKY,
        base_cost=3, atp_delta=-3,
        training_delta=0.005, temperament_delta=-0.01, ci_delta=-0.01,
    ),
    "rest": Action(
        key="rest", label="Rest", category=ActionCategory.NEUTRAL,
        base_cost=0, atp_delta=2,
        training_delta=-0.005, temperament_delta=0.01, ci_delta=0.005,
    ),
    # --- Contributions (reward follows the quality ramp) ---
    "spam": Action(
        key="spam", label="Send spam message", category=ActionCategory.CONTRIBUTION,
        base_cost=5, value=50, quality=0.05,
        temperament_delta=-0.02, ci_delta=-0.03,
    ),
    "low_quality_post": Action(
        key="low_quality_post", label="Low-quality post", category=ActionCategory.CONTRIBUTION,
        base_cost=10, value=50, quality=0.35,
        training_delta=-0.005,
    ),
    "meaningful_contribution": Action(
        key="meaningful_contribution", label="Meaningful contribution",
        category=ActionCategory.CONTRIBUTION,
        base_cost=15, value=50, quality=0.70,
        talent_delta=0.01, training_delta=0.01, temperament_delta=0.01, ci_delta=0.01,
    ),
    "high_value_creation": Action(
        key="high_value_creation", label="High-value creation",
        category=ActionCategory.CONTRIBUTION,
        base_cost=20, value=50, quality=0.90,
        talent_delta=0.03, training_delta=0.01, ci_delta=0.01,
    ),
}


def get_action(key: str) -> Action:
    if key not in ACTIONS:
        raise KeyError(f"Unknown action: '{key}'. Available: {list(ACTIONS.keys())}")
    return ACTIONS[key]


def actions_in(category: ActionCategory) -> list[Action]:
    return [a for a in ACTIONS.values() if a.category is category]

"""
Society-level regime detection: stability, cooperation surges and trust
collapse.

Stability means mean trust and cooperation rate each stayed within
``stability_band`` (max - min) over the last ``stability_window`` epochs.
A stable streak is reported once. Surges and collapses are reported when
the series crosses its threshold, never on every epoch it stays there.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fourlife.core.config import SocietyConfig


class Regime(Enum):
    STABLE = "stable"
    COOPERATION_SURGE = "cooperation_surge"
    TRUST_COLLAPSE = "trust_collapse"


class StabilityDetector:

    def __init__(self, config: SocietyConfig):
        self.config = config
        self.trust = deque(maxlen=config.stability_window)
        self.cooperation = deque(maxlen=config.stability_window)
        self._stable = False
        self._surging = False
        self._collapsed = False

    def is_stable(self) -> bool:
        cfg = self.config
        if len(self.trust) < cfg.stability_window:
            return False
        return (
            max(self.trust) - min(self.trust) <= cfg.stability_band
            and max(self.cooperation) - min(self.cooperation) <= cfg.stability_band
        )

    def update(
        self, epoch: int, mean_trust: float, cooperation_rate: float,
        mean_pairwise_trust: float, interactions: int,
    ) -> list[Regime]:
        """Record one epoch; return the regimes newly entered."""
        cfg = self.config
        self.trust.append(mean_trust)
        self.cooperation.append(cooperation_rate)
        entered: list[Regime] = []

        stable = self.is_stable()
        if stable and not self._stable:
            entered.append(Regime.STABLE)
        self._stable = stable

        # The first epoch has no prior to cross from.
        if epoch >= 1:
            surging = interactions > 0 and cooperation_rate > cfg.cooperation_surge_threshold
            if surging and not self._surging:
                entered.append(Regime.COOPERATION_SURGE)
            self._surging = surging

            collapsed = mean_pairwise_trust < cfg.society_collapse_threshold
            if collapsed and not self._collapsed:
                entered.append(Regime.TRUST_COLLAPSE)
            self._collapsed = collapsed

        return entered

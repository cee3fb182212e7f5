"""
Isolation detection.

An agent is being shunned when it receives far fewer interaction proposals
than uniform partner choice would send it. The detector keeps a rolling
window of (received, expected) per agent; once the window is full, a
defection-leaning agent whose received/expected rate is below
``isolation_threshold`` is reported. Each isolation episode is reported
once, and the detector re-arms when the rate recovers.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Sequence

from fourlife.core.strategy import defection_leaning

if TYPE_CHECKING:
    from fourlife.core.agent import Agent
    from fourlife.core.config import SocietyConfig
    from fourlife.core.scheduler import EpochSchedule


class IsolationDetector:

    def __init__(self, config: SocietyConfig):
        self.config = config
        self.windows: dict[str, deque[tuple[int, float]]] = {}
        self.isolated: set[str] = set()

    def rate(self, agent_id: str) -> float | None:
        """Received / expected proposals over the window; None until full."""
        window = self.windows.get(agent_id)
        if window is None or len(window) < self.config.isolation_window:
            return None
        expected = sum(e for _, e in window)
        if expected <= 0:
            return None
        return sum(r for r, _ in window) / expected

    def update(self, agents: Sequence[Agent], schedule: EpochSchedule) -> list[tuple[str, float]]:
        """Record one epoch; return newly isolated (agent_id, rate) pairs."""
        newly: list[tuple[str, float]] = []
        alive_ids = set()

        for agent in agents:
            if not agent.is_alive:
                continue
            alive_ids.add(agent.id)
            window = self.windows.setdefault(
                agent.id, deque(maxlen=self.config.isolation_window),
            )
            window.append((
                schedule.proposals_received.get(agent.id, 0),
                schedule.expected_proposals,
            ))

            rate = self.rate(agent.id)
            if rate is None:
                continue
            if rate < self.config.isolation_threshold:
                if agent.id not in self.isolated and defection_leaning(agent.archetype, agent.history):
                    self.isolated.add(agent.id)
                    newly.append((agent.id, rate))
            else:
                self.isolated.discard(agent.id)

        for gone in set(self.windows) - alive_ids:
            del self.windows[gone]
            self.isolated.discard(gone)

        return newly

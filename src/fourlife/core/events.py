"""
Structured simulation events.

Events are plain data: a step index, a type, the implicated agents, a
significance tag and a few numbers. Turning them into prose is left to
whatever consumes the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping


class EventType(Enum):
    # Population layer
    COALITION_FORMED = "coalition_formed"
    COALITION_DISSOLVED = "coalition_dissolved"
    DEFECTOR_ISOLATED = "defector_isolated"
    TRUST_COLLAPSE = "trust_collapse"
    AGENT_DEATH = "agent_death"
    AGENT_REBIRTH = "agent_rebirth"
    LINEAGE_ENDED = "lineage_ended"
    COOPERATION_SURGE = "cooperation_surge"
    SOCIETY_STABLE = "society_stable"
    ANOMALY = "anomaly"
    # Individual layer
    BIRTH = "birth"
    ATP_CRISIS = "atp_crisis"
    THRESHOLD_CROSSED = "threshold_crossed"
    MATURATION = "maturation"
    CONSISTENCY = "consistency"


class Significance(Enum):
    INFO = "info"
    MILESTONE = "milestone"
    WARNING = "warning"
    ANOMALY = "anomaly"


@dataclass(frozen=True)
class SimEvent:
    step: int
    event_type: EventType
    agent_ids: tuple[str, ...] = ()
    significance: Significance = Significance.INFO
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    life_number: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "step": self.step,
            "event_type": self.event_type.value,
            "agent_ids": list(self.agent_ids),
            "significance": self.significance.value,
            "data": dict(self.data),
        }
        if self.life_number is not None:
            d["life_number"] = self.life_number
        return d


class EventLog:
    """Append-only, step-ordered event list."""

    def __init__(self) -> None:
        self._events: list[SimEvent] = []

    def emit(
        self,
        step: int,
        event_type: EventType,
        agent_ids: Iterable[str] = (),
        significance: Significance = Significance.INFO,
        life_number: int | None = None,
        **data: Any,
    ) -> SimEvent:
        if self._events and step < self._events[-1].step:
            raise ValueError(
                f"Event at step {step} would precede step {self._events[-1].step}"
            )
        event = SimEvent(
            step=step,
            event_type=event_type,
            agent_ids=tuple(agent_ids),
            significance=significance,
            data=MappingProxyType(dict(data)),
            life_number=life_number,
        )
        self._events.append(event)
        return event

    def of_type(self, event_type: EventType) -> list[SimEvent]:
        return [e for e in self._events if e.event_type is event_type]

    def at_step(self, step: int) -> list[SimEvent]:
        return [e for e in self._events if e.step == step]

    def freeze(self) -> tuple[SimEvent, ...]:
        return tuple(self._events)

    def __iter__(self) -> Iterator[SimEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

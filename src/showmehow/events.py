"""Tracking of external events that tasks wait on before producing a result."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from .effects import add_unique
from .errors import AmbiguousOutputs, InvalidTaskSpec, NoOutputSatisfied

logger = logging.getLogger(__name__)

TaskKey = tuple[str, str]


class EventBoundary(Protocol):
    """Whatever exposes the tracker to the outside world."""

    def announce_interest(self, events: list[str]) -> None: ...

    def signal_satisfied(self, lesson: str, task: str) -> None: ...


class LoggingBoundary:
    """Boundary that only records what would have been emitted."""

    def announce_interest(self, events: list[str]) -> None:
        logger.info("Listening for lesson events: %s", ", ".join(events))

    def signal_satisfied(self, lesson: str, task: str) -> None:
        logger.info("Lesson events satisfied for %s/%s", lesson, task)


@dataclass
class OutputState:
    """Progress of one output: which of its events have fired."""

    events: dict[str, bool]
    subsumes: frozenset[str]
    notify: bool

    @property
    def satisfied(self) -> bool:
        return all(self.events.values())


@dataclass
class PendingEventState:
    """All outputs of one armed (lesson, task)."""

    outputs: dict[str, OutputState] = field(default_factory=dict)

    def subsumption(self) -> dict[str, frozenset[str]]:
        """Adjacency map: output name -> names it subsumes."""
        return {name: output.subsumes for name, output in self.outputs.items()}

    def tracked_events(self) -> list[str]:
        return add_unique([], (event for output in self.outputs.values() for event in output.events))

    def fired_events(self) -> list[str]:
        fired = (event for output in self.outputs.values() for event, done in output.events.items() if done)
        return add_unique([], fired)


@dataclass(frozen=True)
class ResolvedOutput:
    """The single output selected for an armed task."""

    name: str
    status: OutputState


def select_output(satisfied: list[str], subsumes: dict[str, frozenset[str]]) -> list[str]:
    """Keep the satisfied outputs that subsume every other satisfied output."""
    return [
        name
        for name in satisfied
        if all(other in subsumes.get(name, frozenset()) for other in satisfied if other != name)
    ]


def _output_from_spec(name: str, raw: object) -> OutputState:
    if not isinstance(raw, dict):
        raise InvalidTaskSpec(f"External event output '{name}' must be an object, got {raw!r}")
    events = raw.get("events", [])
    subsumes = raw.get("subsumes", [])
    if not isinstance(events, list) or not isinstance(subsumes, list):
        raise InvalidTaskSpec(f"External event output '{name}' needs list-valued events and subsumes.")
    return OutputState(
        events={str(event): False for event in events},
        subsumes=frozenset(str(item) for item in subsumes),
        notify=bool(raw.get("notify", False)),
    )


class EventTracker:
    """Owns the pending event state of every armed (lesson, task)."""

    def __init__(self, boundary: EventBoundary | None = None) -> None:
        self.boundary: EventBoundary = boundary or LoggingBoundary()
        self._pending: dict[TaskKey, PendingEventState] = {}

    def arm(self, lesson: str, task: str, outputs_spec: dict[str, Any]) -> list[str]:
        """Start tracking outputs for a task, replacing earlier state; return the events of interest."""
        if not isinstance(outputs_spec, dict):
            raise InvalidTaskSpec(f"external_events settings must map output names to outputs, got {outputs_spec!r}")
        state = PendingEventState(
            outputs={str(name): _output_from_spec(str(name), raw) for name, raw in outputs_spec.items()}
        )
        self._pending[(lesson, task)] = state
        events = state.tracked_events()
        logger.debug("Armed %s/%s for events %s", lesson, task, events)
        return events

    def disarm(self, lesson: str, task: str) -> bool:
        """Drop tracking for a task; return whether anything was armed."""
        dropped = self._pending.pop((lesson, task), None) is not None
        if dropped:
            logger.debug("Disarmed %s/%s", lesson, task)
        return dropped

    def is_armed(self, lesson: str, task: str) -> bool:
        return (lesson, task) in self._pending

    def armed_pairs(self) -> list[TaskKey]:
        return list(self._pending)

    def state(self, lesson: str, task: str) -> PendingEventState | None:
        return self._pending.get((lesson, task))

    def notify(self, event: str) -> list[TaskKey]:
        """Record that `event` fired and signal every task whose winning output asks for it."""
        signalled: list[TaskKey] = []
        for lesson, task in list(self._pending):
            # A boundary callback may already have moved this task on.
            state = self._pending.get((lesson, task))
            if state is None:
                continue
            for output in state.outputs.values():
                if event in output.events:
                    output.events[event] = True
            try:
                resolved = self.resolve(lesson, task)
            except NoOutputSatisfied:
                continue
            except AmbiguousOutputs as exc:
                # One badly authored task must not stop the others being notified.
                logger.error("Cannot resolve events for %s/%s: %s", lesson, task, exc)
                continue
            if resolved.status.notify:
                self.boundary.signal_satisfied(lesson, task)
                signalled.append((lesson, task))
        return signalled

    def resolve(self, lesson: str, task: str) -> ResolvedOutput:
        """Select the one output satisfied by the events seen so far."""
        state = self._pending.get((lesson, task))
        if state is None:
            raise NoOutputSatisfied(lesson, task, [])
        satisfied = [name for name, output in state.outputs.items() if output.satisfied]
        if not satisfied:
            raise NoOutputSatisfied(lesson, task, state.fired_events())
        survivors = select_output(satisfied, state.subsumption())
        if len(survivors) != 1:
            raise AmbiguousOutputs(lesson, task, survivors or satisfied, state.fired_events())
        return ResolvedOutput(name=survivors[0], status=state.outputs[survivors[0]])

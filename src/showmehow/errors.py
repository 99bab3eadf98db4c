"""Error kinds surfaced to callers of the lesson service."""

from __future__ import annotations

import json


class ShowmehowError(Exception):
    """Base error for malformed lesson content and invalid requests."""

    kind = "internal-error"

    def as_payload(self) -> tuple[str, str]:
        """Return the structured (kind, message) pair handed to adapters."""
        return (self.kind, str(self))


class TaskNotFound(ShowmehowError):
    """Unknown lesson or task id."""

    kind = "task-not-found"

    def __init__(self, lesson: str, task: str) -> None:
        super().__init__(f"Either the lesson '{lesson}' or task id '{task}' was invalid.")
        self.lesson = lesson
        self.task = task


class InvalidTaskSpec(ShowmehowError):
    """Task descriptor has a shape the service cannot interpret."""

    kind = "invalid-task-spec"


class InvalidPipelineSpec(InvalidTaskSpec):
    """A mapper entry could not be turned into a pipeline step."""

    kind = "invalid-pipeline-spec"

    def __init__(self, message: str, spec: object) -> None:
        super().__init__(f"{message} (spec: {_dump(spec)})")
        self.spec = spec


class UnknownStepType(InvalidPipelineSpec):
    """A mapper entry names a step type that does not exist."""

    kind = "unknown-step-type"


class InvalidStepConfig(InvalidTaskSpec):
    """A step received a config value it cannot use."""

    kind = "invalid-step-config"


class NoOutputSatisfied(InvalidTaskSpec):
    """No external-event output is satisfied by the events seen so far."""

    kind = "no-output-satisfied"

    def __init__(self, lesson: str, task: str, events: list[str]) -> None:
        listed = ", ".join(events) if events else "<none>"
        super().__init__(
            f"No outputs of {lesson}/{task} were satisfied by events: {listed}. "
            "At any given point an output must be satisfiable even if no events occur."
        )
        self.events = events


class AmbiguousOutputs(InvalidTaskSpec):
    """More than one output (or none) survived the subsumption filter."""

    kind = "ambiguous-outputs"

    def __init__(self, lesson: str, task: str, outputs: list[str], events: list[str]) -> None:
        super().__init__(
            f"Outputs ({', '.join(outputs)}) of {lesson}/{task} were all matched when the following "
            f"events were satisfied: {', '.join(events) or '<none>'}. Only one output should be "
            "satisfiable. Ensure every output that can be satisfied together with another lists "
            "it in its subsumes field."
        )
        self.outputs = outputs
        self.events = events


class UnknownResultCode(InvalidTaskSpec):
    """Pipeline produced a result with no matching effect."""

    kind = "unknown-result-code"

    def __init__(self, result: str, known: list[str]) -> None:
        super().__init__(f"Don't know how to handle result '{result}'; effects are defined for: {', '.join(known)}")
        self.result = result


class InvalidEffectSpec(InvalidTaskSpec):
    """Effect reply or side effect has an unusable shape."""

    kind = "invalid-effect-spec"


class UnknownSideEffect(InvalidEffectSpec):
    """Side effect type is not one the resolver knows."""

    kind = "unknown-side-effect"


class ProcessFailed(ShowmehowError):
    """Shell code could not be started or its output could not be read."""

    kind = "process-failed"


class InvalidClueType(ShowmehowError):
    """Clue registered with an unsupported type."""

    kind = "invalid-clue-type"


def _dump(value: object) -> str:
    try:
        return json.dumps(value, sort_keys=True)
    except (TypeError, ValueError):
        return repr(value)

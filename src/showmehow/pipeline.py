"""Compile mapper specs into pipelines and run input through them."""

from __future__ import annotations

import logging
import random
from functools import partial

from .errors import InvalidPipelineSpec, UnknownStepType
from .events import EventTracker
from .steps import (
    Auxiliary,
    ProcessRunner,
    Step,
    StepKind,
    StepResult,
    SubprocessRunner,
    add_wait_message,
    add_wrapped_output,
    pass_through,
    regex_validator,
    shell_custom_output,
    shell_output,
)

logger = logging.getLogger(__name__)


def normalize_step_spec(spec: object) -> dict[str, object]:
    """Expand bare type names and enforce the exact `{type, value}` shape."""
    if isinstance(spec, str):
        return {"type": spec, "value": None}
    if not isinstance(spec, dict):
        raise InvalidPipelineSpec("mapper must be either a string or an object", spec)
    if set(spec) != {"type", "value"}:
        raise InvalidPipelineSpec("Invalid mapper definition, expected exactly 'type' and 'value'", spec)
    if not isinstance(spec["type"], str):
        raise InvalidPipelineSpec("Invalid mapper definition, 'type' must be a string", spec)
    return spec


def check_external_events_step(tracker: EventTracker, lesson: str, task: str) -> Step:
    """Step that ignores its input and reports the output satisfied by tracked events."""

    def step(_text: str) -> StepResult:
        return (tracker.resolve(lesson, task).name, [])

    return step


def compile_step(
    spec: object,
    lesson: str,
    task: str,
    *,
    tracker: EventTracker,
    runner: ProcessRunner,
    rng: random.Random | None = None,
) -> Step:
    """Build one bound step from a mapper entry."""
    normalized = normalize_step_spec(spec)
    try:
        kind = StepKind(normalized["type"])
    except ValueError:
        raise UnknownStepType(f"Unknown step type '{normalized['type']}'", spec) from None
    value = normalized["value"]

    if kind is StepKind.CHECK_EXTERNAL_EVENTS:
        return check_external_events_step(tracker, lesson, task)
    if kind is StepKind.INPUT:
        return partial(pass_through, config=value)
    if kind is StepKind.REGEX:
        return partial(regex_validator, pattern=value)
    if kind is StepKind.SHELL:
        return partial(shell_output, config=value, runner=runner)
    if kind is StepKind.SHELL_CUSTOM:
        return partial(shell_custom_output, config=value, runner=runner)
    if kind is StepKind.WAIT_MESSAGE:
        return partial(add_wait_message, config=value, rng=rng)
    return partial(add_wrapped_output, config=value)


def compile_pipeline(
    step_specs: list[object] | tuple[object, ...],
    lesson: str,
    task: str,
    *,
    tracker: EventTracker | None = None,
    runner: ProcessRunner | None = None,
    rng: random.Random | None = None,
) -> list[Step]:
    """Turn a task's mapper list into bound steps, in order."""
    tracker = tracker or EventTracker()
    runner = runner or SubprocessRunner()
    steps = [compile_step(spec, lesson, task, tracker=tracker, runner=runner, rng=rng) for spec in step_specs]
    logger.debug("Compiled %d steps for %s/%s", len(steps), lesson, task)
    return steps


def run_pipeline(steps: list[Step], text: str) -> tuple[str, list[Auxiliary]]:
    """Thread input through every step, collecting auxiliaries in order."""
    output = text
    auxiliaries: list[Auxiliary] = []
    for step in steps:
        output, extras = step(output)
        auxiliaries.extend(extras)
    return (output, auxiliaries)

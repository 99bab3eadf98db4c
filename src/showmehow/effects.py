"""Turn a pipeline result code into replies, side effects and a task transition."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .errors import InvalidEffectSpec, UnknownResultCode, UnknownSideEffect
from .models import Effect
from .steps import Auxiliary, ProcessRunner, SubprocessRunner, execute_shell

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectOutcome:
    """Everything an attempt produced; `unlocked` and `known` are full updated sets."""

    responses: list[dict[str, Any]]
    unlocked: list[str]
    known: list[str]
    move_to: str


def add_unique(lhs: Iterable[str], rhs: Iterable[str]) -> list[str]:
    """Concatenate two sequences keeping only the first occurrence of each item."""
    combined: list[str] = []
    for item in [*lhs, *rhs]:
        if item not in combined:
            combined.append(item)
    return combined


def reply_content(reply: object) -> dict[str, Any]:
    """Normalize an effect reply: strings scroll, objects pass through verbatim."""
    if isinstance(reply, str):
        return {"type": "scrolled", "value": reply}
    if isinstance(reply, dict):
        return reply
    raise InvalidEffectSpec(
        f"Can't have a reply which isn't either an object or a string (error in processing {reply!r})"
    )


def responses_from_auxiliaries(auxiliaries: list[Auxiliary]) -> list[dict[str, Any]]:
    return [extra["content"] for extra in auxiliaries if extra.get("type") == "response"]


def resolve_effect(
    result: str,
    effects: dict[str, Effect],
    *,
    lesson: str,
    task: str,
    auxiliaries: list[Auxiliary] | None = None,
    prior_unlocked: list[str] | None = None,
    prior_known: list[str] | None = None,
    runner: ProcessRunner | None = None,
) -> EffectOutcome:
    """Apply the effect registered for `result`."""
    if result not in effects:
        raise UnknownResultCode(result, list(effects))
    effect = effects[result]

    responses = responses_from_auxiliaries(auxiliaries or [])
    if effect.reply is not None and effect.reply != "":
        responses.append(reply_content(effect.reply))

    unlocked = add_unique(prior_unlocked or [], [])
    for side_effect in effect.side_effects:
        kind = side_effect.get("type") if isinstance(side_effect, dict) else None
        if kind == "unlock":
            names = side_effect.get("value") or []
            if isinstance(names, str) or not isinstance(names, list):
                raise InvalidEffectSpec(f"unlock side effect needs a list of lesson names, got {names!r}")
            unlocked = add_unique(unlocked, [str(name) for name in names])
            logger.info("Unlocked lessons %s after %s/%s", names, lesson, task)
        elif kind == "shell":
            command = side_effect.get("value")
            if not isinstance(command, str):
                raise InvalidEffectSpec(f"shell side effect needs a command string, got {command!r}")
            execute_shell(command, runner or SubprocessRunner())
        else:
            raise UnknownSideEffect(
                f"Don't know how to handle side effect type {kind!r} in parsing ({side_effect!r})"
            )

    known = add_unique(prior_known or [], [])
    if effect.completes_lesson:
        known = add_unique(known, [lesson])
        logger.info("Lesson %s completed", lesson)

    move_to = effect.move_to or ("" if effect.completes_lesson else task)
    return EffectOutcome(responses=responses, unlocked=unlocked, known=known, move_to=move_to)

"""Core domain models for lesson descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class InputSpec:
    """How a task expects its input; `settings` is passed to input side effects."""

    type: str
    settings: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"type": self.type, "settings": self.settings}


@dataclass(frozen=True)
class Effect:
    """What happens when a pipeline produces one particular result code."""

    reply: object = None
    side_effects: tuple[object, ...] = ()
    completes_lesson: bool = False
    move_to: str | None = None


@dataclass(frozen=True)
class TaskDescriptor:
    """One exercise inside a lesson.

    `mapper` holds the raw step specs; they are validated when the pipeline
    is compiled, not when content is loaded.
    """

    id: str
    task: str
    input: InputSpec
    mapper: tuple[object, ...]
    effects: dict[str, Effect]


@dataclass(frozen=True)
class LessonDescriptor:
    """Top-level lesson with its practice tasks."""

    name: str
    desc: str
    entry: str
    available_to: tuple[str, ...]
    practice: dict[str, TaskDescriptor]

"""Load lesson descriptors from JSON files or the bundled resource."""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any

from .errors import InvalidEffectSpec, InvalidTaskSpec, TaskNotFound
from .models import Effect, InputSpec, LessonDescriptor, TaskDescriptor

CONTENT_PACKAGE = "showmehow.content"
CONTENT_FILE = "lessons.json"

logger = logging.getLogger(__name__)


def input_spec_from_raw(raw: object) -> InputSpec:
    """Normalize the `input` field; a bare string is shorthand for `{type, settings: {}}`."""
    if isinstance(raw, str):
        return InputSpec(type=raw, settings={})
    if isinstance(raw, dict):
        if not isinstance(raw.get("type"), str):
            raise InvalidTaskSpec(f"Input spec must have a string type, got {json.dumps(raw)}")
        settings = raw.get("settings") or {}
        if not isinstance(settings, dict):
            raise InvalidTaskSpec(f"Input settings must be an object, got {json.dumps(settings)}")
        return InputSpec(type=raw["type"], settings=settings)
    raise InvalidTaskSpec(
        f"Can't have an input spec which isn't either an object or a string (error in processing {raw!r})"
    )


def _effect_from_dict(raw: object) -> Effect:
    """Build an effect from raw JSON content."""
    if not isinstance(raw, dict):
        raise InvalidEffectSpec(f"Effect must be an object, got {raw!r}")
    side_effects = raw.get("side_effects") or []
    if not isinstance(side_effects, list):
        raise InvalidEffectSpec(f"side_effects must be a list, got {side_effects!r}")
    move_to = raw.get("move_to")
    return Effect(
        reply=raw.get("reply"),
        side_effects=tuple(side_effects),
        completes_lesson=bool(raw.get("completes_lesson", False)),
        move_to=str(move_to) if move_to else None,
    )


def _task_from_dict(task_id: str, raw: dict[str, Any]) -> TaskDescriptor:
    """Build a task from raw JSON content."""
    if not isinstance(raw, dict):
        raise InvalidTaskSpec(f"Task '{task_id}' must be an object, got {raw!r}")
    mapper = raw.get("mapper", [])
    if not isinstance(mapper, list):
        raise InvalidTaskSpec(f"Task '{task_id}' mapper must be a list.")
    effects = raw.get("effects", {})
    if not isinstance(effects, dict):
        raise InvalidTaskSpec(f"Task '{task_id}' effects must be an object.")
    return TaskDescriptor(
        id=task_id,
        task=str(raw.get("task", "")),
        input=input_spec_from_raw(raw.get("input", "text")),
        mapper=tuple(mapper),
        effects={str(code): _effect_from_dict(effect) for code, effect in effects.items()},
    )


def lesson_from_dict(raw: dict[str, Any]) -> LessonDescriptor:
    """Build a lesson from raw JSON content."""
    if not isinstance(raw, dict):
        raise InvalidTaskSpec(f"Lesson must be an object, got {raw!r}")
    practice = raw.get("practice", {})
    if not isinstance(practice, dict):
        raise InvalidTaskSpec(f"Lesson '{raw.get('name', '<unknown>')}' practice must be an object.")
    return LessonDescriptor(
        name=str(raw["name"]),
        desc=str(raw.get("desc", "")),
        entry=str(raw.get("entry", "")),
        available_to=tuple(str(client) for client in raw.get("available_to", [])),
        practice={str(task_id): _task_from_dict(str(task_id), task) for task_id, task in practice.items()},
    )


def descriptors_from_json(text: str) -> list[LessonDescriptor]:
    """Parse a lessons document: a JSON list of lesson objects."""
    raw = json.loads(text)
    if not isinstance(raw, list):
        raise ValueError("Lessons document root must be a JSON list.")
    return [lesson_from_dict(item) for item in raw]


def load_bundled_descriptors() -> list[LessonDescriptor]:
    """Load the lessons shipped inside the package."""
    entry = resources.files(CONTENT_PACKAGE).joinpath(CONTENT_FILE)
    return descriptors_from_json(entry.read_text(encoding="utf-8-sig"))


def load_descriptors_from_file(path: Path) -> tuple[list[LessonDescriptor] | None, list[str]]:
    """Load descriptors from one file, returning (descriptors or None, warnings)."""
    try:
        return (descriptors_from_json(path.read_text(encoding="utf-8-sig")), [])
    except (OSError, ValueError, KeyError, InvalidTaskSpec) as exc:
        return (None, [f"Unable to load {path}: {exc}"])


def candidate_paths(explicit: Path | str | None = None) -> list[Path]:
    """Return lesson files to try before falling back to the bundled resource."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    candidates = [Path(explicit)] if explicit else []
    user_file = Path(config_home) / "showmehow" / CONTENT_FILE
    # A missing user file is the common case, not something to warn about.
    if user_file.exists():
        candidates.append(user_file)
    return candidates


def load_descriptors(
    explicit: Path | str | None = None,
) -> tuple[list[LessonDescriptor], list[str], Path | None]:
    """Load descriptors, returning (descriptors, warnings, source path or None for bundled)."""
    warnings: list[str] = []
    for path in candidate_paths(explicit):
        descriptors, load_warnings = load_descriptors_from_file(path)
        warnings.extend(load_warnings)
        if descriptors is not None:
            return (descriptors, warnings, path)
    return (load_bundled_descriptors(), warnings, None)


class DescriptorStore:
    """Descriptor table with lesson/task lookup; replaced wholesale on reload."""

    def __init__(
        self,
        descriptors: list[LessonDescriptor],
        warnings: list[str] | None = None,
        source: Path | None = None,
    ) -> None:
        self._descriptors = list(descriptors)
        self.warnings = list(warnings or [])
        self.source = source
        for warning in self.warnings:
            logger.warning(warning)

    @classmethod
    def load(cls, explicit: Path | str | None = None) -> DescriptorStore:
        """Create a store from the first loadable lessons file."""
        descriptors, warnings, source = load_descriptors(explicit)
        return cls(descriptors, warnings, source)

    @property
    def descriptors(self) -> list[LessonDescriptor]:
        return list(self._descriptors)

    def lookup(self, lesson: str) -> LessonDescriptor | None:
        """Return the single lesson with this name, or None."""
        matches = [item for item in self._descriptors if item.name == lesson]
        if len(matches) != 1:
            if matches:
                logger.warning("Expected a single lesson named %s but found %d", lesson, len(matches))
            return None
        return matches[0]

    def task(self, lesson: str, task: str) -> TaskDescriptor:
        """Resolve (lesson, task) to its definition."""
        descriptor = self.lookup(lesson)
        if descriptor is None or task not in descriptor.practice:
            raise TaskNotFound(lesson, task)
        return descriptor.practice[task]

    def reload(self) -> bool:
        """Re-read the source file and replace the table; return whether it changed."""
        if self.source is None:
            return False
        descriptors, warnings = load_descriptors_from_file(self.source)
        for warning in warnings:
            logger.warning(warning)
        self.warnings = warnings
        if descriptors is None:
            return False
        self._descriptors = descriptors
        logger.info("Reloaded %d lessons from %s", len(descriptors), self.source)
        return True

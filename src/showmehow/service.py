"""Application service exposing lesson operations to adapters."""

from __future__ import annotations

import json
import logging
import random
import shlex
from dataclasses import dataclass
from pathlib import Path

from .content_loader import DescriptorStore
from .effects import add_unique, resolve_effect
from .errors import InvalidClueType
from .events import EventBoundary, EventTracker
from .models import LessonDescriptor
from .pipeline import compile_pipeline, run_pipeline
from .settings import KNOWN_SPELLS, UNLOCKED_LESSONS, SettingsStore
from .steps import ProcessRunner, SubprocessRunner, execute_shell

KNOWN_CLUE_TYPES = ("text", "image-path")
ALWAYS_UNLOCKED = ("showmehow", "intro")
EXTERNAL_EVENTS = "external_events"
BACKGROUND_SCHEMA = "org.gnome.desktop.background"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LessonSummary:
    """Lesson row returned by unlocked/known listings."""

    name: str
    desc: str
    entry: str


class LessonService:
    """Coordinates descriptors, event tracking and settings for lesson attempts."""

    def __init__(
        self,
        db_path: Path | str,
        descriptors: DescriptorStore | None = None,
        boundary: EventBoundary | None = None,
        runner: ProcessRunner | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize service; descriptors default to the first loadable lessons file."""
        self.descriptors = descriptors or DescriptorStore.load()
        self.settings = SettingsStore(db_path)
        self.tracker = EventTracker(boundary)
        self.runner = runner or SubprocessRunner()
        self.rng = rng

    def get_task_description(self, lesson: str, task: str) -> tuple[str, str]:
        """Return (prompt, input spec JSON); arms event tracking for event-driven tasks."""
        detail = self.descriptors.task(lesson, task)
        if detail.input.type == EXTERNAL_EVENTS:
            events = self.tracker.arm(lesson, task, detail.input.settings)
            self.tracker.boundary.announce_interest(events)
        return (detail.task, json.dumps(detail.input.as_dict()))

    def attempt_task(self, lesson: str, task: str, input_text: str) -> tuple[str, str]:
        """Run input through the task pipeline; return (responses JSON, next task id)."""
        detail = self.descriptors.task(lesson, task)
        pipeline = compile_pipeline(
            detail.mapper, lesson, task, tracker=self.tracker, runner=self.runner, rng=self.rng
        )
        result, auxiliaries = run_pipeline(pipeline, input_text)

        prior_unlocked = self.settings.get_strings(UNLOCKED_LESSONS)
        prior_known = self.settings.get_strings(KNOWN_SPELLS)
        outcome = resolve_effect(
            result,
            detail.effects,
            lesson=lesson,
            task=task,
            auxiliaries=auxiliaries,
            prior_unlocked=prior_unlocked,
            prior_known=prior_known,
            runner=self.runner,
        )
        if outcome.unlocked != prior_unlocked:
            self.settings.set_strings(UNLOCKED_LESSONS, outcome.unlocked)
        if outcome.known != prior_known:
            self.settings.set_strings(KNOWN_SPELLS, outcome.known)

        if outcome.move_to != task:
            self.tracker.disarm(lesson, task)
        return (json.dumps(outcome.responses), outcome.move_to)

    def notify_event(self, name: str) -> None:
        """Record an external event; satisfied tasks are signalled through the boundary."""
        self.tracker.notify(name)

    def get_unlocked_lessons(self, client: str) -> list[LessonSummary]:
        """Return unlocked lessons available to client; the intro lessons are always unlocked."""
        names = add_unique(self.settings.get_strings(UNLOCKED_LESSONS), ALWAYS_UNLOCKED)
        return self._summaries(names, client)

    def get_known_spells(self, client: str) -> list[LessonSummary]:
        """Return completed lessons available to client."""
        return self._summaries(self.settings.get_strings(KNOWN_SPELLS), client)

    def _summaries(self, names: list[str], client: str) -> list[LessonSummary]:
        found = [self.descriptors.lookup(name) for name in names]
        return [_summary(item) for item in found if item is not None and client in item.available_to]

    def register_clue(self, clue_type: str, content: str) -> None:
        """Remember a clue once; only known clue types are accepted."""
        if clue_type not in KNOWN_CLUE_TYPES:
            raise InvalidClueType(
                f"Tried to register clue of type {clue_type} but the service does not know how to handle "
                f"that type. Known clue types are {' '.join(KNOWN_CLUE_TYPES)}"
            )
        clues = self.settings.get_clues()
        if (content, clue_type) not in clues:
            self.settings.set_clues([*clues, (content, clue_type)])

    def get_clues(self) -> list[tuple[str, str]]:
        return self.settings.get_clues()

    def set_background(self, uri: str) -> None:
        """Point the desktop background at `uri` through gsettings."""
        execute_shell(f"gsettings set {BACKGROUND_SCHEMA} picture-uri {shlex.quote(uri)}", self.runner)
        logger.info("Background set to %s", uri)

    def get_warnings(self) -> list[str]:
        return list(self.descriptors.warnings)

    def reload_lessons(self) -> bool:
        """Reload descriptors from their source file."""
        return self.descriptors.reload()

    def close(self) -> None:
        """Close resources."""
        self.settings.close()


def _summary(descriptor: LessonDescriptor) -> LessonSummary:
    return LessonSummary(name=descriptor.name, desc=descriptor.desc, entry=descriptor.entry)

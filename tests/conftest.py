from __future__ import annotations

import sys
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from showmehow.content_loader import DescriptorStore, lesson_from_dict  # noqa: E402
from showmehow.service import LessonService  # noqa: E402
from showmehow.steps import CommandResult  # noqa: E402


class FakeRunner:
    """Process runner that records calls and returns canned output."""

    def __init__(self, stdout: str = "", stderr: str = "", status: int = 0) -> None:
        self.calls: list[tuple[list[str], dict[str, str]]] = []
        self.result = CommandResult(status=status, stdout=stdout, stderr=stderr)

    def run(self, argv: list[str], env: Mapping[str, str]) -> CommandResult:
        self.calls.append((argv, dict(env)))
        return self.result


class RecordingBoundary:
    def __init__(self) -> None:
        self.interest: list[list[str]] = []
        self.satisfied: list[tuple[str, str]] = []

    def announce_interest(self, events: list[str]) -> None:
        self.interest.append(events)

    def signal_satisfied(self, lesson: str, task: str) -> None:
        self.satisfied.append((lesson, task))


def make_store(*lessons: dict[str, Any]) -> DescriptorStore:
    return DescriptorStore([lesson_from_dict(item) for item in lessons])


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(stdout="alice")


@pytest.fixture
def boundary() -> RecordingBoundary:
    return RecordingBoundary()


@pytest.fixture
def service(runner: FakeRunner, boundary: RecordingBoundary) -> Iterator[LessonService]:
    store = DescriptorStore.load(ROOT / "tests" / "data" / "lessons.json")
    created = LessonService(":memory:", descriptors=store, boundary=boundary, runner=runner)
    yield created
    created.close()

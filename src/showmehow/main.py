"""CLI entrypoint for the lesson service."""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Callable
from pathlib import Path

from .content_loader import DescriptorStore
from .errors import ShowmehowError
from .service import LessonService

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
BACK_COMMANDS = {":back", ":b", "back"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
MENU_QUIT_COMMANDS = {"q"}
EVENT_PREFIX = ":event "
RELOAD_COMMAND = ":reload"
CLIENT = "console"
DEFAULT_DB = Path(".showmehow") / "settings.db"


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


class PrintBoundary:
    """Event boundary that tells the player what the service is waiting for."""

    def __init__(self, print_fn: PrintFn) -> None:
        self._print = print_fn

    def announce_interest(self, events: list[str]) -> None:
        if events:
            self._print(f"(waiting for: {', '.join(events)}; fire one with ':event NAME')")

    def signal_satisfied(self, lesson: str, task: str) -> None:
        self._print(f"(something happened in {lesson}/{task}; press enter to check)")


def _service(args: argparse.Namespace, print_fn: PrintFn) -> LessonService:
    """Create app service from parsed options."""
    descriptors = DescriptorStore.load(args.lessons_file)
    return LessonService(db_path=Path(args.db), descriptors=descriptors, boundary=PrintBoundary(print_fn))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="showmehow", description="Interactive shell lessons")
    parser.add_argument("--lessons-file", default=None, help="lessons JSON file to load instead of the bundled one")
    parser.add_argument("--db", default=str(DEFAULT_DB), help="settings database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("lessons", help="list unlocked and known lessons")
    play = commands.add_parser("play", help="play lessons interactively")
    play.add_argument("lesson", nargs="?")
    describe = commands.add_parser("describe", help="print a task description")
    describe.add_argument("lesson")
    describe.add_argument("task")
    attempt = commands.add_parser("attempt", help="attempt a task once")
    attempt.add_argument("lesson")
    attempt.add_argument("task")
    attempt.add_argument("input")
    return parser


def run(argv: list[str] | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    service = _service(args, print_fn)
    try:
        command = args.command or "play"
        if command == "lessons":
            _lessons_flow(service, print_fn)
            return 0
        if command == "describe":
            return _describe_once(service, args.lesson, args.task, print_fn)
        if command == "attempt":
            return _attempt_once(service, args.lesson, args.task, args.input, print_fn)
        try:
            return play_shell(service, getattr(args, "lesson", None), input_fn, print_fn)
        except QuitApp:
            return 0
    finally:
        service.close()


def _print_error(exc: ShowmehowError, print_fn: PrintFn) -> None:
    kind, message = exc.as_payload()
    print_fn(f"Error ({kind}): {message}")


def _print_responses(responses_json: str, print_fn: PrintFn) -> None:
    for item in json.loads(responses_json):
        value = item.get("value", "")
        if item.get("type") == "wrapped":
            print_fn(f"> {str(value).strip()}")
        else:
            print_fn(str(value))


def _lessons_flow(service: LessonService, print_fn: PrintFn) -> None:
    """Print unlocked lessons, marking completed ones."""
    known = {item.name for item in service.get_known_spells(CLIENT)}
    print_fn("\n=== Lessons ===")
    for item in service.get_unlocked_lessons(CLIENT):
        marker = "*" if item.name in known else " "
        print_fn(f"{marker} {item.name:<12} {item.desc}")
    for warning in service.get_warnings():
        print_fn(f"warning: {warning}")


def _describe_once(service: LessonService, lesson: str, task: str, print_fn: PrintFn) -> int:
    try:
        prompt, input_spec = service.get_task_description(lesson, task)
    except ShowmehowError as exc:
        _print_error(exc, print_fn)
        return 1
    print_fn(prompt)
    print_fn(input_spec)
    return 0


def _attempt_once(service: LessonService, lesson: str, task: str, text: str, print_fn: PrintFn) -> int:
    try:
        # Event tracking is armed when the task is described.
        service.get_task_description(lesson, task)
        responses, next_task = service.attempt_task(lesson, task, text)
    except ShowmehowError as exc:
        _print_error(exc, print_fn)
        return 1
    _print_responses(responses, print_fn)
    print_fn(f"next: {next_task or '<lesson complete>'}")
    return 0


def play_shell(service: LessonService, lesson: str | None, input_fn: InputFn, print_fn: PrintFn) -> int:
    """Run the menu-driven lesson shell."""
    while True:
        if lesson is None:
            lesson = _select_lesson(service, input_fn, print_fn)
            if lesson is None:
                return 0
        _lesson_flow(service, lesson, input_fn, print_fn)
        lesson = None


def _select_lesson(service: LessonService, input_fn: InputFn, print_fn: PrintFn) -> str | None:
    """Choose one of the unlocked lessons."""
    while True:
        lessons = service.get_unlocked_lessons(CLIENT)
        known = {item.name for item in service.get_known_spells(CLIENT)}
        print_fn("\n=== Lessons ===")
        for idx, item in enumerate(lessons, start=1):
            marker = " (done)" if item.name in known else ""
            print_fn(f"{idx}) {item.name}: {item.desc}{marker}")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()
        if choice in MENU_QUIT_COMMANDS:
            return None
        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(lessons):
                return lessons[index].name
        print_fn("Invalid choice.")


def _lesson_flow(service: LessonService, lesson: str, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Walk through one lesson until it completes or the player backs out."""
    descriptor = service.descriptors.lookup(lesson)
    if descriptor is None:
        print_fn(f"Unknown lesson: {lesson}")
        return
    task = descriptor.entry
    print_fn("")
    print_fn(f"=== {descriptor.name} ===")
    print_fn("Type :b to go back, :q to quit, ':event NAME' to fire an event.")
    while task:
        try:
            prompt, _ = service.get_task_description(lesson, task)
        except ShowmehowError as exc:
            _print_error(exc, print_fn)
            return
        print_fn(f"\n{prompt}")
        text = _read_attempt(service, input_fn, print_fn)
        if text is None:
            return
        try:
            responses, task = service.attempt_task(lesson, task, text)
        except ShowmehowError as exc:
            _print_error(exc, print_fn)
            return
        _print_responses(responses, print_fn)
    print_fn(f"Lesson '{lesson}' complete.")


def _read_attempt(service: LessonService, input_fn: InputFn, print_fn: PrintFn) -> str | None:
    """Read input, handling event and navigation commands; None means leave the lesson."""
    while True:
        text = input_fn("$ ")
        lowered = text.strip().lower()
        if lowered in FLOW_EXIT_COMMANDS:
            raise QuitApp
        if lowered in BACK_COMMANDS:
            return None
        if lowered.startswith(EVENT_PREFIX):
            service.notify_event(text.strip()[len(EVENT_PREFIX) :].strip())
            continue
        if lowered == RELOAD_COMMAND:
            reloaded = service.reload_lessons()
            print_fn("Lessons reloaded." if reloaded else "Nothing to reload.")
            continue
        return text


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()

"""Built-in pipeline steps and the process runner they execute shell code with."""

from __future__ import annotations

import logging
import os
import random
import re
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .errors import InvalidStepConfig, ProcessFailed

Auxiliary = dict[str, Any]
StepResult = tuple[str, list[Auxiliary]]
Step = Callable[[str], StepResult]

logger = logging.getLogger(__name__)

WAIT_MESSAGES = (
    "Wait for it",
    "Combubulating transistors",
    "Adjusting for combinatorial flux",
    "Hacking the matrix",
    "Exchanging electrical bits",
    "Refuelling source code",
    "Fetching arbitrary refs",
    "Resolving mathematical contradictions",
    "Fluxing liquid input",
)


class StepKind(str, Enum):
    """Every step type a mapper entry may name."""

    INPUT = "input"
    REGEX = "regex"
    SHELL = "shell"
    SHELL_CUSTOM = "shell_custom"
    WAIT_MESSAGE = "wait_message"
    WRAPPED_OUTPUT = "wrapped_output"
    CHECK_EXTERNAL_EVENTS = "check_external_events"


@dataclass(frozen=True)
class CommandResult:
    """Captured result of one process execution."""

    status: int
    stdout: str
    stderr: str


class ProcessRunner(Protocol):
    def run(self, argv: list[str], env: Mapping[str, str]) -> CommandResult: ...


class SubprocessRunner:
    """Run commands with `subprocess`, capturing output as UTF-8 text; undecodable bytes become U+FFFD."""

    def run(self, argv: list[str], env: Mapping[str, str]) -> CommandResult:
        completed = subprocess.run(
            argv, env=dict(env), capture_output=True, encoding="utf-8", errors="replace", check=False
        )
        return CommandResult(status=completed.returncode, stdout=completed.stdout, stderr=completed.stderr)


def response(content_type: str, value: object) -> Auxiliary:
    """Build an auxiliary that ends up in the reply list."""
    return {"type": "response", "content": {"type": content_type, "value": value}}


def pass_through(text: str, config: object = None) -> StepResult:
    return (text, [])


def regex_validator(text: str, pattern: object) -> StepResult:
    """Match `pattern` anywhere in the input, case-insensitively and per line."""
    if not isinstance(pattern, str):
        raise InvalidStepConfig(f"regex step needs a pattern string, got {pattern!r}")
    try:
        match = re.search(pattern, text, re.IGNORECASE | re.MULTILINE)
    except re.error as exc:
        raise InvalidStepConfig(f"regex step pattern {pattern!r} does not compile: {exc}") from exc
    if match is not None:
        return ("success", [])
    return ("failure", [])


def execute_shell(shellcode: str, runner: ProcessRunner, environment: Mapping[str, Any] | None = None) -> CommandResult:
    """Run shell code with bash, the process environment overlaid with `environment`.

    The trailing `exit 0` keeps a failing user command from looking like a
    runner failure; its stderr is still captured.
    """
    env = dict(os.environ)
    for key, value in (environment or {}).items():
        env[str(key)] = str(value)
    logger.debug("Executing shell code: %s", shellcode)
    try:
        return runner.run(["/bin/bash", "-c", f"{shellcode}; exit 0"], env)
    except (OSError, ValueError) as exc:
        raise ProcessFailed(f"Unable to execute shell code {shellcode!r}: {exc}") from exc


def _environment(config: object) -> Mapping[str, Any] | None:
    if config is None:
        return None
    if not isinstance(config, dict):
        raise InvalidStepConfig(f"shell step settings must be an object, got {config!r}")
    environment = config.get("environment")
    if environment is not None and not isinstance(environment, dict):
        raise InvalidStepConfig(f"shell step environment must be an object, got {environment!r}")
    return environment


def shell_output(text: str, config: object, *, runner: ProcessRunner) -> StepResult:
    """Execute the input as shell code and return stdout and stderr joined by a newline."""
    result = execute_shell(text, runner, _environment(config))
    return (f"{result.stdout}\n{result.stderr}", [])


def shell_custom_output(text: str, config: object, *, runner: ProcessRunner) -> StepResult:
    """Execute `config["command"]` instead of the input."""
    command = config.get("command") if isinstance(config, dict) else None
    if not isinstance(command, str):
        raise InvalidStepConfig(f"shell_custom: settings.command must be a string. settings is {config!r}")
    result = execute_shell(command, runner, _environment(config))
    return (f"{result.stdout}\n{result.stderr}", [])


def add_wait_message(text: str, config: object = None, *, rng: random.Random | None = None) -> StepResult:
    choice = (rng or random).choice(WAIT_MESSAGES)
    return (text, [response("scroll_wait", choice)])


def add_wrapped_output(text: str, config: object = None) -> StepResult:
    return (text, [response("wrapped", text)])

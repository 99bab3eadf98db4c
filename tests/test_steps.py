import random

from conftest import FakeRunner

from showmehow.errors import InvalidStepConfig, ProcessFailed
from showmehow.steps import (
    WAIT_MESSAGES,
    SubprocessRunner,
    add_wait_message,
    add_wrapped_output,
    execute_shell,
    pass_through,
    regex_validator,
    shell_custom_output,
    shell_output,
)


def test_regex_validator_is_case_insensitive() -> None:
    assert regex_validator("Hello", "^hello$") == ("success", [])


def test_regex_validator_failure() -> None:
    assert regex_validator("Hello\n", "^goodbye$") == ("failure", [])


def test_regex_validator_matches_any_line() -> None:
    assert regex_validator("first\nsecond\n", "^second$") == ("success", [])


def test_regex_validator_rejects_non_string_pattern() -> None:
    try:
        regex_validator("x", None)
        raise AssertionError("Expected InvalidStepConfig.")
    except InvalidStepConfig as exc:
        assert "pattern" in str(exc)


def test_pass_through_is_identity() -> None:
    assert pass_through("as is") == ("as is", [])


def test_shell_output_runs_input_with_bash_and_joins_streams() -> None:
    runner = FakeRunner(stdout="out", stderr="err")
    output, extras = shell_output("echo hi", {"environment": {"LESSON": "1"}}, runner=runner)

    assert output == "out\nerr"
    assert extras == []
    argv, env = runner.calls[0]
    assert argv == ["/bin/bash", "-c", "echo hi; exit 0"]
    assert env["LESSON"] == "1"
    assert "PATH" in env


def test_shell_output_accepts_null_config() -> None:
    runner = FakeRunner(stdout="x")
    assert shell_output("true", None, runner=runner) == ("x\n", [])


def test_shell_custom_runs_configured_command() -> None:
    runner = FakeRunner(stdout="custom")
    output, _ = shell_custom_output("ignored", {"command": "ls /"}, runner=runner)
    assert output == "custom\n"
    assert runner.calls[0][0][2] == "ls /; exit 0"


def test_shell_custom_requires_string_command() -> None:
    runner = FakeRunner()
    try:
        shell_custom_output("x", {"command": ["ls"]}, runner=runner)
        raise AssertionError("Expected InvalidStepConfig.")
    except InvalidStepConfig as exc:
        assert "settings.command must be a string" in str(exc)
    assert runner.calls == []


def test_wait_message_appends_scroll_wait() -> None:
    output, extras = add_wait_message("input", rng=random.Random(3))
    assert output == "input"
    assert len(extras) == 1
    assert extras[0]["type"] == "response"
    assert extras[0]["content"]["type"] == "scroll_wait"
    assert extras[0]["content"]["value"] in WAIT_MESSAGES


def test_wait_message_is_deterministic_with_seed() -> None:
    first = add_wait_message("x", rng=random.Random(42))
    second = add_wait_message("x", rng=random.Random(42))
    assert first == second


def test_wrapped_output_carries_input_verbatim() -> None:
    assert add_wrapped_output("a\nb") == (
        "a\nb",
        [{"type": "response", "content": {"type": "wrapped", "value": "a\nb"}}],
    )


def test_subprocess_runner_replaces_undecodable_output() -> None:
    result = execute_shell(r"printf '\xff'", SubprocessRunner())
    assert result.status == 0
    assert result.stdout == "\ufffd"


class _FailingRunner:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def run(self, argv, env):
        raise self.exc


def test_runner_failure_becomes_process_failed() -> None:
    for exc in (FileNotFoundError("/bin/bash"), ValueError("embedded null byte")):
        try:
            shell_output("ls", None, runner=_FailingRunner(exc))
            raise AssertionError("Expected ProcessFailed.")
        except ProcessFailed as failure:
            assert failure.as_payload()[0] == "process-failed"
            assert failure.__cause__ is exc

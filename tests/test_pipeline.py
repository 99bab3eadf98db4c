import random

from conftest import FakeRunner

from showmehow.errors import InvalidPipelineSpec, NoOutputSatisfied, UnknownStepType
from showmehow.events import EventTracker
from showmehow.pipeline import compile_pipeline, normalize_step_spec, run_pipeline


def test_empty_pipeline_returns_input_unchanged() -> None:
    assert run_pipeline([], "anything") == ("anything", [])


def test_bare_string_normalizes_to_null_value() -> None:
    assert normalize_step_spec("input") == {"type": "input", "value": None}


def test_input_then_regex() -> None:
    steps = compile_pipeline(["input", {"type": "regex", "value": "^yes$"}], "l", "t")
    assert run_pipeline(steps, "yes") == ("success", [])
    assert run_pipeline(steps, "no") == ("failure", [])


def test_auxiliaries_accumulate_in_order() -> None:
    runner = FakeRunner(stdout="me")
    steps = compile_pipeline(
        ["wait_message", {"type": "shell", "value": None}, "wrapped_output"],
        "l",
        "t",
        runner=runner,
        rng=random.Random(1),
    )
    output, extras = run_pipeline(steps, "whoami")

    assert output == "me\n"
    assert [extra["content"]["type"] for extra in extras] == ["scroll_wait", "wrapped"]
    assert extras[1]["content"]["value"] == "me\n"
    assert runner.calls[0][0][2] == "whoami; exit 0"


def test_same_seed_gives_same_run() -> None:
    specs = ["wait_message", "wait_message"]
    first = run_pipeline(compile_pipeline(specs, "l", "t", rng=random.Random(7)), "x")
    second = run_pipeline(compile_pipeline(specs, "l", "t", rng=random.Random(7)), "x")
    assert first == second


def test_unknown_step_type_carries_spec() -> None:
    try:
        compile_pipeline(["input", {"type": "teleport", "value": 1}], "l", "t")
        raise AssertionError("Expected UnknownStepType.")
    except UnknownStepType as exc:
        assert exc.spec == {"type": "teleport", "value": 1}
        assert isinstance(exc, InvalidPipelineSpec)


def test_spec_must_have_exactly_type_and_value() -> None:
    for spec in ({"type": "regex"}, {"type": "regex", "value": "x", "extra": 1}, {"value": "x", "kind": "regex"}):
        try:
            compile_pipeline([spec], "l", "t")
            raise AssertionError(f"Expected InvalidPipelineSpec for {spec}.")
        except InvalidPipelineSpec as exc:
            assert exc.spec == spec


def test_spec_must_be_string_or_object() -> None:
    try:
        compile_pipeline([42], "l", "t")
        raise AssertionError("Expected InvalidPipelineSpec.")
    except InvalidPipelineSpec as exc:
        assert "either a string or an object" in str(exc)
        assert not isinstance(exc, UnknownStepType)


def test_check_external_events_ignores_input() -> None:
    tracker = EventTracker()
    tracker.arm("l", "t", {"idle": {"events": [], "subsumes": []}, "done": {"events": ["e"], "subsumes": ["idle"]}})
    steps = compile_pipeline(["input", "check_external_events"], "l", "t", tracker=tracker)

    assert run_pipeline(steps, "ignored") == ("idle", [])
    tracker.notify("e")
    assert run_pipeline(steps, "ignored") == ("done", [])


def test_check_external_events_without_arming() -> None:
    steps = compile_pipeline(["check_external_events"], "l", "t", tracker=EventTracker())
    try:
        run_pipeline(steps, "x")
        raise AssertionError("Expected NoOutputSatisfied.")
    except NoOutputSatisfied:
        pass

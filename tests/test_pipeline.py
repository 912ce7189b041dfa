from __future__ import annotations

import pytest

from account_factory.errors import StepFailedError
from account_factory.pipeline import PipelineRunner, PipelineStep


def test_runner_executes_steps_in_order() -> None:
    runner = PipelineRunner()
    context: dict[str, object] = {}
    execution_log: list[str] = []

    def resolve(ctx: dict[str, object]) -> None:
        ctx["account_id"] = "111111111111"
        execution_log.append("resolve")

    def bootstrap(ctx: dict[str, object]) -> None:
        ctx["bootstrapped"] = ctx["account_id"]
        execution_log.append("bootstrap")

    steps = [
        PipelineStep(name="resolve", action=resolve),
        PipelineStep(name="bootstrap", action=bootstrap),
    ]

    result = runner.run(steps, context)

    assert result is context
    assert context["bootstrapped"] == "111111111111"
    assert execution_log == ["resolve", "bootstrap"]


def test_runner_skips_steps_whose_guard_is_false() -> None:
    runner = PipelineRunner()
    execution_log: list[str] = []

    steps = [
        PipelineStep(name="resolve", action=lambda ctx: ctx.update(account_id=None)),
        PipelineStep(
            name="bootstrap",
            action=lambda ctx: execution_log.append("bootstrap"),
            when=lambda ctx: bool(ctx.get("account_id")),
        ),
    ]

    runner.run(steps, {})

    assert execution_log == []


def test_runner_stops_at_first_failure() -> None:
    runner = PipelineRunner()
    execution_log: list[str] = []

    def failing(_: dict[str, object]) -> None:
        raise RuntimeError("boom")

    steps = [
        PipelineStep(name="first", action=lambda ctx: execution_log.append("first")),
        PipelineStep(name="second", action=failing),
        PipelineStep(name="third", action=lambda ctx: execution_log.append("third")),
    ]

    with pytest.raises(StepFailedError) as excinfo:
        runner.run(steps, {})

    assert excinfo.value.args[0] == "second"
    assert isinstance(excinfo.value.cause, RuntimeError)
    assert str(excinfo.value) == "Step 'second' failed: boom"
    assert execution_log == ["first"]

"""Shared fixtures for automation engine tests."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import pytest

from automation_engine.core.exceptions import StepExecutionError
from automation_engine.engine import (
    Edge,
    NodeSpec,
    RunContext,
    StepRegistry,
    VirtualClock,
    WorkflowDefinition,
    create_default_registry,
)
from automation_engine.nodes.base import BaseNode


class EchoNode(BaseNode):
    """Returns its resolved params unchanged."""

    def __init__(self) -> None:
        self.calls = 0

    @property
    def type(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo params"

    async def execute(self, params: Mapping[str, Any], context: RunContext):
        self.calls += 1
        return self.output(dict(params))


class FlakyNode(BaseNode):
    """Fails the first ``failTimes`` calls per ``key``; -1 fails forever."""

    def __init__(self) -> None:
        self.attempts: dict[str, int] = {}

    @property
    def type(self) -> str:
        return "flaky"

    @property
    def description(self) -> str:
        return "Fails on demand"

    async def execute(self, params: Mapping[str, Any], context: RunContext):
        key = params.get("key", "default")
        self.attempts[key] = self.attempts.get(key, 0) + 1
        fail_times = params.get("failTimes", -1)
        if fail_times < 0 or self.attempts[key] <= fail_times:
            raise StepExecutionError(
                f"{key} failed on attempt {self.attempts[key]}",
                retryable=params.get("retryable", True),
            )
        return self.output({"key": key, "attempts": self.attempts[key]})


class GaugeNode(BaseNode):
    """Tracks how many instances are executing at once."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    @property
    def type(self) -> str:
        return "gauge"

    @property
    def description(self) -> str:
        return "Measure concurrency"

    async def execute(self, params: Mapping[str, Any], context: RunContext):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.active -= 1
        return self.output({"peak": self.peak})


class BlockingNode(BaseNode):
    """Never finishes on its own."""

    def __init__(self) -> None:
        self.entered = 0

    @property
    def type(self) -> str:
        return "block"

    @property
    def description(self) -> str:
        return "Block forever"

    async def execute(self, params: Mapping[str, Any], context: RunContext):
        self.entered += 1
        await asyncio.sleep(3600)
        return self.output(None)


class MutatingNode(BaseNode):
    """Appends to the list it receives and returns it."""

    @property
    def type(self) -> str:
        return "mutate"

    @property
    def description(self) -> str:
        return "Mutate params"

    async def execute(self, params: Mapping[str, Any], context: RunContext):
        items = params["items"]
        items.append("added")
        return self.output(items)


@pytest.fixture
def echo() -> EchoNode:
    return EchoNode()


@pytest.fixture
def flaky() -> FlakyNode:
    return FlakyNode()


@pytest.fixture
def gauge() -> GaugeNode:
    return GaugeNode()


@pytest.fixture
def blocking() -> BlockingNode:
    return BlockingNode()


@pytest.fixture
def registry(echo, flaky, gauge, blocking) -> StepRegistry:
    """Built-in steps plus the test executors above."""
    registry = create_default_registry()
    registry.register("echo", echo)
    registry.register("flaky", flaky)
    registry.register("gauge", gauge)
    registry.register("block", blocking)
    registry.register("mutate", MutatingNode())
    return registry


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def make_workflow():
    """Build a WorkflowDefinition from NodeSpecs and (source, target[, branch]) tuples."""

    def _make(nodes: list[NodeSpec], edges: list[tuple] = (), workflow_id: str = "test") -> WorkflowDefinition:
        return WorkflowDefinition(
            id=workflow_id,
            nodes={node.id: node for node in nodes},
            edges=tuple(Edge(*edge) for edge in edges),
        )

    return _make


@pytest.fixture
def make_context(clock):
    """Build a RunContext for calling executors directly."""

    def _make(global_input: Mapping[str, Any] | None = None, **kwargs: Any) -> RunContext:
        return RunContext(
            workflow_id="wf",
            run_id="run_test",
            clock=clock,
            global_input=global_input or {},
            **kwargs,
        )

    return _make

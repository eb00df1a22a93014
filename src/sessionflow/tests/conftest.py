"""Shared fixtures for sessionflow tests."""

import itertools
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from sessionflow.host.local import LocalHost
from sessionflow.state.manager import AgentStateManager
from sessionflow.tools.protocol import Tool, ToolDefinition, ToolHandlerResponse


class EchoArgs(BaseModel):
    text: str


def make_echo_tool(name: str = "Echo", hooks=None) -> Tool:
    async def handler(args: EchoArgs, context) -> ToolHandlerResponse:
        return ToolHandlerResponse(content=f"echo: {args.text}", data={"text": args.text})

    return Tool(
        definition=ToolDefinition(name=name, description="Echo text back", schema=EchoArgs),
        handler=handler,
        hooks=hooks,
    )


def make_failing_tool(name: str = "Boom", error: Exception | None = None, hooks=None) -> Tool:
    async def handler(args: EchoArgs, context) -> ToolHandlerResponse:
        raise error or RuntimeError("handler exploded")

    return Tool(
        definition=ToolDefinition(name=name, description="Always fails", schema=EchoArgs),
        handler=handler,
        hooks=hooks,
    )


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def host():
    return LocalHost(workflow_id="wf-parent", task_queue="agents", sleep=AsyncMock())


@pytest.fixture
def state_manager():
    return AgentStateManager("tester")


@pytest.fixture
def append_tool_result():
    return AsyncMock()


@pytest.fixture(name="make_echo_tool")
def make_echo_tool_fixture():
    return make_echo_tool


@pytest.fixture(name="make_failing_tool")
def make_failing_tool_fixture():
    return make_failing_tool

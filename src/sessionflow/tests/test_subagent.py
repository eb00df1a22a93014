"""Tests for subagent delegation."""

import json
from typing import Optional

import pytest
from pydantic import BaseModel

from sessionflow.errors import SubagentNotConfiguredError, SubagentResultSchemaMismatchError
from sessionflow.host.local import LocalHost
from sessionflow.tools.hooks import PreToolUseResult, ToolHooks
from sessionflow.tools.router import SKIPPED_CONTENT, ToolRouter
from sessionflow.tools.subagent import (
    SUBAGENT_TOOL_NAME,
    SubagentConfig,
    SubagentDispatcher,
    build_subagent_args_model,
    create_subagent_tool,
)


class Findings(BaseModel):
    summary: str
    sources: Optional[list[str]] = None


def _researcher(**kwargs) -> SubagentConfig:
    return SubagentConfig(
        name="researcher",
        description="Digs through documentation",
        workflow="researcher_workflow",
        **kwargs,
    )


def _host_with_child(result) -> tuple[LocalHost, list]:
    received = []

    async def child(payload):
        received.append(payload)
        return result

    host = LocalHost(workflow_id="wf-parent", task_queue="agents", workflows={"researcher_workflow": child})
    return host, received


def _args(subagent: str = "researcher", prompt: str = "Find the retry policy"):
    model = build_subagent_args_model(["researcher", "writer"])
    return model.model_construct(subagent=subagent, description="look it up", prompt=prompt)


@pytest.mark.unit
class TestSubagentTool:
    """Tests for the delegation tool definition."""

    def test_description_lists_profiles(self, host) -> None:
        """Test the description lists every subagent."""
        tool = create_subagent_tool(
            [_researcher(), SubagentConfig(name="writer", description="Writes docs", workflow="w")],
            host,
        )
        assert tool.name == SUBAGENT_TOOL_NAME
        assert "- **researcher**: Digs through documentation" in tool.definition.description
        assert "- **writer**: Writes docs" in tool.definition.description

    def test_args_enum(self, host) -> None:
        """Test the subagent argument is limited to configured names."""
        tool = create_subagent_tool([_researcher()], host)
        schema = tool.definition.json_schema()
        assert schema["properties"]["subagent"]["enum"] == ["researcher"]
        assert set(schema["required"]) == {"subagent", "description", "prompt"}

    def test_requires_subagents(self, host) -> None:
        """Test an empty subagent list is rejected."""
        with pytest.raises(ValueError):
            create_subagent_tool([], host)

    def test_rejects_duplicate_names(self, host) -> None:
        """Test duplicate subagent names are rejected."""
        with pytest.raises(ValueError):
            create_subagent_tool([_researcher(), _researcher()], host)


@pytest.mark.unit
class TestSubagentDispatcher:
    """Tests for SubagentDispatcher."""

    async def test_child_id_and_input(self) -> None:
        """Test the child id, target, queue and input."""
        host, received = _host_with_child({"summary": "done"})
        dispatcher = SubagentDispatcher([_researcher(context={"repo": "core"})], host)

        await dispatcher(_args())

        started = host.children_started[0]
        assert started["id"].startswith("wf-parent-researcher-")
        assert started["target"] == "researcher_workflow"
        assert started["task_queue"] == "agents"
        assert received == [{"prompt": "Find the retry policy", "context": {"repo": "core"}}]

    async def test_task_queue_override(self) -> None:
        """Test a subagent task queue overrides the parent's."""
        host, _ = _host_with_child({})
        dispatcher = SubagentDispatcher([_researcher(task_queue="research")], host)
        await dispatcher(_args())
        assert host.children_started[0]["task_queue"] == "research"

    async def test_plain_result_becomes_data(self) -> None:
        """Test a plain child result is returned as data and JSON content."""
        host, _ = _host_with_child({"summary": "done"})
        response = await SubagentDispatcher([_researcher()], host)(_args())
        assert response.data == {"summary": "done"}
        assert json.loads(response.content) == {"summary": "done"}

    async def test_tool_response_is_content(self) -> None:
        """Test tool_response becomes the tool content."""
        host, _ = _host_with_child({"tool_response": "All done.", "data": {"summary": "s"}})
        response = await SubagentDispatcher([_researcher()], host)(_args())
        assert response.content == "All done."
        assert response.data == {"summary": "s"}

    async def test_result_schema_validated(self) -> None:
        """Test child data is validated against the result schema."""
        host, _ = _host_with_child({"data": {"summary": "ok", "sources": ["a.md"]}})
        response = await SubagentDispatcher([_researcher(result_schema=Findings)], host)(_args())
        assert response.data == {"summary": "ok", "sources": ["a.md"]}

    async def test_result_schema_mismatch(self) -> None:
        """Test a schema mismatch raises a non-recoverable error."""
        host, _ = _host_with_child({"data": {"sources": "not-a-list"}})
        dispatcher = SubagentDispatcher([_researcher(result_schema=Findings)], host)
        with pytest.raises(SubagentResultSchemaMismatchError) as exc_info:
            await dispatcher(_args())
        assert exc_info.value.subagent == "researcher"
        assert exc_info.value.recoverable is False

    async def test_unknown_subagent_starts_no_child(self) -> None:
        """Test an unknown subagent fails before any child starts."""
        host, _ = _host_with_child({})
        dispatcher = SubagentDispatcher([_researcher()], host)
        with pytest.raises(SubagentNotConfiguredError) as exc_info:
            await dispatcher(_args(subagent="writer"))
        assert exc_info.value.available == ["researcher"]
        assert host.children_started == []


@pytest.mark.unit
class TestSubagentThroughRouter:
    """Tests for delegation through the router."""

    async def test_router_registers_delegate_tool(self, append_tool_result) -> None:
        """Test the router registers and runs the delegation tool."""
        host, _ = _host_with_child({"tool_response": "summary text"})
        router = ToolRouter(
            tools=[],
            thread_id="thread-1",
            append_tool_result=append_tool_result,
            subagents=[_researcher()],
            host=host,
        )
        call = router.parse_tool_call(
            {
                "id": "c1",
                "name": SUBAGENT_TOOL_NAME,
                "args": {"subagent": "researcher", "description": "d", "prompt": "p"},
            }
        )
        await router.process_tool_calls([call])
        assert append_tool_result.await_args.args[0].content == "summary text"

    async def test_per_subagent_hooks(self, append_tool_result) -> None:
        """Test a subagent's own pre hook can skip the child."""
        host, received = _host_with_child({})
        blocked = _researcher(hooks=ToolHooks(on_pre_tool_use=lambda ctx: PreToolUseResult(skip=True)))
        router = ToolRouter(
            tools=[],
            thread_id="thread-1",
            append_tool_result=append_tool_result,
            subagents=[blocked],
            host=host,
        )
        call = router.parse_tool_call(
            {
                "id": "c1",
                "name": SUBAGENT_TOOL_NAME,
                "args": {"subagent": "researcher", "description": "d", "prompt": "p"},
            }
        )
        results = await router.process_tool_calls([call])

        assert results == []
        assert received == []
        assert append_tool_result.await_args.args[0].content == SKIPPED_CONTENT

    def test_unlisted_subagent_rejected_at_parse(self, append_tool_result) -> None:
        """Test an unknown subagent name fails argument validation."""
        from sessionflow.errors import InvalidArgumentsError

        host, _ = _host_with_child({})
        router = ToolRouter(
            tools=[],
            thread_id="thread-1",
            append_tool_result=append_tool_result,
            subagents=[_researcher()],
            host=host,
        )
        with pytest.raises(InvalidArgumentsError):
            router.parse_tool_call(
                {"name": SUBAGENT_TOOL_NAME, "args": {"subagent": "ghost", "description": "d", "prompt": "p"}}
            )

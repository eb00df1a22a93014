"""Tests for the Session turn loop."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from sessionflow.core.types import AgentResponse, AgentStatus, SessionExitReason
from sessionflow.session import Session, SessionConfig
from sessionflow.tools.hooks import Hooks, PreToolUseResult
from sessionflow.tools.protocol import RawToolCall


class FakeThreadOps:
    """In-memory stand-in for the thread activities."""

    def __init__(self) -> None:
        self.initialized = []
        self.human = []
        self.tool_results = []

    async def initialize_thread(self, thread_id):
        self.initialized.append(thread_id)

    async def append_human_message(self, thread_id, content):
        self.human.append(content)

    async def append_tool_result(self, config):
        self.tool_results.append(config)

    async def parse_tool_calls(self, message):
        return [RawToolCall.from_value(call) for call in message.get("tool_calls", [])]


def _tool_turn(*calls) -> AgentResponse:
    return AgentResponse(
        message={"role": "assistant", "content": None, "tool_calls": list(calls)},
        stop_reason="tool_use",
    )


def _final(text: str = "done") -> AgentResponse:
    return AgentResponse(message={"role": "assistant", "content": text}, stop_reason="end_turn")


def _echo_call(call_id: str, text: str = "hi", name: str = "Echo") -> dict:
    return {"id": call_id, "name": name, "args": {"text": text}}


@pytest.fixture
def thread_ops():
    return FakeThreadOps()


@pytest.fixture
def session_end():
    return []


@pytest.fixture
def make_session(host, thread_ops, session_end, make_echo_tool):
    def factory(responses, tools=None, hooks=None, max_turns=10, **kwargs):
        run_agent = AsyncMock(side_effect=list(responses))
        if hooks is None:
            hooks = Hooks(on_session_end=lambda ctx: session_end.append(ctx))
        session = Session(
            SessionConfig(thread_id="thread-1", agent_name="tester", max_turns=max_turns),
            run_agent=run_agent,
            thread_ops=thread_ops,
            host=host,
            tools=[make_echo_tool()] if tools is None else tools,
            hooks=hooks,
            **kwargs,
        )
        return session, run_agent

    return factory


@pytest.mark.unit
class TestSessionConfig:
    """Tests for SessionConfig and router setup."""

    def test_rejects_zero_turns(self) -> None:
        """Test a zero turn budget is rejected."""
        with pytest.raises(ValueError):
            SessionConfig(thread_id="t", agent_name="a", max_turns=0)

    def test_router_follows_parallel_tools(self, make_session) -> None:
        """The router runs sequentially when the config turns concurrency off."""
        session, _ = make_session([])
        assert session.router.parallel is True

        sequential = Session(
            SessionConfig(thread_id="t", agent_name="a", parallel_tools=False),
            run_agent=AsyncMock(),
            thread_ops=FakeThreadOps(),
            host=session._host,
        )
        assert sequential.router.parallel is False

    def test_explicit_parallel_overrides_config(self, host) -> None:
        """An explicit parallel argument wins over the config."""
        session = Session(
            SessionConfig(thread_id="t", agent_name="a", parallel_tools=False),
            run_agent=AsyncMock(),
            thread_ops=FakeThreadOps(),
            host=host,
            parallel=True,
        )
        assert session.router.parallel is True


@pytest.mark.unit
class TestSessionRun:
    """Tests for the session turn loop."""

    async def test_end_turn_completes_in_one_turn(
        self, make_session, state_manager, thread_ops, session_end
    ) -> None:
        """Test an end_turn answer completes the session."""
        session, run_agent = make_session([_final("answer")])

        message = await session.run("What is up?", state_manager)

        assert message["content"] == "answer"
        assert state_manager.status == AgentStatus.COMPLETED
        assert state_manager.turns == 1
        assert thread_ops.initialized == ["thread-1"]
        assert thread_ops.human == ["What is up?"]
        assert run_agent.await_count == 1
        assert session_end[0].exit_reason == SessionExitReason.COMPLETED
        assert session_end[0].turns == 1

    async def test_run_agent_receives_tool_snapshot(self, make_session, state_manager) -> None:
        """Test the model sees the registered tools."""
        session, run_agent = make_session([_final()])
        await session.run("go", state_manager)

        config = run_agent.await_args.args[0]
        assert config.thread_id == "thread-1"
        assert config.agent_name == "tester"
        assert [t["name"] for t in config.tools] == ["Echo"]
        assert state_manager.get_tools()[0]["name"] == "Echo"

    async def test_dict_response_accepted(self, make_session, state_manager) -> None:
        """Test a dict response from the model is accepted."""
        session, _ = make_session([_final("dict").to_dict()])
        message = await session.run("go", state_manager)
        assert message["content"] == "dict"

    async def test_no_tools_completes_regardless_of_stop_reason(
        self, make_session, state_manager
    ) -> None:
        """Test a session without tools completes after one turn."""
        session, _ = make_session([_tool_turn(_echo_call("c1"))], tools=[])
        await session.run("go", state_manager)
        assert state_manager.status == AgentStatus.COMPLETED

    async def test_tool_turn_then_final(self, make_session, state_manager, thread_ops) -> None:
        """Test a tool turn is followed by a final answer."""
        session, run_agent = make_session([_tool_turn(_echo_call("c1", "x")), _final()])

        await session.run("go", state_manager)

        assert run_agent.await_count == 2
        assert state_manager.turns == 2
        assert [r.content for r in thread_ops.tool_results] == ["echo: x"]

    async def test_context_message_builder(self, make_session, state_manager, thread_ops) -> None:
        """Test the context builder shapes the first human message."""
        async def build(prompt):
            return [{"type": "text", "text": f"ctx\n{prompt}"}]

        session, _ = make_session([_final()], build_context_message=build)
        await session.run("go", state_manager)
        assert thread_ops.human == [[{"type": "text", "text": "ctx\ngo"}]]

    async def test_max_turns(self, make_session, state_manager, session_end) -> None:
        """Test the loop stops at the turn budget with the state running."""
        turns = [_tool_turn(_echo_call(f"c{i}")) for i in range(3)]
        session, run_agent = make_session(turns, max_turns=3)

        result = await session.run("go", state_manager)

        assert result is None
        assert run_agent.await_count == 3
        assert state_manager.turns == 3
        assert state_manager.status == AgentStatus.RUNNING
        assert session_end[0].exit_reason == SessionExitReason.MAX_TURNS

    async def test_invalid_calls_get_inline_errors(
        self, make_session, state_manager, thread_ops
    ) -> None:
        """Test rejected calls get error results next to valid ones."""
        session, _ = make_session(
            [
                _tool_turn(
                    _echo_call("c1", "ok"),
                    {"id": "c2", "name": "Missing", "args": {}},
                    {"id": "c3", "name": "Echo", "args": {"text": 5}},
                ),
                _final(),
            ]
        )

        await session.run("go", state_manager)

        by_id = {r.tool_call_id: r.content for r in thread_ops.tool_results}
        assert by_id["c1"] == "echo: ok"
        assert by_id["c2"] == {"error": "Tool Missing not found"}
        assert "Invalid arguments for tool Echo" in by_id["c3"]["error"]
        assert state_manager.status == AgentStatus.COMPLETED

    async def test_invalid_call_without_id_gets_generated_id(
        self, make_session, state_manager, thread_ops
    ) -> None:
        """Test a rejected call without id still gets a result id."""
        session, _ = make_session([_tool_turn({"name": "Missing", "args": {}}), _final()])
        await session.run("go", state_manager)
        assert thread_ops.tool_results[0].tool_call_id

    async def test_handler_failure_marks_failed(
        self, make_session, make_failing_tool, state_manager, session_end
    ) -> None:
        """Test a handler failure fails the state and re-raises."""
        session, _ = make_session(
            [_tool_turn(_echo_call("c1", name="Boom"))], tools=[make_failing_tool()]
        )

        with pytest.raises(RuntimeError, match="handler exploded"):
            await session.run("go", state_manager)

        assert state_manager.status == AgentStatus.FAILED
        assert len(session_end) == 1
        assert session_end[0].exit_reason == SessionExitReason.FAILED
        assert session_end[0].turns == 1

    async def test_model_failure_marks_failed(self, make_session, state_manager, session_end) -> None:
        """Test a model failure fails the state and re-raises."""
        session, _ = make_session([ConnectionError("provider down")])
        with pytest.raises(ConnectionError):
            await session.run("go", state_manager)
        assert state_manager.status == AgentStatus.FAILED
        assert session_end[0].exit_reason == SessionExitReason.FAILED

    async def test_hook_moves_to_waiting_for_input(self, make_session, state_manager, thread_ops) -> None:
        """Test a hook can pause the session for input."""
        ends = []

        def ask_user(ctx):
            state_manager.wait_for_input()
            return PreToolUseResult(skip=True)

        hooks = Hooks(on_pre_tool_use=ask_user, on_session_end=lambda ctx: ends.append(ctx))
        session, run_agent = make_session([_tool_turn(_echo_call("c1")), _final()], hooks=hooks)

        result = await session.run("go", state_manager)

        assert result is None
        assert run_agent.await_count == 1
        assert state_manager.status == AgentStatus.WAITING_FOR_INPUT
        assert thread_ops.tool_results[0].content["skipped"] is True
        assert ends[0].exit_reason == SessionExitReason.WAITING_FOR_INPUT

    async def test_cancel_during_tools(self, make_session, state_manager) -> None:
        """Test a cancel from a post hook stops the loop."""
        ends = []

        def cancel(ctx):
            state_manager.cancel()

        hooks = Hooks(on_post_tool_use=cancel, on_session_end=lambda ctx: ends.append(ctx))
        session, run_agent = make_session([_tool_turn(_echo_call("c1")), _final()], hooks=hooks)

        await session.run("go", state_manager)

        assert run_agent.await_count == 1
        assert state_manager.status == AgentStatus.CANCELLED
        assert ends[0].exit_reason == SessionExitReason.CANCELLED

    async def test_cancel_during_model_call(self, make_session, state_manager, session_end) -> None:
        """A cancel that lands while the model runs wins over its end_turn."""
        session, run_agent = make_session([])

        async def cancel_then_finish(config):
            state_manager.cancel()
            return _final("too late")

        run_agent.side_effect = cancel_then_finish

        result = await session.run("go", state_manager)

        assert result is None
        assert run_agent.await_count == 1
        assert state_manager.status == AgentStatus.CANCELLED
        assert session_end[0].exit_reason == SessionExitReason.CANCELLED

    async def test_fail_during_model_call(
        self, make_session, state_manager, session_end, thread_ops
    ) -> None:
        """A state failed during the model call ends the session as failed."""
        session, run_agent = make_session([])

        async def fail_then_call_tool(config):
            state_manager.fail()
            return _tool_turn(_echo_call("c1"))

        run_agent.side_effect = fail_then_call_tool

        result = await session.run("go", state_manager)

        assert result is None
        assert state_manager.status == AgentStatus.FAILED
        assert thread_ops.tool_results == []
        assert session_end[0].exit_reason == SessionExitReason.FAILED

    async def test_task_cancellation(self, make_session, state_manager, session_end) -> None:
        """Test task cancellation cancels the state and re-raises."""
        session, _ = make_session([asyncio.CancelledError()])
        with pytest.raises(asyncio.CancelledError):
            await session.run("go", state_manager)
        assert state_manager.status == AgentStatus.CANCELLED
        assert session_end[0].exit_reason == SessionExitReason.CANCELLED

    async def test_session_start_hook(self, make_session, state_manager) -> None:
        """Test the start hook receives the agent and thread."""
        starts = []
        session, _ = make_session(
            [_final()], hooks=Hooks(on_session_start=lambda ctx: starts.append(ctx))
        )
        await session.run("go", state_manager)
        assert starts[0].agent_name == "tester"
        assert starts[0].thread_id == "thread-1"

    async def test_handler_context_forwarded(self, make_session, state_manager) -> None:
        """Test the handler context reaches tool handlers."""
        from pydantic import BaseModel

        from sessionflow.tools.protocol import ToolHandlerResponse, define_tool

        class Args(BaseModel):
            text: str

        seen = []

        def handler(args, ctx):
            seen.append(ctx)
            return ToolHandlerResponse(content="ok")

        session, _ = make_session(
            [_tool_turn(_echo_call("c1")), _final()],
            tools=[define_tool("Echo", "echo", Args, handler)],
            handler_context={"tenant": "acme"},
        )
        await session.run("go", state_manager)
        assert seen == [{"tenant": "acme"}]

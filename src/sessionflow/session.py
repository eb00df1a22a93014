"""Session turn loop.

A session runs one agent from a prompt to a terminal or waiting status:

    invoke model -> parse tool calls -> route tool calls -> repeat

The loop stops when the model signals a final answer (``end_turn``), when
no tools are registered, when a hook moves the state to
``WAITING_FOR_INPUT``, when the state is cancelled, or when the turn budget
runs out. The session-end hook fires exactly once on every exit path,
including failures.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from sessionflow.core.types import (
    AgentResponse,
    AgentStatus,
    RunAgentConfig,
    SessionExitReason,
    ToolResultConfig,
)
from sessionflow.errors import InvalidArgumentsError, UnknownToolError
from sessionflow.host.protocol import DurableExecutionHost
from sessionflow.llm.invoker import RunAgent
from sessionflow.state.manager import AgentStateManager
from sessionflow.thread.store import ThreadStore
from sessionflow.tools.hooks import NO_HOOKS, Hooks, SessionEndContext, SessionStartContext
from sessionflow.tools.protocol import ParsedToolCall, RawToolCall, Tool
from sessionflow.tools.router import ToolRouter
from sessionflow.tools.subagent import SubagentConfig

if TYPE_CHECKING:
    from sessionflow.config import SessionFlowSettings

END_TURN = "end_turn"

_EXIT_REASONS = {
    AgentStatus.WAITING_FOR_INPUT: SessionExitReason.WAITING_FOR_INPUT,
    AgentStatus.COMPLETED: SessionExitReason.COMPLETED,
    AgentStatus.FAILED: SessionExitReason.FAILED,
    AgentStatus.CANCELLED: SessionExitReason.CANCELLED,
}


@dataclass(kw_only=True)
class SessionConfig:
    """Static configuration of a session.

    Attributes:
        thread_id: Thread holding the conversation
        agent_name: Name of the agent (also used for state handler names)
        max_turns: Turn budget for one run
        parallel_tools: Run the tool calls of one turn concurrently
        metadata: Forwarded to the model invoker and lifecycle hooks
    """

    thread_id: str
    agent_name: str
    max_turns: int = 50
    parallel_tools: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_turns < 1:
            raise ValueError("max_turns must be at least 1")

    @classmethod
    def from_settings(
        cls,
        settings: "SessionFlowSettings",
        *,
        thread_id: str,
        agent_name: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "SessionConfig":
        return cls(
            thread_id=thread_id,
            agent_name=agent_name,
            max_turns=settings.session_max_turns,
            parallel_tools=settings.session_parallel_tools,
            metadata=metadata or {},
        )


class Session:
    """Turn-based agent loop.

    Example:
        host = TemporalHost()
        state = AgentStateManager("researcher")
        expose_state_handlers(host, state)
        session = Session(
            SessionConfig(thread_id=thread_id, agent_name="researcher"),
            run_agent=ActivityModelInvoker(host),
            thread_ops=ActivityThreadOps(host),
            host=host,
            tools=[*create_task_tools(state, host.new_id), read_tool],
        )
        message = await session.run("Summarize the open issues", state)
    """

    def __init__(
        self,
        config: SessionConfig,
        run_agent: RunAgent,
        thread_ops: ThreadStore,
        host: DurableExecutionHost,
        tools: Optional[Sequence[Tool]] = None,
        subagents: Optional[Sequence[SubagentConfig]] = None,
        hooks: Optional[Hooks] = None,
        parallel: Optional[bool] = None,
        build_context_message: Optional[Callable[[str], Any]] = None,
        handler_context: Any = None,
    ) -> None:
        self.config = config
        self._run_agent = run_agent
        self._thread_ops = thread_ops
        self._host = host
        self._hooks = hooks or NO_HOOKS
        self._build_context_message = build_context_message
        self._handler_context = handler_context
        self.router = ToolRouter(
            tools=tools or [],
            thread_id=config.thread_id,
            append_tool_result=thread_ops.append_tool_result,
            hooks=self._hooks,
            subagents=subagents,
            parallel=config.parallel_tools if parallel is None else parallel,
            id_factory=host.new_id,
            host=host,
        )

    async def _context_message(self, prompt: str) -> Any:
        if self._build_context_message is None:
            return prompt
        content = self._build_context_message(prompt)
        if inspect.isawaitable(content):
            content = await content
        return content

    async def _parse_calls(self, raw_calls: Sequence[RawToolCall]) -> List[ParsedToolCall]:
        """Validate raw calls; invalid ones get an inline error result."""
        parsed: List[ParsedToolCall] = []
        for raw in raw_calls:
            raw = RawToolCall.from_value(raw)
            try:
                parsed.append(self.router.parse_tool_call(raw))
            except (UnknownToolError, InvalidArgumentsError) as e:
                self._host.logger.warning(f"[Session] Rejected tool call {raw.name}: {e}")
                await self._thread_ops.append_tool_result(
                    ToolResultConfig(
                        thread_id=self.config.thread_id,
                        tool_call_id=raw.id or self._host.new_id(),
                        tool_name=raw.name,
                        content={"error": str(e)},
                    )
                )
        return parsed

    async def run(
        self, prompt: str, state_manager: AgentStateManager
    ) -> Optional[Dict[str, Any]]:
        """Run the loop until completion, waiting, cancellation or the turn budget.

        Returns:
            The final model message on completion, otherwise None

        Raises:
            Exception: Any unrecovered error, after the state is marked FAILED
                and the session-end hook has fired
        """
        config = self.config
        logger = self._host.logger

        await self._hooks.session_start(
            SessionStartContext(
                thread_id=config.thread_id,
                agent_name=config.agent_name,
                metadata=config.metadata,
            )
        )

        exit_reason = SessionExitReason.COMPLETED
        try:
            definitions = self.router.get_tool_definitions()
            state_manager.set_tools(definitions)
            tool_snapshot = [d.to_serializable().to_dict() for d in definitions]

            await self._thread_ops.initialize_thread(config.thread_id)
            await self._thread_ops.append_human_message(
                config.thread_id, await self._context_message(prompt)
            )

            while (
                state_manager.is_running()
                and not state_manager.is_terminal()
                and state_manager.turns < config.max_turns
            ):
                state_manager.increment_turns()
                turn = state_manager.turns

                response = AgentResponse.from_value(
                    await self._run_agent(
                        RunAgentConfig(
                            thread_id=config.thread_id,
                            agent_name=config.agent_name,
                            metadata=config.metadata,
                            tools=tool_snapshot,
                        )
                    )
                )

                if not state_manager.is_running():
                    exit_reason = _EXIT_REASONS[state_manager.status]
                    logger.info(
                        f"[Session] {config.agent_name} left the loop on turn {turn}: "
                        f"state is {state_manager.status.value}"
                    )
                    break

                if response.stop_reason == END_TURN or not self.router.get_tool_names():
                    state_manager.complete()
                    exit_reason = SessionExitReason.COMPLETED
                    logger.info(f"[Session] {config.agent_name} completed on turn {turn}")
                    return response.message

                raw_calls = await self._thread_ops.parse_tool_calls(response.message)
                parsed = await self._parse_calls(raw_calls)
                await self.router.process_tool_calls(
                    parsed, turn=turn, handler_context=self._handler_context
                )

                if not state_manager.is_running():
                    exit_reason = _EXIT_REASONS[state_manager.status]
                    break

            if not state_manager.is_running():
                exit_reason = _EXIT_REASONS[state_manager.status]
            elif state_manager.turns >= config.max_turns:
                exit_reason = SessionExitReason.MAX_TURNS
                logger.warning(
                    f"[Session] {config.agent_name} reached max turns ({config.max_turns})"
                )
        except asyncio.CancelledError:
            exit_reason = SessionExitReason.CANCELLED
            state_manager.cancel()
            raise
        except Exception as e:
            exit_reason = SessionExitReason.FAILED
            state_manager.fail()
            logger.error(f"[Session] {config.agent_name} failed: {e}")
            raise
        finally:
            await self._hooks.session_end(
                SessionEndContext(
                    thread_id=config.thread_id,
                    agent_name=config.agent_name,
                    exit_reason=exit_reason,
                    turns=state_manager.turns,
                    metadata=config.metadata,
                )
            )

        return None


__all__ = ["END_TURN", "Session", "SessionConfig"]

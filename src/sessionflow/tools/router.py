"""Tool Router.

Holds the registered tools, turns raw model tool calls into validated
``ParsedToolCall`` objects, and executes them through the hook pipeline:

1. Global pre-tool-use hook (may skip or replace arguments)
2. Per-tool pre-tool-use hook (same contract, on top of step 1)
3. Handler
4. On handler failure: per-tool failure hook, then global failure hook
5. Append the result to the thread (exactly once per non-skipped call)
6. Per-tool post-tool-use hook, then global post-tool-use hook

Calls run concurrently (parallel mode) or strictly in order (sequential mode).
"""

import asyncio
import inspect
import json
import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from sessionflow.core.types import ToolResultConfig
from sessionflow.errors import (
    InvalidArgumentsError,
    ToolExecutionError,
    UnknownToolError,
    is_recoverable,
)
from sessionflow.host.protocol import DurableExecutionHost
from sessionflow.tools.hooks import (
    NO_HOOKS,
    Hooks,
    PostToolUseContext,
    PostToolUseFailureContext,
    PostToolUseFailureResult,
    PreToolUseContext,
    ToolHooks,
)
from sessionflow.tools.protocol import (
    ParsedToolCall,
    RawToolCall,
    Tool,
    ToolCallResult,
    ToolDefinition,
    ToolHandler,
    ToolHandlerResponse,
)
from sessionflow.tools.subagent import SubagentConfig, create_subagent_tool

logger = logging.getLogger(__name__)

SKIPPED_CONTENT: Dict[str, Any] = {"skipped": True, "reason": "Skipped by PreToolUse hook"}

AppendToolResult = Callable[[ToolResultConfig], Awaitable[Any]]


async def _call_handler(handler: Callable[..., Any], args: Any, context: Any) -> Any:
    result = handler(args, context)
    if inspect.isawaitable(result):
        result = await result
    return result


def _as_response(value: Any) -> ToolHandlerResponse:
    if isinstance(value, ToolHandlerResponse):
        return value
    if isinstance(value, dict) and "content" in value:
        return ToolHandlerResponse(content=value["content"], data=value.get("data"))
    raise TypeError(f"Tool handler must return ToolHandlerResponse, got {type(value).__name__}")


class ToolRouter:
    """Registry and executor for tool calls of one session.

    Example:
        router = ToolRouter(
            tools=[read_tool, bash_tool],
            thread_id=thread_id,
            append_tool_result=thread_ops.append_tool_result,
            hooks=Hooks(on_post_tool_use=audit),
        )
        parsed = [router.parse_tool_call(raw) for raw in raw_calls]
        results = await router.process_tool_calls(parsed, turn=3)
    """

    def __init__(
        self,
        tools: Union[Iterable[Tool], Mapping[str, Tool]],
        thread_id: str,
        append_tool_result: AppendToolResult,
        hooks: Optional[Hooks] = None,
        subagents: Optional[Sequence[SubagentConfig]] = None,
        parallel: bool = True,
        id_factory: Optional[Callable[[], str]] = None,
        host: Optional[DurableExecutionHost] = None,
    ) -> None:
        """Initialize the router.

        Args:
            tools: Tools to register (iterable, or mapping whose values are tools)
            thread_id: Thread that tool results are appended to
            append_tool_result: Coroutine appending one tool result
            hooks: Global hooks
            subagents: Subagent profiles; when given the delegate tool is added
            parallel: Run a batch concurrently instead of in order
            id_factory: Generates ids for calls that arrive without one
            host: Durable host, required when subagents are configured

        Raises:
            ValueError: On duplicate tool names, or subagents without a host
        """
        self.thread_id = thread_id
        self.parallel = parallel
        self._append_tool_result = append_tool_result
        self._hooks = hooks or NO_HOOKS
        self._host = host
        if id_factory is not None:
            self._id_factory = id_factory
        elif host is not None:
            self._id_factory = host.new_id
        else:
            self._id_factory = lambda: str(uuid.uuid4())
        self._now: Callable[[], datetime] = (
            host.now if host is not None else (lambda: datetime.now(timezone.utc))
        )

        self._tools: Dict[str, Tool] = {}
        for tool in tools.values() if isinstance(tools, Mapping) else tools:
            self._register(tool)

        if subagents:
            if host is None:
                raise ValueError("A host is required to dispatch subagents")
            self._register(create_subagent_tool(subagents, host))

        self._file_tree_embedded = False

    def _register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tool_names(self) -> List[str]:
        return list(self._tools)

    def get_tool(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def get_tool_definitions(self) -> List[ToolDefinition]:
        """Handler-free definitions of every registered tool, delegate included."""
        return [tool.definition for tool in self._tools.values()]

    def embed_file_tree(self, tree_text: str, tool_name: str = "Bash") -> None:
        """Append a rendered file tree to one tool's description.

        Raises:
            UnknownToolError: If the tool is not registered
            RuntimeError: If a file tree was already embedded by this router
        """
        if self._file_tree_embedded:
            raise RuntimeError("File tree has already been embedded for this session")
        tool = self._tools.get(tool_name)
        if tool is None:
            raise UnknownToolError(tool_name, self.get_tool_names())
        definition = tool.definition.with_description(
            f"{tool.definition.description}\n\n{tree_text}"
        )
        self._tools[tool_name] = replace(tool, definition=definition)
        self._file_tree_embedded = True

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_tool_call(self, raw: Union[RawToolCall, Dict[str, Any]]) -> ParsedToolCall:
        """Validate a raw tool call.

        Raises:
            UnknownToolError: If no tool has that name
            InvalidArgumentsError: If the arguments fail the tool's schema
        """
        raw = RawToolCall.from_value(raw)
        tool = self._tools.get(raw.name)
        if tool is None:
            raise UnknownToolError(raw.name, self.get_tool_names())
        try:
            args = tool.definition.validate(raw.args)
        except ValidationError as e:
            raise InvalidArgumentsError(raw.name, e.errors(include_url=False), cause=e) from e
        return ParsedToolCall(id=raw.id or self._id_factory(), name=raw.name, args=args)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def process_tool_calls(
        self,
        calls: Sequence[ParsedToolCall],
        turn: int = 0,
        handler_context: Any = None,
    ) -> List[ToolCallResult]:
        """Execute a batch of parsed tool calls.

        Skipped calls are left out of the returned list. An unrecovered
        handler failure is re-raised: in sequential mode the rest of the
        batch does not run; in parallel mode every call settles first and
        the first failure in call order is raised.
        """
        if not calls:
            return []

        if self.parallel:
            settled = await asyncio.gather(
                *(self._process_one(call, turn, handler_context) for call in calls),
                return_exceptions=True,
            )
            for outcome in settled:
                if isinstance(outcome, BaseException):
                    raise outcome
            return [r for r in settled if r is not None]

        results: List[ToolCallResult] = []
        for call in calls:
            result = await self._process_one(call, turn, handler_context)
            if result is not None:
                results.append(result)
        return results

    async def _append(self, call: ParsedToolCall, content: Any) -> None:
        await self._append_tool_result(
            ToolResultConfig(
                thread_id=self.thread_id,
                tool_call_id=call.id,
                tool_name=call.name,
                content=content,
            )
        )

    def _apply_modified_args(
        self, tool: Tool, call: ParsedToolCall, modified: Union[BaseModel, Dict[str, Any]]
    ) -> ParsedToolCall:
        return replace(call, args=tool.definition.validate(modified))

    async def _process_one(
        self,
        call: ParsedToolCall,
        turn: int,
        handler_context: Any,
    ) -> Optional[ToolCallResult]:
        tool = self._tools.get(call.name)
        if tool is None:
            raise UnknownToolError(call.name, self.get_tool_names())

        started = self._now()

        decision = await self._hooks.pre_tool_use(
            PreToolUseContext(tool_call=call, thread_id=self.thread_id, turn=turn)
        )
        if decision is not None and decision.skip:
            return await self._skip(call, "global")
        if decision is not None and decision.modified_args is not None:
            call = self._apply_modified_args(tool, call, decision.modified_args)

        tool_hooks: Optional[ToolHooks] = tool.resolve_hooks(call.args)
        if tool_hooks is not None:
            decision = await tool_hooks.pre_tool_use(
                PreToolUseContext(tool_call=call, thread_id=self.thread_id, turn=turn)
            )
            if decision is not None and decision.skip:
                return await self._skip(call, "tool")
            if decision is not None and decision.modified_args is not None:
                call = self._apply_modified_args(tool, call, decision.modified_args)

        recovered = False
        try:
            response = _as_response(await _call_handler(tool.handler, call.args, handler_context))
            content, data = response.content, response.data
        except Exception as e:
            if not is_recoverable(e):
                logger.error(f"[ToolRouter] {call.name} ({call.id}) failed unrecoverably: {e}")
                raise
            outcome = await self._run_failure_hooks(call, e, tool_hooks, turn)
            if outcome is None:
                logger.error(f"[ToolRouter] {call.name} ({call.id}) failed: {e}")
                raise
            recovered = True
            if outcome.fallback_content is not None:
                content = outcome.fallback_content
                data = {"error": str(e), "recovered": True}
            else:
                content = json.dumps({"error": str(e), "suppressed": True})
                data = {"error": str(e), "suppressed": True}
            logger.warning(f"[ToolRouter] {call.name} ({call.id}) failure recovered by hook: {e}")

        await self._append(call, content)
        result = ToolCallResult(tool_call_id=call.id, name=call.name, data=data)

        duration_ms = (self._now() - started).total_seconds() * 1000
        post = PostToolUseContext(
            tool_call=call,
            result=result,
            content=content,
            thread_id=self.thread_id,
            turn=turn,
            duration_ms=duration_ms,
            recovered=recovered,
        )
        if tool_hooks is not None:
            await tool_hooks.post_tool_use(post)
        await self._hooks.post_tool_use(post)
        return result

    async def _skip(self, call: ParsedToolCall, layer: str) -> None:
        logger.info(f"[ToolRouter] {call.name} ({call.id}) skipped by {layer} pre-tool-use hook")
        await self._append(call, dict(SKIPPED_CONTENT))
        return None

    async def _run_failure_hooks(
        self,
        call: ParsedToolCall,
        error: Exception,
        tool_hooks: Optional[ToolHooks],
        turn: int,
    ) -> Optional[PostToolUseFailureResult]:
        """Consult tool then global failure hooks; return the first recovery."""
        context = PostToolUseFailureContext(
            tool_call=call,
            error=error,
            failure=ToolExecutionError(call.name, call.id, error, thread_id=self.thread_id),
            thread_id=self.thread_id,
            turn=turn,
        )
        for hooks in (tool_hooks, self._hooks):
            if hooks is None:
                continue
            outcome = await hooks.post_tool_use_failure(context)
            if outcome is not None and outcome.recovers:
                return outcome
        return None

    async def process_tool_calls_by_name(
        self,
        calls: Sequence[ParsedToolCall],
        tool_name: str,
        handler: ToolHandler,
        handler_context: Any = None,
    ) -> List[ToolCallResult]:
        """Run a custom handler for every call of one tool, bypassing hooks.

        Results are still appended to the thread.
        """
        matching = self.filter_by_name(calls, tool_name)
        if not matching:
            return []

        async def process(call: ParsedToolCall) -> ToolCallResult:
            response = _as_response(await _call_handler(handler, call.args, handler_context))
            await self._append(call, response.content)
            return ToolCallResult(tool_call_id=call.id, name=call.name, data=response.data)

        if self.parallel:
            return list(await asyncio.gather(*(process(call) for call in matching)))
        return [await process(call) for call in matching]

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    @staticmethod
    def filter_by_name(calls: Sequence[ParsedToolCall], name: str) -> List[ParsedToolCall]:
        return [call for call in calls if call.name == name]

    @staticmethod
    def has_tool_call(calls: Sequence[ParsedToolCall], name: str) -> bool:
        return any(call.name == name for call in calls)

    @staticmethod
    def get_results_by_name(results: Sequence[ToolCallResult], name: str) -> List[ToolCallResult]:
        return [result for result in results if result.name == name]


def has_no_other_tool_calls(calls: Sequence[ParsedToolCall], exclude_name: str) -> bool:
    """True if every call in the batch targets ``exclude_name``."""
    return all(call.name == exclude_name for call in calls)


__all__ = [
    "AppendToolResult",
    "SKIPPED_CONTENT",
    "ToolRouter",
    "has_no_other_tool_calls",
]

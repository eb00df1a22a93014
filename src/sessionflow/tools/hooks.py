"""Lifecycle hooks for the tool router and session.

Two hook sets exist:

- ``Hooks``: global hooks for every tool call plus session start/end
- ``ToolHooks``: per-tool (or per-subagent) overrides

Every field defaults to ``None``, which is a no-op. Hook callables may be
plain functions or coroutines, and returning ``None`` means "no opinion".
Resolution order is fixed by the router: pre-hooks run global then tool,
post and failure hooks run tool then global.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from pydantic import BaseModel

from sessionflow.core.types import SessionExitReason
from sessionflow.errors import ToolExecutionError
from sessionflow.tools.protocol import ParsedToolCall, ToolCallResult

C = TypeVar("C")
R = TypeVar("R")

HookFn = Callable[[C], Union[Optional[R], Awaitable[Optional[R]]]]


async def invoke_hook(hook: Optional[Callable[[Any], Any]], context: Any) -> Any:
    """Call a sync or async hook; a missing hook returns None."""
    if hook is None:
        return None
    result = hook(context)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass(kw_only=True)
class PreToolUseResult:
    """Decision returned by a pre-tool-use hook.

    Attributes:
        skip: Abandon the call; a "skipped" result is appended instead
        modified_args: Replacement arguments (model instance or dict that
            is re-validated against the tool schema)
    """

    skip: bool = False
    modified_args: Optional[Union[BaseModel, Dict[str, Any]]] = None


@dataclass(kw_only=True)
class PostToolUseFailureResult:
    """Decision returned by a failure hook.

    Attributes:
        fallback_content: Content to append instead of the error
        suppress: Treat the failure as recovered with a JSON error marker
    """

    fallback_content: Any = None
    suppress: bool = False

    @property
    def recovers(self) -> bool:
        return self.fallback_content is not None or self.suppress


@dataclass(frozen=True, kw_only=True)
class PreToolUseContext:
    tool_call: ParsedToolCall
    thread_id: str
    turn: int


@dataclass(frozen=True, kw_only=True)
class PostToolUseContext:
    tool_call: ParsedToolCall
    result: ToolCallResult
    content: Any
    thread_id: str
    turn: int
    duration_ms: float
    recovered: bool = False


@dataclass(frozen=True, kw_only=True)
class PostToolUseFailureContext:
    """Context passed to failure hooks.

    ``error`` is the exception the handler raised; ``failure`` wraps it with
    call details for logging and serialization.
    """

    tool_call: ParsedToolCall
    error: BaseException
    failure: ToolExecutionError
    thread_id: str
    turn: int


@dataclass(frozen=True, kw_only=True)
class SessionStartContext:
    thread_id: str
    agent_name: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class SessionEndContext:
    thread_id: str
    agent_name: str
    exit_reason: SessionExitReason
    turns: int
    metadata: Dict[str, Any] = field(default_factory=dict)


# Per-tool hooks see the same contexts as the global ones.
ToolHookContext = PreToolUseContext
ToolPostHookContext = PostToolUseContext
ToolFailureHookContext = PostToolUseFailureContext


@dataclass(frozen=True, kw_only=True)
class ToolHooks:
    """Hooks attached to a single tool or subagent."""

    on_pre_tool_use: Optional[HookFn[PreToolUseContext, PreToolUseResult]] = None
    on_post_tool_use: Optional[HookFn[PostToolUseContext, None]] = None
    on_post_tool_use_failure: Optional[
        HookFn[PostToolUseFailureContext, PostToolUseFailureResult]
    ] = None

    async def pre_tool_use(self, context: PreToolUseContext) -> Optional[PreToolUseResult]:
        return await invoke_hook(self.on_pre_tool_use, context)

    async def post_tool_use(self, context: PostToolUseContext) -> None:
        await invoke_hook(self.on_post_tool_use, context)

    async def post_tool_use_failure(
        self, context: PostToolUseFailureContext
    ) -> Optional[PostToolUseFailureResult]:
        return await invoke_hook(self.on_post_tool_use_failure, context)


@dataclass(frozen=True, kw_only=True)
class Hooks(ToolHooks):
    """Global hooks for a session.

    Example:
        async def audit(ctx: PostToolUseContext) -> None:
            logger.info(f"{ctx.tool_call.name} took {ctx.duration_ms:.0f}ms")

        hooks = Hooks(on_post_tool_use=audit)
    """

    on_session_start: Optional[HookFn[SessionStartContext, None]] = None
    on_session_end: Optional[HookFn[SessionEndContext, None]] = None

    async def session_start(self, context: SessionStartContext) -> None:
        await invoke_hook(self.on_session_start, context)

    async def session_end(self, context: SessionEndContext) -> None:
        await invoke_hook(self.on_session_end, context)


NO_HOOKS = Hooks()


__all__ = [
    "Hooks",
    "NO_HOOKS",
    "PostToolUseContext",
    "PostToolUseFailureContext",
    "PostToolUseFailureResult",
    "PreToolUseContext",
    "PreToolUseResult",
    "SessionEndContext",
    "SessionStartContext",
    "ToolFailureHookContext",
    "ToolHookContext",
    "ToolHooks",
    "ToolPostHookContext",
    "invoke_hook",
]

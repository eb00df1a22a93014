"""Core type definitions for sessionflow.

This module provides the foundational types shared by the state manager,
tool router, and session loop. Every type here must survive a round trip
through a durable host boundary, so all of them reduce to plain JSON-compatible
dictionaries via ``to_dict()``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AgentStatus(str, Enum):
    """Execution status of an agent session.

    - RUNNING: The turn loop may continue
    - WAITING_FOR_INPUT: Paused until a human (or caller) responds
    - COMPLETED: Finished successfully
    - FAILED: Aborted by an unrecovered error
    - CANCELLED: Stopped by an external request
    """

    RUNNING = "RUNNING"
    WAITING_FOR_INPUT = "WAITING_FOR_INPUT"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


_TERMINAL_STATUSES = frozenset(
    {AgentStatus.COMPLETED, AgentStatus.FAILED, AgentStatus.CANCELLED}
)


def is_terminal_status(status: AgentStatus | str) -> bool:
    """Check if a status is terminal (no further turns may execute).

    Args:
        status: AgentStatus or its string value

    Returns:
        True for COMPLETED, FAILED and CANCELLED
    """
    return AgentStatus(status) in _TERMINAL_STATUSES


class TaskStatus(str, Enum):
    """Status of a workflow task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SessionExitReason(str, Enum):
    """Why a session run ended. Set exactly once per run."""

    COMPLETED = "completed"
    MAX_TURNS = "max_turns"
    WAITING_FOR_INPUT = "waiting_for_input"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(kw_only=True)
class WorkflowTask:
    """A dependency-linked work item tracked in agent state.

    The blocked_by / blocks relation is bidirectional: if B is in
    ``a.blocked_by`` then A is in ``b.blocks``, and vice versa.
    """

    id: str
    subject: str
    description: str
    active_form: str = ""
    status: TaskStatus = TaskStatus.PENDING
    metadata: dict[str, str] = field(default_factory=dict)
    blocked_by: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation shown to the model."""
        return {
            "id": self.id,
            "subject": self.subject,
            "description": self.description,
            "activeForm": self.active_form,
            "status": TaskStatus(self.status).value,
            "metadata": dict(self.metadata),
            "blockedBy": list(self.blocked_by),
            "blocks": list(self.blocks),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowTask":
        """Build a task from its wire representation."""
        return cls(
            id=data["id"],
            subject=data.get("subject", ""),
            description=data.get("description", ""),
            active_form=data.get("activeForm", data.get("active_form", "")),
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            metadata=dict(data.get("metadata") or {}),
            blocked_by=list(data.get("blockedBy", data.get("blocked_by")) or []),
            blocks=list(data.get("blocks") or []),
        )


@dataclass(frozen=True, kw_only=True)
class SerializableToolDefinition:
    """JSON-serializable snapshot of a tool definition.

    Uses a plain JSON Schema dict instead of a live pydantic model so the
    snapshot survives host serialization without losing constraints.
    """

    name: str
    description: str
    schema: dict[str, Any]
    strict: bool | None = None
    max_uses: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "schema": self.schema,
        }
        if self.strict is not None:
            data["strict"] = self.strict
        if self.max_uses is not None:
            data["max_uses"] = self.max_uses
        return data


@dataclass(kw_only=True)
class RunAgentConfig:
    """Configuration passed to the model invoker for one turn."""

    thread_id: str
    agent_name: str
    metadata: dict[str, Any] = field(default_factory=dict)
    tools: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "thread_id": self.thread_id,
            "agent_name": self.agent_name,
            "metadata": dict(self.metadata),
            "tools": list(self.tools),
        }

    @classmethod
    def from_value(cls, value: "RunAgentConfig | dict[str, Any]") -> "RunAgentConfig":
        if isinstance(value, RunAgentConfig):
            return value
        return cls(
            thread_id=value["thread_id"],
            agent_name=value["agent_name"],
            metadata=dict(value.get("metadata") or {}),
            tools=list(value.get("tools") or []),
        )


@dataclass(kw_only=True)
class AgentResponse:
    """Response of one model invocation.

    Attributes:
        message: The assistant message as stored in the thread
        stop_reason: Provider stop reason, normalized ("end_turn", "tool_use", ...)
        usage: Optional token usage counters
    """

    message: dict[str, Any]
    stop_reason: str | None = None
    usage: dict[str, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "stop_reason": self.stop_reason, "usage": self.usage}

    @classmethod
    def from_value(cls, value: "AgentResponse | dict[str, Any]") -> "AgentResponse":
        """Accept either an instance or the dict form produced by a host."""
        if isinstance(value, AgentResponse):
            return value
        return cls(
            message=value.get("message") or {},
            stop_reason=value.get("stop_reason"),
            usage=value.get("usage"),
        )


@dataclass(kw_only=True)
class SubagentInput:
    """Input passed to child executions spawned as subagents."""

    prompt: str
    context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"prompt": self.prompt}
        if self.context:
            data["context"] = self.context
        return data


@dataclass(frozen=True, kw_only=True)
class ToolResultConfig:
    """Payload for appending a tool result to a thread."""

    thread_id: str
    tool_call_id: str
    tool_name: str
    content: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "thread_id": self.thread_id,
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "content": self.content,
        }

    @classmethod
    def from_value(cls, value: "ToolResultConfig | dict[str, Any]") -> "ToolResultConfig":
        if isinstance(value, ToolResultConfig):
            return value
        return cls(
            thread_id=value["thread_id"],
            tool_call_id=value["tool_call_id"],
            tool_name=value.get("tool_name", ""),
            content=value.get("content"),
        )


__all__ = [
    "AgentResponse",
    "AgentStatus",
    "RunAgentConfig",
    "SerializableToolDefinition",
    "SessionExitReason",
    "SubagentInput",
    "TaskStatus",
    "ToolResultConfig",
    "WorkflowTask",
    "is_terminal_status",
]

"""Core types for sessionflow."""

from sessionflow.core.types import (
    AgentResponse,
    AgentStatus,
    RunAgentConfig,
    SerializableToolDefinition,
    SessionExitReason,
    SubagentInput,
    TaskStatus,
    ToolResultConfig,
    WorkflowTask,
    is_terminal_status,
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

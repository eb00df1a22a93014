"""sessionflow - durable, hook-driven agent sessions.

The engine coordinates a long-running agent loop on top of a durable
execution host:

- AgentStateManager: versioned session state and task graph
- ToolRouter: validated tool dispatch with global and per-tool hooks
- Session: the turn loop tying model, tools and state together
- Subagents: delegation to nested durable executions

Temporal (TemporalHost) and in-process asyncio (LocalHost) hosts ship with
the package, as do a Redis thread store and a litellm model invoker.
"""

__version__ = "0.1.0"

# Core exports
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
)
from sessionflow.errors import (
    InvalidArgumentsError,
    SessionFlowError,
    SubagentNotConfiguredError,
    SubagentResultSchemaMismatchError,
    ToolExecutionError,
    UnknownToolError,
)

# File tree exports
from sessionflow.filetree import FileNode, FileNodeType, render_file_tree

# Host exports
from sessionflow.host import DurableExecutionHost, LocalHost, RetryConfig, TemporalHost

# LLM exports
from sessionflow.llm import ActivityModelInvoker, LiteLLMModelInvoker, LLMConfig
from sessionflow.prompt import PromptManager
from sessionflow.session import Session, SessionConfig
from sessionflow.state import AgentStateManager, expose_state_handlers
from sessionflow.thread import ActivityThreadOps, RedisThreadStore, ThreadActivities

# Tool exports
from sessionflow.tools import (
    Hooks,
    PostToolUseFailureResult,
    PreToolUseResult,
    SubagentConfig,
    Tool,
    ToolDefinition,
    ToolHandlerResponse,
    ToolHooks,
    ToolRouter,
    create_task_tools,
    define_tool,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "AgentResponse",
    "AgentStatus",
    "RunAgentConfig",
    "SerializableToolDefinition",
    "SessionExitReason",
    "SubagentInput",
    "TaskStatus",
    "ToolResultConfig",
    "WorkflowTask",
    # Errors
    "InvalidArgumentsError",
    "SessionFlowError",
    "SubagentNotConfiguredError",
    "SubagentResultSchemaMismatchError",
    "ToolExecutionError",
    "UnknownToolError",
    # File tree
    "FileNode",
    "FileNodeType",
    "render_file_tree",
    # Hosts
    "DurableExecutionHost",
    "LocalHost",
    "RetryConfig",
    "TemporalHost",
    # State
    "AgentStateManager",
    "expose_state_handlers",
    # Tools
    "Hooks",
    "PostToolUseFailureResult",
    "PreToolUseResult",
    "SubagentConfig",
    "Tool",
    "ToolDefinition",
    "ToolHandlerResponse",
    "ToolHooks",
    "ToolRouter",
    "create_task_tools",
    "define_tool",
    # Session
    "PromptManager",
    "Session",
    "SessionConfig",
    # Collaborators
    "ActivityModelInvoker",
    "ActivityThreadOps",
    "LLMConfig",
    "LiteLLMModelInvoker",
    "RedisThreadStore",
    "ThreadActivities",
]

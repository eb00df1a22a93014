"""Tool system for sessionflow.

Provides:
- ToolDefinition / Tool (runtime tool registry entries)
- Hooks / ToolHooks (pre, post and failure interception)
- ToolRouter (parsing and hook-aware execution)
- Task graph tools and the Subagent delegate tool
"""

from sessionflow.tools.hooks import (
    Hooks,
    PostToolUseContext,
    PostToolUseFailureContext,
    PostToolUseFailureResult,
    PreToolUseContext,
    PreToolUseResult,
    SessionEndContext,
    SessionStartContext,
    ToolHooks,
)
from sessionflow.tools.protocol import (
    ParsedToolCall,
    RawToolCall,
    Tool,
    ToolCallResult,
    ToolDefinition,
    ToolHandlerResponse,
    define_tool,
)
from sessionflow.tools.router import SKIPPED_CONTENT, ToolRouter, has_no_other_tool_calls
from sessionflow.tools.subagent import (
    SUBAGENT_TOOL_NAME,
    SubagentConfig,
    SubagentDispatcher,
    create_subagent_tool,
)
from sessionflow.tools.tasks import create_task_tools

__all__ = [
    "Hooks",
    "ParsedToolCall",
    "PostToolUseContext",
    "PostToolUseFailureContext",
    "PostToolUseFailureResult",
    "PreToolUseContext",
    "PreToolUseResult",
    "RawToolCall",
    "SKIPPED_CONTENT",
    "SUBAGENT_TOOL_NAME",
    "SessionEndContext",
    "SessionStartContext",
    "SubagentConfig",
    "SubagentDispatcher",
    "Tool",
    "ToolCallResult",
    "ToolDefinition",
    "ToolHandlerResponse",
    "ToolHooks",
    "ToolRouter",
    "create_subagent_tool",
    "create_task_tools",
    "define_tool",
    "has_no_other_tool_calls",
]

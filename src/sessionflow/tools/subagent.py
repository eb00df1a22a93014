"""Subagent delegation.

The delegate tool ("Subagent") lets the model hand a task to a named
subagent profile. Each invocation starts a nested durable execution through
the host, waits for its terminal result and, when the profile declares a
result schema, validates the result before returning it to the model.

Child results may be either a plain JSON value (treated as data) or a dict
``{"tool_response": ..., "data": ...}`` where ``tool_response`` is the
model-visible text.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, create_model

from sessionflow.core.types import SubagentInput
from sessionflow.errors import SubagentNotConfiguredError, SubagentResultSchemaMismatchError
from sessionflow.host.protocol import ChildTarget, DurableExecutionHost
from sessionflow.tools.hooks import ToolHooks
from sessionflow.tools.protocol import Tool, ToolDefinition, ToolHandlerResponse

logger = logging.getLogger(__name__)

SUBAGENT_TOOL_NAME = "Subagent"


@dataclass(frozen=True, kw_only=True)
class SubagentConfig:
    """A subagent profile.

    Attributes:
        name: Name the model uses to select the profile
        description: What the subagent is good at, listed in the tool description
        workflow: Child workflow type name or workflow callable
        task_queue: Task queue override (defaults to the parent's queue)
        result_schema: Optional pydantic model the child's data must satisfy
        context: Optional context forwarded to the child with the prompt
        hooks: Hooks applied to delegate calls that select this profile
    """

    name: str
    description: str
    workflow: ChildTarget
    task_queue: Optional[str] = None
    result_schema: Optional[type[BaseModel]] = None
    context: Optional[Dict[str, Any]] = None
    hooks: Optional[ToolHooks] = None


def build_subagent_description(subagents: Sequence[SubagentConfig]) -> str:
    agent_list = "\n".join(f"- **{s.name}**: {s.description}" for s in subagents)
    return f"""Launch a new agent to handle complex tasks autonomously.

The {SUBAGENT_TOOL_NAME} tool launches specialized agents that autonomously handle complex tasks. Each agent type has specific capabilities and tools available to it.

Available agent types:

{agent_list}

When using the {SUBAGENT_TOOL_NAME} tool, you must specify a subagent parameter to select which agent type to use.

Usage notes:

- Always include a short description (3-5 words) summarizing what the agent will do
- Launch multiple agents concurrently whenever possible by using a single message with multiple tool uses
- When the agent is done, it will return a single message back to you
- Each invocation starts fresh, so provide a detailed task description with all necessary context
- Clearly tell the agent what type of work you expect since it is not aware of the user's intent"""


def build_subagent_args_model(names: Sequence[str]) -> type[BaseModel]:
    """Argument model with an enum over the configured subagent names."""
    return create_model(
        "SubagentArgs",
        subagent=(Literal[tuple(names)], Field(description="The type of subagent to launch")),
        description=(str, Field(description="A short (3-5 word) description of the task")),
        prompt=(str, Field(description="The task for the agent to perform")),
    )


class SubagentDispatcher:
    """Tool handler that runs a subagent as a child execution."""

    def __init__(self, subagents: Sequence[SubagentConfig], host: DurableExecutionHost) -> None:
        self._subagents: Dict[str, SubagentConfig] = {s.name: s for s in subagents}
        self._host = host

    @property
    def names(self) -> List[str]:
        return list(self._subagents)

    def get_config(self, name: str) -> Optional[SubagentConfig]:
        return self._subagents.get(name)

    def resolve_hooks(self, args: BaseModel) -> Optional[ToolHooks]:
        config = self._subagents.get(getattr(args, "subagent", ""))
        return config.hooks if config is not None else None

    async def __call__(self, args: BaseModel, context: Any = None) -> ToolHandlerResponse:
        """Dispatch one delegate call.

        Raises:
            SubagentNotConfiguredError: If the named subagent is unknown
            SubagentResultSchemaMismatchError: If the child's data fails the schema
        """
        name = args.subagent
        config = self._subagents.get(name)
        if config is None:
            raise SubagentNotConfiguredError(name, self.names)

        child_id = f"{self._host.workflow_id}-{name}-{self._host.new_id()}"
        child_input = SubagentInput(prompt=args.prompt, context=config.context)
        self._host.logger.info(f"[Subagent] Starting {name} as {child_id}")

        raw = await self._host.execute_child(
            config.workflow,
            id=child_id,
            args=[child_input.to_dict()],
            task_queue=config.task_queue,
        )

        tool_response, data = _split_child_result(raw)

        if config.result_schema is not None:
            try:
                validated = config.result_schema.model_validate(data)
            except ValidationError as e:
                raise SubagentResultSchemaMismatchError(name, e.errors(), cause=e) from e
            data = validated.model_dump(mode="json")

        content = tool_response if tool_response is not None else json.dumps(data)
        return ToolHandlerResponse(content=content, data=data)


def _split_child_result(raw: Any) -> tuple[Optional[Any], Any]:
    if isinstance(raw, dict) and ("tool_response" in raw or "data" in raw):
        return raw.get("tool_response"), raw.get("data")
    return None, raw


def create_subagent_tool(
    subagents: Sequence[SubagentConfig],
    host: DurableExecutionHost,
) -> Tool:
    """Build the delegate tool for the given subagent profiles.

    Raises:
        ValueError: If no subagents are given or names repeat
    """
    if not subagents:
        raise ValueError("create_subagent_tool requires at least one subagent")
    names = [s.name for s in subagents]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate subagent names: {names}")

    dispatcher = SubagentDispatcher(subagents, host)
    return Tool(
        definition=ToolDefinition(
            name=SUBAGENT_TOOL_NAME,
            description=build_subagent_description(subagents),
            schema=build_subagent_args_model(names),
        ),
        handler=dispatcher,
        hook_resolver=dispatcher.resolve_hooks,
    )


__all__ = [
    "SUBAGENT_TOOL_NAME",
    "SubagentConfig",
    "SubagentDispatcher",
    "build_subagent_args_model",
    "build_subagent_description",
    "create_subagent_tool",
]

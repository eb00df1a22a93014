"""Tool definitions and call types for sessionflow.

A tool is an explicit runtime registry entry: an immutable ``ToolDefinition``
(name, description and a pydantic argument model) plus a handler and optional
per-tool hooks. Static typing is layered on top through the argument model;
dispatch is always by name.

Key design:
- Immutable data classes for definitions and calls
- pydantic models as the single source of argument schemas
- Handlers may be sync or async
"""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import BaseModel

from sessionflow.core.types import SerializableToolDefinition

if TYPE_CHECKING:
    from sessionflow.tools.hooks import ToolHooks


@dataclass(frozen=True, kw_only=True)
class ToolDefinition:
    """Immutable definition of a tool for model consumption.

    Attributes:
        name: Unique tool name
        description: What the tool does, shown to the model
        schema: pydantic model describing the arguments
        strict: Ask the provider for strict schema adherence
        max_uses: Optional cap on calls per session, forwarded to the model
    """

    name: str
    description: str
    schema: type[BaseModel]
    strict: Optional[bool] = None
    max_uses: Optional[int] = None

    def json_schema(self) -> Dict[str, Any]:
        """JSON Schema of the argument model."""
        return self.schema.model_json_schema()

    def validate(self, raw_args: Any) -> BaseModel:
        """Validate raw arguments into an instance of the argument model.

        Raises:
            pydantic.ValidationError: If the arguments do not match the schema
        """
        if isinstance(raw_args, self.schema):
            return raw_args
        return self.schema.model_validate({} if raw_args is None else raw_args)

    def with_description(self, description: str) -> "ToolDefinition":
        return replace(self, description=description)

    def to_serializable(self) -> SerializableToolDefinition:
        """Handler-free snapshot that can cross the host boundary."""
        return SerializableToolDefinition(
            name=self.name,
            description=self.description,
            schema=self.json_schema(),
            strict=self.strict,
            max_uses=self.max_uses,
        )

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI tool format.

        Returns:
            Dict in OpenAI function calling format:
            {
                "type": "function",
                "function": {
                    "name": "...",
                    "description": "...",
                    "parameters": {...}
                }
            }
        """
        function: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "parameters": self.json_schema(),
        }
        if self.strict is not None:
            function["strict"] = self.strict
        return {"type": "function", "function": function}

    def to_anthropic_format(self) -> Dict[str, Any]:
        """Convert to Anthropic tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.json_schema(),
        }


@dataclass(kw_only=True)
class ToolHandlerResponse:
    """What a tool handler returns.

    Attributes:
        content: Model-visible content appended to the thread
        data: Structured result surfaced to hooks and callers
    """

    content: Any
    data: Any = None


ToolHandler = Callable[
    [BaseModel, Any],
    Union[ToolHandlerResponse, Awaitable[ToolHandlerResponse]],
]
HookResolver = Callable[[BaseModel], Optional["ToolHooks"]]


@dataclass(frozen=True, kw_only=True)
class Tool:
    """A registered tool: definition, handler and optional hooks.

    ``hook_resolver`` picks hooks per invocation from the validated
    arguments; when set it takes precedence over ``hooks``.
    """

    definition: ToolDefinition
    handler: ToolHandler
    hooks: Optional["ToolHooks"] = None
    hook_resolver: Optional[HookResolver] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.definition.name

    def resolve_hooks(self, args: BaseModel) -> Optional["ToolHooks"]:
        if self.hook_resolver is not None:
            return self.hook_resolver(args)
        return self.hooks


def define_tool(
    name: str,
    description: str,
    schema: type[BaseModel],
    handler: ToolHandler,
    *,
    hooks: Optional["ToolHooks"] = None,
    strict: Optional[bool] = None,
    max_uses: Optional[int] = None,
) -> Tool:
    """Build a Tool from its parts.

    Example:
        class ReadArgs(BaseModel):
            path: str

        async def read_file(args: ReadArgs, ctx) -> ToolHandlerResponse:
            text = Path(args.path).read_text()
            return ToolHandlerResponse(content=text, data={"size": len(text)})

        read_tool = define_tool("Read", "Read a file", ReadArgs, read_file)
    """
    return Tool(
        definition=ToolDefinition(
            name=name,
            description=description,
            schema=schema,
            strict=strict,
            max_uses=max_uses,
        ),
        handler=handler,
        hooks=hooks,
    )


@dataclass(frozen=True, kw_only=True)
class RawToolCall:
    """A tool call as extracted from a model message, before validation."""

    name: str
    args: Any = None
    id: Optional[str] = None

    @classmethod
    def from_value(cls, value: Union["RawToolCall", Dict[str, Any]]) -> "RawToolCall":
        if isinstance(value, RawToolCall):
            return value
        return cls(name=value["name"], args=value.get("args"), id=value.get("id"))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "args": self.args}


@dataclass(frozen=True, kw_only=True)
class ParsedToolCall:
    """A tool call whose arguments passed schema validation."""

    id: str
    name: str
    args: BaseModel

    def args_dict(self) -> Dict[str, Any]:
        return self.args.model_dump(mode="json")


@dataclass(frozen=True, kw_only=True)
class ToolCallResult:
    """Outcome of one processed tool call, keyed by tool name."""

    tool_call_id: str
    name: str
    data: Any = None


__all__ = [
    "HookResolver",
    "ParsedToolCall",
    "RawToolCall",
    "Tool",
    "ToolCallResult",
    "ToolDefinition",
    "ToolHandler",
    "ToolHandlerResponse",
    "define_tool",
]

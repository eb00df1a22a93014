"""System prompt and context message assembly."""

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

PromptSource = Union[str, Callable[[], Union[str, Awaitable[str]]]]
ContextBuilder = Callable[[str], Any]


async def _resolve(source: PromptSource) -> str:
    if not callable(source):
        return source
    value = source()
    if inspect.isawaitable(value):
        value = await value
    return value


class PromptManager:
    """Builds the system prompt and the first human message of a session.

    Prompts may be static strings or (async) callables, so they can be
    rendered lazily from files or templates.

    Example:
        prompts = PromptManager(
            base_system_prompt="You are a careful coding agent.",
            instructions_prompt=load_instructions,
            context_builder=lambda prompt: f"<task>{prompt}</task>",
        )
    """

    def __init__(
        self,
        base_system_prompt: PromptSource,
        instructions_prompt: PromptSource = "",
        context_builder: Optional[ContextBuilder] = None,
    ) -> None:
        self._base_system_prompt = base_system_prompt
        self._instructions_prompt = instructions_prompt
        self._context_builder = context_builder

    async def get_system_prompt(self) -> str:
        """Base prompt and instructions joined by a newline."""
        base = await _resolve(self._base_system_prompt)
        instructions = await _resolve(self._instructions_prompt)
        return "\n".join(part for part in (base, instructions) if part)

    async def build_context_message(self, prompt: str) -> Any:
        """Content of the first human message; the prompt itself by default."""
        if self._context_builder is None:
            return prompt
        content = self._context_builder(prompt)
        if inspect.isawaitable(content):
            content = await content
        return content


__all__ = ["PromptManager", "PromptSource"]

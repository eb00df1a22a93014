"""Model invokers.

``LiteLLMModelInvoker`` runs one model turn outside workflow code: it loads
the thread, prepends the system prompt, calls ``litellm.acompletion`` with
the session's tool definitions, appends the assistant message to the thread
and returns an ``AgentResponse``. ``as_activity()`` exposes it as the
``run_agent`` Temporal activity.

``ActivityModelInvoker`` is the workflow-side counterpart that calls that
activity through the host.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from litellm import acompletion
from temporalio import activity

from sessionflow.core.types import AgentResponse, RunAgentConfig
from sessionflow.host.protocol import DurableExecutionHost
from sessionflow.host.retry import RetryConfig
from sessionflow.llm.config import LLMConfig
from sessionflow.prompt import PromptManager
from sessionflow.thread.store import Message, RedisThreadStore, ai_message

logger = logging.getLogger(__name__)

RUN_AGENT = "run_agent"

STOP_REASONS: Dict[str, str] = {
    "stop": "end_turn",
    "end_turn": "end_turn",
    "tool_calls": "tool_use",
    "function_call": "tool_use",
    "tool_use": "tool_use",
    "length": "max_tokens",
    "max_tokens": "max_tokens",
}

RunAgent = Callable[[RunAgentConfig], Awaitable[Union[AgentResponse, Dict[str, Any]]]]


def normalize_stop_reason(finish_reason: Optional[str]) -> Optional[str]:
    if finish_reason is None:
        return None
    return STOP_REASONS.get(finish_reason, finish_reason)


def tool_to_litellm_format(tool: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a serialized tool definition to the OpenAI tool format litellm expects."""
    function: Dict[str, Any] = {
        "name": tool["name"],
        "description": tool.get("description", ""),
        "parameters": tool.get("schema") or {"type": "object", "properties": {}},
    }
    if tool.get("strict") is not None:
        function["strict"] = tool["strict"]
    return {"type": "function", "function": function}


def _strip_ids(messages: List[Message]) -> List[Message]:
    return [{k: v for k, v in m.items() if k != "id"} for m in messages]


class LiteLLMModelInvoker:
    """Model invoker backed by litellm.

    Example:
        invoker = LiteLLMModelInvoker(
            LLMConfig.from_settings(settings),
            store=RedisThreadStore.from_url(settings.redis_url),
            prompt_manager=PromptManager("You are a research agent."),
        )
        worker = Worker(client, task_queue=..., activities=[invoker.as_activity()])
    """

    def __init__(
        self,
        config: LLMConfig,
        store: RedisThreadStore,
        prompt_manager: Optional[PromptManager] = None,
        completion: Callable[..., Awaitable[Any]] = acompletion,
    ) -> None:
        self._config = config
        self._store = store
        self._prompt_manager = prompt_manager
        self._completion = completion

    def _build_completion_params(
        self,
        messages: List[Message],
        tools: List[Dict[str, Any]],
        run_config: RunAgentConfig,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self._config.model,
            "messages": messages,
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "timeout": self._config.timeout_seconds,
            "metadata": {
                "thread_id": run_config.thread_id,
                "agent_name": run_config.agent_name,
                **run_config.metadata,
            },
        }
        if self._config.api_key:
            params["api_key"] = self._config.api_key
        if self._config.base_url:
            params["api_base"] = self._config.base_url
        if tools:
            params["tools"] = [tool_to_litellm_format(tool) for tool in tools]
        return params

    async def run_agent(self, config: Union[RunAgentConfig, Dict[str, Any]]) -> AgentResponse:
        run_config = RunAgentConfig.from_value(config)
        history = await self._store.load(run_config.thread_id)

        messages: List[Message] = []
        if self._prompt_manager is not None:
            system_prompt = await self._prompt_manager.get_system_prompt()
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
        messages.extend(_strip_ids(history))

        params = self._build_completion_params(messages, run_config.tools, run_config)
        try:
            response = await self._completion(**params)
        except Exception as e:
            logger.error(f"[LiteLLMModelInvoker] Completion failed for {run_config.agent_name}: {e}")
            raise

        choice = response.choices[0]
        tool_calls = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.function.name, "arguments": tc.function.arguments},
            }
            for tc in (getattr(choice.message, "tool_calls", None) or [])
        ]
        message = ai_message(choice.message.content or "", tool_calls or None)
        await self._store.append(run_config.thread_id, [message])

        usage = None
        if getattr(response, "usage", None):
            usage = {
                "input_tokens": getattr(response.usage, "prompt_tokens", 0) or 0,
                "output_tokens": getattr(response.usage, "completion_tokens", 0) or 0,
                "total_tokens": getattr(response.usage, "total_tokens", 0) or 0,
            }

        stop_reason = normalize_stop_reason(choice.finish_reason)
        logger.info(
            f"[LiteLLMModelInvoker] {run_config.agent_name} turn finished: "
            f"stop_reason={stop_reason}, tool_calls={len(tool_calls)}"
        )
        return AgentResponse(message=message, stop_reason=stop_reason, usage=usage)

    def as_activity(self, name: str = RUN_AGENT) -> Callable[..., Awaitable[Dict[str, Any]]]:
        """Expose ``run_agent`` as a Temporal activity returning a plain dict."""

        @activity.defn(name=name)
        async def run_agent(config: Dict[str, Any]) -> Dict[str, Any]:
            response = await self.run_agent(config)
            return response.to_dict()

        return run_agent


class ActivityModelInvoker:
    """Calls the ``run_agent`` activity from workflow code."""

    def __init__(
        self,
        host: DurableExecutionHost,
        activity_name: str = RUN_AGENT,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self._host = host
        self._activity_name = activity_name
        self._retry = retry

    async def __call__(self, config: RunAgentConfig) -> AgentResponse:
        raw = await self._host.call(self._activity_name, config.to_dict(), retry=self._retry)
        return AgentResponse.from_value(raw)


__all__ = [
    "ActivityModelInvoker",
    "LiteLLMModelInvoker",
    "RUN_AGENT",
    "RunAgent",
    "normalize_stop_reason",
    "tool_to_litellm_format",
]

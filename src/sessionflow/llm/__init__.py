"""LLM module for sessionflow.

Provides:
- LLMConfig with preset factories
- LiteLLMModelInvoker (litellm-backed model turn, usable as an activity)
- ActivityModelInvoker (workflow-side client of that activity)

Example:
    from sessionflow.llm import LiteLLMModelInvoker, anthropic_config

    invoker = LiteLLMModelInvoker(anthropic_config(), store=store)
    response = await invoker.run_agent(
        RunAgentConfig(thread_id="t-1", agent_name="researcher")
    )
"""

from sessionflow.llm.config import LLMConfig, anthropic_config, openai_config
from sessionflow.llm.invoker import (
    RUN_AGENT,
    ActivityModelInvoker,
    LiteLLMModelInvoker,
    RunAgent,
    normalize_stop_reason,
)

__all__ = [
    "ActivityModelInvoker",
    "LLMConfig",
    "LiteLLMModelInvoker",
    "RUN_AGENT",
    "RunAgent",
    "anthropic_config",
    "normalize_stop_reason",
    "openai_config",
]

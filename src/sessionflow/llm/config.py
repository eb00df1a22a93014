"""LLM configuration for sessionflow.

Provides immutable configuration for the litellm model invoker.
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from sessionflow.config import SessionFlowSettings


@dataclass(frozen=True, kw_only=True)
class LLMConfig:
    """Immutable LLM configuration.

    Attributes:
        model: litellm model identifier with provider prefix
            (e.g., "anthropic/claude-sonnet-4-20250514", "openai/gpt-4o")
        api_key: Optional API key (can also be set via environment)
        base_url: Optional base URL for API
        temperature: Sampling temperature (0.0 to 2.0)
        max_tokens: Maximum tokens in response
        timeout_seconds: Request timeout
    """

    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 4096
    timeout_seconds: int = 120

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be between 0.0 and 2.0, got {self.temperature}")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")

    def with_model(self, model: str) -> "LLMConfig":
        """Return new config with different model."""
        return replace(self, model=model)

    def with_temperature(self, temperature: float) -> "LLMConfig":
        """Return new config with different temperature."""
        return replace(self, temperature=temperature)

    @classmethod
    def from_settings(cls, settings: "SessionFlowSettings") -> "LLMConfig":
        return cls(model=settings.llm_model, api_key=settings.llm_api_key)


# Preset configurations
def anthropic_config(
    model: str = "claude-sonnet-4-20250514", api_key: Optional[str] = None
) -> LLMConfig:
    """Create Anthropic Claude configuration."""
    return LLMConfig(model=f"anthropic/{model}", api_key=api_key)


def openai_config(model: str = "gpt-4o", api_key: Optional[str] = None) -> LLMConfig:
    """Create OpenAI configuration."""
    return LLMConfig(model=f"openai/{model}", api_key=api_key)


__all__ = [
    "LLMConfig",
    "anthropic_config",
    "openai_config",
]

"""Language-model providers behind a small protocol."""

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

import litellm
from loguru import logger

from .exceptions import ConfigurationError, LLMProviderError
from .types import TokenUsage

USAGE_FIELDS = ("prompt_tokens", "completion_tokens", "total_tokens")


def setup_litellm() -> None:
    """Quiet litellm and drop arguments a model does not accept."""
    litellm.drop_params = True
    litellm.suppress_debug_info = True
    os.environ.setdefault("LITELLM_LOG", "ERROR")


@dataclass
class LLMConfig:
    """Configuration for LLM providers."""

    model: str
    api_key: str | None = None
    timeout: int = 60
    max_tokens: int = 4000


@dataclass
class LLMResponse:
    """Standard response from LLM providers."""

    text: str
    model: str
    usage: TokenUsage


class LLMProvider(Protocol):
    """Protocol for LLM providers."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.7,
        json_mode: bool = True,
    ) -> LLMResponse: ...

    async def health_check(self) -> bool: ...


class SimpleLLMProvider:
    """LLM provider backed by litellm."""

    def __init__(self, config: LLMConfig) -> None:
        """Initialize the provider.

        Args:
            config: LLM configuration
        """
        self.config = config

        if not config.api_key:
            raise ConfigurationError(f"API key is required for model {config.model}")

        setup_litellm()

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.7,
        json_mode: bool = True,
    ) -> LLMResponse:
        """Generate a chat completion for the given messages."""
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "timeout": self.config.timeout,
            "api_key": self.config.api_key,
            "temperature": temperature,
            "max_tokens": self.config.max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            logger.error(f"{self.config.model} completion failed: {e}")
            raise LLMProviderError(f"{self.config.model} completion failed: {e}") from e

        return LLMResponse(
            text=response.choices[0].message.content or "",
            model=response.model,
            usage=self._extract_usage(response),
        )

    def _extract_usage(self, response: Any) -> TokenUsage:
        """Token counts and, where litellm knows the model's price, the cost."""
        usage: TokenUsage = {}
        raw = getattr(response, "usage", None)
        if not raw:
            return usage

        counts = raw.model_dump()
        for key in USAGE_FIELDS:
            if counts.get(key) is not None:
                usage[key] = counts[key]  # type: ignore[literal-required]

        try:
            cost = litellm.completion_cost(completion_response=response)
        except Exception as e:  # noqa: BLE001
            logger.debug(f"No price known for {response.model}: {e}")
        else:
            if cost is not None:
                usage["cost_usd"] = Decimal(str(cost))

        return usage

    async def health_check(self) -> bool:
        """Check if provider is configured."""
        return bool(self.config.api_key)


def create_llm_provider() -> LLMProvider:
    """Factory function to create the configured LLM provider."""
    from .config import settings

    if not settings.llm_api_key:
        raise ConfigurationError("No LLM provider configured. Set ARCH_LLM_API_KEY")

    logger.info(f"Using LLM model {settings.llm_model}")
    config = LLMConfig(
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        timeout=settings.llm_timeout,
        max_tokens=settings.llm_max_tokens,
    )
    return SimpleLLMProvider(config)

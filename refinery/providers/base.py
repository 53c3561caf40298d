"""Abstract base for the LLM providers behind the evaluator and fixer capabilities."""

import asyncio
import os
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TypeVar

from config.config_loader import ModelConfig
from refinery.models import ModelResponse

T = TypeVar("T")


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def require_api_key(config: ModelConfig) -> str:
    api_key = os.environ.get(config.api_key_env, "").strip()
    if not api_key:
        raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
    return api_key


async def call_with_timeout(config: ModelConfig, call: Awaitable[T]) -> T:
    """Await an SDK call under the model's timeout, converting every failure to ProviderError."""
    try:
        return await asyncio.wait_for(call, timeout=config.timeout_sec)
    except asyncio.TimeoutError as exc:
        raise ProviderError(config.name, f"Request timed out after {config.timeout_sec}s") from exc
    except Exception as exc:
        raise ProviderError(config.name, f"API call failed: {exc}") from exc


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'claude', 'openai')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        label: str,
        system: str | None = None,
        json_mode: bool = False,
    ) -> ModelResponse:
        """Generate a completion for the given prompt.

        Args:
            prompt: The full user prompt text to send.
            label: What the call is for (e.g. "evaluate:skeptic", "fix:accessibility").
                Used for logging only.
            system: Optional system prompt.
            json_mode: Ask the API for a JSON object reply where it supports
                one. Prompts still spell out the expected structure.

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

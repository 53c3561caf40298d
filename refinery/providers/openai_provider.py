"""OpenAI provider using openai SDK with native async.

Also serves OpenAI-compatible endpoints such as xAI Grok when the model
config carries a base_url.
"""

import logging
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from refinery.models import ModelResponse
from refinery.providers.base import AIProvider, ProviderError, call_with_timeout, require_api_key

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI (or OpenAI-compatible) provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = AsyncOpenAI(api_key=require_api_key(config), base_url=config.base_url or None)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(
        self, prompt: str, label: str, system: str | None = None, json_mode: bool = False
    ) -> ModelResponse:
        start = time.monotonic()
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        request = {
            "model": self._config.model,
            "messages": messages,
            "max_tokens": self._config.max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        if self._config.temperature is not None:
            request["temperature"] = self._config.temperature

        response = await call_with_timeout(self._config, self._client.chat.completions.create(**request))
        latency = time.monotonic() - start

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count = response.usage.total_tokens if response.usage else None
        logger.info("%s %s: %.2fs, %s tokens", self._config.name, label, latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            label=label,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )

"""Anthropic Claude provider using anthropic SDK with native async."""

import logging
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from refinery.models import ModelResponse
from refinery.providers.base import AIProvider, ProviderError, call_with_timeout, require_api_key

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK.

    The Messages API has no JSON response mode, so json_mode is accepted and
    ignored; the prompt templates already demand a bare JSON object.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = anthropic_sdk.AsyncAnthropic(api_key=require_api_key(config))

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(
        self, prompt: str, label: str, system: str | None = None, json_mode: bool = False
    ) -> ModelResponse:
        start = time.monotonic()
        request = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system
        if self._config.temperature is not None:
            request["temperature"] = self._config.temperature

        response = await call_with_timeout(self._config, self._client.messages.create(**request))
        latency = time.monotonic() - start

        text = "\n".join(b.text for b in (response.content or []) if b.type == "text")
        if not text:
            raise ProviderError(self._config.name, "No text blocks in response")

        usage = response.usage
        token_count = usage.input_tokens + usage.output_tokens if usage else None
        logger.info("Anthropic %s: %.2fs, %s tokens", label, latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            label=label,
            content=text,
            latency_sec=latency,
            token_count=token_count,
        )

"""Gemini provider using google-genai SDK with native async."""

import logging
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from refinery.models import ModelResponse
from refinery.providers.base import AIProvider, ProviderError, call_with_timeout, require_api_key

logger = logging.getLogger(__name__)


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = genai.Client(api_key=require_api_key(config))

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _generation_config(self, system: str | None, json_mode: bool) -> genai_types.GenerateContentConfig:
        return genai_types.GenerateContentConfig(
            max_output_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            system_instruction=system,
            response_mime_type="application/json" if json_mode else None,
        )

    async def generate(
        self, prompt: str, label: str, system: str | None = None, json_mode: bool = False
    ) -> ModelResponse:
        start = time.monotonic()
        response = await call_with_timeout(
            self._config,
            self._client.aio.models.generate_content(
                model=self._config.model,
                contents=prompt,
                config=self._generation_config(system, json_mode),
            ),
        )
        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        usage = response.usage_metadata
        token_count = usage.total_token_count if usage else None
        logger.info("Gemini %s: %.2fs, %s tokens", label, latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            label=label,
            content=response.text,
            latency_sec=latency,
            token_count=token_count,
        )

"""Fixer capability backed by an LLM provider, one instance per dimension."""

import logging
import time

from config.config_loader import PromptsConfig
from refinery.capabilities import CapabilityError, Fixer, check_fixer_table
from refinery.models import Dimension, FixerRequest, FixerResult, Source
from refinery.parsing import clamp_confidence, extract_json, parse_edits
from refinery.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

MAX_EDITS_PER_FIXER = 5
_SOURCE_EXCERPT_CHARS = 2000


def format_sources(sources: tuple[Source, ...]) -> str:
    if not sources:
        return "No sources provided."
    return "\n\n".join(
        f"[{i}] {s.title} ({s.url})\n{s.content[:_SOURCE_EXCERPT_CHARS]}" for i, s in enumerate(sources, start=1)
    )


class LLMFixer(Fixer):
    """Asks a provider for targeted edits that repair a single dimension."""

    def __init__(self, dimension: Dimension, provider: AIProvider, prompts: PromptsConfig) -> None:
        self._dimension = dimension
        self._provider = provider
        self._prompts = prompts

    @property
    def dimension(self) -> Dimension:
        return self._dimension

    async def suggest_edits(self, request: FixerRequest) -> FixerResult:
        start = time.monotonic()
        capability = f"fixer:{self._dimension.value}"
        prompt = self._prompts.fix.format(
            focus=self._prompts.fixer_focus.get(self._dimension.value, self._dimension.value),
            score=f"{request.dimension_score:.1f}",
            dimension=self._dimension.value,
            critique=request.critique or "No critique provided.",
            brief=request.brief,
            sources=format_sources(request.sources),
        )
        try:
            response = await self._provider.generate(prompt, f"fix:{self._dimension.value}", json_mode=True)
        except ProviderError as exc:
            raise CapabilityError(capability, str(exc)) from exc

        data = extract_json(response.content, capability)
        edits = parse_edits(data.get("suggested_edits"))
        if len(edits) > MAX_EDITS_PER_FIXER:
            logger.debug("%s returned %d edits, keeping %d", capability, len(edits), MAX_EDITS_PER_FIXER)
            edits = edits[:MAX_EDITS_PER_FIXER]

        return FixerResult(
            dimension=self._dimension,
            suggested_edits=edits,
            confidence=clamp_confidence(data.get("confidence")),
            processing_time_sec=time.monotonic() - start,
        )


def build_fixers(provider: AIProvider, prompts: PromptsConfig) -> dict[Dimension, Fixer]:
    """One LLMFixer per dimension, all sharing a provider."""
    return check_fixer_table({dim: LLMFixer(dim, provider, prompts) for dim in Dimension})

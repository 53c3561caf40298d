"""Provider health checks: each provider must return a JSON object before a run."""

import asyncio
import logging
import time
from dataclasses import dataclass

from refinery.capabilities import CapabilityError
from refinery.parsing import extract_json
from refinery.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = 'Reply with exactly this JSON object and nothing else: {"status": "ok"}'
_TIMEOUT_SEC = 15.0


@dataclass(frozen=True)
class ProviderHealth:
    ok: bool
    error: str = ""
    latency_sec: float = 0.0


async def _check_one(name: str, provider: AIProvider) -> ProviderHealth:
    start = time.monotonic()
    try:
        response = await asyncio.wait_for(
            provider.generate(_PING_PROMPT, label="healthcheck", json_mode=True), timeout=_TIMEOUT_SEC
        )
        extract_json(response.content, name)
    except CapabilityError as exc:
        logger.debug("Health check for %s returned no usable JSON: %s", name, exc)
        return ProviderHealth(False, f"Reply was not JSON: {exc}", time.monotonic() - start)
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", name, exc)
        return ProviderHealth(False, str(exc) or type(exc).__name__, time.monotonic() - start)
    return ProviderHealth(True, latency_sec=time.monotonic() - start)


async def run_health_checks(providers: dict[str, AIProvider]) -> dict[str, ProviderHealth]:
    """Ping all providers in parallel, keyed by provider name."""
    names = list(providers)
    results = await asyncio.gather(*(_check_one(n, providers[n]) for n in names))
    return dict(zip(names, results))

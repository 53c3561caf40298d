"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    temperature: float | None = None


@dataclass
class PromptsConfig:
    evaluate: str
    discuss: str
    arbitrate: str
    fix: str
    personas: dict[str, str] = field(default_factory=dict)      # role -> persona text
    fixer_focus: dict[str, str] = field(default_factory=dict)   # dimension -> focus text


@dataclass
class ScoringConfig:
    disagreement_tolerance: float = 2.0
    review_confidence: float = 0.6
    unresolved_confidence_discount: float = 0.8
    evaluator_retries: int = 2
    retry_base_delay_sec: float = 0.5
    retry_max_delay_sec: float = 3.0
    min_panel_size: int = 2


@dataclass
class RefinementConfig:
    repair_threshold: float = 7.0
    quality_gate: float = 8.0
    max_attempts: int = 3
    fixer_retries: int = 2


@dataclass
class DefaultsConfig:
    output_dir: Path
    evaluator_providers: dict[str, str] = field(default_factory=dict)   # role -> provider
    fixer_provider: str = "claude"


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    refinement: RefinementConfig = field(default_factory=RefinementConfig)
    inbox: InboxConfig = field(default_factory=InboxConfig)
    available_providers: set[str] = field(default_factory=set)


def _load_scoring(raw: dict) -> ScoringConfig:
    base = ScoringConfig()
    return ScoringConfig(
        disagreement_tolerance=float(raw.get("disagreement_tolerance", base.disagreement_tolerance)),
        review_confidence=float(raw.get("review_confidence", base.review_confidence)),
        unresolved_confidence_discount=float(
            raw.get("unresolved_confidence_discount", base.unresolved_confidence_discount)
        ),
        evaluator_retries=int(raw.get("evaluator_retries", base.evaluator_retries)),
        retry_base_delay_sec=float(raw.get("retry_base_delay_sec", base.retry_base_delay_sec)),
        retry_max_delay_sec=float(raw.get("retry_max_delay_sec", base.retry_max_delay_sec)),
        min_panel_size=int(raw.get("min_panel_size", base.min_panel_size)),
    )


def _load_refinement(raw: dict) -> RefinementConfig:
    base = RefinementConfig()
    return RefinementConfig(
        repair_threshold=float(raw.get("repair_threshold", base.repair_threshold)),
        quality_gate=float(raw.get("quality_gate", base.quality_gate)),
        max_attempts=int(raw.get("max_attempts", base.max_attempts)),
        fixer_retries=int(raw.get("fixer_retries", base.fixer_retries)),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs warnings for missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        output_dir=Path(defaults_raw["output_dir"]),
        evaluator_providers={str(k): str(v) for k, v in defaults_raw.get("evaluator_providers", {}).items()},
        fixer_provider=str(defaults_raw.get("fixer_provider", "claude")),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        evaluate=prompts_raw["evaluate"],
        discuss=prompts_raw["discuss"],
        arbitrate=prompts_raw["arbitrate"],
        fix=prompts_raw["fix"],
        personas={str(k): str(v) for k, v in raw.get("personas", {}).items()},
        fixer_focus={str(k): str(v) for k, v in raw.get("fixer_focus", {}).items()},
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            temperature=float(model_raw["temperature"]) if model_raw.get("temperature") is not None else None,
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s (set %s in .env)",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        scoring=_load_scoring(raw.get("scoring", {})),
        refinement=_load_refinement(raw.get("refinement", {})),
        inbox=inbox,
        available_providers=available_providers,
    )

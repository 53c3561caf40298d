"""Shared pytest fixtures and test doubles."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    DefaultsConfig,
    ModelConfig,
    PromptsConfig,
    RefinementConfig,
    ScoringConfig,
)
from refinery.capabilities import CapabilityError, Evaluator, Fixer
from refinery.dimensions import weighted_overall
from refinery.models import (
    ClarityScore,
    ConsensusMethod,
    Dimension,
    DimensionScore,
    EditPriority,
    EvaluatorRole,
    EvaluatorVerdict,
    FixerRequest,
    FixerResult,
    Issue,
    ModelResponse,
    SuggestedEdit,
)
from refinery.providers.base import AIProvider


# ── Builders ──────────────────────────────────────────────────────────────────

def scores(default: float = 8.0, **overrides: float) -> dict[Dimension, float]:
    """All 7 dimensions at default, with keyword overrides by dimension value."""
    result = {d: default for d in Dimension}
    for name, value in overrides.items():
        result[Dimension(name)] = value
    return result


def make_verdict(
    role: EvaluatorRole,
    dimension_scores: dict[Dimension, float] | None = None,
    confidence: float = 0.8,
    issues: tuple[Issue, ...] = (),
    critique: str = "",
) -> EvaluatorVerdict:
    values = dimension_scores or scores()
    breakdown = tuple(
        DimensionScore(dimension=d, score=values[d], reasoning=f"{role.value} on {d.value}") for d in Dimension
    )
    return EvaluatorVerdict(
        role=role,
        overall_score=weighted_overall(breakdown),
        confidence=confidence,
        critique=critique or f"{role.value} critique",
        dimension_scores=breakdown,
        issues=issues,
        evaluated_at="2026-01-01T00:00:00+00:00",
    )


def make_clarity(dimension_scores: dict[Dimension, float] | None = None) -> ClarityScore:
    values = dimension_scores or scores()
    breakdown = tuple(
        DimensionScore(dimension=d, score=values[d], reasoning=f"critique for {d.value}") for d in Dimension
    )
    return ClarityScore(
        overall_score=weighted_overall(breakdown),
        dimension_breakdown=breakdown,
        critique="panel critique",
        confidence=0.8,
        evaluator_verdicts=(),
        consensus_method=ConsensusMethod.MEDIAN,
        has_disagreement=False,
        needs_human_review=False,
    )


def make_edit(original: str, suggested: str, section: str = "body") -> SuggestedEdit:
    return SuggestedEdit(
        section=section,
        original_text=original,
        suggested_text=suggested,
        rationale=f"replace {original!r}",
        priority=EditPriority.MEDIUM,
    )


def _respond(value):
    if isinstance(value, BaseException):
        raise value
    return value


# ── Test doubles ──────────────────────────────────────────────────────────────

VerdictSource = dict[EvaluatorRole, EvaluatorVerdict | Exception] | Callable[[str, EvaluatorRole], EvaluatorVerdict]


class MockEvaluator(Evaluator):
    """Test double Evaluator.

    verdicts is either a role -> verdict/exception mapping or a function of
    (brief, role). Discussion returns the revised verdict for the role when
    one is given, otherwise the evaluator's own verdict unchanged.
    """

    def __init__(
        self,
        verdicts: VerdictSource,
        revised: dict[EvaluatorRole, EvaluatorVerdict | Exception] | None = None,
        arbiter: EvaluatorVerdict | Exception | None = None,
    ) -> None:
        self._verdicts = verdicts
        self._revised = revised or {}
        self._arbiter = arbiter
        # Shadow the class methods with AsyncMocks at the instance level.
        self.evaluate = AsyncMock(side_effect=self._evaluate)  # type: ignore[assignment]
        self.discuss = AsyncMock(side_effect=self._discuss)  # type: ignore[assignment]
        self.arbitrate = AsyncMock(side_effect=self._arbitrate)  # type: ignore[assignment]

    async def _evaluate(self, brief, role):
        if callable(self._verdicts):
            return _respond(self._verdicts(brief, role))
        return _respond(self._verdicts[role])

    async def _discuss(self, brief, role, own_verdict, verdicts, disagreement):
        return _respond(self._revised.get(role, own_verdict))

    async def _arbitrate(self, brief, verdicts, disagreement, discussion_summary):
        if self._arbiter is None:
            raise CapabilityError("arbiter", "no arbiter configured")
        return _respond(self._arbiter), "arbiter resolution"

    async def evaluate(self, brief, role):  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return await self._evaluate(brief, role)

    async def discuss(self, brief, role, own_verdict, verdicts, disagreement):  # type: ignore[override]
        return await self._discuss(brief, role, own_verdict, verdicts, disagreement)

    async def arbitrate(self, brief, verdicts, disagreement, discussion_summary):  # type: ignore[override]
        return await self._arbitrate(brief, verdicts, disagreement, discussion_summary)


class MockFixer(Fixer):
    """Test double Fixer returning fixed edits, or raising `error` every call."""

    def __init__(
        self,
        dimension: Dimension,
        edits: tuple[SuggestedEdit, ...] = (),
        error: Exception | None = None,
    ) -> None:
        self._dimension = dimension
        result = FixerResult(dimension=dimension, suggested_edits=edits, confidence=0.8, processing_time_sec=0.01)
        self.suggest_edits = AsyncMock(  # type: ignore[assignment]
            side_effect=error if error is not None else None,
            return_value=result,
        )

    @property
    def dimension(self) -> Dimension:
        return self._dimension

    async def suggest_edits(self, request: FixerRequest) -> FixerResult:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return FixerResult(self._dimension, (), 0.0, 0.0)


def make_fixers(**edits_by_dimension: tuple[SuggestedEdit, ...]) -> dict[Dimension, MockFixer]:
    """A full fixer table; keyword args give edits for specific dimensions."""
    return {d: MockFixer(d, edits_by_dimension.get(d.value, ())) for d in Dimension}


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                label="mock",
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(  # type: ignore[override]
        self, prompt: str, label: str, system: str | None = None, json_mode: bool = False
    ) -> ModelResponse:
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(self._name, "mock-model", label, self._response_content, 0.1, 10)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def scoring_config() -> ScoringConfig:
    return ScoringConfig(retry_base_delay_sec=0.0, retry_max_delay_sec=0.0)


@pytest.fixture
def refinement_config() -> RefinementConfig:
    return RefinementConfig()


@pytest.fixture
def panel_verdicts() -> dict[EvaluatorRole, EvaluatorVerdict]:
    return {
        EvaluatorRole.SKEPTIC: make_verdict(EvaluatorRole.SKEPTIC),
        EvaluatorRole.ADVOCATE: make_verdict(EvaluatorRole.ADVOCATE),
        EvaluatorRole.GENERALIST: make_verdict(EvaluatorRole.GENERALIST),
    }


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        evaluate="{persona}\nFocus: {focus}\n{brief}\n{guidelines}\nDimensions: {dimension_names}",
        discuss="{persona}\n{disagreement}\n{role}\n{own_verdict}\n{other_verdicts}\n{brief}",
        arbitrate="{persona}\n{disputed} {max_spread}\n{brief}\n{positions}\n{discussion_summary}\n{guidelines}\n{dimension_names}",
        fix="{focus}\n{score} {dimension}\n{critique}\n{brief}\n{sources}",
        personas={"skeptic": "You are The Skeptic.", "arbiter": "You are The Arbiter."},
        fixer_focus={"accessibility": "improving readability"},
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        output_dir=tmp_path / "output",
        evaluator_providers={"skeptic": "claude", "advocate": "openai", "generalist": "gemini", "arbiter": "claude"},
        fixer_provider="claude",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-haiku-4-5",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": model_cfg},
        prompts=sample_prompts_config,
        available_providers={"claude"},
    )


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()

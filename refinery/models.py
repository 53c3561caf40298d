"""Pure dataclasses for the consensus scoring and refinement engine. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum


class Dimension(str, Enum):
    FIRST_PRINCIPLES_COHERENCE = "first_principles_coherence"
    INTERNAL_CONSISTENCY = "internal_consistency"
    EVIDENCE_QUALITY = "evidence_quality"
    ACCESSIBILITY = "accessibility"
    OBJECTIVITY = "objectivity"
    FACTUAL_ACCURACY = "factual_accuracy"
    BIAS_DETECTION = "bias_detection"


class EvaluatorRole(str, Enum):
    SKEPTIC = "skeptic"
    ADVOCATE = "advocate"
    GENERALIST = "generalist"
    ARBITER = "arbiter"


PANEL_ROLES: tuple[EvaluatorRole, ...] = (
    EvaluatorRole.SKEPTIC,
    EvaluatorRole.ADVOCATE,
    EvaluatorRole.GENERALIST,
)


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EditPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConsensusMethod(str, Enum):
    MEDIAN = "median"
    POST_DISCUSSION = "post_discussion"
    TIEBREAKER = "tiebreaker"


class QualityTier(str, Enum):
    HIGH = "high"                # >= quality gate
    ACCEPTABLE = "acceptable"    # publishable with a warning
    FAILED = "failed"


@dataclass(frozen=True)
class ModelResponse:
    provider: str          # "claude", "openai", "gemini", "grok"
    model: str             # actual model string used
    label: str             # what the call was for, e.g. "evaluate:skeptic"
    content: str
    latency_sec: float
    token_count: int | None


@dataclass(frozen=True)
class DimensionScore:
    dimension: Dimension
    score: float           # 0.0 - 10.0
    reasoning: str
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class Issue:
    dimension: Dimension
    severity: Severity
    description: str
    quote: str | None = None
    suggested_fix: str | None = None


@dataclass(frozen=True)
class EvaluatorVerdict:
    role: EvaluatorRole
    overall_score: float
    confidence: float      # 0 - 1
    critique: str
    dimension_scores: tuple[DimensionScore, ...]
    issues: tuple[Issue, ...] = ()
    evaluated_at: str = ""

    def score_for(self, dimension: Dimension) -> float:
        for ds in self.dimension_scores:
            if ds.dimension == dimension:
                return ds.score
        raise KeyError(dimension)


@dataclass(frozen=True)
class EvaluatorPosition:
    evaluator: EvaluatorRole
    overall_score: float
    divergent_dimensions: tuple[tuple[Dimension, float], ...] = ()


@dataclass(frozen=True)
class DisagreementResult:
    has_disagreement: bool
    disagreeing_dimensions: tuple[Dimension, ...]
    max_spread: float
    evaluator_positions: tuple[EvaluatorPosition, ...] = ()


@dataclass(frozen=True)
class PrioritizedIssue:
    dimension: Dimension
    issue: str
    suggested_fix: str
    priority: EditPriority
    quote: str | None = None
    agreed_by_evaluators: int = 1


@dataclass(frozen=True)
class ClarityScore:
    overall_score: float
    dimension_breakdown: tuple[DimensionScore, ...]
    critique: str
    confidence: float
    evaluator_verdicts: tuple[EvaluatorVerdict, ...]
    consensus_method: ConsensusMethod
    has_disagreement: bool
    needs_human_review: bool
    review_reason: str | None = None
    prioritized_issues: tuple[PrioritizedIssue, ...] = ()
    scored_at: str = ""

    def score_for(self, dimension: Dimension) -> float:
        for ds in self.dimension_breakdown:
            if ds.dimension == dimension:
                return ds.score
        raise KeyError(dimension)

    def reasoning_for(self, dimension: Dimension) -> str:
        for ds in self.dimension_breakdown:
            if ds.dimension == dimension:
                return ds.reasoning
        return ""


@dataclass(frozen=True)
class DiscussionOutcome:
    revised_verdicts: tuple[EvaluatorVerdict, ...]
    discussion_summary: str
    changes_count: int
    duration_sec: float


@dataclass(frozen=True)
class TiebreakerOutcome:
    verdict: EvaluatorVerdict
    resolution_summary: str
    duration_sec: float


@dataclass(frozen=True)
class Source:
    url: str
    title: str
    content: str


@dataclass(frozen=True)
class SuggestedEdit:
    section: str
    original_text: str
    suggested_text: str
    rationale: str
    priority: EditPriority = EditPriority.MEDIUM


@dataclass(frozen=True)
class SkippedEdit:
    edit: SuggestedEdit
    reason: str


@dataclass(frozen=True)
class FixerRequest:
    brief: str
    dimension: Dimension
    dimension_score: float
    critique: str
    sources: tuple[Source, ...] = ()


@dataclass(frozen=True)
class FixerResult:
    dimension: Dimension
    suggested_edits: tuple[SuggestedEdit, ...]
    confidence: float
    processing_time_sec: float
    error: str | None = None


@dataclass(frozen=True)
class OrchestratorResult:
    fixers_deployed: tuple[Dimension, ...]
    fixer_results: tuple[FixerResult, ...]
    all_suggested_edits: tuple[SuggestedEdit, ...]
    total_processing_time_sec: float


@dataclass(frozen=True)
class ReconciliationResult:
    revised_brief: str
    edits_applied: tuple[SuggestedEdit, ...]
    edits_skipped: tuple[SkippedEdit, ...]


@dataclass(frozen=True)
class DimensionChange:
    before: float
    after: float


@dataclass(frozen=True)
class RefinementAttempt:
    attempt_number: int
    fixers_deployed: tuple[Dimension, ...]
    edits_applied: tuple[SuggestedEdit, ...]
    edits_skipped: tuple[SkippedEdit, ...]
    score_before: float
    score_after: float
    dimension_changes: dict[Dimension, DimensionChange] = field(default_factory=dict)
    processing_time_sec: float = 0.0


@dataclass(frozen=True)
class RefinementResult:
    final_brief: str
    final_score: float
    success: bool
    attempts: tuple[RefinementAttempt, ...]
    total_processing_time_sec: float
    quality_warning: bool = False
    warning_reason: str | None = None
    final_clarity: ClarityScore | None = None

"""Contracts for the two external capabilities the engine consumes.

The engine never computes a judgment itself: evaluators return structured
verdicts and fixers return suggested edits. Concrete LLM-backed versions live
in llm_evaluator.py and llm_fixer.py; tests substitute in-memory doubles.
"""

from abc import ABC, abstractmethod

from refinery.models import (
    Dimension,
    DisagreementResult,
    EvaluatorRole,
    EvaluatorVerdict,
    FixerRequest,
    FixerResult,
)


class CapabilityError(Exception):
    """Raised when an evaluator or fixer call fails or returns an unusable reply."""

    def __init__(self, capability: str, message: str) -> None:
        self.capability = capability
        super().__init__(f"[{capability}] {message}")


class Evaluator(ABC):
    """Scores a brief from the perspective of one evaluator role."""

    @abstractmethod
    async def evaluate(self, brief: str, role: EvaluatorRole) -> EvaluatorVerdict:
        """Return a verdict covering all 7 dimensions.

        Raises:
            CapabilityError: On transport failure or malformed reply.
        """
        ...

    @abstractmethod
    async def discuss(
        self,
        brief: str,
        role: EvaluatorRole,
        own_verdict: EvaluatorVerdict,
        verdicts: list[EvaluatorVerdict],
        disagreement: DisagreementResult,
    ) -> EvaluatorVerdict:
        """Return this role's (possibly revised) verdict after seeing the others."""
        ...

    @abstractmethod
    async def arbitrate(
        self,
        brief: str,
        verdicts: list[EvaluatorVerdict],
        disagreement: DisagreementResult,
        discussion_summary: str,
    ) -> tuple[EvaluatorVerdict, str]:
        """Return the arbiter's binding verdict and a resolution summary."""
        ...


class Fixer(ABC):
    """Suggests edits that repair one weak dimension."""

    @property
    @abstractmethod
    def dimension(self) -> Dimension:
        ...

    @abstractmethod
    async def suggest_edits(self, request: FixerRequest) -> FixerResult:
        """Return suggested edits for request.dimension.

        Raises:
            CapabilityError: On transport failure or malformed reply.
        """
        ...


def check_fixer_table(fixers: dict[Dimension, Fixer]) -> dict[Dimension, Fixer]:
    """Ensure every dimension has exactly one fixer bound to it."""
    missing = [d.value for d in Dimension if d not in fixers]
    if missing:
        raise ValueError(f"No fixer bound for dimension(s): {', '.join(missing)}")
    mismatched = [d.value for d, f in fixers.items() if f.dimension != d]
    if mismatched:
        raise ValueError(f"Fixer bound to the wrong dimension: {', '.join(mismatched)}")
    return fixers

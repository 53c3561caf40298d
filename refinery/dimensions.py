"""The 7 clarity dimensions: weights, descriptions, scoring guidelines."""

from dataclasses import dataclass

from refinery.models import Dimension, DimensionScore, QualityTier


@dataclass(frozen=True)
class DimensionSpec:
    dimension: Dimension
    weight: float          # 0-1, all dimensions sum to 1
    description: str
    guidelines: str


DIMENSIONS: dict[Dimension, DimensionSpec] = {
    Dimension.FIRST_PRINCIPLES_COHERENCE: DimensionSpec(
        Dimension.FIRST_PRINCIPLES_COHERENCE,
        0.20,
        "How well the brief builds arguments from foundational truths rather than assumptions",
        "10: arguments derive from first principles with explicit logical chains\n"
        "8-9: strong foundational reasoning with minor gaps\n"
        "6-7: some first-principles thinking but relies on unstated assumptions\n"
        "4-5: mostly conventional wisdom without questioning premises\n"
        "1-3: unexamined assumptions or circular reasoning",
    ),
    Dimension.INTERNAL_CONSISTENCY: DimensionSpec(
        Dimension.INTERNAL_CONSISTENCY,
        0.15,
        "Whether the brief's claims and arguments align without contradictions",
        "10: perfect logical consistency; all claims support each other\n"
        "8-9: highly consistent with no contradictions\n"
        "6-7: generally consistent but some tension between sections\n"
        "4-5: notable contradictions that undermine arguments\n"
        "1-3: major internal contradictions",
    ),
    Dimension.EVIDENCE_QUALITY: DimensionSpec(
        Dimension.EVIDENCE_QUALITY,
        0.20,
        "The strength, relevance, and diversity of sources and data cited",
        "10: primary sources, peer-reviewed research, all claims backed\n"
        "8-9: strong evidence base with minor gaps\n"
        "6-7: adequate evidence but heavy reliance on secondary sources\n"
        "4-5: few sources, mainly opinion or low-credibility outlets\n"
        "1-3: no evidence or only anecdotal support",
    ),
    Dimension.ACCESSIBILITY: DimensionSpec(
        Dimension.ACCESSIBILITY,
        0.15,
        "How easily an average educated reader can understand the content",
        "10: crystal clear; no jargon without definition\n"
        "8-9: highly accessible; rare jargon is explained\n"
        "6-7: mostly clear but some sections require domain knowledge\n"
        "4-5: dense or technical; assumes significant prior knowledge\n"
        "1-3: impenetrable to non-specialists",
    ),
    Dimension.OBJECTIVITY: DimensionSpec(
        Dimension.OBJECTIVITY,
        0.10,
        "Whether the brief presents multiple perspectives fairly without advocacy",
        "10: all major perspectives presented fairly\n"
        "8-9: strong objectivity with balanced treatment\n"
        "6-7: generally objective but slightly favors one perspective\n"
        "4-5: clear preference for certain viewpoints\n"
        "1-3: one-sided advocacy; opposing views strawmanned",
    ),
    Dimension.FACTUAL_ACCURACY: DimensionSpec(
        Dimension.FACTUAL_ACCURACY,
        0.15,
        "Whether stated facts, statistics, and claims are verifiably correct",
        "10: all facts verified; statistics cited with context\n"
        "8-9: highly accurate; minor issues don't affect conclusions\n"
        "6-7: mostly accurate but some unverified claims\n"
        "4-5: several factual errors that affect argument validity\n"
        "1-3: major factual errors or fabricated claims",
    ),
    Dimension.BIAS_DETECTION: DimensionSpec(
        Dimension.BIAS_DETECTION,
        0.05,
        "Identification and mitigation of cognitive, selection, or framing biases",
        "10: no detectable bias; actively addresses potential biases\n"
        "8-9: minimal bias; diverse framing and source selection\n"
        "6-7: some bias in framing or source selection\n"
        "4-5: notable bias in framing or evidence selection\n"
        "1-3: cherry-picked evidence, loaded language, misleading framing",
    ),
}

ACCEPTABLE_SCORE = 6.0


def weight_of(dimension: Dimension) -> float:
    return DIMENSIONS[dimension].weight


def weighted_overall(scores: list[DimensionScore] | tuple[DimensionScore, ...]) -> float:
    """Dimension-weighted mean, one decimal place, clamped to [0, 10]."""
    total_weight = sum(weight_of(ds.dimension) for ds in scores)
    if total_weight == 0:
        return 0.0
    weighted = sum(ds.score * weight_of(ds.dimension) for ds in scores) / total_weight
    return round(min(10.0, max(0.0, weighted)), 1)


def format_guidelines(dimensions: list[Dimension] | None = None) -> str:
    """Render dimension descriptions and guidelines for a prompt."""
    selected = dimensions if dimensions is not None else list(Dimension)
    parts: list[str] = []
    for dim in selected:
        spec = DIMENSIONS[dim]
        parts.append(
            f"### {dim.value} (weight: {spec.weight * 100:.0f}%)\n"
            f"{spec.description}\n\nScoring guidelines:\n{spec.guidelines}"
        )
    return "\n\n".join(parts)


def quality_tier(score: float, gate: float = 8.0) -> QualityTier:
    if score >= gate:
        return QualityTier.HIGH
    if score >= ACCEPTABLE_SCORE:
        return QualityTier.ACCEPTABLE
    return QualityTier.FAILED

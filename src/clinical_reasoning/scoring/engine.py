"""
Collaborative scoring.

Derives the score snapshot for a session from its hypotheses and comments.
The computation is pure and is repeated in full after every mutation.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from pydantic import BaseModel, Field

from clinical_reasoning.config import Settings
from clinical_reasoning.session.schemas import Hypothesis, Score

MAX_SCORE = 100


class ScoringWeights(BaseModel):
    """Tuning constants for the saturating score components."""

    reasoning: int = Field(default=8, ge=0, description="Points per hypothesis")
    author: int = Field(default=20, ge=0, description="Points per distinct contributor")
    comment: int = Field(default=5, ge=0, description="Points per comment")
    evidence: int = Field(default=10, ge=0, description="Points per evidence-based comment")
    reflection: int = Field(default=10, ge=0, description="Points per reflective comment")

    @classmethod
    def from_settings(cls, settings: Settings) -> ScoringWeights:
        """Build weights from application settings."""
        return cls(
            reasoning=settings.reasoning_weight,
            author=settings.author_weight,
            comment=settings.comment_weight,
            evidence=settings.evidence_weight,
            reflection=settings.reflection_weight,
        )


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    """Integer percentage of part over whole; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def saturate(value: int) -> int:
    """Clamp a score component into [0, 100]."""
    return max(0, min(MAX_SCORE, value))


def distinct_families(hypotheses: Sequence[Hypothesis]) -> set[str]:
    """Family ids referenced by at least one hypothesis."""
    return {h.family_id for h in hypotheses if h.family_id is not None}


def distinct_authors(hypotheses: Sequence[Hypothesis]) -> set[str]:
    """Everyone who authored a hypothesis or a comment on one."""
    authors = {h.author_id for h in hypotheses}
    for hypothesis in hypotheses:
        authors.update(c.author_id for c in hypothesis.comments)
    return authors


def compute_score(
    hypotheses: Sequence[Hypothesis],
    total_families: int,
    weights: ScoringWeights | None = None,
) -> Score:
    """
    Compute a complete score snapshot.

    Args:
        hypotheses: All hypotheses in the session.
        total_families: Size of the family taxonomy.
        weights: Scoring constants. Defaults to ScoringWeights().

    Returns:
        A new Score with every component recomputed.
    """
    weights = weights or ScoringWeights()

    diversity = len(distinct_families(hypotheses))
    comments = [c for h in hypotheses for c in h.comments]
    evidence_comments = sum(1 for c in comments if c.is_evidence)
    reflection_comments = sum(1 for c in comments if c.is_reflection)

    collaboration = len(distinct_authors(hypotheses)) * weights.author + len(comments) * weights.comment

    return Score(
        diversity=diversity,
        coverage=saturate(percentage(diversity, total_families)),
        reasoning=saturate(len(hypotheses) * weights.reasoning),
        collaboration=saturate(collaboration),
        evidence_engagement=saturate(evidence_comments * weights.evidence),
        metacognition=saturate(reflection_comments * weights.reflection),
    )

"""
Scoring module.

Pure functions deriving the collaborative score and the facilitator
dashboard metrics from session state.
"""

from clinical_reasoning.scoring.engine import ScoringWeights, compute_score
from clinical_reasoning.scoring.facilitator import compute_facilitator_metrics

__all__ = [
    "ScoringWeights",
    "compute_score",
    "compute_facilitator_metrics",
]

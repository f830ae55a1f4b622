"""
Session module for collaborative working state.

Exposes the session schemas and the persistence interface. The store,
phase controller and authorization policy live in their own modules
(`store`, `phases`, `policy`) and build on the scoring engines.
"""

from clinical_reasoning.session.repository import InMemorySessionRepository, SessionRepository
from clinical_reasoning.session.schemas import (
    Comment,
    DiscussionEntry,
    DiscussionThread,
    FacilitatorMetrics,
    Hypothesis,
    HypothesisStatus,
    Score,
    Session,
    SessionPhase,
)

__all__ = [
    "Comment",
    "DiscussionEntry",
    "DiscussionThread",
    "FacilitatorMetrics",
    "Hypothesis",
    "HypothesisStatus",
    "Score",
    "Session",
    "SessionPhase",
    "InMemorySessionRepository",
    "SessionRepository",
]

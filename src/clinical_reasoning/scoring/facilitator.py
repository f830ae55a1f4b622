"""
Facilitator metrics.

Derives participation, discussion and learning-objective measures for the
facilitator dashboard, plus the advisory suggestions and readiness gates
built on top of them. Pure and deterministic given a session and its group.
"""

from __future__ import annotations

from collections.abc import Sequence

from clinical_reasoning.catalog.schemas import Group
from clinical_reasoning.scoring.engine import percentage, round_half_up, saturate
from clinical_reasoning.session.schemas import (
    CompetencyScores,
    FacilitatorMetrics,
    Hypothesis,
    HypothesisStatus,
    MilestoneProgress,
    ReadinessFlags,
    Session,
    SessionPhase,
)

MAX_DISCUSSION_DEPTH = 5

# Learning-objective alignment weights (sum to 100)
RATIONALE_WEIGHT = 40
EVIDENCE_WEIGHT = 35
REVIEWED_WEIGHT = 25

SUGGEST_PARTICIPATION = "Address participation inequality: invite quieter members to share their hypotheses."
SUGGEST_EVIDENCE = "Prompt evidence-based discussion: ask the group which case findings support or refute each hypothesis."
SUGGEST_RATIONALE = "Strengthen clinical rationales: ask learners to link each hypothesis to specific case findings."
SUGGEST_REFLECTION = "Encourage reflection: ask the group which assumptions changed during peer review."


def participation_breakdown(session: Session, group: Group) -> dict[str, int]:
    """
    Count contributions per group member.

    Hypotheses and discussion entries authored by non-members are ignored.
    """
    counts = {user_id: 0 for user_id in group.member_ids}
    for hypothesis in session.hypotheses:
        if hypothesis.author_id in counts:
            counts[hypothesis.author_id] += 1
    for entry in session.discussions:
        if entry.author_id in counts:
            counts[entry.author_id] += 1
    return counts


def participation_equity(breakdown: dict[str, int]) -> int:
    """Mean contribution as a percentage of the largest contribution."""
    if not breakdown:
        return 0
    largest = max(breakdown.values())
    if largest == 0:
        return 0
    mean = sum(breakdown.values()) / len(breakdown)
    return percentage(mean, largest)


def evidence_discussion_count(session: Session) -> int:
    """Discussion panel entries that engage with case evidence."""
    return sum(1 for d in session.discussions if d.is_evidence)


def discussion_depth(evidence_discussions: int, total_comments: int) -> int:
    """Bounded 0-5 depth from evidence discussion and comment volume."""
    return min(MAX_DISCUSSION_DEPTH, evidence_discussions + total_comments // 3)


def _fraction(hypotheses: Sequence[Hypothesis], predicate) -> float:
    if not hypotheses:
        return 0.0
    return sum(1 for h in hypotheses if predicate(h)) / len(hypotheses)


def learning_objective_alignment(hypotheses: Sequence[Hypothesis], rationale_min_length: int) -> int:
    """
    Weighted composite of rationale quality, evidence engagement and review completion.

    Args:
        hypotheses: Hypotheses in the session.
        rationale_min_length: Rationale length a hypothesis must exceed to count.

    Returns:
        Alignment in [0, 100]; 0 when there are no hypotheses.
    """
    substantive = _fraction(hypotheses, lambda h: len(h.rationale.strip()) > rationale_min_length)
    evidenced = _fraction(hypotheses, lambda h: any(c.is_evidence for c in h.comments))
    reviewed = _fraction(hypotheses, lambda h: h.status == HypothesisStatus.REVIEWED)
    composite = substantive * RATIONALE_WEIGHT + evidenced * EVIDENCE_WEIGHT + reviewed * REVIEWED_WEIGHT
    return saturate(round_half_up(composite))


def compute_facilitator_metrics(
    session: Session,
    group: Group,
    rationale_min_length: int = 50,
) -> FacilitatorMetrics:
    """
    Compute the full facilitator dashboard snapshot.

    Args:
        session: Session to measure.
        group: The session's group (membership restricts participation counts).
        rationale_min_length: Threshold for a substantive rationale.

    Returns:
        A new FacilitatorMetrics snapshot.
    """
    hypotheses = session.hypotheses
    total_comments = session.total_comments
    breakdown = participation_breakdown(session, group)
    equity = participation_equity(breakdown)
    evidence_discussions = evidence_discussion_count(session)
    depth = discussion_depth(evidence_discussions, total_comments)
    alignment = learning_objective_alignment(hypotheses, rationale_min_length)
    reflection_comments = sum(1 for h in hypotheses for c in h.comments if c.is_reflection)
    substantive = sum(1 for h in hypotheses if len(h.rationale.strip()) > rationale_min_length)

    competencies = CompetencyScores(
        clinical_reasoning=saturate(substantive * 25),
        evidence_evaluation=saturate(evidence_discussions * 20),
        peer_collaboration=equity,
        reflective_practice=saturate(reflection_comments * 10),
    )

    suggestions: list[str] = []
    if equity < 50:
        suggestions.append(SUGGEST_PARTICIPATION)
    if depth < 3:
        suggestions.append(SUGGEST_EVIDENCE)
    if alignment < 40:
        suggestions.append(SUGGEST_RATIONALE)
    if session.current_phase == SessionPhase.SYNTHESIS and reflection_comments == 0:
        suggestions.append(SUGGEST_REFLECTION)

    readiness = ReadinessFlags(
        phase_transition_ready=equity > 60 and depth > 2 and alignment >= 40,
        synthesis_ready=equity >= 70 and evidence_discussions >= 2,
    )

    milestone_progress = [
        MilestoneProgress(
            name="Hypothesis Generation",
            completed=len(hypotheses) >= 3,
            progress=saturate(len(hypotheses) * 33),
        ),
        MilestoneProgress(
            name="Peer Review Engagement",
            completed=total_comments >= 5,
            progress=saturate(total_comments * 20),
        ),
        MilestoneProgress(
            name="Evidence Integration",
            completed=evidence_discussions >= 2,
            progress=saturate(evidence_discussions * 50),
        ),
    ]

    return FacilitatorMetrics(
        participation_equity=equity,
        participation_breakdown=breakdown,
        discussion_depth=depth,
        learning_objective_alignment=alignment,
        learning_objective_progress=saturate(len(hypotheses) * 15),
        competencies=competencies,
        intervention_suggestions=suggestions,
        readiness=readiness,
        milestone_progress=milestone_progress,
        intervention_log=[entry.model_copy() for entry in session.intervention_log],
    )

"""
Pydantic schemas for the collaborative session.

Defines the session record, its hypotheses, comments and discussion, the
derived score and facilitator metrics snapshots, and the input payloads
accepted by the session store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class SessionPhase(str, Enum):
    """Phases of the collaborative workflow, in order."""

    INDIVIDUAL = "individual"
    PEER_REVIEW = "peer-review"
    SYNTHESIS = "synthesis"
    COMPLETED = "completed"


class HypothesisStatus(str, Enum):
    """Review status of a hypothesis."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending-review"
    REVIEWED = "reviewed"


# Comment/discussion categories the metrics engines look for
EVIDENCE_CATEGORY = "evidence-analysis"
REFLECTION_CATEGORIES = frozenset({"reflection", "metacognition"})


class Comment(BaseModel):
    """A peer comment attached to a hypothesis. Append-only."""

    comment_id: UUID = Field(default_factory=uuid4, description="Unique comment identifier")
    text: str = Field(..., description="Comment text")
    type: str = Field(
        default="general",
        description="Discussion intent (e.g. evidence-support, evidence-challenge, confidence-calibration)",
    )
    category: str = Field(
        default="hypothesis-discussion",
        description="Coarse grouping (e.g. evidence-analysis, reflection, peer-calibration)",
    )
    author_id: str = Field(..., description="Author user id")
    author_name: str = Field(default="", description="Author display name")
    confidence: int | None = Field(default=None, ge=1, le=5, description="Optional calibrated confidence")
    references_evidence: bool = Field(default=False, description="Whether the comment cites case evidence")
    created_at: datetime = Field(default_factory=_now_utc, description="When the comment was posted")

    @property
    def is_evidence(self) -> bool:
        """Whether this comment counts as evidence-based discussion."""
        return (
            self.category == EVIDENCE_CATEGORY
            or self.type.startswith("evidence-")
            or self.references_evidence
        )

    @property
    def is_reflection(self) -> bool:
        """Whether this comment counts as reflective practice."""
        return self.category in REFLECTION_CATEGORIES or self.type == "reflection"


class Hypothesis(BaseModel):
    """A learner's proposed clinical explanation."""

    hypothesis_id: UUID = Field(default_factory=uuid4, description="Unique hypothesis identifier")
    text: str = Field(..., description="Hypothesis statement")
    rationale: str = Field(..., description="Clinical reasoning behind the hypothesis")
    family_id: str | None = Field(default=None, description="Assigned family (None until categorized)")
    confidence: int = Field(default=3, ge=1, le=5, description="Author confidence (1-5)")
    is_primary: bool = Field(default=False, description="Marked as the leading hypothesis")
    author_id: str = Field(..., description="Author user id")
    author_name: str = Field(default="", description="Author display name")
    phase: SessionPhase = Field(..., description="Phase in which the hypothesis was created")
    status: HypothesisStatus = Field(default=HypothesisStatus.DRAFT, description="Review status")
    comments: list[Comment] = Field(default_factory=list, description="Peer comments, oldest first")
    created_at: datetime = Field(default_factory=_now_utc, description="Creation time")
    updated_at: datetime | None = Field(default=None, description="Last update time")
    submitted_for_review_at: datetime | None = Field(default=None, description="Submission time")


class DiscussionEntry(BaseModel):
    """A message in the session-level discussion panel."""

    entry_id: UUID = Field(default_factory=uuid4, description="Unique entry identifier")
    text: str = Field(..., description="Message text")
    type: str = Field(default="student-response", description="Message type")
    category: str = Field(default="general", description="Discussion category")
    author_id: str = Field(..., description="Author user id")
    author_name: str = Field(default="", description="Author display name")
    references_evidence: bool = Field(default=False, description="Whether the message cites case evidence")
    reflection_type: str | None = Field(default=None, description="Kind of reflection, if any")
    thread_id: UUID | None = Field(default=None, description="Thread this message belongs to")
    created_at: datetime = Field(default_factory=_now_utc, description="When the message was posted")

    @property
    def is_evidence(self) -> bool:
        """Whether this message counts as evidence-based discussion."""
        return (
            self.category == EVIDENCE_CATEGORY
            or self.type.startswith("evidence-")
            or self.references_evidence
        )


class DiscussionThread(BaseModel):
    """A session-level discussion thread, independent of any hypothesis."""

    thread_id: UUID = Field(default_factory=uuid4, description="Unique thread identifier")
    title: str = Field(..., description="Thread title")
    prompt: str = Field(default="", description="Opening prompt")
    category: str = Field(default="general", description="Discussion category")
    author_id: str = Field(..., description="Author user id")
    author_name: str = Field(default="", description="Author display name")
    created_at: datetime = Field(default_factory=_now_utc, description="When the thread was opened")


class PhaseSettings(BaseModel):
    """Per-phase configuration and completion state."""

    time_limit_minutes: int = Field(..., ge=1, description="Time allotted to the phase")
    completed: bool = Field(default=False, description="Whether the phase has been completed")
    completed_at: datetime | None = Field(default=None, description="When the phase was completed")
    educational_focus: str = Field(default="", description="What learners should focus on")


class LearningMilestone(BaseModel):
    """Snapshot recorded when the session enters a new phase."""

    phase: SessionPhase = Field(..., description="Phase entered")
    recorded_at: datetime = Field(default_factory=_now_utc, description="When the milestone was recorded")
    data: dict[str, Any] = Field(default_factory=dict, description="Measurements taken at transition")


class InterventionEntry(BaseModel):
    """A facilitator action recorded in the intervention log."""

    type: str = Field(..., description="Intervention type (e.g. engagement-prompt, phase-transition)")
    facilitator_id: str | None = Field(default=None, description="Facilitator who acted")
    context: dict[str, Any] = Field(default_factory=dict, description="Free-form context")
    timestamp: datetime = Field(default_factory=_now_utc, description="When the action happened")


class Score(BaseModel):
    """Collaborative score snapshot. Derived; recomputed on every mutation."""

    diversity: int = Field(default=0, ge=0, description="Distinct families referenced")
    coverage: int = Field(default=0, ge=0, le=100, description="Percentage of the taxonomy covered")
    reasoning: int = Field(default=0, ge=0, le=100, description="Hypothesis generation score")
    collaboration: int = Field(default=0, ge=0, le=100, description="Participation breadth and depth")
    evidence_engagement: int = Field(default=0, ge=0, le=100, description="Evidence-based commenting")
    metacognition: int = Field(default=0, ge=0, le=100, description="Reflective commenting")


class CompetencyScores(BaseModel):
    """Competency sub-scores shown on the facilitator dashboard."""

    clinical_reasoning: int = Field(default=0, ge=0, le=100)
    evidence_evaluation: int = Field(default=0, ge=0, le=100)
    peer_collaboration: int = Field(default=0, ge=0, le=100)
    reflective_practice: int = Field(default=0, ge=0, le=100)


class ReadinessFlags(BaseModel):
    """Gates used to decide whether to offer a phase advance."""

    phase_transition_ready: bool = Field(default=False, description="Group is ready to move on")
    synthesis_ready: bool = Field(default=False, description="Group is ready for synthesis")


class MilestoneProgress(BaseModel):
    """Progress towards one dashboard learning milestone."""

    name: str = Field(..., description="Milestone name")
    completed: bool = Field(default=False, description="Whether the threshold was reached")
    progress: int = Field(default=0, ge=0, le=100, description="Progress percentage")


class FacilitatorMetrics(BaseModel):
    """Facilitator dashboard snapshot. Derived; recomputed on every mutation."""

    participation_equity: int = Field(default=0, ge=0, le=100, description="Mean/max contribution ratio")
    participation_breakdown: dict[str, int] = Field(
        default_factory=dict,
        description="Contribution count per group member",
    )
    discussion_depth: int = Field(default=0, ge=0, le=5, description="Depth of peer discussion")
    learning_objective_alignment: int = Field(default=0, ge=0, le=100)
    learning_objective_progress: int = Field(default=0, ge=0, le=100)
    competencies: CompetencyScores = Field(default_factory=CompetencyScores)
    intervention_suggestions: list[str] = Field(default_factory=list)
    readiness: ReadinessFlags = Field(default_factory=ReadinessFlags)
    milestone_progress: list[MilestoneProgress] = Field(default_factory=list)
    intervention_log: list[InterventionEntry] = Field(default_factory=list)


class Session(BaseModel):
    """The collaborative working state of one group."""

    session_id: UUID = Field(default_factory=uuid4, description="Unique session identifier")
    group_id: str = Field(..., description="Group that owns the session")
    case_id: str = Field(..., description="Case being worked on")
    current_phase: SessionPhase = Field(default=SessionPhase.INDIVIDUAL, description="Workflow phase")
    current_stage: int = Field(default=1, ge=1, description="Case stage currently in view")
    hypotheses: list[Hypothesis] = Field(default_factory=list, description="Hypotheses in creation order")
    discussions: list[DiscussionEntry] = Field(default_factory=list, description="Discussion panel messages")
    threads: list[DiscussionThread] = Field(default_factory=list, description="Discussion threads")
    score: Score = Field(default_factory=Score, description="Latest score snapshot")
    facilitator_metrics: FacilitatorMetrics = Field(
        default_factory=FacilitatorMetrics,
        description="Latest facilitator metrics snapshot",
    )
    phase_settings: dict[SessionPhase, PhaseSettings] = Field(
        default_factory=dict,
        description="Settings for the individual, peer-review and synthesis phases",
    )
    unread_comments: int = Field(default=0, ge=0, description="Comments posted since last read")
    milestones: list[LearningMilestone] = Field(default_factory=list, description="Phase milestones")
    intervention_log: list[InterventionEntry] = Field(default_factory=list, description="Facilitator actions")
    created_at: datetime = Field(default_factory=_now_utc, description="Creation time")
    updated_at: datetime | None = Field(default=None, description="Last mutation time")
    phase_changed_at: datetime | None = Field(default=None, description="Last phase change")

    def find_hypothesis(self, hypothesis_id: UUID) -> Hypothesis | None:
        """Look up a hypothesis by id."""
        for hypothesis in self.hypotheses:
            if hypothesis.hypothesis_id == hypothesis_id:
                return hypothesis
        return None

    @property
    def total_comments(self) -> int:
        """Number of comments across all hypotheses."""
        return sum(len(h.comments) for h in self.hypotheses)


class HypothesisCreate(BaseModel):
    """Payload for creating a hypothesis."""

    text: str = Field(default="", description="Hypothesis statement")
    rationale: str = Field(default="", description="Clinical reasoning")
    family_id: str | None = Field(default=None, description="Optional family assignment")
    confidence: int = Field(default=3, ge=1, le=5)
    is_primary: bool = Field(default=False)
    author_id: str = Field(default="current-user")
    author_name: str = Field(default="")


class HypothesisUpdate(BaseModel):
    """
    Partial update for a hypothesis; only fields that are set are applied.

    Review status is not patchable: it changes through submit-for-review and
    phase transitions only.
    """

    model_config = ConfigDict(extra="forbid")

    text: str | None = None
    rationale: str | None = None
    family_id: str | None = None
    confidence: int | None = Field(default=None, ge=1, le=5)
    is_primary: bool | None = None


class CommentCreate(BaseModel):
    """Payload for commenting on a hypothesis."""

    text: str = Field(default="")
    type: str = Field(default="general")
    category: str = Field(default="hypothesis-discussion")
    author_id: str = Field(default="current-user")
    author_name: str = Field(default="")
    confidence: int | None = Field(default=None, ge=1, le=5)
    references_evidence: bool = Field(default=False)


class DiscussionCreate(BaseModel):
    """Payload for posting to the discussion panel."""

    text: str = Field(default="")
    type: str = Field(default="student-response")
    category: str = Field(default="general")
    author_id: str = Field(default="current-user")
    author_name: str = Field(default="")
    references_evidence: bool = Field(default=False)
    reflection_type: str | None = None
    thread_id: UUID | None = None


class ThreadCreate(BaseModel):
    """Payload for opening a discussion thread."""

    title: str = Field(default="")
    prompt: str = Field(default="")
    category: str = Field(default="general")
    author_id: str = Field(default="current-user")
    author_name: str = Field(default="")


class InterventionCreate(BaseModel):
    """Payload for logging a facilitator intervention."""

    type: str = Field(default="")
    facilitator_id: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class DeleteResult(BaseModel):
    """Result marker for a deletion."""

    success: bool = Field(default=True)
    hypothesis_id: UUID = Field(..., description="Identifier that was removed")

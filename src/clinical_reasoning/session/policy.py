"""
Authorization policy for session mutations.

A single decision function consulted by every mutating operation of the
session store and phase controller. It answers allow/deny with a reason and
never raises; callers decide how to surface a denial.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from clinical_reasoning.catalog.schemas import Group
from clinical_reasoning.session.schemas import Hypothesis, Session, SessionPhase


class Action(str, Enum):
    """Mutations subject to authorization."""

    CREATE_HYPOTHESIS = "create_hypothesis"
    EDIT_HYPOTHESIS = "edit_hypothesis"
    CATEGORIZE_HYPOTHESIS = "categorize_hypothesis"
    DELETE_HYPOTHESIS = "delete_hypothesis"
    SUBMIT_FOR_REVIEW = "submit_for_review"
    COMMENT = "comment"
    START_THREAD = "start_thread"
    POST_DISCUSSION = "post_discussion"
    SET_STAGE = "set_stage"
    ADVANCE_PHASE = "advance_phase"
    REVERT_PHASE = "revert_phase"
    LOG_INTERVENTION = "log_intervention"


FACILITATOR_ONLY = frozenset(
    {
        Action.ADVANCE_PHASE,
        Action.REVERT_PHASE,
        Action.LOG_INTERVENTION,
        Action.SET_STAGE,
    }
)

# Still permitted after the session is completed
POST_COMPLETION = frozenset({Action.REVERT_PHASE, Action.LOG_INTERVENTION})

HYPOTHESIS_ACTIONS = frozenset(
    {
        Action.EDIT_HYPOTHESIS,
        Action.CATEGORIZE_HYPOTHESIS,
        Action.DELETE_HYPOTHESIS,
        Action.SUBMIT_FOR_REVIEW,
        Action.COMMENT,
    }
)


class PolicyDecision(BaseModel):
    """Outcome of an authorization check."""

    allowed: bool = Field(..., description="Whether the action may proceed")
    reason: str = Field(default="", description="Why the action was denied (empty when allowed)")

    def __bool__(self) -> bool:
        return self.allowed


_ALLOW = PolicyDecision(allowed=True)


def _deny(reason: str) -> PolicyDecision:
    return PolicyDecision(allowed=False, reason=reason)


def authorize(
    action: Action,
    actor_id: str,
    group: Group,
    session: Session,
    hypothesis: Hypothesis | None = None,
) -> PolicyDecision:
    """
    Decide whether an actor may perform an action on a session.

    Args:
        action: The mutation being attempted.
        actor_id: User attempting it.
        group: Group that owns the session.
        session: Current session state.
        hypothesis: Target hypothesis for hypothesis-level actions.

    Returns:
        PolicyDecision with allowed flag and denial reason.
    """
    if not group.is_member(actor_id):
        return _deny(f"User {actor_id} is not a member of group {group.group_id}")

    is_facilitator = group.is_facilitator(actor_id)
    phase = session.current_phase

    if action in FACILITATOR_ONLY:
        if not is_facilitator:
            return _deny("Only the facilitator can perform this action")
        if phase == SessionPhase.COMPLETED and action not in POST_COMPLETION:
            return _deny("The session is completed")
        return _ALLOW

    if phase == SessionPhase.COMPLETED:
        return _deny("The session is completed")

    if action in HYPOTHESIS_ACTIONS and hypothesis is None:
        return _deny("A target hypothesis is required")

    is_author = hypothesis is not None and hypothesis.author_id == actor_id

    if action == Action.CREATE_HYPOTHESIS:
        if phase == SessionPhase.PEER_REVIEW:
            return _deny("Create new hypotheses during the individual work phase")
        return _ALLOW

    if action == Action.EDIT_HYPOTHESIS:
        if is_facilitator or (is_author and phase == SessionPhase.INDIVIDUAL):
            return _ALLOW
        return _deny("You can only edit your own hypotheses during the individual phase")

    if action in (Action.CATEGORIZE_HYPOTHESIS, Action.DELETE_HYPOTHESIS):
        if is_author or is_facilitator or phase == SessionPhase.SYNTHESIS:
            return _ALLOW
        verb = "delete" if action == Action.DELETE_HYPOTHESIS else "recategorize"
        return _deny(f"You can only {verb} your own hypotheses before synthesis")

    if action == Action.SUBMIT_FOR_REVIEW:
        if is_author:
            return _ALLOW
        return _deny("Only the author can submit a hypothesis for review")

    if action == Action.COMMENT:
        if phase == SessionPhase.INDIVIDUAL:
            return _deny("Comments open once peer review begins")
        return _ALLOW

    # START_THREAD, POST_DISCUSSION: any member
    return _ALLOW

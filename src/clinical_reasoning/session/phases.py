"""
Phase transition control.

Drives the linear individual -> peer-review -> synthesis -> completed
workflow and the bulk hypothesis status rewrites and learning milestones
that accompany each transition.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from clinical_reasoning.errors import PhaseTransitionError
from clinical_reasoning.session.policy import Action
from clinical_reasoning.session.schemas import (
    HypothesisStatus,
    InterventionEntry,
    LearningMilestone,
    Session,
    SessionPhase,
)
from clinical_reasoning.session.store import CollaborativeSessionStore

logger = logging.getLogger(__name__)

PHASE_ORDER: list[SessionPhase] = [
    SessionPhase.INDIVIDUAL,
    SessionPhase.PEER_REVIEW,
    SessionPhase.SYNTHESIS,
    SessionPhase.COMPLETED,
]

# Entering a phase rewrites hypotheses in the first status to the second
STATUS_REWRITES: dict[SessionPhase, tuple[HypothesisStatus, HypothesisStatus]] = {
    SessionPhase.PEER_REVIEW: (HypothesisStatus.DRAFT, HypothesisStatus.PENDING_REVIEW),
    SessionPhase.SYNTHESIS: (HypothesisStatus.PENDING_REVIEW, HypothesisStatus.REVIEWED),
}


def next_phase(phase: SessionPhase) -> SessionPhase | None:
    """
    Get the phase that follows another.

    Returns:
        The next phase, or None if the session is already completed.
    """
    index = PHASE_ORDER.index(phase)
    if index + 1 < len(PHASE_ORDER):
        return PHASE_ORDER[index + 1]
    return None


def _average(values: list[int]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


def _milestone_data(session: Session, entering: SessionPhase) -> dict[str, Any]:
    hypotheses = session.hypotheses
    if entering == SessionPhase.PEER_REVIEW:
        return {
            "hypothesis_count": len(hypotheses),
            "average_rationale_length": _average([len(h.rationale) for h in hypotheses]),
        }
    if entering == SessionPhase.SYNTHESIS:
        return {
            "comment_count": session.total_comments,
            "average_comments_per_hypothesis": _average([len(h.comments) for h in hypotheses]),
        }
    return {
        "reviewed_count": sum(1 for h in hypotheses if h.status == HypothesisStatus.REVIEWED),
        "hypothesis_count": len(hypotheses),
    }


class PhaseTransitionController:
    """
    Moves a group's session through its workflow phases.

    Forward transitions go one step at a time. Going back is a separate,
    explicitly enabled operation (see ``revert``).
    """

    def __init__(self, store: CollaborativeSessionStore) -> None:
        """
        Initialize the controller.

        Args:
            store: Session store used to load and commit sessions.
        """
        self._store = store

    async def advance(
        self,
        group_id: str,
        target_phase: SessionPhase | str,
        actor_id: str | None = None,
    ) -> Session:
        """
        Advance a session to the next phase.

        Args:
            group_id: The group's identifier.
            target_phase: Phase to enter; must directly follow the current one.
            actor_id: Acting user (must be the facilitator when given).

        Returns:
            The updated session with recomputed score and metrics.

        Raises:
            NotFoundError: If the group does not exist.
            PhaseTransitionError: If target_phase is not the next phase.
            AuthorizationError: If the actor is not the facilitator.
        """
        target = self._coerce(target_phase)
        session, group = await self._store.load(group_id)
        self._store.check(Action.ADVANCE_PHASE, actor_id, group, session)

        current = session.current_phase
        expected = next_phase(current)
        if expected is None:
            raise PhaseTransitionError(f"Session for group {group_id} is already completed", field="phase")
        if target != expected:
            raise PhaseTransitionError(
                f"Cannot move from {current.value} to {target.value}; next phase is {expected.value}",
                field="phase",
            )

        now = datetime.now(timezone.utc)
        settings = session.phase_settings.get(current)
        if settings is not None:
            settings.completed = True
            settings.completed_at = now

        rewrite = STATUS_REWRITES.get(target)
        rewritten = 0
        if rewrite is not None:
            old_status, new_status = rewrite
            for hypothesis in session.hypotheses:
                if hypothesis.status == old_status:
                    hypothesis.status = new_status
                    rewritten += 1

        session.milestones.append(
            LearningMilestone(phase=target, recorded_at=now, data=_milestone_data(session, target))
        )
        session.intervention_log.append(
            InterventionEntry(
                type="phase-transition",
                facilitator_id=actor_id or group.facilitator_id,
                context={"from_phase": current.value, "to_phase": target.value},
                timestamp=now,
            )
        )
        session.current_phase = target
        session.phase_changed_at = now

        stored = await self._store.commit(session, group)
        logger.info(
            f"Group {group_id} advanced {current.value} -> {target.value} "
            f"({rewritten} hypotheses rewritten)"
        )
        return stored

    async def advance_to_next(self, group_id: str, actor_id: str | None = None) -> Session:
        """Advance a session to whatever phase follows its current one."""
        session, _ = await self._store.load(group_id)
        target = next_phase(session.current_phase)
        if target is None:
            raise PhaseTransitionError(f"Session for group {group_id} is already completed", field="phase")
        return await self.advance(group_id, target, actor_id=actor_id)

    async def revert(
        self,
        group_id: str,
        target_phase: SessionPhase | str,
        actor_id: str | None = None,
    ) -> Session:
        """
        Move a session back to an earlier phase.

        Only available when ``allow_phase_regression`` is enabled. Hypothesis
        statuses are left as they are; the completed flags of the phases
        being re-entered are cleared.

        Raises:
            NotFoundError: If the group does not exist.
            PhaseTransitionError: If regression is disabled or target is not earlier.
            AuthorizationError: If the actor is not the facilitator.
        """
        if not self._store.settings.allow_phase_regression:
            raise PhaseTransitionError("Phase regression is disabled", field="phase")

        target = self._coerce(target_phase)
        session, group = await self._store.load(group_id)
        self._store.check(Action.REVERT_PHASE, actor_id, group, session)

        current = session.current_phase
        if PHASE_ORDER.index(target) >= PHASE_ORDER.index(current):
            raise PhaseTransitionError(
                f"Cannot revert from {current.value} to {target.value}",
                field="phase",
            )

        now = datetime.now(timezone.utc)
        for phase in PHASE_ORDER[PHASE_ORDER.index(target):]:
            settings = session.phase_settings.get(phase)
            if settings is not None:
                settings.completed = False
                settings.completed_at = None

        session.intervention_log.append(
            InterventionEntry(
                type="phase-regression",
                facilitator_id=actor_id or group.facilitator_id,
                context={"from_phase": current.value, "to_phase": target.value},
                timestamp=now,
            )
        )
        session.current_phase = target
        session.phase_changed_at = now

        stored = await self._store.commit(session, group)
        logger.warning(f"Group {group_id} reverted {current.value} -> {target.value}")
        return stored

    @staticmethod
    def _coerce(phase: SessionPhase | str) -> SessionPhase:
        try:
            return SessionPhase(phase)
        except ValueError:
            raise PhaseTransitionError(f"Unknown phase: {phase}", field="phase") from None

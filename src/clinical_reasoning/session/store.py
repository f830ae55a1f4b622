"""
Collaborative session store.

Single source of truth for one group's working state. Every mutation loads
a private copy of the session, applies the change, recomputes the score and
facilitator metrics, and writes the full session back. A failing operation
never reaches the write, so the stored session stays as it was.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from clinical_reasoning.catalog.repository import CaseRepository, FamilyRepository, GroupRepository
from clinical_reasoning.catalog.schemas import Group
from clinical_reasoning.config import Settings, get_settings
from clinical_reasoning.errors import AuthorizationError, NotFoundError, ValidationError
from clinical_reasoning.scoring.engine import ScoringWeights, compute_score
from clinical_reasoning.scoring.facilitator import compute_facilitator_metrics
from clinical_reasoning.session.policy import Action, authorize
from clinical_reasoning.session.repository import SessionRepository
from clinical_reasoning.session.schemas import (
    Comment,
    CommentCreate,
    DeleteResult,
    DiscussionCreate,
    DiscussionEntry,
    DiscussionThread,
    Hypothesis,
    HypothesisCreate,
    HypothesisStatus,
    HypothesisUpdate,
    InterventionCreate,
    InterventionEntry,
    PhaseSettings,
    Session,
    SessionPhase,
    ThreadCreate,
)
from clinical_reasoning.session.validation import parse_payload, require_text, to_uuid

logger = logging.getLogger(__name__)

PHASE_FOCUS: dict[SessionPhase, str] = {
    SessionPhase.INDIVIDUAL: "Generate your own hypotheses and explain the case findings behind each one.",
    SessionPhase.PEER_REVIEW: "Review peer hypotheses and provide constructive feedback. Consider their reasoning and evidence.",
    SessionPhase.SYNTHESIS: "Work together to integrate the group's hypotheses into a prioritized differential.",
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class CollaborativeSessionStore:
    """
    Holds and mutates the collaborative session of each group.

    Operations that take an ``actor_id`` consult the authorization policy
    when one is given and raise AuthorizationError on denial. Without an
    actor the caller is trusted to have authorized the call.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        groups: GroupRepository,
        families: FamilyRepository,
        cases: CaseRepository | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the session store.

        Args:
            sessions: Session persistence.
            groups: Group membership lookup.
            families: Family taxonomy (its size feeds the coverage score).
            cases: Case content, needed only for stage navigation.
            settings: Application settings. Uses get_settings() if None.
        """
        self._sessions = sessions
        self._groups = groups
        self._families = families
        self._cases = cases
        self._settings = settings or get_settings()
        self._weights = ScoringWeights.from_settings(self._settings)

    @property
    def settings(self) -> Settings:
        """Settings in effect for this store."""
        return self._settings

    # ------------------------------------------------------------------
    # Load / commit
    # ------------------------------------------------------------------

    def _new_session(self, group: Group) -> Session:
        s = self._settings
        return Session(
            group_id=group.group_id,
            case_id=group.case_id,
            phase_settings={
                SessionPhase.INDIVIDUAL: PhaseSettings(
                    time_limit_minutes=s.individual_time_limit,
                    educational_focus=PHASE_FOCUS[SessionPhase.INDIVIDUAL],
                ),
                SessionPhase.PEER_REVIEW: PhaseSettings(
                    time_limit_minutes=s.peer_review_time_limit,
                    educational_focus=PHASE_FOCUS[SessionPhase.PEER_REVIEW],
                ),
                SessionPhase.SYNTHESIS: PhaseSettings(
                    time_limit_minutes=s.synthesis_time_limit,
                    educational_focus=PHASE_FOCUS[SessionPhase.SYNTHESIS],
                ),
            },
        )

    async def load(self, group_id: str) -> tuple[Session, Group]:
        """
        Load a private copy of a group's session, creating it if absent.

        Args:
            group_id: The group's identifier.

        Returns:
            Tuple of (session, group).

        Raises:
            NotFoundError: If the group does not exist.
        """
        group = await self._groups.get_group(group_id)
        session = await self._sessions.get_by_group(group_id)
        if session is None:
            session = self._new_session(group)
            logger.info(f"Created collaborative session {session.session_id} for group {group_id}")
            session = await self.commit(session, group)
        return session, group

    async def commit(self, session: Session, group: Group) -> Session:
        """
        Recompute derived snapshots and write the session back.

        Args:
            session: Mutated session copy.
            group: The session's group.

        Returns:
            The stored session.
        """
        total_families = await self._families.count()
        session.score = compute_score(session.hypotheses, total_families, self._weights)
        session.facilitator_metrics = compute_facilitator_metrics(
            session,
            group,
            rationale_min_length=self._settings.rationale_min_length,
        )
        session.updated_at = _now_utc()
        return await self._sessions.save(session)

    def check(
        self,
        action: Action,
        actor_id: str | None,
        group: Group,
        session: Session,
        hypothesis: Hypothesis | None = None,
    ) -> None:
        """
        Enforce the authorization policy for an actor, if one is given.

        Raises:
            AuthorizationError: If the policy denies the action.
        """
        if actor_id is None:
            return
        decision = authorize(action, actor_id, group, session, hypothesis)
        if not decision.allowed:
            logger.warning(f"Denied {action.value} for {actor_id} in group {group.group_id}: {decision.reason}")
            raise AuthorizationError(decision.reason)

    @staticmethod
    def _require_hypothesis(session: Session, hypothesis_id: UUID | str) -> Hypothesis:
        hypothesis = session.find_hypothesis(to_uuid(hypothesis_id, "Hypothesis"))
        if hypothesis is None:
            raise NotFoundError("Hypothesis", hypothesis_id)
        return hypothesis

    async def _require_family(self, family_id: str) -> None:
        try:
            await self._families.get_family(family_id)
        except NotFoundError:
            raise ValidationError(f"Unknown family: {family_id}", field="family_id") from None

    @staticmethod
    def _author_name(group: Group, author_id: str, given: str) -> str:
        if given:
            return given
        member = group.get_member(author_id)
        return member.name if member is not None else ""

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_or_create_session(self, group_id: str) -> Session:
        """
        Get a group's session, creating an empty one on first access.

        Raises:
            NotFoundError: If the group does not exist.
        """
        session, _ = await self.load(group_id)
        return session

    async def get_group(self, group_id: str) -> Group:
        """Get the group that owns a session."""
        return await self._groups.get_group(group_id)

    # ------------------------------------------------------------------
    # Hypotheses
    # ------------------------------------------------------------------

    async def add_hypothesis(
        self,
        group_id: str,
        data: HypothesisCreate | dict[str, Any],
        actor_id: str | None = None,
    ) -> Hypothesis:
        """
        Add a hypothesis to the session.

        Args:
            group_id: The group's identifier.
            data: Hypothesis text, rationale and optional family/confidence.
            actor_id: Acting user; becomes the author when given.

        Returns:
            The created hypothesis.

        Raises:
            NotFoundError: If the group does not exist.
            ValidationError: If text or rationale is missing, or the family is unknown.
            AuthorizationError: If the actor may not create hypotheses now.
        """
        payload = parse_payload(HypothesisCreate, data)
        require_text(payload.text, "text")
        require_text(payload.rationale, "rationale")
        if payload.family_id is None and self._settings.require_family_on_create:
            raise ValidationError("family_id is required", field="family_id")

        session, group = await self.load(group_id)
        self.check(Action.CREATE_HYPOTHESIS, actor_id, group, session)
        if payload.family_id is not None:
            await self._require_family(payload.family_id)

        author_id = actor_id or payload.author_id
        status = (
            HypothesisStatus.DRAFT
            if session.current_phase == SessionPhase.INDIVIDUAL
            else HypothesisStatus.PENDING_REVIEW
        )
        hypothesis = Hypothesis(
            text=payload.text.strip(),
            rationale=payload.rationale.strip(),
            family_id=payload.family_id,
            confidence=payload.confidence,
            is_primary=payload.is_primary,
            author_id=author_id,
            author_name=self._author_name(group, author_id, payload.author_name),
            phase=session.current_phase,
            status=status,
        )
        session.hypotheses.append(hypothesis)
        await self.commit(session, group)
        logger.debug(f"Added hypothesis {hypothesis.hypothesis_id} to group {group_id} ({status.value})")
        return hypothesis.model_copy(deep=True)

    async def update_hypothesis(
        self,
        group_id: str,
        hypothesis_id: UUID | str,
        partial: HypothesisUpdate | dict[str, Any],
        actor_id: str | None = None,
    ) -> Hypothesis:
        """
        Patch fields of a hypothesis.

        Only fields explicitly present in ``partial`` are changed; a
        ``family_id`` of None uncategorizes the hypothesis.

        Raises:
            NotFoundError: If the group or hypothesis does not exist.
            ValidationError: If a patched field is invalid.
            AuthorizationError: If the actor may not edit the hypothesis.
        """
        payload = parse_payload(HypothesisUpdate, partial)
        changes = payload.model_dump(exclude_unset=True)
        for field in ("text", "rationale"):
            if field in changes:
                require_text(changes[field], field)
        # family_id is the only field that may be cleared
        changes = {k: v for k, v in changes.items() if v is not None or k == "family_id"}

        session, group = await self.load(group_id)
        hypothesis = self._require_hypothesis(session, hypothesis_id)
        action = Action.CATEGORIZE_HYPOTHESIS if set(changes) <= {"family_id"} else Action.EDIT_HYPOTHESIS
        self.check(action, actor_id, group, session, hypothesis)
        if changes.get("family_id") is not None:
            await self._require_family(changes["family_id"])

        for field, value in changes.items():
            if field in ("text", "rationale"):
                value = value.strip()
            setattr(hypothesis, field, value)
        hypothesis.updated_at = _now_utc()

        await self.commit(session, group)
        logger.debug(f"Updated hypothesis {hypothesis.hypothesis_id} in group {group_id}: {sorted(changes)}")
        return hypothesis.model_copy(deep=True)

    async def move_hypothesis(
        self,
        group_id: str,
        hypothesis_id: UUID | str,
        family_id: str | None,
        actor_id: str | None = None,
    ) -> Hypothesis:
        """Reassign a hypothesis to another family (drag-and-drop categorization)."""
        return await self.update_hypothesis(
            group_id,
            hypothesis_id,
            HypothesisUpdate(family_id=family_id),
            actor_id=actor_id,
        )

    async def delete_hypothesis(
        self,
        group_id: str,
        hypothesis_id: UUID | str,
        actor_id: str | None = None,
    ) -> DeleteResult:
        """
        Remove a hypothesis together with its comments.

        Raises:
            NotFoundError: If the group or hypothesis does not exist.
            AuthorizationError: If the actor may not delete the hypothesis.
        """
        session, group = await self.load(group_id)
        hypothesis = self._require_hypothesis(session, hypothesis_id)
        self.check(Action.DELETE_HYPOTHESIS, actor_id, group, session, hypothesis)

        session.hypotheses = [h for h in session.hypotheses if h.hypothesis_id != hypothesis.hypothesis_id]
        await self.commit(session, group)
        logger.debug(f"Deleted hypothesis {hypothesis.hypothesis_id} from group {group_id}")
        return DeleteResult(success=True, hypothesis_id=hypothesis.hypothesis_id)

    async def submit_for_review(
        self,
        group_id: str,
        hypothesis_id: UUID | str,
        actor_id: str | None = None,
    ) -> Hypothesis:
        """
        Mark a hypothesis as pending review. Calling it again is harmless.

        Raises:
            NotFoundError: If the group or hypothesis does not exist.
            AuthorizationError: If the actor is not the author.
        """
        session, group = await self.load(group_id)
        hypothesis = self._require_hypothesis(session, hypothesis_id)
        self.check(Action.SUBMIT_FOR_REVIEW, actor_id, group, session, hypothesis)

        hypothesis.status = HypothesisStatus.PENDING_REVIEW
        hypothesis.submitted_for_review_at = _now_utc()
        await self.commit(session, group)
        return hypothesis.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Comments and discussion
    # ------------------------------------------------------------------

    async def add_comment(
        self,
        group_id: str,
        hypothesis_id: UUID | str,
        data: CommentCreate | dict[str, Any],
        actor_id: str | None = None,
    ) -> Comment:
        """
        Append a peer comment to a hypothesis.

        Raises:
            NotFoundError: If the group or hypothesis does not exist.
            ValidationError: If the comment text is missing.
            AuthorizationError: If the actor may not comment now.
        """
        payload = parse_payload(CommentCreate, data)
        require_text(payload.text, "text")

        session, group = await self.load(group_id)
        hypothesis = self._require_hypothesis(session, hypothesis_id)
        self.check(Action.COMMENT, actor_id, group, session, hypothesis)

        author_id = actor_id or payload.author_id
        comment = Comment(
            text=payload.text.strip(),
            type=payload.type,
            category=payload.category,
            author_id=author_id,
            author_name=self._author_name(group, author_id, payload.author_name),
            confidence=payload.confidence,
            references_evidence=payload.references_evidence,
        )
        hypothesis.comments.append(comment)
        session.unread_comments += 1
        await self.commit(session, group)
        return comment.model_copy()

    async def add_discussion_thread(
        self,
        group_id: str,
        data: ThreadCreate | dict[str, Any],
        actor_id: str | None = None,
    ) -> DiscussionThread:
        """
        Open a session-level discussion thread.

        Raises:
            NotFoundError: If the group does not exist.
            ValidationError: If the title is missing.
        """
        payload = parse_payload(ThreadCreate, data)
        require_text(payload.title, "title")

        session, group = await self.load(group_id)
        self.check(Action.START_THREAD, actor_id, group, session)

        author_id = actor_id or payload.author_id
        thread = DiscussionThread(
            title=payload.title.strip(),
            prompt=payload.prompt,
            category=payload.category,
            author_id=author_id,
            author_name=self._author_name(group, author_id, payload.author_name),
        )
        session.threads.append(thread)
        await self.commit(session, group)
        return thread.model_copy()

    async def add_discussion(
        self,
        group_id: str,
        data: DiscussionCreate | dict[str, Any],
        actor_id: str | None = None,
    ) -> DiscussionEntry:
        """
        Post a message to the discussion panel, optionally inside a thread.

        Raises:
            NotFoundError: If the group or referenced thread does not exist.
            ValidationError: If the text is missing.
        """
        payload = parse_payload(DiscussionCreate, data)
        require_text(payload.text, "text")

        session, group = await self.load(group_id)
        self.check(Action.POST_DISCUSSION, actor_id, group, session)
        if payload.thread_id is not None and not any(t.thread_id == payload.thread_id for t in session.threads):
            raise NotFoundError("Discussion thread", payload.thread_id)

        author_id = actor_id or payload.author_id
        entry = DiscussionEntry(
            text=payload.text.strip(),
            type=payload.type,
            category=payload.category,
            author_id=author_id,
            author_name=self._author_name(group, author_id, payload.author_name),
            references_evidence=payload.references_evidence,
            reflection_type=payload.reflection_type,
            thread_id=payload.thread_id,
        )
        session.discussions.append(entry)
        await self.commit(session, group)
        return entry.model_copy()

    async def mark_comments_read(self, group_id: str) -> Session:
        """Reset the unread-comment counter."""
        session, group = await self.load(group_id)
        session.unread_comments = 0
        return await self.commit(session, group)

    # ------------------------------------------------------------------
    # Facilitation
    # ------------------------------------------------------------------

    async def log_intervention(
        self,
        group_id: str,
        data: InterventionCreate | dict[str, Any],
        actor_id: str | None = None,
    ) -> InterventionEntry:
        """
        Record a facilitator intervention in the session log.

        Raises:
            NotFoundError: If the group does not exist.
            ValidationError: If the intervention type is missing.
            AuthorizationError: If the actor is not the facilitator.
        """
        payload = parse_payload(InterventionCreate, data)
        require_text(payload.type, "type")

        session, group = await self.load(group_id)
        self.check(Action.LOG_INTERVENTION, actor_id, group, session)

        entry = InterventionEntry(
            type=payload.type.strip(),
            facilitator_id=actor_id or payload.facilitator_id or group.facilitator_id,
            context={"phase": session.current_phase.value, **payload.context},
        )
        session.intervention_log.append(entry)
        await self.commit(session, group)
        logger.info(f"Logged {entry.type} intervention in group {group_id}")
        return entry.model_copy(deep=True)

    async def set_current_stage(
        self,
        group_id: str,
        stage: int,
        actor_id: str | None = None,
    ) -> Session:
        """
        Move the group to another case stage.

        Raises:
            NotFoundError: If the group or its case does not exist.
            ValidationError: If the stage is outside the case's stage range.
        """
        if self._cases is None:
            raise ValidationError("Stage navigation requires a case repository", field="stage")

        session, group = await self.load(group_id)
        self.check(Action.SET_STAGE, actor_id, group, session)
        case = await self._cases.get_case(session.case_id)
        if not 1 <= stage <= len(case.stages):
            raise ValidationError(
                f"Stage {stage} is outside 1..{len(case.stages)} for case {case.case_id}",
                field="stage",
            )

        session.current_stage = stage
        return await self.commit(session, group)

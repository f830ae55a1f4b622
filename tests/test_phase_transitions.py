"""
Tests for phase transitions.
"""

import pytest

from clinical_reasoning.config import Settings
from clinical_reasoning.errors import AuthorizationError, NotFoundError, PhaseTransitionError
from clinical_reasoning.session.phases import PhaseTransitionController, next_phase
from clinical_reasoning.session.schemas import HypothesisStatus, SessionPhase
from clinical_reasoning.session.store import CollaborativeSessionStore

FACILITATOR = "facilitator-1"


async def seed_hypotheses(store: CollaborativeSessionStore, group_id: str) -> None:
    for author, family_id in (("student-1", "neuropathic"), ("student-2", "mechanical")):
        await store.add_hypothesis(
            group_id,
            {"text": f"Hypothesis from {author}", "rationale": "Based on the history", "family_id": family_id},
            actor_id=author,
        )


class TestNextPhase:
    """Tests for the phase ordering helper."""

    def test_order(self) -> None:
        """Test the linear workflow order."""
        assert next_phase(SessionPhase.INDIVIDUAL) == SessionPhase.PEER_REVIEW
        assert next_phase(SessionPhase.PEER_REVIEW) == SessionPhase.SYNTHESIS
        assert next_phase(SessionPhase.SYNTHESIS) == SessionPhase.COMPLETED
        assert next_phase(SessionPhase.COMPLETED) is None


class TestAdvance:
    """Tests for forward transitions."""

    @pytest.mark.asyncio
    async def test_enter_peer_review(
        self, store: CollaborativeSessionStore, controller: PhaseTransitionController, group_id: str
    ) -> None:
        """Test that drafts become pending review and a milestone is recorded."""
        await seed_hypotheses(store, group_id)

        session = await controller.advance(group_id, SessionPhase.PEER_REVIEW, actor_id=FACILITATOR)

        assert session.current_phase == SessionPhase.PEER_REVIEW
        assert all(h.status == HypothesisStatus.PENDING_REVIEW for h in session.hypotheses)
        assert session.phase_settings[SessionPhase.INDIVIDUAL].completed
        assert session.phase_settings[SessionPhase.INDIVIDUAL].completed_at is not None
        assert session.phase_changed_at is not None
        assert len(session.milestones) == 1
        milestone = session.milestones[0]
        assert milestone.phase == SessionPhase.PEER_REVIEW
        assert milestone.data["hypothesis_count"] == 2
        assert milestone.data["average_rationale_length"] == len("Based on the history")

    @pytest.mark.asyncio
    async def test_transition_is_persisted(
        self, store: CollaborativeSessionStore, controller: PhaseTransitionController, group_id: str
    ) -> None:
        """Test that the stored session reflects the transition."""
        await seed_hypotheses(store, group_id)
        await controller.advance(group_id, "peer-review")

        session = await store.get_or_create_session(group_id)

        assert session.current_phase == SessionPhase.PEER_REVIEW
        assert not any(h.status == HypothesisStatus.DRAFT for h in session.hypotheses)

    @pytest.mark.asyncio
    async def test_new_hypotheses_after_individual_are_pending(
        self, store: CollaborativeSessionStore, controller: PhaseTransitionController, group_id: str
    ) -> None:
        """Test that hypotheses created later skip the draft status."""
        await controller.advance(group_id, SessionPhase.PEER_REVIEW)

        hypothesis = await store.add_hypothesis(group_id, {"text": "Late idea", "rationale": "New finding"})

        assert hypothesis.status == HypothesisStatus.PENDING_REVIEW
        assert hypothesis.phase == SessionPhase.PEER_REVIEW

    @pytest.mark.asyncio
    async def test_enter_synthesis(
        self, store: CollaborativeSessionStore, controller: PhaseTransitionController, group_id: str
    ) -> None:
        """Test that pending hypotheses become reviewed on entering synthesis."""
        await seed_hypotheses(store, group_id)
        await controller.advance(group_id, SessionPhase.PEER_REVIEW, actor_id=FACILITATOR)
        session = await store.get_or_create_session(group_id)
        for hypothesis in session.hypotheses:
            await store.add_comment(
                group_id, hypothesis.hypothesis_id, {"text": "Consider the imaging"}, actor_id="student-3"
            )

        session = await controller.advance(group_id, SessionPhase.SYNTHESIS, actor_id=FACILITATOR)

        assert session.current_phase == SessionPhase.SYNTHESIS
        assert all(h.status == HypothesisStatus.REVIEWED for h in session.hypotheses)
        assert not any(h.status == HypothesisStatus.PENDING_REVIEW for h in session.hypotheses)
        assert len(session.milestones) == 2
        assert session.milestones[1].data["comment_count"] == 2
        assert session.milestones[1].data["average_comments_per_hypothesis"] == 1.0

    @pytest.mark.asyncio
    async def test_full_workflow(
        self, store: CollaborativeSessionStore, controller: PhaseTransitionController, group_id: str
    ) -> None:
        """Test walking through every phase to completion."""
        await seed_hypotheses(store, group_id)

        for _ in range(3):
            session = await controller.advance_to_next(group_id, actor_id=FACILITATOR)

        assert session.current_phase == SessionPhase.COMPLETED
        assert [m.phase for m in session.milestones] == [
            SessionPhase.PEER_REVIEW,
            SessionPhase.SYNTHESIS,
            SessionPhase.COMPLETED,
        ]
        assert session.milestones[-1].data == {"reviewed_count": 2, "hypothesis_count": 2}
        assert all(s.completed for s in session.phase_settings.values())
        transitions = [e for e in session.facilitator_metrics.intervention_log if e.type == "phase-transition"]
        assert len(transitions) == 3

        with pytest.raises(PhaseTransitionError):
            await controller.advance_to_next(group_id, actor_id=FACILITATOR)

    @pytest.mark.asyncio
    async def test_skipping_a_phase(self, controller: PhaseTransitionController, group_id: str) -> None:
        """Test that phases cannot be skipped."""
        with pytest.raises(PhaseTransitionError):
            await controller.advance(group_id, SessionPhase.SYNTHESIS)

    @pytest.mark.asyncio
    async def test_same_phase(self, controller: PhaseTransitionController, group_id: str) -> None:
        """Test that re-entering the current phase is rejected."""
        with pytest.raises(PhaseTransitionError):
            await controller.advance(group_id, SessionPhase.INDIVIDUAL)

    @pytest.mark.asyncio
    async def test_unknown_phase(self, controller: PhaseTransitionController, group_id: str) -> None:
        """Test that unknown phase names are rejected."""
        with pytest.raises(PhaseTransitionError):
            await controller.advance(group_id, "brainstorming")

    @pytest.mark.asyncio
    async def test_unknown_group(self, controller: PhaseTransitionController) -> None:
        """Test that a missing group raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await controller.advance("no-such-group", SessionPhase.PEER_REVIEW)

    @pytest.mark.asyncio
    async def test_learner_cannot_advance(
        self, store: CollaborativeSessionStore, controller: PhaseTransitionController, group_id: str
    ) -> None:
        """Test that only the facilitator moves the group on."""
        await seed_hypotheses(store, group_id)

        with pytest.raises(AuthorizationError):
            await controller.advance(group_id, SessionPhase.PEER_REVIEW, actor_id="student-1")

        session = await store.get_or_create_session(group_id)
        assert session.current_phase == SessionPhase.INDIVIDUAL
        assert all(h.status == HypothesisStatus.DRAFT for h in session.hypotheses)

    @pytest.mark.asyncio
    async def test_completed_session_is_read_only(
        self, store: CollaborativeSessionStore, controller: PhaseTransitionController, group_id: str
    ) -> None:
        """Test that learners cannot add hypotheses once the session is completed."""
        for _ in range(3):
            await controller.advance_to_next(group_id)

        with pytest.raises(AuthorizationError):
            await store.add_hypothesis(group_id, {"text": "Too late", "rationale": "Still"}, actor_id="student-1")


class TestRevert:
    """Tests for moving back to an earlier phase."""

    @pytest.fixture
    def regression_store(self, sessions, groups, families, cases) -> CollaborativeSessionStore:
        """A store with phase regression enabled."""
        return CollaborativeSessionStore(
            sessions=sessions,
            groups=groups,
            families=families,
            cases=cases,
            settings=Settings(_env_file=None, allow_phase_regression=True),
        )

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, controller: PhaseTransitionController, group_id: str) -> None:
        """Test that regression is refused unless enabled."""
        await controller.advance(group_id, SessionPhase.PEER_REVIEW)

        with pytest.raises(PhaseTransitionError):
            await controller.revert(group_id, SessionPhase.INDIVIDUAL, actor_id=FACILITATOR)

    @pytest.mark.asyncio
    async def test_revert_when_enabled(self, regression_store: CollaborativeSessionStore, group_id: str) -> None:
        """Test that a facilitator can step back without rewriting statuses."""
        controller = PhaseTransitionController(regression_store)
        await seed_hypotheses(regression_store, group_id)
        await controller.advance(group_id, SessionPhase.PEER_REVIEW, actor_id=FACILITATOR)

        session = await controller.revert(group_id, SessionPhase.INDIVIDUAL, actor_id=FACILITATOR)

        assert session.current_phase == SessionPhase.INDIVIDUAL
        assert all(h.status == HypothesisStatus.PENDING_REVIEW for h in session.hypotheses)
        assert not session.phase_settings[SessionPhase.INDIVIDUAL].completed
        assert session.intervention_log[-1].type == "phase-regression"

    @pytest.mark.asyncio
    async def test_revert_must_go_back(self, regression_store: CollaborativeSessionStore, group_id: str) -> None:
        """Test that revert only targets earlier phases."""
        controller = PhaseTransitionController(regression_store)

        with pytest.raises(PhaseTransitionError):
            await controller.revert(group_id, SessionPhase.PEER_REVIEW)

    @pytest.mark.asyncio
    async def test_learner_cannot_revert(self, regression_store: CollaborativeSessionStore, group_id: str) -> None:
        """Test that reverting is facilitator-only."""
        controller = PhaseTransitionController(regression_store)
        await controller.advance(group_id, SessionPhase.PEER_REVIEW)

        with pytest.raises(AuthorizationError):
            await controller.revert(group_id, SessionPhase.INDIVIDUAL, actor_id="student-2")

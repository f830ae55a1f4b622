"""
Tests for the session authorization policy.
"""

import pytest

from clinical_reasoning.catalog.schemas import Group, GroupMember, MemberRole
from clinical_reasoning.session.policy import Action, authorize
from clinical_reasoning.session.schemas import Hypothesis, Session, SessionPhase


@pytest.fixture
def group() -> Group:
    return Group(
        group_id="g-1",
        name="Policy group",
        case_id="case-1",
        facilitator_id="fac",
        members=[
            GroupMember(user_id="fac", role=MemberRole.FACILITATOR),
            GroupMember(user_id="author"),
            GroupMember(user_id="peer"),
        ],
    )


@pytest.fixture
def hypothesis() -> Hypothesis:
    return Hypothesis(text="Sciatica", rationale="Leg pain", author_id="author", phase=SessionPhase.INDIVIDUAL)


def session_in(phase: SessionPhase) -> Session:
    return Session(group_id="g-1", case_id="case-1", current_phase=phase)


class TestMembership:
    """Tests for membership and role checks."""

    def test_non_member_denied(self, group: Group) -> None:
        """Test that outsiders are denied with a reason."""
        decision = authorize(Action.CREATE_HYPOTHESIS, "stranger", group, session_in(SessionPhase.INDIVIDUAL))

        assert not decision
        assert "not a member" in decision.reason

    @pytest.mark.parametrize(
        "action",
        [Action.ADVANCE_PHASE, Action.REVERT_PHASE, Action.LOG_INTERVENTION, Action.SET_STAGE],
    )
    def test_facilitator_only_actions(self, group: Group, action: Action) -> None:
        """Test that facilitator actions are denied to learners."""
        session = session_in(SessionPhase.PEER_REVIEW)

        assert authorize(action, "fac", group, session).allowed
        assert not authorize(action, "peer", group, session).allowed

    def test_completed_session_allows_only_post_completion(self, group: Group, hypothesis: Hypothesis) -> None:
        """Test which actions survive completion."""
        session = session_in(SessionPhase.COMPLETED)

        assert authorize(Action.LOG_INTERVENTION, "fac", group, session)
        assert authorize(Action.REVERT_PHASE, "fac", group, session)
        assert not authorize(Action.SET_STAGE, "fac", group, session)
        assert not authorize(Action.POST_DISCUSSION, "peer", group, session)
        assert not authorize(Action.EDIT_HYPOTHESIS, "fac", group, session, hypothesis)


class TestHypothesisRules:
    """Tests for hypothesis-level rules."""

    def test_hypothesis_required(self, group: Group) -> None:
        """Test that hypothesis actions need a target."""
        assert not authorize(Action.EDIT_HYPOTHESIS, "author", group, session_in(SessionPhase.INDIVIDUAL))

    def test_create_denied_during_peer_review(self, group: Group) -> None:
        """Test that new hypotheses wait for the other phases."""
        assert authorize(Action.CREATE_HYPOTHESIS, "peer", group, session_in(SessionPhase.INDIVIDUAL))
        assert not authorize(Action.CREATE_HYPOTHESIS, "peer", group, session_in(SessionPhase.PEER_REVIEW))
        assert authorize(Action.CREATE_HYPOTHESIS, "peer", group, session_in(SessionPhase.SYNTHESIS))

    def test_edit_rules(self, group: Group, hypothesis: Hypothesis) -> None:
        """Test that authors edit during the individual phase and the facilitator anytime."""
        individual = session_in(SessionPhase.INDIVIDUAL)
        review = session_in(SessionPhase.PEER_REVIEW)

        assert authorize(Action.EDIT_HYPOTHESIS, "author", group, individual, hypothesis)
        assert not authorize(Action.EDIT_HYPOTHESIS, "author", group, review, hypothesis)
        assert not authorize(Action.EDIT_HYPOTHESIS, "peer", group, individual, hypothesis)
        assert authorize(Action.EDIT_HYPOTHESIS, "fac", group, review, hypothesis)

    @pytest.mark.parametrize("action", [Action.CATEGORIZE_HYPOTHESIS, Action.DELETE_HYPOTHESIS])
    def test_categorize_and_delete(self, group: Group, hypothesis: Hypothesis, action: Action) -> None:
        """Test that peers may reorganize hypotheses only during synthesis."""
        review = session_in(SessionPhase.PEER_REVIEW)
        synthesis = session_in(SessionPhase.SYNTHESIS)

        assert authorize(action, "author", group, review, hypothesis)
        assert authorize(action, "fac", group, review, hypothesis)
        assert not authorize(action, "peer", group, review, hypothesis)
        assert authorize(action, "peer", group, synthesis, hypothesis)

    def test_submit_is_author_only(self, group: Group, hypothesis: Hypothesis) -> None:
        """Test that only the author submits a hypothesis for review."""
        session = session_in(SessionPhase.INDIVIDUAL)

        assert authorize(Action.SUBMIT_FOR_REVIEW, "author", group, session, hypothesis)
        assert not authorize(Action.SUBMIT_FOR_REVIEW, "fac", group, session, hypothesis)

    def test_comments_open_at_peer_review(self, group: Group, hypothesis: Hypothesis) -> None:
        """Test that commenting is closed during individual work."""
        assert not authorize(Action.COMMENT, "peer", group, session_in(SessionPhase.INDIVIDUAL), hypothesis)
        assert authorize(Action.COMMENT, "peer", group, session_in(SessionPhase.PEER_REVIEW), hypothesis)
        assert authorize(Action.COMMENT, "peer", group, session_in(SessionPhase.SYNTHESIS), hypothesis)

    def test_discussion_open_to_members(self, group: Group) -> None:
        """Test that any member can start threads and post."""
        session = session_in(SessionPhase.INDIVIDUAL)

        assert authorize(Action.START_THREAD, "peer", group, session)
        assert authorize(Action.POST_DISCUSSION, "author", group, session)

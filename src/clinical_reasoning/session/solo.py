"""
Single-player game sessions.

A learner works through a case alone: hypotheses are added, categorized and
removed, and the learner steps through the case stages. Scoring reuses the
collaborative engine with only the diversity, coverage and reasoning
components weighted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from clinical_reasoning.catalog.repository import CaseRepository, FamilyRepository
from clinical_reasoning.errors import NotFoundError, ValidationError
from clinical_reasoning.scoring.engine import ScoringWeights, compute_score
from clinical_reasoning.session.schemas import (
    DeleteResult,
    Hypothesis,
    HypothesisCreate,
    HypothesisUpdate,
    Score,
    SessionPhase,
)
from clinical_reasoning.session.validation import parse_payload, require_text, to_uuid

logger = logging.getLogger(__name__)

SOLO_WEIGHTS = ScoringWeights(reasoning=10, author=0, comment=0, evidence=0, reflection=0)


class SoloSession(BaseModel):
    """A single learner's game session."""

    session_id: UUID = Field(default_factory=uuid4, description="Unique session identifier")
    case_id: str = Field(..., description="Case being worked on")
    current_stage: int = Field(default=1, ge=1, description="Case stage currently in view")
    hypotheses: list[Hypothesis] = Field(default_factory=list, description="Learner hypotheses")
    score: Score = Field(default_factory=Score, description="Latest score snapshot")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SoloSessionRepository:
    """Solo sessions held in process memory, in creation order."""

    def __init__(self, sessions: list[SoloSession] | None = None) -> None:
        self._sessions: dict[UUID, SoloSession] = {s.session_id: s for s in sessions or []}

    async def get(self, session_id: UUID) -> SoloSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session is not None else None

    async def first(self) -> SoloSession | None:
        for session in self._sessions.values():
            return session.model_copy(deep=True)
        return None

    async def save(self, session: SoloSession) -> SoloSession:
        self._sessions[session.session_id] = session.model_copy(deep=True)
        return session


class SoloGameService:
    """Operations on single-player game sessions."""

    def __init__(
        self,
        sessions: SoloSessionRepository,
        families: FamilyRepository,
        cases: CaseRepository,
    ) -> None:
        self._sessions = sessions
        self._families = families
        self._cases = cases

    async def _load(self, session_id: UUID | str) -> SoloSession:
        session = await self._sessions.get(to_uuid(session_id, "Session"))
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    async def _commit(self, session: SoloSession) -> SoloSession:
        total_families = await self._families.count()
        session.score = compute_score(session.hypotheses, total_families, SOLO_WEIGHTS)
        return await self._sessions.save(session)

    async def _require_family(self, family_id: str) -> None:
        try:
            await self._families.get_family(family_id)
        except NotFoundError:
            raise ValidationError(f"Unknown family: {family_id}", field="family_id") from None

    async def create_session(self, case_id: str) -> SoloSession:
        """Start a new solo session on a case."""
        await self._cases.get_case(case_id)
        session = await self._commit(SoloSession(case_id=case_id))
        logger.info(f"Created solo session {session.session_id} for case {case_id}")
        return session

    async def get_session(self, session_id: UUID | str) -> SoloSession:
        """Get a solo session by id."""
        return await self._load(session_id)

    async def get_current_session(self) -> SoloSession:
        """Get the learner's current (first) session."""
        session = await self._sessions.first()
        if session is None:
            raise NotFoundError("Session", "current")
        return session

    async def add_hypothesis(self, session_id: UUID | str, data: HypothesisCreate | dict[str, Any]) -> Hypothesis:
        """Add a hypothesis; text and rationale are required."""
        payload = parse_payload(HypothesisCreate, data)
        require_text(payload.text, "text")
        require_text(payload.rationale, "rationale")
        session = await self._load(session_id)
        if payload.family_id is not None:
            await self._require_family(payload.family_id)

        hypothesis = Hypothesis(
            text=payload.text.strip(),
            rationale=payload.rationale.strip(),
            family_id=payload.family_id,
            confidence=payload.confidence,
            is_primary=payload.is_primary,
            author_id=payload.author_id,
            author_name=payload.author_name,
            phase=SessionPhase.INDIVIDUAL,
        )
        session.hypotheses.append(hypothesis)
        await self._commit(session)
        return hypothesis.model_copy(deep=True)

    async def update_hypothesis(
        self,
        session_id: UUID | str,
        hypothesis_id: UUID | str,
        partial: HypothesisUpdate | dict[str, Any],
    ) -> Hypothesis:
        """Patch fields of a hypothesis."""
        changes = parse_payload(HypothesisUpdate, partial).model_dump(exclude_unset=True)
        for field in ("text", "rationale"):
            if field in changes:
                require_text(changes[field], field)
        changes = {k: v for k, v in changes.items() if v is not None or k == "family_id"}

        session = await self._load(session_id)
        target = to_uuid(hypothesis_id, "Hypothesis")
        hypothesis = next((h for h in session.hypotheses if h.hypothesis_id == target), None)
        if hypothesis is None:
            raise NotFoundError("Hypothesis", hypothesis_id)
        if changes.get("family_id") is not None:
            await self._require_family(changes["family_id"])

        for field, value in changes.items():
            if field in ("text", "rationale"):
                value = value.strip()
            setattr(hypothesis, field, value)
        hypothesis.updated_at = datetime.now(timezone.utc)
        await self._commit(session)
        return hypothesis.model_copy(deep=True)

    async def delete_hypothesis(self, session_id: UUID | str, hypothesis_id: UUID | str) -> DeleteResult:
        """Remove a hypothesis."""
        session = await self._load(session_id)
        target = to_uuid(hypothesis_id, "Hypothesis")
        if not any(h.hypothesis_id == target for h in session.hypotheses):
            raise NotFoundError("Hypothesis", hypothesis_id)
        session.hypotheses = [h for h in session.hypotheses if h.hypothesis_id != target]
        await self._commit(session)
        return DeleteResult(success=True, hypothesis_id=target)

    async def update_current_stage(self, session_id: UUID | str, stage_number: int) -> SoloSession:
        """
        Move to another case stage.

        Raises:
            ValidationError: If the stage is outside the case's stage range.
        """
        session = await self._load(session_id)
        case = await self._cases.get_case(session.case_id)
        if not 1 <= stage_number <= len(case.stages):
            raise ValidationError(
                f"Stage {stage_number} is outside 1..{len(case.stages)} for case {case.case_id}",
                field="stage",
            )
        session.current_stage = stage_number
        return await self._commit(session)

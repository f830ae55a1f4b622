"""
Repository pattern for database operations.

Provides a SQLAlchemy-backed implementation of the session repository
interface used by the collaborative session store.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinical_reasoning.db.models import CollaborativeSessionModel
from clinical_reasoning.session.repository import SessionRepository
from clinical_reasoning.session.schemas import Session


class SqlSessionRepository(SessionRepository):
    """Collaborative session storage in a relational database."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy async session. The caller owns the transaction.
        """
        self._session = session

    async def _get_model(self, group_id: str) -> CollaborativeSessionModel | None:
        stmt = select(CollaborativeSessionModel).where(CollaborativeSessionModel.group_id == group_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_group(self, group_id: str) -> Session | None:
        """
        Get the session owned by a group.

        Args:
            group_id: The group's identifier.

        Returns:
            The deserialized session if found, None otherwise.
        """
        model = await self._get_model(group_id)
        if model is None:
            return None
        return Session.model_validate(model.snapshot)

    async def save(self, session: Session) -> Session:
        """
        Insert or replace the stored snapshot of a session.

        Args:
            session: Session to persist.

        Returns:
            The persisted session.
        """
        snapshot = session.model_dump(mode="json")
        model = await self._get_model(session.group_id)
        if model is None:
            model = CollaborativeSessionModel(
                id=str(session.session_id),
                group_id=session.group_id,
                case_id=session.case_id,
                current_phase=session.current_phase.value,
                snapshot=snapshot,
                created_at=session.created_at,
                updated_at=session.updated_at,
            )
            self._session.add(model)
        else:
            model.current_phase = session.current_phase.value
            model.snapshot = snapshot
            model.updated_at = session.updated_at
        await self._session.flush()
        return session

    async def list_by_case(self, case_id: str, limit: int = 100) -> list[Session]:
        """
        List sessions working on a case.

        Args:
            case_id: Case identifier.
            limit: Maximum number to return.

        Returns:
            List of sessions, most recently updated first.
        """
        stmt = (
            select(CollaborativeSessionModel)
            .where(CollaborativeSessionModel.case_id == case_id)
            .order_by(CollaborativeSessionModel.updated_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [Session.model_validate(m.snapshot) for m in result.scalars().all()]

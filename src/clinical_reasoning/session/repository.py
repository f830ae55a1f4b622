"""
Persistence interface for collaborative sessions.

The session store depends only on this interface, so it can run against
the in-memory implementation in tests and against SQLAlchemy in production.
"""

from abc import ABC, abstractmethod

from clinical_reasoning.session.schemas import Session


class SessionRepository(ABC):
    """Abstract storage for one session per group."""

    @abstractmethod
    async def get_by_group(self, group_id: str) -> Session | None:
        """
        Get the session owned by a group.

        Args:
            group_id: The group's identifier.

        Returns:
            A private copy of the session if found, None otherwise.
        """
        ...

    @abstractmethod
    async def save(self, session: Session) -> Session:
        """
        Write a full session snapshot, replacing any previous one.

        Args:
            session: The session to store.

        Returns:
            The stored session.
        """
        ...


class InMemorySessionRepository(SessionRepository):
    """Session storage held in process memory."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def get_by_group(self, group_id: str) -> Session | None:
        session = self._sessions.get(group_id)
        return session.model_copy(deep=True) if session is not None else None

    async def save(self, session: Session) -> Session:
        self._sessions[session.group_id] = session.model_copy(deep=True)
        return session

    def __len__(self) -> int:
        return len(self._sessions)

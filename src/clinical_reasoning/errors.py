"""
Error types raised by the collaborative session core.

Every failure is local to a single operation; the stored session is left
exactly as it was before the failing call.
"""


class CollaborationError(Exception):
    """Base class for all session-core errors."""


class NotFoundError(CollaborationError):
    """A session, group, case, family or hypothesis identifier did not resolve."""

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationError(CollaborationError):
    """Input data failed validation (missing or malformed fields)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class PhaseTransitionError(ValidationError):
    """A requested phase change is not a permitted transition."""


class AuthorizationError(CollaborationError):
    """The acting user is not allowed to perform the requested action."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class GroupFullError(CollaborationError):
    """The group has reached its participant capacity."""


class AlreadyMemberError(CollaborationError):
    """The user already belongs to the group."""

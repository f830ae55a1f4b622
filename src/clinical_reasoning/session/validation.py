"""Input validation helpers shared by the session services."""

from __future__ import annotations

from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from clinical_reasoning.errors import NotFoundError, ValidationError

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_payload(model: type[PayloadT], data: PayloadT | dict[str, Any]) -> PayloadT:
    """Validate an input payload, re-raising pydantic failures as ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = e.errors()
        field = ".".join(str(p) for p in errors[0]["loc"]) if errors else None
        raise ValidationError(f"Invalid {model.__name__}: {e}", field=field) from e


def require_text(value: str | None, field: str) -> None:
    """Reject missing or blank text fields."""
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required", field=field)


def to_uuid(value: UUID | str, entity: str) -> UUID:
    """Coerce an identifier; anything unparseable cannot resolve."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(entity, value) from None

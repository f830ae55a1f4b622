"""
SQLAlchemy models for database persistence.

Each collaborative session is stored as one row holding the full session
snapshot as JSON, alongside a few indexed columns for lookups.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class CollaborativeSessionModel(Base):
    """Database model for collaborative sessions."""

    __tablename__ = "collaborative_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    case_id: Mapped[str] = mapped_column(String(255), nullable=False)
    current_phase: Mapped[str] = mapped_column(String(50), nullable=False)
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

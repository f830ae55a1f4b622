"""
Database module for persistence.

Provides SQLAlchemy models, engine setup and a repository implementation of
the session persistence interface.
"""

from clinical_reasoning.db.engine import create_engine, create_session_factory, init_models
from clinical_reasoning.db.models import Base, CollaborativeSessionModel
from clinical_reasoning.db.repository import SqlSessionRepository

__all__ = [
    "Base",
    "CollaborativeSessionModel",
    "SqlSessionRepository",
    "create_engine",
    "create_session_factory",
    "init_models",
]

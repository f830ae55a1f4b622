"""Shared fixtures wiring the session core to fixture-backed repositories."""

import pytest

from clinical_reasoning.catalog.repository import (
    InMemoryCaseRepository,
    InMemoryFamilyRepository,
    InMemoryGroupRepository,
)
from clinical_reasoning.config import Settings
from clinical_reasoning.session.phases import PhaseTransitionController
from clinical_reasoning.session.repository import InMemorySessionRepository
from clinical_reasoning.session.store import CollaborativeSessionStore


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only (no .env influence)."""
    return Settings(_env_file=None)


@pytest.fixture
def families() -> InMemoryFamilyRepository:
    return InMemoryFamilyRepository.from_fixtures()


@pytest.fixture
def groups() -> InMemoryGroupRepository:
    return InMemoryGroupRepository.from_fixtures()


@pytest.fixture
def cases() -> InMemoryCaseRepository:
    return InMemoryCaseRepository.from_fixtures()


@pytest.fixture
def sessions() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def store(
    sessions: InMemorySessionRepository,
    groups: InMemoryGroupRepository,
    families: InMemoryFamilyRepository,
    cases: InMemoryCaseRepository,
    settings: Settings,
) -> CollaborativeSessionStore:
    return CollaborativeSessionStore(
        sessions=sessions,
        groups=groups,
        families=families,
        cases=cases,
        settings=settings,
    )


@pytest.fixture
def controller(store: CollaborativeSessionStore) -> PhaseTransitionController:
    return PhaseTransitionController(store)


@pytest.fixture
def group_id() -> str:
    """Seeded group: facilitator-1 plus learners student-1..3."""
    return "group-1"

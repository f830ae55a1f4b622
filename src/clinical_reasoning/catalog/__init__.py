"""
Catalog module for externally owned data.

Provides the family taxonomy, clinical cases and group membership behind
repository interfaces.
"""

from clinical_reasoning.catalog.repository import (
    CaseRepository,
    FamilyRepository,
    GroupRepository,
    InMemoryCaseRepository,
    InMemoryFamilyRepository,
    InMemoryGroupRepository,
    load_fixture,
)
from clinical_reasoning.catalog.schemas import (
    Case,
    CaseStage,
    Family,
    Group,
    GroupMember,
    GroupStatus,
    MemberRole,
)

__all__ = [
    "Case",
    "CaseStage",
    "Family",
    "Group",
    "GroupMember",
    "GroupStatus",
    "MemberRole",
    "CaseRepository",
    "FamilyRepository",
    "GroupRepository",
    "InMemoryCaseRepository",
    "InMemoryFamilyRepository",
    "InMemoryGroupRepository",
    "load_fixture",
]

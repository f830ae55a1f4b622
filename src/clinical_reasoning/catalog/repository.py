"""
Repository pattern for catalog data.

Provides async interfaces for the family taxonomy, clinical cases and
groups, together with in-memory implementations seeded from JSON fixtures.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from uuid import uuid4

from clinical_reasoning.catalog.schemas import (
    Case,
    Family,
    Group,
    GroupMember,
    GroupStatus,
    MemberRole,
)
from clinical_reasoning.errors import AlreadyMemberError, GroupFullError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

FIXTURES_DIR = Path(__file__).resolve().parent.parent / "fixtures"

# Groups become active once this many participants have joined.
ACTIVE_GROUP_SIZE = 3


def load_fixture(name: str, fixtures_path: str | Path | None = None) -> list[dict[str, Any]]:
    """
    Load a JSON fixture file.

    Args:
        name: Fixture name without extension (families, cases, groups).
        fixtures_path: Directory to read from. Defaults to the bundled fixtures.

    Returns:
        List of raw records.
    """
    base = Path(fixtures_path) if fixtures_path else FIXTURES_DIR
    path = base / f"{name}.json"
    with path.open(encoding="utf-8") as fh:
        records = json.load(fh)
    logger.debug(f"Loaded {len(records)} {name} records from {path}")
    return records


class FamilyRepository(ABC):
    """Read-only access to the diagnostic family taxonomy."""

    @abstractmethod
    async def get_all_families(self) -> list[Family]:
        """Return every family in display order."""
        ...

    @abstractmethod
    async def get_family(self, family_id: str) -> Family:
        """
        Get a single family.

        Raises:
            NotFoundError: If the family does not exist.
        """
        ...

    async def count(self) -> int:
        """Total number of families in the taxonomy."""
        return len(await self.get_all_families())


class CaseRepository(ABC):
    """Read access to clinical case content."""

    @abstractmethod
    async def get_case(self, case_id: str) -> Case:
        """
        Get a case by id.

        Raises:
            NotFoundError: If the case does not exist.
        """
        ...

    @abstractmethod
    async def list_cases(self) -> list[Case]:
        """Return all cases."""
        ...

    @abstractmethod
    async def unlock_stage(self, case_id: str, stage_number: int) -> Case:
        """Mark a case stage as visible to learners."""
        ...


class GroupRepository(ABC):
    """Group membership, roles and capacity."""

    @abstractmethod
    async def get_group(self, group_id: str) -> Group:
        """
        Get a group by id.

        Raises:
            NotFoundError: If the group does not exist.
        """
        ...

    @abstractmethod
    async def list_groups(self) -> list[Group]:
        """Return all groups."""
        ...

    @abstractmethod
    async def create_group(
        self,
        name: str,
        case_id: str,
        facilitator_id: str,
        facilitator_name: str = "",
        max_participants: int = 5,
    ) -> Group:
        """Create a group with its creator as facilitator."""
        ...

    @abstractmethod
    async def join_group(self, group_id: str, user_id: str, name: str = "") -> Group:
        """Add a learner to a group."""
        ...

    @abstractmethod
    async def leave_group(self, group_id: str, user_id: str) -> Group:
        """
        Remove a user from a group.

        Raises:
            ValidationError: If the user is the group's facilitator.
        """
        ...

    @abstractmethod
    async def update_group(self, group_id: str, **changes: Any) -> Group:
        """Apply field changes to a group."""
        ...


class InMemoryFamilyRepository(FamilyRepository):
    """Family taxonomy held in process memory."""

    def __init__(self, families: list[Family] | None = None) -> None:
        self._families: list[Family] = list(families or [])

    @classmethod
    def from_fixtures(cls, fixtures_path: str | Path | None = None) -> InMemoryFamilyRepository:
        """Build the repository from the families fixture."""
        return cls([Family.model_validate(r) for r in load_fixture("families", fixtures_path)])

    async def get_all_families(self) -> list[Family]:
        return [f.model_copy() for f in self._families]

    async def get_family(self, family_id: str) -> Family:
        for family in self._families:
            if family.family_id == family_id:
                return family.model_copy()
        raise NotFoundError("Family", family_id)

    async def count(self) -> int:
        return len(self._families)


class InMemoryCaseRepository(CaseRepository):
    """Clinical cases held in process memory."""

    def __init__(self, cases: list[Case] | None = None) -> None:
        self._cases: dict[str, Case] = {c.case_id: c for c in cases or []}

    @classmethod
    def from_fixtures(cls, fixtures_path: str | Path | None = None) -> InMemoryCaseRepository:
        """Build the repository from the cases fixture."""
        return cls([Case.model_validate(r) for r in load_fixture("cases", fixtures_path)])

    def _require(self, case_id: str) -> Case:
        case = self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case", case_id)
        return case

    async def get_case(self, case_id: str) -> Case:
        return self._require(case_id).model_copy(deep=True)

    async def list_cases(self) -> list[Case]:
        return [c.model_copy(deep=True) for c in self._cases.values()]

    async def unlock_stage(self, case_id: str, stage_number: int) -> Case:
        case = self._require(case_id)
        for stage in case.stages:
            if stage.stage_number == stage_number:
                stage.unlocked = True
                logger.info(f"Unlocked stage {stage_number} of case {case_id}")
                return case.model_copy(deep=True)
        raise NotFoundError("Case stage", f"{case_id}#{stage_number}")


class InMemoryGroupRepository(GroupRepository):
    """Groups held in process memory."""

    def __init__(self, groups: list[Group] | None = None) -> None:
        self._groups: dict[str, Group] = {g.group_id: g for g in groups or []}

    @classmethod
    def from_fixtures(cls, fixtures_path: str | Path | None = None) -> InMemoryGroupRepository:
        """Build the repository from the groups fixture."""
        return cls([Group.model_validate(r) for r in load_fixture("groups", fixtures_path)])

    def _require(self, group_id: str) -> Group:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    @staticmethod
    def _refresh_status(group: Group) -> None:
        if len(group.members) >= ACTIVE_GROUP_SIZE:
            group.status = GroupStatus.ACTIVE
        else:
            group.status = GroupStatus.WAITING

    async def get_group(self, group_id: str) -> Group:
        return self._require(group_id).model_copy(deep=True)

    async def list_groups(self) -> list[Group]:
        return [g.model_copy(deep=True) for g in self._groups.values()]

    async def create_group(
        self,
        name: str,
        case_id: str,
        facilitator_id: str,
        facilitator_name: str = "",
        max_participants: int = 5,
    ) -> Group:
        group = Group(
            group_id=str(uuid4()),
            name=name,
            case_id=case_id,
            max_participants=max_participants,
            facilitator_id=facilitator_id,
            members=[
                GroupMember(
                    user_id=facilitator_id,
                    name=facilitator_name,
                    role=MemberRole.FACILITATOR,
                )
            ],
        )
        self._groups[group.group_id] = group
        logger.info(f"Created group {group.group_id} ({name}) for case {case_id}")
        return group.model_copy(deep=True)

    async def join_group(self, group_id: str, user_id: str, name: str = "") -> Group:
        group = self._require(group_id)
        if group.is_member(user_id):
            raise AlreadyMemberError(f"User {user_id} is already in group {group_id}")
        if len(group.members) >= group.max_participants:
            raise GroupFullError(f"Group {group_id} is full ({group.max_participants} participants)")

        group.members.append(GroupMember(user_id=user_id, name=name, role=MemberRole.LEARNER))
        self._refresh_status(group)
        logger.debug(f"User {user_id} joined group {group_id} ({len(group.members)} members)")
        return group.model_copy(deep=True)

    async def leave_group(self, group_id: str, user_id: str) -> Group:
        group = self._require(group_id)
        if group.is_facilitator(user_id):
            raise ValidationError(f"Facilitator {user_id} cannot leave group {group_id}", field="user_id")
        group.members = [m for m in group.members if m.user_id != user_id]
        self._refresh_status(group)
        logger.debug(f"User {user_id} left group {group_id}")
        return group.model_copy(deep=True)

    async def update_group(self, group_id: str, **changes: Any) -> Group:
        group = self._require(group_id)
        updated = Group.model_validate({**group.model_dump(), **changes, "group_id": group_id})
        self._groups[group_id] = updated
        return updated.model_copy(deep=True)

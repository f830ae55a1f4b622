"""
Tests for the fixture-backed catalog repositories.
"""

import json

import pytest

from clinical_reasoning.catalog.repository import (
    InMemoryCaseRepository,
    InMemoryFamilyRepository,
    InMemoryGroupRepository,
    load_fixture,
)
from clinical_reasoning.catalog.schemas import GroupStatus, MemberRole
from clinical_reasoning.errors import AlreadyMemberError, GroupFullError, NotFoundError, ValidationError


class TestFamilies:
    """Tests for the family taxonomy."""

    @pytest.mark.asyncio
    async def test_fixture_taxonomy(self, families: InMemoryFamilyRepository) -> None:
        """Test that the bundled taxonomy has ten families."""
        all_families = await families.get_all_families()

        assert await families.count() == 10
        assert len({f.family_id for f in all_families}) == 10
        assert "neuropathic" in {f.family_id for f in all_families}

    @pytest.mark.asyncio
    async def test_unknown_family(self, families: InMemoryFamilyRepository) -> None:
        """Test that an unknown family raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await families.get_family("astrological")

    @pytest.mark.asyncio
    async def test_custom_fixtures_path(self, tmp_path) -> None:
        """Test loading fixtures from another directory."""
        (tmp_path / "families.json").write_text(
            json.dumps([{"family_id": "only", "name": "Only family"}]),
            encoding="utf-8",
        )

        repo = InMemoryFamilyRepository.from_fixtures(tmp_path)

        assert await repo.count() == 1
        assert load_fixture("families", tmp_path)[0]["family_id"] == "only"


class TestCases:
    """Tests for case content."""

    @pytest.mark.asyncio
    async def test_case_stages(self, cases: InMemoryCaseRepository) -> None:
        """Test that the seeded case starts with only its first stage unlocked."""
        case = await cases.get_case("case-1")

        assert len(case.stages) == 4
        assert [s.unlocked for s in case.stages] == [True, False, False, False]

    @pytest.mark.asyncio
    async def test_unlock_stage(self, cases: InMemoryCaseRepository) -> None:
        """Test unlocking a later stage."""
        case = await cases.unlock_stage("case-1", 2)

        assert case.stages[1].unlocked
        with pytest.raises(NotFoundError):
            await cases.unlock_stage("case-1", 9)

    @pytest.mark.asyncio
    async def test_unknown_case(self, cases: InMemoryCaseRepository) -> None:
        """Test that an unknown case raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await cases.get_case("case-404")


class TestGroups:
    """Tests for group membership."""

    @pytest.mark.asyncio
    async def test_seeded_group(self, groups: InMemoryGroupRepository, group_id: str) -> None:
        """Test the fixture group's roles."""
        group = await groups.get_group(group_id)

        assert group.is_facilitator("facilitator-1")
        assert not group.is_facilitator("student-1")
        assert group.is_member("student-3")
        assert group.status == GroupStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_create_and_join(self, groups: InMemoryGroupRepository) -> None:
        """Test that a group becomes active once three people have joined."""
        group = await groups.create_group("Cohort B", "case-1", "tutor", facilitator_name="Tutor")
        assert group.status == GroupStatus.WAITING
        assert group.members[0].role == MemberRole.FACILITATOR

        await groups.join_group(group.group_id, "learner-1")
        group = await groups.join_group(group.group_id, "learner-2")

        assert group.status == GroupStatus.ACTIVE
        assert group.member_ids == ["tutor", "learner-1", "learner-2"]

    @pytest.mark.asyncio
    async def test_join_twice(self, groups: InMemoryGroupRepository, group_id: str) -> None:
        """Test that existing members cannot join again."""
        with pytest.raises(AlreadyMemberError):
            await groups.join_group(group_id, "student-1")

    @pytest.mark.asyncio
    async def test_join_full_group(self, groups: InMemoryGroupRepository) -> None:
        """Test that capacity is enforced."""
        group = await groups.create_group("Small", "case-1", "tutor", max_participants=2)
        await groups.join_group(group.group_id, "learner-1")

        with pytest.raises(GroupFullError):
            await groups.join_group(group.group_id, "learner-2")

    @pytest.mark.asyncio
    async def test_leave_group(self, groups: InMemoryGroupRepository, group_id: str) -> None:
        """Test that leaving drops a group back to waiting."""
        await groups.leave_group(group_id, "student-1")
        group = await groups.leave_group(group_id, "student-2")

        assert not group.is_member("student-1")
        assert group.status == GroupStatus.WAITING

    @pytest.mark.asyncio
    async def test_facilitator_cannot_leave(self, groups: InMemoryGroupRepository, group_id: str) -> None:
        """Test that the facilitator stays attached to the group."""
        with pytest.raises(ValidationError):
            await groups.leave_group(group_id, "facilitator-1")

        group = await groups.get_group(group_id)
        assert group.is_facilitator("facilitator-1")
        assert len(group.members) == 4

    @pytest.mark.asyncio
    async def test_update_group(self, groups: InMemoryGroupRepository, group_id: str) -> None:
        """Test renaming a group."""
        group = await groups.update_group(group_id, name="Renamed")

        assert group.name == "Renamed"
        assert (await groups.get_group(group_id)).name == "Renamed"

    @pytest.mark.asyncio
    async def test_returned_group_is_a_copy(self, groups: InMemoryGroupRepository, group_id: str) -> None:
        """Test that callers cannot mutate stored membership."""
        group = await groups.get_group(group_id)
        group.members.clear()

        assert len((await groups.get_group(group_id)).members) == 4

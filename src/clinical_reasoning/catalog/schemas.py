"""
Pydantic schemas for externally supplied catalog data.

Families, cases and groups are owned outside the session core; the core
only reads them (groups are also managed by the lobby flow).
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class MemberRole(str, Enum):
    """Role of a participant within a group."""

    FACILITATOR = "facilitator"
    LEARNER = "learner"


class GroupStatus(str, Enum):
    """Lobby status of a group."""

    WAITING = "waiting"
    ACTIVE = "active"


class Family(BaseModel):
    """A diagnostic family used to categorize hypotheses."""

    family_id: str = Field(..., description="Unique family identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="What kind of explanation belongs here")
    color: str = Field(default="#64748b", description="Display colour")
    icon: str = Field(default="", description="Icon name")


class CaseStage(BaseModel):
    """One progressively revealed stage of a clinical case."""

    stage_number: int = Field(..., ge=1, description="1-based stage number")
    title: str = Field(..., description="Stage title")
    content: str = Field(default="", description="Information revealed at this stage")
    unlocked: bool = Field(default=False, description="Whether learners can see this stage")


class Case(BaseModel):
    """A clinical case presented to learners."""

    case_id: str = Field(..., description="Unique case identifier")
    title: str = Field(..., description="Case title")
    description: str = Field(default="", description="Short presentation of the patient")
    stages: list[CaseStage] = Field(default_factory=list, description="Ordered case stages")


class GroupMember(BaseModel):
    """A participant in a collaborative group."""

    user_id: str = Field(..., description="User identifier")
    name: str = Field(default="", description="Display name")
    role: MemberRole = Field(default=MemberRole.LEARNER, description="Role in the group")
    joined_at: datetime = Field(default_factory=_now_utc, description="When the user joined")


class Group(BaseModel):
    """A group of learners working through one case together."""

    group_id: str = Field(..., description="Unique group identifier")
    name: str = Field(..., description="Group name")
    case_id: str = Field(..., description="Case the group is working on")
    max_participants: int = Field(default=5, ge=1, description="Participant capacity")
    facilitator_id: str = Field(..., description="User id of the facilitator")
    members: list[GroupMember] = Field(default_factory=list, description="Current members")
    status: GroupStatus = Field(default=GroupStatus.WAITING, description="Lobby status")
    created_at: datetime = Field(default_factory=_now_utc, description="When the group was created")

    def get_member(self, user_id: str) -> GroupMember | None:
        """Look up a member by user id."""
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def is_member(self, user_id: str) -> bool:
        """Check whether the user belongs to the group."""
        return self.get_member(user_id) is not None

    def is_facilitator(self, user_id: str) -> bool:
        """Check whether the user holds the facilitator role."""
        member = self.get_member(user_id)
        if member is not None:
            return member.role == MemberRole.FACILITATOR
        return False

    @property
    def member_ids(self) -> list[str]:
        """User ids of all members, in join order."""
        return [m.user_id for m in self.members]

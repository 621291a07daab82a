"""Data models for family trees and invitations."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Gender(str, Enum):
    """Member gender."""
    MALE = "male"
    FEMALE = "female"

    @property
    def opposite(self) -> "Gender":
        return Gender.FEMALE if self is Gender.MALE else Gender.MALE


class RelationKind(str, Enum):
    """How a member was attached to the tree when created."""
    SELF = "self"
    SPOUSE_OF = "spouse_of"
    FATHER_OF = "father_of"
    MOTHER_OF = "mother_of"
    CHILD_OF = "child_of"


class Relation(BaseModel):
    """Structured relation record: kind, referenced member, sibling number."""

    model_config = ConfigDict(frozen=True)

    kind: RelationKind
    ref_id: Optional[str] = None
    sibling_index: Optional[int] = None

    def to_tag(self) -> str:
        """Render as the legacy relation tag (self, spouse_of_<id>, child_of_<id>_<n>, ...)."""
        if self.kind is RelationKind.SELF:
            return "self"
        if self.kind is RelationKind.CHILD_OF:
            return f"child_of_{self.ref_id}_{self.sibling_index or 1}"
        return f"{self.kind.value}_{self.ref_id}"


class Position(BaseModel):
    """Canvas position hint. Presentational only."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float
    y: float


class AddMemberData(BaseModel):
    """Payload for adding a relative."""

    name: str = ""
    gender: Gender = Gender.MALE
    avatar_url: Optional[str] = None
    birth_year: Optional[int] = None
    death_year: Optional[int] = None


class FamilyMember(BaseModel):
    """Node of a personal family tree."""

    id: str
    owner_id: str
    name: str = ""
    gender: Gender = Gender.MALE
    avatar_url: Optional[str] = None
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    is_placeholder: bool = True
    linked_user_id: Optional[str] = None
    position: Optional[Position] = None
    spouse_id: Optional[str] = None
    parent_ids: list[str] = Field(default_factory=list)
    children_ids: list[str] = Field(default_factory=list)
    relation: Optional[Relation] = None  # None when the persisted tag was unparseable
    merged_into: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_linked(self) -> bool:
        return self.linked_user_id is not None


class InvitationStatus(str, Enum):
    """Invitation lifecycle states."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FamilyInvitation(BaseModel):
    """Offer of a placeholder member to a real account."""

    id: str
    sender_id: str
    receiver_id: str
    member_id: str
    relation_type: str
    status: InvitationStatus = InvitationStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class UserProfile(BaseModel):
    """Public profile of a real account, used when claiming a placeholder."""

    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.username or ""

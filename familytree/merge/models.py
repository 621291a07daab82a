"""Data models for cross-tree merging."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from familytree.models import FamilyMember, Gender


class MergeRelationship(str, Enum):
    """Generation at which two trees overlap."""
    PARENT = "parent"
    GRANDPARENT = "grandparent"
    SIBLING = "sibling"


class MergeCandidate(BaseModel):
    """Two members, one per tree, believed to be the same person."""

    source_id: str
    target_id: str
    source_name: str = ""
    target_name: str = ""
    relationship: MergeRelationship
    source_avatar_url: Optional[str] = None
    target_avatar_url: Optional[str] = None


class ChildProfile(BaseModel):
    """Minimal view of a child shown in the reconciliation dialog."""

    id: str
    name: str = ""
    gender: Gender = Gender.MALE
    avatar_url: Optional[str] = None

    @classmethod
    def from_member(cls, member: FamilyMember) -> "ChildProfile":
        return cls(id=member.id, name=member.name, gender=member.gender, avatar_url=member.avatar_url)


class SuggestedPair(BaseModel):
    """Externally proposed match between a source child and a target child."""

    source_child: ChildProfile
    target_child: ChildProfile
    similarity: float


class ChildMergeItem(BaseModel):
    """One row of the reconciliation lists. Lives only while the dialog is open."""

    child: ChildProfile
    paired_with_id: Optional[str] = None
    should_merge: bool = False


class ChildMergeData(BaseModel):
    """Children of one overlapping couple on both sides, plus suggestions."""

    source_children: list[ChildProfile] = Field(default_factory=list)
    target_children: list[ChildProfile] = Field(default_factory=list)
    suggested_pairs: list[SuggestedPair] = Field(default_factory=list)
    label: str = ""

    @property
    def has_children(self) -> bool:
        return bool(self.source_children or self.target_children)


class MergeInstruction(BaseModel):
    """Merge source into target."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    target_id: str


class MergeRecord(BaseModel):
    """Audit entry for one committed merge."""

    instruction: MergeInstruction
    source_before: FamilyMember
    target_before: FamilyMember
    source_after: FamilyMember
    target_after: FamilyMember
    changes: dict[str, Any] = Field(default_factory=dict)
    merged_at: datetime = Field(default_factory=datetime.now)


class MergeBatchResult(BaseModel):
    """Outcome of applying instructions one after another."""

    committed: list[MergeRecord] = Field(default_factory=list)
    failed: Optional[MergeInstruction] = None
    error: Optional[str] = None
    not_attempted: list[MergeInstruction] = Field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.failed is None


class ChildMergePlan(BaseModel):
    """Result of committing the reconciliation dialog."""

    merges: list[MergeInstruction] = Field(default_factory=list)
    separate_ids: list[str] = Field(default_factory=list)


class MergeProposal(BaseModel):
    """Everything needed to drive a merge session."""

    candidates: list[MergeCandidate] = Field(default_factory=list)
    child_groups: list[ChildMergeData] = Field(default_factory=list)

    @property
    def has_children(self) -> bool:
        return any(group.has_children for group in self.child_groups)

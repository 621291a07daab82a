"""Typed errors raised by the family tree engine."""

from typing import Optional


class FamilyTreeError(Exception):
    """Base class for family tree errors."""


class MemberNotFoundError(FamilyTreeError):
    """A member id is not present in the tree or store."""
    
    def __init__(self, member_id: str):
        super().__init__(f"Member not found: {member_id}")
        self.member_id = member_id


class FamilyLimitError(FamilyTreeError):
    """Adding a relative would exceed a relationship limit."""
    
    def __init__(self, member_id: str, relation: str, limit: int):
        super().__init__(f"Member {member_id} already has {limit} {relation}(s)")
        self.member_id = member_id
        self.relation = relation
        self.limit = limit


class DuplicateInvitationError(FamilyTreeError):
    """A pending invitation already exists for the same member and receiver."""
    
    def __init__(self, member_id: str, receiver_id: str, existing_id: Optional[str] = None):
        super().__init__(f"Pending invitation already exists for member {member_id} -> {receiver_id}")
        self.member_id = member_id
        self.receiver_id = receiver_id
        self.existing_id = existing_id


class InvitationStateError(FamilyTreeError):
    """An invitation transition is not allowed from its current state."""


class AlreadyLinkedError(FamilyTreeError):
    """The member is already claimed by a real account."""


class StoreError(FamilyTreeError):
    """A persistence operation failed."""


class MergeStateError(FamilyTreeError):
    """A merge session step was called in the wrong state."""

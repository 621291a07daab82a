"""Linking package - invitations and family networks."""

from familytree.linking.invitation_store import InvitationStore
from familytree.linking.network_registry import FamilyNetworkRegistry
from familytree.linking.workflow import InvitationWorkflow

__all__ = ["InvitationStore", "FamilyNetworkRegistry", "InvitationWorkflow"]

"""
Invitation & account-linking workflow.

An invitation offers one placeholder member of the sender's tree to a real
account. Its lifecycle is pending -> accepted or pending -> rejected; nothing
else. Accepting links the member to the receiver for good.
"""

from typing import Optional

from familytree.errors import (
    AlreadyLinkedError,
    DuplicateInvitationError,
    InvitationStateError,
    MemberNotFoundError,
)
from familytree.graph.member_store import TreeMemberStore
from familytree.graph.tree import FamilyTree
from familytree.linking.invitation_store import InvitationStore
from familytree.linking.network_registry import FamilyNetworkRegistry
from familytree.logging import get_logger
from familytree.models import FamilyInvitation, InvitationStatus, UserProfile


logger = get_logger(__name__)


class InvitationWorkflow:
    """
    Sends, accepts and rejects family invitations.

    Usage:
        workflow = InvitationWorkflow(InvitationStore(), TreeMemberStore())
        invitation = workflow.link_existing_member(tree, member_id, "user-2")
        await workflow.accept(invitation.id, "user-2", profile)
    """

    def __init__(
        self,
        invitations: InvitationStore,
        member_store: TreeMemberStore,
        networks: Optional[FamilyNetworkRegistry] = None
    ):
        self.invitations = invitations
        self.member_store = member_store
        self.networks = networks

    def send_invitation(
        self,
        sender_id: str,
        receiver_id: str,
        member_id: str,
        relation_type: str
    ) -> FamilyInvitation:
        """
        Create a pending invitation.

        The duplicate check and the insert are separate statements; two
        simultaneous submissions for the same pair can both succeed.
        """
        existing = self.invitations.find_pending(member_id, receiver_id)
        if existing is not None:
            raise DuplicateInvitationError(member_id, receiver_id, existing.id)

        invitation = self.invitations.create(sender_id, receiver_id, member_id, relation_type)
        logger.info(
            "invitation_sent",
            invitation_id=invitation.id, sender_id=sender_id,
            receiver_id=receiver_id, member_id=member_id,
        )
        return invitation

    def link_existing_member(self, tree: FamilyTree, member_id: str, receiver_id: str) -> FamilyInvitation:
        """Invite receiver_id to claim a placeholder of tree."""
        member = tree.get(member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        if member.is_linked:
            raise AlreadyLinkedError(f"Member {member_id} is already linked to {member.linked_user_id}")

        relation_type = member.relation.to_tag() if member.relation is not None else ""
        return self.send_invitation(tree.owner_id, receiver_id, member_id, relation_type)

    def _require_pending(self, invitation_id: str, receiver_id: str) -> FamilyInvitation:
        invitation = self.invitations.get(invitation_id)
        if invitation is None:
            raise InvitationStateError(f"Invitation not found: {invitation_id}")
        if invitation.receiver_id != receiver_id:
            raise InvitationStateError(f"Invitation {invitation_id} is not addressed to {receiver_id}")
        if invitation.status is not InvitationStatus.PENDING:
            raise InvitationStateError(
                f"Invitation {invitation_id} is {invitation.status.value}, not pending"
            )
        return invitation

    async def accept(
        self,
        invitation_id: str,
        receiver_id: str,
        profile: Optional[UserProfile] = None,
        tree: Optional[FamilyTree] = None
    ) -> FamilyInvitation:
        """
        Accept a pending invitation and link its member to the receiver.

        When tree holds the member, the in-memory copy is updated too. The
        member is linked before the status changes; if linking fails the
        invitation stays pending.
        """
        invitation = self._require_pending(invitation_id, receiver_id)

        changes = {"linked_user_id": receiver_id, "is_placeholder": False}
        if profile is not None:
            if profile.display_name:
                changes["name"] = profile.display_name
            if profile.avatar_url:
                changes["avatar_url"] = profile.avatar_url

        mirrored = tree is not None and invitation.member_id in tree
        if mirrored and tree.store is self.member_store:
            await tree.apply_update(invitation.member_id, **changes)
            found = await self.member_store.get(invitation.member_id) is not None
        else:
            partial = {"member_name" if k == "name" else k: v for k, v in changes.items()}
            found = await self.member_store.update(invitation.member_id, partial)
            if found and mirrored:
                await tree.apply_update(invitation.member_id, **changes)
        if not found:
            logger.warning("invited_member_missing", invitation_id=invitation.id,
                           member_id=invitation.member_id)
            raise MemberNotFoundError(invitation.member_id)

        if self.networks is not None:
            self.networks.merge_networks(invitation.sender_id, receiver_id)
        self.invitations.update_status(invitation.id, InvitationStatus.ACCEPTED)

        logger.info("invitation_accepted", invitation_id=invitation.id,
                    member_id=invitation.member_id, receiver_id=receiver_id)
        return self.invitations.get(invitation.id)

    def reject(self, invitation_id: str, receiver_id: str) -> FamilyInvitation:
        """Reject a pending invitation. The member is left untouched."""
        invitation = self._require_pending(invitation_id, receiver_id)
        self.invitations.update_status(invitation.id, InvitationStatus.REJECTED)
        logger.info("invitation_rejected", invitation_id=invitation.id, receiver_id=receiver_id)
        return self.invitations.get(invitation.id)

    def pending_for(self, user_id: str) -> list[FamilyInvitation]:
        """Pending invitations addressed to user_id, newest first."""
        return self.invitations.list_by_participant(user_id, InvitationStatus.PENDING, role="receiver")

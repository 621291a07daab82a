"""Pytest fixtures for linking tests."""

import asyncio

import pytest

from familytree.graph.tree import FamilyTree
from familytree.linking.invitation_store import InvitationStore
from familytree.linking.network_registry import FamilyNetworkRegistry
from familytree.linking.workflow import InvitationWorkflow


@pytest.fixture
def invitations(tmp_path):
    """Invitation store in a temporary directory."""
    return InvitationStore(db_path=str(tmp_path / "invitations.db"))


@pytest.fixture
def networks(tmp_path):
    """Network registry sharing the invitations database."""
    return FamilyNetworkRegistry(db_path=str(tmp_path / "invitations.db"))


@pytest.fixture
def workflow(invitations, member_store, networks):
    """Workflow over temporary stores."""
    return InvitationWorkflow(invitations, member_store, networks)


@pytest.fixture
def sender_tree(member_store):
    """Loaded tree of user-1 with the initial couple stored."""
    async def load():
        tree = FamilyTree("user-1", store=member_store)
        await tree.load()
        await tree.flush()
        return tree

    return asyncio.run(load())

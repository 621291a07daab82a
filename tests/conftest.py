"""Shared pytest fixtures."""

import dataclasses

import pytest

from familytree.config import MergeSettings, PersistenceSettings, Settings
from familytree.errors import StoreError
from familytree.graph.change_feed import ChangeFeed
from familytree.graph.member_store import TreeMemberStore


class RecordingStore:
    """In-memory row store that records every write it receives."""

    def __init__(self):
        self.rows = {}
        self.writes = []
        self.fail_on: set[str] = set()
        self.gate = None  # asyncio.Event; writes wait on it when set

    async def _enter(self, action: str, member_id: str, partial=None):
        self.writes.append((action, member_id, partial))
        if self.gate is not None:
            await self.gate.wait()
        if action in self.fail_on:
            raise StoreError(f"{action} failed")

    def writes_for(self, member_id: str, action: str = None) -> list:
        return [w for w in self.writes if w[1] == member_id and (action is None or w[0] == action)]

    async def select_by_owner(self, owner_id):
        return [dataclasses.replace(r) for r in self.rows.values() if r.owner_id == owner_id]

    async def get(self, member_id):
        row = self.rows.get(member_id)
        return dataclasses.replace(row) if row else None

    async def insert(self, row):
        await self._enter("insert", row.id)
        self.rows[row.id] = dataclasses.replace(row)

    async def update(self, member_id, partial):
        await self._enter("update", member_id, dict(partial))
        row = self.rows.get(member_id)
        if row is None:
            return False
        for key, value in partial.items():
            setattr(row, key, value)
        return True

    async def delete(self, member_id):
        await self._enter("delete", member_id)
        return self.rows.pop(member_id, None) is not None


def _check_invariants(tree_or_members):
    """Spouse symmetry and parent/child duality over a tree or a member map."""
    members = getattr(tree_or_members, "members", tree_or_members)
    for member in members.values():
        if member.spouse_id is not None:
            assert member.spouse_id in members
            assert members[member.spouse_id].spouse_id == member.id
        for child_id in member.children_ids:
            assert child_id in members
            assert member.id in members[child_id].parent_ids
        for parent_id in member.parent_ids:
            assert parent_id in members
            assert member.id in members[parent_id].children_ids
        assert len(member.parent_ids) <= 2


@pytest.fixture
def check_invariants():
    """Assertion helper for tree invariants."""
    return _check_invariants


@pytest.fixture
def fast_settings():
    """Settings with short delays for async tests."""
    return Settings(
        persistence=PersistenceSettings(position_debounce_seconds=0.05),
        merge=MergeSettings(children_step_delay_seconds=0),
    )


@pytest.fixture
def feed():
    """In-process change feed."""
    return ChangeFeed()


@pytest.fixture
def member_store(tmp_path, feed):
    """SQLite member store in a temporary directory."""
    return TreeMemberStore(db_path=str(tmp_path / "family_tree.db"), feed=feed)


@pytest.fixture
def recording_store():
    """Row store double that records writes."""
    return RecordingStore()

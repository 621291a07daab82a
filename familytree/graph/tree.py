"""In-memory family tree with optimistic, asynchronously persisted mutations."""

import asyncio
import uuid
from collections import Counter
from datetime import datetime
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping, Optional

from familytree.config import Settings, settings as default_settings
from familytree.errors import FamilyLimitError, MemberNotFoundError
from familytree.graph import layout
from familytree.graph.change_feed import ChangeFeed
from familytree.graph.codec import DecodeResult, UnparseableRow, decode_rows, encode_member, encode_position, repair_edges
from familytree.graph.debounce import KeyedDebouncer
from familytree.graph.member_store import TreeMemberStore
from familytree.logging import get_logger
from familytree.models import AddMemberData, FamilyMember, Gender, Position, Relation, RelationKind


logger = get_logger(__name__)


def generate_id() -> str:
    return uuid.uuid4().hex


# Member fields that map onto row columns
_COLUMN_FOR = {
    "name": "member_name",
    "gender": "gender",
    "avatar_url": "avatar_url",
    "birth_year": "birth_year",
    "death_year": "death_year",
    "linked_user_id": "linked_user_id",
    "is_placeholder": "is_placeholder",
    "merged_into": "merged_into",
}

EDITABLE_FIELDS = {"name", "gender", "avatar_url", "birth_year", "death_year"}


class FamilyTree:
    """
    Personal family tree of one owner.

    Mutations update memory synchronously and schedule the matching durable
    write without waiting for it. A failed write is logged and memory is
    left as is; the next reload reconciles. Position writes are debounced
    per member.

    Usage:
        tree = FamilyTree("user-1", store=TreeMemberStore(feed=feed), feed=feed)
        await tree.load()
        father_id, mother_id = tree.add_parents(tree.root_id, dad, mum)
        tree.update_position(father_id, Position(x=10, y=-200))
    """

    def __init__(self, owner_id: str, store: Optional[TreeMemberStore] = None,
                 feed: Optional[ChangeFeed] = None, config: Optional[Settings] = None):
        self.owner_id = owner_id
        self.store = store
        self.feed = feed
        self.config = config or default_settings
        self.root_id: Optional[str] = None
        self.unparseable: list[UnparseableRow] = []

        self._members: dict[str, FamilyMember] = {}
        self._tasks: set[asyncio.Task] = set()
        self._inflight: Counter = Counter()
        self._tails: dict[str, asyncio.Task] = {}
        self._deleting: set[str] = set()
        self._positions: KeyedDebouncer[Position] = KeyedDebouncer(
            self.config.persistence.position_debounce_seconds, self._position_due
        )
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._reload_task: Optional[asyncio.Task] = None
        self._reload_again = False

    # ─────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────

    @property
    def members(self) -> Mapping[str, FamilyMember]:
        return MappingProxyType(self._members)

    def __contains__(self, member_id: str) -> bool:
        return member_id in self._members

    def __len__(self) -> int:
        return len(self._members)

    def get(self, member_id: str) -> Optional[FamilyMember]:
        return self._members.get(member_id)

    def require(self, member_id: str) -> FamilyMember:
        member = self._members.get(member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        return member

    def spouse_of(self, member_id: str) -> Optional[FamilyMember]:
        member = self._members.get(member_id)
        if member is None or member.spouse_id is None:
            return None
        return self._members.get(member.spouse_id)

    def parents_of(self, member_id: str) -> list[FamilyMember]:
        member = self._members.get(member_id)
        if member is None:
            return []
        return [self._members[p] for p in member.parent_ids if p in self._members]

    def children_of(self, member_id: str) -> list[FamilyMember]:
        member = self._members.get(member_id)
        if member is None:
            return []
        return [self._members[c] for c in member.children_ids if c in self._members]

    def active_members(self) -> list[FamilyMember]:
        """Members not absorbed by a merge."""
        return [m for m in self._members.values() if m.merged_into is None]

    # ─────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────

    def _new_member(self, data: Optional[AddMemberData], gender: Gender,
                    relation: Relation, position: Position) -> FamilyMember:
        data = data or AddMemberData(gender=gender)
        member = FamilyMember(
            id=generate_id(),
            owner_id=self.owner_id,
            name=data.name,
            gender=gender,
            avatar_url=data.avatar_url,
            birth_year=data.birth_year,
            death_year=data.death_year,
            relation=relation,
            position=position,
        )
        self._members[member.id] = member
        return member

    def _anchor(self, member: FamilyMember) -> Position:
        """Position to place relatives around; falls back when the member has none."""
        if member.position is not None:
            return member.position
        placed = [m.position for m in self._members.values() if m.position is not None]
        return layout.fallback_position(placed, self.config.layout)

    def add_initial_couple(self) -> tuple[str, str]:
        """Create the root husband and wife. Returns (husband_id, wife_id)."""
        husband_pos, wife_pos = layout.initial_couple_positions(self.config.layout)
        husband = self._new_member(None, Gender.MALE, Relation(kind=RelationKind.SELF), husband_pos)
        wife = self._new_member(
            None, Gender.FEMALE,
            Relation(kind=RelationKind.SPOUSE_OF, ref_id=husband.id), wife_pos,
        )
        husband.spouse_id = wife.id
        wife.spouse_id = husband.id
        self.root_id = husband.id

        self._schedule_insert(husband)
        self._schedule_insert(wife)
        logger.info("initial_couple_added", owner_id=self.owner_id, husband_id=husband.id, wife_id=wife.id)
        return husband.id, wife.id

    def add_parents(self, child_id: str, father_data: Optional[AddMemberData] = None,
                    mother_data: Optional[AddMemberData] = None) -> Optional[tuple[str, str]]:
        """Add father and mother above a child. No-op for an unknown child."""
        child = self._members.get(child_id)
        if child is None:
            return None

        limits = self.config.limits
        parents = self.parents_of(child_id)
        fathers = sum(1 for p in parents if p.gender is Gender.MALE)
        mothers = sum(1 for p in parents if p.gender is Gender.FEMALE)
        if fathers >= limits.max_fathers:
            raise FamilyLimitError(child_id, "father", limits.max_fathers)
        if mothers >= limits.max_mothers:
            raise FamilyLimitError(child_id, "mother", limits.max_mothers)

        father_pos, mother_pos = layout.parent_positions(self._anchor(child), self.config.layout)
        father = self._new_member(
            father_data, Gender.MALE,
            Relation(kind=RelationKind.FATHER_OF, ref_id=child_id), father_pos,
        )
        mother = self._new_member(
            mother_data, Gender.FEMALE,
            Relation(kind=RelationKind.MOTHER_OF, ref_id=child_id), mother_pos,
        )
        father.spouse_id = mother.id
        mother.spouse_id = father.id
        father.children_ids.append(child_id)
        mother.children_ids.append(child_id)
        child.parent_ids.extend([father.id, mother.id])

        self._schedule_insert(father)
        self._schedule_insert(mother)
        return father.id, mother.id

    def add_spouse(self, member_id: str, spouse_data: Optional[AddMemberData] = None) -> Optional[str]:
        """Add a spouse of the opposite gender next to a member."""
        member = self._members.get(member_id)
        if member is None:
            return None
        if member.spouse_id is not None:
            raise FamilyLimitError(member_id, "spouse", self.config.limits.max_spouses)

        gender = member.gender.opposite
        position = layout.spouse_position(self._anchor(member), member.gender, self.config.layout)
        spouse = self._new_member(
            spouse_data, gender,
            Relation(kind=RelationKind.SPOUSE_OF, ref_id=member_id), position,
        )
        spouse.spouse_id = member_id
        member.spouse_id = spouse.id

        self._schedule_insert(spouse)
        return spouse.id

    def add_child(self, parent_id: str, child_data: Optional[AddMemberData] = None) -> Optional[str]:
        """Add a child under a parent and the parent's spouse, if any."""
        parent = self._members.get(parent_id)
        if parent is None:
            return None
        limit = self.config.limits.max_children
        if len(parent.children_ids) >= limit:
            raise FamilyLimitError(parent_id, "child", limit)

        spouse = self.spouse_of(parent_id)
        sibling_index = len(parent.children_ids)
        anchor = self._anchor(parent)
        spouse_anchor = spouse.position if spouse is not None else None
        position = layout.child_position(anchor, spouse_anchor, sibling_index, self.config.layout)

        data = child_data or AddMemberData()
        child = self._new_member(
            data, data.gender,
            Relation(kind=RelationKind.CHILD_OF, ref_id=parent_id, sibling_index=sibling_index + 1),
            position,
        )
        parent_ids = [parent_id] + ([spouse.id] if spouse is not None else [])
        child.parent_ids = list(parent_ids)
        for pid in parent_ids:
            self._members[pid].children_ids.append(child.id)

        self._schedule_insert(child)
        return child.id

    def update_member(self, member_id: str, **changes) -> bool:
        """Edit name, gender, avatar or years of a member."""
        member = self._members.get(member_id)
        if member is None:
            return False
        updates = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        if not updates:
            return False
        if "gender" in updates:
            updates["gender"] = Gender(updates["gender"])
        for key, value in updates.items():
            setattr(member, key, value)
        member.updated_at = datetime.now()

        partial = self._to_columns(updates)
        self._schedule(member_id, "update", lambda: self.store.update(member_id, partial))
        return True

    def remove_member(self, member_id: str) -> bool:
        """Remove one member and every edge touching it. Relatives stay."""
        member = self._members.pop(member_id, None)
        if member is None:
            return False

        if member.spouse_id and member.spouse_id in self._members:
            self._members[member.spouse_id].spouse_id = None
        for pid in member.parent_ids:
            parent = self._members.get(pid)
            if parent is not None:
                parent.children_ids = [c for c in parent.children_ids if c != member_id]
        for cid in member.children_ids:
            child = self._members.get(cid)
            if child is not None:
                child.parent_ids = [p for p in child.parent_ids if p != member_id]
        if self.root_id == member_id:
            self.root_id = None

        self._positions.cancel(member_id)
        if self.store is not None:
            self._deleting.add(member_id)
            self._schedule(member_id, "delete", lambda: self._delete_row(member_id))
        return True

    def update_position(self, member_id: str, position: Position) -> bool:
        """Move a node. Memory updates now; the write waits for a quiet period."""
        member = self._members.get(member_id)
        if member is None:
            return False
        member.position = position
        if self.store is not None:
            self._positions.call(member_id, position)
        return True

    async def apply_update(self, member_id: str, **changes) -> FamilyMember:
        """Apply a change and wait for it to be stored. Store errors propagate."""
        member = self.require(member_id)
        updates = {k: v for k, v in changes.items() if k in _COLUMN_FOR}
        for key, value in updates.items():
            setattr(member, key, value)
        member.updated_at = datetime.now()
        if self.store is not None and updates:
            partial = self._to_columns(updates)
            self._inflight[member_id] += 1
            try:
                await self._chain(member_id, lambda: self.store.update(member_id, partial))
            finally:
                self._done(member_id)
        return member

    # ─────────────────────────────────────────
    # Durable writes
    # ─────────────────────────────────────────

    @staticmethod
    def _to_columns(updates: dict) -> dict:
        partial = {}
        for key, value in updates.items():
            partial[_COLUMN_FOR[key]] = value.value if isinstance(value, Gender) else value
        return partial

    def _schedule_insert(self, member: FamilyMember) -> None:
        row = encode_member(member)
        self._schedule(member.id, "insert", lambda: self.store.insert(row))

    def _chain(self, member_id: str, write: Callable[[], Awaitable]) -> asyncio.Task:
        """Start write once every earlier write for member_id has finished."""
        previous = self._tails.get(member_id)

        async def ordered():
            if previous is not None:
                await asyncio.wait({previous})
            return await write()

        task = asyncio.get_running_loop().create_task(ordered())
        self._tails[member_id] = task
        task.add_done_callback(lambda done: self._release_tail(member_id, done))
        return task

    def _release_tail(self, member_id: str, task: asyncio.Task) -> None:
        if self._tails.get(member_id) is task:
            del self._tails[member_id]

    def _schedule(self, member_id: str, action: str, write: Callable[[], Awaitable]) -> None:
        if self.store is None:
            return
        self._inflight[member_id] += 1
        task = self._chain(member_id, lambda: self._run_write(member_id, action, write))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_write(self, member_id: str, action: str, write: Callable[[], Awaitable]) -> None:
        try:
            await write()
        except Exception as e:
            logger.error(
                "durable_write_failed",
                owner_id=self.owner_id, member_id=member_id, action=action, error=str(e),
            )
        finally:
            self._done(member_id)

    def _done(self, member_id: str) -> None:
        self._inflight[member_id] -= 1
        if self._inflight[member_id] <= 0:
            del self._inflight[member_id]
            self._deleting.discard(member_id)

    async def _delete_row(self, member_id: str) -> None:
        await self.store.delete(member_id)

    def _position_due(self, member_id: str, position: Position) -> None:
        if member_id not in self._members:
            return
        self._schedule(member_id, "position", lambda: self._write_position(member_id, position))

    async def _write_position(self, member_id: str, position: Position) -> None:
        # Read the stored tag back so it is preserved unmodified
        row = await self.store.get(member_id)
        if row is None:
            logger.warning("position_target_missing", owner_id=self.owner_id, member_id=member_id)
            return
        await self.store.update(member_id, encode_position(row.relation_type, position))

    def has_local_edits(self, member_id: str) -> bool:
        return member_id in self._inflight or self._positions.is_pending(member_id)

    async def flush(self) -> None:
        """Fire pending debounced writes and wait for every in-flight write."""
        self._positions.flush()
        while self._tasks or (self._reload_task is not None and not self._reload_task.done()):
            pending = list(self._tasks)
            if self._reload_task is not None and not self._reload_task.done():
                pending.append(self._reload_task)
            await asyncio.gather(*pending, return_exceptions=True)

    # ─────────────────────────────────────────
    # Loading and change notifications
    # ─────────────────────────────────────────

    async def load(self) -> DecodeResult:
        """Replace memory with the stored rows; bootstrap a couple when empty."""
        rows = await self.store.select_by_owner(self.owner_id)
        result = decode_rows(rows)
        self._members = result.members
        self.root_id = result.root_id
        self.unparseable = result.unparseable
        if not self._members:
            self.add_initial_couple()
        logger.info("tree_loaded", owner_id=self.owner_id, members=len(self._members),
                    unparseable=len(self.unparseable))
        return result

    async def reload(self) -> DecodeResult:
        """
        Reconcile memory with the stored rows.

        Members with writes still in flight or debounced keep their local
        version; members being deleted stay deleted. Safe to repeat.
        """
        rows = await self.store.select_by_owner(self.owner_id)
        result = decode_rows(rows)
        fresh = dict(result.members)

        for member_id, member in self._members.items():
            if self.has_local_edits(member_id):
                fresh[member_id] = member
        for member_id in self._deleting:
            fresh.pop(member_id, None)
        repair_edges(fresh)

        self._members = fresh
        if self.root_id not in fresh:
            self.root_id = result.root_id if result.root_id in fresh else next(iter(fresh), None)
        self.unparseable = result.unparseable
        return result

    def subscribe(self) -> None:
        """Reload whenever the feed reports a change for this owner."""
        if self.feed is None or self._unsubscribe is not None:
            return
        self._unsubscribe = self.feed.subscribe(self.owner_id, self._on_change)

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self) -> None:
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_again = True
            return
        self._reload_task = asyncio.get_running_loop().create_task(self._reload_until_quiet())

    async def _reload_until_quiet(self) -> None:
        while True:
            self._reload_again = False
            try:
                await self.reload()
            except Exception as e:
                logger.error("reload_failed", owner_id=self.owner_id, error=str(e))
            if not self._reload_again:
                break

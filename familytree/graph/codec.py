"""
Row codec: persisted member rows <-> in-memory FamilyMember graph.

Decoding is two-phase. First every row becomes a node in an id-keyed map;
then relation records are resolved into spouse/parent/child edges. Row order
never matters because edges are only resolved once the whole map exists.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from familytree.graph.member_store import MemberRow
from familytree.graph.relations import (
    UnparseableRelation,
    encode_relation,
    join_position,
    parse_relation,
    split_position,
)
from familytree.logging import get_logger
from familytree.models import FamilyMember, Gender, Position, Relation, RelationKind


logger = get_logger(__name__)


@dataclass(frozen=True)
class UnparseableRow:
    """A row whose relation could not be wired into the graph."""
    member_id: str
    tag: str
    reason: str


@dataclass
class DecodeResult:
    """Outcome of decoding one owner's rows."""
    members: dict[str, FamilyMember] = field(default_factory=dict)
    root_id: Optional[str] = None
    unparseable: list[UnparseableRow] = field(default_factory=list)


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return datetime.now()


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def _gender(value: Optional[str]) -> Gender:
    return Gender.FEMALE if value == Gender.FEMALE.value else Gender.MALE


def member_from_row(row: MemberRow, relation: Optional[Relation],
                    position: Optional[Position]) -> FamilyMember:
    """Build an unwired node from its base fields."""
    return FamilyMember(
        id=row.id,
        owner_id=row.owner_id,
        name=row.member_name or "",
        gender=_gender(row.gender),
        avatar_url=row.avatar_url,
        birth_year=row.birth_year,
        death_year=row.death_year,
        is_placeholder=row.is_placeholder,
        linked_user_id=row.linked_user_id,
        position=position,
        relation=relation,
        merged_into=row.merged_into,
        created_at=_parse_time(row.created_at),
        updated_at=_parse_time(row.updated_at),
    )


def encode_member(member: FamilyMember) -> MemberRow:
    """Render a member as a row. The legacy suffix mirrors the numeric columns."""
    relation = member.relation or Relation(kind=RelationKind.SELF)
    position = member.position
    return MemberRow(
        id=member.id,
        owner_id=member.owner_id,
        member_name=member.name,
        relation_type=encode_relation(relation, position),
        avatar_url=member.avatar_url,
        gender=member.gender.value,
        linked_user_id=member.linked_user_id,
        is_placeholder=member.is_placeholder,
        position_x=position.x if position else None,
        position_y=position.y if position else None,
        merged_into=member.merged_into,
        birth_year=member.birth_year,
        death_year=member.death_year,
        created_at=member.created_at.isoformat(),
        updated_at=member.updated_at.isoformat(),
    )


def encode_position(existing_relation_type: str, position: Position) -> dict:
    """
    Partial update for a position-only change.

    The existing tag is kept exactly as stored; only the suffix and the
    numeric columns change.
    """
    tag, _ = split_position(existing_relation_type)
    return {
        "relation_type": join_position(tag, position),
        "position_x": position.x,
        "position_y": position.y,
    }


# ─────────────────────────────────────────
# Edge wiring
# ─────────────────────────────────────────

def _link_spouses(members: dict[str, FamilyMember], a: str, b: str) -> bool:
    first, second = members[a], members[b]
    if a == b:
        return False
    if first.spouse_id not in (None, b) or second.spouse_id not in (None, a):
        return False
    first.spouse_id = b
    second.spouse_id = a
    return True


def _link_parent(members: dict[str, FamilyMember], parent_id: str, child_id: str) -> None:
    parent, child = members[parent_id], members[child_id]
    if child_id not in parent.children_ids:
        parent.children_ids.append(child_id)
    if parent_id not in child.parent_ids and len(child.parent_ids) < 2:
        child.parent_ids.append(parent_id)


def repair_edges(members: dict[str, FamilyMember]) -> None:
    """Drop dangling references and restore spouse symmetry and parent/child duality."""
    for member in members.values():
        if member.spouse_id is not None:
            spouse = members.get(member.spouse_id)
            if spouse is None or spouse.spouse_id not in (None, member.id):
                member.spouse_id = None
            else:
                spouse.spouse_id = member.id
        member.children_ids = [c for c in dict.fromkeys(member.children_ids) if c in members]
        member.parent_ids = [p for p in dict.fromkeys(member.parent_ids) if p in members][:2]

    for member in members.values():
        for child_id in member.children_ids:
            child = members[child_id]
            if member.id not in child.parent_ids and len(child.parent_ids) < 2:
                child.parent_ids.append(member.id)
        for parent_id in member.parent_ids:
            parent = members[parent_id]
            if member.id not in parent.children_ids:
                parent.children_ids.append(member.id)

    # A parent whose child is full (two other parents) loses the stale child link
    for member in members.values():
        member.children_ids = [
            c for c in member.children_ids if member.id in members[c].parent_ids
        ]


def decode_rows(rows: Iterable[MemberRow]) -> DecodeResult:
    """Decode one owner's rows into a wired member map."""
    result = DecodeResult()
    members = result.members
    aliases: dict[str, str] = {}
    order: list[str] = []

    # Pass 1: nodes
    for row in rows:
        if row.merged_into:
            aliases[row.id] = row.merged_into
            continue
        tag, suffix_position = split_position(row.relation_type)
        if _finite(row.position_x) and _finite(row.position_y):
            position = Position(x=row.position_x, y=row.position_y)
        else:
            position = suffix_position
        parsed = parse_relation(tag)
        relation = None
        if isinstance(parsed, UnparseableRelation):
            result.unparseable.append(UnparseableRow(row.id, parsed.tag, parsed.reason))
        else:
            relation = parsed
        members[row.id] = member_from_row(row, relation, position)
        order.append(row.id)

    def resolve(ref_id: Optional[str]) -> Optional[str]:
        seen = set()
        while ref_id in aliases and ref_id not in seen:
            seen.add(ref_id)
            ref_id = aliases[ref_id]
        return ref_id if ref_id in members else None

    def missing(member: FamilyMember, reason: str) -> None:
        result.unparseable.append(UnparseableRow(member.id, member.relation.to_tag(), reason))

    by_kind: dict[RelationKind, list[FamilyMember]] = {kind: [] for kind in RelationKind}
    for member_id in order:
        member = members[member_id]
        if member.relation is not None:
            by_kind[member.relation.kind].append(member)

    # Pass 2a: spouses
    for member in by_kind[RelationKind.SPOUSE_OF]:
        ref = resolve(member.relation.ref_id)
        if ref is None:
            missing(member, "referenced spouse not found")
        elif not _link_spouses(members, member.id, ref):
            missing(member, "spouse already paired")

    # Pass 2b: explicit father/mother rows; a pair added together becomes a couple
    parents_of: dict[str, dict[Gender, str]] = {}
    for kind in (RelationKind.FATHER_OF, RelationKind.MOTHER_OF):
        for member in by_kind[kind]:
            ref = resolve(member.relation.ref_id)
            if ref is None:
                missing(member, "referenced child not found")
                continue
            _link_parent(members, member.id, ref)
            parents_of.setdefault(ref, {})[member.gender] = member.id
    for pair in parents_of.values():
        if Gender.MALE in pair and Gender.FEMALE in pair:
            _link_spouses(members, pair[Gender.MALE], pair[Gender.FEMALE])

    # Pass 2c: child_of rows, ordered by sibling number; the parent's spouse co-parents
    child_rows = []
    for position_in_rows, member in enumerate(by_kind[RelationKind.CHILD_OF]):
        ref = resolve(member.relation.ref_id)
        if ref is None:
            missing(member, "referenced parent not found")
            continue
        sibling = member.relation.sibling_index or 0
        child_rows.append((ref, sibling, position_in_rows, member.id))
    for parent_id, _, _, child_id in sorted(child_rows, key=lambda r: (r[1], r[2])):
        _link_parent(members, parent_id, child_id)
        spouse_id = members[parent_id].spouse_id
        if spouse_id is not None:
            _link_parent(members, spouse_id, child_id)

    repair_edges(members)

    for member in by_kind[RelationKind.SELF]:
        result.root_id = member.id
        break
    if result.root_id is None and order:
        result.root_id = order[0]

    for bad in result.unparseable:
        logger.warning("relation_not_wired", member_id=bad.member_id, tag=bad.tag, reason=bad.reason)
    return result

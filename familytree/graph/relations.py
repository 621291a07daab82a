"""
Relation tags and position suffixes.

Persisted rows carry one string combining a relation tag and an optional
position suffix:

    self
    spouse_of_<id>
    father_of_<childId>
    mother_of_<childId>
    child_of_<parentId>_<siblingIndex>
    ...followed by |x:<float>|y:<float>

Tags are parsed into the structured Relation record. A tag that cannot be
parsed yields an UnparseableRelation outcome instead of raising.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from familytree.models import Position, Relation, RelationKind


_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
POSITION_SUFFIX = re.compile(rf"\|x:(?P<x>{_NUMBER})\|y:(?P<y>{_NUMBER})$")

_PREFIXES = (
    ("spouse_of_", RelationKind.SPOUSE_OF),
    ("father_of_", RelationKind.FATHER_OF),
    ("mother_of_", RelationKind.MOTHER_OF),
    ("child_of_", RelationKind.CHILD_OF),
)


@dataclass(frozen=True)
class UnparseableRelation:
    """A relation tag that could not be turned into a Relation."""
    tag: str
    reason: str


ParsedRelation = Union[Relation, UnparseableRelation]


def check_member_id(member_id: str) -> str:
    """Reject ids that would corrupt the encoded string."""
    if not member_id:
        raise ValueError("Member id must not be empty")
    if "|" in member_id:
        raise ValueError(f"Member id may not contain '|': {member_id!r}")
    return member_id


def parse_relation(tag: str) -> ParsedRelation:
    """Parse a bare relation tag (position suffix already removed)."""
    tag = (tag or "").strip()
    if tag == "self":
        return Relation(kind=RelationKind.SELF)

    for prefix, kind in _PREFIXES:
        if not tag.startswith(prefix):
            continue
        rest = tag[len(prefix):]
        if not rest:
            return UnparseableRelation(tag, f"missing id after '{prefix}'")
        if kind is not RelationKind.CHILD_OF:
            return Relation(kind=kind, ref_id=rest)

        # Sibling index sits after the last underscore; the id may contain more
        head, sep, tail = rest.rpartition("_")
        if sep and head and tail.isdigit():
            return Relation(kind=kind, ref_id=head, sibling_index=int(tail))
        return Relation(kind=kind, ref_id=rest)

    return UnparseableRelation(tag, "unknown relation prefix")


def split_position(value: str) -> tuple[str, Optional[Position]]:
    """Strip a trailing |x:..|y:.. suffix, returning (tag, position)."""
    value = value or ""
    match = POSITION_SUFFIX.search(value)
    if not match:
        return value, None
    position = Position(x=float(match.group("x")), y=float(match.group("y")))
    return value[:match.start()], position


def join_position(tag: str, position: Optional[Position]) -> str:
    """Append the position suffix to a bare tag."""
    if position is None:
        return tag
    return f"{tag}|x:{position.x!r}|y:{position.y!r}"


def encode_relation(relation: Relation, position: Optional[Position] = None) -> str:
    """Render a relation record plus position as the persisted string."""
    if relation.ref_id is not None:
        check_member_id(relation.ref_id)
    return join_position(relation.to_tag(), position)


def decode_relation(value: str) -> tuple[ParsedRelation, Optional[Position]]:
    """Inverse of encode_relation."""
    tag, position = split_position(value)
    return parse_relation(tag), position

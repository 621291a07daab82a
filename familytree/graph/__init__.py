"""Graph package - in-memory family tree, row codec and row store."""

from familytree.graph.change_feed import ChangeFeed
from familytree.graph.codec import DecodeResult, UnparseableRow, decode_rows, encode_member, encode_position
from familytree.graph.member_store import MemberRow, TreeMemberStore
from familytree.graph.relations import UnparseableRelation, parse_relation
from familytree.graph.tree import FamilyTree

__all__ = [
    "ChangeFeed",
    "DecodeResult",
    "FamilyTree",
    "MemberRow",
    "TreeMemberStore",
    "UnparseableRelation",
    "UnparseableRow",
    "decode_rows",
    "encode_member",
    "encode_position",
    "parse_relation",
]

"""Tests for the row codec."""

import random

from familytree.graph.codec import decode_rows, encode_member, encode_position
from familytree.graph.member_store import MemberRow
from familytree.graph.tree import FamilyTree
from familytree.models import AddMemberData, Gender, Position


def build_tree() -> FamilyTree:
    tree = FamilyTree("owner-1")
    husband, wife = tree.add_initial_couple()
    tree.add_parents(husband, AddMemberData(name="Karim"), AddMemberData(name="Zuhra"))
    tree.add_child(husband, AddMemberData(name="Aziz", gender=Gender.MALE))
    tree.add_child(wife, AddMemberData(name="Nodira", gender=Gender.FEMALE))
    return tree


def edges(members):
    return {
        m.id: (m.spouse_id, sorted(m.parent_ids), list(m.children_ids))
        for m in members.values()
    }


class TestDecodeRows:
    """Tests for turning rows back into a graph."""

    def test_decode_is_independent_of_row_order(self, check_invariants):
        """Rows that reference later rows are still wired."""
        tree = build_tree()
        rows = [encode_member(m) for m in tree.members.values()]
        expected = edges(tree.members)

        for seed in range(5):
            shuffled = list(rows)
            random.Random(seed).shuffle(shuffled)
            result = decode_rows(shuffled)
            assert edges(result.members) == expected
            assert result.root_id == tree.root_id
            assert result.unparseable == []

        check_invariants(decode_rows(reversed(rows)).members)

    def test_parent_pair_becomes_couple(self):
        rows = [
            MemberRow(id="kid", owner_id="o", relation_type="self", gender="male"),
            MemberRow(id="dad", owner_id="o", relation_type="father_of_kid", gender="male"),
            MemberRow(id="mum", owner_id="o", relation_type="mother_of_kid", gender="female"),
        ]
        members = decode_rows(rows).members
        assert members["dad"].spouse_id == "mum"
        assert members["mum"].spouse_id == "dad"
        assert sorted(members["kid"].parent_ids) == ["dad", "mum"]

    def test_children_ordered_by_sibling_number(self):
        rows = [
            MemberRow(id="p", owner_id="o", relation_type="self"),
            MemberRow(id="c3", owner_id="o", relation_type="child_of_p_3"),
            MemberRow(id="c1", owner_id="o", relation_type="child_of_p_1"),
            MemberRow(id="c2", owner_id="o", relation_type="child_of_p_2"),
        ]
        assert decode_rows(rows).members["p"].children_ids == ["c1", "c2", "c3"]

    def test_unparseable_tag_is_reported(self):
        rows = [
            MemberRow(id="a", owner_id="o", relation_type="self"),
            MemberRow(id="b", owner_id="o", relation_type="cousin_of_a|x:1|y:2"),
        ]
        result = decode_rows(rows)
        assert "b" in result.members
        assert result.members["b"].relation is None
        assert result.members["b"].position == Position(x=1, y=2)
        assert [u.member_id for u in result.unparseable] == ["b"]

    def test_missing_reference_is_reported(self):
        rows = [
            MemberRow(id="a", owner_id="o", relation_type="self"),
            MemberRow(id="b", owner_id="o", relation_type="spouse_of_ghost"),
        ]
        result = decode_rows(rows)
        assert result.members["b"].spouse_id is None
        assert result.unparseable[0].member_id == "b"
        assert "not found" in result.unparseable[0].reason

    def test_merged_rows_are_skipped_and_followed(self):
        """References to an absorbed member land on the survivor."""
        rows = [
            MemberRow(id="a", owner_id="o", relation_type="self"),
            MemberRow(id="old", owner_id="o", relation_type="spouse_of_a", merged_into="new"),
            MemberRow(id="new", owner_id="o", relation_type="spouse_of_a", gender="female"),
            MemberRow(id="kid", owner_id="o", relation_type="child_of_old_1"),
        ]
        members = decode_rows(rows).members
        assert "old" not in members
        assert members["kid"].parent_ids == ["new", "a"]

    def test_numeric_columns_win_over_suffix(self):
        rows = [MemberRow(id="a", owner_id="o", relation_type="self|x:1|y:2",
                          position_x=10.0, position_y=20.0)]
        assert decode_rows(rows).members["a"].position == Position(x=10, y=20)

    def test_non_finite_columns_fall_back_to_suffix(self):
        rows = [MemberRow(id="a", owner_id="o", relation_type="self|x:1|y:2",
                          position_x=float("inf"), position_y=20.0)]
        result = decode_rows(rows)
        assert result.members["a"].position == Position(x=1, y=2)
        assert result.unparseable == []

    def test_first_row_is_root_without_self(self):
        rows = [
            MemberRow(id="x", owner_id="o", relation_type="spouse_of_y"),
            MemberRow(id="y", owner_id="o", relation_type="spouse_of_x"),
        ]
        assert decode_rows(rows).root_id == "x"


class TestEncode:
    """Tests for rendering members as rows."""

    def test_encode_member_writes_both_position_forms(self):
        tree = build_tree()
        member = tree.get(tree.root_id)
        row = encode_member(member)
        assert row.relation_type == "self|x:0.0|y:0.0"
        assert (row.position_x, row.position_y) == (0.0, 0.0)
        assert row.member_name == ""

    def test_position_update_keeps_existing_tag(self):
        partial = encode_position("child_of_p_2|x:1.0|y:2.0", Position(x=5, y=6))
        assert partial == {"relation_type": "child_of_p_2|x:5.0|y:6.0", "position_x": 5, "position_y": 6}

    def test_position_update_keeps_unknown_tag(self):
        partial = encode_position("legacy_tag", Position(x=1, y=1))
        assert partial["relation_type"] == "legacy_tag|x:1.0|y:1.0"

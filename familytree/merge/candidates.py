"""
Merge candidate discovery.

Given the member of the source tree that was claimed by the target tree's
owner, walks up both trees and pairs parents and grandparents by gender.
The children of each matched couple (siblings, aunts and uncles) are
collected for the interactive step, excluding the line already being merged.
"""

from typing import Optional

from familytree.graph.tree import FamilyTree
from familytree.logging import get_logger
from familytree.merge.models import (
    ChildMergeData,
    ChildProfile,
    MergeCandidate,
    MergeProposal,
    MergeRelationship,
)
from familytree.merge.similarity import NameSimilarityOracle
from familytree.models import FamilyMember, Gender


logger = get_logger(__name__)


def _active_parents(tree: FamilyTree, member: FamilyMember) -> list[FamilyMember]:
    return [p for p in tree.parents_of(member.id) if p.merged_into is None]


def _by_gender(members: list[FamilyMember], gender: Gender) -> Optional[FamilyMember]:
    return next((m for m in members if m.gender is gender), None)


def _couple_children(tree: FamilyTree, couple: list[FamilyMember], exclude: set[str]) -> list[FamilyMember]:
    ids = []
    for parent in couple:
        ids.extend(parent.children_ids)
    children = []
    for child_id in dict.fromkeys(ids):
        child = tree.get(child_id)
        if child is not None and child.merged_into is None and child_id not in exclude:
            children.append(child)
    return children


def make_candidate(a: FamilyMember, b: FamilyMember, relationship: MergeRelationship) -> MergeCandidate:
    """Pair two members; the one created first is kept as the target."""
    target, source = (a, b) if a.created_at <= b.created_at else (b, a)
    return MergeCandidate(
        source_id=source.id,
        target_id=target.id,
        source_name=source.name,
        target_name=target.name,
        relationship=relationship,
        source_avatar_url=source.avatar_url,
        target_avatar_url=target.avatar_url,
    )


def _couple_label(couple: list[FamilyMember], fallback: str) -> str:
    father = _by_gender(couple, Gender.MALE)
    mother = _by_gender(couple, Gender.FEMALE)
    names = [m.name for m in (father, mother) if m is not None and m.name]
    return " & ".join(names) or fallback


def find_merge_candidates(
    source_tree: FamilyTree,
    target_tree: FamilyTree,
    source_member_id: str,
    target_member_id: str,
    oracle: NameSimilarityOracle = None
) -> MergeProposal:
    """
    Build the merge proposal for two overlapping trees.

    Args:
        source_tree: Tree containing source_member_id
        target_tree: Tree containing target_member_id
        source_member_id: Member of source_tree representing the shared person
        target_member_id: The same person in target_tree
        oracle: Child pairing oracle (name similarity by default)

    Returns:
        MergeProposal with parent/grandparent candidates and child groups.
        Empty if either member is missing.
    """
    oracle = oracle or NameSimilarityOracle()
    proposal = MergeProposal()

    source_member = source_tree.get(source_member_id)
    target_member = target_tree.get(target_member_id)
    if source_member is None or target_member is None:
        logger.warning("merge_anchor_missing", source_member_id=source_member_id,
                       target_member_id=target_member_id)
        return proposal

    def add_group(s_children, t_children, label):
        source_children = [ChildProfile.from_member(c) for c in s_children]
        target_children = [ChildProfile.from_member(c) for c in t_children]
        if not source_children and not target_children:
            return
        proposal.child_groups.append(ChildMergeData(
            source_children=source_children,
            target_children=target_children,
            suggested_pairs=oracle.suggest(source_children, target_children),
            label=label,
        ))

    # Parents
    source_parents = _active_parents(source_tree, source_member)
    target_parents = _active_parents(target_tree, target_member)
    matched_parents = []
    for gender in (Gender.MALE, Gender.FEMALE):
        s_parent = _by_gender(source_parents, gender)
        t_parent = _by_gender(target_parents, gender)
        if s_parent is not None and t_parent is not None:
            proposal.candidates.append(make_candidate(s_parent, t_parent, MergeRelationship.PARENT))
            matched_parents.append((s_parent, t_parent))

    if matched_parents:
        add_group(
            _couple_children(source_tree, source_parents, {source_member.id}),
            _couple_children(target_tree, target_parents, {target_member.id}),
            _couple_label(source_parents or target_parents, "Parents"),
        )

    # Grandparents, through each matched parent
    seen_pairs: set[frozenset] = set()
    for s_parent, t_parent in matched_parents:
        s_grand = _active_parents(source_tree, s_parent)
        t_grand = _active_parents(target_tree, t_parent)
        if not s_grand or not t_grand:
            continue

        matched = False
        for s_gp in s_grand:
            t_gp = _by_gender(t_grand, s_gp.gender)
            if t_gp is None:
                continue
            pair = frozenset((s_gp.id, t_gp.id))
            if pair in seen_pairs:
                continue
            seen_pairs.add(pair)
            proposal.candidates.append(make_candidate(s_gp, t_gp, MergeRelationship.GRANDPARENT))
            matched = True

        if matched:
            add_group(
                _couple_children(source_tree, s_grand, {s_parent.id}),
                _couple_children(target_tree, t_grand, {t_parent.id}),
                _couple_label(s_grand, "Grandparents"),
            )

    logger.info("merge_candidates_found", candidates=len(proposal.candidates),
                child_groups=len(proposal.child_groups))
    return proposal

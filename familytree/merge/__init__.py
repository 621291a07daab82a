"""Merge package - cross-tree merge resolver."""

from familytree.merge.candidates import find_merge_candidates
from familytree.merge.executor import MemberMerger, apply_sequentially
from familytree.merge.models import (
    ChildMergeData,
    ChildMergeItem,
    ChildMergePlan,
    ChildProfile,
    MergeBatchResult,
    MergeCandidate,
    MergeInstruction,
    MergeProposal,
    MergeRecord,
    MergeRelationship,
    SuggestedPair,
)
from familytree.merge.reconciliation import ChildReconciliation
from familytree.merge.session import MergeSession, MergeState
from familytree.merge.similarity import NameSimilarityOracle, name_similarity

__all__ = [
    "ChildMergeData",
    "ChildMergeItem",
    "ChildMergePlan",
    "ChildProfile",
    "ChildReconciliation",
    "MemberMerger",
    "MergeBatchResult",
    "MergeCandidate",
    "MergeInstruction",
    "MergeProposal",
    "MergeRecord",
    "MergeRelationship",
    "MergeSession",
    "MergeState",
    "NameSimilarityOracle",
    "SuggestedPair",
    "apply_sequentially",
    "find_merge_candidates",
    "name_similarity",
]

"""
Two-phase merge session.

    merging --(auto-merge done, children on either side)--> children --(commit)--> complete
    merging --(auto-merge done, no children)--------------------------------------> complete

Failures do not change the path through the states; they are reported on
auto_merge_result and child_result.
"""

import asyncio
from enum import Enum
from typing import Optional

from familytree.config import Settings, settings as default_settings
from familytree.errors import MergeStateError
from familytree.logging import get_logger
from familytree.merge.executor import MemberMerger, apply_sequentially
from familytree.merge.models import ChildMergePlan, MergeBatchResult, MergeInstruction, MergeProposal
from familytree.merge.reconciliation import ChildReconciliation


logger = get_logger(__name__)


class MergeState(str, Enum):
    """Merge session states."""
    MERGING = "merging"
    CHILDREN = "children"
    COMPLETE = "complete"


class MergeSession:
    """
    Drives a merge proposal from auto-merge to completion.

    Usage:
        session = MergeSession(MemberMerger(sender_tree, receiver_tree), proposal)
        await session.run_auto_merge()
        if session.state is MergeState.CHILDREN:
            session.reconciliations[0].toggle("source", child_id)
            await session.commit_children()
    """

    def __init__(self, merger: MemberMerger, proposal: MergeProposal, config: Optional[Settings] = None):
        self.merger = merger
        self.proposal = proposal
        self.config = config or default_settings
        self.state = MergeState.MERGING
        self.processing = False
        self.reconciliations: list[ChildReconciliation] = []
        self.auto_merge_result: Optional[MergeBatchResult] = None
        self.child_plan: Optional[ChildMergePlan] = None
        self.child_result: Optional[MergeBatchResult] = None

    def _transition(self, state: MergeState) -> None:
        logger.info("merge_state_changed", previous=self.state.value, state=state.value)
        self.state = state

    def _require(self, state: MergeState) -> None:
        if self.state is not state:
            raise MergeStateError(f"Expected state {state.value}, session is {self.state.value}")

    @property
    def separate_ids(self) -> list[str]:
        return list(self.child_plan.separate_ids) if self.child_plan else []

    async def run_auto_merge(self) -> MergeBatchResult:
        """Apply every candidate in input order, then move on."""
        self._require(MergeState.MERGING)
        self.processing = True
        try:
            instructions = [
                MergeInstruction(source_id=c.source_id, target_id=c.target_id)
                for c in self.proposal.candidates
            ]
            self.auto_merge_result = await apply_sequentially(instructions, self.merger.merge)

            if self.proposal.has_children:
                await asyncio.sleep(self.config.merge.children_step_delay_seconds)
                self.reconciliations = [
                    ChildReconciliation(group)
                    for group in self.proposal.child_groups
                    if group.has_children
                ]
                self._transition(MergeState.CHILDREN)
            else:
                self._transition(MergeState.COMPLETE)
        finally:
            self.processing = False
        return self.auto_merge_result

    async def commit_children(self) -> MergeBatchResult:
        """Apply the merges chosen in every reconciliation, in group order."""
        self._require(MergeState.CHILDREN)
        self.processing = True
        try:
            plan = ChildMergePlan()
            for reconciliation in self.reconciliations:
                group_plan = reconciliation.plan()
                plan.merges.extend(group_plan.merges)
                plan.separate_ids.extend(group_plan.separate_ids)
            self.child_plan = plan

            self.child_result = await apply_sequentially(plan.merges, self.merger.merge)
            if plan.separate_ids:
                logger.info("children_kept_separate", ids=plan.separate_ids)
            self._transition(MergeState.COMPLETE)
        finally:
            self.processing = False
        return self.child_result

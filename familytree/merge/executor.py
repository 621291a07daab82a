"""Merge command and sequential batch application."""

from typing import Awaitable, Callable, Iterable

from familytree.errors import MemberNotFoundError
from familytree.graph.tree import FamilyTree
from familytree.logging import get_logger
from familytree.merge.models import MergeBatchResult, MergeInstruction, MergeRecord
from familytree.models import FamilyMember


logger = get_logger(__name__)

MergeFn = Callable[[str, str], Awaitable[MergeRecord]]


class MemberMerger:
    """
    Unions one member into another across two trees.

    The target survives. It takes over the source's account link, and the
    source's name and avatar where it has none of its own. The source is
    marked as merged into the target and drops out of later loads. Both
    writes are awaited; a store failure propagates.

    Usage:
        merger = MemberMerger(sender_tree, receiver_tree)
        record = await merger.merge(source_id, target_id)
    """

    def __init__(self, source_tree: FamilyTree, target_tree: FamilyTree):
        self.source_tree = source_tree
        self.target_tree = target_tree

    def _locate(self, member_id: str) -> tuple[FamilyTree, FamilyMember]:
        for tree in (self.source_tree, self.target_tree):
            member = tree.get(member_id)
            if member is not None:
                return tree, member
        raise MemberNotFoundError(member_id)

    async def merge(self, source_id: str, target_id: str) -> MergeRecord:
        if source_id == target_id:
            raise ValueError(f"Cannot merge member {source_id} into itself")
        source_tree, source = self._locate(source_id)
        target_tree, target = self._locate(target_id)
        source_before = source.model_copy(deep=True)
        target_before = target.model_copy(deep=True)

        changes = {}
        if source.linked_user_id and not target.linked_user_id:
            changes["linked_user_id"] = source.linked_user_id
            changes["is_placeholder"] = False
        if source.name and not target.name:
            changes["name"] = source.name
        if source.avatar_url and not target.avatar_url:
            changes["avatar_url"] = source.avatar_url

        if changes:
            await target_tree.apply_update(target_id, **changes)
        await source_tree.apply_update(source_id, merged_into=target_id)

        logger.info("members_merged", source_id=source_id, target_id=target_id,
                    changed=sorted(changes))
        return MergeRecord(
            instruction=MergeInstruction(source_id=source_id, target_id=target_id),
            source_before=source_before,
            target_before=target_before,
            source_after=source.model_copy(deep=True),
            target_after=target.model_copy(deep=True),
            changes=changes,
        )


async def apply_sequentially(instructions: Iterable[MergeInstruction], merge_fn: MergeFn) -> MergeBatchResult:
    """
    Apply merges one at a time, in order, stopping at the first failure.

    The result lists the committed prefix, the failed instruction and the
    suffix that was never attempted.
    """
    pending = list(instructions)
    result = MergeBatchResult()

    for index, instruction in enumerate(pending):
        try:
            record = await merge_fn(instruction.source_id, instruction.target_id)
        except Exception as e:
            logger.error("merge_failed", source_id=instruction.source_id,
                         target_id=instruction.target_id, error=str(e),
                         committed=len(result.committed))
            result.failed = instruction
            result.error = str(e)
            result.not_attempted = pending[index + 1:]
            break
        result.committed.append(record)

    return result

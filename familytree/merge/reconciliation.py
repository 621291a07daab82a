"""
Interactive child reconciliation.

Source and target children are shown as two parallel lists. Children at the
same index are paired; a pair is merged on commit only if both sides want to
merge and their genders match. Everything else is reported as kept separate.
"""

from typing import Optional

from familytree.merge.models import ChildMergeData, ChildMergeItem, ChildMergePlan, MergeInstruction


SOURCE = "source"
TARGET = "target"


class ChildReconciliation:
    """
    State of the reconciliation dialog for one couple's children.

    Suggested pairs start out accepted: both children are flagged to merge and
    placed at the same index. Unsuggested children start out unmerged and
    follow after the suggested pairs, in their original order.
    """

    def __init__(self, data: ChildMergeData):
        self.label = data.label
        partners: dict[str, str] = {}
        for pair in data.suggested_pairs:
            partners[pair.source_child.id] = pair.target_child.id

        by_id = {c.id: c for c in data.target_children}
        paired_sources = []
        paired_target_ids: set[str] = set()
        for child in data.source_children:
            partner = partners.get(child.id)
            if partner in by_id and partner not in paired_target_ids:
                paired_sources.append(child)
                paired_target_ids.add(partner)
        paired_source_ids = {c.id for c in paired_sources}

        self.source_items: list[ChildMergeItem] = [
            ChildMergeItem(child=c, paired_with_id=partners[c.id], should_merge=True)
            for c in paired_sources
        ]
        self.target_items: list[ChildMergeItem] = [
            ChildMergeItem(child=by_id[partners[c.id]], paired_with_id=c.id, should_merge=True)
            for c in paired_sources
        ]
        self.source_items += [
            ChildMergeItem(child=c) for c in data.source_children if c.id not in paired_source_ids
        ]
        self.target_items += [
            ChildMergeItem(child=c) for c in data.target_children if c.id not in paired_target_ids
        ]

    def _items(self, side: str) -> list[ChildMergeItem]:
        if side == SOURCE:
            return self.source_items
        if side == TARGET:
            return self.target_items
        raise ValueError(f"Unknown side: {side!r}")

    def _other(self, side: str) -> list[ChildMergeItem]:
        return self.target_items if side == SOURCE else self.source_items

    def _find(self, items: list[ChildMergeItem], child_id: str) -> Optional[ChildMergeItem]:
        return next((i for i in items if i.child.id == child_id), None)

    def _rows(self):
        """Index-aligned (source, target) items; the shorter side is padded with None."""
        for index in range(max(len(self.source_items), len(self.target_items))):
            source = self.source_items[index] if index < len(self.source_items) else None
            target = self.target_items[index] if index < len(self.target_items) else None
            yield source, target

    @staticmethod
    def _mergeable(source: Optional[ChildMergeItem], target: Optional[ChildMergeItem]) -> bool:
        return (source is not None and target is not None
                and source.should_merge and target.should_merge
                and source.child.gender == target.child.gender)

    def _sync_pairs(self) -> None:
        """Pair children at equal indices that both want to merge and share a gender."""
        for source, target in self._rows():
            if self._mergeable(source, target):
                source.paired_with_id = target.child.id
                target.paired_with_id = source.child.id
            else:
                if source is not None:
                    source.paired_with_id = None
                if target is not None:
                    target.paired_with_id = None

    def toggle(self, side: str, child_id: str) -> bool:
        """
        Flip a child's merge flag. Returns the new flag.

        Turning it off also turns off the counterpart it was paired with.
        """
        item = self._find(self._items(side), child_id)
        if item is None:
            raise KeyError(child_id)

        if item.should_merge:
            counterpart = None
            if item.paired_with_id is not None:
                counterpart = self._find(self._other(side), item.paired_with_id)
            item.should_merge = False
            item.paired_with_id = None
            if counterpart is not None:
                counterpart.should_merge = False
                counterpart.paired_with_id = None
        else:
            item.should_merge = True
        self._sync_pairs()
        return item.should_merge

    def move(self, side: str, from_index: int, to_index: int) -> bool:
        """
        Drag a child to another slot of its own list.

        Rejected, leaving everything unchanged, when an index is out of range
        or the child at the drop slot has a different gender.
        """
        items = self._items(side)
        if not (0 <= from_index < len(items) and 0 <= to_index < len(items)):
            return False
        if from_index == to_index:
            return False
        if items[from_index].child.gender != items[to_index].child.gender:
            return False

        items.insert(to_index, items.pop(from_index))
        self._sync_pairs()
        return True

    def plan(self) -> ChildMergePlan:
        """Merges for index-aligned pairs; every other child is kept separate."""
        plan = ChildMergePlan()
        for source, target in self._rows():
            if self._mergeable(source, target):
                plan.merges.append(MergeInstruction(source_id=source.child.id, target_id=target.child.id))
                continue
            for item in (source, target):
                if item is not None:
                    plan.separate_ids.append(item.child.id)
        return plan

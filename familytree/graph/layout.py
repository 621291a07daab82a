"""
Position heuristics for newly created nodes.

Only new nodes are placed; existing nodes never move. Positions are hints
for the canvas and play no part in relationship resolution.
"""

from typing import Iterable, Optional

from familytree.config import LayoutSettings
from familytree.models import Gender, Position


def _avg(a: float, b: float) -> float:
    return (a + b) / 2


def initial_couple_positions(layout: LayoutSettings) -> tuple[Position, Position]:
    """Husband at the baseline, wife one spouse gap to the right."""
    husband = Position(x=layout.baseline_x, y=layout.baseline_y)
    wife = Position(x=layout.baseline_x + layout.spouse_gap, y=layout.baseline_y)
    return husband, wife


def parent_positions(child: Position, layout: LayoutSettings) -> tuple[Position, Position]:
    """Father and mother one generation above the child, straddling it."""
    y = child.y - layout.vertical_gap
    half = layout.spouse_gap / 2
    return Position(x=child.x - half, y=y), Position(x=child.x + half, y=y)


def spouse_position(member: Position, member_gender: Gender, layout: LayoutSettings) -> Position:
    """Wives sit to the right of husbands."""
    offset = layout.spouse_gap if member_gender is Gender.MALE else -layout.spouse_gap
    return Position(x=member.x + offset, y=member.y)


def child_position(parent: Position, spouse: Optional[Position], sibling_index: int,
                   layout: LayoutSettings) -> Position:
    """Below the couple's midpoint, shifted right by one gap per older sibling."""
    center = _avg(parent.x, spouse.x) if spouse is not None else parent.x
    return Position(
        x=center + sibling_index * layout.horizontal_gap,
        y=parent.y + layout.vertical_gap,
    )


def fallback_position(existing: Iterable[Position], layout: LayoutSettings) -> Position:
    """Right of everything placed so far, to avoid overlaps."""
    max_x = max_y = None
    for position in existing:
        max_x = position.x if max_x is None else max(max_x, position.x)
        max_y = position.y if max_y is None else max(max_y, position.y)
    if max_x is None:
        return Position(x=layout.baseline_x, y=layout.baseline_y)
    return Position(x=max_x + layout.horizontal_gap, y=max_y)

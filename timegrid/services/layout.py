"""
Overlap Layout Engine for the calendar day grid.

Architecture Decision: Pure functions
Column assignment and geometry are recomputed on every render pass from plain
inputs, so they are side-effect free and trivially testable. Validation of the
inputs (end after start, clamped to the visible day) is the caller's job; see
validate_layout_items().

Algorithm: sort by (start, end), split into clusters of transitively
overlapping items, then greedy interval partitioning inside each cluster.
The number of columns a cluster opens equals the maximum number of its items
active at the same instant.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Sequence

MINUTES_PER_DAY = 24 * 60


class InvalidLayoutItem(ValueError):
    """An item whose end does not come after its start"""


@dataclass(frozen=True)
class LayoutItem:
    """Input item: minutes since midnight of the displayed day"""
    id: str
    start_minute: float
    end_minute: float
    payload: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class Placement:
    """A LayoutItem with its column and the column count of its cluster"""
    item: LayoutItem
    col: int
    cols: int

    @property
    def id(self) -> str:
        return self.item.id


@dataclass(frozen=True)
class Geometry:
    top_px: float
    height_px: float
    top_percent: float
    height_percent: float
    left_percent: float
    width_percent: float


def validate_layout_items(items: Iterable[LayoutItem]) -> List[LayoutItem]:
    """
    Reject malformed items before they reach assign_columns().

    Raises:
        InvalidLayoutItem: an item with end_minute <= start_minute
    """
    checked = []
    for item in items:
        if item.end_minute <= item.start_minute:
            raise InvalidLayoutItem(
                f"Item {item.id!r} ends at {item.end_minute} before it starts at {item.start_minute}"
            )
        checked.append(item)
    return checked


def assign_columns(items: Sequence[LayoutItem]) -> List[Placement]:
    """
    Assign each item a column inside its overlap cluster.

    Args:
        items: Items with end_minute > start_minute

    Returns:
        Placements in (start, end) order. Equal keys keep input order.
    """
    ordered = sorted(items, key=lambda it: (it.start_minute, it.end_minute))
    placements: List[Placement] = []

    i = 0
    while i < len(ordered):
        # Grow the cluster while the next item starts before the running max end
        cluster_end = ordered[i].end_minute
        j = i + 1
        while j < len(ordered) and ordered[j].start_minute < cluster_end:
            cluster_end = max(cluster_end, ordered[j].end_minute)
            j += 1
        cluster = ordered[i:j]

        col_ends: List[float] = []
        cluster_cols: List[int] = []
        for item in cluster:
            col = next((c for c, end in enumerate(col_ends) if end <= item.start_minute), len(col_ends))
            if col == len(col_ends):
                col_ends.append(item.end_minute)
            else:
                col_ends[col] = item.end_minute
            cluster_cols.append(col)

        total = len(col_ends)
        placements.extend(Placement(item=item, col=col, cols=total) for item, col in zip(cluster, cluster_cols))
        i = j

    return placements


def compute_geometry(placement: Placement, pixels_per_minute: float = 80 / 60,
                     min_block_height: float = 16.0,
                     minutes_in_day: int = MINUTES_PER_DAY) -> Geometry:
    """Pixel and percentage geometry for one placement"""
    item = placement.item
    span = item.end_minute - item.start_minute
    width = 100.0 / placement.cols
    return Geometry(
        top_px=item.start_minute * pixels_per_minute,
        height_px=max(min_block_height, span * pixels_per_minute),
        top_percent=item.start_minute / minutes_in_day * 100.0,
        height_percent=span / minutes_in_day * 100.0,
        left_percent=placement.col * width,
        width_percent=width,
    )


@dataclass(frozen=True)
class LaidOutItem:
    placement: Placement
    geometry: Geometry

    @property
    def col(self) -> int:
        return self.placement.col

    @property
    def cols(self) -> int:
        return self.placement.cols


def layout_day(items: Sequence[LayoutItem], pixels_per_minute: float = 80 / 60,
               min_block_height: float = 16.0) -> List[LaidOutItem]:
    """assign_columns() followed by compute_geometry() for every placement"""
    return [
        LaidOutItem(placement=p, geometry=compute_geometry(p, pixels_per_minute, min_block_height))
        for p in assign_columns(items)
    ]


def max_concurrency(items: Sequence[LayoutItem]) -> int:
    """Maximum number of items active at one instant (half-open intervals)"""
    events = []
    for item in items:
        events.append((item.start_minute, 1))
        events.append((item.end_minute, -1))
    # Ends sort before starts at the same minute: [a, b) and [b, c) do not overlap
    events.sort(key=lambda e: (e[0], e[1]))
    active = peak = 0
    for _, delta in events:
        active += delta
        peak = max(peak, active)
    return peak

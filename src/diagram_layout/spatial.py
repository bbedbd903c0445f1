"""
Uniform-grid spatial index for collision detection.

Every box is registered in its primary cell and the 8 surrounding cells,
so any two boxes whose primary cells are adjacent share a bucket. Cells
are sized to the largest registered box, which makes that neighbourhood
exhaustive: overlapping boxes are always reported as candidates.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Iterable, Optional

from diagram_layout.models import BoxKind, CollisionBox, PositionedNode


def expanded_box(node: PositionedNode, spacing: float) -> CollisionBox:
    """Collision box of *node* grown by half of *spacing* on every side."""
    pad = spacing / 2
    return CollisionBox(
        x=node.x - pad,
        y=node.y - pad,
        width=node.width + spacing,
        height=node.height + spacing,
        owner_id=node.id,
        kind=BoxKind.NODE,
    )


def boxes_overlap(a: CollisionBox, b: CollisionBox) -> bool:
    """AABB intersection test. Touching boxes do not overlap."""
    return a.bounds.intersects(b.bounds)


def penetration(a: CollisionBox, b: CollisionBox) -> tuple[float, float]:
    """Overlap depth along x and y. Positive on both axes means the boxes intersect."""
    overlap_x = min(a.x + a.width, b.x + b.width) - max(a.x, b.x)
    overlap_y = min(a.y + a.height, b.y + b.height) - max(a.y, b.y)
    return overlap_x, overlap_y


class SpatialIndex:
    """Bucket grid over collision boxes, built for a single pass."""

    def __init__(self, cell_width: float, cell_height: float) -> None:
        self.cell_width = max(cell_width, 1.0)
        self.cell_height = max(cell_height, 1.0)
        self._buckets: dict[tuple[int, int], list[str]] = defaultdict(list)
        self._boxes: dict[str, CollisionBox] = {}
        self._order: dict[str, int] = {}
        self._cells: dict[str, list[tuple[int, int]]] = {}

    @classmethod
    def for_boxes(cls, boxes: Iterable[CollisionBox]) -> SpatialIndex:
        """Build an index whose cells fit the largest of *boxes*."""
        boxes = list(boxes)
        cell_w = max((b.width for b in boxes), default=1.0)
        cell_h = max((b.height for b in boxes), default=1.0)
        index = cls(cell_w, cell_h)
        for box in boxes:
            index.insert(box)
        return index

    def __len__(self) -> int:
        return len(self._boxes)

    def primary_cell(self, box: CollisionBox) -> tuple[int, int]:
        return (
            math.floor(box.cx / self.cell_width),
            math.floor(box.cy / self.cell_height),
        )

    def insert(self, box: CollisionBox) -> None:
        """Register *box* in its primary cell and the 8 neighbours."""
        if box.owner_id in self._boxes:
            self.remove(box.owner_id)
        if box.width > self.cell_width or box.height > self.cell_height:
            raise ValueError(
                f"Box '{box.owner_id}' ({box.width}x{box.height}) exceeds the index cell size "
                f"({self.cell_width}x{self.cell_height})."
            )
        gx, gy = self.primary_cell(box)
        cells = [(gx + dx, gy + dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)]
        for cell in cells:
            self._buckets[cell].append(box.owner_id)
        self._boxes[box.owner_id] = box
        self._order.setdefault(box.owner_id, len(self._order))
        self._cells[box.owner_id] = cells

    def remove(self, owner_id: str) -> None:
        for cell in self._cells.pop(owner_id, []):
            bucket = self._buckets[cell]
            bucket.remove(owner_id)
            if not bucket:
                del self._buckets[cell]
        self._boxes.pop(owner_id, None)

    def get(self, owner_id: str) -> Optional[CollisionBox]:
        return self._boxes.get(owner_id)

    def candidate_pairs(self) -> list[tuple[str, str]]:
        """All box pairs sharing a bucket, deduplicated, in registration order."""
        seen: set[tuple[str, str]] = set()
        for bucket in self._buckets.values():
            for i in range(len(bucket)):
                for j in range(i + 1, len(bucket)):
                    a, b = bucket[i], bucket[j]
                    if self._order[a] > self._order[b]:
                        a, b = b, a
                    seen.add((a, b))
        return sorted(seen, key=lambda p: (self._order[p[0]], self._order[p[1]]))

    def overlapping_pairs(self) -> list[tuple[str, str]]:
        """Candidate pairs whose boxes actually intersect."""
        return [
            (a, b) for a, b in self.candidate_pairs()
            if boxes_overlap(self._boxes[a], self._boxes[b])
        ]

    def query(self, box: CollisionBox, exclude: Optional[str] = None) -> list[CollisionBox]:
        """Registered boxes intersecting *box* (which need not be registered)."""
        if box.width > self.cell_width or box.height > self.cell_height:
            candidates: Iterable[str] = list(self._boxes)
        else:
            # The primary bucket holds every box whose own primary cell is adjacent.
            candidates = self._buckets.get(self.primary_cell(box), [])
        hits = [
            self._boxes[oid] for oid in candidates
            if oid != exclude and boxes_overlap(box, self._boxes[oid])
        ]
        hits.sort(key=lambda b: self._order[b.owner_id])
        return hits


def build_node_index(nodes: list[PositionedNode], spacing: float) -> SpatialIndex:
    """Index the expanded boxes of *nodes*."""
    return SpatialIndex.for_boxes(expanded_box(n, spacing) for n in nodes)


def find_overlaps(
    nodes: list[PositionedNode],
    spacing: float,
) -> list[tuple[PositionedNode, PositionedNode]]:
    """Pairs of nodes whose spacing-expanded rectangles intersect, in input order."""
    if len(nodes) < 2:
        return []
    by_id = {n.id: n for n in nodes}
    index = build_node_index(nodes, spacing)
    return [(by_id[a], by_id[b]) for a, b in index.overlapping_pairs()]

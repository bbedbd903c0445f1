"""
Overlap resolution.

Two passes guarantee the minimum node-to-node spacing wherever the canvas
allows it:

1. Push-apart: every overlapping pair moves symmetrically along the line
   between their centers until their required separation is met. Pairs
   with coincident centers split along an axis chosen by diagram type.
2. Emergency: pairs that still overlap try candidate positions on
   expanding rings around one of the two nodes and jump to the first
   collision-free one.

Whatever cannot be resolved is reported as a warning, never hidden.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from diagram_layout.models import (
    DiagramType,
    LayoutConfig,
    LayoutContext,
    PositionedNode,
    clamp_to_canvas,
)
from diagram_layout.spatial import SpatialIndex, build_node_index, expanded_box, find_overlaps, penetration

logger = logging.getLogger("diagram-layout.overlap")

# Candidate slots per emergency ring
RING_SLOTS = 8


@dataclass
class ResolutionReport:
    iterations: int = 0
    emergency_moves: int = 0
    unresolved: int = 0
    warning: Optional[str] = None


class OverlapResolver:
    """Separates overlapping nodes in place.

    Args:
        config: Canvas, spacing and iteration limits.
        diagram_type: Selects the split axis for coincident centers.
    """

    def __init__(self, config: LayoutConfig, diagram_type: Optional[DiagramType] = None) -> None:
        self.config = config
        self.diagram_type = diagram_type
        self.spacing = config.node_spacing

    def resolve(self, nodes: list[PositionedNode], context: LayoutContext) -> ResolutionReport:
        report = ResolutionReport()
        for node in nodes:
            clamp_to_canvas(node, self.config)

        for _ in range(self.config.max_overlap_iterations):
            if context.expired:
                break
            pairs = find_overlaps(nodes, self.spacing)
            if not pairs:
                break
            report.iterations += 1
            for a, b in pairs:
                self._push_apart(a, b, context)

        remaining = find_overlaps(nodes, self.spacing)
        if remaining and not context.expired:
            report.emergency_moves = self._emergency_pass(nodes, remaining)
            remaining = find_overlaps(nodes, self.spacing)

        report.unresolved = len(remaining)
        if remaining:
            message = f"{len(remaining)} overlapping node pair(s) could not be resolved"
            if self._overcrowded(nodes):
                message += "; the nodes need more area than the canvas provides"
            report.warning = message
        logger.debug(
            "overlap resolution: %d iterations, %d emergency moves, %d unresolved",
            report.iterations, report.emergency_moves, report.unresolved,
        )
        return report

    # -- push-apart ---------------------------------------------------------

    def _push_apart(self, a: PositionedNode, b: PositionedNode, context: LayoutContext) -> None:
        box_a = expanded_box(a, self.spacing)
        box_b = expanded_box(b, self.spacing)
        overlap_x, overlap_y = penetration(box_a, box_b)
        if overlap_x <= 0 or overlap_y <= 0:
            return  # an earlier move in this sweep already separated them

        dx = b.cx - a.cx
        dy = b.cy - a.cy
        dist = math.hypot(dx, dy)
        if dist < 1e-9:
            ux, uy = self._tie_break_axis(context)
            dist = 0.0
        else:
            ux, uy = dx / dist, dy / dist

        required = self.spacing + max((a.width + b.width) / 2, (a.height + b.height) / 2)
        deficit = required - dist
        if deficit > 1e-6:
            half = deficit / 2
            a.x -= ux * half
            a.y -= uy * half
            b.x += ux * half
            b.y += uy * half
        else:
            # Far enough along the center line but still overlapping on both
            # axes: push along the axis of least penetration.
            if overlap_x < overlap_y:
                push = overlap_x / 2 + 1
                sign = 1 if dx >= 0 else -1
                a.x -= sign * push
                b.x += sign * push
            else:
                push = overlap_y / 2 + 1
                sign = 1 if dy >= 0 else -1
                a.y -= sign * push
                b.y += sign * push

        clamp_to_canvas(a, self.config)
        clamp_to_canvas(b, self.config)

    def _tie_break_axis(self, context: LayoutContext) -> tuple[float, float]:
        """Unit vector along which nodes with coincident centers split."""
        if self.diagram_type is DiagramType.FLOW:
            return 0.0, 1.0
        if self.diagram_type is DiagramType.TIMELINE:
            return 1.0, 0.0
        if self.diagram_type is DiagramType.TREE:
            return math.sqrt(0.5), math.sqrt(0.5)
        angle = context.rng.uniform(0, 2 * math.pi)
        return math.cos(angle), math.sin(angle)

    # -- emergency pass -----------------------------------------------------

    def _emergency_pass(
        self,
        nodes: list[PositionedNode],
        pairs: list[tuple[PositionedNode, PositionedNode]],
    ) -> int:
        index = build_node_index(nodes, self.spacing)
        moves = 0
        for a, b in pairs:
            box_a = index.get(a.id)
            box_b = index.get(b.id)
            if not box_a.bounds.intersects(box_b.bounds):
                continue  # separated by an earlier relocation
            if self._relocate(b, index) or self._relocate(a, index):
                moves += 1
        return moves

    def _relocate(self, node: PositionedNode, index: SpatialIndex) -> bool:
        """Move *node* to the first collision-free ring candidate around it."""
        old_x, old_y = node.x, node.y
        origin_x, origin_y = node.cx, node.cy
        step = max(node.width, node.height) / 2 + self.spacing
        for i in range(self.config.emergency_candidates):
            ring, slot = divmod(i, RING_SLOTS)
            radius = step * (ring + 1)
            angle = slot * 2 * math.pi / RING_SLOTS + ring * math.pi / RING_SLOTS
            node.move_center_to(
                origin_x + radius * math.cos(angle),
                origin_y + radius * math.sin(angle),
            )
            clamp_to_canvas(node, self.config)
            candidate = expanded_box(node, self.spacing)
            if not index.query(candidate, exclude=node.id):
                index.insert(candidate)
                return True
        node.x, node.y = old_x, old_y
        return False

    def _overcrowded(self, nodes: list[PositionedNode]) -> bool:
        usable = (
            max(0.0, self.config.width - 2 * self.config.margin_x)
            * max(0.0, self.config.height - 2 * self.config.margin_y)
        )
        needed = sum((n.width + self.spacing) * (n.height + self.spacing) for n in nodes)
        return needed > usable

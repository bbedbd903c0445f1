"""
Layout quality measurement and aesthetic refinement.

Every sub-score is a geometric measure in [0, 1]:
- symmetry     — spread of node distances from the layout centroid
- compactness  — node area relative to the bounding box
- readability  — how well each label's estimated extent fits its node

They combine into the aesthetic score

    0.4 (1 - overlaps/n) + 0.2 (1 - crossings/m)
    + 0.2 symmetry + 0.1 compactness + 0.1 readability

which drives the optional refinement pass.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Sequence

from diagram_layout.models import (
    CHAR_WIDTH,
    LINE_HEIGHT,
    TEXT_PADDING_X,
    TEXT_PADDING_Y,
    Bounds,
    LayoutConfig,
    LayoutContext,
    LayoutEdge,
    LayoutQualityMetrics,
    Point,
    PositionedNode,
    clamp_to_canvas,
    label_lines,
)
from diagram_layout.spatial import build_node_index, find_overlaps

logger = logging.getLogger("diagram-layout.quality")

# Fill ratio at which compactness saturates
TARGET_FILL = 0.5

OVERLAP_WEIGHT = 0.4
CROSSING_WEIGHT = 0.2
SYMMETRY_WEIGHT = 0.2
COMPACTNESS_WEIGHT = 0.1
READABILITY_WEIGHT = 0.1


# ---------------------------------------------------------------------------
# Geometric measures
# ---------------------------------------------------------------------------

def _ccw(a: Point, b: Point, c: Point) -> bool:
    return (c.y - a.y) * (b.x - a.x) > (b.y - a.y) * (c.x - a.x)


def segments_intersect(p1: Point, p2: Point, p3: Point, p4: Point) -> bool:
    """Proper intersection of segments p1-p2 and p3-p4."""
    return _ccw(p1, p3, p4) != _ccw(p2, p3, p4) and _ccw(p1, p2, p3) != _ccw(p1, p2, p4)


def count_edge_crossings(edges: Sequence[LayoutEdge]) -> int:
    """Pairwise crossings between edge polylines; edges sharing a node are skipped."""
    crossings = 0
    for i in range(len(edges)):
        a = edges[i]
        for j in range(i + 1, len(edges)):
            b = edges[j]
            if {a.source, a.target} & {b.source, b.target}:
                continue
            for p1, p2 in zip(a.points, a.points[1:]):
                for p3, p4 in zip(b.points, b.points[1:]):
                    if segments_intersect(p1, p2, p3, p4):
                        crossings += 1
    return crossings


def total_edge_length(edges: Sequence[LayoutEdge]) -> float:
    return sum(e.length for e in edges)


def layout_bounds(nodes: Sequence[PositionedNode]) -> Bounds | None:
    return Bounds.enclosing([n.bounds for n in nodes])


def canvas_utilization(nodes: Sequence[PositionedNode], config: LayoutConfig) -> float:
    """Bounding-box area of the layout as a fraction of the canvas."""
    box = layout_bounds(nodes)
    if box is None:
        return 0.0
    return min(1.0, box.area / (config.width * config.height))


def symmetry_score(nodes: Sequence[PositionedNode]) -> float:
    """1 minus the coefficient of variation of centroid distances."""
    if len(nodes) < 2:
        return 1.0
    cx = sum(n.cx for n in nodes) / len(nodes)
    cy = sum(n.cy for n in nodes) / len(nodes)
    distances = [math.hypot(n.cx - cx, n.cy - cy) for n in nodes]
    mean = sum(distances) / len(distances)
    if mean == 0:
        return 1.0
    variance = sum((d - mean) ** 2 for d in distances) / len(distances)
    return 1.0 - min(1.0, math.sqrt(variance) / mean)


def compactness_score(nodes: Sequence[PositionedNode]) -> float:
    """Node area over bounding-box area, saturating at TARGET_FILL."""
    box = layout_bounds(nodes)
    if box is None or box.area == 0:
        return 1.0
    fill = sum(n.width * n.height for n in nodes) / box.area
    return min(1.0, fill / TARGET_FILL)


def readability_score(nodes: Sequence[PositionedNode]) -> float:
    """Mean fraction of each label's estimated extent that fits inside its node."""
    if not nodes:
        return 1.0
    total = 0.0
    for n in nodes:
        lines = label_lines(n.label)
        text_w = max(len(line) for line in lines) * CHAR_WIDTH + TEXT_PADDING_X
        text_h = len(lines) * LINE_HEIGHT + TEXT_PADDING_Y
        total += min(1.0, n.width / text_w) * min(1.0, n.height / text_h)
    return total / len(nodes)


def overlap_stats(nodes: Sequence[PositionedNode], spacing: float) -> tuple[int, float]:
    """Number of overlapping pairs and their summed intersection area (expanded boxes)."""
    if len(nodes) < 2:
        return 0, 0.0
    index = build_node_index(list(nodes), spacing)
    pairs = index.overlapping_pairs()
    area = 0.0
    for a, b in pairs:
        area += index.get(a).bounds.intersection_area(index.get(b).bounds)
    return len(pairs), area


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class QualityEvaluator:
    """Measures a layout against the configured spacing and canvas."""

    def __init__(self, config: LayoutConfig) -> None:
        self.config = config

    def evaluate(
        self,
        nodes: Sequence[PositionedNode],
        edges: Sequence[LayoutEdge],
    ) -> LayoutQualityMetrics:
        overlap_count, overlap_area = overlap_stats(nodes, self.config.node_spacing)
        crossings = count_edge_crossings(edges)
        metrics = LayoutQualityMetrics(
            overlap_count=overlap_count,
            overlap_area=overlap_area,
            edge_crossings=crossings,
            total_edge_length=total_edge_length(edges),
            canvas_utilization=canvas_utilization(nodes, self.config),
            symmetry_score=symmetry_score(nodes),
            compactness_score=compactness_score(nodes),
            readability_score=readability_score(nodes),
        )
        metrics.aesthetic_score = self.aesthetic_score(metrics, len(nodes), len(edges))
        return metrics

    @staticmethod
    def aesthetic_score(metrics: LayoutQualityMetrics, node_count: int, edge_count: int) -> float:
        overlap_term = 1 - min(1.0, metrics.overlap_count / max(1, node_count))
        crossing_term = 1 - min(1.0, metrics.edge_crossings / max(1, edge_count))
        score = (
            OVERLAP_WEIGHT * overlap_term
            + CROSSING_WEIGHT * crossing_term
            + SYMMETRY_WEIGHT * metrics.symmetry_score
            + COMPACTNESS_WEIGHT * metrics.compactness_score
            + READABILITY_WEIGHT * metrics.readability_score
        )
        return max(0.0, min(1.0, score))


# ---------------------------------------------------------------------------
# Aesthetic refinement
# ---------------------------------------------------------------------------

@dataclass
class RefinementReport:
    iterations: int = 0
    accepted: int = 0
    initial_score: float = 0.0
    final_score: float = 0.0
    converged: bool = False


class AestheticRefiner:
    """Hill-climbing over small random node moves.

    A proposal moves one PRNG-chosen node by up to ``refinement_jitter`` on
    each axis. It is kept only if the layout stays overlap-free and the
    aesthetic score strictly improves.
    """

    def __init__(self, config: LayoutConfig, evaluator: QualityEvaluator | None = None) -> None:
        self.config = config
        self.evaluator = evaluator or QualityEvaluator(config)

    def refine(
        self,
        nodes: list[PositionedNode],
        route: Callable[[list[PositionedNode]], list[LayoutEdge]],
        context: LayoutContext,
    ) -> RefinementReport:
        """Improve *nodes* in place; *route* recomputes edges for a candidate layout."""
        spacing = self.config.node_spacing
        best = self.evaluator.evaluate(nodes, route(nodes)).aesthetic_score
        report = RefinementReport(initial_score=best, final_score=best)
        if len(nodes) < 2 or find_overlaps(nodes, spacing):
            return report

        jitter = self.config.refinement_jitter
        for _ in range(self.config.max_iterations):
            if context.expired:
                break
            report.iterations += 1
            node = nodes[context.rng.randrange(len(nodes))]
            old_x, old_y = node.x, node.y
            node.x += context.rng.uniform(-jitter, jitter)
            node.y += context.rng.uniform(-jitter, jitter)
            clamp_to_canvas(node, self.config)

            score = None
            if not find_overlaps(nodes, spacing):
                score = self.evaluator.evaluate(nodes, route(nodes)).aesthetic_score
            if score is None or score <= best:
                node.x, node.y = old_x, old_y
                continue

            gain = score - best
            best = score
            report.accepted += 1
            if gain < self.config.convergence_threshold:
                report.converged = True
                break

        report.final_score = best
        logger.debug(
            "aesthetic refinement: %d/%d proposals accepted, score %.4f -> %.4f",
            report.accepted, report.iterations, report.initial_score, report.final_score,
        )
        return report

"""
Force-directed optimizer for network layouts.

Nodes repel each other inside twice their ideal distance and edges pull
their endpoints toward twice the optimal spacing. The simulation runs in
three phases with decreasing strength (separation, structure, fine-tune);
each phase stops early once a periodic check finds no overlaps.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from diagram_layout.models import (
    Edge,
    LayoutConfig,
    LayoutContext,
    PositionedNode,
    clamp_to_canvas,
)
from diagram_layout.spatial import find_overlaps

logger = logging.getLogger("diagram-layout.forces")


@dataclass(frozen=True)
class ForcePhase:
    name: str
    iterations: int
    strength: float


DEFAULT_PHASES: tuple[ForcePhase, ...] = (
    ForcePhase("separation", 20, 2.0),
    ForcePhase("structure", 30, 1.0),
    ForcePhase("fine-tune", 25, 0.5),
)

DAMPING = 0.1
CONVERGENCE_CHECK_INTERVAL = 10


def optimal_spacing(node_count: int, base: float) -> float:
    """Spacing that grows with the square root of the node count."""
    return max(base, base * math.sqrt(node_count / 10))


@dataclass
class OptimizationReport:
    iterations: int = 0
    phases_completed: int = 0
    converged: bool = False


class ForceDirectedOptimizer:
    """Iterative repulsion/attraction simulation over positioned nodes.

    Args:
        config: Canvas and strength settings.
        spacing: Optimal spacing; defaults to :func:`optimal_spacing` of the
            node count.
        phases: Simulation schedule.
    """

    def __init__(
        self,
        config: LayoutConfig,
        spacing: float | None = None,
        phases: Sequence[ForcePhase] = DEFAULT_PHASES,
    ) -> None:
        self.config = config
        self.spacing = spacing
        self.phases = tuple(phases)

    def run(
        self,
        nodes: list[PositionedNode],
        edges: Sequence[Edge],
        context: LayoutContext,
    ) -> OptimizationReport:
        """Move *nodes* in place. Stops between iterations when the context expires."""
        report = OptimizationReport()
        if len(nodes) < 2:
            report.converged = True
            report.phases_completed = len(self.phases)
            return report

        spacing = self.spacing_for(len(nodes))
        for phase in self.phases:
            for i in range(phase.iterations):
                if context.expired:
                    logger.debug("force simulation cancelled in phase %s", phase.name)
                    return report
                self.step(nodes, edges, phase.strength, spacing)
                report.iterations += 1
                if (i + 1) % CONVERGENCE_CHECK_INTERVAL == 0:
                    if not find_overlaps(nodes, self.config.node_spacing):
                        report.converged = True
                        break
            report.phases_completed += 1
        logger.debug(
            "force simulation finished: %d iterations, converged=%s",
            report.iterations, report.converged,
        )
        return report

    def spacing_for(self, node_count: int) -> float:
        """Optimal spacing for *node_count* nodes, based on the node separation."""
        return self.spacing or optimal_spacing(node_count, self.config.node_separation)

    def step(
        self,
        nodes: list[PositionedNode],
        edges: Sequence[Edge],
        phase_strength: float,
        spacing: float,
    ) -> None:
        """Apply one simulation step to every node.

        Repulsion scales with *phase_strength*; edge attraction is further
        scaled by ``config.force_strength``.
        """
        pull = phase_strength * self.config.force_strength
        forces = {n.id: [0.0, 0.0] for n in nodes}

        # Repulsion
        for i in range(len(nodes)):
            a = nodes[i]
            for j in range(i + 1, len(nodes)):
                b = nodes[j]
                dx = a.cx - b.cx
                dy = a.cy - b.cy
                d = math.hypot(dx, dy)
                if d == 0:
                    # Coincident centers are left to the overlap resolver.
                    continue
                ideal = spacing * _importance_factor(a, b) + (a.width + b.width) / 2
                if d < ideal:
                    magnitude = phase_strength * (ideal - d) / d * 100
                elif d < 2 * ideal:
                    magnitude = phase_strength * ideal / (d * d) * 50
                else:
                    continue
                fx = dx / d * magnitude
                fy = dy / d * magnitude
                forces[a.id][0] += fx
                forces[a.id][1] += fy
                forces[b.id][0] -= fx
                forces[b.id][1] -= fy

        # Attraction along edges
        by_id = {n.id: n for n in nodes}
        for edge in edges:
            if edge.source == edge.target:
                continue
            s = by_id.get(edge.source)
            t = by_id.get(edge.target)
            if s is None or t is None:
                continue
            dx = t.cx - s.cx
            dy = t.cy - s.cy
            d = math.hypot(dx, dy)
            if d == 0:
                continue
            magnitude = pull * (d - 2 * spacing) * 0.1
            fx = dx / d * magnitude
            fy = dy / d * magnitude
            forces[s.id][0] += fx
            forces[s.id][1] += fy
            forces[t.id][0] -= fx
            forces[t.id][1] -= fy

        max_velocity = spacing / 4
        for node in nodes:
            fx, fy = forces[node.id]
            magnitude = math.hypot(fx, fy)
            if magnitude > max_velocity:
                fx = fx / magnitude * max_velocity
                fy = fy / magnitude * max_velocity
            node.x += fx * DAMPING
            node.y += fy * DAMPING
            clamp_to_canvas(node, self.config)


def _importance_factor(a: PositionedNode, b: PositionedNode) -> float:
    """Important nodes claim up to 50% more room around them."""
    total = (a.importance or 0.0) + (b.importance or 0.0)
    return 1.0 + total / 4

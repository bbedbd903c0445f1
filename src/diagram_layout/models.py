"""
Core data model for the diagram layout engine.

Provides the typed input/output structures shared by every layout stage:
- Node / Edge: the caller's graph (immutable)
- LayoutConfig: canvas, spacing and optimisation knobs (immutable)
- PositionedNode / LayoutEdge: the engine's output geometry
- LayoutQualityMetrics / LayoutResult: the report returned to callers
- LayoutContext: the per-call session (PRNG, deadline, cancellation)
"""

from __future__ import annotations

import math
import random
import threading
import time
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DiagramType(Enum):
    """Diagram families understood by the strategy dispatcher."""
    TREE = "tree"
    TIMELINE = "timeline"
    CYCLE = "cycle"
    MATRIX = "matrix"
    NETWORK = "network"
    FLOW = "flow"
    CONCEPT_MAP = "concept-map"

    @classmethod
    def parse(cls, value: Any) -> Optional[DiagramType]:
        """Return the matching member, or None for unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == normalized:
                return member
        return None


class RankDirection(Enum):
    """Primary axis of a ranked (flow) layout."""
    TB = "TB"
    BT = "BT"
    LR = "LR"
    RL = "RL"

    @property
    def vertical(self) -> bool:
        return self in (RankDirection.TB, RankDirection.BT)


class BoxKind(Enum):
    NODE = "node"
    LABEL = "label"
    EDGE = "edge"


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass
class Point:
    """A 2-D coordinate."""
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass
class Bounds:
    """Axis-aligned bounding box."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    @property
    def area(self) -> float:
        return self.width * self.height

    def intersects(self, other: Bounds, margin: float = 0) -> bool:
        """Check if two bounding boxes overlap (with optional margin).

        Boxes that merely touch do not count as overlapping.
        """
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.bottom + margin <= other.y
            or other.bottom + margin <= self.y
        )

    def intersection_area(self, other: Bounds) -> float:
        """Area shared by two boxes (0 when disjoint)."""
        w = min(self.right, other.right) - max(self.x, other.x)
        h = min(self.bottom, other.bottom) - max(self.y, other.y)
        if w <= 0 or h <= 0:
            return 0.0
        return w * h

    def contains_point(self, px: float, py: float, margin: float = 0) -> bool:
        """Check if a point is inside this bounding box (with margin)."""
        return (
            self.x - margin <= px <= self.right + margin
            and self.y - margin <= py <= self.bottom + margin
        )

    def expanded(self, pad: float) -> Bounds:
        """Return a copy grown by *pad* on every side."""
        return Bounds(self.x - pad, self.y - pad, self.width + 2 * pad, self.height + 2 * pad)

    @classmethod
    def enclosing(cls, boxes: list[Bounds]) -> Optional[Bounds]:
        """Smallest box containing all *boxes* (None for an empty list)."""
        if not boxes:
            return None
        min_x = min(b.x for b in boxes)
        min_y = min(b.y for b in boxes)
        max_x = max(b.right for b in boxes)
        max_y = max(b.bottom for b in boxes)
        return cls(min_x, min_y, max_x - min_x, max_y - min_y)


# ---------------------------------------------------------------------------
# Input graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Node:
    """A labeled diagram element supplied by the caller."""
    id: str
    label: str = ""
    importance: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        node_id = str(data["id"])
        label = data.get("label")
        return cls(
            id=node_id,
            label=node_id if label is None else str(label),
            importance=data.get("importance"),
        )


@dataclass(frozen=True)
class Edge:
    """A directed relation between two node ids."""
    source: str
    target: str
    label: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        """Build an edge from ``source``/``target`` or ``from``/``to`` keys."""
        source = data.get("source", data.get("from"))
        target = data.get("target", data.get("to"))
        return cls(source=str(source), target=str(target), label=str(data.get("label") or ""))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MinimumSpacing:
    """Hard lower bounds on gaps between layout elements."""
    node_to_node: float = 40
    node_to_edge: float = 20
    label_to_element: float = 15


# camelCase aliases accepted by LayoutConfig.from_dict
_CONFIG_ALIASES = {
    "marginX": "margin_x",
    "marginY": "margin_y",
    "nodeWidth": "node_width",
    "nodeHeight": "node_height",
    "nodeSeparation": "node_separation",
    "rankSeparation": "rank_separation",
    "edgeSeparation": "edge_separation",
    "rankDirection": "rank_direction",
    "maxIterations": "max_iterations",
    "convergenceThreshold": "convergence_threshold",
    "forceStrength": "force_strength",
    "minimumSpacing": "minimum_spacing",
    "maxOverlapIterations": "max_overlap_iterations",
    "emergencyCandidates": "emergency_candidates",
    "refineAesthetics": "refine_aesthetics",
    "forceRefinement": "force_refinement",
    "refinementJitter": "refinement_jitter",
}

_SPACING_ALIASES = {
    "nodeToNode": "node_to_node",
    "nodeToEdge": "node_to_edge",
    "labelToElement": "label_to_element",
}


@dataclass(frozen=True)
class LayoutConfig:
    """Configuration for one layout call. Never mutated by the engine."""
    # Canvas
    width: float = 1920
    height: float = 1080
    margin_x: float = 50
    margin_y: float = 50

    # Default node size (labels may grow a node up to 2x)
    node_width: float = 120
    node_height: float = 60

    # Spacing
    node_separation: float = 50     # Gap between siblings / nodes in a rank
    rank_separation: float = 120    # Level pitch (tree) or gap between ranks (flow)
    edge_separation: float = 10
    rank_direction: RankDirection = RankDirection.TB
    minimum_spacing: MinimumSpacing = field(default_factory=MinimumSpacing)

    # Optimisation
    max_iterations: int = 100
    convergence_threshold: float = 0.01
    force_strength: float = 0.5
    max_overlap_iterations: int = 50
    emergency_candidates: int = 20
    refine_aesthetics: bool = False
    force_refinement: bool = False
    refinement_jitter: float = 10.0

    # Session
    seed: Optional[int] = None
    timeout: Optional[float] = None  # seconds

    @property
    def node_spacing(self) -> float:
        """Minimum clearance between any two node rectangles."""
        return self.minimum_spacing.node_to_node

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> LayoutConfig:
        """Build a config from snake_case or camelCase keys; unknown keys are ignored."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _CONFIG_ALIASES.get(key, key)
            if name not in known:
                continue
            if name == "rank_direction" and not isinstance(value, RankDirection):
                value = RankDirection(str(value).strip().upper())
            elif name == "minimum_spacing" and isinstance(value, dict):
                value = MinimumSpacing(**{
                    _SPACING_ALIASES.get(k, k): v for k, v in value.items()
                    if _SPACING_ALIASES.get(k, k) in {f.name for f in fields(MinimumSpacing)}
                })
            kwargs[name] = value
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Output geometry
# ---------------------------------------------------------------------------

@dataclass
class PositionedNode:
    """A node with its final position (top-left corner) and size."""
    id: str
    label: str
    x: float = 0
    y: float = 0
    width: float = 120
    height: float = 60
    importance: Optional[float] = None

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    @property
    def bounds(self) -> Bounds:
        return Bounds(self.x, self.y, self.width, self.height)

    def move_center_to(self, cx: float, cy: float) -> None:
        self.x = cx - self.width / 2
        self.y = cy - self.height / 2

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "width": self.width,
            "height": self.height,
        }
        if self.importance is not None:
            data["importance"] = self.importance
        return data


@dataclass
class LayoutEdge:
    """An edge with its routed polyline (first/last points on node boundaries)."""
    source: str
    target: str
    label: str = ""
    points: list[Point] = field(default_factory=list)

    @property
    def length(self) -> float:
        return sum(a.distance_to(b) for a, b in zip(self.points, self.points[1:]))

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "points": [{"x": round(p.x, 2), "y": round(p.y, 2)} for p in self.points],
        }


@dataclass
class CollisionBox:
    """An axis-aligned box registered in a spatial index for one pass."""
    x: float
    y: float
    width: float
    height: float
    owner_id: str
    kind: BoxKind = BoxKind.NODE

    @property
    def bounds(self) -> Bounds:
        return Bounds(self.x, self.y, self.width, self.height)

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2


@dataclass
class LayoutQualityMetrics:
    """Measured quality of a finished layout."""
    overlap_count: int = 0
    overlap_area: float = 0.0
    edge_crossings: int = 0
    total_edge_length: float = 0.0
    canvas_utilization: float = 0.0
    symmetry_score: float = 0.0
    compactness_score: float = 0.0
    readability_score: float = 0.0
    aesthetic_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            k: (round(v, 4) if isinstance(v, float) else v)
            for k, v in asdict(self).items()
        }


@dataclass
class LayoutResult:
    """Outcome of one layout call. Errors travel as data, never as exceptions."""
    nodes: list[PositionedNode] = field(default_factory=list)
    edges: list[LayoutEdge] = field(default_factory=list)
    bounds: Optional[Bounds] = None
    metrics: LayoutQualityMetrics = field(default_factory=LayoutQualityMetrics)
    success: bool = True
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None
    diagram_type: Optional[str] = None
    strategy: Optional[str] = None

    @classmethod
    def failure(cls, message: str, diagram_type: Optional[str] = None) -> LayoutResult:
        return cls(success=False, error=message, diagram_type=diagram_type)

    def node(self, node_id: str) -> Optional[PositionedNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "diagram_type": self.diagram_type,
            "strategy": self.strategy,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "bounds": asdict(self.bounds) if self.bounds else None,
            "metrics": self.metrics.to_dict(),
            "warnings": list(self.warnings),
        }
        if self.error:
            data["error"] = self.error
        return data


# ---------------------------------------------------------------------------
# Per-call session
# ---------------------------------------------------------------------------

@dataclass
class LayoutContext:
    """State that lives for exactly one layout call.

    Holds the seeded PRNG, the wall-clock deadline and an optional
    cancellation event. Iterative stages poll :attr:`expired` between
    iterations and stop with their best result so far.
    """
    rng: random.Random
    deadline: Optional[float] = None
    cancel_event: Optional[threading.Event] = None
    timed_out: bool = False
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        config: LayoutConfig,
        *,
        stochastic: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> LayoutContext:
        """Create a session for *config*.

        Deterministic strategies get a fixed default seed so that tie-breaks
        stay reproducible when the caller supplies none.
        """
        if config.seed is not None:
            rng = random.Random(config.seed)
        elif stochastic:
            rng = random.Random()
        else:
            rng = random.Random(0)
        deadline = None
        if config.timeout is not None:
            deadline = time.monotonic() + config.timeout
        return cls(rng=rng, deadline=deadline, cancel_event=cancel_event)

    @property
    def expired(self) -> bool:
        """True once the deadline passed or cancellation was requested (sticky)."""
        if self.timed_out:
            return True
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.timed_out = True
        elif self.deadline is not None and time.monotonic() >= self.deadline:
            self.timed_out = True
        return self.timed_out

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

CHAR_WIDTH = 8
LINE_HEIGHT = 22
TEXT_PADDING_X = 20
TEXT_PADDING_Y = 16


def label_lines(label: str) -> list[str]:
    lines = [line.strip() for line in label.split("\n") if line.strip()]
    return lines or [label.strip() or "X"]


def estimate_node_size(label: str, base_w: float, base_h: float) -> tuple[float, float]:
    """Estimate a node's width/height from its label, bounded to [base, 2*base]."""
    lines = label_lines(label)
    max_chars = max(len(line) for line in lines)
    w = max(base_w, min(max_chars * CHAR_WIDTH + TEXT_PADDING_X, 2 * base_w))
    h = max(base_h, min(len(lines) * LINE_HEIGHT + TEXT_PADDING_Y, 2 * base_h))
    return float(w), float(h)


def clamp_to_canvas(node: PositionedNode, config: LayoutConfig) -> None:
    """Clamp a node's top-left corner into ``[margin, canvas - size - margin]``.

    When the canvas is too small for the node the lower bound wins.
    """
    max_x = config.width - node.width - config.margin_x
    max_y = config.height - node.height - config.margin_y
    node.x = max(config.margin_x, min(node.x, max_x))
    node.y = max(config.margin_y, min(node.y, max_y))

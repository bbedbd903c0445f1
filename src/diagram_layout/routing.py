"""
Edge routing between positioned nodes.

Every route is a polyline whose first point lies on the source node's
boundary and whose last point lies on the target node's boundary.

Styles:
- VERTICAL   — bottom-center of source to top-center of target (trees)
- HORIZONTAL — right edge of source to left edge of target (timelines)
- STRAIGHT   — center-to-center segment clipped to both boundaries
- RANKED     — along the primary axis of a flow's rank direction
"""

from __future__ import annotations

import math
from enum import Enum

from diagram_layout.models import Edge, LayoutEdge, Point, PositionedNode, RankDirection


class RouteStyle(Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    STRAIGHT = "straight"
    RANKED = "ranked"


# Offset of the self-loop above and beside its node
_LOOP_OFFSET = 20.0


def _anchor(node: PositionedNode, side: str) -> Point:
    if side == "top":
        return Point(node.cx, node.y)
    if side == "bottom":
        return Point(node.cx, node.y + node.height)
    if side == "left":
        return Point(node.x, node.cy)
    return Point(node.x + node.width, node.cy)


_RANK_SIDES = {
    RankDirection.TB: ("bottom", "top"),
    RankDirection.BT: ("top", "bottom"),
    RankDirection.LR: ("right", "left"),
    RankDirection.RL: ("left", "right"),
}


def clip_to_boundary(node: PositionedNode, toward: Point) -> Point:
    """Point where the ray from *node*'s center toward *toward* leaves its rectangle."""
    dx = toward.x - node.cx
    dy = toward.y - node.cy
    if abs(dx) < 1e-9 and abs(dy) < 1e-9:
        return Point(node.cx, node.cy - node.height / 2)
    half_w = node.width / 2
    half_h = node.height / 2
    # Smallest parameter at which the ray meets a vertical or horizontal side
    tx = half_w / abs(dx) if abs(dx) > 1e-9 else math.inf
    ty = half_h / abs(dy) if abs(dy) > 1e-9 else math.inf
    t = min(tx, ty)
    return Point(node.cx + dx * t, node.cy + dy * t)


def _self_loop(node: PositionedNode) -> list[Point]:
    right = node.x + node.width
    top = node.y
    return [
        Point(right, node.cy),
        Point(right + _LOOP_OFFSET, node.cy),
        Point(right + _LOOP_OFFSET, top - _LOOP_OFFSET),
        Point(node.cx, top - _LOOP_OFFSET),
        Point(node.cx, top),
    ]


def route_edge(
    edge: Edge,
    source: PositionedNode,
    target: PositionedNode,
    style: RouteStyle = RouteStyle.STRAIGHT,
    direction: RankDirection = RankDirection.TB,
) -> LayoutEdge:
    """Compute the polyline for one edge."""
    if source.id == target.id:
        points = _self_loop(source)
    elif style is RouteStyle.VERTICAL:
        points = [_anchor(source, "bottom"), _anchor(target, "top")]
    elif style is RouteStyle.HORIZONTAL:
        points = [_anchor(source, "right"), _anchor(target, "left")]
    elif style is RouteStyle.RANKED:
        exit_side, entry_side = _RANK_SIDES[direction]
        points = [_anchor(source, exit_side), _anchor(target, entry_side)]
    else:
        points = [
            clip_to_boundary(source, Point(target.cx, target.cy)),
            clip_to_boundary(target, Point(source.cx, source.cy)),
        ]
    return LayoutEdge(source=edge.source, target=edge.target, label=edge.label, points=points)


def route_edges(
    edges: list[Edge],
    nodes: list[PositionedNode],
    style: RouteStyle = RouteStyle.STRAIGHT,
    direction: RankDirection = RankDirection.TB,
) -> list[LayoutEdge]:
    """Route every edge against the current node positions."""
    by_id = {n.id: n for n in nodes}
    return [
        route_edge(e, by_id[e.source], by_id[e.target], style, direction)
        for e in edges
    ]


def distance_to_boundary(node: PositionedNode, point: Point) -> float:
    """Distance from *point* to the nearest side of *node*'s rectangle."""
    left, right = node.x, node.x + node.width
    top, bottom = node.y, node.y + node.height
    inside = left <= point.x <= right and top <= point.y <= bottom
    if inside:
        return min(point.x - left, right - point.x, point.y - top, bottom - point.y)
    dx = max(left - point.x, 0.0, point.x - right)
    dy = max(top - point.y, 0.0, point.y - bottom)
    return math.hypot(dx, dy)

"""
Connected-component helpers.

Large graphs often fall apart into independent components. Callers can
split a graph with :func:`split_components`, lay the parts out separately
(sequentially or in parallel, each call owns its own session) and pack the
results side by side with :func:`merge_layouts`.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import replace
from typing import Sequence

from diagram_layout.models import (
    Bounds,
    Edge,
    LayoutConfig,
    LayoutEdge,
    LayoutResult,
    Node,
    Point,
    PositionedNode,
)
from diagram_layout.quality import QualityEvaluator


def connected_components(order: Sequence[str], edges: Sequence[Edge]) -> list[list[str]]:
    """Weakly connected components via BFS, each listed in input order."""
    adj: dict[str, list[str]] = defaultdict(list)
    for e in edges:
        adj[e.source].append(e.target)
        adj[e.target].append(e.source)

    position = {nid: i for i, nid in enumerate(order)}
    visited: set[str] = set()
    components: list[list[str]] = []
    for start in order:
        if start in visited:
            continue
        visited.add(start)
        component = [start]
        queue = deque([start])
        while queue:
            u = queue.popleft()
            for v in adj[u]:
                if v not in visited and v in position:
                    visited.add(v)
                    component.append(v)
                    queue.append(v)
        component.sort(key=position.__getitem__)
        components.append(component)
    return components


def split_components(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
) -> list[tuple[list[Node], list[Edge]]]:
    """Partition a graph into its connected components (nodes and edges kept in order)."""
    by_id = {n.id: n for n in nodes}
    parts = connected_components([n.id for n in nodes], edges)
    owner = {nid: i for i, part in enumerate(parts) for nid in part}
    part_edges: list[list[Edge]] = [[] for _ in parts]
    for e in edges:
        part_edges[owner[e.source]].append(e)
    return [([by_id[nid] for nid in part], part_edges[i]) for i, part in enumerate(parts)]


def merge_layouts(results: Sequence[LayoutResult], config: LayoutConfig) -> LayoutResult:
    """Translate component layouts into one shared canvas.

    Component bounding boxes are shelf-packed left to right, wrapping to a
    new row when the usable width is exhausted. Quality metrics are
    re-measured on the merged layout.
    """
    failed = next((r for r in results if not r.success), None)
    if failed is not None:
        return LayoutResult.failure(failed.error or "component layout failed", failed.diagram_type)

    gap = max(config.node_separation, config.node_spacing)
    usable_right = config.width - config.margin_x
    cursor_x = config.margin_x
    cursor_y = config.margin_y
    row_height = 0.0

    merged_nodes: list[PositionedNode] = []
    merged_edges: list[LayoutEdge] = []
    warnings: list[str] = []
    for result in results:
        box = Bounds.enclosing([n.bounds for n in result.nodes])
        if box is None:
            continue
        if cursor_x > config.margin_x and cursor_x + box.width > usable_right:
            cursor_x = config.margin_x
            cursor_y += row_height + gap
            row_height = 0.0
        dx = cursor_x - box.x
        dy = cursor_y - box.y
        for n in result.nodes:
            merged_nodes.append(replace(n, x=n.x + dx, y=n.y + dy))
        for e in result.edges:
            merged_edges.append(replace(e, points=[Point(p.x + dx, p.y + dy) for p in e.points]))
        for w in result.warnings:
            if w not in warnings:
                warnings.append(w)
        cursor_x += box.width + gap
        row_height = max(row_height, box.height)

    bounds = Bounds.enclosing([n.bounds for n in merged_nodes])
    if bounds is not None and (
        bounds.right > config.width - config.margin_x
        or bounds.bottom > config.height - config.margin_y
    ):
        warnings.append("Merged components exceed the canvas; consider a larger canvas.")

    metrics = QualityEvaluator(config).evaluate(merged_nodes, merged_edges)
    strategies = {r.strategy for r in results if r.strategy}
    return LayoutResult(
        nodes=merged_nodes,
        edges=merged_edges,
        bounds=bounds,
        metrics=metrics,
        success=True,
        warnings=warnings,
        diagram_type=results[0].diagram_type if results else None,
        strategy=strategies.pop() if len(strategies) == 1 else None,
    )

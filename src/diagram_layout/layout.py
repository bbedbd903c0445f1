"""
Layout strategies, one per diagram family.

Each strategy is a pure function of (nodes, edges, config) that returns the
initial top-left position of every node; sizes are already attached to the
positioned nodes it receives. The dispatcher picks a strategy through
:func:`get_strategy` and hands the result to the overlap resolver.

Strategies:
- TreeStrategy     — hierarchical, parent centered over its children
- TimelineStrategy — chronological, evenly spaced on one horizontal line
- CycleStrategy    — nodes on a circle around the canvas center
- GridStrategy     — row-major grid (matrix diagrams and the fallback)
- FlowStrategy     — Sugiyama-style ranks with barycenter ordering
- NetworkStrategy  — jittered grid seed + force-directed simulation
"""

from __future__ import annotations

import math
from collections import defaultdict, deque
from dataclasses import replace
from typing import Optional, Sequence

from diagram_layout.components import connected_components
from diagram_layout.forces import ForceDirectedOptimizer, optimal_spacing
from diagram_layout.models import (
    DiagramType,
    Edge,
    LayoutConfig,
    LayoutContext,
    PositionedNode,
    RankDirection,
    clamp_to_canvas,
)
from diagram_layout.routing import RouteStyle

Positions = dict[str, tuple[float, float]]


class LayoutStrategy:
    """Base class for the closed set of layout strategies."""
    name = "base"
    diagram_types: frozenset[DiagramType] = frozenset()
    route_style = RouteStyle.STRAIGHT
    # Uses the PRNG for more than tie-breaks
    stochastic = False
    # Run the force optimizer on top of the initial placement
    force_refinement = False

    def supports(self, diagram_type: Optional[DiagramType]) -> bool:
        return diagram_type in self.diagram_types

    def layout(
        self,
        nodes: Sequence[PositionedNode],
        edges: Sequence[Edge],
        config: LayoutConfig,
        context: LayoutContext,
    ) -> Positions:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _center_positions(nodes: Sequence[PositionedNode], centers: dict[str, tuple[float, float]]) -> Positions:
    by_id = {n.id: n for n in nodes}
    return {
        nid: (cx - by_id[nid].width / 2, cy - by_id[nid].height / 2)
        for nid, (cx, cy) in centers.items()
    }


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------

class TreeStrategy(LayoutStrategy):
    """Top-down tree with each parent centered above its children.

    The root is the first node without incoming edges (or the first node).
    Cycles and nodes reachable through several parents are kept as leaf
    stubs of the branch that reached them first. Nodes the root cannot
    reach grow further trees, packed to the right.
    """
    name = "tree"
    diagram_types = frozenset({DiagramType.TREE})
    route_style = RouteStyle.VERTICAL

    def layout(self, nodes, edges, config, context):
        order = [n.id for n in nodes]
        by_id = {n.id: n for n in nodes}
        adj: dict[str, list[str]] = defaultdict(list)
        incoming: set[str] = set()
        for e in edges:
            if e.source == e.target:
                continue
            adj[e.source].append(e.target)
            incoming.add(e.target)

        root = next((nid for nid in order if nid not in incoming), order[0])
        placed: set[str] = set()
        children: dict[str, list[str]] = defaultdict(list)
        level: dict[str, int] = {}
        trees: list[list[str]] = []

        for start in [root] + order:
            if start in placed:
                continue
            trees.append(_build_tree(start, adj, placed, children, level))

        sep = config.node_separation
        centers_x: dict[str, float] = {}
        cursor = 0.0
        spans: list[tuple[float, float]] = []
        for preorder in trees:
            width = _subtree_widths(preorder, by_id, children, sep)
            left = {preorder[0]: cursor}
            for u in preorder:
                kids = children[u]
                span = sum(width[c] for c in kids) + sep * (len(kids) - 1)
                start = left[u] + (width[u] - span) / 2
                for c in kids:
                    left[c] = start
                    start += width[c] + sep
            for u in reversed(preorder):
                kids = children[u]
                if kids:
                    centers_x[u] = (centers_x[kids[0]] + centers_x[kids[-1]]) / 2
                else:
                    centers_x[u] = left[u] + width[u] / 2
            spans.append((cursor, cursor + width[preorder[0]]))
            cursor += width[preorder[0]] + sep

        total_left = spans[0][0]
        total_right = spans[-1][1]
        usable_left = config.margin_x
        usable_right = config.width - config.margin_x
        if len(trees) == 1:
            shift = config.width / 2 - centers_x[root]
            if total_right - total_left <= usable_right - usable_left:
                shift = min(max(shift, usable_left - total_left), usable_right - total_right)
            else:
                shift = (config.width - (total_right - total_left)) / 2 - total_left
        else:
            shift = (config.width - (total_right - total_left)) / 2 - total_left

        positions: Positions = {}
        for nid in order:
            node = by_id[nid]
            x = centers_x[nid] + shift - node.width / 2
            y = level[nid] * config.rank_separation + config.margin_y
            positions[nid] = (x, y)
        return positions


def _build_tree(
    root: str,
    adj: dict[str, list[str]],
    placed: set[str],
    children: dict[str, list[str]],
    level: dict[str, int],
) -> list[str]:
    """Iterative DFS from *root*; returns the tree's nodes in preorder."""
    placed.add(root)
    level[root] = 0
    preorder = [root]
    stack: list[tuple[str, int]] = [(root, 0)]
    while stack:
        u, idx = stack[-1]
        neighbors = adj.get(u, [])
        if idx < len(neighbors):
            stack[-1] = (u, idx + 1)
            v = neighbors[idx]
            # Ancestors and nodes reached earlier stay leaf stubs.
            if v in placed:
                continue
            placed.add(v)
            level[v] = level[u] + 1
            children[u].append(v)
            preorder.append(v)
            stack.append((v, 0))
        else:
            stack.pop()
    return preorder


def _subtree_widths(
    preorder: list[str],
    by_id: dict[str, PositionedNode],
    children: dict[str, list[str]],
    sep: float,
) -> dict[str, float]:
    width: dict[str, float] = {}
    for u in reversed(preorder):
        kids = children[u]
        span = sum(width[c] for c in kids) + sep * (len(kids) - 1) if kids else 0.0
        width[u] = max(by_id[u].width, span)
    return width


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------

class TimelineStrategy(LayoutStrategy):
    """Input order is chronological; centers evenly spaced at mid-height."""
    name = "timeline"
    diagram_types = frozenset({DiagramType.TIMELINE})
    route_style = RouteStyle.HORIZONTAL

    def layout(self, nodes, edges, config, context):
        n = len(nodes)
        widest = max(node.width for node in nodes)
        left = config.margin_x + widest / 2
        right = config.width - config.margin_x - widest / 2
        cy = config.height / 2
        if n == 1 or right < left:
            left = right = config.width / 2
        step = (right - left) / (n - 1) if n > 1 else 0.0
        centers = {node.id: (left + i * step, cy) for i, node in enumerate(nodes)}
        return _center_positions(nodes, centers)


# ---------------------------------------------------------------------------
# Cycle
# ---------------------------------------------------------------------------

class CycleStrategy(LayoutStrategy):
    """Nodes on a circle of radius 0.3 * min(width, height)."""
    name = "cycle"
    diagram_types = frozenset({DiagramType.CYCLE})

    def layout(self, nodes, edges, config, context):
        n = len(nodes)
        cx = config.width / 2
        cy = config.height / 2
        if n == 1:
            return _center_positions(nodes, {nodes[0].id: (cx, cy)})
        radius = 0.3 * min(config.width, config.height)
        step = 2 * math.pi / n
        centers = {
            node.id: (cx + radius * math.cos(i * step), cy + radius * math.sin(i * step))
            for i, node in enumerate(nodes)
        }
        return _center_positions(nodes, centers)


# ---------------------------------------------------------------------------
# Matrix / grid
# ---------------------------------------------------------------------------

class GridStrategy(LayoutStrategy):
    """Row-major grid, each node centered in its cell. Also the fallback."""
    name = "grid"
    diagram_types = frozenset({DiagramType.MATRIX})

    def layout(self, nodes, edges, config, context):
        n = len(nodes)
        cols = math.ceil(math.sqrt(n))
        rows = math.ceil(n / cols)
        cell_w = config.width / cols
        cell_h = config.height / rows
        centers = {
            node.id: ((i % cols) * cell_w + cell_w / 2, (i // cols) * cell_h + cell_h / 2)
            for i, node in enumerate(nodes)
        }
        return _center_positions(nodes, centers)


class ConceptMapStrategy(GridStrategy):
    """Grid seed relaxed by the force optimizer so related concepts cluster."""
    name = "concept-map"
    diagram_types = frozenset({DiagramType.CONCEPT_MAP})
    force_refinement = True


# ---------------------------------------------------------------------------
# Flow (Sugiyama-style ranks)
# ---------------------------------------------------------------------------

_BARYCENTER_SWEEPS = 4


class FlowStrategy(LayoutStrategy):
    """Layered layout for process flows.

    Steps:
    1. Cycle removal (reverse DFS back-edges)
    2. Rank assignment (longest path from sources)
    3. Crossing reduction (barycenter sweeps)
    4. Coordinate assignment along ``rank_direction``

    A graph with more than one connected component has no single rank
    structure; it is stacked vertically in input order instead.
    """
    name = "flow"
    diagram_types = frozenset({DiagramType.FLOW})
    route_style = RouteStyle.RANKED

    def layout(self, nodes, edges, config, context):
        order = [n.id for n in nodes]
        by_id = {n.id: n for n in nodes}
        if len(connected_components(order, edges)) > 1:
            return self._vertical_stack(nodes, config)

        adj: dict[str, list[str]] = defaultdict(list)
        for e in edges:
            if e.source != e.target:
                adj[e.source].append(e.target)

        back_edges = _find_back_edges(order, adj)
        effective_adj: dict[str, list[str]] = defaultdict(list)
        effective_rev: dict[str, list[str]] = defaultdict(list)
        for src in order:
            for tgt in adj.get(src, []):
                if (src, tgt) in back_edges:
                    effective_adj[tgt].append(src)
                    effective_rev[src].append(tgt)
                else:
                    effective_adj[src].append(tgt)
                    effective_rev[tgt].append(src)

        ranks = _assign_ranks_longest_path(order, effective_adj, effective_rev)
        by_rank: dict[int, list[str]] = defaultdict(list)
        for nid in order:
            by_rank[ranks[nid]].append(nid)

        rank_order: dict[str, float] = {}
        for rank_nodes in by_rank.values():
            for i, nid in enumerate(rank_nodes):
                rank_order[nid] = float(i)

        max_rank = max(by_rank)
        for _ in range(_BARYCENTER_SWEEPS):
            for r in range(1, max_rank + 1):
                _barycenter_sort(by_rank[r], rank_order, effective_rev)
            for r in range(max_rank - 1, -1, -1):
                _barycenter_sort(by_rank[r], rank_order, effective_adj)

        return _assign_coordinates(by_rank, by_id, config)

    @staticmethod
    def _vertical_stack(nodes: Sequence[PositionedNode], config: LayoutConfig) -> Positions:
        positions: Positions = {}
        y = config.margin_y
        for node in nodes:
            positions[node.id] = (config.width / 2 - node.width / 2, y)
            y += node.height + config.node_separation
        return positions


def _find_back_edges(
    order: list[str],
    adj: dict[str, list[str]],
) -> set[tuple[str, str]]:
    """Find back-edges in a directed graph using iterative DFS."""
    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[str, int] = {n: WHITE for n in order}
    back_edges: set[tuple[str, str]] = set()

    for start in order:
        if color[start] != WHITE:
            continue
        color[start] = GRAY
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            u, idx = stack[-1]
            neighbors = adj.get(u, [])
            if idx < len(neighbors):
                stack[-1] = (u, idx + 1)
                v = neighbors[idx]
                if color[v] == GRAY:
                    back_edges.add((u, v))
                elif color[v] == WHITE:
                    color[v] = GRAY
                    stack.append((v, 0))
            else:
                color[u] = BLACK
                stack.pop()

    return back_edges


def _assign_ranks_longest_path(
    order: list[str],
    adj: dict[str, list[str]],
    rev_adj: dict[str, list[str]],
) -> dict[str, int]:
    """Assign ranks using longest path from sources (graph must be acyclic)."""
    ranks: dict[str, int] = {}
    sources = [n for n in order if not rev_adj.get(n)] or [order[0]]

    queue = deque(sources)
    for s in sources:
        ranks[s] = 0

    while queue:
        node = queue.popleft()
        for child in adj.get(node, []):
            new_rank = ranks[node] + 1
            if child not in ranks or ranks[child] < new_rank:
                ranks[child] = new_rank
                queue.append(child)

    for n in order:
        ranks.setdefault(n, 0)
    return ranks


def _barycenter_sort(
    rank_nodes: list[str],
    rank_order: dict[str, float],
    neighbor_adj: dict[str, list[str]],
) -> None:
    """Sort nodes in a rank by barycenter of their neighbors (stable)."""
    barycenters: dict[str, float] = {}
    for nid in rank_nodes:
        neighbor_orders = [rank_order[n] for n in neighbor_adj.get(nid, []) if n in rank_order]
        if neighbor_orders:
            barycenters[nid] = sum(neighbor_orders) / len(neighbor_orders)
        else:
            barycenters[nid] = rank_order[nid]

    rank_nodes.sort(key=lambda n: barycenters[n])
    for i, nid in enumerate(rank_nodes):
        rank_order[nid] = float(i)


def _assign_coordinates(
    by_rank: dict[int, list[str]],
    by_id: dict[str, PositionedNode],
    config: LayoutConfig,
) -> Positions:
    """Ranks along the primary axis, each rank centered across the canvas."""
    direction = config.rank_direction
    vertical = direction.vertical
    reverse = direction in (RankDirection.BT, RankDirection.RL)

    rank_offsets: dict[int, float] = {}
    cumulative = config.margin_y if vertical else config.margin_x
    for r in sorted(by_rank, reverse=reverse):
        rank_offsets[r] = cumulative
        if vertical:
            thickness = max(by_id[n].height for n in by_rank[r])
        else:
            thickness = max(by_id[n].width for n in by_rank[r])
        cumulative += thickness + config.rank_separation

    positions: Positions = {}
    sep = config.node_separation
    for rank, rank_nodes in sorted(by_rank.items()):
        if vertical:
            total = sum(by_id[n].width for n in rank_nodes) + sep * (len(rank_nodes) - 1)
            cursor = (config.width - total) / 2
            for nid in rank_nodes:
                positions[nid] = (cursor, rank_offsets[rank])
                cursor += by_id[nid].width + sep
        else:
            total = sum(by_id[n].height for n in rank_nodes) + sep * (len(rank_nodes) - 1)
            cursor = (config.height - total) / 2
            for nid in rank_nodes:
                positions[nid] = (rank_offsets[rank], cursor)
                cursor += by_id[nid].height + sep
    return positions


# ---------------------------------------------------------------------------
# Network (force-directed)
# ---------------------------------------------------------------------------

class NetworkStrategy(LayoutStrategy):
    """Jittered grid seed relaxed by the three-phase force simulation."""
    name = "network"
    diagram_types = frozenset({DiagramType.NETWORK})
    stochastic = True

    def layout(self, nodes, edges, config, context):
        work = [replace(n) for n in nodes]
        spacing = optimal_spacing(len(work), config.node_separation)
        seed_jittered_grid(work, config, context, spacing)
        ForceDirectedOptimizer(config, spacing).run(work, edges, context)
        return {n.id: (n.x, n.y) for n in work}


def seed_jittered_grid(
    nodes: list[PositionedNode],
    config: LayoutConfig,
    context: LayoutContext,
    spacing: float,
) -> None:
    """Place nodes on a ceil(sqrt(n)) grid, each center jittered by up to spacing/2."""
    grid = math.ceil(math.sqrt(len(nodes)))
    cell_w = config.width / grid
    cell_h = config.height / grid
    for i, node in enumerate(nodes):
        col, row = i % grid, i // grid
        cx = col * cell_w + cell_w / 2 + (context.rng.random() - 0.5) * spacing
        cy = row * cell_h + cell_h / 2 + (context.rng.random() - 0.5) * spacing
        node.move_center_to(cx, cy)
        clamp_to_canvas(node, config)


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

FALLBACK_STRATEGY: LayoutStrategy = GridStrategy()

STRATEGIES: tuple[LayoutStrategy, ...] = (
    TreeStrategy(),
    TimelineStrategy(),
    CycleStrategy(),
    FALLBACK_STRATEGY,
    FlowStrategy(),
    NetworkStrategy(),
    ConceptMapStrategy(),
)


def get_strategy(diagram_type: Optional[DiagramType]) -> LayoutStrategy:
    """Return the strategy registered for *diagram_type*, or the grid fallback."""
    for strategy in STRATEGIES:
        if strategy.supports(diagram_type):
            return strategy
    return FALLBACK_STRATEGY

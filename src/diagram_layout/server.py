"""
Diagram Layout MCP Server — automatic diagram layout via Model Context Protocol.

Exposes the layout engine to LLM-driven pipelines that extract concepts and
relations and need clean, overlap-free positions for them.

Tools:
  1. layout   — compute: generate a layout, split into components, list types
  2. inspect  — read-only: quality metrics and overlaps of a given layout
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

from mcp.server.fastmcp import FastMCP

from diagram_layout.components import split_components
from diagram_layout.layout import get_strategy
from diagram_layout.layout_engine import generate_component_layouts, generate_layout
from diagram_layout.models import (
    DiagramType,
    Edge,
    LayoutConfig,
    LayoutEdge,
    Node,
    Point,
    PositionedNode,
    estimate_node_size,
)
from diagram_layout.quality import QualityEvaluator
from diagram_layout.routing import route_edges
from diagram_layout.spatial import build_node_index
from diagram_layout.validation import (
    ValidationError,
    validate_action,
    validate_config_dict,
    validate_diagram_type,
    validate_edge_dict,
    validate_edge_points,
    validate_graph,
    validate_int,
    validate_list,
    validate_node_dict,
    validate_positioned_node_dict,
    _INSPECT_ACTIONS,
    _LAYOUT_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging: suppress routine FastMCP INFO messages that editors show
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("diagram-layout.server")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "diagram-layout",
    instructions=(
        "MCP server that positions diagram nodes and routes edges.\n\n"
        "=== 2 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. layout(action, ...) — generate, components, types.\n"
        "2. inspect(action, ...) — metrics, overlaps.\n\n"
        "=== RULES ===\n"
        "- nodes: list of {id, label?, importance? (0..1)}.\n"
        "- edges: list of {source, target, label?} ({from, to} also accepted).\n"
        "- Every edge must reference existing node ids.\n"
        "- diagram_type: tree, timeline, cycle, matrix, network, flow, concept-map.\n"
        "  Unknown types fall back to a grid.\n"
        "- Coordinates are top-left corners on a 1920x1080 canvas by default;\n"
        "  override width/height/margins/spacing through 'config'.\n"
        "- Pass 'seed' for reproducible network layouts.\n"
    ),
)


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("diagram-layout://types")
def diagram_type_catalog() -> str:
    """Return the supported diagram types and the strategy used for each."""
    lines = ["Diagram types:"]
    for dt in DiagramType:
        lines.append(f"  {dt.value}: {get_strategy(dt).name}")
    return "\n".join(lines)


# ===================================================================
# TOOL 1: layout
# ===================================================================

@mcp.tool()
def layout(
    action: str,
    nodes: list[dict[str, Any]] | None = None,
    edges: list[dict[str, Any]] | None = None,
    diagram_type: str = "network",
    config: dict[str, Any] | None = None,
    seed: int | None = None,
    by_component: bool = False,
) -> str:
    """Compute diagram layouts.

    Actions:
      generate    — Position nodes and route edges. Params: nodes, edges,
                    diagram_type, config, seed, by_component (lay out each
                    connected component separately and pack them).
      components  — Report the connected components of a graph.
                    Params: nodes, edges.
      types       — List supported diagram types.

    Args:
        action: One of: generate, components, types.
        nodes: List of {id, label?, importance?}.
        edges: List of {source, target, label?}.
        diagram_type: tree, timeline, cycle, matrix, network, flow, concept-map.
        config: Optional LayoutConfig overrides (snake_case or camelCase keys).
        seed: PRNG seed for reproducible stochastic layouts.
        by_component: Lay out connected components independently.

    Returns:
        JSON data or an error string.
    """
    try:
        action = validate_action(action, "layout", _LAYOUT_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "types":
        return json.dumps([
            {"diagram_type": dt.value, "strategy": get_strategy(dt).name} for dt in DiagramType
        ], indent=2)

    try:
        node_list, edge_list = _parse_graph(nodes, edges)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "components":
        parts = split_components(node_list, edge_list)
        return json.dumps([
            {"nodes": [n.id for n in part_nodes], "edge_count": len(part_edges)}
            for part_nodes, part_edges in parts
        ], indent=2)

    # generate
    try:
        dtype = validate_diagram_type(diagram_type)
        cfg = validate_config_dict(config)
        if seed is not None:
            validate_int(seed, "seed")
            cfg = replace(cfg, seed=seed)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if by_component:
        result = generate_component_layouts(node_list, edge_list, dtype, cfg)
    else:
        result = generate_layout(node_list, edge_list, dtype, cfg)
    if not result.success:
        return f"Error: {result.error}"
    logger.debug("generated %s layout for %d nodes", dtype, len(result.nodes))
    return json.dumps(result.to_dict(), indent=2)


# ===================================================================
# TOOL 2: inspect
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    nodes: list[dict[str, Any]] | None = None,
    edges: list[dict[str, Any]] | None = None,
    config: dict[str, Any] | None = None,
) -> str:
    """Read-only inspection of an existing layout.

    Actions:
      metrics   — Quality metrics (overlaps, crossings, edge length,
                  utilization, symmetry, compactness, readability, score).
      overlaps  — Node pairs closer than the minimum spacing.

    Args:
        action: One of: metrics, overlaps.
        nodes: List of {id, label?, x, y, width?, height?}. Missing sizes are
            estimated from the label.
        edges: List of {source, target, points?}. Edges without points are
            routed as straight segments between node boundaries.
        config: Optional LayoutConfig overrides (canvas and spacing).

    Returns:
        JSON data or an error string.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        cfg = validate_config_dict(config)
        validate_list(nodes, "nodes", min_length=1)
        for i, v in enumerate(nodes):
            validate_positioned_node_dict(v, i)
        edge_dicts = validate_list(edges if edges is not None else [], "edges")
        for i, e in enumerate(edge_dicts):
            validate_edge_dict(e, i)
            validate_edge_points(e, i)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    positioned = [_positioned_from_dict(v, cfg) for v in nodes]
    by_id = {n.id: n for n in positioned}

    if action == "overlaps":
        index = build_node_index(positioned, cfg.node_spacing)
        pairs = [
            {
                "a": a,
                "b": b,
                "area": round(index.get(a).bounds.intersection_area(index.get(b).bounds), 2),
            }
            for a, b in index.overlapping_pairs()
        ]
        return json.dumps({"min_spacing": cfg.node_spacing, "overlaps": pairs}, indent=2)

    # metrics
    layout_edges: list[LayoutEdge] = []
    for i, e in enumerate(edge_dicts):
        edge = Edge.from_dict(e)
        if edge.source not in by_id or edge.target not in by_id:
            return f"Error: Edge {i} ('{edge.source}' -> '{edge.target}') references an unknown node."
        points = e.get("points")
        if points:
            layout_edges.append(LayoutEdge(
                source=edge.source, target=edge.target, label=edge.label,
                points=[Point(float(p["x"]), float(p["y"])) for p in points],
            ))
        else:
            layout_edges.extend(route_edges([edge], positioned))
    metrics = QualityEvaluator(cfg).evaluate(positioned, layout_edges)
    return json.dumps(metrics.to_dict(), indent=2)


# ===================================================================
# Internal helpers
# ===================================================================

def _parse_graph(
    nodes: list[dict[str, Any]] | None,
    edges: list[dict[str, Any]] | None,
) -> tuple[list[Node], list[Edge]]:
    """Validate raw tool parameters and build model objects."""
    validate_list(nodes, "nodes", min_length=1)
    for i, v in enumerate(nodes):
        validate_node_dict(v, i)
    edge_dicts = validate_list(edges if edges is not None else [], "edges")
    for i, e in enumerate(edge_dicts):
        validate_edge_dict(e, i)
    node_list = [Node.from_dict(v) for v in nodes]
    edge_list = [Edge.from_dict(e) for e in edge_dicts]
    validate_graph(node_list, edge_list)
    return node_list, edge_list


def _positioned_from_dict(v: dict[str, Any], cfg: LayoutConfig) -> PositionedNode:
    node = Node.from_dict(v)
    est_w, est_h = estimate_node_size(node.label, cfg.node_width, cfg.node_height)
    return PositionedNode(
        id=node.id,
        label=node.label,
        x=float(v["x"]),
        y=float(v["y"]),
        width=float(v.get("width", est_w)),
        height=float(v.get("height", est_h)),
        importance=node.importance,
    )


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()

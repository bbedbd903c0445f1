"""
Layout engine entry point.

``generate_layout`` runs the full pipeline for one call:

1. Validate the graph and config (errors come back as data)
2. Pick the strategy registered for the diagram type (grid fallback)
3. Initial placement by the strategy
4. Overlap resolution
5. Optional force refinement, followed by a second resolution pass
6. Optional aesthetic refinement
7. Edge routing and quality evaluation

Each call owns a fresh :class:`LayoutContext`; nothing survives between
calls, so independent calls may run concurrently.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Sequence, Union

from diagram_layout.components import merge_layouts, split_components
from diagram_layout.forces import ForceDirectedOptimizer
from diagram_layout.layout import get_strategy
from diagram_layout.models import (
    DiagramType,
    Edge,
    LayoutConfig,
    LayoutContext,
    LayoutResult,
    Node,
    PositionedNode,
    estimate_node_size,
)
from diagram_layout.overlap import OverlapResolver
from diagram_layout.quality import AestheticRefiner, QualityEvaluator, layout_bounds
from diagram_layout.routing import route_edges
from diagram_layout.validation import ValidationError, validate_config, validate_graph

logger = logging.getLogger("diagram-layout")

NodeInput = Union[Node, dict[str, Any]]
EdgeInput = Union[Edge, dict[str, Any]]

HIGH_UTILIZATION = 0.9
LOW_READABILITY = 0.7


def _coerce_nodes(nodes: Sequence[NodeInput]) -> list[Node]:
    result: list[Node] = []
    for i, n in enumerate(nodes):
        if isinstance(n, Node):
            result.append(n)
        elif isinstance(n, dict) and "id" in n:
            result.append(Node.from_dict(n))
        else:
            raise ValidationError(f"Node at index {i} must be a Node or a dict with an 'id'.")
    return result


def _coerce_edges(edges: Sequence[EdgeInput]) -> list[Edge]:
    result: list[Edge] = []
    for i, e in enumerate(edges):
        if isinstance(e, Edge):
            result.append(e)
        elif isinstance(e, dict):
            if e.get("source", e.get("from")) is None or e.get("target", e.get("to")) is None:
                raise ValidationError(f"Edge at index {i} needs 'source' and 'target'.")
            result.append(Edge.from_dict(e))
        else:
            raise ValidationError(f"Edge at index {i} must be an Edge or a dict.")
    return result


def _type_name(diagram_type: Any) -> str:
    if isinstance(diagram_type, DiagramType):
        return diagram_type.value
    return str(diagram_type)


def generate_layout(
    nodes: Sequence[NodeInput],
    edges: Sequence[EdgeInput],
    diagram_type: Union[DiagramType, str],
    config: Optional[LayoutConfig] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> LayoutResult:
    """Compute positions and edge routes for a diagram.

    Args:
        nodes: Nodes (or dicts with ``id``, ``label``, ``importance``).
        edges: Edges (or dicts with ``source``/``target`` or ``from``/``to``).
        diagram_type: A :class:`DiagramType` or its string value. Unknown
            values use the grid layout.
        config: Layout configuration; defaults to :class:`LayoutConfig`.
        cancel_event: Set it from another thread to stop iterative stages
            early; the best layout so far is returned with a warning.

    Returns:
        A :class:`LayoutResult`. Invalid input yields ``success=False`` and
        an ``error`` message instead of an exception.
    """
    cfg = config or LayoutConfig()
    type_name = _type_name(diagram_type)
    try:
        node_list = _coerce_nodes(nodes)
        edge_list = _coerce_edges(edges)
        validate_config(cfg)
        validate_graph(node_list, edge_list)
    except ValidationError as exc:
        logger.warning("layout rejected: %s", exc.message)
        return LayoutResult.failure(exc.message, type_name)

    parsed = DiagramType.parse(diagram_type)
    strategy = get_strategy(parsed)
    context = LayoutContext.create(cfg, stochastic=strategy.stochastic, cancel_event=cancel_event)
    if parsed is None:
        context.warn(f"Unknown diagram type '{type_name}'; using {strategy.name} layout.")
    logger.debug(
        "layout %s: %d nodes, %d edges, strategy=%s",
        type_name, len(node_list), len(edge_list), strategy.name,
    )

    positioned: list[PositionedNode] = []
    for n in node_list:
        w, h = estimate_node_size(n.label, cfg.node_width, cfg.node_height)
        positioned.append(PositionedNode(
            id=n.id, label=n.label, width=w, height=h, importance=n.importance,
        ))

    positions = strategy.layout(positioned, edge_list, cfg, context)
    for node in positioned:
        node.x, node.y = positions[node.id]

    resolver = OverlapResolver(cfg, parsed)
    report = resolver.resolve(positioned, context)

    if (strategy.force_refinement or cfg.force_refinement) and len(positioned) > 1:
        ForceDirectedOptimizer(cfg).run(positioned, edge_list, context)
        report = resolver.resolve(positioned, context)

    def route(current: list[PositionedNode]):
        return route_edges(edge_list, current, strategy.route_style, cfg.rank_direction)

    evaluator = QualityEvaluator(cfg)
    if cfg.refine_aesthetics and report.unresolved == 0:
        AestheticRefiner(cfg, evaluator).refine(positioned, route, context)

    layout_edges = route(positioned)
    metrics = evaluator.evaluate(positioned, layout_edges)

    warnings = list(context.warnings)
    if report.warning:
        warnings.append(report.warning)
    if metrics.canvas_utilization > HIGH_UTILIZATION:
        warnings.append("High canvas utilization may affect readability")
    if metrics.readability_score < LOW_READABILITY:
        warnings.append(
            f"Some labels may not fit their nodes (readability {metrics.readability_score:.2f})"
        )
    if context.timed_out:
        warnings.append("timed_out: returning the best layout found before the time limit")

    for w in warnings:
        logger.warning("layout %s: %s", type_name, w)

    return LayoutResult(
        nodes=positioned,
        edges=layout_edges,
        bounds=layout_bounds(positioned),
        metrics=metrics,
        success=True,
        warnings=warnings,
        diagram_type=parsed.value if parsed else type_name,
        strategy=strategy.name,
    )


def generate_component_layouts(
    nodes: Sequence[NodeInput],
    edges: Sequence[EdgeInput],
    diagram_type: Union[DiagramType, str],
    config: Optional[LayoutConfig] = None,
) -> LayoutResult:
    """Lay out each connected component on its own, then pack them together."""
    cfg = config or LayoutConfig()
    try:
        node_list = _coerce_nodes(nodes)
        edge_list = _coerce_edges(edges)
        validate_config(cfg)
        validate_graph(node_list, edge_list)
    except ValidationError as exc:
        return LayoutResult.failure(exc.message, _type_name(diagram_type))

    results = [
        generate_layout(part_nodes, part_edges, diagram_type, cfg)
        for part_nodes, part_edges in split_components(node_list, edge_list)
    ]
    return merge_layouts(results, cfg)

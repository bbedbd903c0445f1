"""Tests for quality evaluation and aesthetic refinement."""

import math

import pytest

from diagram_layout.models import (
    Edge,
    LayoutConfig,
    LayoutContext,
    LayoutEdge,
    LayoutQualityMetrics,
    Point,
    PositionedNode,
)
from diagram_layout.quality import (
    AestheticRefiner,
    QualityEvaluator,
    canvas_utilization,
    compactness_score,
    count_edge_crossings,
    overlap_stats,
    readability_score,
    segments_intersect,
    symmetry_score,
)
from diagram_layout.routing import route_edges
from diagram_layout.spatial import find_overlaps


def _node(nid: str, x: float, y: float, w: float = 120, h: float = 60, label: str = "") -> PositionedNode:
    return PositionedNode(nid, label or nid, x=x, y=y, width=w, height=h)


def _edge(s: str, t: str, *pts: tuple[float, float]) -> LayoutEdge:
    return LayoutEdge(s, t, points=[Point(x, y) for x, y in pts])


class TestCrossings:
    def test_segments_intersect(self) -> None:
        assert segments_intersect(Point(0, 0), Point(10, 10), Point(0, 10), Point(10, 0))
        assert not segments_intersect(Point(0, 0), Point(10, 0), Point(0, 5), Point(10, 5))

    def test_count_crossings(self) -> None:
        edges = [
            _edge("a", "b", (0, 0), (100, 100)),
            _edge("c", "d", (0, 100), (100, 0)),
        ]
        assert count_edge_crossings(edges) == 1

    def test_edges_sharing_a_node_do_not_cross(self) -> None:
        edges = [
            _edge("a", "b", (0, 0), (100, 100)),
            _edge("a", "d", (0, 100), (100, 0)),
        ]
        assert count_edge_crossings(edges) == 0


class TestSubScores:
    def test_symmetry_perfect_for_ring(self) -> None:
        nodes = []
        for i in range(6):
            angle = 2 * math.pi * i / 6
            n = _node(f"n{i}", 0, 0)
            n.move_center_to(500 + 200 * math.cos(angle), 500 + 200 * math.sin(angle))
            nodes.append(n)
        assert symmetry_score(nodes) == pytest.approx(1.0)

    def test_symmetry_lower_for_lopsided_layout(self) -> None:
        nodes = [_node("a", 0, 0), _node("b", 10, 0), _node("c", 20, 0), _node("d", 1000, 0)]
        assert symmetry_score(nodes) < 0.6

    def test_symmetry_single_node(self) -> None:
        assert symmetry_score([_node("a", 0, 0)]) == 1.0

    def test_compactness(self) -> None:
        tight = [_node("a", 0, 0), _node("b", 120, 0)]
        loose = [_node("a", 0, 0), _node("b", 1200, 600)]
        assert compactness_score(tight) == 1.0
        assert compactness_score(loose) < 0.1

    def test_readability(self) -> None:
        assert readability_score([_node("a", 0, 0, label="short")]) == 1.0
        cramped = _node("b", 0, 0, w=120, label="x" * 40)
        assert readability_score([cramped]) == pytest.approx(120 / (40 * 8 + 20))

    def test_canvas_utilization(self) -> None:
        cfg = LayoutConfig(width=1000, height=1000)
        nodes = [_node("a", 0, 0, w=100, h=100), _node("b", 400, 400, w=100, h=100)]
        assert canvas_utilization(nodes, cfg) == pytest.approx(0.25)
        assert canvas_utilization([], cfg) == 0.0

    def test_overlap_stats(self) -> None:
        count, area = overlap_stats([_node("a", 0, 0), _node("b", 130, 0)], 40)
        # expanded boxes: [-20, 140] and [110, 270] overlap by 30 x 100
        assert count == 1
        assert area == pytest.approx(3000)


class TestQualityEvaluator:
    def test_clean_layout_scores_high(self) -> None:
        cfg = LayoutConfig()
        nodes = [_node("a", 100, 100), _node("b", 400, 100), _node("c", 250, 300)]
        edges = route_edges([Edge("a", "b"), Edge("b", "c")], nodes)
        metrics = QualityEvaluator(cfg).evaluate(nodes, edges)
        assert metrics.overlap_count == 0
        assert metrics.edge_crossings == 0
        assert metrics.total_edge_length > 0
        assert 0.0 <= metrics.aesthetic_score <= 1.0
        assert metrics.aesthetic_score >= 0.6

    def test_overlaps_lower_the_score(self) -> None:
        cfg = LayoutConfig()
        clean = [_node("a", 100, 100), _node("b", 400, 100)]
        overlapping = [_node("a", 100, 100), _node("b", 110, 100)]
        ev = QualityEvaluator(cfg)
        assert ev.evaluate(overlapping, []).aesthetic_score < ev.evaluate(clean, []).aesthetic_score

    def test_aesthetic_weights(self) -> None:
        metrics = LayoutQualityMetrics(
            overlap_count=0, edge_crossings=0,
            symmetry_score=1.0, compactness_score=1.0, readability_score=1.0,
        )
        assert QualityEvaluator.aesthetic_score(metrics, 4, 3) == pytest.approx(1.0)
        metrics.overlap_count = 10
        metrics.edge_crossings = 10
        assert QualityEvaluator.aesthetic_score(metrics, 4, 3) == pytest.approx(0.4)


class TestAestheticRefiner:
    def _setup(self, seed: int = 3):
        cfg = LayoutConfig(seed=seed, max_iterations=60)
        nodes = [
            _node("a", 200, 200), _node("b", 700, 220),
            _node("c", 400, 600), _node("d", 900, 650),
        ]
        edge_list = [Edge("a", "b"), Edge("b", "c"), Edge("c", "d")]
        ctx = LayoutContext.create(cfg, stochastic=True)
        return cfg, nodes, edge_list, ctx

    def test_never_worsens_and_keeps_zero_overlaps(self) -> None:
        cfg, nodes, edge_list, ctx = self._setup()
        report = AestheticRefiner(cfg).refine(nodes, lambda c: route_edges(edge_list, c), ctx)
        assert report.final_score >= report.initial_score
        assert not find_overlaps(nodes, cfg.node_spacing)
        assert report.iterations <= cfg.max_iterations

    def test_reproducible_with_seed(self) -> None:
        def run():
            cfg, nodes, edge_list, ctx = self._setup(seed=21)
            AestheticRefiner(cfg).refine(nodes, lambda c: route_edges(edge_list, c), ctx)
            return [(n.x, n.y) for n in nodes]

        assert run() == run()

    def test_skips_when_overlapping(self) -> None:
        cfg = LayoutConfig(seed=1)
        nodes = [_node("a", 100, 100), _node("b", 110, 100)]
        ctx = LayoutContext.create(cfg, stochastic=True)
        report = AestheticRefiner(cfg).refine(nodes, lambda c: [], ctx)
        assert report.iterations == 0
        assert (nodes[1].x, nodes[1].y) == (110, 100)

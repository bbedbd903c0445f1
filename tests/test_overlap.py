"""Tests for overlap resolution."""

import threading

import pytest

from diagram_layout.models import DiagramType, LayoutConfig, LayoutContext, PositionedNode
from diagram_layout.overlap import OverlapResolver
from diagram_layout.spatial import find_overlaps


def _node(nid: str, x: float, y: float, w: float = 120, h: float = 60) -> PositionedNode:
    return PositionedNode(nid, nid, x=x, y=y, width=w, height=h)


def _resolve(nodes, cfg=None, diagram_type=None, ctx=None):
    cfg = cfg or LayoutConfig()
    ctx = ctx or LayoutContext.create(cfg)
    report = OverlapResolver(cfg, diagram_type).resolve(nodes, ctx)
    return report, ctx


def _assert_inside(nodes, cfg) -> None:
    for n in nodes:
        assert cfg.margin_x <= n.x <= cfg.width - n.width - cfg.margin_x + 1e-6
        assert cfg.margin_y <= n.y <= cfg.height - n.height - cfg.margin_y + 1e-6


class TestPushApart:
    def test_no_overlap_is_untouched(self) -> None:
        nodes = [_node("a", 100, 100), _node("b", 400, 100)]
        report, _ = _resolve(nodes)
        assert report.iterations == 0
        assert (nodes[0].x, nodes[1].x) == (100, 400)

    def test_pair_is_separated_symmetrically(self) -> None:
        cfg = LayoutConfig()
        nodes = [_node("a", 500, 500), _node("b", 560, 500)]
        report, _ = _resolve(nodes, cfg)
        assert report.unresolved == 0
        assert not find_overlaps(nodes, cfg.node_spacing)
        # midpoint preserved, vertical position unchanged
        assert (nodes[0].cx + nodes[1].cx) / 2 == pytest.approx(590)
        assert nodes[0].y == nodes[1].y == 500

    def test_dense_cluster(self) -> None:
        cfg = LayoutConfig()
        nodes = [_node(f"n{i}", 800 + 7 * i, 450 + 5 * (i % 3)) for i in range(6)]
        report, ctx = _resolve(nodes, cfg, DiagramType.NETWORK)
        assert report.unresolved == 0
        assert report.warning is None
        assert not find_overlaps(nodes, cfg.node_spacing)
        _assert_inside(nodes, cfg)

    def test_out_of_canvas_nodes_are_clamped(self) -> None:
        cfg = LayoutConfig()
        nodes = [_node("a", -500, 5000)]
        _resolve(nodes, cfg)
        _assert_inside(nodes, cfg)


class TestTieBreaks:
    @pytest.mark.parametrize("dtype, axis", [
        (DiagramType.FLOW, "y"),
        (DiagramType.TIMELINE, "x"),
    ])
    def test_axis_aligned_split(self, dtype, axis) -> None:
        cfg = LayoutConfig()
        nodes = [_node("a", 800, 500), _node("b", 800, 500)]
        _resolve(nodes, cfg, dtype)
        assert not find_overlaps(nodes, cfg.node_spacing)
        if axis == "y":
            assert nodes[0].x == nodes[1].x
            assert nodes[0].y < nodes[1].y
        else:
            assert nodes[0].y == nodes[1].y
            assert nodes[0].x < nodes[1].x

    def test_tree_splits_diagonally(self) -> None:
        cfg = LayoutConfig()
        nodes = [_node("a", 800, 500), _node("b", 800, 500)]
        _resolve(nodes, cfg, DiagramType.TREE)
        assert nodes[0].x < nodes[1].x
        assert nodes[0].y < nodes[1].y

    def test_random_split_is_seeded(self) -> None:
        def run():
            cfg = LayoutConfig(seed=9)
            nodes = [_node("a", 800, 500), _node("b", 800, 500)]
            _resolve(nodes, cfg, DiagramType.CYCLE, LayoutContext.create(cfg, stochastic=True))
            return [(n.x, n.y) for n in nodes]

        assert run() == run()


class TestEmergencyPass:
    def test_pinned_in_corner(self) -> None:
        # Both nodes pushed into the same corner: push-apart is blocked by the walls.
        cfg = LayoutConfig(width=800, height=600, max_overlap_iterations=0)
        nodes = [_node("a", 50, 50), _node("b", 50, 50)]
        report, _ = _resolve(nodes, cfg, DiagramType.MATRIX)
        assert report.emergency_moves == 1
        assert report.unresolved == 0
        assert not find_overlaps(nodes, cfg.node_spacing)
        _assert_inside(nodes, cfg)

    def test_impossible_canvas_warns(self) -> None:
        cfg = LayoutConfig(width=300, height=200)
        nodes = [_node(f"n{i}", 60, 60) for i in range(4)]
        report, _ = _resolve(nodes, cfg, DiagramType.MATRIX)
        assert report.unresolved > 0
        assert "could not be resolved" in report.warning
        assert "more area than the canvas" in report.warning
        _assert_inside(nodes, cfg)


def test_cancelled_context_skips_work() -> None:
    cfg = LayoutConfig()
    event = threading.Event()
    event.set()
    ctx = LayoutContext.create(cfg, cancel_event=event)
    nodes = [_node("a", 500, 500), _node("b", 510, 500)]
    report = OverlapResolver(cfg).resolve(nodes, ctx)
    assert report.iterations == 0
    assert report.unresolved == 1

"""Tests for the MCP server tools (2-tool architecture)."""

import json

from diagram_layout.server import diagram_type_catalog, inspect, layout


NODES = [
    {"id": "a", "label": "Start"},
    {"id": "b", "label": "Process"},
    {"id": "c", "label": "End"},
]
EDGES = [
    {"source": "a", "target": "b"},
    {"from": "b", "to": "c", "label": "done"},
]


# ===================================================================
# layout
# ===================================================================

def test_generate_flow() -> None:
    data = json.loads(layout(action="generate", nodes=NODES, edges=EDGES, diagram_type="flow"))
    assert data["success"] is True
    assert data["diagram_type"] == "flow"
    assert data["strategy"] == "flow"
    assert [n["id"] for n in data["nodes"]] == ["a", "b", "c"]
    assert len(data["edges"]) == 2
    assert data["edges"][1]["label"] == "done"
    assert data["metrics"]["overlap_count"] == 0
    assert "error" not in data
    ys = [n["y"] for n in data["nodes"]]
    assert ys == sorted(ys)


def test_generate_with_seed_is_reproducible() -> None:
    first = layout(action="generate", nodes=NODES, edges=EDGES, diagram_type="network", seed=5)
    second = layout(action="generate", nodes=NODES, edges=EDGES, diagram_type="network", seed=5)
    assert first == second


def test_generate_with_config_overrides() -> None:
    data = json.loads(layout(
        action="generate", nodes=NODES, edges=EDGES, diagram_type="timeline",
        config={"width": 1000, "height": 600, "marginX": 20},
    ))
    assert data["success"] is True
    for n in data["nodes"]:
        assert 20 <= n["x"] <= 1000 - n["width"] - 20
        assert n["y"] + n["height"] / 2 == 300


def test_generate_unknown_type_warns() -> None:
    data = json.loads(layout(action="generate", nodes=NODES, edges=EDGES, diagram_type="venn"))
    assert data["strategy"] == "grid"
    assert any("Unknown diagram type" in w for w in data["warnings"])


def test_generate_by_component() -> None:
    nodes = NODES + [{"id": "x"}, {"id": "y"}]
    edges = EDGES + [{"source": "x", "target": "y"}]
    data = json.loads(layout(
        action="generate", nodes=nodes, edges=edges, diagram_type="flow", by_component=True,
    ))
    assert data["success"] is True
    assert len(data["nodes"]) == 5
    assert data["metrics"]["overlap_count"] == 0


def test_components_dangling_edge_is_error() -> None:
    result = layout(action="components", nodes=[{"id": "A"}], edges=[{"source": "Z", "target": "A"}])
    assert result.startswith("Error:")
    assert "unknown source node 'Z'" in result


def test_components_duplicate_ids_is_error() -> None:
    result = layout(action="components", nodes=[{"id": "A"}, {"id": "A"}])
    assert result.startswith("Error:")
    assert "Duplicate node id(s): 'A'" in result


def test_generate_dangling_edge_is_error() -> None:
    result = layout(
        action="generate",
        nodes=[{"id": "X"}],
        edges=[{"source": "X", "target": "Y"}],
        diagram_type="flow",
    )
    assert result.startswith("Error:")
    assert "'Y'" in result


def test_generate_requires_nodes() -> None:
    result = layout(action="generate", diagram_type="tree")
    assert result.startswith("Error:")
    assert "'nodes'" in result


def test_generate_rejects_bad_config() -> None:
    result = layout(action="generate", nodes=NODES, config={"rank_direction": "diagonal"})
    assert result.startswith("Error:")
    assert "rank_direction" in result
    result = layout(action="generate", nodes=NODES, config={"width": 0})
    assert result.startswith("Error:")
    assert "'width'" in result


def test_generate_rejects_bad_importance() -> None:
    result = layout(action="generate", nodes=[{"id": "a", "importance": 3}])
    assert result.startswith("Error:")
    assert "importance" in result


def test_types() -> None:
    data = json.loads(layout(action="types"))
    types = {d["diagram_type"]: d["strategy"] for d in data}
    assert types["tree"] == "tree"
    assert types["matrix"] == "grid"
    assert types["concept-map"] == "concept-map"
    assert len(types) == 7


def test_components() -> None:
    nodes = NODES + [{"id": "lonely"}]
    data = json.loads(layout(action="components", nodes=nodes, edges=EDGES))
    assert data == [
        {"nodes": ["a", "b", "c"], "edge_count": 2},
        {"nodes": ["lonely"], "edge_count": 0},
    ]


def test_unknown_action() -> None:
    result = layout(action="explode")
    assert result.startswith("Error:")
    assert "components, generate, types" in result


def test_action_is_case_insensitive() -> None:
    assert json.loads(layout(action="TYPES"))


# ===================================================================
# inspect
# ===================================================================

def test_inspect_overlaps() -> None:
    nodes = [
        {"id": "a", "x": 100, "y": 100, "width": 120, "height": 60},
        {"id": "b", "x": 130, "y": 100, "width": 120, "height": 60},
        {"id": "c", "x": 800, "y": 100, "width": 120, "height": 60},
    ]
    data = json.loads(inspect(action="overlaps", nodes=nodes))
    assert data["min_spacing"] == 40
    assert len(data["overlaps"]) == 1
    pair = data["overlaps"][0]
    assert (pair["a"], pair["b"]) == ("a", "b")
    assert pair["area"] > 0


def test_inspect_overlaps_respects_spacing_config() -> None:
    nodes = [
        {"id": "a", "x": 100, "y": 100, "width": 120, "height": 60},
        {"id": "b", "x": 250, "y": 100, "width": 120, "height": 60},
    ]
    assert json.loads(inspect(action="overlaps", nodes=nodes))["overlaps"]
    relaxed = json.loads(inspect(
        action="overlaps", nodes=nodes, config={"minimum_spacing": {"node_to_node": 10}},
    ))
    assert relaxed["overlaps"] == []


def test_inspect_metrics() -> None:
    nodes = [
        {"id": "a", "x": 100, "y": 100, "width": 120, "height": 60},
        {"id": "b", "x": 400, "y": 100, "width": 120, "height": 60},
    ]
    edges = [{"source": "a", "target": "b"}]
    data = json.loads(inspect(action="metrics", nodes=nodes, edges=edges))
    assert data["overlap_count"] == 0
    assert data["edge_crossings"] == 0
    # straight route from right side of a to left side of b
    assert data["total_edge_length"] == 180
    assert 0 <= data["aesthetic_score"] <= 1


def test_inspect_metrics_with_given_points() -> None:
    nodes = [
        {"id": "a", "x": 0, "y": 0, "width": 100, "height": 100},
        {"id": "b", "x": 300, "y": 0, "width": 100, "height": 100},
    ]
    edges = [{"source": "a", "target": "b", "points": [
        {"x": 100, "y": 50}, {"x": 200, "y": 50}, {"x": 200, "y": 150}, {"x": 300, "y": 150},
    ]}]
    data = json.loads(inspect(action="metrics", nodes=nodes, edges=edges))
    assert data["total_edge_length"] == 300


def test_inspect_estimates_missing_sizes() -> None:
    nodes = [{"id": "a", "label": "x" * 80, "x": 100, "y": 100}]
    data = json.loads(inspect(action="metrics", nodes=nodes))
    assert data["readability_score"] < 0.7


def test_inspect_errors() -> None:
    assert inspect(action="metrics").startswith("Error:")
    result = inspect(action="metrics", nodes=[{"id": "a", "y": 1}])
    assert "'x'" in result
    result = inspect(
        action="metrics",
        nodes=[{"id": "a", "x": 0, "y": 0}],
        edges=[{"source": "a", "target": "zzz"}],
    )
    assert result.startswith("Error:")
    assert "'zzz'" in result
    assert inspect(action="cells", nodes=[{"id": "a", "x": 0, "y": 0}]).startswith("Error:")


def test_inspect_rejects_bad_points() -> None:
    nodes = [
        {"id": "a", "x": 0, "y": 0, "width": 100, "height": 100},
        {"id": "b", "x": 300, "y": 0, "width": 100, "height": 100},
    ]
    result = inspect(action="metrics", nodes=nodes, edges=[
        {"source": "a", "target": "b", "points": [{"x": 1}]},
    ])
    assert result.startswith("Error:")
    assert "at least 2" in result
    result = inspect(action="metrics", nodes=nodes, edges=[
        {"source": "a", "target": "b", "points": [{"x": 100, "y": 50}, {"x": 300}]},
    ])
    assert result.startswith("Error:")
    assert "'y'" in result
    result = inspect(action="metrics", nodes=nodes, edges=[
        {"source": "a", "target": "b", "points": "straight"},
    ])
    assert result.startswith("Error:")
    assert "must be a list" in result


# ===================================================================
# resources
# ===================================================================

def test_type_catalog_resource() -> None:
    text = diagram_type_catalog()
    assert "network: network" in text
    assert "matrix: grid" in text

"""
Input validation for the layout engine and its MCP tool parameters.

Provides reusable validators that produce clear error messages, both for
the graph handed to the engine (unique ids, referential integrity, sane
configuration) and for raw parameters received from LLM callers.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Sequence

from diagram_layout.models import DiagramType, Edge, LayoutConfig, MinimumSpacing, Node, RankDirection


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate a strictly positive number."""
    val = validate_number(value, field_name)
    if val <= 0:
        raise ValidationError(f"'{field_name}' must be > 0, got {val}.")
    return val


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


# ---------------------------------------------------------------------------
# Tool parameter validators
# ---------------------------------------------------------------------------

_LAYOUT_ACTIONS = {"GENERATE", "COMPONENTS", "TYPES"}
_INSPECT_ACTIONS = {"METRICS", "OVERLAPS"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_diagram_type(value: Any) -> str:
    """Validate the diagram type is a non-empty string.

    Unknown types are accepted here; the dispatcher routes them to the
    grid fallback.
    """
    if isinstance(value, DiagramType):
        return value.value
    return validate_non_empty_string(value, "diagram_type").lower()


def validate_node_dict(v: Any, index: int) -> None:
    """Validate a single node dict from the nodes list."""
    if not isinstance(v, dict):
        raise ValidationError(f"Node at index {index} must be a dict/object.")
    if "id" not in v:
        raise ValidationError(f"Node at index {index} missing required key 'id'.")
    if not isinstance(v["id"], (str, int)) or isinstance(v["id"], bool) or not str(v["id"]).strip():
        raise ValidationError(f"Node at index {index}: 'id' must be a non-empty string.")
    if "label" in v and v["label"] is not None and not isinstance(v["label"], str):
        raise ValidationError(f"Node at index {index}: 'label' must be a string.")
    if v.get("importance") is not None:
        validate_number(v["importance"], f"nodes[{index}].importance", min_val=0.0, max_val=1.0)


def validate_edge_dict(e: Any, index: int) -> None:
    """Validate a single edge dict (``source``/``target`` or ``from``/``to``)."""
    if not isinstance(e, dict):
        raise ValidationError(f"Edge at index {index} must be a dict/object.")
    for key, alias in (("source", "from"), ("target", "to")):
        value = e.get(key, e.get(alias))
        if value is None:
            raise ValidationError(
                f"Edge at index {index} missing required key '{key}' (or '{alias}')."
            )
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ValidationError(f"Edge at index {index}: '{key}' must be a node id string.")
    if e.get("label") is not None and not isinstance(e["label"], str):
        raise ValidationError(f"Edge at index {index}: 'label' must be a string.")


def validate_positioned_node_dict(v: Any, index: int) -> None:
    """Validate a node dict that already carries a position and size."""
    validate_node_dict(v, index)
    for key in ("x", "y"):
        if key not in v:
            raise ValidationError(f"Node at index {index} missing required key '{key}'.")
        validate_number(v[key], f"nodes[{index}].{key}")
    for key in ("width", "height"):
        if key in v:
            validate_positive_number(v[key], f"nodes[{index}].{key}")


def validate_edge_points(e: dict, index: int) -> None:
    """Validate the optional ``points`` polyline of an edge dict."""
    points = e.get("points")
    if points is None:
        return
    validate_list(points, f"edges[{index}].points", min_length=2)
    for j, p in enumerate(points):
        validate_dict(p, f"edges[{index}].points[{j}]")
        for key in ("x", "y"):
            if key not in p:
                raise ValidationError(
                    f"Edge at index {index}: point {j} missing required key '{key}'."
                )
            validate_number(p[key], f"edges[{index}].points[{j}].{key}")


def validate_config_dict(value: Any) -> LayoutConfig:
    """Validate a raw config dict and build a :class:`LayoutConfig` from it."""
    if value is None:
        return LayoutConfig()
    validate_dict(value, "config")
    direction = value.get("rank_direction", value.get("rankDirection"))
    if direction is not None:
        if not isinstance(direction, str) or direction.strip().upper() not in {d.value for d in RankDirection}:
            raise ValidationError(
                f"'rank_direction' must be one of [BT, LR, RL, TB], got '{direction}'."
            )
    spacing = value.get("minimum_spacing", value.get("minimumSpacing"))
    if spacing is not None:
        validate_dict(spacing, "minimum_spacing")
    try:
        config = LayoutConfig.from_dict(value)
    except TypeError as exc:
        raise ValidationError(f"Invalid config: {exc}") from exc
    validate_config(config)
    return config


# ---------------------------------------------------------------------------
# Engine-level validators
# ---------------------------------------------------------------------------

def validate_config(config: LayoutConfig) -> None:
    """Check a config for values no layout could honour."""
    if not isinstance(config.rank_direction, RankDirection):
        raise ValidationError(
            f"'rank_direction' must be a RankDirection, got {type(config.rank_direction).__name__}."
        )
    if not isinstance(config.minimum_spacing, MinimumSpacing):
        raise ValidationError(
            f"'minimum_spacing' must be a MinimumSpacing, got {type(config.minimum_spacing).__name__}."
        )
    validate_positive_number(config.width, "width")
    validate_positive_number(config.height, "height")
    validate_number(config.margin_x, "margin_x", min_val=0)
    validate_number(config.margin_y, "margin_y", min_val=0)
    validate_positive_number(config.node_width, "node_width")
    validate_positive_number(config.node_height, "node_height")
    validate_number(config.node_separation, "node_separation", min_val=0)
    validate_number(config.rank_separation, "rank_separation", min_val=0)
    validate_number(config.edge_separation, "edge_separation", min_val=0)
    validate_number(config.minimum_spacing.node_to_node, "minimum_spacing.node_to_node", min_val=0)
    validate_number(config.minimum_spacing.node_to_edge, "minimum_spacing.node_to_edge", min_val=0)
    validate_number(config.minimum_spacing.label_to_element, "minimum_spacing.label_to_element", min_val=0)
    validate_int(config.max_iterations, "max_iterations", min_val=0)
    validate_int(config.max_overlap_iterations, "max_overlap_iterations", min_val=0)
    validate_int(config.emergency_candidates, "emergency_candidates", min_val=0)
    validate_number(config.convergence_threshold, "convergence_threshold", min_val=0)
    validate_number(config.force_strength, "force_strength", min_val=0)
    validate_number(config.refinement_jitter, "refinement_jitter", min_val=0)
    if config.timeout is not None:
        validate_number(config.timeout, "timeout", min_val=0)
    if config.seed is not None:
        validate_int(config.seed, "seed")


def validate_graph(nodes: Sequence[Node], edges: Sequence[Edge]) -> None:
    """Check the graph before any layout work is done.

    Raises:
        ValidationError: on an empty node set, empty or duplicate ids,
            importance outside [0, 1], or an edge that references a node
            id that does not exist.
    """
    if not nodes:
        raise ValidationError("Layout requires at least one node.")

    for i, node in enumerate(nodes):
        if not node.id or not node.id.strip():
            raise ValidationError(f"Node at index {i} has an empty id.")
        if node.importance is not None and (
            not isinstance(node.importance, (int, float))
            or not 0.0 <= node.importance <= 1.0
        ):
            raise ValidationError(
                f"Node '{node.id}': importance must be within [0, 1], got {node.importance}."
            )

    duplicates = [nid for nid, count in Counter(n.id for n in nodes).items() if count > 1]
    if duplicates:
        raise ValidationError(
            "Duplicate node id(s): " + ", ".join(f"'{d}'" for d in duplicates) + "."
        )

    known = {n.id for n in nodes}
    for i, edge in enumerate(edges):
        missing = [end for end in (edge.source, edge.target) if end not in known]
        if missing:
            which = "source" if edge.source in missing else "target"
            raise ValidationError(
                f"Edge {i} ('{edge.source}' -> '{edge.target}') references unknown "
                f"{which} node '{missing[0]}'."
            )

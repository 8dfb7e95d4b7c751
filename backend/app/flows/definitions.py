"""Validation and persistence of authored flow graphs."""
from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models.flow import Flow, FlowEdge, FlowNode
from .errors import FlowDefinitionError
from .nodes import CONDITION_OPERATORS

MAX_NODES = 500


def _position(item: dict[str, Any]) -> tuple[int, int]:
    position = item.get("position")
    if not isinstance(position, dict):
        return 0, 0
    try:
        return int(position.get("x", 0)), int(position.get("y", 0))
    except (TypeError, ValueError):
        return 0, 0


def normalize_graph(value: Any) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Validate a ``{"nodes": [...], "edges": [...]}`` payload.

    Nodes are referenced by a client supplied ``key``; edges use those keys
    as ``source``/``target``. Raises :class:`FlowDefinitionError` listing
    every problem found.
    """

    if not isinstance(value, dict):
        raise FlowDefinitionError(["graph must be an object with nodes and edges"])

    errors: list[str] = []
    raw_nodes = value.get("nodes") or []
    raw_edges = value.get("edges") or []
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        raise FlowDefinitionError(["nodes and edges must be lists"])
    if len(raw_nodes) > MAX_NODES:
        errors.append(f"a flow may not have more than {MAX_NODES} nodes")

    nodes: list[dict[str, Any]] = []
    keys: set[str] = set()
    start_count = 0
    for index, item in enumerate(raw_nodes):
        if not isinstance(item, dict):
            errors.append(f"node {index} must be an object")
            continue
        key = str(item.get("key") or item.get("id") or "").strip()
        node_type = str(item.get("type") or "").strip().lower()
        config = item.get("config") or {}
        if not key:
            errors.append(f"node {index} needs a key")
            continue
        if key in keys:
            errors.append(f"duplicate node key {key!r}")
            continue
        if not node_type:
            errors.append(f"node {key!r} needs a type")
        if not isinstance(config, dict):
            errors.append(f"node {key!r} config must be an object")
            config = {}
        if node_type == "start":
            start_count += 1
        if node_type == "condition":
            operator = str(config.get("operator") or "contains").strip().lower()
            if operator not in CONDITION_OPERATORS:
                errors.append(f"node {key!r} uses unknown operator {operator!r}")
        keys.add(key)
        x, y = _position(item)
        nodes.append({"key": key, "type": node_type, "config": config, "x": x, "y": y})

    if start_count > 1:
        errors.append("a flow may only have one start node")

    edges: list[dict[str, Any]] = []
    for index, item in enumerate(raw_edges):
        if not isinstance(item, dict):
            errors.append(f"edge {index} must be an object")
            continue
        source = str(item.get("source") or "").strip()
        target = str(item.get("target") or "").strip()
        if source not in keys or target not in keys:
            errors.append(f"edge {index} references an unknown node")
            continue
        handle = item.get("handle")
        edges.append(
            {
                "source": source,
                "target": target,
                "handle": str(handle).strip() if handle not in (None, "") else None,
            }
        )

    if errors:
        raise FlowDefinitionError(errors)
    return nodes, edges


def normalize_keywords(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise FlowDefinitionError(["trigger_keywords must be a list of strings"])
    return [item.strip() for item in value if item.strip()]


def replace_graph(
    flow: Flow, nodes: list[dict[str, Any]], edges: list[dict[str, Any]]
) -> dict[str, int]:
    """Replace the stored nodes and edges of ``flow``; the caller commits.

    Returns the mapping from node key to the new node id.
    """

    FlowEdge.query.filter_by(flow_id=flow.id).delete()
    FlowNode.query.filter_by(flow_id=flow.id).delete()

    ids: dict[str, int] = {}
    for item in nodes:
        row = FlowNode(
            flow_id=flow.id,
            node_type=item["type"],
            config=item["config"],
            position_x=item["x"],
            position_y=item["y"],
        )
        db.session.add(row)
        db.session.flush()
        ids[item["key"]] = row.id

    for item in edges:
        db.session.add(
            FlowEdge(
                flow_id=flow.id,
                source_node_id=ids[item["source"]],
                target_node_id=ids[item["target"]],
                source_handle=item["handle"],
            )
        )
    return ids


def serialize_graph(flow: Flow) -> dict[str, Any]:
    nodes = FlowNode.query.filter_by(flow_id=flow.id).order_by(FlowNode.id.asc()).all()
    edges = FlowEdge.query.filter_by(flow_id=flow.id).order_by(FlowEdge.id.asc()).all()
    return {
        "nodes": [
            {
                "key": str(node.id),
                "type": node.node_type,
                "config": node.config or {},
                "position": {"x": node.position_x, "y": node.position_y},
            }
            for node in nodes
        ],
        "edges": [
            {
                "source": str(edge.source_node_id),
                "target": str(edge.target_node_id),
                "handle": edge.source_handle,
            }
            for edge in edges
        ],
    }

"""REST API endpoints for storing and retrieving flow graphs."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, jsonify, request

from ..extensions import db
from ..flows.definitions import normalize_graph, normalize_keywords, replace_graph, serialize_graph
from ..flows.errors import FlowDefinitionError
from ..models.flow import Flow, FlowEdge, FlowNode
from ..models.tenant import Tenant

bp = Blueprint("flows", __name__)


def _serialize_flow(flow: Flow, *, with_graph: bool = True) -> dict[str, Any]:
    """Return a JSON serialisable representation of a flow."""

    payload: dict[str, Any] = {
        "id": flow.id,
        "tenant_id": flow.tenant_id,
        "name": flow.name,
        "is_active": flow.is_active,
        "is_default": flow.is_default,
        "trigger_keywords": list(flow.trigger_keywords or []),
    }
    if with_graph:
        payload["graph"] = serialize_graph(flow)
    return payload


def _apply_flags(flow: Flow, payload: dict[str, Any]) -> None:
    for key in ("is_active", "is_default"):
        if key in payload:
            setattr(flow, key, bool(payload[key]))


@bp.post("/flows")
def create_flow() -> tuple[object, int]:
    payload = request.get_json(silent=True, force=True) or {}
    name = payload.get("name")
    tenant_id = payload.get("tenant_id")

    if not isinstance(name, str) or not name.strip():
        return jsonify({"error": "name is required"}), HTTPStatus.BAD_REQUEST
    if not isinstance(tenant_id, int) or db.session.get(Tenant, tenant_id) is None:
        return jsonify({"error": "tenant_id must reference an existing tenant"}), HTTPStatus.BAD_REQUEST

    try:
        keywords = normalize_keywords(payload.get("trigger_keywords"))
        nodes, edges = normalize_graph(payload.get("graph") or {"nodes": [], "edges": []})
    except FlowDefinitionError as exc:
        return jsonify({"errors": exc.errors}), HTTPStatus.BAD_REQUEST

    flow = Flow(tenant_id=tenant_id, name=name.strip(), trigger_keywords=keywords)
    _apply_flags(flow, payload)
    db.session.add(flow)
    db.session.flush()
    replace_graph(flow, nodes, edges)
    db.session.commit()

    return jsonify(_serialize_flow(flow)), HTTPStatus.CREATED


@bp.get("/flows")
def list_flows() -> tuple[object, int]:
    query = Flow.query
    tenant_id = request.args.get("tenant_id", type=int)
    if tenant_id is not None:
        query = query.filter_by(tenant_id=tenant_id)
    flows = query.order_by(Flow.id.asc()).all()
    return jsonify([_serialize_flow(flow, with_graph=False) for flow in flows]), HTTPStatus.OK


@bp.get("/flows/<int:flow_id>")
def get_flow(flow_id: int) -> tuple[object, int]:
    flow = db.get_or_404(Flow, flow_id)
    return jsonify(_serialize_flow(flow)), HTTPStatus.OK


@bp.put("/flows/<int:flow_id>")
def update_flow(flow_id: int) -> tuple[object, int]:
    flow = db.get_or_404(Flow, flow_id)
    payload = request.get_json(silent=True, force=True) or {}

    name = payload.get("name")
    if name is not None:
        if not isinstance(name, str):
            return jsonify({"error": "name must be a string"}), HTTPStatus.BAD_REQUEST
        name = name.strip()
        if not name:
            return jsonify({"error": "name must not be empty"}), HTTPStatus.BAD_REQUEST
        flow.name = name

    try:
        if "trigger_keywords" in payload:
            flow.trigger_keywords = normalize_keywords(payload.get("trigger_keywords"))
        graph = None
        if "graph" in payload:
            graph = normalize_graph(payload.get("graph"))
    except FlowDefinitionError as exc:
        db.session.rollback()
        return jsonify({"errors": exc.errors}), HTTPStatus.BAD_REQUEST

    _apply_flags(flow, payload)
    if graph is not None:
        replace_graph(flow, *graph)
    db.session.commit()

    return jsonify(_serialize_flow(flow)), HTTPStatus.OK


@bp.delete("/flows/<int:flow_id>")
def delete_flow(flow_id: int) -> tuple[object, int]:
    flow = db.get_or_404(Flow, flow_id)
    flow.is_active = False
    FlowEdge.query.filter_by(flow_id=flow.id).delete()
    FlowNode.query.filter_by(flow_id=flow.id).delete()
    db.session.commit()
    return "", HTTPStatus.NO_CONTENT

"""API endpoints exposing flow executions and their audit log."""

from __future__ import annotations

import json
from http import HTTPStatus

from flask import Blueprint, Response, jsonify, request

from ..extensions import db
from ..flows import ExecutionNotFoundError, resume
from ..models.execution import Execution, ExecutionLog

bp = Blueprint("executions", __name__)


def _isoformat(value) -> str | None:
    return value.isoformat() + "Z" if value is not None else None


def _serialize_execution(execution: Execution) -> dict[str, object]:
    return {
        "id": execution.id,
        "flowId": execution.flow_id,
        "tenantId": execution.tenant_id,
        "contactId": execution.contact_id,
        "leadId": execution.lead_id,
        "currentNodeId": execution.current_node_id,
        "status": execution.status,
        "context": execution.context or {},
        "isHumanTakeover": execution.is_human_takeover,
        "nextActionAt": _isoformat(execution.next_action_at),
        "startedAt": _isoformat(execution.started_at),
        "updatedAt": _isoformat(execution.updated_at),
        "completedAt": _isoformat(execution.completed_at),
    }


def _serialize_entry(entry: ExecutionLog) -> dict[str, object]:
    return {
        "id": entry.id,
        "executionId": entry.execution_id,
        "nodeId": entry.node_id,
        "nodeType": entry.node_type,
        "action": entry.action,
        "details": entry.details or {},
        "createdAt": _isoformat(entry.created_at),
    }


@bp.get("/executions/<int:execution_id>")
def get_execution(execution_id: int) -> tuple[object, int]:
    execution = db.get_or_404(Execution, execution_id)
    return jsonify(_serialize_execution(execution)), HTTPStatus.OK


@bp.post("/executions/<int:execution_id>/resume")
def resume_execution(execution_id: int) -> tuple[object, int]:
    payload = request.get_json(silent=True, force=True) or {}
    user_response = payload.get("user_response")
    choice_id = payload.get("structured_choice_id")
    if user_response is not None and not isinstance(user_response, str):
        return jsonify({"error": "user_response must be a string"}), HTTPStatus.BAD_REQUEST
    if choice_id is not None and not isinstance(choice_id, str):
        return jsonify({"error": "structured_choice_id must be a string"}), HTTPStatus.BAD_REQUEST

    try:
        result = resume(execution_id, user_response=user_response, structured_choice_id=choice_id)
    except ExecutionNotFoundError as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.NOT_FOUND
    return jsonify(result), HTTPStatus.OK


@bp.get("/executions/<int:execution_id>/logs")
def get_execution_logs(execution_id: int) -> tuple[object, int]:
    db.get_or_404(Execution, execution_id)
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 200))

    entries = (
        ExecutionLog.query.filter_by(execution_id=execution_id)
        .order_by(ExecutionLog.id.asc())
        .limit(limit)
        .all()
    )
    return jsonify([_serialize_entry(entry) for entry in entries]), HTTPStatus.OK


@bp.get("/executions/<int:execution_id>/logs/download")
def download_execution_logs(execution_id: int) -> Response:
    db.get_or_404(Execution, execution_id)
    entries = (
        ExecutionLog.query.filter_by(execution_id=execution_id)
        .order_by(ExecutionLog.id.asc())
        .all()
    )
    payload = "\n".join(json.dumps(_serialize_entry(entry)) for entry in entries)
    response = Response(payload, mimetype="application/x-ndjson")
    response.headers["Content-Disposition"] = (
        f"attachment; filename=execution-{execution_id}-logs.ndjson"
    )
    return response

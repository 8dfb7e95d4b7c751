"""Endpoints that feed inbound messages and scheduler ticks into the engine."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from ..extensions import limiter
from ..flows import ContactNotFoundError, handle_inbound, run_scheduler_tick

bp = Blueprint("inbound", __name__)


@bp.post("/inbound")
@limiter.limit(lambda: current_app.config["INBOUND_RATE_LIMIT"])
def receive_message() -> tuple[object, int]:
    payload = request.get_json(silent=True, force=True) or {}
    tenant_id = payload.get("tenant_id")
    contact_id = payload.get("contact_id")
    message = payload.get("message")
    choice_id = payload.get("choice_id")

    errors = []
    if not isinstance(tenant_id, int):
        errors.append("tenant_id must be an integer")
    if not isinstance(contact_id, int):
        errors.append("contact_id must be an integer")
    if not isinstance(message, str):
        errors.append("message must be a string")
    if choice_id is not None and not isinstance(choice_id, str):
        errors.append("choice_id must be a string")
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    try:
        result = handle_inbound(tenant_id, contact_id, message, choice_id=choice_id)
    except ContactNotFoundError as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.NOT_FOUND

    current_app.logger.info(
        "Inbound message for contact %s handled with status %s", contact_id, result.get("status")
    )
    return jsonify(result), HTTPStatus.OK


@bp.post("/scheduler/run")
def run_scheduler() -> tuple[object, int]:
    summary = run_scheduler_tick()
    return jsonify(summary), HTTPStatus.OK

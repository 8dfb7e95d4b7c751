"""API endpoints for handing contacts between humans and the bot."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify

from ..flows import ContactNotFoundError, release_contact

bp = Blueprint("contacts", __name__)


@bp.post("/contacts/<int:contact_id>/release")
def release_to_bot(contact_id: int) -> tuple[object, int]:
    try:
        contact = release_contact(contact_id)
    except ContactNotFoundError as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.NOT_FOUND
    return (
        jsonify(
            {
                "id": contact.id,
                "tenantId": contact.tenant_id,
                "automationDisabled": contact.automation_disabled,
            }
        ),
        HTTPStatus.OK,
    )

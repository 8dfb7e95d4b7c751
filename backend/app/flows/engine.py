"""Entry points for inbound triggers."""
from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models.execution import STATUS_WAITING
from ..models.tenant import Contact
from ..utils.clock import utcnow
from . import store
from .coordinator import finalize_if_stale, resume
from .errors import ContactNotFoundError
from .interpreter import start_execution
from .selector import select_flow


def _get_contact(tenant_id: int, contact_id: int) -> Contact:
    contact = db.session.get(Contact, contact_id)
    if contact is None or contact.tenant_id != tenant_id:
        raise ContactNotFoundError(f"contact {contact_id} not found for tenant {tenant_id}")
    return contact


def start_or_route(tenant_id: int, contact_id: int, message_text: str) -> dict[str, Any]:
    """Start a flow for a fresh inbound message unless the contact is busy or blocked.

    Returns a dict whose ``status`` is one of ``started``, ``skipped``,
    ``no_flow`` or ``blocked``.
    """

    contact = _get_contact(tenant_id, contact_id)
    if contact.automation_disabled:
        return {"status": "blocked", "reason": "human_takeover"}

    live = store.find_live_execution(tenant_id, contact_id)
    if live is not None and not finalize_if_stale(live, utcnow()):
        return {
            "status": "skipped",
            "reason": "active_execution",
            "execution_id": live.id,
            "execution_status": live.status,
        }

    flow = select_flow(tenant_id, message_text)
    if flow is None:
        return {"status": "no_flow"}

    execution = start_execution(flow, contact, message_text)
    return {
        "status": "started",
        "flow_id": flow.id,
        "execution_id": execution.id,
        "execution_status": execution.status,
    }


def handle_inbound(
    tenant_id: int,
    contact_id: int,
    message_text: str,
    choice_id: str | None = None,
) -> dict[str, Any]:
    """Record an inbound message, then either start a flow or feed a waiting one."""

    contact = _get_contact(tenant_id, contact_id)
    store.record_message(
        tenant_id,
        contact.id,
        message_text,
        is_from_me=False,
        message_type="interactive" if choice_id else "text",
        status="delivered",
    )

    result = start_or_route(tenant_id, contact_id, message_text)
    if result["status"] == "skipped" and result.get("execution_status") == STATUS_WAITING:
        return resume(
            result["execution_id"],
            user_response=message_text,
            structured_choice_id=choice_id,
        )
    return result


def release_contact(contact_id: int) -> Contact:
    """Hand a transferred contact back to the bot so new messages start flows again."""

    contact = db.session.get(Contact, contact_id)
    if contact is None:
        raise ContactNotFoundError(f"contact {contact_id} not found")
    if contact.automation_disabled:
        contact.automation_disabled = False
        db.session.commit()
        current_app.logger.info("Contact %s released back to automation", contact.id)
    return contact

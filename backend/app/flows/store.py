"""Execution persistence helpers.

The database is the only place an execution's progress lives. Every helper
here commits immediately so that a crash between two steps leaves a
consistent ``(status, current_node_id, context)`` triple behind.
"""
from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models.execution import (
    LIVE_STATUSES,
    STATUS_RUNNING,
    TERMINAL_STATUSES,
    Execution,
    ExecutionLog,
)
from ..models.flow import Flow
from ..models.message import Message
from ..models.tenant import Contact
from ..utils.clock import utcnow
from .errors import ExecutionNotFoundError
from .nodes import Node


def get_execution(execution_id: int) -> Execution:
    execution = db.session.get(Execution, execution_id)
    if execution is None:
        raise ExecutionNotFoundError(f"execution {execution_id} not found")
    return execution


def find_live_execution(tenant_id: int, contact_id: int) -> Execution | None:
    """Return the contact's non-terminal execution, newest first."""

    return (
        Execution.query.filter(
            Execution.tenant_id == tenant_id,
            Execution.contact_id == contact_id,
            Execution.status.in_(LIVE_STATUSES),
        )
        .order_by(Execution.started_at.desc(), Execution.id.desc())
        .first()
    )


def create_execution(flow: Flow, contact: Contact, context: dict[str, Any]) -> Execution:
    execution = Execution(
        flow_id=flow.id,
        tenant_id=flow.tenant_id,
        contact_id=contact.id,
        status=STATUS_RUNNING,
        context=dict(context),
    )
    db.session.add(execution)
    db.session.commit()
    return execution


def save(execution: Execution, **changes: Any) -> Execution:
    for key, value in changes.items():
        setattr(execution, key, value)
    db.session.commit()
    return execution


def update_context(execution: Execution, **values: Any) -> Execution:
    # JSON columns only persist on reassignment.
    return save(execution, context={**(execution.context or {}), **values})


def finish(execution: Execution, status: str, **changes: Any) -> Execution:
    """Move an execution into a terminal status."""

    if status not in TERMINAL_STATUSES:
        raise ValueError(f"{status!r} is not a terminal status")
    return save(
        execution,
        status=status,
        completed_at=utcnow(),
        next_action_at=None,
        **changes,
    )


def append_log(
    execution: Execution,
    action: str,
    node: Node | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Persist an audit entry and suppress database errors."""

    try:
        entry = ExecutionLog(
            execution_id=execution.id,
            tenant_id=execution.tenant_id,
            node_id=node.id if node is not None else None,
            node_type=node.node_type if node is not None else None,
            action=action,
            details=details or {},
        )
        db.session.add(entry)
        db.session.commit()
    except Exception:
        current_app.logger.exception(
            "Failed to persist log %r for execution %s", action, execution.id
        )
        db.session.rollback()


def record_message(
    tenant_id: int,
    contact_id: int,
    content: str,
    *,
    is_from_me: bool,
    message_type: str = "text",
    media_url: str | None = None,
    status: str = "sent",
) -> Message:
    message = Message(
        tenant_id=tenant_id,
        contact_id=contact_id,
        content=content or "",
        message_type=message_type,
        media_url=media_url,
        is_from_me=is_from_me,
        status=status,
    )
    db.session.add(message)
    db.session.commit()
    return message

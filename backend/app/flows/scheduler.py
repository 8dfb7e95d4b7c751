"""Periodic processing of elapsed delays and abandoned executions."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app

from ..extensions import db
from ..models.execution import LIVE_STATUSES, STATUS_PAUSED, Execution
from ..utils.clock import utcnow
from .coordinator import finalize_if_stale, resume


def resume_due_executions(now: datetime | None = None, limit: int | None = None) -> dict[str, Any]:
    """Resume paused executions whose scheduled time has passed."""

    now = now or utcnow()
    if limit is None:
        limit = int(current_app.config.get("FLOW_SCHEDULER_BATCH_SIZE", 50))

    due = (
        Execution.query.filter(
            Execution.status == STATUS_PAUSED,
            Execution.next_action_at.isnot(None),
            Execution.next_action_at <= now,
        )
        .order_by(Execution.next_action_at.asc())
        .limit(limit)
        .all()
    )

    processed = 0
    errors = 0
    for execution in due:
        try:
            resume(execution.id, now=now)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to resume execution %s", execution.id)
            errors += 1
        else:
            processed += 1

    return {"processed": processed, "errors": errors, "total": len(due)}


def finalize_stale_executions(now: datetime | None = None) -> int:
    """Fail every live execution that outlived its staleness bound."""

    now = now or utcnow()
    finalized = 0
    for execution in Execution.query.filter(Execution.status.in_(LIVE_STATUSES)).all():
        if finalize_if_stale(execution, now):
            finalized += 1
    return finalized


def run_scheduler_tick(now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    summary = resume_due_executions(now)
    summary["stale"] = finalize_stale_executions(now)
    return summary

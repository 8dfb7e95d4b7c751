"""Execution state and audit log models."""

from __future__ import annotations

from ..extensions import db
from ..utils.clock import utcnow

STATUS_RUNNING = "running"
STATUS_WAITING = "waiting_response"
STATUS_PAUSED = "paused"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

LIVE_STATUSES = (STATUS_RUNNING, STATUS_WAITING, STATUS_PAUSED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)


class Execution(db.Model):
    """One run of a flow for one contact."""

    __tablename__ = "flow_executions"

    id = db.Column(db.Integer, primary_key=True)
    flow_id = db.Column(db.Integer, db.ForeignKey("flows.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False)
    lead_id = db.Column(db.Integer, db.ForeignKey("leads.id"), nullable=True)
    current_node_id = db.Column(db.Integer, nullable=True)
    status = db.Column(
        db.Enum(
            STATUS_RUNNING,
            STATUS_WAITING,
            STATUS_PAUSED,
            STATUS_COMPLETED,
            STATUS_FAILED,
            name="execution_status",
        ),
        nullable=False,
        default=STATUS_RUNNING,
    )
    context = db.Column(db.JSON, nullable=False, default=dict)
    is_human_takeover = db.Column(db.Boolean, nullable=False, default=False)
    next_action_at = db.Column(db.DateTime, nullable=True)
    started_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (db.Index("ix_flow_executions_contact_status", "tenant_id", "contact_id", "status"),)

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Execution {self.id} {self.status}>"


class ExecutionLog(db.Model):
    """Append-only audit entry for a single engine decision."""

    __tablename__ = "flow_execution_logs"

    id = db.Column(db.Integer, primary_key=True)
    execution_id = db.Column(
        db.Integer, db.ForeignKey("flow_executions.id"), nullable=False, index=True
    )
    tenant_id = db.Column(db.Integer, nullable=False)
    node_id = db.Column(db.Integer, nullable=True)
    node_type = db.Column(db.String(32), nullable=True)
    action = db.Column(db.String(64), nullable=False)
    details = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<ExecutionLog {self.execution_id} {self.action}>"

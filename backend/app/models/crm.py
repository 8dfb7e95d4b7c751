"""CRM pipeline models touched by flow actions."""

from __future__ import annotations

from ..extensions import db
from ..utils.clock import utcnow


class FunnelStage(db.Model):
    """A pipeline stage leads can be moved into."""

    __tablename__ = "funnel_stages"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)


class Lead(db.Model):
    """A sales lead, matched to contacts by phone number."""

    __tablename__ = "leads"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    stage_id = db.Column(db.Integer, db.ForeignKey("funnel_stages.id"), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Lead {self.id} stage={self.stage_id}>"

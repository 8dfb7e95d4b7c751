"""Flow graph model definitions."""

from __future__ import annotations

from ..extensions import db
from ..utils.clock import utcnow


class Flow(db.Model):
    """A named, versionless conversation script owned by a tenant."""

    __tablename__ = "flows"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    trigger_keywords = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Flow {self.name!r}>"


class FlowNode(db.Model):
    """A typed step within a flow."""

    __tablename__ = "flow_nodes"

    id = db.Column(db.Integer, primary_key=True)
    flow_id = db.Column(
        db.Integer, db.ForeignKey("flows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    node_type = db.Column(db.String(32), nullable=False)
    config = db.Column(db.JSON, nullable=False, default=dict)
    position_x = db.Column(db.Integer, nullable=False, default=0)
    position_y = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<FlowNode {self.id} {self.node_type}>"


class FlowEdge(db.Model):
    """A directed connection between two nodes, optionally discriminated by a handle."""

    __tablename__ = "flow_edges"

    id = db.Column(db.Integer, primary_key=True)
    flow_id = db.Column(
        db.Integer, db.ForeignKey("flows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_node_id = db.Column(db.Integer, db.ForeignKey("flow_nodes.id"), nullable=False)
    target_node_id = db.Column(db.Integer, db.ForeignKey("flow_nodes.id"), nullable=False)
    source_handle = db.Column(db.String(64), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<FlowEdge {self.source_node_id}->{self.target_node_id}>"

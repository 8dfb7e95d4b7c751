"""Conversation message history model."""

from __future__ import annotations

from ..extensions import db
from ..utils.clock import utcnow


class Message(db.Model):
    """Represents an inbound or outbound chat message."""

    __tablename__ = "messages"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False, default="")
    message_type = db.Column(db.String(32), nullable=False, default="text")
    media_url = db.Column(db.String(1024), nullable=True)
    is_from_me = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.Enum("pending", "sent", "delivered", "read", "failed", name="message_status"),
        nullable=False,
        default="sent",
    )
    sent_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Message {self.id} from_me={self.is_from_me}>"

"""Lead pipeline mutations invoked by flow action steps."""
from __future__ import annotations

import re

from flask import Flask
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.crm import FunnelStage, Lead

PHONE_SUFFIX_LENGTH = 8

_JID_SUFFIX = re.compile(r"@(s\.whatsapp\.net|c\.us|lid|g\.us|broadcast)$", re.IGNORECASE)


class CrmError(Exception):
    """Raised when a lead mutation cannot be applied."""


def normalize_phone(value: str | None) -> str:
    """Reduce a phone number or WhatsApp JID to its digits."""

    if not value:
        return ""
    phone = _JID_SUFFIX.sub("", value.strip())
    # Drop the device part of "5583999999999:45".
    phone = phone.split(":")[0]
    return re.sub(r"\D", "", phone)


def phones_match(left: str | None, right: str | None) -> bool:
    """Compare two numbers on their trailing digits, ignoring country/area prefixes."""

    a = normalize_phone(left)
    b = normalize_phone(right)
    if not a or not b:
        return False
    if len(a) < PHONE_SUFFIX_LENGTH or len(b) < PHONE_SUFFIX_LENGTH:
        return a == b
    return a[-PHONE_SUFFIX_LENGTH:] == b[-PHONE_SUFFIX_LENGTH:]


class SqlCrmMutator:
    """CRM collaborator backed by the lead tables.

    Each mutation is its own commit; callers must not assume atomicity with
    any other write.
    """

    def find_lead_by_phone(self, tenant_id: int, phone: str) -> Lead | None:
        leads = (
            Lead.query.filter(Lead.tenant_id == tenant_id, Lead.phone.isnot(None))
            .order_by(Lead.created_at.asc(), Lead.id.asc())
            .all()
        )
        for lead in leads:
            if phones_match(lead.phone, phone):
                return lead
        return None

    def move_lead_to_stage(self, lead: Lead, stage_ref: str | int) -> FunnelStage:
        stage = self._resolve_stage(lead.tenant_id, stage_ref)
        if stage is None:
            raise CrmError(f"stage {stage_ref!r} does not exist")
        lead.stage_id = stage.id
        self._commit()
        return stage

    def add_tag(self, lead: Lead, tag: str) -> list[str]:
        tag = (tag or "").strip()
        if not tag:
            raise CrmError("tag must not be empty")
        tags = list(lead.tags or [])
        if tag.lower() not in {existing.lower() for existing in tags}:
            tags.append(tag)
            lead.tags = tags
            self._commit()
        return tags

    def remove_tag(self, lead: Lead, tag: str) -> list[str]:
        wanted = (tag or "").strip().lower()
        if not wanted:
            raise CrmError("tag must not be empty")
        tags = [existing for existing in (lead.tags or []) if existing.lower() != wanted]
        if len(tags) != len(lead.tags or []):
            lead.tags = tags
            self._commit()
        return tags

    def _resolve_stage(self, tenant_id: int, stage_ref: str | int) -> FunnelStage | None:
        query = FunnelStage.query.filter(FunnelStage.tenant_id == tenant_id)
        candidate = str(stage_ref).strip()
        if candidate.isdigit():
            stage = query.filter(FunnelStage.id == int(candidate)).first()
            if stage is not None:
                return stage
        return query.filter(func.lower(FunnelStage.name) == candidate.lower()).first()

    def _commit(self) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CrmError(str(exc)) from exc


def get_crm_mutator(app: Flask) -> SqlCrmMutator:
    """Return the CRM collaborator tied to the Flask app."""
    if "crm_mutator" not in app.extensions:
        app.extensions["crm_mutator"] = SqlCrmMutator()
    return app.extensions["crm_mutator"]

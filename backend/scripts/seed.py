"""Seed the database with a demo tenant, funnel stages and an example flow."""
from __future__ import annotations

import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app import create_app
from backend.app.extensions import db
from backend.app.flows.definitions import normalize_graph, replace_graph
from backend.app.models.crm import FunnelStage, Lead
from backend.app.models.flow import Flow
from backend.app.models.tenant import Contact, Tenant

DEMO_TENANT_NAME = "Demo Store"
DEMO_PHONE = "5583999990000"
EXAMPLE_FLOW_NAME = "Boas-vindas"
STAGES = ("Novo", "Qualificado", "Cliente")

EXAMPLE_GRAPH = {
    "nodes": [
        {"key": "start", "type": "start"},
        {
            "key": "welcome",
            "type": "message",
            "config": {"message": "Olá {primeiro_nome}! Aqui é {atendente}."},
        },
        {
            "key": "ask",
            "type": "question",
            "config": {"question": "Como podemos ajudar?", "options": ["Comprar", "Suporte"]},
        },
        {"key": "tag", "type": "action", "config": {"action_type": "add_tag", "action_value": "interessado"}},
        {"key": "stage", "type": "action", "config": {"action_type": "move_stage", "action_value": "Qualificado"}},
        {"key": "thanks", "type": "message", "config": {"message": "Obrigado! Em breve enviaremos o catálogo."}},
        {"key": "human", "type": "transfer"},
    ],
    "edges": [
        {"source": "start", "target": "welcome"},
        {"source": "welcome", "target": "ask"},
        {"source": "ask", "target": "tag", "handle": "option-0"},
        {"source": "ask", "target": "human", "handle": "option-1"},
        {"source": "tag", "target": "stage"},
        {"source": "stage", "target": "thanks"},
    ],
}


def _ensure_tenant() -> tuple[Tenant, bool]:
    tenant = Tenant.query.filter_by(name=DEMO_TENANT_NAME).first()
    if tenant is not None:
        return tenant, False
    tenant = Tenant(name=DEMO_TENANT_NAME, owner_name="Ana")
    db.session.add(tenant)
    db.session.flush()
    return tenant, True


def _ensure_stages(tenant: Tenant) -> int:
    created = 0
    for position, name in enumerate(STAGES):
        if FunnelStage.query.filter_by(tenant_id=tenant.id, name=name).first() is None:
            db.session.add(FunnelStage(tenant_id=tenant.id, name=name, position=position))
            created += 1
    db.session.flush()
    return created


def _ensure_contact_and_lead(tenant: Tenant) -> bool:
    if Contact.query.filter_by(tenant_id=tenant.id, phone=DEMO_PHONE).first() is not None:
        return False
    first_stage = FunnelStage.query.filter_by(tenant_id=tenant.id, name=STAGES[0]).first()
    db.session.add(Contact(tenant_id=tenant.id, name="Maria Silva", phone=DEMO_PHONE))
    db.session.add(
        Lead(
            tenant_id=tenant.id,
            name="Maria Silva",
            phone=DEMO_PHONE,
            stage_id=first_stage.id if first_stage is not None else None,
        )
    )
    return True


def _ensure_example_flow(tenant: Tenant) -> tuple[bool, bool]:
    nodes, edges = normalize_graph(EXAMPLE_GRAPH)
    flow = Flow.query.filter_by(tenant_id=tenant.id, name=EXAMPLE_FLOW_NAME).first()
    created = flow is None
    if flow is None:
        flow = Flow(
            tenant_id=tenant.id,
            name=EXAMPLE_FLOW_NAME,
            is_active=True,
            is_default=True,
            trigger_keywords=["oi", "olá"],
        )
        db.session.add(flow)
        db.session.flush()
    replace_graph(flow, nodes, edges)
    return created, not created


def main() -> None:
    app = create_app()
    with app.app_context():
        tenant, tenant_created = _ensure_tenant()
        stages_created = _ensure_stages(tenant)
        contact_created = _ensure_contact_and_lead(tenant)
        flow_created, flow_updated = _ensure_example_flow(tenant)

        db.session.commit()

        print(
            "Seed completed",
            f"tenant created={int(tenant_created)}",
            f"stages created={stages_created}",
            f"contacts created={int(contact_created)}",
            f"flows created={int(flow_created)}",
            f"flows updated={int(flow_updated)}",
        )


if __name__ == "__main__":
    main()

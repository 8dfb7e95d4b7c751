"""Tests for the delay scheduler and stale execution sweep."""
from __future__ import annotations

from datetime import timedelta

from backend.app.extensions import db
from backend.app.flows import (
    coordinator,
    resume_due_executions,
    run_scheduler_tick,
    start_or_route,
    store,
)
from backend.app.models.execution import Execution
from backend.app.models.tenant import Contact
from backend.app.utils.clock import utcnow


def _delay_flow(make_flow):
    return make_flow(
        [
            ("start", "start", {}),
            ("wait", "delay", {"delay_value": 10, "delay_unit": "minutes"}),
            ("after", "message", {"message": "lembrete"}),
        ],
        [("start", "wait"), ("wait", "after")],
    )


def _second_contact(tenant) -> Contact:
    other = Contact(tenant_id=tenant.id, name="João", phone="5583988887777")
    db.session.add(other)
    db.session.commit()
    return other


def test_due_executions_are_resumed(tenant, contact, gateway, make_flow):
    _delay_flow(make_flow)
    due_id = start_or_route(tenant.id, contact.id, "oi")["execution_id"]
    later_id = start_or_route(tenant.id, _second_contact(tenant).id, "oi")["execution_id"]
    store.save(db.session.get(Execution, due_id), next_action_at=utcnow() - timedelta(seconds=5))

    summary = resume_due_executions()

    assert summary == {"processed": 1, "errors": 0, "total": 1}
    assert db.session.get(Execution, due_id).status == "completed"
    assert db.session.get(Execution, later_id).status == "paused"
    assert gateway.texts == ["lembrete"]


def test_injected_clock_drives_the_due_check(tenant, contact, gateway, make_flow):
    _delay_flow(make_flow)
    execution_id = start_or_route(tenant.id, contact.id, "oi")["execution_id"]

    summary = resume_due_executions(now=utcnow() + timedelta(minutes=11))

    assert summary == {"processed": 1, "errors": 0, "total": 1}
    assert db.session.get(Execution, execution_id).status == "completed"
    assert gateway.texts == ["lembrete"]


def test_batch_limit(tenant, contact, gateway, make_flow):
    _delay_flow(make_flow)
    ids = [
        start_or_route(tenant.id, contact.id, "oi")["execution_id"],
        start_or_route(tenant.id, _second_contact(tenant).id, "oi")["execution_id"],
    ]
    for execution_id in ids:
        store.save(db.session.get(Execution, execution_id), next_action_at=utcnow() - timedelta(seconds=5))

    assert resume_due_executions(limit=1)["total"] == 1
    assert resume_due_executions(limit=1)["total"] == 1
    assert resume_due_executions(limit=1)["total"] == 0


def test_resume_errors_are_counted(tenant, contact, gateway, make_flow, monkeypatch):
    from backend.app.flows import scheduler

    _delay_flow(make_flow)
    execution_id = start_or_route(tenant.id, contact.id, "oi")["execution_id"]
    store.save(db.session.get(Execution, execution_id), next_action_at=utcnow() - timedelta(seconds=5))

    def broken_resume(execution_id, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(scheduler, "resume", broken_resume)

    assert resume_due_executions() == {"processed": 0, "errors": 1, "total": 1}


def test_tick_finalizes_stale_executions(tenant, contact, gateway, make_flow):
    make_flow(
        [("start", "start", {}), ("ask", "question", {"question": "E aí?", "options": ["Sim"]})],
        [("start", "ask")],
    )
    execution_id = start_or_route(tenant.id, contact.id, "oi")["execution_id"]
    store.save(db.session.get(Execution, execution_id), updated_at=utcnow() - timedelta(days=2))

    summary = run_scheduler_tick()

    assert summary["stale"] == 1
    assert db.session.get(Execution, execution_id).status == "failed"


def test_is_stale_bounds(app, tenant, contact, make_flow):
    flow, _ = make_flow([("start", "start", {})], [])
    now = utcnow()
    execution = Execution(
        flow_id=flow.id,
        tenant_id=tenant.id,
        contact_id=contact.id,
        status="paused",
        context={},
        updated_at=now - timedelta(days=5),
        next_action_at=now - timedelta(hours=1),
    )

    assert not coordinator.is_stale(execution, now)

    execution.next_action_at = now - timedelta(days=2)
    assert coordinator.is_stale(execution, now)

    execution.status = "running"
    execution.updated_at = now - timedelta(seconds=299)
    assert not coordinator.is_stale(execution, now)

    execution.status = "completed"
    execution.updated_at = now - timedelta(days=30)
    assert not coordinator.is_stale(execution, now)

"""Tests for resuming suspended executions."""
from __future__ import annotations

from datetime import timedelta

import pytest

from backend.app.extensions import db
from backend.app.flows import (
    ExecutionNotFoundError,
    handle_inbound,
    resume,
    start_or_route,
    store,
)
from backend.app.models.execution import Execution
from backend.app.models.message import Message
from backend.app.utils.clock import utcnow

LABELS = ["Um", "Dois", "Três", "Quatro", "Cinco"]


@pytest.fixture()
def two_option_flow(make_flow):
    return make_flow(
        [
            ("start", "start", {}),
            ("ask", "question", {"question": "Posso ajudar?", "options": ["Comprar", "Suporte"]}),
            ("buy", "message", {"message": "Compra"}),
            ("help", "message", {"message": "Suporte humano"}),
        ],
        [
            ("start", "ask"),
            ("ask", "buy", "option-0"),
            ("ask", "help", "option-1"),
        ],
    )


@pytest.fixture()
def five_option_flow(make_flow):
    nodes = [
        ("start", "start", {}),
        ("ask", "question", {"question": "Escolha", "options": [{"label": label} for label in LABELS]}),
    ]
    edges = [("start", "ask")]
    for index, label in enumerate(LABELS):
        nodes.append((f"answer{index}", "message", {"message": label}))
        edges.append(("ask", f"answer{index}", f"option-{index}"))
    return make_flow(nodes, edges)


def _start(tenant, contact) -> int:
    result = start_or_route(tenant.id, contact.id, "oi")
    assert result["execution_status"] == "waiting_response"
    return result["execution_id"]


def test_button_choice_follows_matching_edge(tenant, contact, gateway, two_option_flow):
    execution_id = _start(tenant, contact)

    assert gateway.sent[0]["kind"] == "choices"
    assert gateway.sent[0]["choices"] == [("option-0", "Comprar"), ("option-1", "Suporte")]

    result = resume(execution_id, structured_choice_id="option-1")

    assert result == {
        "status": "continued",
        "execution_id": execution_id,
        "execution_status": "completed",
    }
    assert gateway.texts[-1] == "Suporte humano"


def test_typed_reply_to_button_prompt_keeps_waiting(tenant, contact, gateway, two_option_flow, log_actions):
    execution_id = _start(tenant, contact)

    result = resume(execution_id, user_response="Suporte")

    assert result["execution_status"] == "waiting_response"
    assert len(gateway.sent) == 1
    assert log_actions(execution_id)[-1] == "awaiting_choice"


def test_out_of_range_choice_is_ignored(tenant, contact, gateway, two_option_flow):
    execution_id = _start(tenant, contact)

    result = resume(execution_id, structured_choice_id="option-7")

    assert result["execution_status"] == "waiting_response"


def test_numbered_reply_selects_option(tenant, contact, gateway, five_option_flow):
    execution_id = _start(tenant, contact)

    prompt = gateway.sent[0]
    assert prompt["kind"] == "text"
    assert "3. Três" in prompt["text"]

    result = resume(execution_id, user_response="3")

    assert result["execution_status"] == "completed"
    assert gateway.texts[-1] == "Três"


@pytest.mark.parametrize("reply", ["3", "TRÊS", "quero a opção três"])
def test_number_and_label_route_identically(tenant, contact, gateway, five_option_flow, reply):
    execution_id = _start(tenant, contact)

    result = resume(execution_id, user_response=reply)

    assert result["execution_status"] == "completed"
    assert gateway.texts[-1] == "Três"


def test_unmatched_reply_reprompts(tenant, contact, gateway, five_option_flow, log_actions):
    execution_id = _start(tenant, contact)

    result = resume(execution_id, user_response="talvez")

    assert result["execution_status"] == "waiting_response"
    assert len(gateway.sent) == 2
    assert gateway.sent[0]["text"] == gateway.sent[1]["text"]
    assert log_actions(execution_id)[-1] == "reprompted"


@pytest.mark.parametrize("reply", ["²", "³", "٣"])
def test_non_ascii_digits_reprompt(tenant, contact, gateway, five_option_flow, log_actions, reply):
    execution_id = _start(tenant, contact)

    result = handle_inbound(tenant.id, contact.id, reply)

    assert result["execution_status"] == "waiting_response"
    assert log_actions(execution_id)[-1] == "reprompted"


@pytest.mark.parametrize("reply", ["3.", "3)", "3 por favor"])
def test_reply_starting_with_number_selects_option(tenant, contact, gateway, five_option_flow, reply):
    execution_id = _start(tenant, contact)

    result = resume(execution_id, user_response=reply)

    assert result["execution_status"] == "completed"
    assert gateway.texts[-1] == "Três"


def test_choice_without_edge_completes(tenant, contact, gateway, make_flow):
    make_flow(
        [("start", "start", {}), ("ask", "question", {"question": "Ok?", "options": ["Sim", "Não"]})],
        [("start", "ask")],
    )
    execution_id = _start(tenant, contact)

    result = resume(execution_id, structured_choice_id="option-0")

    assert result["execution_status"] == "completed"


def test_free_text_answer_becomes_last_message(tenant, contact, gateway, make_flow):
    make_flow(
        [
            ("start", "start", {}),
            ("ask", "question", {"question": "Qual sabor?"}),
            ("echo", "message", {"message": "Anotado: {ultima_mensagem}"}),
        ],
        [("start", "ask"), ("ask", "echo")],
    )
    execution_id = _start(tenant, contact)

    assert resume(execution_id, user_response="   ")["execution_status"] == "waiting_response"
    resume(execution_id, user_response="pizza")

    execution = db.session.get(Execution, execution_id)
    assert execution.status == "completed"
    assert execution.context["last_message"] == "pizza"
    assert "waiting_for" not in execution.context
    assert gateway.texts == ["Qual sabor?", "Anotado: pizza"]


def test_pause_waits_for_any_message(tenant, contact, gateway, make_flow):
    make_flow(
        [
            ("start", "start", {}),
            ("hold", "pause", {}),
            ("after", "message", {"message": "continuando"}),
        ],
        [("start", "hold"), ("hold", "after")],
    )
    execution_id = _start(tenant, contact)

    assert resume(execution_id)["execution_status"] == "waiting_response"
    assert resume(execution_id, user_response="ok")["execution_status"] == "completed"
    assert gateway.texts == ["continuando"]


def test_delay_resumes_only_when_due(tenant, contact, gateway, make_flow):
    make_flow(
        [
            ("start", "start", {}),
            ("wait", "delay", {"delay_value": 1, "delay_unit": "hours"}),
            ("after", "message", {"message": "voltei"}),
        ],
        [("start", "wait"), ("wait", "after")],
    )
    execution_id = start_or_route(tenant.id, contact.id, "oi")["execution_id"]

    assert resume(execution_id)["execution_status"] == "paused"

    execution = db.session.get(Execution, execution_id)
    store.save(execution, next_action_at=utcnow() - timedelta(seconds=1))

    assert resume(execution_id)["execution_status"] == "completed"
    assert gateway.texts == ["voltei"]
    assert db.session.get(Execution, execution_id).next_action_at is None


def test_resume_on_missing_node_fails(tenant, contact, gateway, two_option_flow, log_actions):
    execution_id = _start(tenant, contact)
    store.save(db.session.get(Execution, execution_id), current_node_id=987654)

    result = resume(execution_id, structured_choice_id="option-0")

    assert result["execution_status"] == "failed"
    assert log_actions(execution_id)[-1] == "missing_node"


def test_resume_terminal_execution_is_a_no_op(tenant, contact, gateway, make_flow):
    make_flow([("start", "start", {}), ("bye", "message", {"message": "tchau"})], [("start", "bye")])
    execution_id = start_or_route(tenant.id, contact.id, "oi")["execution_id"]

    result = resume(execution_id, user_response="oi de novo")

    assert result["execution_status"] == "completed"
    assert gateway.texts == ["tchau"]


def test_resume_unknown_execution_raises(app):
    with pytest.raises(ExecutionNotFoundError):
        resume(424242)


def test_stale_waiting_execution_is_failed_on_resume(tenant, contact, gateway, two_option_flow, log_actions):
    execution_id = _start(tenant, contact)
    execution = db.session.get(Execution, execution_id)
    store.save(execution, updated_at=utcnow() - timedelta(days=2))

    result = resume(execution_id, structured_choice_id="option-0")

    assert result["execution_status"] == "failed"
    assert log_actions(execution_id)[-1] == "stale_timeout"


def test_inbound_trigger_does_not_answer_its_own_question(tenant, contact, gateway, two_option_flow):
    started = handle_inbound(tenant.id, contact.id, "Suporte")

    assert started["status"] == "started"
    assert started["execution_status"] == "waiting_response"

    answered = handle_inbound(tenant.id, contact.id, "Suporte", choice_id="option-1")

    assert answered == {
        "status": "continued",
        "execution_id": started["execution_id"],
        "execution_status": "completed",
    }
    inbound = Message.query.filter_by(is_from_me=False).order_by(Message.id.asc()).all()
    assert [message.message_type for message in inbound] == ["text", "interactive"]

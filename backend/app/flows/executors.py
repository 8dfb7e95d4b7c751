"""Per-node-type step handlers.

An executor performs the side effects of one node and reports how the
interpreter should proceed. Executors that suspend or terminate the
execution persist that state themselves before returning.
"""
from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from flask import current_app

from ..crm.mutator import CrmError, SqlCrmMutator
from ..extensions import db
from ..messaging.gateway import CloudApiGateway
from ..models.crm import Lead
from ..models.execution import STATUS_COMPLETED, STATUS_PAUSED, STATUS_WAITING, Execution
from ..models.tenant import Contact, Tenant
from ..utils.clock import utcnow
from . import store
from .graph import FlowGraph
from .nodes import (
    ActionNode,
    ConditionNode,
    DelayNode,
    EndNode,
    MessageNode,
    Node,
    PauseNode,
    QuestionNode,
    StartNode,
    TransferNode,
    UnknownNode,
)
from .templating import build_variables, render


@dataclass
class StepContext:
    """Everything an executor may touch during one invocation."""

    execution: Execution
    graph: FlowGraph
    tenant: Tenant | None
    contact: Contact
    gateway: CloudApiGateway
    crm: SqlCrmMutator

    @property
    def last_message(self) -> str | None:
        value = (self.execution.context or {}).get("last_message")
        return value if isinstance(value, str) else None

    @property
    def phone_number_id(self) -> str | None:
        return self.tenant.whatsapp_phone_number_id if self.tenant is not None else None

    def render(self, text: str) -> str:
        owner = None
        if self.tenant is not None:
            owner = self.tenant.owner_name or self.tenant.name
        variables = build_variables(
            owner_name=owner,
            contact_name=self.contact.name,
            phone=self.contact.phone,
            last_message=self.last_message,
            extra=(self.execution.context or {}).get("variables"),
        )
        return render(text, variables)


@dataclass(frozen=True)
class StepResult:
    proceed: bool
    next_node_id: int | None = None
    suspend: str | None = None

    @classmethod
    def advance(cls, next_node_id: int | None) -> StepResult:
        return cls(proceed=True, next_node_id=next_node_id)

    @classmethod
    def suspended(cls, reason: str) -> StepResult:
        return cls(proceed=False, suspend=reason)

    @classmethod
    def terminated(cls) -> StepResult:
        return cls(proceed=False)


def _record_send(ctx: StepContext, node: Node, content: str, ok: bool, **extra: Any) -> None:
    store.record_message(
        ctx.execution.tenant_id,
        ctx.contact.id,
        content,
        is_from_me=True,
        message_type=extra.get("message_type", "text"),
        media_url=extra.get("media_url"),
        status="sent" if ok else "failed",
    )
    store.append_log(
        ctx.execution,
        "message_sent" if ok else "send_failed",
        node,
        {"content": content, **extra},
    )


def execute_start(ctx: StepContext, node: StartNode) -> StepResult:
    return StepResult.advance(ctx.graph.next_node_id(node.id))


def execute_message(ctx: StepContext, node: MessageNode) -> StepResult:
    text = ctx.render(node.text)
    if node.media_url:
        ok = ctx.gateway.send_media(
            ctx.phone_number_id, ctx.contact.phone, node.media_url, node.media_type, text or None
        )
        _record_send(
            ctx, node, text, ok, message_type=node.media_type, media_url=node.media_url
        )
    elif text:
        ok = ctx.gateway.send_text(ctx.phone_number_id, ctx.contact.phone, text)
        _record_send(ctx, node, text, ok)
    return StepResult.advance(ctx.graph.next_node_id(node.id))


def send_question_prompt(ctx: StepContext, node: QuestionNode) -> None:
    """Send the question, as buttons when it has at most three options."""

    text = ctx.render(node.text)
    if node.uses_buttons:
        choices = [(f"option-{index}", option) for index, option in enumerate(node.options)]
        ok = ctx.gateway.send_choice_prompt(ctx.phone_number_id, ctx.contact.phone, text, choices)
        _record_send(ctx, node, text, ok, message_type="interactive", options=list(node.options))
    else:
        prompt = ctx.render(node.numbered_prompt()) if node.options else text
        ok = ctx.gateway.send_text(ctx.phone_number_id, ctx.contact.phone, prompt)
        _record_send(ctx, node, prompt, ok)


def execute_question(ctx: StepContext, node: QuestionNode) -> StepResult:
    send_question_prompt(ctx, node)
    store.save(
        ctx.execution,
        status=STATUS_WAITING,
        current_node_id=node.id,
        context={**(ctx.execution.context or {}), "waiting_for": "question_response"},
    )
    return StepResult.suspended(STATUS_WAITING)


def execute_delay(ctx: StepContext, node: DelayNode) -> StepResult:
    inline_limit = int(current_app.config.get("FLOW_INLINE_DELAY_LIMIT", 30))
    if node.seconds <= inline_limit:
        if node.seconds > 0:
            time.sleep(node.seconds)
        return StepResult.advance(ctx.graph.next_node_id(node.id))

    resume_at = utcnow() + timedelta(seconds=node.seconds)
    store.save(
        ctx.execution,
        status=STATUS_PAUSED,
        current_node_id=node.id,
        next_action_at=resume_at,
    )
    store.append_log(
        ctx.execution,
        "scheduled",
        node,
        {"delay_seconds": node.seconds, "next_action_at": resume_at.isoformat() + "Z"},
    )
    return StepResult.suspended(STATUS_PAUSED)


def execute_pause(ctx: StepContext, node: PauseNode) -> StepResult:
    store.save(
        ctx.execution,
        status=STATUS_WAITING,
        current_node_id=node.id,
        context={**(ctx.execution.context or {}), "waiting_for": "any_message"},
    )
    return StepResult.suspended(STATUS_WAITING)


def evaluate_condition(operator: str, subject: str | None, value: str) -> bool:
    """Evaluate a single predicate; a missing subject never satisfies it."""

    if subject is None:
        return False
    text = subject.strip().lower()
    expected = (value or "").strip().lower()

    if operator == "is_empty":
        return not text
    if operator == "is_not_empty":
        return bool(text)

    negated = operator.startswith("not_")
    base = operator[4:] if negated else operator
    if base == "contains":
        result = expected in text
    elif base == "equals":
        result = text == expected
    elif base == "starts_with":
        result = text.startswith(expected)
    elif base == "ends_with":
        result = text.endswith(expected)
    else:
        return False
    return not result if negated else result


def _condition_subject(ctx: StepContext, field: str) -> str | None:
    if field in ("last_message", "ultima_mensagem"):
        return ctx.last_message
    value = ((ctx.execution.context or {}).get("variables") or {}).get(field)
    return str(value) if value is not None else None


def execute_condition(ctx: StepContext, node: ConditionNode) -> StepResult:
    met = evaluate_condition(node.operator, _condition_subject(ctx, node.field), node.value)
    handle = "true" if met else "false"
    store.append_log(
        ctx.execution,
        "decision",
        node,
        {"field": node.field, "operator": node.operator, "value": node.value, "result": met},
    )
    return StepResult.advance(ctx.graph.next_node_id(node.id, handle))


def _resolve_lead(ctx: StepContext) -> Lead | None:
    execution = ctx.execution
    if execution.lead_id is not None:
        lead = db.session.get(Lead, execution.lead_id)
        if lead is not None:
            return lead
    lead = ctx.crm.find_lead_by_phone(execution.tenant_id, ctx.contact.phone)
    if lead is not None:
        store.save(execution, lead_id=lead.id)
    return lead


def _apply_action(ctx: StepContext, node: ActionNode) -> dict[str, Any]:
    if node.action_type == "set_variable":
        name, _, value = node.value.partition("=")
        name = name.strip()
        if not name:
            raise CrmError("set_variable requires name=value")
        variables = {**((ctx.execution.context or {}).get("variables") or {})}
        variables[name] = ctx.render(value.strip())
        store.update_context(ctx.execution, variables=variables)
        return {"variable": name, "value": variables[name]}

    if node.action_type not in ("move_stage", "move_lead_to_stage", "add_tag", "remove_tag"):
        return {"skipped": True, "reason": f"unsupported action {node.action_type!r}"}

    lead = _resolve_lead(ctx)
    if lead is None:
        raise CrmError(f"no lead found for phone {ctx.contact.phone}")

    if node.action_type in ("move_stage", "move_lead_to_stage"):
        stage = ctx.crm.move_lead_to_stage(lead, node.value)
        return {"lead_id": lead.id, "stage_id": stage.id}
    if node.action_type == "add_tag":
        return {"lead_id": lead.id, "tags": ctx.crm.add_tag(lead, node.value)}
    return {"lead_id": lead.id, "tags": ctx.crm.remove_tag(lead, node.value)}


def execute_action(ctx: StepContext, node: ActionNode) -> StepResult:
    details: dict[str, Any] = {"action_type": node.action_type, "action_value": node.value}
    try:
        details.update(_apply_action(ctx, node))
    except Exception as exc:
        # Action failures are recorded and the flow moves on.
        db.session.rollback()
        current_app.logger.warning(
            "Action %s failed for execution %s: %s", node.action_type, ctx.execution.id, exc
        )
        store.append_log(ctx.execution, "error", node, {**details, "error": str(exc)})
    else:
        store.append_log(ctx.execution, "action_applied", node, details)
    return StepResult.advance(ctx.graph.next_node_id(node.id))


def execute_transfer(ctx: StepContext, node: TransferNode) -> StepResult:
    store.finish(ctx.execution, STATUS_COMPLETED, is_human_takeover=True, current_node_id=node.id)
    ctx.contact.automation_disabled = True
    db.session.commit()

    notice = ctx.render(node.message or current_app.config.get("FLOW_TRANSFER_MESSAGE", ""))
    if notice:
        ok = ctx.gateway.send_text(ctx.phone_number_id, ctx.contact.phone, notice)
        _record_send(ctx, node, notice, ok)
    store.append_log(ctx.execution, "transferred", node, {"contact_id": ctx.contact.id})
    return StepResult.terminated()


def execute_end(ctx: StepContext, node: EndNode) -> StepResult:
    store.finish(ctx.execution, STATUS_COMPLETED, current_node_id=node.id)
    return StepResult.terminated()


def execute_unknown(ctx: StepContext, node: UnknownNode) -> StepResult:
    current_app.logger.warning(
        "Unknown node type %r (node %s), passing through", node.declared_type, node.id
    )
    store.append_log(ctx.execution, "skipped", node, {"declared_type": node.declared_type})
    return StepResult.advance(ctx.graph.next_node_id(node.id))


EXECUTORS: dict[type, Callable[[StepContext, Any], StepResult]] = {
    StartNode: execute_start,
    MessageNode: execute_message,
    QuestionNode: execute_question,
    DelayNode: execute_delay,
    PauseNode: execute_pause,
    ConditionNode: execute_condition,
    ActionNode: execute_action,
    TransferNode: execute_transfer,
    EndNode: execute_end,
    UnknownNode: execute_unknown,
}


def execute_node(ctx: StepContext, node: Node) -> StepResult:
    return EXECUTORS[type(node)](ctx, node)

"""Resume suspended executions on a reply or an elapsed delay."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from flask import current_app

from ..models.execution import (
    STATUS_FAILED,
    STATUS_PAUSED,
    STATUS_RUNNING,
    STATUS_WAITING,
    Execution,
)
from ..utils.clock import utcnow
from . import store
from .executors import StepContext, send_question_prompt
from .graph import FlowGraph
from .interpreter import build_context, run
from .nodes import DelayNode, Node, PauseNode, QuestionNode

_CHOICE_ID = re.compile(r"^option-(\d+)$")
_LEADING_NUMBER = re.compile(r"^([0-9]+)")


@dataclass(frozen=True)
class Resolution:
    resolved: bool
    next_node_id: int | None = None
    details: dict[str, Any] = field(default_factory=dict)


UNRESOLVED = Resolution(resolved=False)


def is_stale(execution: Execution, now: datetime) -> bool:
    """Return whether a live execution has outlived its expected bound."""

    config = current_app.config
    running_bound = timedelta(seconds=int(config.get("FLOW_STALE_RUNNING_SECONDS", 300)))
    waiting_bound = timedelta(seconds=int(config.get("FLOW_STALE_WAITING_SECONDS", 86400)))
    last_activity = execution.updated_at or execution.started_at

    if execution.status == STATUS_RUNNING:
        return now - last_activity > running_bound
    if execution.status == STATUS_WAITING:
        return now - last_activity > waiting_bound
    if execution.status == STATUS_PAUSED:
        reference = execution.next_action_at or last_activity
        return now - reference > waiting_bound
    return False


def finalize_if_stale(execution: Execution, now: datetime | None = None) -> bool:
    """Fail a stuck execution so it stops blocking the contact."""

    now = now or utcnow()
    if not execution.is_live or not is_stale(execution, now):
        return False

    previous = execution.status
    current_app.logger.warning(
        "Execution %s stuck in %s since %s, marking failed",
        execution.id,
        previous,
        execution.updated_at,
    )
    store.finish(execution, STATUS_FAILED)
    store.append_log(execution, "stale_timeout", details={"previous_status": previous})
    return True


def _choice_index(choice_id: str | None, option_count: int) -> int | None:
    match = _CHOICE_ID.match((choice_id or "").strip())
    if match is None:
        return None
    index = int(match.group(1))
    return index if 0 <= index < option_count else None


def _text_index(response: str | None, options: tuple[str, ...]) -> int | None:
    reply = (response or "").strip().lower()
    if not reply:
        return None
    number = _LEADING_NUMBER.match(reply)
    if number is not None:
        position = int(number.group(1))
        return position - 1 if 1 <= position <= len(options) else None
    for index, option in enumerate(options):
        if option.lower() in reply:
            return index
    return None


def resolve_question(
    ctx: StepContext,
    node: QuestionNode,
    user_response: str | None,
    choice_id: str | None,
) -> Resolution:
    if node.is_free_text:
        if user_response is None or not user_response.strip():
            return UNRESOLVED
        return Resolution(True, ctx.graph.next_node_id(node.id), {"answer": user_response})

    index = _choice_index(choice_id, len(node.options))
    if index is None and not node.uses_buttons:
        index = _text_index(user_response, node.options)
        if index is None:
            send_question_prompt(ctx, node)
            store.append_log(ctx.execution, "reprompted", node, {"response": user_response})
            return UNRESOLVED

    # Button prompts only accept the button id; typed text keeps waiting.
    if index is None:
        store.append_log(
            ctx.execution, "awaiting_choice", node, {"response": user_response, "choice_id": choice_id}
        )
        return UNRESOLVED

    handle = f"option-{index}"
    return Resolution(
        True,
        ctx.graph.next_node_id(node.id, handle),
        {"handle": handle, "option": node.options[index]},
    )


def resolve_node(
    ctx: StepContext,
    node: Node,
    user_response: str | None,
    choice_id: str | None,
    now: datetime,
) -> Resolution:
    status = ctx.execution.status
    if isinstance(node, QuestionNode) and status == STATUS_WAITING:
        return resolve_question(ctx, node, user_response, choice_id)
    if isinstance(node, PauseNode) and status == STATUS_WAITING:
        if user_response is None and choice_id is None:
            return UNRESOLVED
        return Resolution(True, ctx.graph.next_node_id(node.id))
    if isinstance(node, DelayNode) and status == STATUS_PAUSED:
        due = ctx.execution.next_action_at
        if due is not None and due > now:
            return UNRESOLVED
        return Resolution(True, ctx.graph.next_node_id(node.id), {"delay_elapsed": True})
    return UNRESOLVED


def resume(
    execution_id: int,
    user_response: str | None = None,
    structured_choice_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Continue a suspended execution from its current node."""

    execution = store.get_execution(execution_id)
    now = now or utcnow()
    result: dict[str, Any] = {"status": "continued", "execution_id": execution.id}

    if finalize_if_stale(execution, now):
        return {**result, "execution_status": execution.status}

    if execution.status not in (STATUS_WAITING, STATUS_PAUSED) or execution.current_node_id is None:
        return {**result, "execution_status": execution.status}

    graph = FlowGraph.load(execution.flow_id)
    node = graph.node(execution.current_node_id)
    if node is None:
        current_app.logger.warning(
            "Execution %s points at missing node %s", execution.id, execution.current_node_id
        )
        store.finish(execution, STATUS_FAILED)
        store.append_log(execution, "missing_node", details={"node_id": execution.current_node_id})
        return {**result, "execution_status": execution.status}

    ctx = build_context(execution, graph)
    resolution = resolve_node(ctx, node, user_response, structured_choice_id, now)
    if not resolution.resolved:
        return {**result, "execution_status": execution.status}

    context = {**(execution.context or {})}
    context.pop("waiting_for", None)
    if user_response is not None:
        context["last_message"] = user_response
    store.save(execution, status=STATUS_RUNNING, next_action_at=None, context=context)
    store.append_log(execution, "resumed", node, resolution.details)

    run(ctx, resolution.next_node_id)
    return {**result, "execution_status": execution.status}

"""Step loop driving an execution from one node until it suspends or stops."""
from __future__ import annotations

import time

from flask import current_app

from ..crm.mutator import get_crm_mutator
from ..extensions import db
from ..messaging.gateway import get_gateway
from ..models.execution import STATUS_COMPLETED, STATUS_FAILED, STATUS_RUNNING, Execution
from ..models.flow import Flow
from ..models.tenant import Contact, Tenant
from . import store
from .executors import StepContext, execute_node
from .graph import FlowGraph


def build_context(execution: Execution, graph: FlowGraph, contact: Contact | None = None) -> StepContext:
    app = current_app._get_current_object()
    if contact is None:
        contact = db.session.get(Contact, execution.contact_id)
    return StepContext(
        execution=execution,
        graph=graph,
        tenant=db.session.get(Tenant, execution.tenant_id),
        contact=contact,
        gateway=get_gateway(app),
        crm=get_crm_mutator(app),
    )


def run(ctx: StepContext, node_id: int | None) -> Execution:
    """Execute nodes starting at ``node_id``.

    At most ``FLOW_MAX_STEPS`` nodes run per call. When the node stream ends
    without an executor choosing a terminal status the execution completes.
    """

    config = current_app.config
    max_steps = int(config.get("FLOW_MAX_STEPS", 50))
    step_pause = float(config.get("FLOW_STEP_PAUSE_SECONDS", 0.5))
    execution = ctx.execution
    steps = 0

    while node_id is not None:
        node = ctx.graph.node(node_id)
        if node is None:
            store.append_log(execution, "missing_node", details={"node_id": node_id})
            break

        if steps >= max_steps:
            current_app.logger.error(
                "Execution %s reached the %s step limit at node %s", execution.id, max_steps, node_id
            )
            store.finish(execution, STATUS_FAILED)
            store.append_log(execution, "max_iterations", node, {"steps": steps})
            return execution

        steps += 1
        store.save(execution, status=STATUS_RUNNING, current_node_id=node.id)
        store.append_log(execution, "executed", node, {"iteration": steps})

        try:
            result = execute_node(ctx, node)
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception(
                "Node %s (%s) failed in execution %s", node.id, node.node_type, execution.id
            )
            store.finish(execution, STATUS_FAILED)
            store.append_log(execution, "error", node, {"error": str(exc)})
            return execution

        if not result.proceed:
            return execution

        node_id = result.next_node_id
        if node_id is not None and step_pause > 0:
            time.sleep(step_pause)

    if execution.status == STATUS_RUNNING:
        store.finish(execution, STATUS_COMPLETED)
        store.append_log(execution, "completed", details={"steps": steps})
    return execution


def start_execution(flow: Flow, contact: Contact, trigger_text: str) -> Execution:
    """Create a fresh execution of ``flow`` for ``contact`` and run it."""

    graph = FlowGraph.load(flow.id)
    execution = store.create_execution(
        flow,
        contact,
        {"trigger_message": trigger_text, "last_message": trigger_text},
    )
    store.append_log(execution, "started", details={"flow_id": flow.id, "trigger": trigger_text})

    first_step = graph.first_step_id()
    if first_step is None:
        current_app.logger.info("Flow %s has no node after start, completing", flow.id)
        store.finish(execution, STATUS_COMPLETED)
        store.append_log(execution, "completed", details={"steps": 0})
        return execution

    return run(build_context(execution, graph, contact), first_step)

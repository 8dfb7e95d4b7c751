"""Choose the flow a fresh inbound message should start."""
from __future__ import annotations

from collections.abc import Sequence

from ..models.flow import Flow


def match_flow(flows: Sequence[Flow], message_text: str) -> Flow | None:
    """Pick a flow for ``message_text`` among the tenant's active flows.

    The first flow (in the given order) with a keyword contained in the
    message wins. Without a keyword hit the default flow is used, and
    without a default the first active flow.
    """

    if not flows:
        return None

    message = (message_text or "").strip().lower()
    if message:
        for flow in flows:
            for keyword in flow.trigger_keywords or []:
                if not isinstance(keyword, str):
                    continue
                candidate = keyword.strip().lower()
                if candidate and candidate in message:
                    return flow

    for flow in flows:
        if flow.is_default:
            return flow
    return flows[0]


def select_flow(tenant_id: int, message_text: str) -> Flow | None:
    flows = (
        Flow.query.filter(Flow.tenant_id == tenant_id, Flow.is_active.is_(True))
        .order_by(Flow.id.asc())
        .all()
    )
    return match_flow(flows, message_text)

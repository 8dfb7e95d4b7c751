"""In-memory, id-keyed view of a stored flow graph."""
from __future__ import annotations

from collections.abc import Iterable

from ..models.flow import FlowEdge, FlowNode
from .nodes import Node, StartNode, parse_node


class FlowGraph:
    """Nodes keyed by id plus an index of outgoing edges.

    The graph may contain cycles; nothing here walks it, it only answers
    "which node follows ``node_id`` through ``handle``".
    """

    def __init__(self, flow_id: int, nodes: Iterable[Node], edges: Iterable[tuple[int, int, str | None]]):
        self.flow_id = flow_id
        self._nodes: dict[int, Node] = {}
        self._start_id: int | None = None
        for node in nodes:
            self._nodes[node.id] = node
            if self._start_id is None and isinstance(node, StartNode):
                self._start_id = node.id

        self._by_handle: dict[tuple[int, str], list[int]] = {}
        self._by_source: dict[int, list[int]] = {}
        for source, target, handle in edges:
            if source not in self._nodes or target not in self._nodes:
                continue
            self._by_source.setdefault(source, []).append(target)
            if handle:
                self._by_handle.setdefault((source, handle), []).append(target)

    @classmethod
    def load(cls, flow_id: int) -> FlowGraph:
        node_rows = FlowNode.query.filter_by(flow_id=flow_id).order_by(FlowNode.id.asc()).all()
        edge_rows = FlowEdge.query.filter_by(flow_id=flow_id).order_by(FlowEdge.id.asc()).all()
        return cls(
            flow_id,
            (parse_node(row.id, row.node_type, row.config) for row in node_rows),
            ((row.source_node_id, row.target_node_id, row.source_handle) for row in edge_rows),
        )

    def __len__(self) -> int:
        return len(self._nodes)

    def node(self, node_id: int | None) -> Node | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    @property
    def start_node(self) -> StartNode | None:
        node = self.node(self._start_id)
        return node if isinstance(node, StartNode) else None

    def next_node_id(self, node_id: int, handle: str | None = None) -> int | None:
        """Return the target of the first edge leaving ``node_id`` (through ``handle`` if given)."""

        if handle:
            targets = self._by_handle.get((node_id, handle))
        else:
            targets = self._by_source.get(node_id)
        return targets[0] if targets else None

    def first_step_id(self) -> int | None:
        """Return the node the start node leads to; the start node itself does nothing."""

        start = self.start_node
        if start is None:
            return None
        return self.next_node_id(start.id)

"""Typed node definitions parsed from stored node rows.

Each node type is a frozen dataclass carrying only the configuration it needs.
``parse_node`` is the single place where the loosely typed JSON ``config`` of a
``FlowNode`` row is normalised; executors never look at raw config.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

DELAY_UNITS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
}

CONDITION_OPERATORS = {
    "contains",
    "not_contains",
    "equals",
    "not_equals",
    "starts_with",
    "not_starts_with",
    "ends_with",
    "not_ends_with",
    "is_empty",
    "is_not_empty",
}

MAX_BUTTON_OPTIONS = 3


@dataclass(frozen=True)
class StartNode:
    node_type: ClassVar[str] = "start"
    id: int


@dataclass(frozen=True)
class MessageNode:
    node_type: ClassVar[str] = "message"
    id: int
    text: str
    media_url: str | None = None
    media_type: str = "image"


@dataclass(frozen=True)
class QuestionNode:
    node_type: ClassVar[str] = "question"
    id: int
    text: str
    options: tuple[str, ...] = ()

    @property
    def uses_buttons(self) -> bool:
        return 1 <= len(self.options) <= MAX_BUTTON_OPTIONS

    @property
    def is_free_text(self) -> bool:
        return not self.options

    def numbered_prompt(self) -> str:
        lines = [self.text, ""] if self.text else []
        lines.extend(f"{index}. {option}" for index, option in enumerate(self.options, start=1))
        return "\n".join(lines)


@dataclass(frozen=True)
class DelayNode:
    node_type: ClassVar[str] = "delay"
    id: int
    seconds: int


@dataclass(frozen=True)
class PauseNode:
    node_type: ClassVar[str] = "pause"
    id: int


@dataclass(frozen=True)
class ConditionNode:
    node_type: ClassVar[str] = "condition"
    id: int
    field: str = "last_message"
    operator: str = "contains"
    value: str = ""


@dataclass(frozen=True)
class ActionNode:
    node_type: ClassVar[str] = "action"
    id: int
    action_type: str
    value: str = ""


@dataclass(frozen=True)
class TransferNode:
    node_type: ClassVar[str] = "transfer"
    id: int
    message: str | None = None


@dataclass(frozen=True)
class EndNode:
    node_type: ClassVar[str] = "end"
    id: int


@dataclass(frozen=True)
class UnknownNode:
    node_type: ClassVar[str] = "unknown"
    id: int
    declared_type: str = ""


Node = Union[
    StartNode,
    MessageNode,
    QuestionNode,
    DelayNode,
    PauseNode,
    ConditionNode,
    ActionNode,
    TransferNode,
    EndNode,
    UnknownNode,
]


def _text(config: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = config.get(key)
        if isinstance(value, str):
            return value
    return ""


def _options(config: dict[str, Any]) -> tuple[str, ...]:
    raw = config.get("options")
    if not isinstance(raw, list):
        return ()
    options: list[str] = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("label") or item.get("title")
        if isinstance(item, str) and item.strip():
            options.append(item.strip())
    return tuple(options)


def delay_seconds(value: Any, unit: Any) -> int:
    """Convert a delay value and unit into whole seconds."""

    try:
        amount = float(value)
    except (TypeError, ValueError):
        amount = 1.0
    multiplier = DELAY_UNITS.get(str(unit or "seconds").lower(), 1)
    return max(0, int(round(amount * multiplier)))


def parse_node(node_id: int, node_type: str, config: dict[str, Any] | None) -> Node:
    """Build the typed node for a stored ``(id, type, config)`` triple."""

    config = config if isinstance(config, dict) else {}
    kind = (node_type or "").strip().lower()

    if kind == "start":
        return StartNode(id=node_id)
    if kind == "message":
        media_url = config.get("media_url")
        return MessageNode(
            id=node_id,
            text=_text(config, "message", "text"),
            media_url=media_url if isinstance(media_url, str) and media_url else None,
            media_type=_text(config, "media_type") or "image",
        )
    if kind == "question":
        return QuestionNode(
            id=node_id,
            text=_text(config, "question", "message", "text"),
            options=_options(config),
        )
    if kind == "delay":
        return DelayNode(
            id=node_id,
            seconds=delay_seconds(config.get("delay_value", 1), config.get("delay_unit")),
        )
    if kind == "pause":
        return PauseNode(id=node_id)
    if kind == "condition":
        operator = (_text(config, "operator") or "contains").lower()
        return ConditionNode(
            id=node_id,
            field=_text(config, "field", "variable") or "last_message",
            operator=operator,
            value=_text(config, "value"),
        )
    if kind == "action":
        return ActionNode(
            id=node_id,
            action_type=_text(config, "action_type").lower(),
            value=str(config.get("action_value") or "").strip(),
        )
    if kind == "transfer":
        return TransferNode(id=node_id, message=_text(config, "message") or None)
    if kind == "end":
        return EndNode(id=node_id)
    return UnknownNode(id=node_id, declared_type=kind)

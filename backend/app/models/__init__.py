"""Database models for the chatbot flow engine."""

from .crm import FunnelStage, Lead
from .execution import Execution, ExecutionLog
from .flow import Flow, FlowEdge, FlowNode
from .message import Message
from .tenant import Contact, Tenant

__all__ = [
    "Contact",
    "Execution",
    "ExecutionLog",
    "Flow",
    "FlowEdge",
    "FlowNode",
    "FunnelStage",
    "Lead",
    "Message",
    "Tenant",
]

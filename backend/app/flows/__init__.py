"""Flow execution engine."""

from .coordinator import resume
from .engine import handle_inbound, release_contact, start_or_route
from .errors import ContactNotFoundError, ExecutionNotFoundError, FlowDefinitionError, FlowError
from .scheduler import resume_due_executions, run_scheduler_tick

__all__ = [
    "ContactNotFoundError",
    "ExecutionNotFoundError",
    "FlowDefinitionError",
    "FlowError",
    "handle_inbound",
    "release_contact",
    "resume",
    "resume_due_executions",
    "run_scheduler_tick",
    "start_or_route",
]

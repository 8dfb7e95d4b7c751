"""Exceptions raised by the flow engine."""
from __future__ import annotations


class FlowError(Exception):
    """Base class for flow engine errors."""


class ContactNotFoundError(FlowError):
    """Raised when an inbound event references an unknown contact."""


class ExecutionNotFoundError(FlowError):
    """Raised when a resume targets an execution that does not exist."""


class FlowDefinitionError(FlowError):
    """Raised when a submitted flow graph is malformed."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors

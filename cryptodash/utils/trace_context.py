"""Trace context management for following one request through the system."""

import contextvars
import uuid
from typing import Optional

# Context variable for storing the current trace ID
_trace_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trace_id", default=None
)

TRACE_HEADER = "X-Trace-Id"


def create_trace() -> str:
    """
    Generate a new unique trace ID and set it in the current context.

    Returns:
        A unique trace ID string (UUID4 format)
    """
    trace_id = str(uuid.uuid4())
    set_trace(trace_id)
    return trace_id


def get_current_trace() -> Optional[str]:
    """Get the current trace ID, or None outside a traced operation."""
    return _trace_id_context.get()


def set_trace(trace_id: str) -> None:
    _trace_id_context.set(trace_id)


def adopt_trace(incoming: Optional[str]) -> str:
    """
    Continue a caller-supplied trace or start a new one.

    Args:
        incoming: Trace ID from the X-Trace-Id request header, if any

    Returns:
        The trace ID now active in the current context
    """
    if incoming:
        try:
            uuid.UUID(incoming)
        except ValueError:
            return create_trace()
        set_trace(incoming)
        return incoming
    return create_trace()


def clear_trace() -> None:
    """Clear the trace ID from the current context."""
    _trace_id_context.set(None)

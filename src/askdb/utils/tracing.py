import uuid
from contextvars import ContextVar, Token
from typing import Optional

# Trace ID of the request currently being served; survives awaits within the request
trace_id_var: ContextVar[Optional[str]] = ContextVar('trace_id', default=None)

TRACE_ID_HEADER = "X-Trace-ID"


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return str(uuid.uuid4())


def set_trace_id(trace_id: str) -> Token:
    """Set the trace ID for the current context and return the reset token."""
    return trace_id_var.set(trace_id)


def reset_trace_id(token: Token) -> None:
    """Restore the trace ID that was active before set_trace_id()."""
    trace_id_var.reset(token)


def current_trace_id() -> Optional[str]:
    """Get the current trace ID."""
    return trace_id_var.get()


def get_trace_id() -> str:
    """Get existing trace ID or create a new one."""
    trace_id = current_trace_id()
    if trace_id is None:
        trace_id = generate_trace_id()
        set_trace_id(trace_id)
    return trace_id

"""Operation ID logging context for tracing booking mutations across modules.

Every commit or cancellation runs under its own operation ID, so a single
booking attempt can be followed through the committer, the backend adapter
and the refresh that reconciles it.

Usage:
    from lead_booking.logging_context import get_op_logger, new_operation_id

    new_operation_id()
    logger = get_op_logger(__name__)
    logger.info("Submitting booking")  # record.op_id == "OP-1a2b3c4d"
"""

import logging
import uuid
from contextvars import ContextVar

_op_id: ContextVar[str] = ContextVar("op_id", default="NO_OP_ID")


def set_operation_id(op_id: str) -> None:
    """Set the operation ID for the current async context."""
    _op_id.set(op_id)


def new_operation_id() -> str:
    """Generate, set and return a fresh operation ID."""
    op_id = f"OP-{uuid.uuid4().hex[:8]}"
    _op_id.set(op_id)
    return op_id


def get_operation_id() -> str:
    """Retrieve the current operation ID."""
    return _op_id.get()


class OperationIdFilter(logging.Filter):
    """Injects op_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.op_id = _op_id.get()  # type: ignore[attr-defined]
        return True


def get_op_logger(name: str) -> logging.Logger:
    """Return a logger with the OperationIdFilter attached.

    The filter adds ``op_id`` to each record so formatters can
    include ``%(op_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, OperationIdFilter) for f in logger.filters):
        logger.addFilter(OperationIdFilter())
    return logger

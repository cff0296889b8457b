"""Cycle context binding for structured logging.

Every trigger run (schedule check, probe check, capacity check) binds a
correlation ID so all log entries produced while handling that cycle can be
grouped together, including those emitted from deep inside the delivery path.

Usage:
    from infrastructure.logging import bind_cycle_context

    with bind_cycle_context(trigger="schedule_check", region="kyiv"):
        logger.info("region_check_started")

Dependencies:
    - structlog.contextvars
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_cycle_context(
    trigger: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """Bind cycle-scoped context to all logs within the context manager.

    Args:
        trigger: Name of the trigger that started the cycle.
        correlation_id: Unique cycle identifier. Auto-generated if not provided.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        The correlation ID bound for the block.
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}

    if trigger is not None:
        context["trigger"] = trigger

    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield context["correlation_id"]
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context.

    Returns:
        The correlation ID if set, None otherwise.
    """
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID in the current logging context."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_cycle_context() -> None:
    """Clear all cycle-scoped context from the logging context."""
    structlog.contextvars.clear_contextvars()

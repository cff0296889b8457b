"""Structured logging infrastructure.

This package provides centralized logging configuration and utilities
for the outage watch service using structlog.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_logger(): Get a logger instance with a specific name
    - get_module_logger(): Get a logger for the calling module
    - bind_cycle_context(): Context manager for trigger-cycle logging
    - get_correlation_id(): Get current correlation ID from context
    - set_correlation_id(): Set correlation ID in context
    - clear_cycle_context(): Clear all cycle context

Formatters:
    - add_app_info(): Processor to add app name/version
    - mask_sensitive_data(): Processor to redact secrets and bot tokens
    - truncate_large_values(): Processor to limit string lengths

Example:
    from infrastructure.logging import (
        configure_logging,
        get_module_logger,
        bind_cycle_context,
    )

    configure_logging()

    logger = get_module_logger()

    with bind_cycle_context(trigger="probe_check"):
        logger.info("presence_check_started")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_logger,
    get_module_logger,
)

from infrastructure.logging.context import (
    bind_cycle_context,
    get_correlation_id,
    set_correlation_id,
    clear_cycle_context,
)

from infrastructure.logging.formatters import (
    add_app_info,
    mask_sensitive_data,
    truncate_large_values,
    SENSITIVE_PATTERNS,
)

__all__ = [
    # Setup
    "configure_logging",
    "get_logger",
    "get_module_logger",
    # Context
    "bind_cycle_context",
    "get_correlation_id",
    "set_correlation_id",
    "clear_cycle_context",
    # Formatters
    "add_app_info",
    "mask_sensitive_data",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
]

"""Infrastructure modules for the outage watch service.

Centralized infrastructure components:
- configuration: Settings management (Settings and per-concern sub-settings)
- services: Cached providers (get_settings)
- logging: Structured logging (configure_logging, get_module_logger)
- operations: Result types, error classification, pipeline exceptions
- resilience: Clock abstraction and bounded retry
- events: In-process event bus
- notifications: Delivery dispatcher and Telegram transport
"""

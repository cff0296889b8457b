"""Event bus for in-process signals.

Handlers are registered per event type on a bus instance and awaited in
registration order when an event is published. A failing handler is logged
and never prevents the remaining handlers from running.
"""

import inspect
from typing import Any, Callable, Dict, List

from infrastructure.events.models import Event
from infrastructure.logging import get_module_logger

logger = get_module_logger()


class EventBus:
    """Instance-scoped publish/subscribe registry.

    Handlers may be plain functions or coroutine functions.

    Example:
        bus = EventBus()

        @bus.subscribe(CHANNEL_BLOCKED)
        async def on_channel_blocked(event: Event) -> None:
            ...

        await bus.publish(Event(event_type=CHANNEL_BLOCKED, recipient_id="42"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str):
        """Decorator registering a handler for ``event_type``."""

        def decorator(handler_func: Callable) -> Callable:
            self.register(event_type, handler_func)
            return handler_func

        return decorator

    def register(self, event_type: str, handler: Callable) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(
            "registered_event_handler",
            handler=getattr(handler, "__name__", "unknown"),
            event_type=event_type,
            total_handlers=len(self._handlers[event_type]),
        )

    async def publish(self, event: Event) -> List[Any]:
        """Deliver ``event`` to every handler registered for its type.

        Args:
            event: The event to publish.

        Returns:
            List of return values from the handlers that succeeded.
        """
        results = []
        handlers = self._handlers.get(event.event_type, [])

        logger.info(
            "publishing_event",
            event_type=event.event_type,
            handler_count=len(handlers),
            recipient_id=event.recipient_id,
            correlation_id=str(event.correlation_id),
        )

        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    handler=getattr(handler, "__name__", "unknown"),
                    event_type=event.event_type,
                    error=str(e),
                    correlation_id=str(event.correlation_id),
                )

        return results

    def handlers_for(self, event_type: str) -> List[Callable]:
        return list(self._handlers.get(event_type, []))

    def registered_events(self) -> List[str]:
        return list(self._handlers.keys())

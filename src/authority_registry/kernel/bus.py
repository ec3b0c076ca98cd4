"""
In-process audit event bus

Synchronous publish/subscribe for events that have already been durably
appended. Subscribers are external observers (indexers, mirrors, alerting);
they see each committed event exactly once, in stream order.
"""

from collections import defaultdict
from typing import Callable

from authority_registry.kernel.events import Event
from authority_registry.kernel.logging import get_logger

logger = get_logger(__name__)


EventHandler = Callable[[Event], None]

# Subscribing under this key receives every event type
ALL_EVENTS = "*"


class InProcessBus:
    """
    Simple synchronous in-process event bus

    Publishing happens after the append has committed, so a failing
    subscriber can never roll back or hide a state change.
    """

    def __init__(self) -> None:
        self._event_handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)
        logger.debug("InProcessBus initialized")

    def register_event_handler(self, event_type: str, handler: EventHandler) -> None:
        """
        Register an event handler (can have multiple per event type)

        Args:
            event_type: Type of event to handle (e.g., "AuthorityGranted"),
                or ALL_EVENTS for every type
            handler: Function called with each matching event
        """
        self._event_handlers[event_type].append(handler)
        logger.debug(
            "Event handler registered",
            event_type=event_type,
            total_handlers=len(self._event_handlers[event_type]),
        )

    def publish_event(self, event: Event) -> None:
        """
        Publish an event to all registered handlers

        Handlers are called synchronously in registration order, type-specific
        handlers first. A failing handler is logged and skipped.
        """
        handlers = self._event_handlers.get(event.event_type, []) + self._event_handlers.get(
            ALL_EVENTS, []
        )

        if not handlers:
            logger.debug(
                "No handlers registered for event type",
                event_type=event.event_type,
                event_id=event.event_id,
            )
            return

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    stream_id=event.stream_id,
                    error=str(e),
                    exc_info=True,
                )

    def publish_events(self, events: list[Event]) -> None:
        """Publish multiple events in order"""
        for event in events:
            self.publish_event(event)

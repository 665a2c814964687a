"""
In-process event bus for import pipeline notifications.

Event types are a fixed enumeration and every event carries a typed
payload. Subscribers run synchronously in subscription order; a failing
subscriber is logged and does not affect the publisher or other
subscribers.

Usage:
    bus = EventBus()
    bus.subscribe(EventType.SIDELOAD_COMPLETED, resolver.handle_sideload)
    bus.publish(SideloadCompleted(remote_url=url, record_id=42, metadata={}))
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docbridge_common.media import SideloadSession

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Events published during an import."""

    SIDELOAD_COMPLETED = "sideload_completed"
    DOCUMENT_IMPORTED = "document_imported"


@dataclass(frozen=True)
class SideloadCompleted:
    """A remote asset was downloaded and stored locally."""

    remote_url: str
    record_id: int
    metadata: dict[str, str] = field(default_factory=dict)
    session: "SideloadSession | None" = None

    event_type = EventType.SIDELOAD_COMPLETED


@dataclass(frozen=True)
class DocumentImported:
    """A document was persisted as a content record."""

    record_id: int
    project_id: str
    document_id: str
    created: bool
    images_replaced: int = 0

    event_type = EventType.DOCUMENT_IMPORTED


Event = SideloadCompleted | DocumentImported


class EventBus:
    """Synchronous publish/subscribe dispatcher keyed by EventType."""

    def __init__(self):
        self._subscribers: dict[EventType, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable[[Any], None]) -> None:
        """Register a handler for one event type."""
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable[[Any], None]) -> None:
        """Remove a previously registered handler, if present."""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: Event) -> int:
        """
        Deliver an event to every subscriber of its type.

        Args:
            event: Event payload

        Returns:
            Number of subscribers that handled the event without raising
        """
        delivered = 0
        for handler in list(self._subscribers.get(event.event_type, [])):
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Subscriber {getattr(handler, '__qualname__', handler)} failed "
                    f"for {event.event_type.value}: {e}",
                    exc_info=True,
                )
        return delivered

"""Synchronous event hub used to notify UI collaborators.

Handlers are plain callables receiving the event payload. A failing handler
is logged and skipped; it never breaks the component that fired the event.

Usage:
    hub = EventHub()
    hub.subscribe(EventType.TOUR_STEP_CHANGED, lambda step: print(step.current))
    hub.fire(EventType.TOUR_STEP_CHANGED, step)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Events emitted by the engine."""
    TOUR_STEP_CHANGED = "tour_step_changed"
    TOUR_ENDED = "tour_ended"
    TOUR_NOTICE = "tour_notice"
    SNAPSHOT_CREATED = "snapshot_created"
    CONTRACT_ANALYZED = "contract_analyzed"


Handler = Callable[[Any], None]


class EventHub:
    """Registry of event handlers for one analysis session."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Handler]] = {}

    def subscribe(self, event: EventType, handler: Handler) -> Callable[[], None]:
        """Register *handler* for *event*; returns an unsubscribe callable."""
        self._handlers.setdefault(event, []).append(handler)
        return lambda: self.unsubscribe(event, handler)

    def unsubscribe(self, event: EventType, handler: Handler) -> bool:
        try:
            self._handlers.get(event, []).remove(handler)
        except ValueError:
            return False
        return True

    def fire(self, event: EventType, payload: Any = None) -> int:
        """Invoke every handler for *event*. Returns how many succeeded."""
        delivered = 0
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
                delivered += 1
            except Exception as e:
                logger.warning("Handler for %s failed: %s", event.value, e)
        return delivered

    def handler_count(self, event: EventType) -> int:
        return len(self._handlers.get(event, []))

    def clear(self) -> None:
        self._handlers.clear()

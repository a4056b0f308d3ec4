"""Store-scoped event bus.

The entity store publishes an event for every write that can change what
readers see. Publication is synchronous: by the time ``upsert`` returns,
every listener (including cross-reference cache invalidation) has run.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class HivemindEventKind(str, Enum):
    NEW_ENTITY = "new_entity"
    SOURCE_ADDED = "source_added"
    ENTITY_UPDATED = "entity_updated"
    CROSS_REFERENCE = "cross_reference"
    ENTITY_REMOVED = "entity_removed"
    ENTITIES_CLEARED = "entities_cleared"


@dataclass(frozen=True)
class HivemindEvent:
    kind: HivemindEventKind
    entity_hash: str | None = None
    identity_count: int = 0


Listener = Callable[[HivemindEvent], None]


class EventBus:
    """Subscribe/unsubscribe registry with integer listener ids.

    Ids come from a counter owned by this bus instance.
    """

    def __init__(self) -> None:
        self._listeners: dict[int, Listener] = {}
        self._ids = itertools.count(1)

    def subscribe(self, listener: Listener) -> int:
        """Register a listener and return its id for later unsubscribe."""
        listener_id = next(self._ids)
        self._listeners[listener_id] = listener
        return listener_id

    def unsubscribe(self, listener_id: int) -> bool:
        """Remove a listener. Returns False if the id was unknown."""
        return self._listeners.pop(listener_id, None) is not None

    def publish(self, event: HivemindEvent) -> None:
        """Deliver an event to every listener in subscription order.

        A failing listener is logged and skipped; it never aborts the write
        that produced the event.
        """
        logger.debug("Hivemind event: %s %s", event.kind.value, event.entity_hash)
        for listener_id, listener in list(self._listeners.items()):
            try:
                listener(event)
            except Exception:
                logger.exception("Hivemind listener %d failed", listener_id)

    def __len__(self) -> int:
        return len(self._listeners)

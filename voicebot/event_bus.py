"""
Session event bus.
The voice session publishes state changes and transcript turns synchronously
from its transitions; each subscriber drains its own queue in a task.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Coroutine, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class EventType(Enum):
    STATE_CHANGED = auto()   # session entered a state
    TURN_ADDED = auto()      # a turn was appended to the transcript


@dataclass
class Event:
    type: EventType
    data: Any
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "session"


def state_event(state: str, error: Optional[str] = None) -> Event:
    """Build a STATE_CHANGED event carrying the current error message, if any."""
    return Event(EventType.STATE_CHANGED, {"state": state, "error": error})


def turn_event(role: str, text: str) -> Event:
    return Event(EventType.TURN_ADDED, {"role": role, "text": text})


Subscriber = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    """
    Fan-out of session events to async presenters.

    ``publish_nowait`` never blocks the caller: a subscriber that falls
    ``maxsize`` events behind loses the newest ones.
    """

    def __init__(self, maxsize: int = 256):
        self._maxsize = maxsize
        self._routes: Dict[EventType, List[Tuple[asyncio.Queue, Subscriber]]] = {}
        self._tasks: List[asyncio.Task] = []
        self._running = False

    def subscribe(self, event_type: EventType, handler: Subscriber) -> None:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._maxsize)
        self._routes.setdefault(event_type, []).append((queue, handler))
        logger.debug("Subscriber registered for %s", event_type.name)

    def publish_nowait(self, event: Event) -> None:
        """Hand an event to every subscriber of its type."""
        for queue, _ in self._routes.get(event.type, []):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Subscriber for %s is behind, dropping event", event.type.name)

    async def start(self) -> None:
        self._running = True
        for event_type, routes in self._routes.items():
            for queue, handler in routes:
                self._tasks.append(
                    asyncio.create_task(self._drain(queue, handler, event_type.name))
                )
        logger.info("EventBus started with %d subscribers", len(self._tasks))

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("EventBus stopped")

    async def _drain(self, queue: asyncio.Queue, handler: Subscriber, name: str) -> None:
        while True:
            event = await queue.get()
            try:
                await handler(event)
            except Exception:
                logger.exception("Error in %s subscriber", name)

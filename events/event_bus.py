"""
Event bus for transaction lifecycle notifications
"""

import asyncio
import logging
from typing import Dict, List, Callable, Any, Awaitable, Set
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)

Listener = Callable[["Event"], Awaitable[None]]


@dataclass
class Event:
    """Event data structure"""
    type: str
    data: Dict[str, Any]
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    source: str = "system"


class EventBus:
    """
    Observer registry for tracker notifications.

    Listeners are coroutine functions taking a single Event. Emitting only
    schedules delivery: listeners run in a background task, so an emitter
    holding a lock never waits on them. A failing listener is logged and never
    reaches the emitter. wait_idle() waits until scheduled deliveries finish.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Listener]] = defaultdict(list)
        self.dispatch_tasks: Set[asyncio.Task] = set()
        logger.debug("EventBus initialized")

    async def _dispatch_event(self, event: Event):
        """Dispatch event to all registered listeners"""
        listeners = list(self.listeners.get(event.type, []))

        if not listeners:
            logger.debug(f"No listeners for event type: {event.type}")
            return

        logger.debug(f"Dispatching {event.type} to {len(listeners)} listeners")

        results = await asyncio.gather(
            *(self._call_listener(listener, event) for listener in listeners),
            return_exceptions=True
        )

        for listener, result in zip(listeners, results):
            if isinstance(result, Exception):
                logger.error(f"Listener {_listener_name(listener)} failed: {result}")

    async def _call_listener(self, listener: Listener, event: Event):
        """Call a listener with error handling"""
        try:
            await listener(event)
        except Exception as e:
            logger.error(f"Error in listener {_listener_name(listener)}: {e}")
            raise

    def subscribe(self, event_type: str, listener: Listener):
        """Subscribe to an event type"""
        self.listeners[event_type].append(listener)
        logger.debug(f"Subscribed {_listener_name(listener)} to {event_type}")

    def unsubscribe(self, event_type: str, listener: Listener):
        """Unsubscribe from an event type"""
        if listener in self.listeners[event_type]:
            self.listeners[event_type].remove(listener)
            logger.debug(f"Unsubscribed {_listener_name(listener)} from {event_type}")

    async def emit(self, event_type: str, data: Dict[str, Any], source: str = "system"):
        """Emit an event; its listeners run without blocking the emitter"""
        event = Event(type=event_type, data=data, source=source)
        task = asyncio.create_task(self._dispatch_event(event))
        self.dispatch_tasks.add(task)
        task.add_done_callback(self.dispatch_tasks.discard)
        logger.debug(f"Emitted event: {event_type} from {source}")

    async def wait_idle(self):
        """Wait until every scheduled delivery, including chained ones, has run"""
        while self.dispatch_tasks:
            await asyncio.gather(*list(self.dispatch_tasks))


def _listener_name(listener: Callable) -> str:
    return getattr(listener, "__name__", repr(listener))


class EventTypes:
    """Transaction lifecycle event types"""
    # Terminal outcomes
    TX_CONFIRMED = "tx:confirmed"
    TX_DROPPED = "tx:dropped"
    TX_FAILED = "tx:failed"

    # Side notifications
    TX_WARNING = "tx:warning"
    TX_RETRY = "tx:retry"
    TX_BLOCK_UPDATE = "tx:block-update"

    TERMINAL = (TX_CONFIRMED, TX_DROPPED, TX_FAILED)
    ALL = (TX_CONFIRMED, TX_DROPPED, TX_FAILED, TX_WARNING, TX_RETRY, TX_BLOCK_UPDATE)

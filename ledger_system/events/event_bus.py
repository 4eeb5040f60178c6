# ledger_system/events/event_bus.py
"""
In-process bus for post-commit side effects.
Subscribers run after the ledger transaction committed; their failures
are logged and never reach the service that published.
"""
from typing import Any, Callable, Dict, List, Set
import asyncio
import inspect
import logging

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]


class EventBus:
    """
    Singleton. publish() schedules delivery as a detached task,
    emit() delivers inline. drain() waits for detached deliveries.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._handlers = {}
            instance._pending = set()
            cls._instance = instance
        return cls._instance

    def subscribe(self, eventName: str, handler: Handler):
        self._handlers.setdefault(eventName, []).append(handler)
        logger.debug(f"{getattr(handler, '__name__', handler)} listens to {eventName}")

    def unsubscribe(self, eventName: str, handler: Handler):
        handlers: List[Handler] = self._handlers.get(eventName, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, eventName: str, data: Dict[str, Any]):
        """Deliver to every subscriber in subscription order."""
        for handler in list(self._handlers.get(eventName, [])):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Subscriber {getattr(handler, '__name__', handler)} failed on {eventName}: {e}")

    def publish(self, eventName: str, data: Dict[str, Any]) -> None:
        """Fire-and-forget. Must be called from a running event loop."""
        if not self._handlers.get(eventName):
            return

        task = asyncio.get_running_loop().create_task(self.emit(eventName, data), name=eventName)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending(self) -> Set[asyncio.Task]:
        return set(self._pending)

    async def drain(self):
        # Подписчики могут публиковать новые события
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def clear(self):
        self._handlers.clear()


eventBus = EventBus()


class LedgerEvents:
    """Event names published by ledger services."""

    DONATION_CREATED = "donation.created"
    DONATION_STATUS_CHANGED = "donation.status_changed"
    DONATION_DELETED = "donation.deleted"

    REACTION_TOGGLED = "reaction.toggled"

    EVENT_REGISTERED = "event.registered"

    VOTE_RECORDED = "election.vote_recorded"
    RESULTS_PUBLISHED = "election.results_published"

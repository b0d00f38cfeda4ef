"""Fan-out of session events to read-only observers."""

import asyncio
import logging
from collections.abc import Callable

from backend.app.models.events import SessionEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[SessionEvent], None]


class SessionBroadcaster:
    """Publishes SessionEvents to queues and callbacks.

    Events are kept in order so that a late subscriber can replay the run
    from the beginning before receiving live events.
    """

    def __init__(self) -> None:
        self._history: list[SessionEvent] = []
        self._queues: list[asyncio.Queue[SessionEvent]] = []
        self._callbacks: list[EventCallback] = []

    @property
    def history(self) -> list[SessionEvent]:
        return list(self._history)

    def subscribe(self, *, replay: bool = True) -> asyncio.Queue[SessionEvent]:
        """Register a queue that receives every future event.

        Args:
            replay: Pre-fill the queue with events already published

        Returns:
            Unbounded queue; call unsubscribe() when done reading
        """
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        if replay:
            for event in self._history:
                queue.put_nowait(event)
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[SessionEvent]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def clear_history(self) -> None:
        """Forget published events; subscribers stay registered."""
        self._history.clear()

    def add_callback(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)

    def remove_callback(self, callback: EventCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def publish(self, event: SessionEvent) -> None:
        """Deliver an event to all observers.

        A failing callback is logged and skipped; it never reaches the
        publishing session.
        """
        self._history.append(event)

        for queue in list(self._queues):
            queue.put_nowait(event)

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    f"[observers] callback failed trip_id={event.trip_id} kind={event.kind}"
                )

"""Event bus for delivering scan events to observers.

The EventBus provides a publish-subscribe mechanism for delivering events from
the scan engine (which runs in async context) to observers. Events are queued
in publish order and dispatched by a single consumer task, so events from one
producer reach every subscriber in the order they were published.
"""

import asyncio
import inspect
import logging
from typing import Callable, Any
from collections import defaultdict


logger = logging.getLogger(__name__)


class EventBus:
    """Queue-backed event bus for scan observers.

    Components subscribe to specific event types and receive notifications
    when those events are published. Handler errors are logged and isolated
    from other handlers and from the publisher.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(ScanProgressEvent, lambda e: print(e.message))
        >>> worker = asyncio.create_task(bus.process_events())
        >>> await bus.publish(ScanProgressEvent("abc", "Steam", message="Scan started"))
    """

    def __init__(self):
        """Initialize the event bus."""
        self._subscribers: dict[type, list[Callable]] = defaultdict(list)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._processing: bool = False
        self._event_count: int = 0
        self._error_count: int = 0
        self._dropped_count: int = 0

    def subscribe(self, event_type: type, callback: Callable) -> None:
        """Subscribe to events of a specific type.

        Args:
            event_type: The event class to subscribe to
            callback: Function to call when event is published.
                     Can be sync or async.
        """
        self._subscribers[event_type].append(callback)
        logger.debug(f"Subscribed to {event_type.__name__} (total subscribers: {len(self._subscribers[event_type])})")

    def unsubscribe(self, event_type: type, callback: Callable) -> None:
        """Unsubscribe from events of a specific type.

        Args:
            event_type: The event class to unsubscribe from
            callback: The callback function to remove
        """
        if event_type in self._subscribers:
            try:
                self._subscribers[event_type].remove(callback)
                logger.debug(f"Unsubscribed from {event_type.__name__}")
            except ValueError:
                logger.warning(f"Callback not found for {event_type.__name__}")

    def has_subscribers(self, event_type: type) -> bool:
        """Check whether anyone listens for an event type."""
        return bool(self._subscribers.get(event_type))

    async def publish(self, event: Any) -> None:
        """Publish an event (async context).

        Args:
            event: The event instance to publish
        """
        self.publish_nowait(event)

    def publish_nowait(self, event: Any) -> None:
        """Publish an event from synchronous code running in the event loop.

        Events with no subscribers are dropped immediately.

        Args:
            event: The event instance to publish
        """
        if not self.has_subscribers(type(event)):
            self._dropped_count += 1
            return
        self._queue.put_nowait(event)

    async def process_events(self) -> None:
        """Process events from the queue.

        This should be run as a background task. It runs continuously,
        processing events as they arrive.

        Example:
            >>> worker = asyncio.create_task(event_bus.process_events())
        """
        self._processing = True
        logger.debug("Event bus processing started")

        try:
            while self._processing:
                # Wait for next event
                event = await self._queue.get()
                try:
                    await self._dispatch(event)
                finally:
                    self._queue.task_done()

        except asyncio.CancelledError:
            logger.debug("Event bus processing cancelled")
            raise
        finally:
            self._processing = False

    async def _dispatch(self, event: Any) -> None:
        event_type = type(event)
        self._event_count += 1

        # Copy so handlers may unsubscribe while being called
        callbacks = list(self._subscribers.get(event_type, []))
        if not callbacks:
            logger.debug(f"No subscribers for {event_type.__name__}")
            return

        for callback in callbacks:
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    callback(event)
            except Exception as e:
                self._error_count += 1
                logger.error(
                    f"Error in event handler for {event_type.__name__}: {e}",
                    exc_info=True
                )
                # Continue processing other handlers

    async def drain(self, timeout: float = 1.0) -> bool:
        """Wait until every queued event has been dispatched.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            True if the queue drained in time
        """
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self) -> None:
        """Stop processing events.

        Waits for pending events to be processed before stopping, with a timeout.
        """
        logger.debug("Stopping event bus...")

        if await self.drain(timeout=1.0):
            logger.debug("Event queue drained successfully")
        else:
            # Queue didn't drain in time - force drain remaining items
            remaining = self._queue.qsize()
            if remaining > 0:
                logger.warning(f"Event queue timeout - {remaining} events remaining, force draining")
                # Drain remaining items without processing
                while not self._queue.empty():
                    try:
                        self._queue.get_nowait()
                        self._queue.task_done()
                    except asyncio.QueueEmpty:
                        break

        self._processing = False
        logger.debug(
            f"Event bus stopped. Processed {self._event_count} events "
            f"with {self._error_count} errors"
        )

    def get_stats(self) -> dict[str, int]:
        """Get event bus statistics.

        Returns:
            Dictionary with 'events_processed', 'errors', 'dropped', 'queue_size', 'subscriber_count'
        """
        return {
            'events_processed': self._event_count,
            'errors': self._error_count,
            'dropped': self._dropped_count,
            'queue_size': self._queue.qsize(),
            'subscriber_count': sum(len(callbacks) for callbacks in self._subscribers.values())
        }

    @property
    def is_processing(self) -> bool:
        """Check if event bus is currently processing events."""
        return self._processing

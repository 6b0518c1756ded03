"""Relay of scan lifecycle events to observers."""

import logging
from typing import Optional

from arcana.ui.event_bus import EventBus
from arcana.ui.events import ScanCompleteEvent, ScanProgressEvent

logger = logging.getLogger(__name__)


class ProgressBroadcaster:
    """
    Stateless fan-out of scan events onto the event bus.

    Emitting never raises and is a no-op when nobody is subscribed. Events
    are handed to the bus in call order; the broadcaster does not batch,
    reorder or de-duplicate them.
    """

    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus

    def emit_progress(self, event: ScanProgressEvent) -> None:
        if event.error:
            logger.debug(f"[{event.platform}] {event.task_id[:8]} error: {event.error}")
        else:
            logger.debug(
                f"[{event.platform}] {event.task_id[:8]} "
                f"{event.phase or '-'} {event.message or ''}".rstrip()
            )
        self._publish(event)

    def emit_complete(self, result: ScanCompleteEvent) -> None:
        self._publish(result)

    def _publish(self, event) -> None:
        if self.event_bus is None:
            return
        try:
            self.event_bus.publish_nowait(event)
        except Exception as e:
            # Observers must never break a scan
            logger.error(f"Failed to publish {type(event).__name__}: {e}", exc_info=True)

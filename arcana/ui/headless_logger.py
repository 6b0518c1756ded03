"""
Headless logger for CLI/automation environments.

Turns scan events into plain log lines and keeps per-task outcomes for the
end-of-run summary.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from arcana.ui.event_bus import EventBus
from arcana.ui.events import ScanCompleteEvent, ScanProgressEvent

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    """Final state of one scan task as seen by an observer."""
    task_id: str
    platform: str
    status: str = 'running'  # 'running', 'complete', 'cancelled', 'failed'
    added: int = 0
    skipped: int = 0
    failed: int = 0
    candidates: int = 0
    duration_ms: Optional[int] = None
    error: Optional[str] = None


class HeadlessLogger:
    """
    Minimal observer for headless runs.

    Output includes:
    - Scan start and phase changes
    - Errors
    - Completion counts

    Per-item progress is only logged at DEBUG level.
    """

    def __init__(self, event_bus: EventBus):
        """
        Initialize headless logger.

        Args:
            event_bus: Bus to observe
        """
        self.event_bus = event_bus
        self.outcomes: Dict[str, TaskOutcome] = {}
        self._last_phase: Dict[str, Optional[str]] = {}
        self._started = False

    def start(self) -> None:
        """Subscribe to scan events."""
        if self._started:
            return
        self.event_bus.subscribe(ScanProgressEvent, self.on_progress)
        self.event_bus.subscribe(ScanCompleteEvent, self.on_complete)
        self._started = True

    def stop(self) -> None:
        """Unsubscribe from scan events."""
        if not self._started:
            return
        self.event_bus.unsubscribe(ScanProgressEvent, self.on_progress)
        self.event_bus.unsubscribe(ScanCompleteEvent, self.on_complete)
        self._started = False

    def _outcome(self, task_id: str, platform: str) -> TaskOutcome:
        outcome = self.outcomes.get(task_id)
        if outcome is None:
            outcome = TaskOutcome(task_id=task_id, platform=platform)
            self.outcomes[task_id] = outcome
        return outcome

    def on_progress(self, event: ScanProgressEvent) -> None:
        outcome = self._outcome(event.task_id, event.platform)

        if event.error:
            outcome.status = 'failed'
            outcome.error = event.error
            logger.error(f"[{event.platform}] {event.error}")
            return

        if event.done and event.phase == 'cancelled':
            outcome.status = 'cancelled'
            logger.warning(f"[{event.platform}] {event.message or 'Scan cancelled'}")
            return

        if event.current is not None and event.total:
            # Too verbose for INFO
            logger.debug(f"[{event.platform}] {event.phase}: {event.current}/{event.total} {event.message or ''}".rstrip())
        elif event.phase != self._last_phase.get(event.task_id) or event.done:
            logger.info(f"[{event.platform}] {event.message or event.phase}")

        self._last_phase[event.task_id] = event.phase

    def on_complete(self, result: ScanCompleteEvent) -> None:
        outcome = self._outcome(result.task_id, result.platform)
        outcome.status = 'complete'
        outcome.added = result.added
        outcome.skipped = result.skipped
        outcome.failed = result.failed
        outcome.candidates = len(result.candidates)
        outcome.duration_ms = result.duration_ms
        logger.info(
            f"[{result.platform}] {len(result.candidates)} found, {result.added} added, "
            f"{result.skipped} already in catalog, {result.failed} failed "
            f"({result.duration_ms / 1000:.1f}s)"
        )

    def get_outcomes(self) -> List[TaskOutcome]:
        return list(self.outcomes.values())

    @property
    def has_failures(self) -> bool:
        return any(o.status == 'failed' for o in self.outcomes.values())

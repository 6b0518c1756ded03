"""
Scan engine for arcana.

Coordinates a platform scan end to end:
1. Register the task
2. Check the scanner's prerequisites
3. Run the scan, relaying progress
4. Ingest the candidates
5. Report the outcome and drop the task

Each accepted scan runs as its own asyncio task. Callers get a task id back
immediately and learn about everything else through the event bus.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Set

from arcana.catalog.store import CatalogStore
from arcana.errors import PrerequisitesNotMet, ScanFailure
from arcana.scanner.base import PlatformScanner
from arcana.scanner.registry import ScannerRegistry
from arcana.ui.event_bus import EventBus
from arcana.ui.events import ScanCompleteEvent, ScanProgressEvent
from arcana.workflow.broadcaster import ProgressBroadcaster
from arcana.workflow.merger import IngestionMerger
from arcana.workflow.task_registry import DuplicatePolicy, ScanTask, ScanTaskRegistry

logger = logging.getLogger(__name__)


class ScanEngine:
    """
    Launches and tracks platform scans.

    Scan routine states:
        pending -> prerequisite-check -> running -> completing | cancelling | failing -> removed

    Cancellation is cooperative. It is observed in the progress callback
    (events are dropped from then on), before the scan starts, and when the
    scan returns. A scanner that never returns keeps its routine alive; the
    registry entry is still dropped on cancel.

    Example:
        engine = ScanEngine(registry, store)
        engine.subscribe_complete(lambda result: print(result.added))
        task_id = engine.request_scan('Steam')
        await engine.wait_idle()
        await engine.shutdown()   # delivers pending events
    """

    def __init__(
        self,
        scanners: ScannerRegistry,
        store: CatalogStore,
        event_bus: Optional[EventBus] = None,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.COALESCE,
        default_genre: str = 'Unknown'
    ):
        """
        Initialize scan engine

        Args:
            scanners: Platform scanner registry
            store: Catalog store that receives ingested games
            event_bus: Event bus for progress/complete events (created if omitted)
            duplicate_policy: Behavior for a second scan of a live platform
            default_genre: Genre for candidates without one
        """
        self.scanners = scanners
        self.store = store
        # An engine that creates its own bus also runs its consumer
        self._owns_bus = event_bus is None
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.tasks = ScanTaskRegistry(duplicate_policy)
        self.broadcaster = ProgressBroadcaster(self.event_bus)
        self.merger = IngestionMerger(store, default_genre=default_genre)

        # Strong references so routines are not garbage collected mid-scan
        self._routines: Set[asyncio.Task] = set()
        self._routines_by_id: Dict[str, asyncio.Task] = {}
        # Task ids whose terminal progress event has been emitted
        self._terminated: Set[str] = set()
        self._bus_worker: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        scanners: ScannerRegistry,
        store: CatalogStore,
        event_bus: Optional[EventBus] = None
    ) -> 'ScanEngine':
        """Build an engine using the `scanning` config section."""
        scanning = config.get('scanning') or {}
        return cls(
            scanners,
            store,
            event_bus=event_bus,
            duplicate_policy=DuplicatePolicy(scanning.get('duplicate_policy', 'coalesce')),
            default_genre=scanning.get('default_genre', 'Unknown'),
        )

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    def request_scan(self, platform: str) -> str:
        """
        Start a scan for a platform and return without waiting for it.

        Must be called from a running event loop.

        Args:
            platform: Exact platform name

        Returns:
            Task id (the live task's id when the policy coalesces)

        Raises:
            NoScannerRegistered: If no scanner handles this platform
            ScanAlreadyRunning: If the policy rejects duplicate scans
        """
        scanner = self.scanners.require(platform)
        loop = asyncio.get_running_loop()

        task = self.tasks.start(platform)
        if task.id in self._routines_by_id:
            return task.id

        self._ensure_bus_worker(loop)
        routine = loop.create_task(self._run_scan(task, scanner), name=f"scan-{platform}-{task.id[:8]}")
        self._routines.add(routine)
        self._routines_by_id[task.id] = routine
        routine.add_done_callback(lambda t, task=task: self._forget_routine(task, t))

        logger.info(f"Scan requested for {platform} (task {task.id})")
        return task.id

    def cancel_scan(self, task_id: str) -> bool:
        """
        Request cooperative cancellation of a scan.

        Returns:
            True if the task was live, False otherwise (never raises)
        """
        return self.tasks.cancel(task_id)

    def list_active_scans(self) -> List[Dict[str, Any]]:
        """Snapshot of live scans as {'id', 'platform', 'started_at'} dicts."""
        return self.tasks.list()

    def subscribe_progress(self, callback: Callable[[ScanProgressEvent], Any]) -> None:
        self.event_bus.subscribe(ScanProgressEvent, callback)

    def subscribe_complete(self, callback: Callable[[ScanCompleteEvent], Any]) -> None:
        self.event_bus.subscribe(ScanCompleteEvent, callback)

    async def cancel_after(self, task_id: str, seconds: float) -> bool:
        """
        Watchdog: cancel a scan if it is still live after a deadline.

        Args:
            task_id: Task to supervise
            seconds: Deadline in seconds

        Returns:
            True if the watchdog cancelled the task
        """
        await asyncio.sleep(seconds)
        if task_id not in self.tasks:
            return False
        logger.warning(f"Scan task {task_id} exceeded {seconds}s, cancelling")
        return self.cancel_scan(task_id)

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every running scan routine to finish.

        Args:
            timeout: Optional maximum wait in seconds

        Returns:
            True if all routines finished in time
        """
        pending = set(self._routines)
        if not pending:
            return True
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        return not still_pending

    async def shutdown(self) -> None:
        """
        Cancel all scan routines and wait for them to exit.

        Every cancelled routine still gets its terminal 'cancelled' event. If
        the engine created its own event bus, pending events are delivered and
        the bus consumer is stopped.
        """
        routines = list(self._routines)
        if routines:
            logger.info(f"Shutting down {len(routines)} scan routine(s)")
            for task_id in list(self._routines_by_id):
                self.tasks.cancel(task_id)
            for routine in routines:
                routine.cancel()
            await asyncio.gather(*routines, return_exceptions=True)

        if self._bus_worker is not None:
            await self.event_bus.stop()
            self._bus_worker.cancel()
            try:
                await self._bus_worker
            except asyncio.CancelledError:
                pass
            self._bus_worker = None

    def _ensure_bus_worker(self, loop: asyncio.AbstractEventLoop) -> None:
        if not self._owns_bus:
            return
        if self._bus_worker is None or self._bus_worker.done():
            self._bus_worker = loop.create_task(self.event_bus.process_events(), name="scan-event-bus")

    def _forget_routine(self, task: ScanTask, routine: asyncio.Task) -> None:
        self._routines.discard(routine)
        if self._routines_by_id.get(task.id) is routine:
            del self._routines_by_id[task.id]

        # A routine cancelled before its first step never ran _run_scan
        if routine.cancelled() and task.id not in self._terminated:
            self.tasks.remove(task.id)
            self._emit_cancelled(task)
        self._terminated.discard(task.id)

    # ------------------------------------------------------------------
    # Scan routine
    # ------------------------------------------------------------------

    def _progress(self, task: ScanTask, **fields: Any) -> None:
        if fields.get('done'):
            self._terminated.add(task.id)
        self.broadcaster.emit_progress(ScanProgressEvent(task_id=task.id, platform=task.platform, **fields))

    def _emit_cancelled(self, task: ScanTask) -> None:
        logger.info(f"{task.platform} scan cancelled (task {task.id})")
        self._progress(task, phase='cancelled', message='Scan cancelled', done=True)

    def _emit_failed(self, task: ScanTask, error: Exception) -> None:
        logger.warning(f"{task.platform} scan failed (task {task.id}): {error}")
        self._progress(task, error=str(error), done=True)

    async def _run_scan(self, task: ScanTask, scanner: PlatformScanner) -> None:
        try:
            await self._execute(task, scanner)
        except asyncio.CancelledError:
            # shutdown() cancelled the routine itself
            if task.id not in self._terminated:
                self._emit_cancelled(task)
            raise
        except Exception as e:
            # Ingestion or observer bugs still end the task with a terminal event
            logger.error(f"Unexpected error in {task.platform} scan (task {task.id}): {e}", exc_info=True)
            self._emit_failed(task, ScanFailure(task.platform, e))
        finally:
            self.tasks.remove(task.id)
            logger.debug(f"Scan task {task.id} removed")

    async def _execute(self, task: ScanTask, scanner: PlatformScanner) -> None:
        # prerequisite-check
        try:
            ready = await scanner.can_run()
        except Exception as e:
            self._emit_failed(task, ScanFailure(task.platform, e))
            return

        if not ready:
            self._emit_failed(task, PrerequisitesNotMet(task.platform))
            return

        if task.cancelled:
            self._emit_cancelled(task)
            return

        # running
        logger.info(f"{task.platform} scan started (task {task.id})")
        self._progress(task, phase='start', message='Scan started')
        started = time.monotonic()

        def report(
            phase: Optional[str] = None,
            current: Optional[int] = None,
            total: Optional[int] = None,
            message: Optional[str] = None
        ) -> None:
            if task.cancelled:
                return
            self._progress(task, phase=phase, current=current, total=total, message=message)

        try:
            candidates = await scanner.scan(report, task.token)
        except Exception as e:
            if task.cancelled:
                self._emit_cancelled(task)
            else:
                self._emit_failed(task, ScanFailure(task.platform, e))
            return

        # cancelling: partial output is discarded, not partially ingested
        if task.cancelled:
            self._emit_cancelled(task)
            return

        # completing
        result = await self.merger.ingest(
            task.id, task.platform, candidates or [], started=started, progress=report
        )
        logger.info(f"{task.platform} scan complete: added {result.added} games (task {task.id})")
        self._progress(task, phase='done', message=f"Added {result.added} games", done=True)
        self.broadcaster.emit_complete(result)

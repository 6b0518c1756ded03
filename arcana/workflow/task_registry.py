"""
Registry of in-flight scan tasks

Single source of truth for which scans are running. Task state lives only in
memory and is never persisted.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any

from arcana.errors import ScanAlreadyRunning
from arcana.scanner.base import CancellationToken

logger = logging.getLogger(__name__)


class DuplicatePolicy(Enum):
    """What start() does when the platform already has a live task."""
    ALLOW = "allow"          # Start a second, independent task
    COALESCE = "coalesce"    # Return the live task
    REJECT = "reject"        # Raise ScanAlreadyRunning


@dataclass
class ScanTask:
    """Live state of one scan"""
    platform: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    token: CancellationToken = field(default_factory=CancellationToken, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'platform': self.platform,
            'started_at': self.started_at,
        }


class ScanTaskRegistry:
    """
    Thread-safe table of live scan tasks

    All map mutations happen under one lock; the lock is never held while a
    scan runs. Cancelling a task sets its token and removes it right away,
    without waiting for the running routine to notice.

    Example:
        registry = ScanTaskRegistry(DuplicatePolicy.COALESCE)
        task = registry.start('Steam')
        registry.cancel(task.id)   # True
        registry.cancel(task.id)   # False (already removed)
    """

    def __init__(self, duplicate_policy: DuplicatePolicy = DuplicatePolicy.COALESCE):
        """
        Initialize task registry

        Args:
            duplicate_policy: Behavior for a second start() on a live platform
        """
        self.duplicate_policy = duplicate_policy
        # Insertion-ordered: list() reports tasks in start order
        self._tasks: Dict[str, ScanTask] = {}
        self._lock = threading.Lock()

    def start(self, platform: str) -> ScanTask:
        """
        Register a new scan task for a platform

        Args:
            platform: Platform name

        Returns:
            The new task, or the live one under the COALESCE policy

        Raises:
            ScanAlreadyRunning: Under the REJECT policy if a task is live
        """
        with self._lock:
            if self.duplicate_policy is not DuplicatePolicy.ALLOW:
                existing = self._find_by_platform(platform)
                if existing is not None:
                    if self.duplicate_policy is DuplicatePolicy.REJECT:
                        raise ScanAlreadyRunning(platform, existing.id)
                    logger.info(f"Scan for {platform} already running, reusing task {existing.id}")
                    return existing

            task = ScanTask(platform=platform)
            self._tasks[task.id] = task

        logger.debug(f"Registered scan task {task.id} for {platform}")
        return task

    def cancel(self, task_id: str) -> bool:
        """
        Request cancellation of a task and drop it from the registry

        Args:
            task_id: Task identifier

        Returns:
            True if the task was live, False if unknown or already finished
        """
        with self._lock:
            task = self._tasks.pop(task_id, None)

        if task is None:
            logger.debug(f"Cancel requested for unknown task {task_id}")
            return False

        task.token.cancel()
        logger.info(f"Cancellation requested for {task.platform} scan (task {task_id})")
        return True

    def remove(self, task_id: str) -> None:
        """Drop a finished task (no-op if already removed)"""
        with self._lock:
            self._tasks.pop(task_id, None)

    def get(self, task_id: str) -> Optional[ScanTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def find_by_platform(self, platform: str) -> Optional[ScanTask]:
        """Return the oldest live task for a platform, if any"""
        with self._lock:
            return self._find_by_platform(platform)

    def _find_by_platform(self, platform: str) -> Optional[ScanTask]:
        for task in self._tasks.values():
            if task.platform == platform:
                return task
        return None

    def list(self) -> List[Dict[str, Any]]:
        """
        Snapshot of live tasks

        Returns:
            List of {'id', 'platform', 'started_at'} dicts in start order
        """
        with self._lock:
            return [task.to_dict() for task in self._tasks.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks

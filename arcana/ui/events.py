"""Event types for scan observers.

This module defines the events that flow from the scan engine to observers
(CLI, logs, tests). Events are immutable dataclasses; observers treat them as
telemetry and never as the source of truth for whether a task exists.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from arcana.scanner.base import ScannedCandidate


@dataclass(frozen=True)
class ScanProgressEvent:
    """Emitted at each step of a scan.

    Terminal events have done=True; failed scans also carry an error.

    Attributes:
        task_id: Scan task identifier
        platform: Platform being scanned
        phase: Optional phase label ('start', 'fetch', 'cancelled', 'done', ...)
        current: Optional number of items processed
        total: Optional total item count
        message: Optional status text
        done: True on the task's terminal event
        error: Error message if the scan failed
    """
    task_id: str
    platform: str
    phase: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None
    message: Optional[str] = None
    done: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ScanCompleteEvent:
    """Emitted once when a scan's candidates have been ingested.

    Attributes:
        task_id: Scan task identifier
        platform: Platform that was scanned
        added: Number of games inserted
        candidates: Full candidate list produced by the scanner
        duration_ms: Time from scan start to end of ingestion
        skipped: Candidates already present in the catalog
        failed: Candidates whose insertion failed
    """
    task_id: str
    platform: str
    added: int
    candidates: Tuple[ScannedCandidate, ...]
    duration_ms: int
    skipped: int = 0
    failed: int = 0

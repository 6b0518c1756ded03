"""Base abstractions for platform scanners.

A platform scanner is a pluggable unit of work: a prerequisite check and a
long-running scan that reports incremental progress and returns candidate
game records for ingestion.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple


@dataclass(frozen=True)
class ScannedCandidate:
    """An unvalidated game record proposed by a scanner.

    Candidates are never stored directly; the ingestion merger translates
    them into catalog games.

    Attributes:
        title: Game title as reported by the platform
        platform: Platform name the game belongs to
        genre: Optional genre label (defaults to 'Unknown' on ingestion)
        tags: Ordered tag list
        release_date: Optional release date string
        appid: Optional platform application id
        playtime_minutes: Optional total playtime
    """
    title: str
    platform: str
    genre: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)
    release_date: Optional[str] = None
    appid: Optional[int] = None
    playtime_minutes: Optional[int] = None


class CancellationToken:
    """Cooperative cancellation flag shared between a scan task and its scanner.

    Cancelling never interrupts running code; scanners and the scan routine
    poll `cancelled` at their own checkpoints.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()


class ProgressCallback(Protocol):
    """Signature of the progress reporter handed to `PlatformScanner.scan`."""

    def __call__(
        self,
        phase: Optional[str] = None,
        current: Optional[int] = None,
        total: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        ...


class PlatformScanner(ABC):
    """Abstract base class for platform scanners.

    Subclasses set `name` to the exact platform name they scan and implement
    the prerequisite check and the scan itself.
    """

    name: str = ""

    @abstractmethod
    async def can_run(self) -> bool:
        """Check whether the scanner has what it needs (credentials, paths).

        Returns:
            True if scan() may be called
        """
        pass

    @abstractmethod
    async def scan(
        self,
        progress: ProgressCallback,
        token: CancellationToken
    ) -> List[ScannedCandidate]:
        """Scan the platform and return candidate records.

        Args:
            progress: Callback for incremental progress updates
            token: Cancellation token; implementations may stop early once set

        Returns:
            Candidate game records

        Raises:
            Exception: Any failure; reported as a failed scan
        """
        pass

"""
Ingestion of scan candidates into the catalog.

Turns a completed scan's candidate list into catalog games. Each candidate
is handled independently: a failure on one item is logged and counted, and
the batch carries on.

Duplicate policy: a candidate is a duplicate when the catalog already holds
a game with the same title on the same platform, or, when the candidate has
an appid, a game with the same appid on the same platform. Duplicates are
skipped, not updated.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from arcana.catalog.models import Platform
from arcana.catalog.store import CatalogError, CatalogStore
from arcana.scanner.base import ScannedCandidate
from arcana.ui.events import ScanCompleteEvent

logger = logging.getLogger(__name__)

ADDED = 'added'
SKIPPED = 'skipped'
FAILED = 'failed'


@dataclass
class MergeStats:
    """Per-batch ingestion counters."""
    added: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)


class IngestionMerger:
    """
    Merges scanner candidates into the catalog store.

    Store calls block, so each item runs in a worker thread via
    asyncio.to_thread; items are still processed strictly in input order.

    Example:
        merger = IngestionMerger(store)
        result = await merger.ingest(task.id, 'Steam', candidates, started=t0)
        print(result.added)
    """

    def __init__(self, store: CatalogStore, default_genre: str = 'Unknown'):
        """
        Initialize merger

        Args:
            store: Catalog store to write to
            default_genre: Genre used when a candidate has none
        """
        self.store = store
        self.default_genre = default_genre

    async def ingest(
        self,
        task_id: str,
        platform: str,
        candidates: Sequence[Any],
        started: Optional[float] = None,
        progress: Optional[Callable[..., None]] = None
    ) -> ScanCompleteEvent:
        """
        Ingest a candidate batch.

        Args:
            task_id: Scan task identifier
            platform: Platform that was scanned
            candidates: Candidate records, in scanner order
            started: time.monotonic() value at scan start (default: now)
            progress: Optional progress callback (phase/current/total/message)

        Returns:
            ScanCompleteEvent with added/skipped/failed counts
        """
        if started is None:
            started = time.monotonic()

        candidates = list(candidates)
        stats = MergeStats()
        platforms: Dict[str, Platform] = {}
        total = len(candidates)

        for index, candidate in enumerate(candidates, start=1):
            outcome = await asyncio.to_thread(self._ingest_one, candidate, platforms)
            stats.record(outcome)
            if progress is not None:
                progress(phase='ingest', current=index, total=total)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Ingested {platform} scan: {stats.added} added, {stats.skipped} already present, "
            f"{stats.failed} failed ({total} candidates, {duration_ms} ms)"
        )

        return ScanCompleteEvent(
            task_id=task_id,
            platform=platform,
            added=stats.added,
            candidates=tuple(candidates),
            duration_ms=duration_ms,
            skipped=stats.skipped,
            failed=stats.failed,
        )

    def _ingest_one(self, candidate: Any, platforms: Dict[str, Platform]) -> str:
        try:
            candidate = self._coerce(candidate)
            platform = platforms.get(candidate.platform)
            if platform is None:
                platform = self.store.get_or_create_platform(candidate.platform)
                platforms[candidate.platform] = platform

            fields = {}
            if candidate.appid is not None:
                fields['appid'] = candidate.appid
            if candidate.release_date is not None:
                fields['release_date'] = candidate.release_date
            if candidate.playtime_minutes is not None:
                fields['playtime_minutes'] = candidate.playtime_minutes

            _, created = self.store.add_game_if_absent(
                candidate.title,
                platform,
                genre=candidate.genre or self.default_genre,
                tags=list(candidate.tags or []),
                **fields
            )
        except (CatalogError, SQLAlchemyError, ValueError, TypeError) as e:
            logger.debug(f"Candidate not ingested ({_describe(candidate)}): {e}")
            return FAILED

        if not created:
            logger.debug(f"Skipping duplicate: {_describe(candidate)}")
            return SKIPPED
        return ADDED

    @staticmethod
    def _coerce(candidate: Any) -> ScannedCandidate:
        if isinstance(candidate, ScannedCandidate):
            return candidate
        if isinstance(candidate, dict):
            return ScannedCandidate(**candidate)
        raise TypeError(f"Unsupported candidate type: {type(candidate).__name__}")


def _describe(candidate: Any) -> str:
    if isinstance(candidate, ScannedCandidate):
        return f"'{candidate.title}' on {candidate.platform}"
    return repr(candidate)


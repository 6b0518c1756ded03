"""
Shared pytest fixtures and utilities for the arcana test suite.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
import yaml

from arcana.catalog.store import CatalogStore
from arcana.config.loader import DEFAULT_CONFIG, merge_dicts
from arcana.scanner.base import CancellationToken, PlatformScanner, ScannedCandidate
from arcana.ui.event_bus import EventBus


class FakeScanner(PlatformScanner):
    """
    Scripted scanner for engine tests.

    Reports one 'fetch' progress step per candidate. If `gate` is given the
    scan waits on it after the first step, and `started` is set once the scan
    is running.
    """

    def __init__(
        self,
        name: str,
        candidates: Optional[List[Any]] = None,
        ready: bool = True,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.name = name
        self.candidates = list(candidates or [])
        self.ready = ready
        self.error = error
        self.gate = gate
        self.started = asyncio.Event()
        self.scan_calls = 0
        self.tokens: List[CancellationToken] = []

    async def can_run(self) -> bool:
        return self.ready

    async def scan(self, progress, token):
        self.scan_calls += 1
        self.tokens.append(token)
        progress(phase='init', message=f'Starting {self.name} scan')
        self.started.set()

        if self.gate is not None:
            await self.gate.wait()

        total = len(self.candidates)
        for index, candidate in enumerate(self.candidates, start=1):
            progress(phase='fetch', current=index, total=total)
            await asyncio.sleep(0)

        if self.error is not None:
            raise self.error
        return list(self.candidates)


def candidates_for(platform: str, *titles: str) -> List[ScannedCandidate]:
    """Build plain candidates for a platform."""
    return [ScannedCandidate(title=title, platform=platform) for title in titles]


@pytest.fixture
def store(tmp_path: Path) -> CatalogStore:
    """
    Catalog store backed by a throwaway SQLite file.
    """
    return CatalogStore.from_url(f"sqlite:///{tmp_path / 'catalog.db'}")


@pytest_asyncio.fixture
async def event_bus():
    """
    EventBus with its consumer task running for the duration of the test.
    """
    bus = EventBus()
    worker = asyncio.create_task(bus.process_events())
    yield bus
    await bus.stop()
    worker.cancel()
    try:
        await worker
    except asyncio.CancelledError:
        pass


@pytest.fixture
def base_config(tmp_path: Path) -> Dict[str, Any]:
    """Default configuration pointing at a temp database."""
    return merge_dicts(DEFAULT_CONFIG, {
        'database': {'url': f"sqlite:///{tmp_path / 'arcana.db'}"},
    })


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[[Optional[Dict[str, Any]]], Path]:
    """
    Create a minimal config.yaml in a temp directory.

    Usage:
        path = make_config({"scanning": {"duplicate_policy": "reject"}})
    """

    def _builder(overrides: Optional[Dict[str, Any]] = None) -> Path:
        base = {
            "database": {"url": f"sqlite:///{tmp_path / 'arcana.db'}"},
            "logging": {"level": "WARNING", "console": False},
        }
        if overrides:
            base = merge_dicts(base, overrides)

        cfg_path = tmp_path / "config.yaml"
        cfg_path.write_text(yaml.safe_dump(base))
        return cfg_path

    return _builder


@pytest.fixture
def fake_scanner() -> Callable[..., FakeScanner]:
    """
    Factory for scripted scanners.

    Usage:
        scanner = fake_scanner('Steam', candidates=[...], ready=False)
    """
    return FakeScanner


@pytest.fixture
def make_candidates() -> Callable[..., List[ScannedCandidate]]:
    """
    Factory for plain candidates.

    Usage:
        make_candidates('Steam', 'Half-Life', 'Portal')
    """
    return candidates_for

"""Tests for HeadlessLogger."""

import logging

import pytest

from arcana.scanner.base import ScannedCandidate
from arcana.ui.event_bus import EventBus
from arcana.ui.events import ScanCompleteEvent, ScanProgressEvent
from arcana.ui.headless_logger import HeadlessLogger


@pytest.fixture
def headless():
    return HeadlessLogger(EventBus())


def progress(**fields):
    return ScanProgressEvent(task_id="t1", platform="Steam", **fields)


@pytest.mark.unit
class TestHeadlessLogger:

    def test_start_and_stop_subscribe(self, headless):
        headless.start()
        headless.start()
        assert headless.event_bus.get_stats()['subscriber_count'] == 2

        headless.stop()
        assert headless.event_bus.get_stats()['subscriber_count'] == 0

    def test_phase_changes_logged_at_info(self, headless, caplog):
        with caplog.at_level(logging.INFO, logger="arcana.ui.headless_logger"):
            headless.on_progress(progress(phase='start', message='Scan started'))
            headless.on_progress(progress(phase='fetch', message='Fetching owned games'))

        assert "[Steam] Scan started" in caplog.text
        assert "[Steam] Fetching owned games" in caplog.text

    def test_counts_logged_at_debug_only(self, headless, caplog):
        with caplog.at_level(logging.INFO, logger="arcana.ui.headless_logger"):
            headless.on_progress(progress(phase='collect', current=3, total=10, message='Found Portal'))

        assert "Found Portal" not in caplog.text

        with caplog.at_level(logging.DEBUG, logger="arcana.ui.headless_logger"):
            headless.on_progress(progress(phase='collect', current=4, total=10, message='Found Dota 2'))

        assert "collect: 4/10 Found Dota 2" in caplog.text

    def test_error_marks_failure(self, headless, caplog):
        headless.on_progress(progress(error='Scanner prerequisites not met', done=True))

        outcome = headless.get_outcomes()[0]
        assert outcome.status == 'failed'
        assert outcome.error == 'Scanner prerequisites not met'
        assert headless.has_failures
        assert "Scanner prerequisites not met" in caplog.text

    def test_cancellation(self, headless):
        headless.on_progress(progress(phase='cancelled', message='Scan cancelled', done=True))

        assert headless.get_outcomes()[0].status == 'cancelled'
        assert not headless.has_failures

    def test_completion_recorded(self, headless):
        headless.on_progress(progress(phase='start'))
        headless.on_complete(ScanCompleteEvent(
            task_id="t1",
            platform="Steam",
            added=1,
            candidates=(
                ScannedCandidate(title='Portal', platform='Steam'),
                ScannedCandidate(title='Half-Life', platform='Steam'),
            ),
            duration_ms=2500,
            skipped=1,
        ))

        outcomes = headless.get_outcomes()
        assert len(outcomes) == 1
        assert outcomes[0].status == 'complete'
        assert outcomes[0].added == 1
        assert outcomes[0].skipped == 1
        assert outcomes[0].candidates == 2
        assert outcomes[0].duration_ms == 2500

    @pytest.mark.asyncio
    async def test_receives_events_from_bus(self, event_bus):
        headless = HeadlessLogger(event_bus)
        headless.start()

        event_bus.publish_nowait(progress(phase='start'))
        event_bus.publish_nowait(progress(error='boom', done=True))
        await event_bus.drain()

        assert headless.get_outcomes()[0].status == 'failed'
        headless.stop()

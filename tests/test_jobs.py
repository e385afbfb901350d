"""
Tests for the job registry, background runner and upload progress tracking.
"""

import asyncio

import pytest

from conftest import RecordingConnection

from formforge.errors import DuplicateJobError
from formforge.jobs.models import GenerationJob, JobStatus, UploadJob
from formforge.jobs.registry import InMemoryJobRegistry
from formforge.jobs.runner import BackgroundRunner
from formforge.pipelines.uploads import UploadTracker
from formforge.realtime.events import EventEmitter
from formforge.realtime.hub import InMemoryHub

pytestmark = pytest.mark.asyncio


async def test_create_rejects_duplicate_id():
    registry = InMemoryJobRegistry("test")
    registry.create("a", UploadJob(id="a"))
    with pytest.raises(DuplicateJobError):
        registry.create("a", UploadJob(id="a"))


async def test_update_merges_and_ignores_unknown():
    registry = InMemoryJobRegistry("test")
    registry.create("g", GenerationJob(id="g"))

    updated = registry.update("g", {"progress": 40, "step": "streaming"})
    assert updated.progress == 40
    assert updated.step == "streaming"
    assert updated.status == JobStatus.ACCEPTED

    assert registry.update("missing", {"progress": 1}) is None
    assert "missing" not in registry


async def test_terminal_job_ignores_later_updates():
    registry = InMemoryJobRegistry("test")
    registry.create("g", GenerationJob(id="g"))
    registry.update("g", {"status": JobStatus.FAILED, "error": "boom"})

    after = registry.update("g", {"status": JobStatus.GENERATING, "progress": 70})
    assert after.status == JobStatus.FAILED
    assert after.progress == 0


async def test_record_survives_until_retention_elapses():
    registry = InMemoryJobRegistry("test")
    registry.create("u", UploadJob(id="u"))
    registry.schedule_cleanup("u", 0.05)

    assert registry.get("u") is not None
    await asyncio.sleep(0.15)
    assert registry.get("u") is None


async def test_runner_drain_waits_for_tasks():
    runner = BackgroundRunner()
    done = []

    async def work():
        await asyncio.sleep(0.01)
        done.append(True)

    runner.spawn(work(), name="work")
    assert runner.active == 1
    await runner.drain()
    assert done == [True]
    assert runner.active == 0


async def test_runner_survives_escaped_exception():
    runner = BackgroundRunner()

    async def broken():
        raise RuntimeError("unexpected")

    runner.spawn(broken(), name="broken")
    await runner.drain()
    assert runner.active == 0


class TestUploadTracker:
    def _tracker(self):
        hub = InMemoryHub()
        registry = InMemoryJobRegistry("uploads")
        conn = RecordingConnection()
        hub.subscribe(conn, "upload:u1")
        return UploadTracker(registry, EventEmitter(hub), retention_seconds=60), registry, conn

    async def test_progress_events_carry_percent(self):
        tracker, _, conn = self._tracker()
        tracker.start("u1")
        tracker.update_progress("u1", 25, 100)
        tracker.update_progress("u1", 100, 100)

        progress = conn.of("uploadProgress")
        assert [p["percent"] for p in progress] == [25, 100]
        assert progress[-1]["completed"] is True

    async def test_complete_is_terminal_and_emitted_once(self):
        tracker, registry, conn = self._tracker()
        tracker.start("u1")
        tracker.complete("u1", {"fileId": "f1", "status": "uploaded"})
        tracker.complete("u1", {"fileId": "f2"})
        tracker.fail("u1", "late failure")

        assert len(conn.of("uploadComplete")) == 1
        assert conn.of("uploadError") == []
        assert registry.get("u1").result["fileId"] == "f1"

    async def test_fail_records_error(self):
        tracker, registry, conn = self._tracker()
        tracker.start("u1")
        tracker.fail("u1", "Only PDF and Markdown files are allowed")

        assert conn.of("uploadError") == [{"uploadId": "u1", "error": "Only PDF and Markdown files are allowed"}]
        assert registry.get("u1").error == "Only PDF and Markdown files are allowed"

    async def test_progress_for_unknown_upload_is_dropped(self):
        tracker, _, conn = self._tracker()
        tracker.update_progress("u1", 10, 100)
        assert conn.events == []

"""Tests for the job poller against a scripted backend."""

import asyncio

import httpx
import pytest

from conftest import ScriptedBackend, report

from avatarflow.errors import AlreadyPollingError, PollError
from avatarflow.orchestrator.poller import JobPoller, PollEventKind, map_status
from avatarflow.schemas.jobs import JobStatus, JobStatusReport
from avatarflow.services.backend import GenerationBackend

TICK = 0.001


def test_status_lookup():
    assert map_status("processing") is JobStatus.PROCESSING
    assert map_status("pending") is JobStatus.PROCESSING
    assert map_status("completed") is JobStatus.COMPLETED
    assert map_status("failed") is JobStatus.FAILED
    assert map_status("waiting") is JobStatus.PROCESSING


@pytest.mark.asyncio
async def test_completes_after_third_tick_and_stops():
    backend = ScriptedBackend([
        report("processing"),
        report("processing"),
        report("completed"),
        report("processing"),  # must never be consumed
    ])
    poller = JobPoller(backend)
    events = []

    handle = poller.start("job-1", TICK)
    handle.subscribe(events.append)
    job = await handle.wait()

    assert job.status is JobStatus.COMPLETED
    assert job.result_url == "https://cdn.example.com/video.mp4"
    assert job.thumbnail_url == "https://cdn.example.com/thumb.jpg"
    assert job.error_detail is None
    assert backend.fetch_calls == 1
    assert backend.fetch_after_tick == 3
    assert backend.status_calls == 3
    assert len(backend.statuses) == 1

    assert [e.kind for e in events] == [
        PollEventKind.STATUS, PollEventKind.STATUS, PollEventKind.COMPLETED,
    ]
    assert events[-1].job.result_url == job.result_url
    assert not poller.is_polling("job-1")


@pytest.mark.asyncio
async def test_failed_status_carries_detail():
    backend = ScriptedBackend([
        report("failed", "quota exceeded"),
        report("processing"),
    ])
    poller = JobPoller(backend)
    events = []

    handle = poller.start("job-1", TICK)
    handle.subscribe(events.append)
    with pytest.raises(PollError) as exc_info:
        await handle.wait()

    assert exc_info.value.detail == "quota exceeded"
    assert exc_info.value.transient is False
    assert [e.kind for e in events] == [PollEventKind.ERROR]
    assert events[0].error.detail == "quota exceeded"
    assert events[0].job.status is JobStatus.FAILED
    assert events[0].job.error_detail == "quota exceeded"
    assert backend.fetch_calls == 0
    assert len(backend.statuses) == 1


@pytest.mark.asyncio
async def test_failed_status_without_detail():
    poller = JobPoller(ScriptedBackend([report("failed")]))

    handle = poller.start("job-1", TICK)
    with pytest.raises(PollError, match="Unknown error"):
        await handle.wait()


@pytest.mark.asyncio
async def test_unrecognised_status_keeps_raw_string():
    backend = ScriptedBackend([report("waiting"), report("completed")])
    poller = JobPoller(backend)
    events = []

    handle = poller.start("job-1", TICK)
    handle.subscribe(events.append)
    await handle.wait()

    assert events[0].kind is PollEventKind.STATUS
    assert events[0].job.status is JobStatus.PROCESSING
    assert events[0].job.raw_status == "waiting"


@pytest.mark.asyncio
async def test_single_fetch_error_halts_polling():
    backend = ScriptedBackend([
        httpx.ConnectError("connection refused"),
        report("completed"),
    ])
    poller = JobPoller(backend)
    events = []

    handle = poller.start("job-1", TICK)
    handle.subscribe(events.append)
    with pytest.raises(PollError) as exc_info:
        await handle.wait()

    assert exc_info.value.transient is True
    assert "connection refused" in exc_info.value.detail
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert [e.kind for e in events] == [PollEventKind.ERROR]
    assert backend.status_calls == 1
    assert len(backend.statuses) == 1


@pytest.mark.asyncio
async def test_transient_errors_retried_when_configured():
    backend = ScriptedBackend([
        httpx.ConnectError("blip"),
        report("processing"),
        report("completed"),
    ])
    poller = JobPoller(backend, transient_retry_attempts=3, retry_base_delay=0)

    job = await poller.start("job-1", TICK).wait()

    assert job.status is JobStatus.COMPLETED
    assert backend.status_calls == 3


@pytest.mark.asyncio
async def test_non_transient_errors_not_retried():
    backend = ScriptedBackend([ValueError("bad payload"), report("completed")])
    poller = JobPoller(backend, transient_retry_attempts=3, retry_base_delay=0)

    with pytest.raises(PollError) as exc_info:
        await poller.start("job-1", TICK).wait()

    assert exc_info.value.transient is False
    assert backend.status_calls == 1


@pytest.mark.asyncio
async def test_result_fetch_error_reported():
    backend = ScriptedBackend(
        [report("completed")], fetch_error=httpx.ReadTimeout("slow"),
    )
    poller = JobPoller(backend)

    handle = poller.start("job-1", TICK)
    with pytest.raises(PollError, match="Error fetching video details"):
        await handle.wait()

    assert handle.job.status is not JobStatus.COMPLETED
    assert handle.job.result_url is None


@pytest.mark.asyncio
async def test_second_start_for_same_job_rejected():
    backend = ScriptedBackend([report("completed")])
    poller = JobPoller(backend)

    handle = poller.start("job-1", 10)
    with pytest.raises(AlreadyPollingError):
        poller.start("job-1", 10)

    poller.cancel(handle)
    await handle.wait()
    assert backend.status_calls == 0


@pytest.mark.asyncio
async def test_job_can_be_polled_again_after_termination():
    backend = ScriptedBackend([report("completed"), report("completed")])
    poller = JobPoller(backend)

    await poller.start("job-1", TICK).wait()
    job = await poller.start("job-1", TICK).wait()

    assert job.status is JobStatus.COMPLETED
    assert backend.fetch_calls == 2


@pytest.mark.asyncio
async def test_cancel_is_immediate_and_idempotent():
    backend = ScriptedBackend([report("processing")])
    poller = JobPoller(backend)

    handle = poller.start("job-1", 60)
    poller.cancel(handle)
    poller.cancel(handle)

    job = await asyncio.wait_for(handle.wait(), timeout=1)

    assert handle.cancelled
    assert job.status is JobStatus.QUEUED
    assert backend.status_calls == 0
    assert not poller.is_polling("job-1")


class GatedBackend(GenerationBackend):
    """Backend whose status query blocks until released."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.fetch_calls = 0

    async def submit_generation(self, voice_id, avatar_id, script_text, options=None):
        return "job-1"

    async def query_job_status(self, job_id):
        self.entered.set()
        await self.release.wait()
        return JobStatusReport(status="completed")

    async def fetch_job_result(self, job_id):
        self.fetch_calls += 1
        raise AssertionError("result of a cancelled tick must be discarded")


@pytest.mark.asyncio
async def test_in_flight_tick_discarded_after_cancel():
    backend = GatedBackend()
    poller = JobPoller(backend)
    events = []

    handle = poller.start("job-1", TICK)
    handle.subscribe(events.append)
    await backend.entered.wait()

    poller.cancel(handle)
    backend.release.set()
    job = await handle.wait()

    assert job.status is JobStatus.QUEUED
    assert job.raw_status is None
    assert events == []
    assert backend.fetch_calls == 0


@pytest.mark.asyncio
async def test_unsubscribe_stops_events():
    backend = ScriptedBackend([report("processing"), report("completed")])
    poller = JobPoller(backend)
    events = []

    handle = poller.start("job-1", TICK)
    unsubscribe = handle.subscribe(events.append)
    unsubscribe()
    await handle.wait()

    assert events == []


@pytest.mark.asyncio
async def test_rejects_non_positive_interval():
    poller = JobPoller(ScriptedBackend([]))

    with pytest.raises(ValueError):
        poller.start("job-1", 0)
    assert not poller.is_polling("job-1")


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_polling():
    backend = ScriptedBackend([report("processing"), report("processing"), report("completed")])
    poller = JobPoller(backend)
    events = []

    def broken(event):
        raise RuntimeError("listener bug")

    handle = poller.start("job-1", TICK)
    handle.subscribe(broken)
    handle.subscribe(events.append)
    job = await handle.wait()

    assert job.status is JobStatus.COMPLETED
    assert [e.kind for e in events] == [
        PollEventKind.STATUS, PollEventKind.STATUS, PollEventKind.COMPLETED,
    ]
    assert backend.status_calls == 3

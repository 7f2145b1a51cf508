"""Job poller tracking asynchronous video generation to a terminal status.

Each started job gets its own asyncio task that sleeps for the configured
interval, queries the generation backend, and translates the backend's
free-form status string into a JobStatus:

- "processing" / "pending"  -> PROCESSING
- "completed"               -> COMPLETED (one result fetch, then stop)
- "failed"                  -> FAILED (error detail captured, then stop)
- anything else             -> PROCESSING, raw string kept for diagnostics

A failed status or detail fetch stops the loop with a PollError. With
transient_retry_attempts > 1, network errors and 429/5xx responses are
retried with exponential backoff before giving up; a "failed" status is
always terminal.

Usage:
    poller = JobPoller(adapter)
    handle = poller.start(job_id, interval=5.0)
    handle.subscribe(on_event)
    job = await handle.wait()
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from avatarflow.errors import AlreadyPollingError, PollError
from avatarflow.schemas.jobs import GenerationJob, JobResult, JobStatus, JobStatusReport
from avatarflow.services.backend import GenerationBackend

logger = logging.getLogger(__name__)

STATUS_MAP: dict[str, JobStatus] = {
    "processing": JobStatus.PROCESSING,
    "pending": JobStatus.PROCESSING,
    "completed": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
}


def map_status(raw_status: str) -> JobStatus:
    """Translate a backend status string; unknown strings count as processing."""
    return STATUS_MAP.get(raw_status, JobStatus.PROCESSING)


def _is_transient(exc: BaseException) -> bool:
    """Return True only for fetch errors worth retrying (network, 429, 5xx)."""
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code == 429 or code >= 500
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    return False


class PollEventKind(str, enum.Enum):
    STATUS = "status"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class PollEvent:
    """Update emitted to subscribers after each applied tick."""

    kind: PollEventKind
    job: GenerationJob
    error: Optional[PollError] = None


PollListener = Callable[[PollEvent], None]


class PollHandle:
    """Cancellation handle for one poll loop.

    Also lets callers subscribe to events and await the final job.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self.job = GenerationJob(job_id=job_id)
        self.error: Optional[PollError] = None
        self._listeners: list[PollListener] = []
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def subscribe(self, listener: PollListener) -> Callable[[], None]:
        """Register listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait(self) -> GenerationJob:
        """Wait for the loop to end and return the final job.

        Returns the job as last applied if the loop was cancelled.

        Raises:
            PollError: If the job failed or a fetch error stopped polling.
        """
        if self._task is not None:
            await asyncio.shield(self._task)
        if self.error is not None:
            raise self.error
        return self.job

    def _emit(self, kind: PollEventKind, error: Optional[PollError] = None) -> None:
        event = PollEvent(kind=kind, job=self.job.model_copy(), error=error)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A failing subscriber does not stop polling
                logger.exception(
                    f"Poll listener {listener!r} failed on {kind.value} event "
                    f"for job {self.job_id}"
                )

    async def _sleep(self, interval: float) -> bool:
        """Sleep for interval; return True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            return False
        return True


class JobPoller:
    """Run at most one poll loop per job id against a GenerationBackend."""

    def __init__(
        self,
        backend: GenerationBackend,
        *,
        transient_retry_attempts: int = 1,
        retry_base_delay: float = 1.0,
    ):
        self.backend = backend
        self.transient_retry_attempts = max(1, transient_retry_attempts)
        self.retry_base_delay = retry_base_delay
        self._active: dict[str, PollHandle] = {}

    def is_polling(self, job_id: str) -> bool:
        return job_id in self._active

    def start(self, job_id: str, interval: float) -> PollHandle:
        """Begin polling job_id every interval seconds.

        Must be called from within a running event loop.

        Raises:
            AlreadyPollingError: If job_id is already being polled.
        """
        if job_id in self._active:
            raise AlreadyPollingError(job_id)
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")

        handle = PollHandle(job_id)
        self._active[job_id] = handle
        handle._task = asyncio.get_running_loop().create_task(
            self._run(handle, interval), name=f"poll-{job_id}",
        )
        logger.info(f"Started polling job {job_id} every {interval:.1f}s")
        return handle

    def cancel(self, handle: PollHandle) -> None:
        """Stop polling; safe to call more than once or after termination."""
        if not handle.cancelled:
            logger.info(f"Cancelling poll for job {handle.job_id}")
        handle._stop.set()
        self._release(handle)

    def _release(self, handle: PollHandle) -> None:
        if self._active.get(handle.job_id) is handle:
            del self._active[handle.job_id]

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.transient_retry_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=30),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _query(self, job_id: str) -> JobStatusReport:
        async for attempt in self._retrying():
            with attempt:
                return await self.backend.query_job_status(job_id)

    async def _fetch(self, job_id: str) -> JobResult:
        async for attempt in self._retrying():
            with attempt:
                return await self.backend.fetch_job_result(job_id)

    def _fail(self, handle: PollHandle, error: PollError) -> None:
        handle.error = error
        handle._emit(PollEventKind.ERROR, error)

    async def _run(self, handle: PollHandle, interval: float) -> None:
        job_id = handle.job_id
        try:
            while True:
                if await handle._sleep(interval):
                    return

                try:
                    report = await self._query(job_id)
                except Exception as e:
                    if handle.cancelled:
                        return
                    logger.error(f"Error checking status of job {job_id}: {e}")
                    error = PollError(
                        job_id,
                        f"Error checking video status: {e}",
                        transient=_is_transient(e),
                    )
                    error.__cause__ = e
                    self._fail(handle, error)
                    return

                # Result of a tick that was in flight during cancel() is dropped
                if handle.cancelled:
                    return

                status = map_status(report.status)
                handle.job.raw_status = report.status

                if status is JobStatus.COMPLETED:
                    try:
                        result = await self._fetch(job_id)
                    except Exception as e:
                        if handle.cancelled:
                            return
                        logger.error(f"Error fetching result of job {job_id}: {e}")
                        error = PollError(
                            job_id,
                            f"Error fetching video details: {e}",
                            transient=_is_transient(e),
                        )
                        error.__cause__ = e
                        self._fail(handle, error)
                        return
                    if handle.cancelled:
                        return
                    handle.job.status = JobStatus.COMPLETED
                    handle.job.result_url = result.result_url
                    handle.job.thumbnail_url = result.thumbnail_url
                    logger.info(f"Job {job_id} completed: {result.result_url}")
                    handle._emit(PollEventKind.COMPLETED)
                    return

                if status is JobStatus.FAILED:
                    detail = report.error_detail or "Unknown error"
                    handle.job.status = JobStatus.FAILED
                    handle.job.error_detail = detail
                    logger.warning(f"Job {job_id} failed: {detail}")
                    self._fail(handle, PollError(job_id, detail, transient=False))
                    return

                if report.status not in STATUS_MAP:
                    logger.warning(
                        f"Job {job_id}: unrecognised status {report.status!r} "
                        "treated as processing"
                    )
                handle.job.status = JobStatus.PROCESSING
                handle._emit(PollEventKind.STATUS)
        finally:
            self._release(handle)

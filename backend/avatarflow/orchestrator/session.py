"""Creation session wiring the workflow coordinator to video generation.

A CreationSession is constructed once per user session and owns exactly
one WorkflowCoordinator, one GenerationBackend and one JobPoller. The
generation step submits the selections gathered by the earlier steps,
starts polling the returned job, and marks the final step completed once
the video is ready.
"""

import logging
from typing import Callable, Optional

from avatarflow.config import settings
from avatarflow.orchestrator.coordinator import WorkflowCoordinator
from avatarflow.orchestrator.poller import JobPoller, PollEvent, PollEventKind, PollHandle
from avatarflow.services.backend import GenerationBackend
from avatarflow.schemas.jobs import GenerationJob

logger = logging.getLogger(__name__)

GENERATION_STEP = "videos"


class CreationSession:
    """One user's pass through the creation workflow."""

    def __init__(
        self,
        backend: GenerationBackend,
        *,
        coordinator: Optional[WorkflowCoordinator] = None,
        poller: Optional[JobPoller] = None,
        poll_interval: Optional[float] = None,
    ):
        self.backend = backend
        self.coordinator = coordinator or WorkflowCoordinator()
        self.poller = poller or JobPoller(
            backend,
            transient_retry_attempts=settings.polling.transient_retry_attempts,
            retry_base_delay=settings.polling.retry_base_delay,
        )
        self.poll_interval = poll_interval or settings.polling.interval_seconds
        self.job_id: Optional[str] = None
        self.handle: Optional[PollHandle] = None

    async def start_generation(
        self, listener: Optional[Callable[[PollEvent], None]] = None
    ) -> PollHandle:
        """Submit the gathered selections and start polling the new job.

        Moves the workflow to the generation step. A job already submitted
        in this session is returned as-is; use retry() to discard it.

        Raises:
            IncompleteWorkflowError: If voice, avatar or script is missing.
            SubmissionError: If the generation service rejects the request.
        """
        if self.handle is not None:
            logger.info(f"Job {self.job_id} already submitted, skipping")
            return self.handle

        voice_id, avatar_id, script = self.coordinator.generation_inputs()
        options = self.coordinator.generation_options()
        self.coordinator.navigate_to(GENERATION_STEP)

        job_id = await self.backend.submit_generation(
            voice_id, avatar_id, script, options,
        )
        self.job_id = job_id
        logger.info(f"Generation submitted as job {job_id}")

        handle = self.poller.start(job_id, self.poll_interval)
        handle.subscribe(self._on_event)
        if listener is not None:
            handle.subscribe(listener)
        self.handle = handle
        return handle

    async def generate(
        self, listener: Optional[Callable[[PollEvent], None]] = None
    ) -> GenerationJob:
        """Submit and wait for the final job.

        Raises:
            SubmissionError: If the request is rejected.
            PollError: If the job fails or a status check fails.
        """
        handle = await self.start_generation(listener)
        return await handle.wait()

    def cancel(self) -> None:
        """Stop tracking the current job (the vendor job keeps running)."""
        if self.handle is not None:
            self.poller.cancel(self.handle)

    async def retry(
        self, listener: Optional[Callable[[PollEvent], None]] = None
    ) -> PollHandle:
        """Discard the current job and submit a fresh generation request."""
        self.cancel()
        self.job_id = None
        self.handle = None
        return await self.start_generation(listener)

    def _on_event(self, event: PollEvent) -> None:
        if event.kind is PollEventKind.COMPLETED:
            self.coordinator.complete_step(
                GENERATION_STEP,
                {
                    "job_id": event.job.job_id,
                    "result_url": event.job.result_url,
                    "thumbnail_url": event.job.thumbnail_url,
                },
            )


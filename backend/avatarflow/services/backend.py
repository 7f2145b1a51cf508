"""Abstract base class for video generation backends.

Defines the three calls the workflow makes against a generation service:
submit a job, query its status, and fetch its result once completed.
"""

from abc import ABC, abstractmethod
from typing import Optional

from avatarflow.schemas.jobs import GenerationOptions, JobResult, JobStatusReport


class GenerationBackend(ABC):
    """Core-facing contract for an asynchronous video generation service."""

    @abstractmethod
    async def submit_generation(
        self,
        voice_id: str,
        avatar_id: str,
        script_text: str,
        options: Optional[GenerationOptions] = None,
    ) -> str:
        """Submit a generation request.

        options carries voice speed/pitch and avatar framing; None means
        the service defaults.

        Returns:
            Opaque job id for status polling.

        Raises:
            SubmissionError: If inputs are empty or the service rejects
                the request.
        """
        ...

    @abstractmethod
    async def query_job_status(self, job_id: str) -> JobStatusReport:
        """Return the service's raw status string for job_id."""
        ...

    @abstractmethod
    async def fetch_job_result(self, job_id: str) -> JobResult:
        """Return artifact URLs for a completed job."""
        ...

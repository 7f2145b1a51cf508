"""Exception hierarchy shared across the workflow, poller and vendor clients."""

from typing import Optional


class AvatarflowError(Exception):
    """Base class for all avatarflow errors."""


class ConfigurationError(AvatarflowError):
    """Raised when required credentials or settings are missing."""


class UnknownStepError(AvatarflowError, KeyError):
    """Raised when a step id is not part of the workflow."""

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(step_id)

    def __str__(self) -> str:
        return f"Unknown workflow step: {self.step_id!r}"


class IncompleteWorkflowError(AvatarflowError):
    """Raised when generation is requested before its inputs are selected."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"Missing {', '.join(missing)} selection. "
            "Please complete all previous steps."
        )


class AlreadyPollingError(AvatarflowError):
    """Raised when a poll loop is already running for a job id."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Already polling job {job_id}")


class VendorSchemaError(AvatarflowError):
    """Raised when a vendor response does not match the expected schema."""


class SubmissionError(AvatarflowError):
    """Raised when a generation request is rejected.

    Attributes:
        status_code: HTTP status of the vendor response, if any.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class PollError(AvatarflowError):
    """Raised when a job cannot be tracked to a successful result.

    Attributes:
        job_id: The job being polled.
        detail: Vendor error detail or the fetch failure message.
        transient: True when a status/detail fetch failed (network, 429,
            5xx); False when the vendor reported the job as failed.
    """

    def __init__(self, job_id: str, detail: str, *, transient: bool = False):
        self.job_id = job_id
        self.detail = detail
        self.transient = transient
        super().__init__(detail)

"""Shared test helpers: a scripted generation backend and HTTP plumbing."""

import json
from typing import Callable, Optional, Union

import httpx

from avatarflow.schemas.jobs import GenerationOptions, JobResult, JobStatusReport
from avatarflow.services.backend import GenerationBackend
from avatarflow.services.heygen_client import HeyGenClient

ScriptItem = Union[JobStatusReport, BaseException]


class ScriptedBackend(GenerationBackend):
    """GenerationBackend replaying a fixed list of status responses.

    Each query_job_status call consumes one item; exceptions are raised
    instead of returned. Records calls so tests can assert on them.
    """

    def __init__(
        self,
        statuses: list[ScriptItem],
        result: Optional[JobResult] = None,
        fetch_error: Optional[BaseException] = None,
        submit_error: Optional[BaseException] = None,
    ):
        self.statuses = list(statuses)
        self.result = result or JobResult(
            result_url="https://cdn.example.com/video.mp4",
            thumbnail_url="https://cdn.example.com/thumb.jpg",
        )
        self.fetch_error = fetch_error
        self.submit_error = submit_error
        self.submitted: list[tuple[str, str, str]] = []
        self.submitted_options: list[Optional[GenerationOptions]] = []
        self.status_calls = 0
        self.fetch_calls = 0
        self.fetch_after_tick: Optional[int] = None

    async def submit_generation(self, voice_id, avatar_id, script_text, options=None):
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append((voice_id, avatar_id, script_text))
        self.submitted_options.append(options)
        return f"job-{len(self.submitted)}"

    async def query_job_status(self, job_id):
        self.status_calls += 1
        item = self.statuses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def fetch_job_result(self, job_id):
        self.fetch_calls += 1
        self.fetch_after_tick = self.status_calls
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.result


def report(status: str, error_detail: Optional[str] = None) -> JobStatusReport:
    return JobStatusReport(status=status, error_detail=error_detail)


def heygen_client(handler: Callable[[httpx.Request], httpx.Response]) -> HeyGenClient:
    """HeyGenClient whose requests are answered by handler."""
    return HeyGenClient("test-key", transport=httpx.MockTransport(handler))


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)

"""HeyGen generation adapter for the creation workflow.

Provides a clean interface between the workflow and the HeyGen API,
handling request building, error translation, and result extraction.

The workflow only deals with: submit -> query status -> fetch result.

Usage:
    adapter = HeyGenGenerationAdapter(heygen_client)
    job_id = await adapter.submit_generation(voice_id, avatar_id, script)
    report = await adapter.query_job_status(job_id)
    if report.status == "completed":
        result = await adapter.fetch_job_result(job_id)
"""

import logging
from typing import Optional

import httpx

from avatarflow.errors import SubmissionError, VendorSchemaError
from avatarflow.schemas.heygen import GenerateVideoRequest
from avatarflow.schemas.jobs import GenerationOptions, JobResult, JobStatusReport
from avatarflow.services.backend import GenerationBackend
from avatarflow.services.heygen_client import HeyGenClient

logger = logging.getLogger(__name__)


def _describe_http_error(exc: httpx.HTTPStatusError) -> str:
    """Render a vendor error response verbatim for the user."""
    response = exc.response
    try:
        body = response.json()
    except ValueError:
        body = response.text
    return f"API Error: {response.status_code} - {body}"


class HeyGenGenerationAdapter(GenerationBackend):
    """GenerationBackend backed by HeyGen's v2 generate / v1 status endpoints."""

    def __init__(
        self,
        client: HeyGenClient,
        *,
        title: str = "Generated Video",
        width: int = 1280,
        height: int = 720,
    ):
        self.client = client
        self.title = title
        self.width = width
        self.height = height

    async def submit_generation(
        self,
        voice_id: str,
        avatar_id: str,
        script_text: str,
        options: Optional[GenerationOptions] = None,
    ) -> str:
        for field_name, value in (
            ("voice_id", voice_id),
            ("avatar_id", avatar_id),
            ("script", script_text),
        ):
            if not value or not value.strip():
                raise SubmissionError(f"Missing required field: {field_name}")

        request = GenerateVideoRequest.single_scene(
            voice_id=voice_id,
            avatar_id=avatar_id,
            script=script_text,
            title=self.title,
            width=self.width,
            height=self.height,
            options=options,
        )
        preview = script_text[:20] + ("..." if len(script_text) > 20 else "")
        logger.info(
            f"Submitting generation: avatar_id={avatar_id} voice_id={voice_id} "
            f"script={preview!r}"
        )

        try:
            return await self.client.generate_video(request)
        except httpx.HTTPStatusError as e:
            raise SubmissionError(
                _describe_http_error(e), status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise SubmissionError(
                "No response received from server. Please check your connection."
            ) from e
        except VendorSchemaError as e:
            raise SubmissionError(str(e)) from e

    async def query_job_status(self, job_id: str) -> JobStatusReport:
        data = await self.client.get_video_status(job_id)
        return JobStatusReport(status=data.status, error_detail=data.error)

    async def fetch_job_result(self, job_id: str) -> JobResult:
        """Fetch URLs for a completed video.

        Raises:
            VendorSchemaError: If the completed video carries no video_url.
        """
        data = await self.client.get_video_status(job_id)
        if not data.video_url:
            raise VendorSchemaError(
                f"Video {job_id} reported {data.status!r} without a video_url"
            )
        logger.info(
            f"Video {job_id}: video_url present, thumbnail={bool(data.thumbnail_url)}"
        )
        return JobResult(result_url=data.video_url, thumbnail_url=data.thumbnail_url)

"""Generation job models shared by the poller and the vendor adapters."""

import enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class VoiceSettings(BaseModel):
    """Narration tuning chosen alongside the voice."""

    speed: float = Field(default=1.0, ge=0.5, le=1.5)
    pitch: int = Field(default=0, ge=-50, le=50)


class AvatarSettings(BaseModel):
    """Framing of the avatar in the rendered video."""

    style: Literal["normal", "closeUp", "circle"] = "normal"
    scale: float = Field(default=1.0, ge=0.5, le=2.0)
    offset_x: float = Field(default=0.0, ge=-2.0, le=2.0)
    offset_y: float = Field(default=0.0, ge=-2.0, le=2.0)


class GenerationOptions(BaseModel):
    """Optional voice and avatar settings sent with a generation request."""

    voice: VoiceSettings = Field(default_factory=VoiceSettings)
    avatar: AvatarSettings = Field(default_factory=AvatarSettings)


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobStatusReport(BaseModel):
    """Raw status as reported by the generation service."""

    status: str
    error_detail: Optional[str] = None


class JobResult(BaseModel):
    """Artifact locations of a completed job."""

    result_url: str
    thumbnail_url: Optional[str] = None


class GenerationJob(BaseModel):
    """A single asynchronous video-generation request.

    result_url is set only once status is COMPLETED and error_detail only
    once status is FAILED. raw_status keeps the last vendor status string.
    """

    job_id: str
    status: JobStatus = JobStatus.QUEUED
    raw_status: Optional[str] = None
    result_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    error_detail: Optional[str] = None

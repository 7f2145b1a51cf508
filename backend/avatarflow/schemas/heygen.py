"""Pydantic schemas for HeyGen API requests and responses.

Every vendor response is validated once, at the client boundary, against
one of these models. A mismatch raises VendorSchemaError instead of being
probed for alternative shapes further down.
"""

from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from avatarflow.errors import VendorSchemaError
from avatarflow.schemas.jobs import GenerationOptions


def _coerce_error_detail(v: Any) -> Optional[str]:
    """Flatten HeyGen error objects to a single detail string.

    video_status.get reports failures as ``{"code": ..., "message": ...,
    "detail": ...}``; older responses use a bare string.
    """
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, dict):
        for key in ("detail", "message", "code"):
            if v.get(key):
                return str(v[key])
        return None
    return str(v)


ErrorDetail = Annotated[Optional[str], BeforeValidator(_coerce_error_detail)]


class _VendorModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

class Voice(_VendorModel):
    """A selectable text-to-speech voice."""

    voice_id: str
    name: str = ""
    language: str = "Unknown"
    gender: str = "Not specified"
    preview_audio: Optional[str] = None
    support_pause: bool = False
    emotion_support: bool = False


class Avatar(_VendorModel):
    """A selectable talking avatar."""

    avatar_id: str
    avatar_name: str = ""
    gender: str = "unknown"
    preview_image_url: Optional[str] = None
    preview_video_url: Optional[str] = None
    premium: bool = False


class VoiceList(_VendorModel):
    voices: list[Voice]


class AvatarList(_VendorModel):
    avatars: list[Avatar]


# ---------------------------------------------------------------------------
# Generation request
# ---------------------------------------------------------------------------

class Offset(BaseModel):
    x: float = 0
    y: float = 0


class Character(BaseModel):
    type: str = "avatar"
    avatar_id: str
    scale: float = 1
    avatar_style: str = "normal"
    offset: Offset = Field(default_factory=Offset)


class VoiceInput(BaseModel):
    type: str = "text"
    voice_id: str
    input_text: str
    speed: float = 1
    pitch: int = 0


class VideoInput(BaseModel):
    character: Character
    voice: VoiceInput


class Dimension(BaseModel):
    width: int = 1280
    height: int = 720


class GenerateVideoRequest(BaseModel):
    """Body of POST /v2/video/generate."""

    title: str = "Generated Video"
    video_inputs: list[VideoInput]
    dimension: Dimension = Field(default_factory=Dimension)

    @classmethod
    def single_scene(
        cls,
        *,
        voice_id: str,
        avatar_id: str,
        script: str,
        title: str = "Generated Video",
        width: int = 1280,
        height: int = 720,
        options: Optional[GenerationOptions] = None,
    ) -> "GenerateVideoRequest":
        """Build the one-avatar, one-voice request the workflow submits."""
        options = options or GenerationOptions()
        avatar = options.avatar
        return cls(
            title=title,
            video_inputs=[
                VideoInput(
                    character=Character(
                        avatar_id=avatar_id,
                        scale=avatar.scale,
                        avatar_style=avatar.style,
                        offset=Offset(x=avatar.offset_x, y=avatar.offset_y),
                    ),
                    voice=VoiceInput(
                        voice_id=voice_id,
                        input_text=script,
                        speed=options.voice.speed,
                        pitch=options.voice.pitch,
                    ),
                )
            ],
            dimension=Dimension(width=width, height=height),
        )


class GenerateVideoData(_VendorModel):
    video_id: str


# ---------------------------------------------------------------------------
# Status and listing
# ---------------------------------------------------------------------------

class VideoStatusData(_VendorModel):
    """Payload of GET /v1/video_status.get."""

    id: Optional[str] = None
    status: str
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    error: ErrorDetail = None


class VideoSummary(_VendorModel):
    video_id: str
    status: str = "unknown"
    video_title: Optional[str] = None
    created_at: Optional[int] = None


class VideoList(_VendorModel):
    videos: list[VideoSummary]
    token: Optional[str] = None


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=BaseModel)


class Envelope(BaseModel, Generic[T]):
    """HeyGen wraps every payload as ``{"error": ..., "data": {...}}``."""

    error: ErrorDetail = None
    data: T


def parse_envelope(model: type[T], body: Any, *, endpoint: str) -> T:
    """Validate a HeyGen response body and return its ``data`` payload.

    Raises:
        VendorSchemaError: If the body does not match ``{"data": model}``.
    """
    try:
        return Envelope[model].model_validate(body).data
    except ValidationError as e:
        raise VendorSchemaError(
            f"Unexpected response format from HeyGen {endpoint}: "
            f"{e.error_count()} validation error(s)"
        ) from e

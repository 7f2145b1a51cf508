"""HeyGen REST API client.

Provides:
- Async client for api.heygen.com (catalogue, generate, status, list, delete)
- Schema validation of every response at the boundary
- Module-level lazy singleton configured from settings

Usage:
    from avatarflow.services.heygen_client import get_heygen_client

    client = await get_heygen_client()
    voices = await client.list_voices()
    video_id = await client.generate_video(request)
    status = await client.get_video_status(video_id)
"""

import logging
from typing import Optional

import httpx

from avatarflow.config import settings
from avatarflow.errors import ConfigurationError
from avatarflow.schemas.heygen import (
    Avatar,
    AvatarList,
    GenerateVideoData,
    GenerateVideoRequest,
    VideoList,
    VideoStatusData,
    Voice,
    VoiceList,
    parse_envelope,
)

logger = logging.getLogger(__name__)


class HeyGenClient:
    """Async client for the HeyGen API.

    Pass ``transport`` to route requests through an httpx transport other
    than the network one (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.heygen.com",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError(
                "HeyGen API key not configured. Set HEYGEN_API_KEY or "
                "AVATARFLOW_HEYGEN__API_KEY."
            )
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "X-Api-Key": self.api_key,
                    "Accept": "application/json",
                },
                follow_redirects=True,
                timeout=httpx.Timeout(self.timeout, connect=30.0),
                transport=self._transport,
            )
        return self._client

    async def list_voices(self) -> list[Voice]:
        logger.info(f"GET {self.base_url}/v2/voices")
        response = await self.client.get("/v2/voices")
        logger.info(f"  voices response: HTTP {response.status_code}")
        response.raise_for_status()
        voices = parse_envelope(VoiceList, response.json(), endpoint="/v2/voices").voices
        logger.info(f"  {len(voices)} voices")
        return voices

    async def list_avatars(self) -> list[Avatar]:
        logger.info(f"GET {self.base_url}/v2/avatars")
        response = await self.client.get("/v2/avatars")
        logger.info(f"  avatars response: HTTP {response.status_code}")
        response.raise_for_status()
        avatars = parse_envelope(AvatarList, response.json(), endpoint="/v2/avatars").avatars
        logger.info(f"  {len(avatars)} avatars")
        return avatars

    async def generate_video(self, request: GenerateVideoRequest) -> str:
        """Submit a video generation request.

        Returns the video_id used for status polling.
        """
        logger.info(
            f"POST {self.base_url}/v2/video/generate title={request.title!r} "
            f"inputs={len(request.video_inputs)}"
        )
        response = await self.client.post(
            "/v2/video/generate", json=request.model_dump(),
        )
        logger.info(f"  generate response: HTTP {response.status_code}")
        response.raise_for_status()
        data = parse_envelope(
            GenerateVideoData, response.json(), endpoint="/v2/video/generate",
        )
        logger.info(f"  video_id: {data.video_id}")
        return data.video_id

    async def get_video_status(self, video_id: str) -> VideoStatusData:
        """Fetch the current status (and, once completed, the URLs) of a video."""
        response = await self.client.get(
            "/v1/video_status.get", params={"video_id": video_id},
        )
        logger.debug(
            f"GET {self.base_url}/v1/video_status.get?video_id={video_id} "
            f"- HTTP {response.status_code}"
        )
        response.raise_for_status()
        data = parse_envelope(
            VideoStatusData, response.json(), endpoint="/v1/video_status.get",
        )
        logger.debug(f"  raw status={data.status} error={data.error}")
        return data

    async def list_videos(self, token: Optional[str] = None) -> VideoList:
        """List generated videos, one page at a time."""
        params = {"token": token} if token else {}
        logger.info(f"GET {self.base_url}/v1/video.list token={token}")
        response = await self.client.get("/v1/video.list", params=params)
        logger.info(f"  list response: HTTP {response.status_code}")
        response.raise_for_status()
        return parse_envelope(VideoList, response.json(), endpoint="/v1/video.list")

    async def delete_video(self, video_id: str) -> None:
        logger.info(f"DELETE {self.base_url}/v1/video.delete video_id={video_id}")
        response = await self.client.delete(
            "/v1/video.delete", params={"video_id": video_id},
        )
        logger.info(f"  delete response: HTTP {response.status_code}")
        response.raise_for_status()

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


# ---------------------------------------------------------------------------
# Module-level lazy singleton
# ---------------------------------------------------------------------------

_heygen_client: Optional[HeyGenClient] = None


async def get_heygen_client(api_key: Optional[str] = None) -> HeyGenClient:
    """Get or create a singleton HeyGenClient.

    Falls back to settings.heygen (and the HEYGEN_API_KEY env var) when
    api_key is not provided.
    """
    global _heygen_client

    resolved_key = api_key or settings.heygen.api_key or ""
    if _heygen_client is not None and _heygen_client.api_key != resolved_key:
        # Key changed - close old client before replacing
        await _heygen_client.close()
        _heygen_client = None

    if _heygen_client is None:
        _heygen_client = HeyGenClient(
            resolved_key,
            base_url=settings.heygen.base_url,
            timeout=settings.heygen.timeout_seconds,
        )
    return _heygen_client


async def close_heygen_client() -> None:
    """Close the singleton HeyGenClient (for CLI shutdown)."""
    global _heygen_client
    if _heygen_client is not None:
        await _heygen_client.close()
        _heygen_client = None

"""Field59 video hosting client.

Publishes a finished video (by URL) to Field59 and returns the key
Field59 assigns to it.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Optional

import httpx

from avatarflow.errors import ConfigurationError, VendorSchemaError
from avatarflow.schemas.field59 import Field59Video

logger = logging.getLogger(__name__)


def parse_video_key(body: str) -> str:
    """Extract the ``<key>`` element from a Field59 create response.

    Raises:
        VendorSchemaError: If the body is not XML or has no key.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise VendorSchemaError(f"Field59 returned malformed XML: {e}") from e
    key_el = root if root.tag == "key" else root.find(".//key")
    if key_el is None or not (key_el.text or "").strip():
        raise VendorSchemaError("Failed to get video key from Field59 response")
    return key_el.text.strip()


class Field59Client:
    """Async client for the Field59 v2 API (HTTP basic auth, XML bodies)."""

    def __init__(
        self,
        username: Optional[str],
        password: Optional[str],
        base_url: str = "https://api.field59.com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not username or not password:
            raise ConfigurationError(
                "Field59 credentials not configured. Set "
                "AVATARFLOW_FIELD59__USERNAME and AVATARFLOW_FIELD59__PASSWORD."
            )
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(username, password),
            headers={"Accept": "application/xml"},
            timeout=httpx.Timeout(60.0, connect=30.0),
            transport=transport,
        )

    async def create_video(self, video: Field59Video) -> str:
        """Create a Field59 video from video.url and return its key."""
        logger.info(
            f"POST {self.base_url}/v2/video/create title={video.title!r} url={video.url}"
        )
        response = await self._client.post(
            "/v2/video/create",
            content=video.to_xml().encode("utf-8"),
            headers={"Content-Type": "application/xml"},
        )
        logger.info(f"  create response: HTTP {response.status_code}")
        response.raise_for_status()
        key = parse_video_key(response.text)
        logger.info(f"  video key: {key}")
        return key

    async def close(self):
        await self._client.aclose()

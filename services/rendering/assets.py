"""Best-effort fetching of document image assets (tenant logo, signature).

A missing, unreachable, oversized or undecodable image is reported as
unavailable (None) and never fails the document. Transient network errors
are retried with tenacity before giving up.
"""

import base64
import binascii
import io
import logging

import httpx
from PIL import Image, UnidentifiedImageError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.shared.config import Settings

logger = logging.getLogger(__name__)


class AssetFetcher:
    """Downloads image assets referenced by a document.

    Supports http(s) URLs and base64 data URIs.
    """

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        """Initialize asset fetcher.

        Args:
            settings: Application settings with asset fetch limits
            client: Optional preconfigured HTTP client
        """
        self.settings = settings
        self._client = client or httpx.Client(
            timeout=settings.asset_fetch_timeout, follow_redirects=True
        )

    def fetch(self, url: str | None) -> bytes | None:
        """Fetch and validate an image.

        Args:
            url: Asset URL (http, https or data URI)

        Returns:
            Image bytes, or None if the asset is unavailable
        """
        if not url:
            return None

        try:
            if url.startswith("data:"):
                data = self._decode_data_uri(url)
            elif url.startswith(("http://", "https://")):
                data = self._download_with_retry(url)
            else:
                logger.warning(f"Unsupported asset URL scheme: {url}")
                return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Asset unavailable ({url}): {e}")
            return None

        if len(data) > self.settings.asset_max_bytes:
            logger.warning(
                f"Asset too large ({url}): {len(data)} bytes > {self.settings.asset_max_bytes}"
            )
            return None

        if not self._is_image(data):
            logger.warning(f"Asset is not a decodable image: {url}")
            return None

        return data

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        wait=wait_exponential_jitter(initial=0.5, max=5),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _download_with_retry(self, url: str) -> bytes:
        """Download asset bytes, retrying transient transport errors.

        Raises:
            httpx.HTTPError: After all retry attempts exhausted or on HTTP error status
        """
        response = self._client.get(url)
        response.raise_for_status()
        return response.content

    @staticmethod
    def _decode_data_uri(url: str) -> bytes:
        header, _, payload = url.partition(",")
        if ";base64" not in header:
            raise ValueError("Only base64 data URIs are supported")
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e

    @staticmethod
    def _is_image(data: bytes) -> bool:
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.verify()
            return True
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            SyntaxError,
            ValueError,
        ):
            return False

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

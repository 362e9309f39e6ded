"""Upload client for the external media host (Cloudinary-compatible API).

Uploads are either unsigned (an upload preset alone) or signed with the
account API key and secret.
"""

import hashlib
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)


class UploadError(Exception):
    """The media host rejected or failed the upload."""


@dataclass(frozen=True)
class MediaFile:
    """An inbound file held in memory until it is uploaded."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class UploadedMedia:
    url: str
    public_id: Optional[str] = None


class MediaUploader:
    """Posts files to the media host and returns their public URL.

    No retries: a failed upload is reported to the caller as UploadError.

    Args:
        upload_url: Full URL of the upload endpoint
        upload_preset: Upload preset name, if the host needs one
        api_key: Account API key; signed uploads need it with api_secret
        api_secret: Account API secret used to sign each upload, never sent
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
        clock: Returns the current Unix time for the signature timestamp
    """

    def __init__(
        self,
        upload_url: str,
        upload_preset: str = "",
        api_key: str = "",
        api_secret: str = "",
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        if bool(api_key) != bool(api_secret):
            raise ValueError("Signed uploads need both api_key and api_secret")

        self.upload_url = upload_url
        self.upload_preset = upload_preset
        self.api_key = api_key
        self._api_secret = api_secret
        self._clock = clock
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def sign(self, params: dict[str, str]) -> str:
        """Signature over the sorted upload parameters and the API secret.

        ``file``, ``api_key`` and ``resource_type`` are not part of the signed
        string.
        """
        to_sign = "&".join(
            f"{key}={value}"
            for key, value in sorted(params.items())
            if key not in ("file", "api_key", "resource_type") and value != ""
        )
        return hashlib.sha1((to_sign + self._api_secret).encode("utf-8")).hexdigest()

    def _form_fields(self) -> dict[str, str]:
        data = {}
        if self.upload_preset:
            data["upload_preset"] = self.upload_preset
        if self.api_key:
            data["timestamp"] = str(int(self._clock()))
            data["signature"] = self.sign(data)
            data["api_key"] = self.api_key
        return data

    async def upload(self, media: MediaFile) -> UploadedMedia:
        """Upload one file.

        Args:
            media: File name, bytes and content type

        Returns:
            UploadedMedia with the hosted URL

        Raises:
            UploadError: On empty input, transport failure, non-2xx status,
                or a reply without a URL
        """
        if not media.content:
            raise UploadError("Empty file")

        data = self._form_fields()
        client = await self._get_client()
        try:
            response = await client.post(
                self.upload_url,
                data=data,
                files={"file": (media.filename, media.content, media.content_type)},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            logger.warning("media_upload_timeout", filename=media.filename)
            raise UploadError("Upload timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "media_upload_rejected",
                filename=media.filename,
                status_code=e.response.status_code,
            )
            raise UploadError(f"Upload rejected with status {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "media_upload_failed",
                filename=media.filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UploadError(str(e)) from e

        if not isinstance(body, dict):
            body = {}
        url = body.get("secure_url") or body.get("url")
        if not url:
            logger.error("media_upload_missing_url", filename=media.filename)
            raise UploadError("Upload response did not include a URL")

        logger.info("media_uploaded", filename=media.filename, size=len(media.content))
        return UploadedMedia(url=url, public_id=body.get("public_id"))

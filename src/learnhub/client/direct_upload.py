"""Client for direct-to-storage uploads.

Raw bytes never pass through the upload service: the client asks the service
for a signed URL, PUTs the bytes straight to the object store and then asks
the service to confirm completion.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Any, Optional

import httpx

from learnhub.storage.buckets import should_use_resumable_upload

logger = logging.getLogger(__name__)


class DirectUploadError(Exception):
    """Raised when any step of a direct upload fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _envelope_message(response: httpx.Response, default: str) -> str:
    try:
        return response.json().get("message") or default
    except ValueError:
        return default


class DirectUploadClient:
    """Uploads files through signed URLs issued by the upload service.

    Args:
        base_url: Upload service base URL, e.g. ``http://localhost:8000``
        user_id: Caller identity forwarded to the service
        timeout: Timeout for service calls in seconds
        upload_timeout: Timeout for the byte transfer in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        timeout: float = 30.0,
        upload_timeout: float = 3600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self._transport = transport

    def _service_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/api/v1/upload",
            timeout=self.timeout,
            transport=self._transport,
            headers={"X-User-Id": self.user_id},
        )

    async def request_signed_url(
        self, file_name: str, file_size: int, mime_type: str, folder: str = ""
    ) -> dict[str, Any]:
        """Ask the service for a signed upload URL."""
        async with self._service_client() as client:
            try:
                response = await client.post(
                    "/signed-url",
                    json={
                        "fileName": file_name,
                        "fileSize": file_size,
                        "mimeType": mime_type,
                        "folder": folder,
                    },
                )
            except httpx.HTTPError as e:
                raise DirectUploadError(f"Failed to get signed URL: {e}") from e

        if not response.is_success:
            raise DirectUploadError(
                _envelope_message(response, "Failed to get signed URL"), response.status_code
            )
        return response.json()["data"]

    async def put_bytes(self, signed_url: str, data: bytes, mime_type: str) -> None:
        """Send the raw bytes straight to storage. Not retried."""
        async with httpx.AsyncClient(timeout=self.upload_timeout, transport=self._transport) as client:
            try:
                response = await client.put(
                    signed_url,
                    content=data,
                    headers={"Content-Type": mime_type, "Cache-Control": "max-age=3600"},
                )
            except httpx.HTTPError as e:
                raise DirectUploadError(f"Upload failed: {e}") from e

        if not response.is_success:
            raise DirectUploadError(
                f"Upload failed: {response.status_code} {response.reason_phrase}",
                response.status_code,
            )

    async def complete(self, upload_id: str) -> dict[str, Any]:
        """Ask the service to confirm the upload and return its descriptor."""
        async with self._service_client() as client:
            try:
                response = await client.post("/complete", json={"uploadId": upload_id})
            except httpx.HTTPError as e:
                raise DirectUploadError(f"Failed to complete upload: {e}") from e

        if not response.is_success:
            raise DirectUploadError(
                _envelope_message(response, "Failed to complete upload"), response.status_code
            )
        return response.json()["data"]

    async def upload_bytes(
        self, data: bytes, file_name: str, mime_type: str, folder: str = ""
    ) -> dict[str, Any]:
        """Run the full signed URL -> PUT -> complete protocol for in-memory data."""
        if should_use_resumable_upload(len(data)):
            logger.info(
                "Large file, resumable upload not available; using direct upload",
                extra={"file_name": file_name, "size": len(data)},
            )

        signed = await self.request_signed_url(file_name, len(data), mime_type, folder)
        logger.debug("Signed URL obtained", extra={"upload_id": signed["uploadId"]})

        await self.put_bytes(signed["signedUrl"], data, mime_type)
        logger.debug("File uploaded to storage", extra={"upload_id": signed["uploadId"]})

        result = await self.complete(signed["uploadId"])
        logger.info(
            "Direct upload completed",
            extra={"upload_id": signed["uploadId"], "secure_url": result.get("secure_url")},
        )
        return result

    async def upload_file(
        self, path: Path | str, folder: str = "", mime_type: str | None = None
    ) -> dict[str, Any]:
        """Upload a local file. The MIME type is guessed from the name when omitted."""
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return await self.upload_bytes(path.read_bytes(), path.name, mime_type, folder)

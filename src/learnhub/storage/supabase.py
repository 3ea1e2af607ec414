"""Supabase Storage backend.

Talks to the Supabase Storage REST API with the service-role key. Signed
upload URLs are single-use and never overwrite an existing object unless
``upsert`` is requested.
"""

import logging
from typing import Any, Optional
from urllib.parse import parse_qs, quote, urlparse

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from learnhub.core.config import settings
from learnhub.core.exceptions import StorageError
from learnhub.storage.base import ObjectStorage, SignedUpload

logger = logging.getLogger(__name__)

_read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)


class SupabaseStorage(ObjectStorage):
    """Supabase Storage backend."""

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not url:
            raise ValueError("SUPABASE_URL not configured")
        if not service_key:
            raise ValueError("SUPABASE_SERVICE_ROLE_KEY not configured")

        self.storage_url = f"{url.rstrip('/')}/storage/v1"
        self._service_key = service_key
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._service_key}",
                "apikey": self._service_key,
            },
        )

    @staticmethod
    def _object_path(bucket: str, path: str) -> str:
        return f"{quote(bucket, safe='')}/{quote(path.lstrip('/'), safe='/')}"

    @staticmethod
    def _raise_for_error(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        try:
            body: Any = response.json()
            detail = body.get("message") or body.get("error") or response.text
        except ValueError:
            detail = response.text
        raise StorageError(
            f"Storage {operation} failed",
            error=f"{response.status_code}: {detail}",
        )

    async def create_signed_upload_url(
        self, bucket: str, path: str, content_type: str, upsert: bool = False
    ) -> SignedUpload:
        """Issue a signed upload URL via ``/object/upload/sign``."""
        async with self._client() as client:
            try:
                response = await client.post(
                    f"{self.storage_url}/object/upload/sign/{self._object_path(bucket, path)}",
                    headers={"x-upsert": "true" if upsert else "false"},
                )
            except httpx.HTTPError as e:
                raise StorageError("Storage sign failed", error=str(e)) from e

        self._raise_for_error(response, "sign")

        relative_url = response.json()["url"]
        signed_url = f"{self.storage_url}{relative_url}"
        token = parse_qs(urlparse(signed_url).query).get("token", [""])[0]
        if not token:
            raise StorageError("Storage sign failed", error="No token in signed URL response")

        logger.debug(
            "Issued signed upload URL",
            extra={"bucket": bucket, "path": path, "content_type": content_type},
        )
        return SignedUpload(signed_url=signed_url, token=token, path=path)

    async def list_objects(self, bucket: str, folder: str = "", search: str = "") -> list[str]:
        """List object names under ``folder`` whose name contains ``search``."""
        try:
            return await self._list_objects(bucket, folder, search)
        except httpx.HTTPError as e:
            raise StorageError("Storage list failed", error=str(e)) from e

    @_read_retry
    async def _list_objects(self, bucket: str, folder: str, search: str) -> list[str]:
        payload = {
            "prefix": folder or "",
            "search": search,
            "limit": 100,
            "offset": 0,
            "sortBy": {"column": "name", "order": "asc"},
        }
        async with self._client() as client:
            response = await client.post(
                f"{self.storage_url}/object/list/{quote(bucket, safe='')}", json=payload
            )
        self._raise_for_error(response, "list")
        return [entry["name"] for entry in response.json() if entry.get("name")]

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.storage_url}/object/public/{self._object_path(bucket, path)}"

    async def download(self, bucket: str, path: str) -> bytes:
        try:
            return await self._download(bucket, path)
        except httpx.HTTPError as e:
            raise StorageError("Storage download failed", error=str(e)) from e

    @_read_retry
    async def _download(self, bucket: str, path: str) -> bytes:
        async with self._client() as client:
            response = await client.get(
                f"{self.storage_url}/object/{self._object_path(bucket, path)}"
            )
        self._raise_for_error(response, "download")
        return response.content

    async def remove(self, bucket: str, paths: list[str]) -> None:
        async with self._client() as client:
            try:
                response = await client.request(
                    "DELETE",
                    f"{self.storage_url}/object/{quote(bucket, safe='')}",
                    json={"prefixes": paths},
                )
            except httpx.HTTPError as e:
                raise StorageError("Storage remove failed", error=str(e)) from e
        self._raise_for_error(response, "remove")

    def get_backend_name(self) -> str:
        return "supabase"


def create_supabase_storage() -> SupabaseStorage:
    """Build a SupabaseStorage from settings."""
    return SupabaseStorage(
        url=settings.SUPABASE_URL,
        service_key=settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.SUPABASE_TIMEOUT_SECONDS,
    )

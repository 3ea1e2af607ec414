"""Google Cloud Storage backend."""

import asyncio
import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import parse_qs, urlparse

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage

from learnhub.core.config import settings
from learnhub.core.exceptions import StorageError
from learnhub.storage.base import ObjectStorage, SignedUpload

logger = logging.getLogger(__name__)


class GCSStorage(ObjectStorage):
    """Google Cloud Storage backend.

    All logical buckets live in one GCS bucket, each under its own top-level
    prefix: ``gs://{GCS_BUCKET_NAME}/{bucket}/{path}``.
    """

    def __init__(self, bucket_name: str | None = None, project_id: str | None = None):
        self.bucket_name = bucket_name if bucket_name is not None else settings.GCS_BUCKET_NAME
        self.project_id = project_id if project_id is not None else settings.GCP_PROJECT_ID
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            if not self.bucket_name:
                raise ValueError("GCS_BUCKET_NAME not configured")

            self._client = storage.Client(project=self.project_id or None)
            self._bucket = self._client.bucket(self.bucket_name)

        return self._bucket

    @staticmethod
    def _blob_path(bucket: str, path: str) -> str:
        return f"{bucket}/{path.lstrip('/')}"

    async def create_signed_upload_url(
        self, bucket: str, path: str, content_type: str, upsert: bool = False
    ) -> SignedUpload:
        """Generate a V4 signed PUT URL.

        ``upsert`` is not enforced at the URL level: a generation precondition
        would require the client to echo an extra header. Upload paths carry a
        random suffix and never collide.
        """
        blob = self._get_bucket().blob(self._blob_path(bucket, path))
        headers = {"Content-Type": content_type}

        try:
            signed_url = await asyncio.to_thread(
                blob.generate_signed_url,
                version="v4",
                expiration=timedelta(hours=settings.SIGNED_URL_EXPIRY_HOURS),
                method="PUT",
                content_type=content_type,
                headers=headers,
            )
        except Exception as e:
            logger.error(
                "Failed to generate GCS signed URL",
                extra={"bucket": bucket, "path": path, "error": str(e)},
            )
            raise StorageError("Storage sign failed", error=str(e)) from e

        token = parse_qs(urlparse(signed_url).query).get("X-Goog-Signature", [""])[0]
        return SignedUpload(signed_url=signed_url, token=token, path=path)

    async def list_objects(self, bucket: str, folder: str = "", search: str = "") -> list[str]:
        prefix = f"{bucket}/{folder.strip('/')}/" if folder else f"{bucket}/"
        gcs_bucket = self._get_bucket()

        def _list() -> list[str]:
            names = []
            for blob in gcs_bucket.list_blobs(prefix=prefix, delimiter="/"):
                name = blob.name[len(prefix):]
                if name and search in name:
                    names.append(name)
            return names

        try:
            return await asyncio.to_thread(_list)
        except GoogleAPIError as e:
            raise StorageError("Storage list failed", error=str(e)) from e

    def get_public_url(self, bucket: str, path: str) -> str:
        return self._get_bucket().blob(self._blob_path(bucket, path)).public_url

    async def download(self, bucket: str, path: str) -> bytes:
        blob = self._get_bucket().blob(self._blob_path(bucket, path))
        try:
            return await asyncio.to_thread(blob.download_as_bytes)
        except NotFound as e:
            raise StorageError(
                "Storage download failed",
                error=f"Object not found: gs://{self.bucket_name}/{self._blob_path(bucket, path)}",
            ) from e

    async def remove(self, bucket: str, paths: list[str]) -> None:
        gcs_bucket = self._get_bucket()

        def _remove() -> None:
            for path in paths:
                try:
                    gcs_bucket.blob(self._blob_path(bucket, path)).delete()
                except NotFound:
                    logger.debug(
                        "Object already absent",
                        extra={"bucket": bucket, "path": path},
                    )

        await asyncio.to_thread(_remove)

    def get_backend_name(self) -> str:
        return "gcs"

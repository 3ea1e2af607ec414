"""Abstract object storage interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SignedUpload:
    """Signed single-use upload URL issued by the object store."""

    signed_url: str
    token: str
    path: str


class ObjectStorage(ABC):
    """Abstract base class for object storage backends.

    Bucket arguments are logical bucket names (see ``learnhub.storage.buckets``).
    """

    @abstractmethod
    async def create_signed_upload_url(
        self, bucket: str, path: str, content_type: str, upsert: bool = False
    ) -> SignedUpload:
        """Issue a signed URL the client can PUT the object bytes to.

        Args:
            bucket: Logical bucket name
            path: Object path inside the bucket
            content_type: Declared MIME type of the upload
            upsert: Whether an existing object may be overwritten

        Returns:
            SignedUpload with URL and token
        """
        pass

    @abstractmethod
    async def list_objects(self, bucket: str, folder: str = "", search: str = "") -> list[str]:
        """List object names directly under ``folder`` matching ``search``."""
        pass

    @abstractmethod
    def get_public_url(self, bucket: str, path: str) -> str:
        """Return the public access URL for an object."""
        pass

    @abstractmethod
    async def download(self, bucket: str, path: str) -> bytes:
        """Download an object's bytes."""
        pass

    @abstractmethod
    async def remove(self, bucket: str, paths: list[str]) -> None:
        """Remove objects."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass

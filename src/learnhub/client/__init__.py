"""Client library for direct-to-storage uploads."""

from .direct_upload import DirectUploadClient, DirectUploadError

__all__ = ["DirectUploadClient", "DirectUploadError"]

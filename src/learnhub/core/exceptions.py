"""Custom exceptions for the upload service."""


class UploadServiceError(Exception):
    """Base exception for the upload service.

    Carries the HTTP status and the user-facing message used to build the
    response envelope. ``error`` holds an optional upstream detail.
    """

    status_code = 500

    def __init__(self, message: str, error: str | None = None):
        super().__init__(message)
        self.message = message
        self.error = error


class UploadValidationError(UploadServiceError):
    """Exception raised when a request or file fails validation."""

    status_code = 400


class UploadAccessDeniedError(UploadServiceError):
    """Exception raised when the caller does not own the upload session."""

    status_code = 403

    def __init__(self, message: str = "Access denied", error: str | None = None):
        super().__init__(message, error)


class UploadNotFoundError(UploadServiceError):
    """Exception raised when an upload session is unknown or expired."""

    status_code = 404

    def __init__(self, message: str = "Upload not found or expired", error: str | None = None):
        super().__init__(message, error)


class UploadNotStoredError(UploadServiceError):
    """Exception raised when the uploaded object is missing from storage."""

    status_code = 400

    def __init__(
        self, message: str = "File not found. Upload may have failed.", error: str | None = None
    ):
        super().__init__(message, error)


class StorageError(UploadServiceError):
    """Exception raised when a required storage operation fails."""

    status_code = 500


class MetadataExtractionError(UploadServiceError):
    """Exception raised when video metadata extraction fails."""

    status_code = 500

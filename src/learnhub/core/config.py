"""Configuration management for the LearnHub upload service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "learnhub-upload"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Storage Configuration
    STORAGE_BACKEND: str = "supabase"  # "supabase" or "gcs"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_TIMEOUT_SECONDS: int = 30
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""

    # Upload Constraints
    IMAGE_MAX_MB: int = 10
    DOCUMENT_MAX_MB: int = 50
    VIDEO_MAX_MB: int = 2048
    RESUMABLE_UPLOAD_THRESHOLD_MB: int = 50  # Advisory only, reported to clients
    SIGNED_URL_EXPIRY_HOURS: int = 24

    # Upload Session Tracking
    UPLOAD_STORE_BACKEND: str = "sqlite"  # "sqlite" or "memory"
    UPLOAD_STORE_PATH: str = "./data/upload_sessions.db"
    UPLOAD_SESSION_TTL_HOURS: int = 24
    UPLOAD_SWEEP_INTERVAL_SECONDS: int = 3600
    UPLOAD_SWEEPER_ENABLED: bool = True

    # Video Metadata Extraction
    VIDEO_METADATA_ENABLED: bool = True
    FFPROBE_PATH: str = "ffprobe"
    FFPROBE_TIMEOUT_SECONDS: int = 60
    VIDEO_DOWNLOAD_ATTEMPTS: int = 3

    @property
    def image_max_bytes(self) -> int:
        """Convert IMAGE_MAX_MB to bytes."""
        return self.IMAGE_MAX_MB * 1024 * 1024

    @property
    def document_max_bytes(self) -> int:
        """Convert DOCUMENT_MAX_MB to bytes."""
        return self.DOCUMENT_MAX_MB * 1024 * 1024

    @property
    def video_max_bytes(self) -> int:
        """Convert VIDEO_MAX_MB to bytes."""
        return self.VIDEO_MAX_MB * 1024 * 1024

    @property
    def resumable_threshold_bytes(self) -> int:
        """Convert RESUMABLE_UPLOAD_THRESHOLD_MB to bytes."""
        return self.RESUMABLE_UPLOAD_THRESHOLD_MB * 1024 * 1024

    @property
    def session_ttl_seconds(self) -> int:
        """Convert UPLOAD_SESSION_TTL_HOURS to seconds."""
        return self.UPLOAD_SESSION_TTL_HOURS * 60 * 60


# Singleton settings instance
settings = Settings()

"""Configuration management for vidupload."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "vidupload-origin"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # GCP Configuration
    GCP_PROJECT_ID: str = ""

    # Storage Configuration
    STORAGE_BACKEND: str = "local"  # "gcs" or "local"
    GCS_BUCKET_NAME: str = ""
    LOCAL_STORAGE_PATH: str = "data/uploads"

    # Origin service
    ORIGIN_PUBLIC_URL: str = "http://127.0.0.1:8080"  # Base for local write targets
    UPLOAD_URL_EXPIRATION_MINUTES: int = 15
    CORS_ALLOW_ORIGINS: str = "http://127.0.0.1:5173"  # Comma-separated

    # Upload client
    ORIGIN_BASE_URL: str = "http://127.0.0.1:8080"
    REQUEST_TIMEOUT: int = 30  # seconds for initialize/finalize calls
    TRANSFER_TIMEOUT: int = 3600  # seconds for the direct PUT
    FINALIZE_RETRY_WINDOW_SECONDS: int | None = 86400  # None = finalize retries never expire
    DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS_ALLOW_ORIGINS into a list."""
        if not self.CORS_ALLOW_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ALLOW_ORIGINS.split(",") if origin.strip()]

    @property
    def upload_url_expiration_seconds(self) -> int:
        """Convert UPLOAD_URL_EXPIRATION_MINUTES to seconds."""
        return self.UPLOAD_URL_EXPIRATION_MINUTES * 60


# Singleton settings instance
settings = Settings()

"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a Backblaze account.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..infrastructure.storage.client import StorageConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like default_asset_dirs), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Bnusa Media API"
    api_version: str = "v1"

    # Backblaze B2 Configuration
    b2_key_id: str = Field(
        default="",
        description="B2 application key ID. Required unless in mock mode."
    )
    b2_app_key: str = Field(
        default="",
        description="B2 application key. Required unless in mock mode."
    )
    b2_bucket_name: str = Field(
        default="",
        description="Bucket that holds profile photos, banners and article images"
    )
    b2_authorize_url: str = Field(
        default="https://api.backblazeb2.com/b2api/v2/b2_authorize_account",
        description="Account authorization endpoint"
    )
    b2_public_url: Optional[str] = Field(
        default=None,
        description="Public base URL (with trailing slash) used for default-image fallbacks"
    )
    b2_session_ttl_hours: float = Field(
        default=22.0,
        description="How long an authorization session is reused. B2 tokens live 24h; refresh before that."
    )
    b2_request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for every call to the storage API"
    )
    b2_info_author: str = Field(
        default="bnusa-app",
        description="Value of the X-Bz-Info-Author metadata header on uploads"
    )
    b2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real B2. Enables local dev without object storage."
    )

    # Default assets
    default_asset_dirs: str = Field(
        default="public,../public,../../public",
        description="Comma-separated directories searched for the built-in default images"
    )
    default_asset_bootstrap_delay_seconds: float = Field(
        default=5.0,
        description="Delay before default images are pushed to storage, so startup isn't blocked"
    )
    default_image_wait_seconds: float = Field(
        default=2.0,
        description="How long the defaults endpoint waits for bootstrap before using the local fallback"
    )

    # Upload intake
    max_upload_size_mb: int = Field(
        default=5,
        description="Maximum image size in MB accepted by the upload endpoints"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def default_asset_dirs_list(self) -> list[str]:
        """Parse comma-separated asset search directories into a list."""
        return [d.strip() for d in self.default_asset_dirs.split(",") if d.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def storage_config(self) -> StorageConfig:
        """Build the storage client configuration from these settings."""
        return StorageConfig(
            key_id=self.b2_key_id,
            application_key=self.b2_app_key,
            bucket_name=self.b2_bucket_name,
            authorize_url=self.b2_authorize_url,
            session_ttl_seconds=self.b2_session_ttl_hours * 3600,
            request_timeout_seconds=self.b2_request_timeout_seconds,
            info_author=self.b2_info_author,
        )

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because the storage client
        reports missing credentials lazily, on first use.
        """
        missing = []

        if not self.b2_mock_mode:
            if not self.b2_key_id:
                missing.append("B2_KEY_ID")
            if not self.b2_app_key:
                missing.append("B2_APP_KEY")
            if not self.b2_bucket_name:
                missing.append("B2_BUCKET_NAME")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()

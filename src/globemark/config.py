"""GLOBEMARK configuration using pydantic-settings.

All configuration is strongly typed and supports environment variables
and .env files.
"""

from typing import NamedTuple, TypeGuard

from pydantic_settings import BaseSettings, SettingsConfigDict

from globemark import __version__


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid.

    This exception provides clear, actionable error messages when
    configuration values required by a specific operation are not set.

    Example:
        >>> Settings(_env_file=None).require_asset_host()  # doctest: +ELLIPSIS
        Traceback (most recent call last):
        ...
        ConfigError: Asset host cloud name not configured. Set it in .env file or
        ASSET_HOST_CLOUD_NAME environment variable.
    """

    def __init__(self, key_name: str, env_var: str) -> None:
        """Initialize configuration error.

        Args:
            key_name: Human-readable name of the missing key.
            env_var: Environment variable name to set.
        """
        self.key_name = key_name
        self.env_var = env_var
        message = (
            f"{key_name} not configured. "
            f"Set it in .env file or {env_var} environment variable."
        )
        super().__init__(message)


class AssetHostConfig(NamedTuple):
    """Resolved asset host coordinates for an unsigned upload."""

    upload_url: str
    upload_preset: str


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Image API (list/create image records)
    IMAGE_API_URL: str = "http://localhost:5000"

    # Asset host (unsigned uploads)
    ASSET_HOST_URL: str = "https://api.cloudinary.com/v1_1"
    ASSET_HOST_CLOUD_NAME: str | None = None
    ASSET_HOST_UPLOAD_PRESET: str | None = None

    # Geocoder
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = f"globemark/{__version__}"
    GEOCODER_RPS: float = 1.0  # Nominatim usage policy: max 1 request/second

    # HTTP behaviour
    HTTP_TIMEOUT_SECONDS: float = 10.0
    HTTP_MAX_ATTEMPTS: int = 1  # 1 = no retry

    # Clustering and visibility
    CLUSTER_THRESHOLD_KM: float = 50.0
    ALTITUDE_THRESHOLD_M: float = 7_000_000.0
    FLY_TO_ALTITUDE_M: float = 2_000_000.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"  # "console" or "json"

    @staticmethod
    def _is_configured_secret(value: str | None) -> TypeGuard[str]:
        return value is not None and value.strip() != ""

    def require_asset_host(self) -> AssetHostConfig:
        """Get the asset host upload endpoint, raising ConfigError if unset.

        Use this method before uploading to get a clear error message
        instead of an opaque 4xx from the asset host.

        Returns:
            AssetHostConfig with the full upload URL and the unsigned preset.

        Raises:
            ConfigError: If ASSET_HOST_CLOUD_NAME or ASSET_HOST_UPLOAD_PRESET
                is not configured.
        """
        if not self._is_configured_secret(self.ASSET_HOST_CLOUD_NAME):
            raise ConfigError("Asset host cloud name", "ASSET_HOST_CLOUD_NAME")
        if not self._is_configured_secret(self.ASSET_HOST_UPLOAD_PRESET):
            raise ConfigError("Asset host upload preset", "ASSET_HOST_UPLOAD_PRESET")
        base = self.ASSET_HOST_URL.rstrip("/")
        return AssetHostConfig(
            upload_url=f"{base}/{self.ASSET_HOST_CLOUD_NAME}/image/upload",
            upload_preset=self.ASSET_HOST_UPLOAD_PRESET,
        )


# Singleton instance for import convenience
settings = Settings()

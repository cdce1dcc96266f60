"""Settings model for slugcmplr.

Contract:
- Inputs: Environment variables, YAML files
- Outputs: Validated settings objects
- Side Effects: None (read-only)
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the compilation pipeline.

    Attributes:
        log_level: Logging level (default: info)
        max_concurrent_downloads: Upper bound on parallel buildpack downloads
        registry_url: Template for official buildpack tarballs, `{name}` is
            substituted with the part after `urn:buildpack:`
        github_url: Base URL of the GitHub host accepted as a buildpack source
        download_timeout: Seconds before a download is abandoned (None: never)
        slug_prefix: Directory prefix for entries in the packaged slug

    Example:
        >>> settings = Settings()
        >>> assert settings.max_concurrent_downloads == 4
    """

    model_config = SettingsConfigDict(
        env_prefix="SLUGCMPLR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "info"
    max_concurrent_downloads: int = 4
    registry_url: str = "https://buildpack-registry.s3.amazonaws.com/buildpacks/{name}.tgz"
    github_url: str = "https://github.com"
    download_timeout: float | None = None
    slug_prefix: str = "./app"

    @field_validator("max_concurrent_downloads")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        """Reject a download pool that could never make progress."""
        if v < 1:
            raise ValueError("max_concurrent_downloads must be at least 1")
        return v

    @field_validator("github_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

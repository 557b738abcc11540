"""Configuration management for dockrun.

This module provides a unified Settings class with flat fields, readable from
the environment or a ``.env`` file, and grouped views over them.

Usage:
    from dockrun.config import settings

    # Access grouped settings
    settings.docker.container_shell
    settings.logging.log_format

    # Or the flat fields
    settings.container_shell
    settings.log_level
"""

from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .docker import DockerConfig
from .logging import LoggingConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Docker engine connection
    docker_host: Optional[str] = Field(
        default=None,
        description="Docker engine URL; falls back to DOCKER_HOST / the local socket",
    )
    docker_timeout: int = Field(default=60, ge=1, le=600)

    # Container creation
    container_shell: str = Field(
        default="/bin/sh",
        description="Shell used as entrypoint; the command runs as '<shell> -c <command>'",
    )
    container_name_prefix: str = Field(default="dockrun", min_length=1)

    # Image resolution
    image_search_limit: int = Field(default=1, ge=1, le=100)
    pull_image: bool = Field(default=True)
    allow_local_images: bool = Field(
        default=False,
        description="Accept images present locally when the registry search finds nothing",
    )

    # Shutdown
    stop_timeout: Optional[int] = Field(
        default=None,
        ge=0,
        le=600,
        description="Seconds to wait for the container to stop before it is killed",
    )
    log_drain_timeout: float = Field(
        default=2.0,
        ge=0,
        le=60,
        description="Seconds to wait for buffered log output once the container ended",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_file: Optional[str] = Field(default=None)
    log_max_size_mb: int = Field(default=100, ge=1)
    log_backup_count: int = Field(default=5, ge=1)

    @validator("container_name_prefix")
    def validate_name_prefix(cls, v):
        """Docker names accept [a-zA-Z0-9][a-zA-Z0-9_.-]."""
        allowed = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_.-")
        if not v[0].isalnum() or not set(v) <= allowed:
            raise ValueError(f"invalid container name prefix: {v!r}")
        return v

    @property
    def docker(self) -> DockerConfig:
        """Access Docker configuration group."""
        return DockerConfig(
            docker_host=self.docker_host,
            docker_timeout=self.docker_timeout,
            container_shell=self.container_shell,
            container_name_prefix=self.container_name_prefix,
            image_search_limit=self.image_search_limit,
            pull_image=self.pull_image,
            allow_local_images=self.allow_local_images,
            stop_timeout=self.stop_timeout,
            log_drain_timeout=self.log_drain_timeout,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
        )

    def get_entrypoint(self) -> List[str]:
        """Get the container entrypoint."""
        return self.docker.get_entrypoint()


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "DockerConfig",
    "LoggingConfig",
]

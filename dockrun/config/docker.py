"""Docker runtime configuration."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class DockerConfig(BaseSettings):
    """Docker engine and container lifecycle settings."""

    docker_host: Optional[str] = Field(default=None, alias="docker_host")
    docker_timeout: int = Field(default=60, ge=1, le=600, alias="docker_timeout")
    container_shell: str = Field(default="/bin/sh", alias="container_shell")
    container_name_prefix: str = Field(default="dockrun", alias="container_name_prefix")
    image_search_limit: int = Field(default=1, ge=1, le=100, alias="image_search_limit")
    pull_image: bool = Field(default=True, alias="pull_image")
    allow_local_images: bool = Field(default=False, alias="allow_local_images")
    stop_timeout: Optional[int] = Field(default=None, ge=0, le=600, alias="stop_timeout")
    log_drain_timeout: float = Field(default=2.0, ge=0, le=60, alias="log_drain_timeout")

    def get_entrypoint(self):
        """Entrypoint that runs the container command through the shell."""
        return [self.container_shell, "-c"]

    class Config:
        env_prefix = ""
        extra = "ignore"
        populate_by_name = True

"""Logging configuration."""

from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class LoggingConfig(BaseSettings):
    """Structured logging settings."""

    log_level: str = Field(default="INFO", alias="log_level")
    log_format: str = Field(default="console", alias="log_format")
    log_file: Optional[str] = Field(default=None, alias="log_file")
    log_max_size_mb: int = Field(default=100, ge=1, alias="log_max_size_mb")
    log_backup_count: int = Field(default=5, ge=1, alias="log_backup_count")

    @validator("log_level")
    def normalize_level(cls, v):
        return v.upper()

    @validator("log_format")
    def validate_format(cls, v):
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    class Config:
        env_prefix = ""
        extra = "ignore"
        populate_by_name = True

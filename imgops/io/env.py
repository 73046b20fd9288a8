"""
Runtime settings for image operations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

IMGOPS_ENV_FILENAME = "imgops.env"


def default_env_path() -> Path:
    return Path.home() / IMGOPS_ENV_FILENAME


class Settings(BaseSettings):
    """Settings read from ``IMGOPS_*`` environment variables or ``imgops.env``."""

    engine_timeout: Optional[float] = Field(default=None, gt=0)
    storage_timeout: Optional[float] = Field(default=None, gt=0)
    default_quality: int = Field(default=80, ge=1, le=100)
    default_compression: int = Field(default=6, ge=0, le=9)
    persist: bool = True
    deadline_workers: int = Field(default=8, ge=1)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="IMGOPS_",
        env_file=(str(default_env_path()), IMGOPS_ENV_FILENAME),
        extra="ignore",
    )

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

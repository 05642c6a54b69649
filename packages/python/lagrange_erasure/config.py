"""
Runtime configuration for the Lagrange erasure kit.

Settings are read from ``LAGRANGE_ERASURE_*`` environment variables (or a
``.env`` file). Command-line flags override them.
"""

import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings loaded from the environment.

    Attributes:
        workers: Threads used for range copies and per-index interpolation
        manifest_name: File name of the manifest inside a working directory
        copy_block_size: Bytes moved per read while splitting a source file
        log_level: Level applied to the package logger by the CLI
        log_json: Emit JSON log lines instead of plain text
    """

    model_config = SettingsConfigDict(
        env_prefix="LAGRANGE_ERASURE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    workers: int = 4
    manifest_name: str = "meta.json"
    copy_block_size: int = 1024 * 1024
    log_level: str = "WARNING"
    log_json: bool = False

    @field_validator("workers")
    @classmethod
    def workers_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("workers must be >= 1")
        return v

    @field_validator("copy_block_size")
    @classmethod
    def copy_block_size_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("copy_block_size must be greater than 0")
        return v

    @field_validator("manifest_name")
    @classmethod
    def manifest_name_must_be_bare(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"manifest_name must be a bare file name, got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """
    Get the cached Settings instance.

    Raises:
        ValidationError: If an environment override is invalid
    """
    return Settings()

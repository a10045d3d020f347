"""Configuration management for ccmonitor."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_BUFFER_LIMIT = 50 * 1024


class MonitorSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    host: str = Field(default="127.0.0.1", validation_alias="CCMONITOR_HOST")
    port: int = Field(default=3000, validation_alias="CCMONITOR_PORT")
    history_path: Path = Field(
        default=Path("./data/sessions.json"), validation_alias="CCMONITOR_HISTORY_PATH"
    )
    buffer_limit: int = Field(default=DEFAULT_BUFFER_LIMIT, validation_alias="CCMONITOR_BUFFER_LIMIT")
    shell: str | None = Field(default=None, validation_alias="CCMONITOR_SHELL")
    startup_command: str = Field(default="claude", validation_alias="CCMONITOR_STARTUP_COMMAND")
    terminal_cols: int = Field(default=80, validation_alias="CCMONITOR_TERMINAL_COLS")
    terminal_rows: int = Field(default=30, validation_alias="CCMONITOR_TERMINAL_ROWS")
    profile_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(Path("profiles"),), validation_alias="CCMONITOR_PROFILE_PATHS"
    )
    log_level: str = Field(default="INFO", validation_alias="CCMONITOR_LOG_LEVEL")
    cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("*",), validation_alias="CCMONITOR_CORS_ORIGINS"
    )
    mcp_enabled: bool = Field(default=True, validation_alias="CCMONITOR_MCP_ENABLED")
    mcp_path: str = Field(default="/mcp", validation_alias="CCMONITOR_MCP_PATH")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "CCMONITOR_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("profile_paths", mode="before")
    @classmethod
    def _parse_profile_paths(cls, value):
        if value is None or value == "":
            return (Path("profiles"),)
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or (Path("profiles"),)
        raise TypeError("CCMONITOR_PROFILE_PATHS must be a list of paths or a path-separated string")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value):
        if value is None or value == "":
            return ("*",)
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip()) or ("*",)
        return value

    @field_validator("buffer_limit", "terminal_cols", "terminal_rows")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("buffer and terminal sizes must be >= 1")
        return value

    @field_validator("mcp_path")
    @classmethod
    def _normalize_mcp_path(cls, value: str) -> str:
        stripped = value.strip().rstrip("/")
        if not stripped:
            raise ValueError("CCMONITOR_MCP_PATH must not be empty or '/'")
        return stripped if stripped.startswith("/") else f"/{stripped}"


@lru_cache(maxsize=1)
def get_settings() -> MonitorSettings:
    """Return cached settings instance."""

    settings = MonitorSettings()
    settings.history_path = settings.history_path.expanduser().resolve()
    settings.profile_paths = tuple(path.expanduser().resolve() for path in settings.profile_paths)
    return settings


__all__ = ["DEFAULT_BUFFER_LIMIT", "MonitorSettings", "get_settings"]

"""Launch profile models for new terminal sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..terminal.utils import split_command_line


class LaunchProfile(BaseModel):
    """Describes how a new session's terminal is started."""

    id: str = Field(..., description="Unique identifier for the profile.")
    title: str = Field(..., description="Display title for the profile.")
    description: str = Field(default="", description="Optional longer description.")
    shell: str | None = Field(
        default=None,
        description="Shell command line to spawn; falls back to the configured shell.",
    )
    startup_command: str | None = Field(
        default=None,
        description="Command typed into the shell once it starts; empty string disables it.",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the session's process.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary metadata surfaced to clients.",
    )

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Launch profile id must not be empty")
        return normalized

    @field_validator("shell")
    @classmethod
    def _check_shell(cls, value: str | None) -> str | None:
        # A blank shell means "use the configured one"; anything else must split into argv.
        if value is None or not value.strip():
            return None
        try:
            split_command_line(value)
        except ValueError as exc:
            raise ValueError(f"shell {value!r} is not a usable command line: {exc}") from exc
        return value.strip()

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value: Any):
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(key): str(item) for key, item in value.items()}
        raise TypeError("Profile env must be a mapping of names to values")

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "shell": self.shell,
            "startupCommand": self.startup_command,
            "tags": self.metadata.get("tags", []),
        }


@dataclass(frozen=True, slots=True)
class LaunchSpec:
    """Everything the registry needs to start one session's terminal."""

    argv: tuple[str, ...]
    startup_command: str = ""
    env: dict[str, str] = field(default_factory=dict)
    profile_id: str | None = None


__all__ = ["LaunchProfile", "LaunchSpec"]

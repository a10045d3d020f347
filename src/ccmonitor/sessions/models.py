"""Session data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..terminal import TerminalProcess
from .buffer import OutputBuffer


class SessionStatus(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETED = "completed"


@dataclass(slots=True)
class Session:
    """A tracked pseudo-terminal process plus its metadata and output buffer."""

    id: str
    working_directory: str
    created_at: datetime
    buffer: OutputBuffer
    process: TerminalProcess | None
    status: SessionStatus = SessionStatus.RUNNING
    profile_id: str | None = None
    exit_code: int | None = None

    @property
    def is_alive(self) -> bool:
        return self.process is not None and self.process.is_alive

    @property
    def output_size(self) -> int:
        return len(self.buffer)

    def to_info(self) -> dict[str, Any]:
        """Serializable record shape shared with clients."""

        return {
            "id": self.id,
            "workingDirectory": self.working_directory,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
        }


__all__ = ["Session", "SessionStatus"]

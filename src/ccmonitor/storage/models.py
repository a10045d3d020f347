"""Data models for persistent session history."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from ..sessions import Session, SessionStatus


@dataclass(slots=True)
class HistoryRecord:
    id: str
    working_directory: str
    status: SessionStatus
    created_at: datetime
    ended_at: datetime | None = None
    output_size: int = 0

    @classmethod
    def from_session(cls, session: Session, *, ended_at: datetime | None = None) -> "HistoryRecord":
        return cls(
            id=session.id,
            working_directory=session.working_directory,
            status=session.status,
            created_at=session.created_at,
            ended_at=ended_at,
            output_size=session.output_size,
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "HistoryRecord":
        """Build a record from its JSON form; raises ``ValueError``/``TypeError`` for bad fields."""

        if not isinstance(payload, dict):
            raise TypeError(f"history record must be an object, got {type(payload).__name__}")
        ended_raw = payload.get("endedAt")
        return cls(
            id=str(payload["id"]),
            working_directory=str(payload.get("workingDirectory") or payload.get("cwd") or ""),
            status=SessionStatus(payload.get("status", SessionStatus.COMPLETED.value)),
            created_at=_parse_timestamp(payload["createdAt"], "createdAt"),
            ended_at=_parse_timestamp(ended_raw, "endedAt") if ended_raw else None,
            output_size=int(payload.get("outputSize", 0) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "workingDirectory": self.working_directory,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "outputSize": self.output_size,
        }
        if self.ended_at is not None:
            payload["endedAt"] = self.ended_at.isoformat()
        return payload

    def copy(self) -> "HistoryRecord":
        return replace(self)


def _parse_timestamp(value: Any, field_name: str) -> datetime:
    # fromisoformat() only accepts a "Z" suffix from Python 3.11 on.
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be an ISO-8601 string, got {type(value).__name__}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


__all__ = ["HistoryRecord"]

"""Error taxonomy shared by the registry, hub and history store."""

from __future__ import annotations


class MonitorError(RuntimeError):
    """Base class for ccmonitor errors."""


class SpawnError(MonitorError):
    """Raised when a session process cannot be started."""


class SessionNotFoundError(MonitorError):
    """Raised when an operation references an unknown session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class MalformedMessageError(MonitorError):
    """Raised when an inbound observer message cannot be parsed."""


class PersistenceError(MonitorError):
    """Raised when the history image cannot be written."""


__all__ = [
    "MonitorError",
    "SpawnError",
    "SessionNotFoundError",
    "MalformedMessageError",
    "PersistenceError",
]

"""Session status state machine driven by hook notifications and process exit."""

from __future__ import annotations

from enum import Enum

from .models import SessionStatus


class NotificationKind(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    COMPLETED = "completed"


_TARGETS = {
    NotificationKind.WAITING: SessionStatus.WAITING,
    NotificationKind.RUNNING: SessionStatus.RUNNING,
    NotificationKind.COMPLETED: SessionStatus.COMPLETED,
}


def parse_notification_kind(value: str | None) -> NotificationKind:
    """Map a hook's ``type`` string to a notification kind.

    Hooks that send anything other than ``running`` or ``completed`` are
    reporting that the process wants attention, so they count as ``waiting``.
    """

    normalized = (value or "").strip().lower()
    try:
        return NotificationKind(normalized)
    except ValueError:
        return NotificationKind.WAITING


def next_status(current: SessionStatus, kind: NotificationKind) -> SessionStatus | None:
    """Return the status a notification moves a session to.

    ``None`` means the notification is ignored: ``completed`` is terminal.
    """

    if current is SessionStatus.COMPLETED:
        return None
    return _TARGETS[kind]


def exit_status(current: SessionStatus) -> SessionStatus | None:
    """Status after the session's process exits on its own."""

    if current is SessionStatus.COMPLETED:
        return None
    return SessionStatus.COMPLETED


__all__ = ["NotificationKind", "exit_status", "next_status", "parse_notification_kind"]

"""Session registry, output buffering and status tracking."""

from .buffer import OutputBuffer
from .models import Session, SessionStatus
from .registry import SESSION_ENV_VAR, SessionRegistry
from .status import NotificationKind, exit_status, next_status, parse_notification_kind

__all__ = [
    "NotificationKind",
    "OutputBuffer",
    "SESSION_ENV_VAR",
    "Session",
    "SessionRegistry",
    "SessionStatus",
    "exit_status",
    "next_status",
    "parse_notification_kind",
]

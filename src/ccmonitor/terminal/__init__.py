"""Pseudo-terminal process adapter and event plumbing."""

from .events import EventChannel, EventSink, TerminalEvent
from .process import (
    FakeTerminal,
    FakeTerminalFactory,
    PtyTerminal,
    PtyTerminalFactory,
    TerminalFactory,
    TerminalProcess,
)
from .utils import (
    default_shell,
    normalize_directory,
    platform_info,
    sanitize_environment,
    split_command_line,
)

__all__ = [
    "EventChannel",
    "EventSink",
    "FakeTerminal",
    "FakeTerminalFactory",
    "PtyTerminal",
    "PtyTerminalFactory",
    "TerminalEvent",
    "TerminalFactory",
    "TerminalProcess",
    "default_shell",
    "normalize_directory",
    "platform_info",
    "sanitize_environment",
    "split_command_line",
]

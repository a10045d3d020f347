"""Platform helpers for terminal sessions."""

from __future__ import annotations

import os
import shlex
import shutil
import sys
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for a session's shell."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    env.setdefault("TERM", "xterm-256color")
    if additional:
        env.update(additional)
    return env


def is_windows() -> bool:
    return sys.platform == "win32"


def default_shell() -> str:
    """Return the shell new sessions start when none is configured."""

    if is_windows():
        return "powershell.exe"
    return os.environ.get("SHELL") or shutil.which("bash") or "/bin/sh"


def split_command_line(command: str) -> list[str]:
    """Split a shell command line into argv using the host platform's quoting rules.

    Raises ``ValueError`` for unbalanced quotes or a blank command line.
    """

    argv = shlex.split(command, posix=not is_windows())
    if not argv:
        raise ValueError("command line is empty")
    return argv


def platform_info(shell: str | None = None) -> dict[str, object]:
    """Describe the host platform for clients that adapt key bindings to it."""

    return {
        "platform": sys.platform,
        "isWindows": is_windows(),
        "shell": shell or default_shell(),
    }


def normalize_directory(path: str) -> str:
    """Fold a directory for comparison: case-insensitive, ``/`` and ``\\`` equivalent.

    Trailing separators are dropped unless the path is a bare root.
    """

    folded = path.strip().replace("/", "\\").lower()
    trimmed = folded.rstrip("\\")
    if not trimmed or trimmed.endswith(":"):
        return folded[: len(trimmed) + 1] if folded else folded
    return trimmed


__all__ = [
    "default_shell",
    "is_windows",
    "normalize_directory",
    "platform_info",
    "sanitize_environment",
    "split_command_line",
]

"""Pseudo-terminal process adapter."""

from __future__ import annotations

import codecs
import logging
import threading
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from ..errors import SpawnError
from .events import EventSink, TerminalEvent

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class TerminalProcess(Protocol):
    """Minimal handle the registry needs from a spawned terminal process."""

    pid: int | None

    @property
    def is_alive(self) -> bool:
        ...

    def write(self, data: str) -> None:
        ...

    def resize(self, cols: int, rows: int) -> None:
        ...

    def kill(self) -> None:
        ...


class TerminalFactory(Protocol):
    """Spawns terminal processes that publish their output and exit to a sink."""

    def spawn(
        self,
        session_id: str,
        argv: Sequence[str],
        *,
        cwd: str,
        env: Mapping[str, str],
        dimensions: tuple[int, int],
        sink: EventSink,
    ) -> TerminalProcess:
        ...


class PtyTerminal:
    """A ``ptyprocess`` child with a reader thread feeding the event sink."""

    def __init__(self, session_id: str, process, sink: EventSink) -> None:
        self.session_id = session_id
        self.pid: int | None = process.pid
        self._process = process
        self._sink = sink
        self._lock = threading.Lock()
        self._killed = False
        self._reader = threading.Thread(
            target=self._read_loop,
            daemon=True,
            name=f"ccmonitor-pty-{session_id[:8]}",
        )

    def start(self) -> None:
        self._reader.start()

    @property
    def is_alive(self) -> bool:
        if self._killed:
            return False
        try:
            return bool(self._process.isalive())
        except Exception:  # ptyprocess raises its own error once the child is reaped
            return False

    def write(self, data: str) -> None:
        self._process.write(data.encode("utf-8"))

    def resize(self, cols: int, rows: int) -> None:
        self._process.setwinsize(rows, cols)

    def kill(self) -> None:
        with self._lock:
            if self._killed:
                return
            self._killed = True
            try:
                if self._process.isalive():
                    self._process.terminate(force=True)
            except Exception as exc:  # ptyprocess.PtyProcessError or OSError
                logger.debug(
                    "Terminal already gone during kill",
                    extra={"session_id": self.session_id, "error": str(exc)},
                )

    def _read_loop(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                chunk = self._process.read(READ_CHUNK_SIZE)
            except EOFError:
                break
            except OSError as exc:
                logger.debug(
                    "Terminal read ended",
                    extra={"session_id": self.session_id, "error": str(exc)},
                )
                break
            text = decoder.decode(chunk)
            if text:
                self._sink(TerminalEvent(self.session_id, "data", data=text))

        tail = decoder.decode(b"", final=True)
        if tail:
            self._sink(TerminalEvent(self.session_id, "data", data=tail))
        self._sink(TerminalEvent(self.session_id, "exit", exit_code=self._reap()))

    def _reap(self) -> int:
        with self._lock:
            try:
                self._process.close(force=True)
            except Exception as exc:  # ptyprocess.PtyProcessError or OSError
                logger.debug(
                    "Terminal close failed",
                    extra={"session_id": self.session_id, "error": str(exc)},
                )
        if self._process.exitstatus is not None:
            return int(self._process.exitstatus)
        if self._process.signalstatus is not None:
            return 128 + int(self._process.signalstatus)
        return -1


class PtyTerminalFactory:
    """Spawn session processes attached to a pseudo-terminal."""

    def spawn(
        self,
        session_id: str,
        argv: Sequence[str],
        *,
        cwd: str,
        env: Mapping[str, str],
        dimensions: tuple[int, int],
        sink: EventSink,
    ) -> PtyTerminal:
        if not Path(cwd).is_dir():
            raise SpawnError(f"Working directory not found: {cwd}")

        try:
            import ptyprocess
        except ImportError as exc:  # pragma: no cover - depends on platform
            raise SpawnError(
                "ptyprocess is not available; pseudo-terminals require a POSIX host"
            ) from exc

        cols, rows = dimensions
        try:
            process = ptyprocess.PtyProcess.spawn(
                list(argv),
                cwd=cwd,
                env=dict(env),
                dimensions=(rows, cols),
            )
        except (OSError, ptyprocess.PtyProcessError) as exc:
            raise SpawnError(f"Failed to spawn {argv[0]!r} in {cwd}: {exc}") from exc

        terminal = PtyTerminal(session_id, process, sink)
        terminal.start()
        logger.info(
            "Spawned terminal",
            extra={"session_id": session_id, "pid": terminal.pid, "cwd": cwd},
        )
        return terminal


class FakeTerminal:
    """Test double that records input and lets tests drive output and exit."""

    def __init__(self, session_id: str, sink: EventSink, *, cwd: str, argv: Sequence[str]) -> None:
        self.session_id = session_id
        self.pid: int | None = None
        self.cwd = cwd
        self.argv = tuple(argv)
        self.writes: list[str] = []
        self.resizes: list[tuple[int, int]] = []
        self.kill_count = 0
        self.write_error: Exception | None = None
        self._sink = sink
        self._alive = True

    @property
    def is_alive(self) -> bool:
        return self._alive

    def write(self, data: str) -> None:
        if not self._alive:
            raise OSError("terminal is closed")
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(data)

    def resize(self, cols: int, rows: int) -> None:
        if not self._alive:
            raise OSError("terminal is closed")
        self.resizes.append((cols, rows))

    def kill(self) -> None:
        self.kill_count += 1
        self._alive = False

    def emit(self, data: str) -> None:
        self._sink(TerminalEvent(self.session_id, "data", data=data))

    def exit(self, exit_code: int = 0) -> None:
        self._alive = False
        self._sink(TerminalEvent(self.session_id, "exit", exit_code=exit_code))


class FakeTerminalFactory:
    """Factory double returning :class:`FakeTerminal` handles."""

    def __init__(
        self,
        *,
        fail_with: Exception | None = None,
        fail_writes_with: Exception | None = None,
    ) -> None:
        self.fail_with = fail_with
        self.fail_writes_with = fail_writes_with
        self.spawned: list[FakeTerminal] = []
        self.environments: list[dict[str, str]] = []

    def spawn(
        self,
        session_id: str,
        argv: Sequence[str],
        *,
        cwd: str,
        env: Mapping[str, str],
        dimensions: tuple[int, int],
        sink: EventSink,
    ) -> FakeTerminal:
        if self.fail_with is not None:
            raise self.fail_with
        terminal = FakeTerminal(session_id, sink, cwd=cwd, argv=argv)
        terminal.write_error = self.fail_writes_with
        self.spawned.append(terminal)
        self.environments.append(dict(env))
        return terminal

    @property
    def last(self) -> FakeTerminal:
        return self.spawned[-1]


__all__ = [
    "FakeTerminal",
    "FakeTerminalFactory",
    "PtyTerminal",
    "PtyTerminalFactory",
    "TerminalFactory",
    "TerminalProcess",
]

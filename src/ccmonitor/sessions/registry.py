"""In-memory registry owning every session and its terminal process."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterator

from ..config import DEFAULT_BUFFER_LIMIT
from ..errors import SessionNotFoundError, SpawnError
from ..profiles import LaunchProfile, build_launch
from ..terminal import (
    EventSink,
    TerminalFactory,
    default_shell,
    normalize_directory,
    sanitize_environment,
)
from .buffer import OutputBuffer
from .models import Session, SessionStatus
from .status import exit_status

logger = logging.getLogger(__name__)

SESSION_ENV_VAR = "CCMONITOR_SESSION_ID"

CreateHook = Callable[[Session], None]


class SessionRegistry:
    """Own the id -> session mapping and every operation that mutates it.

    All methods are synchronous and expected to run on the event loop that
    consumes terminal events. Only spawning and :meth:`release` can block;
    callers on the loop detach a session first and release it off-loop.
    """

    def __init__(
        self,
        factory: TerminalFactory,
        *,
        sink: EventSink,
        buffer_limit: int = DEFAULT_BUFFER_LIMIT,
        shell: str | None = None,
        startup_command: str = "",
        dimensions: tuple[int, int] = (80, 30),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._factory = factory
        self._sink = sink
        self._buffer_limit = buffer_limit
        self._shell = shell
        self._startup_command = startup_command
        self._dimensions = dimensions
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: dict[str, Session] = {}
        self._create_hooks: list[CreateHook] = []

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    @property
    def buffer_limit(self) -> int:
        return self._buffer_limit

    @property
    def shell(self) -> str:
        """Shell command line used when no profile overrides it."""

        return self._shell or default_shell()

    def add_create_hook(self, hook: CreateHook) -> None:
        """Register a callback invoked synchronously at the end of ``create_session``."""

        self._create_hooks.append(hook)

    def create_session(self, working_directory: str, *, profile: LaunchProfile | None = None) -> Session:
        """Spawn a terminal rooted at ``working_directory`` and register it.

        Raises :class:`SpawnError` when the process cannot be started; no
        session is registered in that case.
        """

        directory = (working_directory or "").strip()
        if not directory:
            raise SpawnError("Working directory is required")

        try:
            launch = build_launch(profile, shell=self.shell, startup_command=self._startup_command)
        except ValueError as exc:
            raise SpawnError(f"Invalid shell command line: {exc}") from exc

        session_id = str(uuid.uuid4())
        extra_env = dict(launch.env)
        extra_env[SESSION_ENV_VAR] = session_id

        try:
            process = self._factory.spawn(
                session_id,
                list(launch.argv),
                cwd=directory,
                env=sanitize_environment(extra_env),
                dimensions=self._dimensions,
                sink=self._sink,
            )
        except SpawnError:
            raise
        except OSError as exc:
            raise SpawnError(f"Failed to spawn terminal in {directory}: {exc}") from exc

        if launch.startup_command:
            try:
                process.write(f"{launch.startup_command}\r")
            except OSError as exc:
                process.kill()
                raise SpawnError(f"Failed to issue startup command in {directory}: {exc}") from exc

        session = Session(
            id=session_id,
            working_directory=directory,
            created_at=self._clock(),
            buffer=OutputBuffer(self._buffer_limit),
            process=process,
            profile_id=launch.profile_id,
        )
        self._sessions[session_id] = session
        logger.info(
            "Created session",
            extra={"session_id": session_id, "cwd": directory, "profile": session.profile_id},
        )

        for hook in self._create_hooks:
            try:
                hook(session)
            except Exception:
                logger.exception("Session create hook failed", extra={"session_id": session_id})

        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def detach(self, session_id: str) -> Session | None:
        """Forget a session without stopping it.

        The process stays on ``session.process``; the caller is expected to
        pass the session to :meth:`release`, possibly from a worker thread.
        """

        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Deleted session", extra={"session_id": session_id})
        return session

    def delete_session(self, session_id: str) -> bool:
        """Kill the session's process and forget it; unknown ids are a no-op."""

        session = self.detach(session_id)
        if session is None:
            return False
        self.release(session)
        session.buffer.clear()
        return True

    def write(self, session_id: str, data: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None or not session.is_alive:
            return False
        try:
            session.process.write(data)
        except OSError as exc:
            logger.debug("Write to terminal failed", extra={"session_id": session_id, "error": str(exc)})
            return False
        return True

    def resize(self, session_id: str, cols: int, rows: int) -> bool:
        session = self._sessions.get(session_id)
        if session is None or not session.is_alive:
            return False
        try:
            session.process.resize(cols, rows)
        except OSError as exc:
            logger.debug("Resize of terminal failed", extra={"session_id": session_id, "error": str(exc)})
            return False
        return True

    def find_by_directory(self, directory: str) -> Session | None:
        """Return the most recently created session whose directory matches."""

        target = normalize_directory(directory)
        for session in reversed(list(self._sessions.values())):
            if normalize_directory(session.working_directory) == target:
                return session
        return None

    def update_status(self, session_id: str, status: SessionStatus) -> bool:
        """Set a session's status; ``completed`` sessions never change again."""

        session = self._sessions.get(session_id)
        if session is None or session.status is SessionStatus.COMPLETED:
            return False
        session.status = SessionStatus(status)
        if session.status is SessionStatus.COMPLETED:
            session.buffer.freeze()
        return True

    def mark_exited(self, session_id: str, exit_code: int | None) -> bool:
        """Record that the session's process exited on its own."""

        session = self._sessions.get(session_id)
        if session is None or session.process is None:
            return False
        session.exit_code = exit_code
        self.release(session)
        session.status = exit_status(session.status) or session.status
        session.buffer.freeze()
        logger.info("Session process exited", extra={"session_id": session_id, "exit_code": exit_code})
        return True

    def append_output(self, session_id: str, data: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None or session.process is None:
            return False
        return session.buffer.append(data)

    def get_output_buffer(self, session_id: str) -> str | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return session.buffer.snapshot()

    def detach_all(self) -> list[Session]:
        """Forget every session; returns those whose process still needs :meth:`release`."""

        attached = [session for session in self._sessions.values() if session.process is not None]
        self._sessions.clear()
        return attached

    def close(self) -> list[Session]:
        """Kill every live process in the calling thread; returns the sessions released."""

        released = self.detach_all()
        for session in released:
            self.release(session)
        return released

    @staticmethod
    def release(session: Session) -> None:
        """Kill and drop the session's process; may block while the process dies."""

        process, session.process = session.process, None
        if process is not None:
            process.kill()


__all__ = ["SESSION_ENV_VAR", "SessionRegistry"]

"""Session monitor: owns the registry, hub and history and runs the event pump."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from . import __version__, protocol
from .config import DEFAULT_BUFFER_LIMIT, MonitorSettings
from .hub import SubscriptionHub
from .profiles import ProfileLoader
from .sessions import Session, SessionRegistry, next_status, parse_notification_kind
from .storage import HistoryRecord, HistoryStore
from .terminal import EventChannel, PtyTerminalFactory, TerminalEvent, TerminalFactory

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_TIMEOUT = 1.0


class SessionMonitor:
    """Wire sessions, observers and history together on one event loop.

    Terminal output and exits, plus the registry's post-create hook, all
    arrive on a single :class:`EventChannel`; the pump task consumes it in
    order, so every mutation of shared state happens on the loop.
    """

    def __init__(
        self,
        *,
        factory: TerminalFactory,
        history: HistoryStore,
        profiles: ProfileLoader | None = None,
        buffer_limit: int = DEFAULT_BUFFER_LIMIT,
        shell: str | None = None,
        startup_command: str = "",
        dimensions: tuple[int, int] = (80, 30),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.channel = EventChannel()
        self.registry = SessionRegistry(
            factory,
            sink=self.channel.publish,
            buffer_limit=buffer_limit,
            shell=shell,
            startup_command=startup_command,
            dimensions=dimensions,
            clock=clock,
        )
        self.registry.add_create_hook(self._on_created)
        self.hub = SubscriptionHub(self.registry)
        self.history = history
        self.profiles = profiles or ProfileLoader()
        self.started_at: datetime | None = None
        self._pump: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls,
        settings: MonitorSettings,
        *,
        factory: TerminalFactory | None = None,
        profiles: ProfileLoader | None = None,
    ) -> "SessionMonitor":
        return cls(
            factory=factory or PtyTerminalFactory(),
            history=HistoryStore(settings.history_path),
            profiles=profiles or ProfileLoader(settings.profile_paths),
            buffer_limit=settings.buffer_limit,
            shell=settings.shell,
            startup_command=settings.startup_command,
            dimensions=(settings.terminal_cols, settings.terminal_rows),
        )

    @property
    def running(self) -> bool:
        return self._pump is not None and not self._pump.done()

    async def start(self) -> None:
        """Load history and start consuming terminal events on the running loop."""

        if self.running:
            return
        self.channel.bind(asyncio.get_running_loop())
        if not self.history.loaded:
            await self.history.load()
        self._pump = asyncio.create_task(self._run(), name="ccmonitor-event-pump")
        self.started_at = datetime.now(timezone.utc)
        logger.info("Session monitor started", extra={"history_path": str(self.history.path)})

    async def shutdown(self) -> None:
        """Kill every session, close out their history records and stop the pump."""

        if self.running:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self.flush(), timeout=SHUTDOWN_DRAIN_TIMEOUT)

        released = self.registry.detach_all()
        await asyncio.gather(*(asyncio.to_thread(self.registry.release, session) for session in released))
        for session in released:
            await self.history.end_session(session.id, session.output_size)

        if self._pump is not None:
            self._pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump
            self._pump = None
        logger.info("Session monitor stopped", extra={"killed": len(released)})

    async def flush(self) -> None:
        """Wait until every queued terminal event has been handled."""

        await self.channel.join()

    def create_session(self, working_directory: str, profile_id: str | None = None) -> Session:
        """Spawn a session; raises ``SpawnError`` or ``ProfileLoadError``."""

        profile = self.profiles.get(profile_id) if profile_id else None
        return self.registry.create_session(working_directory, profile=profile)

    async def delete_session(self, session_id: str) -> bool:
        session = self.registry.detach(session_id)
        if session is None:
            return False
        output_size = session.output_size
        self.hub.drop_session(session_id)
        await asyncio.to_thread(self.registry.release, session)
        session.buffer.clear()
        await self.history.end_session(session_id, output_size)
        await self.hub.broadcast(protocol.session_deleted(session_id))
        return True

    async def notify(self, notify_type: str | None, working_directory: str) -> Session | None:
        """Apply a hook notification to the session running in ``working_directory``.

        Returns the matched session when its status was updated and ``None``
        when nothing matched or the session had already completed.
        """

        kind = parse_notification_kind(notify_type)
        session = self.registry.find_by_directory(working_directory)
        if session is None:
            logger.debug("No session for notification", extra={"cwd": working_directory, "kind": kind.value})
            return None

        target = next_status(session.status, kind)
        if target is None:
            logger.debug(
                "Ignoring notification for completed session",
                extra={"session_id": session.id, "kind": kind.value},
            )
            return None

        self.registry.update_status(session.id, target)
        await self.history.update_status(session.id, target, session.output_size)
        await self.hub.broadcast(
            protocol.notification(session.id, (notify_type or "").strip() or kind.value, target.value)
        )
        logger.info(
            "Session status updated",
            extra={"session_id": session.id, "status": target.value, "kind": kind.value},
        )
        return session

    def status_summary(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for session in self.registry.list_sessions():
            counts[session.status.value] = counts.get(session.status.value, 0) + 1
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "sessions": {"count": len(self.registry), "status_counts": counts},
            "observers": self.hub.connection_count,
            "pending_events": self.channel.pending,
            "history": {"path": str(self.history.path), "count": len(self.history)},
        }

    def _on_created(self, session: Session) -> None:
        self.channel.publish(TerminalEvent(session.id, "created"))

    async def _run(self) -> None:
        while True:
            event = await self.channel.get()
            try:
                await self._dispatch(event)
            except Exception:
                logger.exception(
                    "Failed to handle terminal event",
                    extra={"session_id": event.session_id, "kind": event.kind},
                )
            finally:
                self.channel.task_done()

    async def _dispatch(self, event: TerminalEvent) -> None:
        session = self.registry.get(event.session_id)
        if session is None:
            return

        if event.kind == "created":
            await self.history.save_session(HistoryRecord.from_session(session))
            await self.hub.broadcast(protocol.session_created(session.to_info()))
        elif event.kind == "data":
            if session.process is None:
                return
            self.registry.append_output(session.id, event.data)
            await self.hub.send_to_session(session.id, protocol.session_data(session.id, event.data))
        elif event.kind == "exit":
            if not self.registry.mark_exited(session.id, event.exit_code):
                return
            await self.history.end_session(session.id, session.output_size)
            await self.hub.broadcast(protocol.session_exit(session.id, event.exit_code))


__all__ = ["SessionMonitor"]

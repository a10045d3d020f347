"""Typed terminal events and the channel that carries them to the event loop."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Callable, Literal

EventKind = Literal["created", "data", "exit"]


@dataclass(slots=True, frozen=True)
class TerminalEvent:
    """A single lifecycle or output event emitted for a session."""

    session_id: str
    kind: EventKind
    data: str = ""
    exit_code: int | None = None


EventSink = Callable[[TerminalEvent], None]


class EventChannel:
    """Hand terminal events from reader threads to the loop that owns session state.

    Events published from the loop thread are enqueued immediately; events
    published from any other thread are scheduled with ``call_soon_threadsafe``.
    Either way, events of one publisher keep their order.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[TerminalEvent] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def publish(self, event: TerminalEvent) -> None:
        loop = self._loop
        if loop is None or self._on_loop_thread(loop):
            self._queue.put_nowait(event)
            return
        if loop.is_closed():
            return
        # The loop can still close between the check and the call during shutdown.
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(self._queue.put_nowait, event)

    @staticmethod
    def _on_loop_thread(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    async def get(self) -> TerminalEvent:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()


__all__ = ["EventChannel", "EventKind", "EventSink", "TerminalEvent"]

"""Subscription broadcast layer between observer connections and sessions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from itertools import count
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Protocol

from . import protocol
from .errors import MalformedMessageError
from .sessions import SessionRegistry

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Anything that can push a JSON event to one observer (e.g. a WebSocket)."""

    async def send_json(self, data: Any) -> None:
        ...


class Observer:
    """One connected observer; sends to it are serialized in call order."""

    def __init__(self, connection: Connection, observer_id: int) -> None:
        self.id = observer_id
        self.connection = connection
        self.subscriptions: set[str] = set()
        self.closed = False
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"Observer(id={self.id}, subscriptions={sorted(self.subscriptions)})"

    async def send(self, event: dict[str, Any]) -> bool:
        async with self.sending() as deliver:
            return await deliver(event)

    @contextlib.asynccontextmanager
    async def sending(self) -> AsyncIterator[Callable[[dict[str, Any]], Awaitable[bool]]]:
        """Hold this observer's send order; no other send interleaves until exit."""

        async with self._lock:
            yield self._deliver

    async def _deliver(self, event: dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            await self.connection.send_json(event)
        except Exception as exc:  # the connection may close under us at any point
            self.closed = True
            logger.debug(
                "Dropping observer after failed send",
                extra={"observer_id": self.id, "event_type": event.get("type"), "error": str(exc)},
            )
            return False
        return True


class SubscriptionHub:
    """Track observers and route commands and events between them and sessions."""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._observers: dict[int, Observer] = {}
        self._subscribers: dict[str, set[Observer]] = {}
        self._ids = count(1)

    @property
    def connection_count(self) -> int:
        return len(self._observers)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    def connect(self, connection: Connection) -> Observer:
        observer = Observer(connection, next(self._ids))
        self._observers[observer.id] = observer
        logger.info("Observer connected", extra={"observer_id": observer.id})
        return observer

    def disconnect(self, observer: Observer) -> None:
        """Forget an observer everywhere; safe to call more than once."""

        observer.closed = True
        self._observers.pop(observer.id, None)
        for session_id in list(observer.subscriptions):
            self._discard(session_id, observer)
        observer.subscriptions.clear()
        logger.info("Observer disconnected", extra={"observer_id": observer.id})

    async def subscribe(self, observer: Observer, session_id: str) -> bool:
        """Subscribe and replay the session's buffered output to this observer only."""

        if session_id not in self._registry:
            await observer.send(protocol.error("Session not found", session_id))
            return False

        async with observer.sending() as deliver:
            if session_id not in self._registry or observer.closed:
                return False
            self._subscribers.setdefault(session_id, set()).add(observer)
            observer.subscriptions.add(session_id)
            buffered = self._registry.get_output_buffer(session_id)
            if buffered:
                await deliver(protocol.session_data(session_id, buffered))
        logger.debug(
            "Observer subscribed",
            extra={"observer_id": observer.id, "session_id": session_id, "replayed": len(buffered or "")},
        )
        return True

    def unsubscribe(self, observer: Observer, session_id: str) -> bool:
        if session_id not in observer.subscriptions:
            return False
        self._discard(session_id, observer)
        observer.subscriptions.discard(session_id)
        logger.debug("Observer unsubscribed", extra={"observer_id": observer.id, "session_id": session_id})
        return True

    def drop_session(self, session_id: str) -> None:
        """Remove every subscription to a session that no longer exists."""

        for observer in self._subscribers.pop(session_id, set()):
            observer.subscriptions.discard(session_id)

    async def handle_message(self, observer: Observer, raw: str | bytes) -> None:
        """Route one inbound frame; failures only ever reach this observer."""

        try:
            message = protocol.parse_message(raw)
        except MalformedMessageError as exc:
            logger.warning(
                "Dropped malformed message",
                extra={"observer_id": observer.id, "error": str(exc)},
            )
            return

        if message is None:
            logger.info(
                "Ignoring unknown message type",
                extra={"observer_id": observer.id, "message_type": protocol.message_type(raw)},
            )
            return

        if isinstance(message, protocol.SubscribeMessage):
            await self.subscribe(observer, message.session_id)
        elif isinstance(message, protocol.UnsubscribeMessage):
            self.unsubscribe(observer, message.session_id)
        elif isinstance(message, protocol.InputMessage):
            if not self._registry.write(message.session_id, message.data):
                await self._reject(observer, message.session_id)
        elif isinstance(message, protocol.ResizeMessage):
            if not self._registry.resize(message.session_id, message.cols, message.rows):
                await self._reject(observer, message.session_id)

    async def broadcast(self, event: dict[str, Any]) -> int:
        """Send an event to every connected observer."""

        return await self._fan_out(self._observers.values(), event)

    async def send_to_session(self, session_id: str, event: dict[str, Any]) -> int:
        """Send an event to the observers subscribed to ``session_id`` only."""

        return await self._fan_out(self._subscribers.get(session_id, ()), event)

    async def _reject(self, observer: Observer, session_id: str) -> None:
        reason = "Session is not running" if session_id in self._registry else "Session not found"
        await observer.send(protocol.error(reason, session_id))

    def _discard(self, session_id: str, observer: Observer) -> None:
        subscribers = self._subscribers.get(session_id)
        if subscribers is None:
            return
        subscribers.discard(observer)
        if not subscribers:
            del self._subscribers[session_id]

    @staticmethod
    async def _fan_out(observers: Iterable[Observer], event: dict[str, Any]) -> int:
        targets = list(observers)
        if not targets:
            return 0
        results = await asyncio.gather(*(observer.send(event) for observer in targets))
        return sum(1 for delivered in results if delivered)


__all__ = ["Connection", "Observer", "SubscriptionHub"]

from __future__ import annotations

import asyncio
import json
import textwrap
import threading
from pathlib import Path
from typing import Any

import pytest

from ccmonitor.monitor import SessionMonitor
from ccmonitor.profiles import ProfileLoadError, ProfileLoader
from ccmonitor.sessions import SessionStatus
from ccmonitor.storage import HistoryStore
from ccmonitor.terminal import FakeTerminalFactory


class RecordingConnection:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        self.sent.append(data)

    def types(self) -> list[str]:
        return [event["type"] for event in self.sent]


def _monitor(tmp_path: Path, **kwargs) -> tuple[SessionMonitor, FakeTerminalFactory]:
    factory = FakeTerminalFactory()
    monitor = SessionMonitor(
        factory=factory,
        history=HistoryStore(tmp_path / "sessions.json"),
        startup_command="claude",
        **kwargs,
    )
    return monitor, factory


def _history_file(tmp_path: Path) -> list[dict[str, Any]]:
    return json.loads((tmp_path / "sessions.json").read_text(encoding="utf-8"))


def test_created_event_and_history_follow_create(tmp_path: Path) -> None:
    monitor, _ = _monitor(tmp_path)
    watcher = RecordingConnection()

    async def scenario() -> str:
        await monitor.start()
        monitor.hub.connect(watcher)
        session = monitor.create_session("/x")
        await monitor.flush()
        await monitor.shutdown()
        return session.id

    session_id = asyncio.run(scenario())

    assert watcher.sent[0]["type"] == "session:created"
    assert watcher.sent[0]["session"]["id"] == session_id
    [entry] = _history_file(tmp_path)
    assert entry["id"] == session_id
    assert entry["status"] == "completed"
    assert "endedAt" in entry


def test_output_is_isolated_between_sessions(tmp_path: Path) -> None:
    monitor, factory = _monitor(tmp_path)
    watcher_a, watcher_b = RecordingConnection(), RecordingConnection()

    async def scenario() -> tuple[str, str]:
        await monitor.start()
        a = monitor.create_session("/x")
        terminal_a = factory.last
        b = monitor.create_session("/y")
        terminal_b = factory.last
        obs_a = monitor.hub.connect(watcher_a)
        obs_b = monitor.hub.connect(watcher_b)
        await monitor.flush()
        await monitor.hub.subscribe(obs_a, a.id)
        await monitor.hub.subscribe(obs_b, b.id)

        terminal_a.emit("from a")
        terminal_b.emit("from b")
        await monitor.flush()
        await monitor.shutdown()
        return a.id, b.id

    a_id, b_id = asyncio.run(scenario())

    data_a = [event for event in watcher_a.sent if event["type"] == "session:data"]
    data_b = [event for event in watcher_b.sent if event["type"] == "session:data"]
    assert data_a == [{"type": "session:data", "sessionId": a_id, "data": "from a"}]
    assert data_b == [{"type": "session:data", "sessionId": b_id, "data": "from b"}]


def test_late_subscriber_gets_replay_then_live_data(tmp_path: Path) -> None:
    monitor, factory = _monitor(tmp_path)
    watcher = RecordingConnection()

    async def scenario() -> str:
        await monitor.start()
        session = monitor.create_session("/x")
        factory.last.emit("one ")
        factory.last.emit("two ")
        await monitor.flush()

        observer = monitor.hub.connect(watcher)
        await monitor.hub.subscribe(observer, session.id)
        factory.last.emit("three")
        await monitor.flush()
        await monitor.shutdown()
        return session.id

    session_id = asyncio.run(scenario())

    assert [event["data"] for event in watcher.sent if event["type"] == "session:data"] == ["one two ", "three"]
    assert all(event["sessionId"] == session_id for event in watcher.sent)


def test_exit_completes_session_before_broadcast(tmp_path: Path) -> None:
    monitor, factory = _monitor(tmp_path)
    watcher = RecordingConnection()

    async def scenario() -> tuple[str, bool]:
        await monitor.start()
        monitor.hub.connect(watcher)
        session = monitor.create_session("/x")
        factory.last.emit("bye")
        factory.last.exit(7)
        await monitor.flush()
        accepted = monitor.registry.write(session.id, "x")
        assert monitor.registry.get(session.id).status is SessionStatus.COMPLETED
        await monitor.shutdown()
        return session.id, accepted

    session_id, accepted = asyncio.run(scenario())

    assert accepted is False
    assert watcher.types() == ["session:created", "session:exit"]
    assert watcher.sent[-1] == {"type": "session:exit", "sessionId": session_id, "exitCode": 7}
    [entry] = _history_file(tmp_path)
    assert entry["status"] == "completed"
    assert entry["outputSize"] == 3


def test_notify_updates_status_history_and_observers(tmp_path: Path) -> None:
    monitor, _ = _monitor(tmp_path)
    watcher = RecordingConnection()

    async def scenario() -> str:
        await monitor.start()
        session = monitor.create_session("C:\\Proj")
        await monitor.flush()
        monitor.hub.connect(watcher)
        matched = await monitor.notify("permission_prompt", "c:/proj")
        assert matched is session
        assert monitor.history.get(session.id).status is SessionStatus.WAITING
        return session.id

    session_id = asyncio.run(scenario())

    assert watcher.sent == [
        {"type": "notification", "sessionId": session_id, "notifyType": "permission_prompt", "status": "waiting"}
    ]


def test_notify_without_match_changes_nothing(tmp_path: Path) -> None:
    monitor, _ = _monitor(tmp_path)
    watcher = RecordingConnection()

    async def scenario() -> None:
        await monitor.start()
        session = monitor.create_session("/x")
        await monitor.flush()
        monitor.hub.connect(watcher)
        assert await monitor.notify("completed", "/elsewhere") is None
        assert monitor.registry.get(session.id).status is SessionStatus.RUNNING
        await monitor.shutdown()

    asyncio.run(scenario())

    assert watcher.sent == []


def test_completed_session_ignores_further_notifications(tmp_path: Path) -> None:
    monitor, _ = _monitor(tmp_path)
    watcher = RecordingConnection()

    async def scenario() -> None:
        await monitor.start()
        session = monitor.create_session("/x")
        await monitor.flush()
        monitor.hub.connect(watcher)
        await monitor.notify("completed", "/x")
        assert await monitor.notify("running", "/x") is None
        assert monitor.registry.get(session.id).status is SessionStatus.COMPLETED

    asyncio.run(scenario())

    assert [event["status"] for event in watcher.sent] == ["completed"]


def test_delete_session_notifies_and_ends_history(tmp_path: Path) -> None:
    monitor, factory = _monitor(tmp_path)
    watcher = RecordingConnection()

    async def scenario() -> str:
        await monitor.start()
        session = monitor.create_session("/x")
        observer = monitor.hub.connect(watcher)
        await monitor.flush()
        await monitor.hub.subscribe(observer, session.id)
        assert await monitor.delete_session(session.id) is True
        assert await monitor.delete_session(session.id) is False
        factory.last.emit("late output")
        await monitor.flush()
        return session.id

    session_id = asyncio.run(scenario())

    assert watcher.types() == ["session:created", "session:deleted"]
    assert watcher.sent[-1] == {"type": "session:deleted", "sessionId": session_id}
    assert factory.last.kill_count == 1
    assert monitor.hub.subscriber_count(session_id) == 0
    [entry] = _history_file(tmp_path)
    assert entry["status"] == "completed"
    assert "endedAt" in entry


def test_kills_run_off_the_event_loop_thread(tmp_path: Path) -> None:
    factory = FakeTerminalFactory()
    monitor = SessionMonitor(factory=factory, history=HistoryStore(tmp_path / "sessions.json"))
    kill_threads: list[int] = []

    async def scenario() -> int:
        await monitor.start()
        for directory in ("/a", "/b"):
            monitor.create_session(directory)
            terminal = factory.last
            terminal_kill = terminal.kill

            def recording_kill(kill=terminal_kill) -> None:
                kill_threads.append(threading.get_ident())
                kill()

            terminal.kill = recording_kill
        await monitor.flush()
        first = monitor.registry.list_sessions()[0]
        assert await monitor.delete_session(first.id)
        await monitor.shutdown()
        return threading.get_ident()

    loop_thread = asyncio.run(scenario())

    assert len(kill_threads) == 2
    assert loop_thread not in kill_threads
    assert [terminal.kill_count for terminal in factory.spawned] == [1, 1]
    history = _history_file(tmp_path)
    assert len(history) == 2
    assert {entry["status"] for entry in history} == {"completed"}


def test_create_session_with_unknown_profile(tmp_path: Path) -> None:
    monitor, _ = _monitor(tmp_path, profiles=ProfileLoader([tmp_path]))

    with pytest.raises(ProfileLoadError):
        monitor.create_session("/x", "missing")
    assert len(monitor.registry) == 0


def test_create_session_with_profile(tmp_path: Path) -> None:
    profile_dir = tmp_path / "profiles"
    profile_dir.mkdir()
    (profile_dir / "plain.yaml").write_text(
        textwrap.dedent(
            """
            id: plain
            title: Plain shell
            shell: /bin/sh
            startup_command: ""
            """
        ).strip(),
        encoding="utf-8",
    )
    monitor, factory = _monitor(tmp_path, profiles=ProfileLoader([profile_dir]))

    session = monitor.create_session("/x", "plain")

    assert session.profile_id == "plain"
    assert factory.last.argv == ("/bin/sh",)
    assert factory.last.writes == []


def test_history_survives_restart(tmp_path: Path) -> None:
    first, _ = _monitor(tmp_path)

    async def run_first() -> str:
        await first.start()
        session = first.create_session("/x")
        await first.flush()
        await first.shutdown()
        return session.id

    session_id = asyncio.run(run_first())

    second, _ = _monitor(tmp_path)

    async def run_second() -> list[str]:
        await second.start()
        ids = [record.id for record in second.history.get_history()]
        await second.shutdown()
        return ids

    assert asyncio.run(run_second()) == [session_id]

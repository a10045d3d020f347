from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ccmonitor.errors import SessionNotFoundError
from ccmonitor.monitor import SessionMonitor
from ccmonitor.profiles import LaunchProfile
from ccmonitor.sessions import SessionStatus
from ccmonitor.storage import HistoryRecord, HistoryStore
from ccmonitor.terminal import FakeTerminalFactory
from ccmonitor.tools import register_tools


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


class StubProfileLoader:
    def __init__(self, profile: LaunchProfile) -> None:
        self._profile = profile

    def load_all(self) -> dict[str, LaunchProfile]:
        return {self._profile.id: self._profile}

    def get(self, profile_id: str) -> LaunchProfile:
        return self.load_all()[profile_id]


def _setup(tmp_path: Path):
    factory = FakeTerminalFactory()
    profile = LaunchProfile(id="claude", title="Claude", startup_command="claude", metadata={"tags": ["ai"]})
    monitor = SessionMonitor(
        factory=factory,
        history=HistoryStore(tmp_path / "sessions.json"),
        profiles=StubProfileLoader(profile),
    )
    server = StubServer()
    handles = register_tools(server, monitor=monitor)
    return server, handles, monitor, factory


def test_register_tools_exposes_every_tool(tmp_path: Path) -> None:
    server, handles, _, _ = _setup(tmp_path)

    assert set(server._tools) == {
        "create_session",
        "list_sessions",
        "delete_session",
        "send_input",
        "read_output",
        "session_history",
        "list_profiles",
    }
    assert handles.create_session.name == "create_session"


def test_create_list_and_delete_session(tmp_path: Path) -> None:
    _, handles, monitor, factory = _setup(tmp_path)

    created = handles.create_session.fn("/work", profile="claude")
    session_id = created["session"]["id"]
    assert created["profile"] == "claude"
    assert factory.last.writes == ["claude\r"]

    listed = handles.list_sessions.fn()
    assert listed[0]["id"] == session_id
    assert listed[0]["alive"] is True

    result = asyncio.run(handles.delete_session.fn(session_id))
    assert result == {"session_id": session_id, "deleted": True}
    assert len(monitor.registry) == 0

    with pytest.raises(SessionNotFoundError):
        asyncio.run(handles.delete_session.fn(session_id))


def test_send_input_and_read_output(tmp_path: Path) -> None:
    _, handles, monitor, factory = _setup(tmp_path)
    session_id = handles.create_session.fn("/work")["session"]["id"]

    sent = handles.send_input.fn(session_id, "yes", submit=True)
    assert sent["written"] == 4
    assert factory.last.writes[-1] == "yes\r"

    monitor.registry.append_output(session_id, "x" * 50)
    output = handles.read_output.fn(session_id, tail=10)
    assert output["output"] == "x" * 10
    assert output["truncated"] is True
    assert output["output_size"] == 50

    monitor.registry.mark_exited(session_id, 0)
    with pytest.raises(RuntimeError):
        handles.send_input.fn(session_id, "late")
    with pytest.raises(SessionNotFoundError):
        handles.read_output.fn("ghost")


def test_session_history_filters_and_limits(tmp_path: Path) -> None:
    _, handles, monitor, _ = _setup(tmp_path)

    async def seed() -> None:
        await monitor.history.load()
        for index, status in enumerate([SessionStatus.COMPLETED, SessionStatus.RUNNING, SessionStatus.COMPLETED]):
            await monitor.history.save_session(
                HistoryRecord(
                    id=f"s{index}",
                    working_directory="/work",
                    status=status,
                    created_at=datetime(2025, 1, 1, index, tzinfo=timezone.utc),
                )
            )

    asyncio.run(seed())

    completed = handles.session_history.fn(status="completed")
    assert [record["id"] for record in completed] == ["s2", "s0"]
    assert [record["id"] for record in handles.session_history.fn(limit=1)] == ["s2"]


def test_list_profiles(tmp_path: Path) -> None:
    _, handles, _, _ = _setup(tmp_path)

    [profile] = handles.list_profiles.fn()
    assert profile["id"] == "claude"
    assert profile["tags"] == ["ai"]

"""MCP tool registration for ccmonitor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..errors import SessionNotFoundError
from ..monitor import SessionMonitor
from ..profiles import ProfileLoadError

DEFAULT_OUTPUT_TAIL = 4000


@dataclass(slots=True)
class ToolHandles:
    create_session: Any
    list_sessions: Any
    delete_session: Any
    send_input: Any
    read_output: Any
    session_history: Any
    list_profiles: Any


def register_tools(server: FastMCP, *, monitor: SessionMonitor) -> ToolHandles:
    """Register the session management tools on the server."""

    registry = monitor.registry

    def _create_session(
        working_directory: str,
        profile: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Start a new terminal session rooted at a directory."""

        try:
            session = monitor.create_session(working_directory, profile)
        except ProfileLoadError as exc:
            raise ValueError(str(exc)) from exc

        _emit_log(
            context,
            "info",
            "Created session via MCP",
            extra={"session_id": session.id, "cwd": session.working_directory, "profile": profile},
        )
        return {"session": session.to_info(), "profile": session.profile_id}

    def _list_sessions(context: Context | None = None) -> list[dict[str, Any]]:
        """List live sessions with their status and output size."""

        catalog = [
            {**session.to_info(), "outputSize": session.output_size, "alive": session.is_alive}
            for session in registry.list_sessions()
        ]
        _emit_log(context, "debug", "Listing sessions", extra={"count": len(catalog)})
        return catalog

    async def _delete_session(session_id: str, context: Context | None = None) -> dict[str, Any]:
        """Kill a session's process and remove it."""

        if not await monitor.delete_session(session_id):
            raise SessionNotFoundError(session_id)
        _emit_log(context, "warning", "Deleted session via MCP", extra={"session_id": session_id})
        return {"session_id": session_id, "deleted": True}

    def _send_input(
        session_id: str,
        data: str,
        submit: bool = False,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Type text into a session's terminal; ``submit`` appends a carriage return."""

        registry.require(session_id)
        payload = f"{data}\r" if submit else data
        if not registry.write(session_id, payload):
            raise RuntimeError(f"Session '{session_id}' is not running")
        _emit_log(
            context,
            "info",
            "Sent input via MCP",
            extra={"session_id": session_id, "length": len(payload)},
        )
        return {"session_id": session_id, "written": len(payload)}

    def _read_output(
        session_id: str,
        tail: int | None = DEFAULT_OUTPUT_TAIL,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Return the buffered output of a session, optionally only its last ``tail`` characters."""

        session = registry.require(session_id)
        output = session.buffer.snapshot()
        truncated = False
        if tail is not None and tail > 0 and len(output) > tail:
            output = output[-tail:]
            truncated = True
        _emit_log(
            context,
            "debug",
            "Read session output",
            extra={"session_id": session_id, "length": len(output)},
        )
        return {
            "session_id": session_id,
            "status": session.status.value,
            "output": output,
            "truncated": truncated,
            "output_size": session.output_size,
        }

    def _session_history(
        limit: int | None = None,
        status: str | None = None,
        context: Context | None = None,
    ) -> list[dict[str, Any]]:
        """Return persisted session history, newest first."""

        records = sorted(monitor.history.get_history(), key=lambda record: record.created_at, reverse=True)
        if status:
            records = [record for record in records if record.status.value == status]
        if limit is not None and limit > 0:
            records = records[:limit]
        _emit_log(context, "debug", "Listing session history", extra={"count": len(records)})
        return [record.to_dict() for record in records]

    def _list_profiles(context: Context | None = None) -> list[dict[str, Any]]:
        """List launch profiles available to ``create_session``."""

        catalog = [profile.summary() for profile in monitor.profiles.load_all().values()]
        _emit_log(context, "debug", "Listing launch profiles", extra={"count": len(catalog)})
        return catalog

    tool_create = server.tool(
        name="create_session",
        description=(
            "Start a terminal session in a working directory, optionally using a launch profile. "
            "Returns the new session's id and status."
        ),
        annotations={
            "safety": {
                "level": "caution",
                "notes": "The session runs a real shell with the server's privileges",
            }
        },
    )(_create_session)

    tool_list = server.tool(
        name="list_sessions",
        description="List live terminal sessions with status, directory and buffered output size.",
    )(_list_sessions)

    tool_delete = server.tool(
        name="delete_session",
        description="Kill a terminal session's process and remove it from the registry.",
    )(_delete_session)

    tool_input = server.tool(
        name="send_input",
        description="Write text to a running session's terminal (set submit=true to press Enter).",
    )(_send_input)

    tool_output = server.tool(
        name="read_output",
        description="Read the buffered terminal output of a session (last `tail` characters).",
    )(_read_output)

    tool_history = server.tool(
        name="session_history",
        description="List persisted session history records, optionally filtered by status.",
    )(_session_history)

    tool_profiles = server.tool(
        name="list_profiles",
        description="List launch profiles that can be passed to create_session.",
    )(_list_profiles)

    return ToolHandles(
        create_session=tool_create,
        list_sessions=tool_list,
        delete_session=tool_delete,
        send_input=tool_input,
        read_output=tool_output,
        session_history=tool_history,
        list_profiles=tool_profiles,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)

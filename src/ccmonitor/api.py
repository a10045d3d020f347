"""HTTP and WebSocket routes for the session monitor."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .errors import SpawnError
from .monitor import SessionMonitor
from .profiles import ProfileLoadError
from .terminal import platform_info

logger = logging.getLogger(__name__)


def http_error(
    kind: str,
    message: str,
    *,
    status_code: int,
    details: Optional[dict[str, Any]] = None,
) -> HTTPException:
    """Build an HTTPException whose detail is ``{kind, message, details}``."""

    return HTTPException(
        status_code=int(status_code),
        detail={
            "kind": str(kind),
            "message": str(message),
            "details": details or {},
        },
    )


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    working_directory: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("cwd", "workingDirectory", "working_directory"),
    )
    profile: Optional[str] = None


class NotifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Optional[str] = None
    working_directory: str = Field(
        ...,
        validation_alias=AliasChoices("cwd", "workingDirectory", "working_directory"),
    )


def create_router(monitor: SessionMonitor) -> APIRouter:
    """Routes bound to one monitor instance."""

    router = APIRouter()
    registry = monitor.registry

    def _session_or_404(session_id: str):
        session = registry.get(session_id)
        if session is None:
            raise http_error(
                "not_found",
                "Session not found",
                status_code=404,
                details={"session_id": session_id},
            )
        return session

    @router.get("/api/sessions")
    async def list_sessions() -> dict[str, Any]:
        return {"sessions": [session.to_info() for session in registry.list_sessions()]}

    @router.post("/api/sessions", status_code=201)
    async def create_session(body: CreateSessionRequest) -> dict[str, Any]:
        try:
            session = monitor.create_session(body.working_directory, body.profile)
        except ProfileLoadError as exc:
            raise http_error(
                "profile_not_found",
                str(exc),
                status_code=404,
                details={"profile": body.profile},
            ) from exc
        except SpawnError as exc:
            logger.warning(
                "Failed to create session",
                extra={"cwd": body.working_directory, "error": str(exc)},
            )
            raise http_error(
                "spawn_failed",
                str(exc),
                status_code=400,
                details={"cwd": body.working_directory},
            ) from exc
        return {"session": session.to_info()}

    @router.get("/api/sessions/{session_id}")
    async def get_session(session_id: str) -> dict[str, Any]:
        return {"session": _session_or_404(session_id).to_info()}

    @router.get("/api/sessions/{session_id}/output")
    async def get_session_output(session_id: str) -> dict[str, Any]:
        session = _session_or_404(session_id)
        return {"sessionId": session.id, "data": session.buffer.snapshot()}

    @router.delete("/api/sessions/{session_id}")
    async def delete_session(session_id: str) -> dict[str, Any]:
        if not await monitor.delete_session(session_id):
            raise http_error(
                "not_found",
                "Session not found",
                status_code=404,
                details={"session_id": session_id},
            )
        return {"success": True}

    @router.get("/api/history")
    async def get_history() -> dict[str, Any]:
        return {"history": [record.to_dict() for record in monitor.history.get_history()]}

    @router.delete("/api/history")
    async def clear_history() -> dict[str, Any]:
        await monitor.history.clear_history()
        return {"success": True}

    @router.get("/api/platform")
    async def get_platform() -> dict[str, Any]:
        return platform_info(monitor.registry.shell)

    @router.get("/api/profiles")
    async def list_profiles() -> dict[str, Any]:
        try:
            profiles = monitor.profiles.load_all()
        except ProfileLoadError as exc:
            raise http_error("profile_load_failed", str(exc), status_code=500) from exc
        return {"profiles": [profile.summary() for profile in profiles.values()]}

    @router.get("/api/health")
    async def health() -> dict[str, Any]:
        return monitor.status_summary()

    @router.post("/api/notify")
    async def notify(request: Request) -> dict[str, Any]:
        try:
            body = NotifyRequest.model_validate(json.loads(await request.body()))
        except (ValueError, ValidationError) as exc:
            raise http_error("invalid_request", "Invalid request body", status_code=400) from exc

        session = await monitor.notify(body.type, body.working_directory)
        return {"success": True, "sessionId": session.id if session else None}

    @router.websocket("/ws")
    async def observer_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        observer = monitor.hub.connect(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await monitor.hub.handle_message(observer, raw)
        except WebSocketDisconnect:
            pass
        finally:
            monitor.hub.disconnect(observer)

    return router


__all__ = ["CreateSessionRequest", "NotifyRequest", "create_router", "http_error"]

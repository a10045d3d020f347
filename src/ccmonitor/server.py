"""FastAPI application bootstrap for ccmonitor."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastmcp import Context, FastMCP

from . import __version__
from .api import create_router
from .config import MonitorSettings, get_settings
from .monitor import SessionMonitor
from .profiles import ProfileLoader
from .terminal import TerminalFactory
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the ccmonitor server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_mcp_server(monitor: SessionMonitor) -> FastMCP:
    """Instantiate the MCP server exposing session tools and a status resource."""

    server = FastMCP(
        name="ccmonitor",
        version=__version__,
        instructions=(
            "ccmonitor runs terminal sessions on this machine and tracks their status. "
            "Use the provided tools to start sessions, send input, read output and "
            "inspect session history."
        ),
    )

    handles = register_tools(server, monitor=monitor)

    @server.resource(
        "resource://ccmonitor/status",
        name="ccmonitor_status",
        title="ccmonitor Status",
        description="Provides the current runtime status for the session monitor.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        payload = monitor.status_summary()
        payload["request_id"] = getattr(context, "request_id", None)
        return json.dumps(payload)

    setattr(server, "tool_handles", handles)
    return server


def create_app(
    settings: Optional[MonitorSettings] = None,
    *,
    terminal_factory: TerminalFactory | None = None,
    profiles: ProfileLoader | None = None,
) -> FastAPI:
    """Build the HTTP/WebSocket application around a fresh session monitor."""

    settings = settings or get_settings()
    monitor = SessionMonitor.from_settings(settings, factory=terminal_factory, profiles=profiles)

    mcp_app = None
    if settings.mcp_enabled:
        mcp_app = create_mcp_server(monitor).http_app(path=settings.mcp_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await monitor.start()
        try:
            if mcp_app is not None:
                async with mcp_app.lifespan(mcp_app):
                    yield
            else:
                yield
        finally:
            await monitor.shutdown()

    app = FastAPI(title="ccmonitor", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(create_router(monitor))
    if mcp_app is not None:
        # Mounted last so the API routes keep precedence.
        app.mount("/", mcp_app)

    app.state.settings = settings
    app.state.monitor = monitor
    return app


def main() -> None:
    """Entry point for running the ccmonitor server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    app = create_app(settings)
    logging.getLogger(__name__).info(
        "Launching ccmonitor server",
        extra={
            "version": __version__,
            "host": settings.host,
            "port": settings.port,
            "history_path": str(settings.history_path),
            "mcp_enabled": settings.mcp_enabled,
        },
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

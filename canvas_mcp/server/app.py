"""
HTTP application exposing the Canvas tools over MCP.

Routes:
    GET  /healthz                       liveness probe, never gated
    POST {base_path}                    negotiate a session (event stream)
    POST {base_path}?sessionId=<id>     one JSON-RPC request, answered inline
"""

import logging
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from config.settings import ServerConfig

from ..canvas.client import CanvasClient
from .protocol import ProtocolHandler
from .security import HEALTH_PATH, SecurityGate, SecurityMiddleware
from .session import KEEPALIVE_INTERVAL_SECONDS, Session

logger = logging.getLogger(__name__)

SERVER_NAME = "canvas-mcp"
SERVER_VERSION = "0.5.0"


def create_app(
    client: CanvasClient,
    server: ServerConfig,
    keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        client: Canvas client shared by all requests (it holds no per-request state)
        server: Listen/security configuration
        keepalive_interval: Seconds between keep-alive comments on session streams
    """
    app = FastAPI(title=SERVER_NAME, version=SERVER_VERSION)

    gate = SecurityGate(
        allowed_origins=tuple(server.allowed_origins),
        auth_token=server.auth_token,
        port=server.port,
    )
    app.add_middleware(SecurityMiddleware, gate=gate, base_path=server.base_path)

    handler = ProtocolHandler(client)

    @app.get(HEALTH_PATH, response_class=PlainTextResponse)
    def healthz():
        return "OK"

    @app.post(server.base_path)
    async def mcp_endpoint(
        request: Request,
        session_id: Optional[str] = Query(default=None, alias="sessionId"),
    ):
        if session_id:
            with Session.attach(session_id):
                try:
                    body = await request.json()
                except ValueError:
                    body = None
                status_code, payload = await handler.handle(body)
            return JSONResponse(payload, status_code=status_code)

        logger.info(f"New MCP connection from: {request.headers.get('host')}")
        session = Session.negotiate()
        session.activate()
        return StreamingResponse(
            session.stream(server.base_path, request.is_disconnected, keepalive_interval),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    return app

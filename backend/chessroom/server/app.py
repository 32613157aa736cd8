from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from chessroom.messaging.router import MessageRouter
from chessroom.oracle.chess_oracle import ChessOracle
from chessroom.server.settings import GameServerSettings
from chessroom.server.websocket import websocket_endpoint
from chessroom.session.config import SessionConfig
from chessroom.session.heartbeat import HeartbeatMonitor
from chessroom.session.manager import SessionManager
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from chessroom.oracle.service import GameOracle


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse({"status": "ok", **session_manager.status()})


def create_app(
    settings: GameServerSettings | None = None,
    oracle: GameOracle | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameServerSettings()

    if session_manager is None:
        session_manager = SessionManager(
            oracle or ChessOracle(),
            config=SessionConfig.from_settings(settings),
            heartbeat=HeartbeatMonitor(timeout=settings.heartbeat_timeout_seconds),
        )

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(
            websocket,
            message_router,
            rate=settings.rate_limit_per_second,
            burst=settings.rate_limit_burst,
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        session_manager.start()
        try:
            yield
        finally:
            await session_manager.stop()
            logger.info("chess server stopped")

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("chess server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = GameServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)


def run() -> None:  # pragma: no cover
    """Console entry point: serve the app with uvicorn on the configured host and port."""
    import uvicorn  # noqa: PLC0415

    settings = GameServerSettings()
    uvicorn.run(
        "chessroom.server.app:get_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )

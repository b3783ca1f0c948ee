"""FastAPI HTTP server for the collaborator bridge.

    GET  /action.php?msg=...   -> collaborator stdout (application/octet-stream)
    POST /action.php           <- raw body (or ?msg=...) -> collaborator stdout
    GET  /health               -> {"status": "ok", ...}

The route and parameter name are configurable. Every request spawns its
own collaborator; nothing is shared between requests.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from urllib.parse import unquote_to_bytes

import uvicorn
from fastapi import FastAPI, Request, Response
from pydantic import BaseModel

from tetrisbridge.bridge.core import RequestBridge
from tetrisbridge.bridge.policy import render_response
from tetrisbridge.config.settings import Settings

logger = logging.getLogger(__name__)


def raw_query_param(query_string: bytes, name: str) -> bytes | None:
    """Return the percent-decoded bytes of parameter ``name``, or None if absent.

    The value is never decoded as text, so bytes that are not valid UTF-8
    reach the collaborator unchanged. A repeated parameter yields its
    last occurrence.
    """
    wanted = name.encode("utf-8")
    value = None
    for pair in query_string.split(b"&"):
        if not pair:
            continue
        key, _, raw = pair.partition(b"=")
        if unquote_to_bytes(key.replace(b"+", b" ")) == wanted:
            value = unquote_to_bytes(raw.replace(b"+", b" "))
    return value


class HealthResponse(BaseModel):
    status: str = "ok"
    executable: str = ""
    executable_found: bool = False
    mode: str = "legacy"


def create_app(
    settings: Settings | None = None,
    bridge: RequestBridge | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Service settings. Defaults are used when None.
        bridge: Optional pre-configured RequestBridge (for testing).
                Built from ``settings.collaborator`` when None.
    """
    if settings is None:
        settings = Settings()
    if bridge is None:
        bridge = RequestBridge.from_config(settings.collaborator)

    server_config = settings.server
    response_config = settings.response

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        executor = app.state.bridge.executor
        is_available = getattr(executor, "is_available", None)
        if is_available is not None and not is_available():
            logger.warning(
                "Collaborator %s not found, requests will fail until it is installed",
                executor.describe(),
            )
        logger.info(
            "Bridge started (route=%s, param=%s, mode=%s)",
            server_config.route, server_config.param_name, response_config.mode,
        )
        yield
        logger.info("Bridge stopped")

    app = FastAPI(
        title="tetrisbridge",
        description="Forwards one request parameter to the collaborator program",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.bridge = bridge
    app.state.settings = settings

    async def _respond(payload: str | bytes | None) -> Response:
        b: RequestBridge = app.state.bridge
        result = await b.run(payload)
        rendered = render_response(result, response_config)
        return Response(
            content=rendered.body,
            status_code=rendered.status_code,
            headers=rendered.headers,
            media_type=rendered.media_type,
        )

    @app.get("/health")
    async def health_check() -> HealthResponse:
        executor = app.state.bridge.executor
        is_available = getattr(executor, "is_available", None)
        return HealthResponse(
            status="ok",
            executable=executor.describe(),
            executable_found=is_available() if is_available is not None else True,
            mode=response_config.mode,
        )

    @app.get(server_config.route)
    async def forward_query(request: Request) -> Response:
        # An absent parameter is still forwarded, as an empty message
        payload = raw_query_param(request.scope["query_string"], server_config.param_name)
        return await _respond(payload)

    @app.post(server_config.route)
    async def forward_body(request: Request) -> Response:
        payload = raw_query_param(request.scope["query_string"], server_config.param_name)
        if payload is None:
            payload = await request.body()
        return await _respond(payload)

    return app


def main() -> None:
    """Entry point for running the bridge server standalone."""
    from tetrisbridge.config.settings import load_settings
    from tetrisbridge.utils.logging import setup_logging

    settings = load_settings()
    setup_logging(settings.logging)
    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()

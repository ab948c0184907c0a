"""MCP server setup for the OpenAPI Adapter."""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Optional

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from .auth import BearerTokenMiddleware
from .config import HEALTH_PATH, MCP_PATH, Settings
from .openapi import load_document
from .service import MCPAdapter

logger = logging.getLogger(__name__)


def build_adapter(settings: Settings, spec_source: Optional[str] = None) -> MCPAdapter:
    source = spec_source or settings.openapi_spec
    document = load_document(source, timeout_seconds=settings.adapter_http_timeout_seconds)
    adapter = MCPAdapter(settings.service_name, document, settings=settings)
    tool_count = sum(len(definition.methods) for definition in adapter.tools.values())
    logger.info("Loaded %s tools from %s", tool_count, source)
    return adapter


class StreamableHTTPApp:
    """ASGI endpoint handing requests to the MCP session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)


def build_http_app(adapter: MCPAdapter, settings: Settings) -> Starlette:
    session_manager = StreamableHTTPSessionManager(
        app=adapter.get_server(), json_response=True, stateless=True
    )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            logger.info("Streamable HTTP transport ready at %s", MCP_PATH)
            yield
        await adapter.aclose()

    if not settings.adapter_auth_token:
        logger.warning("ADAPTER_AUTH_TOKEN is not set; the MCP endpoint is unauthenticated")

    return Starlette(
        routes=[
            Route(HEALTH_PATH, _healthcheck, methods=["GET"]),
            Route(
                MCP_PATH,
                endpoint=StreamableHTTPApp(session_manager),
                methods=["GET", "POST", "DELETE"],
            ),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["*"],
                expose_headers=["Mcp-Session-Id"],
            ),
            Middleware(BearerTokenMiddleware, token=settings.adapter_auth_token),
        ],
        lifespan=lifespan,
    )


async def _healthcheck(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})

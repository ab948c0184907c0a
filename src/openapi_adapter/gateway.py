"""Edge gateway: authenticates public callers and forwards to the adapter."""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, List, Optional, Tuple

import httpx
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response, StreamingResponse
from starlette.routing import Route

from .auth import GatewayAuthenticator, GatewayAuthMiddleware
from .config import HEALTH_PATH, MCP_PATH, Settings

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)


def rewrite_path(path: str) -> str:
    """Only the root maps to the MCP endpoint; other paths pass through."""
    if path in ("", "/"):
        return MCP_PATH
    return path


def forward_headers(
    request: Request, internal_token: Optional[str]
) -> List[Tuple[str, str]]:
    headers = [
        (key, value)
        for key, value in request.headers.items()
        if key.lower() not in HOP_BY_HOP_HEADERS
        and not (internal_token and key.lower() == "authorization")
    ]
    if internal_token:
        headers.append(("authorization", f"Bearer {internal_token}"))
    return headers


def build_gateway_app(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> Starlette:
    authenticator = GatewayAuthenticator.from_settings(settings)
    upstream = client or httpx.AsyncClient(
        base_url=settings.gateway_upstream_url, timeout=None
    )

    if not settings.gateway_proxy_key:
        logger.error("PROXY_KEY is not set")
    if not settings.adapter_auth_token:
        logger.error("AUTH_TOKEN is not set")

    async def proxy(request: Request) -> Response:
        path = rewrite_path(request.url.path)
        url = f"{path}?{request.url.query}" if request.url.query else path
        upstream_request = upstream.build_request(
            request.method,
            url,
            headers=forward_headers(request, settings.adapter_auth_token),
            content=await request.body(),
        )
        try:
            response = await upstream.send(upstream_request, stream=True)
        except httpx.RequestError as exc:
            logger.warning("Upstream unreachable for %s %s: %s", request.method, path, exc)
            return PlainTextResponse("Bad Gateway", status_code=502)

        return StreamingResponse(
            response.aiter_raw(),
            status_code=response.status_code,
            headers={
                key: value
                for key, value in response.headers.items()
                if key.lower() not in HOP_BY_HOP_HEADERS
            },
            background=BackgroundTask(response.aclose),
        )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        logger.info(
            "Gateway forwarding to %s (root -> %s), auth via %s",
            settings.gateway_upstream_url,
            MCP_PATH,
            ", ".join(authenticator.names),
        )
        yield
        await upstream.aclose()

    return Starlette(
        routes=[
            Route(HEALTH_PATH, _healthcheck, methods=["GET"]),
            Route("/{path:path}", proxy, methods=PROXY_METHODS),
        ],
        middleware=[Middleware(GatewayAuthMiddleware, authenticator=authenticator)],
        lifespan=lifespan,
    )


async def _healthcheck(_request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")

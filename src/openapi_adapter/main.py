"""CLI entry points for the OpenAPI Adapter and its edge gateway."""

from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

import uvicorn
from mcp.server.stdio import stdio_server

from .config import Settings, get_settings
from .errors import ConfigurationError
from .gateway import build_gateway_app
from .logging import configure_logging
from .server import build_adapter, build_http_app


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve an OpenAPI document as MCP tools")
    parser.add_argument("--spec", help="Path or URL of the OpenAPI document (OPENAPI_SPEC)")
    parser.add_argument(
        "--transport",
        choices=["stdio", "streamable-http", "http"],
        help="MCP transport (ADAPTER_TRANSPORT)",
    )
    return parser.parse_args(argv)


async def _run(settings: Settings) -> None:
    adapter = build_adapter(settings)
    transport = settings.adapter_transport.lower()

    if transport in {"streamable-http", "streamablehttp", "http"}:
        app = build_http_app(adapter, settings)
        config = uvicorn.Config(app, host=settings.adapter_host, port=settings.adapter_port)
        server = uvicorn.Server(config)
        await server.serve()
        return
    if transport != "stdio":
        raise ConfigurationError(f"Unsupported transport: {settings.adapter_transport}")

    try:
        await adapter.connect(stdio_server())
    finally:
        await adapter.aclose()


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()
    overrides = {}
    if args.spec:
        overrides["openapi_spec"] = args.spec
    if args.transport:
        overrides["adapter_transport"] = args.transport
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.adapter_log_level)
    asyncio.run(_run(settings))


def gateway_main() -> None:
    settings = get_settings()
    configure_logging(settings.adapter_log_level)
    app = build_gateway_app(settings)
    uvicorn.run(app, host=settings.gateway_host, port=settings.gateway_port)


if __name__ == "__main__":
    main()

"""Core adapter: exposes an OpenAPI document as MCP tools."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Dict, List, Optional, Tuple, Union

import mcp.types as types
from mcp.server.lowlevel import Server

from .config import Settings, get_settings
from .errors import ConfigurationError, ToolNotFoundError
from .executors import HttpClient, HttpClientError
from .headers import resolve_auth_headers
from .logging import redact_payload
from .models import JsonValue, OperationRecord, tool_display_name
from .openapi import OpenAPIToolConverter, extract_server_url
from .sanitize import sanitize_params

logger = logging.getLogger(__name__)

SERVER_VERSION = "1.0.0"


@dataclass(frozen=True)
class Ok:
    data: Any


@dataclass(frozen=True)
class UpstreamError:
    body: Dict[str, Any]
    status: Optional[int] = None


CallOutcome = Union[Ok, UpstreamError]


class MCPAdapter:
    """
    MCP server backed by a REST API described with OpenAPI.

    The tool catalog and operation index are built once here and never change
    afterwards, so list and call handlers can run concurrently without locks.
    Upstream HTTP failures come back as ordinary tool output with
    ``status: "error"``; unknown tools and anything else unexpected are raised
    to the MCP session, which reports them as JSON-RPC errors.
    """

    def __init__(
        self,
        name: str,
        document: Dict[str, Any],
        settings: Optional[Settings] = None,
        http_client: Optional[HttpClient] = None,
    ) -> None:
        base_url = extract_server_url(document)
        if not base_url:
            raise ConfigurationError("No base URL found in OpenAPI spec")

        self.name = name
        self.settings = settings or get_settings()
        self.http_client = http_client or HttpClient(
            base_url,
            headers=resolve_auth_headers(self.settings),
            timeout_seconds=self.settings.adapter_http_timeout_seconds,
        )

        converter = OpenAPIToolConverter(document)
        self.tools, self.operation_index = converter.convert_to_mcp_tools()
        self._display_aliases = self._build_display_aliases()

        self.server = Server(name, version=SERVER_VERSION)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        # Registered directly: the SDK's call_tool decorator turns every
        # exception into an isError result, which would hide lookup faults.
        self.server.request_handlers[types.ListToolsRequest] = self._handle_list_tools
        self.server.request_handlers[types.CallToolRequest] = self._handle_call_tool

    async def _handle_list_tools(self, _request: types.ListToolsRequest) -> types.ServerResult:
        return types.ServerResult(types.ListToolsResult(tools=self.list_tools()))

    async def _handle_call_tool(self, request: types.CallToolRequest) -> types.ServerResult:
        result = await self.call_tool(request.params.name, request.params.arguments)
        return types.ServerResult(result)

    def list_tools(self) -> List[types.Tool]:
        tools: List[types.Tool] = []
        for resource, definition in self.tools.items():
            for method in definition.methods:
                tools.append(
                    types.Tool(
                        name=tool_display_name(resource, method.name),
                        description=method.description,
                        inputSchema=method.input_schema,
                    )
                )
        return tools

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, JsonValue]] = None
    ) -> types.CallToolResult:
        outcome = await self.dispatch(name, arguments)
        if isinstance(outcome, UpstreamError):
            return self._format_result({"status": "error", **outcome.body})
        return self._format_result(outcome.data)

    async def dispatch(
        self, name: str, arguments: Optional[Dict[str, JsonValue]] = None
    ) -> CallOutcome:
        operation = self.find_operation(name)
        if operation is None:
            raise ToolNotFoundError(name)

        try:
            cleaned = sanitize_params(arguments or {})
            logger.info("Calling tool=%s params=%s", name, redact_payload(cleaned))
            response = await self.http_client.execute_operation(operation, cleaned)
        except HttpClientError as exc:
            logger.warning(
                "Upstream error for tool=%s status=%s, returning structured error",
                name,
                exc.status,
            )
            return UpstreamError(body=self._error_body(exc), status=exc.status)
        except Exception:
            logger.exception("Error in tool call %s", name)
            raise

        return Ok(response.data)

    def find_operation(self, name: str) -> Optional[OperationRecord]:
        operation = self.operation_index.get(name)
        if operation is not None:
            return operation
        operation_id = self._display_aliases.get(name)
        return self.operation_index.get(operation_id) if operation_id else None

    async def connect(self, transport: AsyncContextManager[Tuple[Any, Any]]) -> None:
        """Serve MCP over ``transport`` until the channel closes.

        ``transport`` is an async context manager yielding a
        ``(read_stream, write_stream)`` pair, e.g. ``mcp.server.stdio.stdio_server()``.
        """
        async with transport as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    def get_server(self) -> Server:
        return self.server

    async def aclose(self) -> None:
        await self.http_client.aclose()

    def _build_display_aliases(self) -> Dict[str, str]:
        # Truncated names route to the first operation in listing order.
        aliases: Dict[str, str] = {}
        for resource, definition in self.tools.items():
            for method in definition.methods:
                operation_id = f"{resource}-{method.name}"
                display = tool_display_name(resource, method.name)
                if display == operation_id or display in self.operation_index:
                    continue
                if display in aliases:
                    logger.warning(
                        "Tool name %s is ambiguous after truncation; %s is unreachable by it",
                        display,
                        operation_id,
                    )
                    continue
                aliases[display] = operation_id
        return aliases

    def _error_body(self, exc: HttpClientError) -> Dict[str, Any]:
        data = exc.response.data if exc.response is not None else None
        if data is None:
            data = exc.data
        if data is None:
            return {}
        if isinstance(data, dict):
            return data
        return {"data": data}

    def _format_result(self, data: Any) -> types.CallToolResult:
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        return types.CallToolResult(content=[types.TextContent(type="text", text=text)])

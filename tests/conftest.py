"""Shared pytest fixtures for the adapter tests."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from openapi_adapter.config import Settings
from openapi_adapter.executors import HttpClient, HttpResponse
from openapi_adapter.models import OperationRecord
from openapi_adapter.service import MCPAdapter


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with every auth source explicitly unset."""
    return Settings(
        openapi_mcp_headers=None,
        notion_token=None,
        adapter_auth_token=None,
        gateway_proxy_key="proxy-secret",
        gateway_auth_strategies="query,header",
        gateway_required_header=None,
    )


# =============================================================================
# Sample OpenAPI Spec Fixtures
# =============================================================================


@pytest.fixture
def sample_openapi_spec() -> Dict[str, Any]:
    """Return a small OpenAPI 3.0 specification with a few resources."""
    return {
        "openapi": "3.0.0",
        "info": {"title": "Items API", "version": "1.0.0"},
        "servers": [{"url": "https://api.example.com/v1"}],
        "paths": {
            "/items/{id}": {
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}
                ],
                "get": {
                    "operationId": "getItem",
                    "summary": "Get an item",
                    "tags": ["items"],
                    "responses": {
                        "200": {
                            "description": "An item",
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/Item"}
                                }
                            },
                        }
                    },
                },
            },
            "/items": {
                "get": {
                    "operationId": "listItems",
                    "description": "List items page by page",
                    "tags": ["items"],
                    "parameters": [
                        {"name": "start_cursor", "in": "query", "schema": {"type": "string"}},
                        {"$ref": "#/components/parameters/PageSize"},
                    ],
                    "responses": {"200": {"description": "Items"}},
                },
                "post": {
                    "operationId": "createItem",
                    "tags": ["items"],
                    "requestBody": {"$ref": "#/components/requestBodies/ItemInput"},
                    "responses": {"201": {"description": "Created"}},
                },
            },
            "/search": {
                "post": {
                    "operationId": "search",
                    "summary": "Search everything",
                    "parameters": [
                        {"name": "Notion-Trace", "in": "header", "schema": {"type": "string"}}
                    ],
                    "requestBody": {
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "query": {"type": "string"},
                                        "start_cursor": {"type": "string"},
                                    },
                                }
                            }
                        }
                    },
                    "responses": {"200": {"description": "Results"}},
                }
            },
        },
        "components": {
            "schemas": {
                "Item": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "id": {"type": "integer"},
                        "name": {"type": "string"},
                    },
                }
            },
            "parameters": {
                "PageSize": {
                    "name": "page_size",
                    "in": "query",
                    "description": "Results per page",
                    "schema": {"type": "integer"},
                }
            },
            "requestBodies": {
                "ItemInput": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/Item"}}
                    },
                }
            },
        },
    }


@pytest.fixture
def single_operation_spec() -> Dict[str, Any]:
    """A document with exactly one operation, ``items-getItem``."""
    return {
        "openapi": "3.0.0",
        "info": {"title": "Single", "version": "1.0.0"},
        "servers": [{"url": "https://api.example.com"}],
        "paths": {
            "/items/{id}": {
                "get": {
                    "operationId": "getItem",
                    "tags": ["items"],
                    "parameters": [
                        {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
                        {"name": "cursor", "in": "query", "schema": {"type": "string"}},
                    ],
                    "responses": {"200": {"description": "OK"}},
                }
            }
        },
    }


# =============================================================================
# HTTP Executor Fixtures
# =============================================================================


class FakeHttpClient:
    """Records executed operations and replays a scripted result."""

    def __init__(self) -> None:
        self.calls: List[Tuple[OperationRecord, Any]] = []
        self.response: HttpResponse = HttpResponse(data={}, status=200)
        self.error: Optional[BaseException] = None
        self.closed = False

    async def execute_operation(self, operation: OperationRecord, params: Any) -> HttpResponse:
        self.calls.append((operation, params))
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeHttpClient:
    return FakeHttpClient()


@pytest.fixture
def adapter(
    sample_openapi_spec: Dict[str, Any], settings: Settings, fake_client: FakeHttpClient
) -> MCPAdapter:
    return MCPAdapter("test-adapter", sample_openapi_spec, settings=settings, http_client=fake_client)


@pytest.fixture
def mock_transport_client() -> Callable[..., Tuple[HttpClient, List[httpx.Request]]]:
    """Build an HttpClient whose requests are answered by ``handler``."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[HttpClient, List[httpx.Request]]:
        seen: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        client = HttpClient(
            "https://api.example.com/v1",
            headers=headers,
            transport=httpx.MockTransport(record),
        )
        return client, seen

    return factory

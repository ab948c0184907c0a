"""Tests for the httpx-based operation executor."""
from __future__ import annotations

import base64
import json

import httpx
import pytest

from openapi_adapter.executors import HttpClientError, HttpResponse, classify_content_type
from openapi_adapter.models import OperationParameter, OperationRecord


def _json_response(payload, status_code=200):
    return httpx.Response(status_code, json=payload)


GET_ITEM = OperationRecord(
    operation_id="items-getItem",
    method="get",
    path="/items/{id}",
    parameters=(
        OperationParameter("id", "path", required=True),
        OperationParameter("start_cursor", "query"),
        OperationParameter("filter", "query"),
        OperationParameter("X-Trace", "header"),
    ),
)

CREATE_ITEM = OperationRecord(
    operation_id="items-createItem",
    method="post",
    path="/items",
    parameters=(OperationParameter("dry_run", "query"),),
    has_body=True,
)

BULK = OperationRecord(
    operation_id="bulk-bulk",
    method="post",
    path="/bulk",
    has_body=True,
    wrapped_body=True,
)


class TestRequestBuilding:
    """Test how arguments are routed into the request."""

    @pytest.mark.asyncio
    async def test_path_query_and_header_params(self, mock_transport_client):
        """Test path, query and header parameters land in the right place."""
        client, seen = mock_transport_client(lambda request: _json_response({"id": 1}))

        response = await client.execute_operation(
            GET_ITEM, {"id": "a b", "start_cursor": "c1", "X-Trace": 7}
        )

        request = seen[0]
        assert request.method == "GET"
        assert str(request.url).startswith("https://api.example.com/v1/items/a%20b?")
        assert request.url.params["start_cursor"] == "c1"
        assert request.headers["X-Trace"] == "7"
        assert response.data == {"id": 1}
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_default_headers_sent(self, mock_transport_client):
        """Test configured headers accompany every request."""
        client, seen = mock_transport_client(
            lambda request: _json_response({}),
            headers={"Authorization": "Bearer tok", "Notion-Version": "2022-06-28"},
        )
        await client.execute_operation(GET_ITEM, {"id": "1"})
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert seen[0].headers["Notion-Version"] == "2022-06-28"

    @pytest.mark.asyncio
    async def test_query_value_encoding(self, mock_transport_client):
        """Test lists repeat keys, booleans are lower-case, objects are JSON."""
        client, seen = mock_transport_client(lambda request: _json_response({}))
        await client.execute_operation(
            GET_ITEM,
            {"id": "1", "start_cursor": ["a", "b"], "filter": {"k": True}, "extra": False},
        )
        params = seen[0].url.params
        assert params.get_list("start_cursor") == ["a", "b"]
        assert json.loads(params["filter"]) == {"k": True}
        assert params["extra"] == "false"

    @pytest.mark.asyncio
    async def test_json_body_from_remaining_args(self, mock_transport_client):
        """Test undeclared arguments form the JSON body."""
        client, seen = mock_transport_client(lambda request: _json_response({"ok": True}, 201))
        await client.execute_operation(CREATE_ITEM, {"name": "x", "dry_run": True})

        request = seen[0]
        assert request.method == "POST"
        assert request.url.params["dry_run"] == "true"
        assert json.loads(request.content) == {"name": "x"}
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_wrapped_body_sent_as_is(self, mock_transport_client):
        """Test a wrapped body is unwrapped before sending."""
        client, seen = mock_transport_client(lambda request: _json_response([]))
        await client.execute_operation(BULK, {"body": ["a", "b"]})
        assert json.loads(seen[0].content) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_empty_body_not_sent(self, mock_transport_client):
        """Test no body is sent when nothing remains."""
        client, seen = mock_transport_client(lambda request: _json_response({}))
        await client.execute_operation(CREATE_ITEM, {})
        assert seen[0].content == b""

    @pytest.mark.asyncio
    async def test_missing_path_parameter(self, mock_transport_client):
        """Test a missing path parameter raises before any request."""
        client, seen = mock_transport_client(lambda request: _json_response({}))
        with pytest.raises(ValueError, match="Missing path parameters"):
            await client.execute_operation(GET_ITEM, {})
        assert seen == []


class TestResponses:
    """Test response decoding and error classification."""

    @pytest.mark.asyncio
    async def test_error_status_raises_classified_error(self, mock_transport_client):
        """Test non-2xx responses raise HttpClientError with the body."""
        body = {"object": "error", "code": "validation_error", "message": "bad"}
        client, _ = mock_transport_client(lambda request: _json_response(body, 400))

        with pytest.raises(HttpClientError) as exc_info:
            await client.execute_operation(GET_ITEM, {"id": "1"})

        assert exc_info.value.status == 400
        assert exc_info.value.response.data == body

    @pytest.mark.asyncio
    async def test_text_response(self, mock_transport_client):
        """Test non-JSON text is returned as a string."""
        client, _ = mock_transport_client(
            lambda request: httpx.Response(200, text="plain", headers={"content-type": "text/plain"})
        )
        response = await client.execute_operation(GET_ITEM, {"id": "1"})
        assert response.data == "plain"

    @pytest.mark.asyncio
    async def test_image_response_base64(self, mock_transport_client):
        """Test image bytes are returned base64 encoded."""
        client, _ = mock_transport_client(
            lambda request: httpx.Response(
                200, content=b"\x89PNG", headers={"content-type": "image/png"}
            )
        )
        response = await client.execute_operation(GET_ITEM, {"id": "1"})
        assert base64.b64decode(response.data) == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_empty_response(self, mock_transport_client):
        """Test an empty body decodes to None."""
        client, _ = mock_transport_client(lambda request: httpx.Response(204))
        response = await client.execute_operation(GET_ITEM, {"id": "1"})
        assert response.data is None
        assert response.status == 204

    @pytest.mark.asyncio
    async def test_network_error_propagates(self, mock_transport_client):
        """Test transport failures are not classified as upstream errors."""

        def fail(request):
            raise httpx.ConnectError("boom", request=request)

        client, _ = mock_transport_client(fail)
        with pytest.raises(httpx.ConnectError):
            await client.execute_operation(GET_ITEM, {"id": "1"})


class TestContentTypeClassification:
    """Test response content-type classification."""

    @pytest.mark.parametrize(
        "content_type, expected",
        [
            (None, "binary"),
            ("", "binary"),
            ("application/json", "text"),
            ("application/problem+json; charset=utf-8", "text"),
            ("text/html", "text"),
            ("image/png", "image"),
            ("application/octet-stream", "binary"),
            ("application/pdf", "binary"),
        ],
    )
    def test_classify(self, content_type, expected):
        assert classify_content_type(content_type) == expected


class TestHttpClientError:
    """Test the fields carried by upstream errors."""

    def test_status_from_response(self):
        error = HttpClientError(
            "failed", response=HttpResponse(data={"code": "X"}, status=409, headers={"a": "b"})
        )
        assert error.status == 409
        assert error.response.headers == {"a": "b"}
        assert error.data is None
        assert str(error) == "failed"

    def test_raw_payload_without_response(self):
        error = HttpClientError("failed", data={"reason": "quota"})
        assert error.status is None
        assert error.response is None
        assert error.data == {"reason": "quota"}

"""HTTP execution layer for OpenAPI operations."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from .logging import redact_payload
from .models import OperationRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    data: Any
    status: int
    headers: Dict[str, str] = field(default_factory=dict)


class HttpClientError(Exception):
    """Upstream call that completed with a non-2xx status."""

    def __init__(
        self,
        message: str,
        response: Optional[HttpResponse] = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.response = response
        self.data = data

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response else None


def classify_content_type(content_type: Optional[str]) -> str:
    if not content_type:
        return "binary"
    if "text" in content_type or "json" in content_type:
        return "text"
    if "image" in content_type:
        return "image"
    return "binary"


class HttpClient:
    def __init__(
        self,
        base_url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def execute_operation(
        self, operation: OperationRecord, params: Any
    ) -> HttpResponse:
        payload: Dict[str, Any] = dict(params) if isinstance(params, Mapping) else {}
        method = operation.method.upper()

        path = self._build_path(operation, payload)
        query = self._pop_params(operation, "query", payload)
        headers = {k: str(v) for k, v in self._pop_params(operation, "header", payload).items()}
        cookies = self._pop_params(operation, "cookie", payload)
        if cookies:
            headers["Cookie"] = "; ".join(f"{k}={v}" for k, v in cookies.items())

        body: Any = None
        if operation.has_body:
            body = payload.pop("body", None) if operation.wrapped_body else (payload or None)
        elif payload:
            # Undeclared arguments on a body-less operation end up in the query string.
            query.update(payload)

        logger.info(
            "%s %s%s query=%s", method, self.base_url, path, redact_payload(query)
        )
        request = self._client.build_request(
            method,
            path,
            params=self._encode_query(query),
            headers=headers,
            json=body,
        )
        response = await self._client.send(request)
        result = HttpResponse(
            data=self._decode(response),
            status=response.status_code,
            headers=dict(response.headers),
        )
        if response.is_error:
            logger.warning("%s %s returned %s", method, path, response.status_code)
            raise HttpClientError(
                f"{method} {path} failed with status {response.status_code}",
                response=result,
            )
        return result

    async def aclose(self) -> None:
        await self._client.aclose()

    def _build_path(self, operation: OperationRecord, payload: Dict[str, Any]) -> str:
        path = operation.path
        missing: List[str] = []
        for param in operation.parameters_in("path"):
            token = f"{{{param.name}}}"
            if token not in path:
                continue
            if param.name not in payload:
                missing.append(param.name)
                continue
            path = path.replace(token, quote(str(payload.pop(param.name)), safe=""))
        if missing:
            raise ValueError(f"Missing path parameters: {missing}")
        return path

    def _pop_params(
        self, operation: OperationRecord, location: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        return {
            param.name: payload.pop(param.name)
            for param in operation.parameters_in(location)
            if param.name in payload
        }

    def _encode_query(self, query: Dict[str, Any]) -> List[Tuple[str, str]]:
        encoded: List[Tuple[str, str]] = []
        for key, value in query.items():
            values = value if isinstance(value, list) else [value]
            for item in values:
                encoded.append((key, self._query_value(item)))
        return encoded

    def _query_value(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)

    def _decode(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        content_type = response.headers.get("content-type")
        kind = classify_content_type(content_type)
        if kind == "text":
            try:
                return response.json()
            except ValueError:
                return response.text
        return base64.b64encode(response.content).decode("ascii")

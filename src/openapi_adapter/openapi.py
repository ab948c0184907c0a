"""OpenAPI document loader and tool catalog builder."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Tuple

import httpx
import yaml

from .errors import ConfigurationError
from .models import (
    OperationIndex,
    OperationParameter,
    OperationRecord,
    ToolCatalog,
    ToolDefinition,
    ToolMethod,
)


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "patch", "head", "options")
DEFAULT_RESOURCE = "API"


def load_document(source: str, timeout_seconds: float = 30) -> Dict[str, Any]:
    """Load an OpenAPI document from a local path or an http(s) URL.

    JSON and YAML are both accepted.
    """
    if source.startswith(("http://", "https://")):
        response = httpx.get(source, timeout=timeout_seconds, follow_redirects=True)
        response.raise_for_status()
        text = response.text
    else:
        path = Path(source)
        if not path.is_file():
            raise ConfigurationError(f"OpenAPI document not found: {source}")
        text = path.read_text(encoding="utf-8")

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid OpenAPI document {source}: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigurationError(f"Invalid OpenAPI document {source}: must be an object")
    return document


def extract_server_url(document: Dict[str, Any]) -> Optional[str]:
    servers = document.get("servers") or []
    if not isinstance(servers, list) or not servers:
        return None
    server = servers[0]
    if isinstance(server, dict):
        return server.get("url") or None
    return None


class OpenAPIToolConverter:
    """Turns an OpenAPI 3 document into MCP tool definitions.

    Operations are grouped into resources (first tag, else first path
    segment). Each operation becomes one method, and the operation index is
    keyed by ``"{resource}-{method}"`` before any display truncation.
    """

    def __init__(self, document: Dict[str, Any]) -> None:
        self.document = document

    def convert_to_mcp_tools(self) -> Tuple[ToolCatalog, OperationIndex]:
        methods_by_resource: Dict[str, List[ToolMethod]] = {}
        index: Dict[str, OperationRecord] = {}
        paths = self.document.get("paths") or {}

        for path, path_item in paths.items():
            # Refs are resolved once here; the helpers below see the resolved tree.
            path_item = self._resolve(path_item)
            if not isinstance(path_item, dict):
                continue
            shared_parameters = path_item.get("parameters") or []

            for method, operation in path_item.items():
                if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                    continue

                resource = self._resource_name(operation, path)
                method_name = self._sanitize_name(
                    operation.get("operationId") or self._fallback_operation_id(method, path)
                )
                operation_id = f"{resource}-{method_name}"
                if operation_id in index:
                    logger.warning("Duplicate operation %s, keeping the first one", operation_id)
                    continue

                parameters = self._merge_parameters(
                    shared_parameters, operation.get("parameters") or []
                )
                input_schema, has_body, wrapped_body = self._build_input_schema(
                    parameters, operation
                )

                methods_by_resource.setdefault(resource, []).append(
                    ToolMethod(
                        name=method_name,
                        description=self._describe(operation, method, path),
                        input_schema=input_schema,
                        return_schema=self._build_return_schema(operation),
                    )
                )
                index[operation_id] = OperationRecord(
                    operation_id=operation_id,
                    method=method.lower(),
                    path=path,
                    operation=MappingProxyType(operation),
                    parameters=tuple(
                        OperationParameter(
                            name=param["name"],
                            location=param.get("in", "query"),
                            required=bool(param.get("required", False)),
                        )
                        for param in parameters
                    ),
                    has_body=has_body,
                    wrapped_body=wrapped_body,
                )

        tools = {
            resource: ToolDefinition(methods=tuple(methods))
            for resource, methods in methods_by_resource.items()
        }
        logger.info("Converted %s operations into %s resources", len(index), len(tools))
        return MappingProxyType(tools), MappingProxyType(index)

    def _merge_parameters(
        self, shared: List[Any], own: List[Any]
    ) -> List[Dict[str, Any]]:
        merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for param in [*shared, *own]:
            if not isinstance(param, dict) or not param.get("name"):
                continue
            merged[(param["name"], param.get("in", "query"))] = param
        return list(merged.values())

    def _build_input_schema(
        self, parameters: List[Dict[str, Any]], operation: Dict[str, Any]
    ) -> Tuple[Dict[str, Any], bool, bool]:
        properties: Dict[str, Any] = {}
        required: List[str] = []

        for param in parameters:
            name = param["name"]
            schema = dict(param.get("schema") or {"type": "string"})
            if param.get("description"):
                schema["description"] = param["description"]
            properties[name] = schema
            if param.get("required"):
                required.append(name)

        request_body = operation.get("requestBody") or {}
        body_schema = self._extract_json_schema(request_body)
        has_body = body_schema is not None
        wrapped_body = False

        if body_schema is not None:
            if body_schema.get("type") == "object" or "properties" in body_schema:
                for name, prop in (body_schema.get("properties") or {}).items():
                    if name in properties:
                        logger.debug("Body property %s shadowed by a parameter", name)
                        continue
                    properties[name] = prop
                for name in body_schema.get("required") or []:
                    if name not in required:
                        required.append(name)
            else:
                wrapped_body = True
                properties["body"] = body_schema
                if request_body.get("required"):
                    required.append("body")

        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema, has_body, wrapped_body

    def _build_return_schema(self, operation: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        responses = operation.get("responses") or {}
        for status, response in responses.items():
            if str(status).startswith("2"):
                return self._extract_json_schema(response)
        return None

    def _extract_json_schema(self, container: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(container, dict):
            return None
        content = container.get("content") or {}
        for media_type, media in content.items():
            if "json" in media_type and isinstance(media, dict) and "schema" in media:
                schema = media["schema"]
                return schema if isinstance(schema, dict) else None
        return None

    def _resolve(self, obj: Any, seen: Tuple[str, ...] = ()) -> Any:
        """Resolve local ``$ref`` pointers recursively.

        A reference that cannot be resolved, or one that points back at an
        enclosing reference, is left in place.
        """
        if isinstance(obj, dict):
            ref = obj.get("$ref")
            if isinstance(ref, str):
                if ref in seen:
                    return obj
                target = self._lookup_ref(ref)
                if target is None:
                    return obj
                return self._resolve(target, (*seen, ref))
            return {key: self._resolve(value, seen) for key, value in obj.items()}
        if isinstance(obj, list):
            return [self._resolve(item, seen) for item in obj]
        return obj

    def _lookup_ref(self, ref: str) -> Any:
        if not ref.startswith("#/"):
            logger.debug("Skipping non-local $ref %s", ref)
            return None
        current: Any = self.document
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(current, dict) or part not in current:
                logger.debug("Unresolvable $ref %s", ref)
                return None
            current = current[part]
        return current

    def _resource_name(self, operation: Dict[str, Any], path: str) -> str:
        tags = operation.get("tags") or []
        if isinstance(tags, list) and tags and str(tags[0]).strip():
            return self._sanitize_name(str(tags[0]).strip())
        for segment in path.split("/"):
            if segment and not segment.startswith("{"):
                return self._sanitize_name(segment)
        return DEFAULT_RESOURCE

    def _describe(self, operation: Dict[str, Any], method: str, path: str) -> str:
        return (
            operation.get("summary")
            or operation.get("description")
            or f"{method.upper()} {path}"
        )

    def _fallback_operation_id(self, method: str, path: str) -> str:
        sanitized = path.strip("/").replace("/", "_").replace("{", "").replace("}", "")
        return f"{method.lower()}_{sanitized or 'root'}"

    def _sanitize_name(self, name: str) -> str:
        return "".join(
            ch if (ch.isascii() and ch.isalnum()) or ch in "-_" else "_" for ch in name
        )

"""Resolution of the auth headers sent with every upstream request."""

from __future__ import annotations

import json
import logging
from typing import Callable, Dict, Optional, Sequence

from .config import Settings

logger = logging.getLogger(__name__)

HeaderResolver = Callable[[Settings], Optional[Dict[str, str]]]


def headers_from_json(settings: Settings) -> Optional[Dict[str, str]]:
    raw = settings.openapi_mcp_headers
    if not raw:
        return None
    try:
        headers = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse OPENAPI_MCP_HEADERS: %s", exc)
        return None
    if not isinstance(headers, dict):
        logger.warning(
            "OPENAPI_MCP_HEADERS must be a JSON object, got: %s", type(headers).__name__
        )
        return None
    # An empty object falls through to the next resolver.
    if not headers:
        return None
    return {str(key): str(value) for key, value in headers.items()}


def headers_from_bearer_token(settings: Settings) -> Optional[Dict[str, str]]:
    if not settings.notion_token:
        return None
    return {
        "Authorization": f"Bearer {settings.notion_token}",
        "Notion-Version": settings.notion_version,
    }


DEFAULT_RESOLVERS: Sequence[HeaderResolver] = (headers_from_json, headers_from_bearer_token)


def resolve_auth_headers(
    settings: Settings, resolvers: Sequence[HeaderResolver] = DEFAULT_RESOLVERS
) -> Dict[str, str]:
    """Return the headers of the first resolver that produces any, else ``{}``."""
    for resolver in resolvers:
        headers = resolver(settings)
        if headers:
            logger.debug("Resolved upstream headers via %s", resolver.__name__)
            return headers
    return {}

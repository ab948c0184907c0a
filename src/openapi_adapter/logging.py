"""Logging helpers with redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping


_SENSITIVE_KEYS = re.compile(r"(token|secret|api[_-]?key|password|authorization)", re.IGNORECASE)

REDACTED = "***REDACTED***"


def configure_logging(level: str) -> None:
    # basicConfig writes to stderr, which keeps stdout clean for the stdio transport.
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def redact_payload(payload: Any) -> Any:
    if isinstance(payload, Mapping):
        redacted = {}
        for key, value in payload.items():
            if _SENSITIVE_KEYS.search(str(key)):
                redacted[key] = REDACTED
            else:
                redacted[key] = redact_payload(value)
        return redacted
    if isinstance(payload, list):
        return [redact_payload(item) for item in payload]
    return payload

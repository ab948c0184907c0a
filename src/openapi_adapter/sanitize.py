"""Argument cleanup applied before tool calls reach the upstream API."""

from __future__ import annotations

import re
from functools import singledispatch
from typing import Any, Dict, List

from .models import JsonValue

# Notion-style APIs reject "" and 0 as cursor values with a validation_error.
_CURSOR_KEY = re.compile(r"(start_?cursor|next_?cursor|page_?cursor|cursor)$", re.IGNORECASE)


def sanitize_params(params: JsonValue) -> JsonValue:
    """Strip empty values from a tool-call argument bag.

    Drops ``None`` fields, blank strings, zero cursors, and containers that
    end up empty. Anything that is not a mapping or a sequence is returned
    as-is. The input is never mutated.
    """
    return _sanitize(params)


def is_cursor_key(key: Any) -> bool:
    return bool(_CURSOR_KEY.search(str(key)))


def _should_drop(key: Any, value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if is_cursor_key(key) and _is_zero(value):
        return True
    return False


def _is_zero(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 0
    return value == "0"


@singledispatch
def _sanitize(value: Any) -> Any:
    return value


@_sanitize.register(dict)
def _sanitize_mapping(value: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, item in value.items():
        if _should_drop(key, item):
            continue
        item = _sanitize(item)
        if isinstance(item, (dict, list)) and not item:
            continue
        cleaned[key] = item
    return cleaned


@_sanitize.register(list)
@_sanitize.register(tuple)
def _sanitize_sequence(value: List[Any]) -> List[Any]:
    return [item for item in map(_sanitize, value) if item is not None]

"""Internal models for tool definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

JsonValue = Union[None, bool, int, float, str, List["JsonValue"], Dict[str, "JsonValue"]]

TOOL_NAME_MAX_LENGTH = 64


@dataclass(frozen=True)
class ToolMethod:
    name: str
    description: str
    input_schema: Dict[str, Any]
    return_schema: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ToolDefinition:
    methods: Tuple[ToolMethod, ...]


@dataclass(frozen=True)
class OperationParameter:
    name: str
    location: str
    required: bool = False


@dataclass(frozen=True)
class OperationRecord:
    operation_id: str
    method: str
    path: str
    operation: Mapping[str, Any] = field(default_factory=dict)
    parameters: Tuple[OperationParameter, ...] = ()
    has_body: bool = False
    # Non-object request bodies travel under a single "body" argument.
    wrapped_body: bool = False

    def parameters_in(self, location: str) -> List[OperationParameter]:
        return [p for p in self.parameters if p.location == location]


ToolCatalog = Mapping[str, ToolDefinition]
OperationIndex = Mapping[str, OperationRecord]


def tool_display_name(resource: str, method: str) -> str:
    return truncate_tool_name(f"{resource}-{method}")


def truncate_tool_name(name: str) -> str:
    if len(name) <= TOOL_NAME_MAX_LENGTH:
        return name
    return name[:TOOL_NAME_MAX_LENGTH]

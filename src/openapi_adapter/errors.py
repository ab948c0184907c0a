"""Exception types raised by the adapter."""

from __future__ import annotations


class AdapterError(Exception):
    pass


class ConfigurationError(AdapterError):
    pass


class ToolNotFoundError(AdapterError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Method {name} not found")
        self.name = name

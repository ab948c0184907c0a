"""Configuration for the OpenAPI MCP Adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MCP_PATH = "/mcp"
HEALTH_PATH = "/health"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-mcp-adapter")
    openapi_spec: str = Field(default="openapi.json")

    # Upstream auth, see headers.resolve_auth_headers
    openapi_mcp_headers: Optional[str] = Field(default=None)
    notion_token: Optional[str] = Field(default=None)
    notion_version: str = Field(default="2022-06-28")

    adapter_transport: str = Field(default="stdio")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8081)
    adapter_auth_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("adapter_auth_token", "auth_token")
    )
    adapter_http_timeout_seconds: float = Field(default=30)
    adapter_log_level: str = Field(default="INFO")

    gateway_host: str = Field(default="0.0.0.0")
    gateway_port: int = Field(
        default=8080, validation_alias=AliasChoices("gateway_port", "port")
    )
    gateway_upstream_url: str = Field(default="http://127.0.0.1:8081")
    gateway_proxy_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("gateway_proxy_key", "proxy_key")
    )
    gateway_auth_strategies: str = Field(default="query,header")
    gateway_query_param: str = Field(default="k")
    gateway_key_header: str = Field(default="X-Proxy-Key")
    gateway_required_header: Optional[str] = Field(default=None)

    def auth_strategies(self) -> List[str]:
        return [
            item.strip().lower()
            for item in self.gateway_auth_strategies.split(",")
            if item.strip()
        ]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

"""Bearer token and proxy key authentication."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from .config import HEALTH_PATH, Settings
from .errors import ConfigurationError


logger = logging.getLogger(__name__)

AuthStrategy = Callable[[Request], bool]

# Preflight and other body-less verification requests skip authentication,
# as does the exact health route.
UNAUTHENTICATED_METHODS = frozenset({"OPTIONS", "HEAD"})


@dataclass
class AuthContext:
    strategy: str
    claims: Dict[str, str]


def _matches(candidate: Optional[str], expected: Optional[str]) -> bool:
    if not candidate or not expected:
        return False
    return hmac.compare_digest(candidate.encode(), expected.encode())


def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def query_key_strategy(param: str, key: Optional[str]) -> AuthStrategy:
    def check(request: Request) -> bool:
        return _matches(request.query_params.get(param), key)

    return check


def header_key_strategy(header: str, key: Optional[str]) -> AuthStrategy:
    def check(request: Request) -> bool:
        return _matches(request.headers.get(header), key)

    return check


def bearer_key_strategy(key: Optional[str]) -> AuthStrategy:
    def check(request: Request) -> bool:
        return _matches(bearer_token(request), key)

    return check


def required_header_strategy(header: Optional[str]) -> AuthStrategy:
    if not header:
        raise ConfigurationError("required_header strategy needs GATEWAY_REQUIRED_HEADER")

    def check(request: Request) -> bool:
        return header in request.headers

    return check


class GatewayAuthenticator:
    """Accepts a request when any of its named strategies accepts it."""

    def __init__(self, strategies: Sequence[Tuple[str, AuthStrategy]]) -> None:
        self.strategies = list(strategies)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayAuthenticator":
        key = settings.gateway_proxy_key
        factories: Dict[str, Callable[[], AuthStrategy]] = {
            "query": lambda: query_key_strategy(settings.gateway_query_param, key),
            "header": lambda: header_key_strategy(settings.gateway_key_header, key),
            "bearer": lambda: bearer_key_strategy(key),
            "required_header": lambda: required_header_strategy(
                settings.gateway_required_header
            ),
        }
        strategies: List[Tuple[str, AuthStrategy]] = []
        for name in settings.auth_strategies():
            if name not in factories:
                raise ConfigurationError(f"Unknown gateway auth strategy: {name}")
            strategies.append((name, factories[name]()))
        if not strategies:
            raise ConfigurationError("At least one gateway auth strategy is required")
        return cls(strategies)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.strategies]

    def authenticate(self, request: Request) -> Optional[AuthContext]:
        for name, strategy in self.strategies:
            if strategy(request):
                return AuthContext(strategy=name, claims={"client": _client_host(request)})
        return None


class GatewayAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, authenticator: GatewayAuthenticator) -> None:
        super().__init__(app)
        self.authenticator = authenticator

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method in UNAUTHENTICATED_METHODS or request.url.path == HEALTH_PATH:
            return await call_next(request)

        auth = self.authenticator.authenticate(request)
        if auth is None:
            logger.warning(
                "Rejected %s %s from %s", request.method, request.url.path, _client_host(request)
            )
            return JSONResponse({"error": "unauthorized"}, status_code=401)
        request.state.auth = auth
        return await call_next(request)


class BearerTokenMiddleware(BaseHTTPMiddleware):
    """Requires ``Authorization: Bearer <token>`` when a token is configured."""

    def __init__(self, app: ASGIApp, token: Optional[str]) -> None:
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or request.url.path == HEALTH_PATH:
            return await call_next(request)

        if not self.token:
            request.state.auth = AuthContext(strategy="anonymous", claims={})
            return await call_next(request)

        if _matches(bearer_token(request), self.token):
            request.state.auth = AuthContext(strategy="service", claims={})
            return await call_next(request)

        return JSONResponse({"error": "Unauthorized"}, status_code=401)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"

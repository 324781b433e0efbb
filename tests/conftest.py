"""Shared pytest fixtures for APIAuth tests.

Request helpers build the two request types APIAuth works with: client-side
``httpx.Request`` objects and server-side Starlette requests built directly
from an ASGI scope.
"""

import pytest
from fastapi import Request
from httpx import ASGITransport, AsyncClient

from apiauth.config import (
    APIAuthConfig,
    AuthConfig,
    ObservabilityConfig,
    ServerConfig,
)
from apiauth.server import create_app

ACCESS_ID = "me"
SECRET_KEY = "secret"
FIXED_DATE = "Fri, 20 Mar 2015 19:37:40 GMT"


def asgi_request(
    method: str = "GET",
    path: str = "/",
    query: str = "",
    headers: dict[str, str] | None = None,
    raw_path: bytes | None = None,
) -> Request:
    """Build a server-side request from an ASGI scope."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode() if raw_path is None else raw_path,
        "query_string": query.encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    return Request(scope)


@pytest.fixture
def config() -> APIAuthConfig:
    """Create a test config with one known credential and metrics enabled."""
    return APIAuthConfig(
        server=ServerConfig(host="127.0.0.1", port=9010),
        auth=AuthConfig(enabled=True, credentials={ACCESS_ID: SECRET_KEY}),
        observability=ObservabilityConfig(metrics=True),
    )


@pytest.fixture
def app(config: APIAuthConfig):
    """Create a test FastAPI application."""
    return create_app(config)


@pytest.fixture
async def client(app) -> AsyncClient:
    """Create an unauthenticated async test client for the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

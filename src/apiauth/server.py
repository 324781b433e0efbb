"""FastAPI application factory for an APIAuth verification server.

The server verifies APIAuth signatures on every request outside the
unauthenticated paths and reports who signed it. It is useful both as a
reference verifier for partner implementations and as a template for
wiring the middleware into other FastAPI applications.
"""

import logging
import time
from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

import apiauth.metrics as _metrics
from apiauth.auth import AUTH_SCHEME
from apiauth.authenticator import Authenticator
from apiauth.config import APIAuthConfig
from apiauth.errors import APIAuthError
from apiauth.logging_config import access_id_var

logger = logging.getLogger(__name__)

# Paths that skip auth
AUTH_SKIP_PATHS = {"/health", "/metrics"}

# Paths to suppress from per-request logging
_QUIET_PATHS = {"/health", "/metrics"}


def create_app(
    config: APIAuthConfig,
    secret_lookup: Callable[[str], str | None] | None = None,
) -> FastAPI:
    """Create and configure the APIAuth FastAPI application.

    Args:
        config: The loaded APIAuth configuration.
        secret_lookup: Maps an access ID to its secret key. Defaults to the
            ``auth.credentials`` table of the configuration.

    Returns:
        A configured FastAPI application ready to run.
    """
    if secret_lookup is None:
        secret_lookup = config.auth.credentials.get

    app = FastAPI(
        title="APIAuth verification server",
        version="0.1.0",
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config
    app.state.authenticator = Authenticator(
        secret_lookup=secret_lookup,
        accept_legacy=config.auth.accept_legacy,
    )

    if config.observability.metrics:
        _metrics.init_metrics()

    _register_middleware(app)
    _setup_routes(app, config)

    logger.info(
        "APIAuth verification %s (legacy signatures %s, %d credentials)",
        "enabled" if config.auth.enabled else "disabled",
        "accepted" if config.auth.accept_legacy else "rejected",
        len(config.auth.credentials),
    )
    return app


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------


def error_response(exc: APIAuthError) -> JSONResponse:
    """Render an APIAuthError as a JSON error response."""
    headers = {"WWW-Authenticate": AUTH_SCHEME} if exc.http_status == 401 else None
    return JSONResponse(
        {"error": {"code": exc.code, "message": exc.message}},
        status_code=exc.http_status,
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _register_middleware(app: FastAPI) -> None:
    """Register middleware on the FastAPI app.

    The last registered middleware runs first. Auth is registered first and
    request logging second, so the execution order is:
    request_logging -> auth -> handler, and the log line can include the
    authenticated access ID.
    """

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next) -> Response:
        """APIAuth verification middleware.

        Skips unauthenticated paths, and every path when auth is disabled.
        On success stores the access ID and scheme on request.state. On
        failure returns the JSON error directly (FastAPI exception handlers
        do not catch exceptions raised in middleware).
        """
        cfg: APIAuthConfig = app.state.config

        if request.url.path in AUTH_SKIP_PATHS or not cfg.auth.enabled:
            return await call_next(request)

        authenticator: Authenticator = app.state.authenticator
        try:
            result = authenticator.authenticate(request)
        except APIAuthError as exc:
            _metrics.record_verification(exc.code)
            logger.info(
                "Rejected %s %s: %s",
                request.method,
                request.url.path,
                exc.code,
                extra={"method": request.method, "path": request.url.path, "error_code": exc.code},
            )
            return error_response(exc)

        _metrics.record_verification("success", result.scheme.value)
        request.state.access_id = result.access_id
        request.state.auth_scheme = result.scheme.value

        token = access_id_var.set(result.access_id)
        try:
            return await call_next(request)
        finally:
            access_id_var.reset(token)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next) -> Response:
        """Log one line per request with method, path, status and duration."""
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        if request.url.path not in _QUIET_PATHS:
            access_id = getattr(request.state, "access_id", None)
            logger.info(
                "%s %s %d %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "access_id": access_id,
                    "scheme": getattr(request.state, "auth_scheme", None),
                },
            )

        return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def _setup_routes(app: FastAPI, config: APIAuthConfig) -> None:
    """Register the health, metrics and whoami routes."""

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "ok"}

    if config.observability.metrics:

        @app.get("/metrics")
        async def metrics() -> Response:
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.api_route("/whoami", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
    async def whoami(request: Request) -> dict:
        """Report the verified caller, or null fields when auth is disabled."""
        return {
            "access_id": getattr(request.state, "access_id", None),
            "scheme": getattr(request.state, "auth_scheme", None),
        }

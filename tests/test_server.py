"""Tests for the FastAPI verification server and its middleware."""

import logging

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from apiauth.auth import sign, sign_with_method
from apiauth.client import APIAuth
from apiauth.config import APIAuthConfig, AuthConfig, ObservabilityConfig
from apiauth.logging_config import access_id_var
from apiauth.server import create_app
from conftest import ACCESS_ID, FIXED_DATE, SECRET_KEY


def _signed_headers(method: str, url: str, with_method: bool = True, secret: str = SECRET_KEY) -> dict:
    """Sign a request offline and return the headers to send."""
    request = httpx.Request(method, url, headers={"Date": FIXED_DATE})
    (sign_with_method if with_method else sign)(request, ACCESS_ID, secret)
    return {"Date": request.headers["Date"], "Authorization": request.headers["Authorization"]}


@pytest.fixture
async def signed_client(app) -> AsyncClient:
    """Create an async test client that signs every request."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://testserver",
        auth=APIAuth(ACCESS_ID, SECRET_KEY),
    ) as ac:
        yield ac


class TestHealth:
    """Tests for unauthenticated endpoints."""

    async def test_health_needs_no_auth(self, client):
        """/health answers without a signature."""
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_metrics_needs_no_auth(self, client):
        """/metrics answers without a signature in Prometheus format."""
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "text/plain" in resp.headers["content-type"]
        assert "apiauth_verifications_total" in resp.text

    async def test_metrics_disabled(self):
        """/metrics is not served when metrics are disabled."""
        config = APIAuthConfig(
            auth=AuthConfig(credentials={ACCESS_ID: SECRET_KEY}),
            observability=ObservabilityConfig(metrics=False),
        )
        transport = ASGITransport(app=create_app(config))
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            resp = await ac.get("/metrics")
        assert resp.status_code == 404


class TestAuthMiddleware:
    """Tests for APIAuth verification in the middleware."""

    async def test_signed_request_accepted(self, signed_client):
        """A request signed by APIAuth reaches the handler."""
        resp = await signed_client.get("/whoami")
        assert resp.status_code == 200
        assert resp.json() == {"access_id": ACCESS_ID, "scheme": "method"}

    async def test_signed_request_with_query(self, signed_client):
        """The query string is part of what is verified."""
        resp = await signed_client.get("/whoami", params={"x": "1", "b": "2"})
        assert resp.status_code == 200

    async def test_signed_request_with_body(self, signed_client):
        """Requests with bodies verify with the generated Content-MD5."""
        resp = await signed_client.post("/whoami", json={"hello": "world"})
        assert resp.status_code == 200
        assert resp.json()["access_id"] == ACCESS_ID

    async def test_legacy_signature_accepted(self, client):
        """Legacy signatures are accepted by default."""
        resp = await client.get(
            "/whoami", headers=_signed_headers("GET", "http://testserver/whoami", with_method=False)
        )
        assert resp.status_code == 200
        assert resp.json()["scheme"] == "legacy"

    async def test_missing_date(self, client):
        """An unsigned request without Date is a 400 MissingDate."""
        resp = await client.get("/whoami")
        assert resp.status_code == 400
        assert resp.json() == {
            "error": {"code": "MissingDate", "message": "No Date header present"}
        }

    async def test_missing_authorization(self, client):
        """A request with Date but no signature is a 401."""
        resp = await client.get("/whoami", headers={"Date": FIXED_DATE})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "AuthorizationMissing"
        assert resp.headers["www-authenticate"] == "APIAuth"

    async def test_malformed_authorization(self, client):
        """A malformed Authorization header is a 401."""
        resp = await client.get(
            "/whoami", headers={"Date": FIXED_DATE, "Authorization": "Basic Zm9vOmJhcg=="}
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "MalformedHeader"

    async def test_unknown_access_id(self, client):
        """A signature from an unknown access ID is a 401."""
        request = httpx.Request("GET", "http://testserver/whoami", headers={"Date": FIXED_DATE})
        sign_with_method(request, "stranger", "whatever")
        resp = await client.get(
            "/whoami",
            headers={"Date": FIXED_DATE, "Authorization": request.headers["Authorization"]},
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UnknownAccessId"

    async def test_wrong_secret(self, client):
        """A signature made with the wrong secret is a 401."""
        headers = _signed_headers("GET", "http://testserver/whoami", secret="not-the-secret")
        resp = await client.get("/whoami", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "SignatureMismatch"

    async def test_method_bound_signature_not_replayable(self, client):
        """A method-bound GET signature cannot be replayed as DELETE."""
        headers = _signed_headers("GET", "http://testserver/whoami")
        assert (await client.get("/whoami", headers=headers)).status_code == 200
        resp = await client.delete("/whoami", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "SignatureMismatch"

    async def test_auth_disabled(self, app, client):
        """With auth disabled every request passes through."""
        app.state.config.auth.enabled = False
        resp = await client.get("/whoami")
        assert resp.status_code == 200
        assert resp.json() == {"access_id": None, "scheme": None}

    async def test_custom_secret_lookup(self, config):
        """A caller-supplied secret lookup replaces the config table."""
        app = create_app(config, secret_lookup={"svc": "svc-secret"}.get)
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://testserver", auth=APIAuth("svc", "svc-secret")
        ) as ac:
            resp = await ac.get("/whoami")
        assert resp.json()["access_id"] == "svc"


class TestStrictServer:
    """Tests for a server that no longer accepts legacy signatures."""

    @pytest.fixture
    def app(self, config):
        config.auth.accept_legacy = False
        return create_app(config)

    async def test_legacy_rejected(self, client):
        """Legacy signatures are rejected."""
        headers = _signed_headers("GET", "http://testserver/whoami", with_method=False)
        resp = await client.get("/whoami", headers=headers)
        assert resp.status_code == 401

    async def test_method_bound_accepted(self, client):
        """Method-bound signatures are still accepted."""
        resp = await client.get("/whoami", headers=_signed_headers("GET", "http://testserver/whoami"))
        assert resp.status_code == 200


class TestVerificationMetrics:
    """Tests for the verification counter."""

    @staticmethod
    def _sample(outcome: str, scheme: str) -> float:
        value = REGISTRY.get_sample_value(
            "apiauth_verifications_total", {"outcome": outcome, "scheme": scheme}
        )
        return value or 0.0

    async def test_success_counted_by_scheme(self, client):
        """Successful verifications are counted per scheme."""
        before_method = self._sample("success", "method")
        before_legacy = self._sample("success", "legacy")

        await client.get("/whoami", headers=_signed_headers("GET", "http://testserver/whoami"))
        await client.get(
            "/whoami", headers=_signed_headers("GET", "http://testserver/whoami", with_method=False)
        )

        assert self._sample("success", "method") == before_method + 1
        assert self._sample("success", "legacy") == before_legacy + 1

    async def test_failure_counted_by_code(self, client):
        """Failed verifications are counted by error code."""
        before = self._sample("AuthorizationMissing", "none")
        await client.get("/whoami", headers={"Date": FIXED_DATE})
        assert self._sample("AuthorizationMissing", "none") == before + 1


class TestRequestLogging:
    """Tests for the auth context in request logs."""

    async def test_access_id_visible_to_handlers(self, app, signed_client):
        """Handlers see the verified access ID in the logging context."""

        @app.get("/context")
        async def context() -> dict:
            return {"access_id": access_id_var.get()}

        resp = await signed_client.get("/context")
        assert resp.json() == {"access_id": ACCESS_ID}
        assert access_id_var.get() is None

    async def test_request_log_carries_scheme(self, signed_client, caplog):
        """The per-request log line records the access ID and scheme."""
        caplog.set_level(logging.INFO, logger="apiauth.server")
        await signed_client.get("/whoami")
        records = [r for r in caplog.records if getattr(r, "status", None) == 200]
        assert records
        assert records[-1].access_id == ACCESS_ID
        assert records[-1].scheme == "method"

    async def test_rejection_logged_with_error_code(self, client, caplog):
        """A rejected request is logged with its error code."""
        caplog.set_level(logging.INFO, logger="apiauth.server")
        await client.get("/whoami", headers={"Date": FIXED_DATE})
        codes = [getattr(r, "error_code", None) for r in caplog.records]
        assert "AuthorizationMissing" in codes

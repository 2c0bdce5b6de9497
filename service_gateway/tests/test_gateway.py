"""
Tests for the Gateway service HTTP surface.
"""

import asyncio
import base64
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from service_gateway.app.adapters import BackendClient
from service_gateway.app.main import TOKEN_HEADER, GatewayService
from shared.config import GatewayConfig
from shared.test_helpers import StaticKeyProvider, TokenFactory, generate_signing_key

ISSUER = "https://team.example.com"
AUDIENCE = "policy-aud-123"
A_URL = "https://a.internal/feed"
J_URL = "https://j.internal/sub"


def vmess_blob() -> bytes:
    document = json.dumps({"ps": "X", "add": "h", "port": 443, "id": "u"})
    line = "vmess://" + base64.b64encode(document.encode()).decode()
    return base64.b64encode(line.encode())


def backend_handler(request: httpx.Request) -> httpx.Response:
    if str(request.url) == A_URL:
        return httpx.Response(200, text="plain backend body", headers={"X-Backend": "A"})
    if str(request.url) == J_URL:
        return httpx.Response(200, content=vmess_blob())
    return httpx.Response(404)


def make_config(**overrides) -> GatewayConfig:
    values = {
        "policy_aud": AUDIENCE,
        "team_domain": ISSUER + "/",
        "a_service_url": A_URL,
        "j_service_url": J_URL,
    }
    values.update(overrides)
    return GatewayConfig(_env_file=None, **values)


@pytest.fixture(scope="module")
def signing_key():
    return generate_signing_key("key-1")


@pytest.fixture
def tokens(signing_key):
    return TokenFactory(signing_key, ISSUER, AUDIENCE)


@pytest.fixture
def build_service(signing_key):
    def _build(config=None, handler=backend_handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        return GatewayService(
            config or make_config(),
            key_provider=StaticKeyProvider.of(signing_key),
            backend_client=BackendClient(client=client),
        )
    return _build


@pytest.fixture
def client(build_service):
    return TestClient(build_service().app)


class TestAuthentication:
    """Token and configuration checks."""

    def test_missing_audience_rejects_everything(self, build_service, tokens):
        client = TestClient(build_service(make_config(policy_aud=None)).app)

        response = client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 403
        assert response.text == "Missing required audience"
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["x-error-code"] == "CONFIGURATION_ERROR"

    def test_missing_team_domain_rejects_everything(self, build_service, tokens):
        client = TestClient(build_service(make_config(team_domain=None)).app)

        response = client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 403
        assert response.text == "Missing required team domain"

    @pytest.mark.parametrize("query", ["", "?service=A", "?service=J", "?service=nope"])
    def test_missing_token_is_forbidden(self, client, query):
        response = client.get(f"/anything{query}")

        assert response.status_code == 403
        assert response.text == "Missing required CF Access JWT"

    def test_blank_token_is_forbidden(self, client):
        response = client.get("/?service=A", headers={TOKEN_HEADER: "  "})

        assert response.status_code == 403
        assert response.text == "Missing required CF Access JWT"

    def test_bearer_authorization_header_is_not_accepted(self, client, tokens):
        response = client.get("/?service=A", headers={"Authorization": f"Bearer {tokens.issue()}"})

        assert response.status_code == 403

    def test_wrong_audience_includes_cause(self, client, tokens):
        response = client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue(aud="other")})

        assert response.status_code == 403
        assert response.text.startswith("Invalid token: ")
        assert "audience" in response.text.lower()
        assert response.headers["x-error-code"] == "AUTHENTICATION_ERROR"

    def test_expired_token(self, client, tokens):
        response = client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue(exp=1000, iat=900)})

        assert response.status_code == 403
        assert "expired" in response.text.lower()

    def test_garbage_token(self, client):
        response = client.get("/?service=A", headers={TOKEN_HEADER: "garbage"})

        assert response.status_code == 403
        assert response.text.startswith("Invalid token: ")


class TestRouting:
    """Service selection after successful authentication."""

    def test_missing_service_is_bad_request(self, client, tokens):
        response = client.get("/", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 400
        assert response.text == "Missing required service parameter"

    def test_empty_service_is_bad_request(self, client, tokens):
        response = client.get("/?service=", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 400

    def test_unknown_service_is_forbidden(self, client, tokens):
        response = client.get("/?service=Q", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 403
        assert response.text == "Unknown service: Q"
        assert response.headers["x-error-code"] == "UNKNOWN_SERVICE"

    def test_plain_service_is_proxied(self, client, tokens):
        response = client.get("/some/path?service=A", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 200
        assert response.text == "plain backend body"
        assert response.headers["x-backend"] == "A"

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
    def test_any_method_is_handled(self, client, tokens, method):
        response = client.request(method, "/x?service=A", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 200

    def test_subscription_service_is_transcoded(self, client, tokens):
        response = client.get("/?service=J", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 200
        assert response.text == "X = vmess, h, 443, username=u, skip-cert-verify=true, tls=true"

    def test_backend_failure_is_surfaced(self, build_service, tokens):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = TestClient(build_service(handler=handler).app)

        response = client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 502
        assert response.text.startswith("Backend A unavailable")

    def test_backend_error_status_is_surfaced(self, build_service, tokens):
        client = TestClient(build_service(handler=lambda request: httpx.Response(500)).app)

        response = client.get("/?service=J", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 500
        assert response.text == "Backend J returned status 500"

    def test_request_id_is_echoed(self, client, tokens):
        response = client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue(), "X-Request-ID": "req-1"})

        assert response.headers["x-request-id"] == "req-1"

    def test_concurrent_requests_do_not_cross(self, build_service, tokens):
        app = build_service().app

        async def run():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://gateway") as http:
                headers = {TOKEN_HEADER: tokens.issue()}
                return await asyncio.gather(*(
                    http.get("/", params={"service": service}, headers=headers)
                    for service in ["A", "J"] * 10
                ))

        responses = asyncio.run(run())

        for index, response in enumerate(responses):
            if index % 2 == 0:
                assert response.text == "plain backend body"
            else:
                assert response.text.startswith("X = vmess")


class TestOpsEndpoints:
    """Health and metrics routes."""

    def test_ops_endpoints_disabled_by_default(self, client):
        assert client.get("/health").status_code == 403
        assert client.get("/metrics").status_code == 403

    def test_ops_endpoints_when_enabled(self, build_service, tokens):
        client = TestClient(build_service(make_config(ops_endpoints=True)).app)
        client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue()})

        health = client.get("/health")
        metrics = client.get("/metrics")

        assert health.status_code == 200
        assert health.json()["status"] == "ok"
        assert metrics.status_code == 200
        assert "token_validations_total" in metrics.text

    def test_unhandled_error_is_plain_500(self, build_service, tokens):
        service = build_service()

        async def explode(service_id):
            raise RuntimeError("boom")

        service.router.dispatch = explode
        client = TestClient(service.app, raise_server_exceptions=False)

        response = client.get("/?service=A", headers={TOKEN_HEADER: tokens.issue()})

        assert response.status_code == 500
        assert response.text == "Internal server error"

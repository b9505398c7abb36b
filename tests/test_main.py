"""
HTTP-level tests for the FastAPI app, including the end-to-end scenarios.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from nlc.compiler.client import OpenAIGenerationClient, StubGenerationClient
from nlc.dispatcher import Dispatcher
from nlc.main import CORS_HEADERS, LEGACY_ROUTE, app, get_dispatcher

from conftest import FAKE_ENV, SUM_ALGORITHM, SUM_FUNCTION

PREVIOUS_CODE = "function nlcCompiled(x){ return x.nums.reduce((a,b)=>a+b) }"
PREVIOUS_ERROR = "Cannot read properties of undefined (reading 'reduce')"


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_dispatcher(config):
    """Install a dispatcher built from ``factory`` and ``environ`` for the app."""

    def install(factory, environ=FAKE_ENV):
        app.dependency_overrides[get_dispatcher] = lambda: Dispatcher(
            config, client_factory=factory, environ=environ
        )

    return install


def assert_cors(response):
    for name, value in CORS_HEADERS.items():
        assert response.headers[name] == value


class TestCompileEndpoint:
    def test_scenario_a_fenced_reply(self, client, use_dispatcher, stub_factory):
        use_dispatcher(stub_factory)

        response = client.post("/compile", json={"algorithm": SUM_ALGORITHM})

        assert response.status_code == 200
        assert response.json() == {"code": SUM_FUNCTION}
        assert_cors(response)

    def test_scenario_b_regeneration(self, client, use_dispatcher, stub_factory, stub):
        use_dispatcher(stub_factory)

        response = client.post(
            "/compile",
            json={
                "algorithm": SUM_ALGORITHM,
                "previousCode": PREVIOUS_CODE,
                "error": PREVIOUS_ERROR,
                "regenerate": True,
            },
        )

        assert response.status_code == 200
        conversation = stub.calls[0]
        assert len(conversation) == 4
        assert conversation[2].content == PREVIOUS_CODE
        assert PREVIOUS_ERROR in conversation[3].content

    def test_scenario_c_backend_rate_limit(self, client, use_dispatcher):
        def handler(request):
            return httpx.Response(429, json={"error": {"message": "rate limited"}})

        def factory(api_key, config):
            return OpenAIGenerationClient(
                api_key,
                config,
                http_async_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            )

        use_dispatcher(factory)

        response = client.post("/compile", json={"algorithm": SUM_ALGORITHM})

        assert response.status_code == 429
        assert response.json() == {"error": "rate limited"}
        assert_cors(response)

    def test_options_preflight(self, client, use_dispatcher, stub_factory):
        use_dispatcher(stub_factory)

        response = client.request("OPTIONS", "/compile", content=b"not even json")

        assert response.status_code == 204
        assert response.content == b""
        assert_cors(response)

    def test_get_is_405(self, client, use_dispatcher, stub_factory, stub):
        use_dispatcher(stub_factory)

        response = client.get("/compile")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert_cors(response)
        assert stub.calls == []

    @pytest.mark.parametrize("path", ["/compile", LEGACY_ROUTE])
    def test_unrouted_method_is_405_with_cors(self, client, use_dispatcher, stub_factory, stub, path):
        use_dispatcher(stub_factory)

        response = client.request("TRACE", path)

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert_cors(response)
        assert stub.calls == []

    def test_other_paths_keep_default_405(self, client):
        response = client.request("TRACE", "/health")

        assert response.status_code == 405
        assert response.json() == {"detail": "Method Not Allowed"}
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_missing_algorithm(self, client, use_dispatcher, stub_factory, stub):
        use_dispatcher(stub_factory)

        response = client.post("/compile", json={"regenerate": True})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing algorithm"}
        assert_cors(response)
        assert stub.calls == []

    def test_unconfigured(self, client, use_dispatcher, stub_factory, stub):
        use_dispatcher(stub_factory, environ={})

        response = client.post("/compile", json={"algorithm": SUM_ALGORITHM})

        assert response.status_code == 500
        assert response.json() == {"error": "Server API key not configured"}
        assert_cors(response)
        assert stub.calls == []

    def test_malformed_json(self, client, use_dispatcher, stub_factory):
        use_dispatcher(stub_factory)

        response = client.post(
            "/compile", content=b"{broken", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 500
        assert "error" in response.json()
        assert_cors(response)

    def test_legacy_route(self, client, use_dispatcher):
        use_dispatcher(lambda key, cfg: StubGenerationClient(reply="function nlcCompiled(x) {}"))

        response = client.post(LEGACY_ROUTE, json={"algorithm": "noop"})

        assert response.status_code == 200
        assert response.json() == {"code": "function nlcCompiled(x) {}"}


class TestHealth:
    def test_health_reports_configuration(self, client, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["model"] == "gpt-4o"
        assert body["configured"] is True
        assert "sk-test" not in response.text

    def test_health_without_key(self, client, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert client.get("/health").json()["configured"] is False

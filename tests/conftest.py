import httpx
import pytest

from src.utils.hubspot import client as hubspot_client


class HubSpotAPIMock:
    """Records outgoing HubSpot requests and answers with a canned response"""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.json_body = {}
        self.error = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.status_code == 204:
            return httpx.Response(204)
        return httpx.Response(self.status_code, json=self.json_body)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from real tokens and stored credentials"""
    monkeypatch.delenv("HUBSPOT_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("TELEMETRY_ENABLED", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("HUBSPOT_MCP_CREDENTIALS_DIR", str(tmp_path / "credentials"))
    monkeypatch.setenv("HUBSPOT_MCP_OAUTH_CONFIG_DIR", str(tmp_path / "oauth_configs"))
    return tmp_path


@pytest.fixture
def hubspot_api(monkeypatch):
    api = HubSpotAPIMock()
    real_async_client = httpx.AsyncClient

    def mock_async_client(**kwargs):
        return real_async_client(transport=httpx.MockTransport(api.handler), **kwargs)

    monkeypatch.setattr(hubspot_client.httpx, "AsyncClient", mock_async_client)
    return api

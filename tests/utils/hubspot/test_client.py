import json

import httpx
import pytest

from src.utils.hubspot.client import (
    HubSpotConfigurationError,
    build_query_string,
    format_response,
    handle_endpoint,
    make_api_request,
    make_api_request_with_error_handling,
)


def envelope(text):
    return {"content": [{"type": "text", "text": text}]}


class TestFormatResponse:
    def test_string_is_used_verbatim(self):
        assert format_response("hello") == envelope("hello")
        assert format_response("") == envelope("")

    def test_none_has_placeholder_text(self):
        assert format_response(None) == envelope("No data returned")

    def test_objects_are_compact_json(self):
        assert format_response({"id": "1", "tags": [1, 2]}) == envelope(
            '{"id":"1","tags":[1,2]}'
        )
        assert format_response([]) == envelope("[]")

    def test_non_ascii_is_kept(self):
        assert format_response({"name": "Café"}) == envelope('{"name":"Café"}')

    def test_booleans_are_lowercase(self):
        assert format_response(True) == envelope("true")
        assert format_response(False) == envelope("false")

    def test_other_values_use_str(self):
        assert format_response(42) == envelope("42")
        assert format_response(1.5) == envelope("1.5")

    def test_unserializable_object_falls_back_to_str(self):
        data = {"value": object()}
        assert format_response(data)["content"][0]["text"] == str(data)


class TestBuildQueryString:
    def test_skips_none_and_keeps_order(self):
        assert (
            build_query_string({"limit": 10, "after": None, "archived": False})
            == "limit=10&archived=false"
        )

    def test_encodes_commas(self):
        assert build_query_string({"properties": "name,domain"}) == (
            "properties=name%2Cdomain"
        )

    def test_empty(self):
        assert build_query_string(None) == ""
        assert build_query_string({"properties": None}) == ""


class TestMakeApiRequest:
    async def test_missing_token_raises_before_any_request(self, hubspot_api):
        with pytest.raises(HubSpotConfigurationError, match="HUBSPOT_ACCESS_TOKEN"):
            await make_api_request(None, "/crm/v3/objects/companies")
        with pytest.raises(HubSpotConfigurationError):
            await make_api_request("", "/crm/v3/objects/companies")
        assert hubspot_api.requests == []

    async def test_returns_parsed_json(self, hubspot_api):
        hubspot_api.json_body = {"results": []}

        data = await make_api_request(
            "token", "/crm/v3/objects/companies", {"limit": 5}
        )

        assert data == {"results": []}
        request = hubspot_api.requests[0]
        assert str(request.url) == (
            "https://api.hubapi.com/crm/v3/objects/companies?limit=5"
        )
        assert request.method == "GET"

    async def test_sends_json_body(self, hubspot_api):
        await make_api_request(
            "token", "/crm/v3/objects/companies", method="post", body={"a": 1}
        )

        request = hubspot_api.requests[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"a": 1}

    async def test_error_status_returns_message(self, hubspot_api):
        hubspot_api.status_code = 500

        data = await make_api_request("token", "/crm/v3/objects/companies")

        assert data == "Error fetching data from HubSpot: Status 500"

    async def test_no_content_returns_message(self, hubspot_api):
        hubspot_api.status_code = 204

        data = await make_api_request("token", "/crm/v3/objects/companies/1")

        assert data == "No data returned: Status 204"

    async def test_transport_errors_propagate(self, hubspot_api):
        hubspot_api.error = httpx.ReadTimeout("timed out")

        with pytest.raises(httpx.ReadTimeout):
            await make_api_request("token", "/crm/v3/objects/companies")


class TestErrorHandling:
    async def test_wrapper_formats_success(self, hubspot_api):
        hubspot_api.json_body = {"id": "1"}

        result = await make_api_request_with_error_handling(
            "token", "/crm/v3/objects/companies/1"
        )

        assert result == envelope('{"id":"1"}')

    async def test_wrapper_formats_exceptions(self, hubspot_api):
        result = await make_api_request_with_error_handling(
            None, "/crm/v3/objects/companies/1"
        )

        assert result == envelope(
            "Error performing request: HUBSPOT_ACCESS_TOKEN environment variable is not set"
        )

    async def test_handle_endpoint_passes_results_through(self):
        async def api_call():
            return envelope("ok")

        assert await handle_endpoint(api_call) == envelope("ok")

    async def test_handle_endpoint_formats_exceptions(self):
        async def api_call():
            raise RuntimeError("boom")

        assert await handle_endpoint(api_call) == envelope("boom")

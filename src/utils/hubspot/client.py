import json
import logging
import urllib.parse
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

HUBSPOT_API_BASE_URL = "https://api.hubapi.com"

logger = logging.getLogger(__name__)


class HubSpotConfigurationError(ValueError):
    """Raised when the server has no HubSpot access token to call the API with"""


def format_response(data: Any) -> Dict[str, Any]:
    """Wrap any value in the single text content envelope returned by every tool"""
    if isinstance(data, str):
        text = data
    elif data is None:
        text = "No data returned"
    elif isinstance(data, bool):
        text = "true" if data else "false"
    elif isinstance(data, (dict, list, tuple)):
        try:
            text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError):
            text = str(data)
    else:
        text = str(data)

    return {"content": [{"type": "text", "text": text}]}


def _query_value(value: Any) -> str:
    # HubSpot expects lowercase booleans in query strings
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query_string(params: Optional[Dict[str, Any]]) -> str:
    """Encode query params in insertion order, skipping unset values"""
    if not params:
        return ""
    pairs = [
        (key, _query_value(value)) for key, value in params.items() if value is not None
    ]
    return urllib.parse.urlencode(pairs)


async def make_api_request(
    access_token: Optional[str],
    endpoint: str,
    params: Optional[Dict[str, Any]] = None,
    method: str = "GET",
    body: Optional[Any] = None,
) -> Any:
    """
    Perform a single HubSpot API call.

    Non-2xx and 204 responses come back as descriptive strings rather than
    exceptions. Transport and decode errors propagate to the caller.
    """
    if not access_token:
        raise HubSpotConfigurationError(
            "HUBSPOT_ACCESS_TOKEN environment variable is not set"
        )

    query_string = build_query_string(params)
    url = f"{HUBSPOT_API_BASE_URL}{endpoint}"
    if query_string:
        url = f"{url}?{query_string}"

    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {access_token}",
    }

    content = None
    if body is not None:
        headers["Content-Type"] = "application/json"
        content = json.dumps(body)

    logger.info(f"{method.upper()} {endpoint}")
    async with httpx.AsyncClient() as client:
        response = await client.request(
            method.upper(), url, headers=headers, content=content
        )

    if not response.is_success:
        logger.warning(f"HubSpot returned status {response.status_code} for {endpoint}")
        return f"Error fetching data from HubSpot: Status {response.status_code}"

    if response.status_code == 204:
        return f"No data returned: Status {response.status_code}"

    return response.json()


async def make_api_request_with_error_handling(
    access_token: Optional[str],
    endpoint: str,
    params: Optional[Dict[str, Any]] = None,
    method: str = "GET",
    body: Optional[Any] = None,
) -> Dict[str, Any]:
    """Call the HubSpot API and format whatever comes back, including failures"""
    try:
        data = await make_api_request(access_token, endpoint, params, method, body)
        return format_response(data)
    except Exception as e:
        logger.error(f"Error performing request to {endpoint}: {str(e)}")
        return format_response(f"Error performing request: {str(e)}")


async def handle_endpoint(
    api_call: Callable[[], Awaitable[Dict[str, Any]]],
) -> Dict[str, Any]:
    """Run a tool handler, turning anything it raises into a formatted response"""
    try:
        return await api_call()
    except Exception as e:
        logger.error(f"Error handling tool call: {str(e)}")
        return format_response(str(e))

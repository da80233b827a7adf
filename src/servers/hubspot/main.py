import os
import sys
import urllib.parse
from typing import Any, Dict, List, Optional

# Add both project root and src directory to Python path
# Get the project root directory and add to path
project_root = os.path.abspath(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
)
sys.path.insert(0, project_root)
sys.path.insert(0, os.path.join(project_root, "src"))

import logging
from pathlib import Path

from mcp.types import (
    TextContent,
    Tool,
    ImageContent,
    EmbeddedResource,
)
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from src.utils.hubspot.client import (
    format_response,
    handle_endpoint,
    make_api_request_with_error_handling,
)
from src.utils.hubspot.schemas import (
    ADD_SCHEMA,
    CREATE_COMPANY_SCHEMA,
    GET_COMPANY_SCHEMA,
    SEARCH_COMPANIES_SCHEMA,
    UPDATE_COMPANY_SCHEMA,
    validate_tool_arguments,
)
from src.utils.hubspot.util import (
    HubSpotConfig,
    authenticate_and_save_credentials,
    get_config,
)

SERVICE_NAME = Path(__file__).parent.name
SERVER_NAME = "hubspot-mcp"
SERVER_VERSION = "2.0.5"
SCOPES = [
    "crm.objects.companies.read",
    "crm.objects.companies.write",
]

COMPANIES_ENDPOINT = "/crm/v3/objects/companies"

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(SERVICE_NAME)


def company_endpoint(company_id: str) -> str:
    return f"{COMPANIES_ENDPOINT}/{urllib.parse.quote(str(company_id), safe='')}"


def join_values(values: Optional[List[str]]) -> Optional[str]:
    """Comma-join a list for a query parameter; empty or missing lists are omitted"""
    if not values:
        return None
    return ",".join(values)


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


async def add_numbers(args: Dict[str, Any]) -> Dict[str, Any]:
    return format_response(format_number(args["a"] + args["b"]))


# Request shape for every tool that calls HubSpot.
# Endpoints are relative to https://api.hubapi.com
TOOL_REQUESTS = {
    "add": {
        "custom_handler": add_numbers,
    },
    "crm_create_company": {
        "endpoint": COMPANIES_ENDPOINT,
        "method": "POST",
        "prepare_request": lambda args: {
            "body": {
                "properties": args["properties"],
                "associations": args.get("associations", []),
            }
        },
    },
    "crm_update_company": {
        "get_endpoint": lambda args: company_endpoint(args["companyId"]),
        "method": "PATCH",
        "prepare_request": lambda args: {
            "body": {"properties": args["properties"]},
        },
    },
    "crm_get_company": {
        "get_endpoint": lambda args: company_endpoint(args["companyId"]),
        "method": "GET",
        "prepare_request": lambda args: {
            "params": {
                "properties": join_values(args.get("properties")),
                "associations": join_values(args.get("associations")),
            }
        },
    },
    "crm_search_companies": {
        "endpoint": f"{COMPANIES_ENDPOINT}/search",
        "method": "POST",
        "prepare_request": lambda args: {"body": dict(args)},
    },
}


def build_request(name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn validated tool arguments into the HubSpot call to make.

    Returns a dict with ``endpoint``, ``method``, ``params`` and ``body``
    ready to pass to the API client.
    """
    tool_config = TOOL_REQUESTS[name]

    endpoint = tool_config.get("endpoint")
    if not endpoint and "get_endpoint" in tool_config:
        endpoint = tool_config["get_endpoint"](arguments)

    request_data = {}
    if "prepare_request" in tool_config:
        request_data = tool_config["prepare_request"](arguments)

    return {
        "endpoint": endpoint,
        "method": tool_config["method"],
        "params": request_data.get("params"),
        "body": request_data.get("body"),
    }


async def execute_tool(
    config: HubSpotConfig, name: str, arguments: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """Validate, build and run a tool call. Always returns a response envelope."""
    arguments = arguments or {}

    async def run_tool():
        if name not in TOOL_REQUESTS:
            return format_response(f"Unknown tool: {name}")

        validate_tool_arguments(name, arguments)

        tool_config = TOOL_REQUESTS[name]
        if "custom_handler" in tool_config:
            return await tool_config["custom_handler"](arguments)

        request = build_request(name, arguments)
        return await make_api_request_with_error_handling(
            config.hubspot_access_token,
            request["endpoint"],
            params=request["params"],
            method=request["method"],
            body=request["body"],
        )

    return await handle_endpoint(run_tool)


def create_server(user_id, api_key=None, use_stored_credentials=True):
    """Create a new server instance with optional user context"""
    server = Server(SERVER_NAME)

    server.user_id = user_id
    server.api_key = api_key
    server.hubspot_config = get_config(
        {"HUBSPOT_ACCESS_TOKEN": api_key} if api_key else None,
        user_id=user_id,
        service_name=SERVICE_NAME,
        use_stored_credentials=use_stored_credentials,
    )

    if not server.hubspot_config.hubspot_access_token:
        logger.warning(
            f"No HubSpot access token configured for user {user_id}; CRM tools will report an error"
        )

    @server.list_tools()
    async def handle_list_tools() -> list[Tool]:
        """List available tools"""
        logger.info(f"Listing tools for user: {server.user_id}")
        return [
            Tool(
                name="add",
                description="Add two numbers the way only MCP can",
                inputSchema=ADD_SCHEMA,
            ),
            Tool(
                name="crm_create_company",
                description="Create a new company in HubSpot with the given properties and optional associations",
                inputSchema=CREATE_COMPANY_SCHEMA,
                requiredScopes=["crm.objects.companies.write"],
            ),
            Tool(
                name="crm_update_company",
                description="Update an existing HubSpot company's properties",
                inputSchema=UPDATE_COMPANY_SCHEMA,
                requiredScopes=["crm.objects.companies.write"],
            ),
            Tool(
                name="crm_get_company",
                description="Get a single HubSpot company by ID, optionally with specific properties and associations",
                inputSchema=GET_COMPANY_SCHEMA,
                requiredScopes=["crm.objects.companies.read"],
            ),
            Tool(
                name="crm_search_companies",
                description="Search HubSpot companies with filter groups, sorting and paging",
                inputSchema=SEARCH_COMPANIES_SCHEMA,
                requiredScopes=["crm.objects.companies.read"],
            ),
        ]

    # Arguments are validated inside execute_tool so that failures come back
    # as text content instead of protocol errors
    @server.call_tool(validate_input=False)
    async def handle_call_tool(
        name: str, arguments: dict | None
    ) -> list[TextContent | ImageContent | EmbeddedResource]:
        """Handle tool execution requests"""
        logger.info(
            f"User {server.user_id} calling tool: {name} with arguments: {arguments}"
        )

        envelope = await execute_tool(server.hubspot_config, name, arguments)
        return [TextContent(**item) for item in envelope["content"]]

    return server


server = create_server


def get_initialization_options(server_instance: Server) -> InitializationOptions:
    """Get the initialization options for the server"""
    return InitializationOptions(
        server_name=SERVER_NAME,
        server_version=SERVER_VERSION,
        capabilities=server_instance.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        ),
    )


# Main handler allows users to auth
if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1].lower() == "auth":
        user_id = "local"
        # Run authentication flow
        authenticate_and_save_credentials(user_id, SERVICE_NAME, SCOPES)
    else:
        print("Usage:")
        print("  python main.py auth - Run authentication flow for a user")
        print("Note: To run the server normally, use src/servers/local.py or remote.py.")

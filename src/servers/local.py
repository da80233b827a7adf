import sys
import asyncio
import logging
import argparse

import importlib.util
from pathlib import Path

import mcp.server.stdio
from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("hubspot-mcp-local-stdio")

SERVERS_DIR = Path(__file__).parent.absolute()


def available_servers():
    return sorted(
        item.name
        for item in SERVERS_DIR.iterdir()
        if item.is_dir() and (item / "main.py").exists()
    )


def load_server(server_name):
    """Load a server module by name and return its factory and init options"""
    server_file = SERVERS_DIR / server_name / "main.py"

    if not server_file.exists():
        raise ValueError(
            f"Server '{server_name}' not found. Available servers: {', '.join(available_servers())}"
        )

    spec = importlib.util.spec_from_file_location(f"{server_name}.server", server_file)
    server_module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(server_module)

    if not hasattr(server_module, "server") or not hasattr(
        server_module, "get_initialization_options"
    ):
        raise ValueError(
            f"Server '{server_name}' does not have required server or get_initialization_options"
        )

    return server_module.server, server_module.get_initialization_options


async def run_stdio_server(server, initialization_options):
    """Run the server using stdin/stdout streams"""
    logger.info("Starting stdio server")
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, initialization_options)


async def main():
    """Main entry point for the stdio server"""
    parser = argparse.ArgumentParser(description="HubSpot MCP Local Stdio Server")
    parser.add_argument(
        "--server",
        default="hubspot",
        help="Name of the server to run (default: hubspot)",
    )
    parser.add_argument(
        "--user-id", default="local", help="User ID for server context (optional)"
    )

    args = parser.parse_args()

    # HUBSPOT_ACCESS_TOKEN and TELEMETRY_ENABLED may come from a .env file
    load_dotenv()

    logger.info(f"Loading server: {args.server}")
    try:
        server_creator, get_initialization_options = load_server(args.server)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    server_instance = server_creator(user_id=args.user_id)

    logger.info(
        f"Starting local stdio server for server: {args.server} with user: {args.user_id}"
    )
    await run_stdio_server(
        server_instance, get_initialization_options(server_instance)
    )


if __name__ == "__main__":
    asyncio.run(main())

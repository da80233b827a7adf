import argparse
import logging
import sys

# Configure logging for the main script
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("hubspot-mcp-server")


def main():
    """Parse arguments and launch the HubSpot MCP SSE server"""
    parser = argparse.ArgumentParser(description="HubSpot MCP Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host for server")
    parser.add_argument("--port", type=int, default=8000, help="Port for server")
    parser.add_argument(
        "--metrics-port", type=int, default=9091, help="Port for Prometheus metrics"
    )

    args = parser.parse_args()

    logger.info(f"Starting HubSpot MCP server on {args.host}:{args.port}")
    from remote import main as remote_main

    # Hand the parsed options on to the remote server's own parser
    sys.argv = [
        sys.argv[0],
        "--host",
        args.host,
        "--port",
        str(args.port),
        "--metrics-port",
        str(args.metrics_port),
    ]
    remote_main()


if __name__ == "__main__":
    main()

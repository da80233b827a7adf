import re
import logging
import uvicorn
import argparse
import importlib.util
import urllib.parse
from pathlib import Path
import threading

from dotenv import load_dotenv
from starlette.routing import Route
from starlette.concurrency import run_in_threadpool
from starlette.applications import Starlette
from starlette.responses import JSONResponse, Response
from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST

from mcp.server.sse import SseServerTransport

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("hubspot-mcp-server")

# Dictionary to store servers
servers = {}

# Store per-session SSE transports and server instances
user_session_transports = {}
user_server_instances = {}
session_connection_counts = {}

# Prometheus metrics
active_connections = Gauge(
    "hubspot_mcp_active_connections", "Number of active SSE connections", ["server"]
)
connection_total = Counter(
    "hubspot_mcp_connection_total", "Total number of SSE connections", ["server"]
)

# Default metrics port
METRICS_PORT = 9091

USER_ID_PATTERN = re.compile(r"[\w.-]+")


def discover_servers():
    """Discover and load all servers from the servers directory"""
    servers_dir = Path(__file__).parent.absolute()

    logger.info(f"Looking for servers in {servers_dir}")

    for item in servers_dir.iterdir():
        server_file = item / "main.py"
        if not item.is_dir() or not server_file.exists():
            continue

        server_name = item.name
        try:
            spec = importlib.util.spec_from_file_location(
                f"{server_name}.server", server_file
            )
            server_module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(server_module)
        except Exception as e:
            logger.error(f"Failed to load server {server_name}: {e}")
            continue

        if hasattr(server_module, "server") and hasattr(
            server_module, "get_initialization_options"
        ):
            servers[server_name] = {
                "server": server_module.server,
                "get_initialization_options": server_module.get_initialization_options,
            }
            logger.info(f"Loaded server: {server_name}")
        else:
            logger.warning(
                f"Server {server_name} does not have required server or get_initialization_options"
            )

    logger.info(f"Discovered {len(servers)} servers")


def parse_session_key(session_key_encoded):
    """
    Split a session key of the form ``user_id[:access_token]``.

    The access token, when present, is used as that session's explicit
    HUBSPOT_ACCESS_TOKEN. Raises ValueError for a user id that is not a
    plain identifier.
    """
    session_key = urllib.parse.unquote(session_key_encoded)
    if ":" in session_key:
        user_id, access_token = session_key.split(":", 1)
    else:
        user_id, access_token = session_key, None

    if not USER_ID_PATTERN.fullmatch(user_id) or user_id in (".", ".."):
        raise ValueError(f"Invalid user id in session key: {user_id!r}")

    return user_id, access_token or None


def release_session(session_key, sse_transport):
    """Forget a closed connection, dropping the server instance after the last one"""
    if user_session_transports.get(session_key) is sse_transport:
        del user_session_transports[session_key]

    remaining = session_connection_counts.get(session_key, 1) - 1
    if remaining > 0:
        session_connection_counts[session_key] = remaining
        return

    session_connection_counts.pop(session_key, None)
    user_server_instances.pop(session_key, None)


def create_metrics_app():
    """Create a separate Starlette app just for metrics"""

    async def metrics_endpoint(request):
        """Prometheus metrics endpoint"""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return Starlette(routes=[Route("/metrics", endpoint=metrics_endpoint)])


def create_sse_handler(server_name, server_factory, get_init_options):
    async def handle_sse(request):
        """Handle SSE connection requests for a specific server and session"""
        session_key_encoded = request.path_params["session_key"]
        session_key = f"{server_name}:{session_key_encoded}"
        try:
            user_id, access_token = parse_session_key(session_key_encoded)
        except ValueError as e:
            logger.warning(f"Rejected SSE connection for {server_name}: {e}")
            return Response("Invalid session key", status_code=400)

        logger.info(
            f"New SSE connection requested for {server_name} with session: {user_id}"
        )

        # Reuse the server instance across reconnections of the same session
        if session_key not in user_server_instances:
            # Remote sessions only use their own token or the environment
            created = await run_in_threadpool(
                server_factory, user_id, access_token, use_stored_credentials=False
            )
            user_server_instances.setdefault(session_key, created)
        server_instance = user_server_instances[session_key]

        sse_transport = SseServerTransport(
            f"/{server_name}/{session_key_encoded}/messages/"
        )
        user_session_transports[session_key] = sse_transport
        session_connection_counts[session_key] = (
            session_connection_counts.get(session_key, 0) + 1
        )

        init_options = get_init_options(server_instance)

        active_connections.labels(server=server_name).inc()
        connection_total.labels(server=server_name).inc()
        try:
            async with sse_transport.connect_sse(
                request.scope, request.receive, request._send
            ) as streams:
                logger.info(
                    f"SSE connection established for {server_name} session: {user_id}"
                )
                await server_instance.run(streams[0], streams[1], init_options)
        finally:
            release_session(session_key, sse_transport)
            active_connections.labels(server=server_name).dec()
            logger.info(f"Closed SSE connection for {server_name} session: {user_id}")

        return Response()

    return handle_sse


class SessionMessageHandler:
    """ASGI app forwarding posted messages to the SSE transport of a session"""

    def __init__(self, server_name):
        self.server_name = server_name

    async def __call__(self, scope, receive, send):
        session_key_encoded = scope["path_params"]["session_key"]
        session_key = f"{self.server_name}:{session_key_encoded}"

        transport = user_session_transports.get(session_key)
        if transport is None:
            response = Response("Session not found or expired", status_code=404)
            await response(scope, receive, send)
            return

        await transport.handle_post_message(scope, receive, send)


def create_starlette_app():
    """Create a Starlette app with SSE transports for every discovered server"""
    discover_servers()

    routes = []

    for server_name, server_info in servers.items():
        routes.append(
            Route(
                f"/{server_name}/{{session_key}}",
                endpoint=create_sse_handler(
                    server_name,
                    server_info["server"],
                    server_info["get_initialization_options"],
                ),
            )
        )
        routes.append(
            Route(
                f"/{server_name}/{{session_key}}/messages/",
                endpoint=SessionMessageHandler(server_name),
                methods=["POST"],
            )
        )
        logger.info(f"Added session routes for server: {server_name}")

    async def root_handler(request):
        """Root endpoint that returns a simple 200 OK response"""
        return JSONResponse(
            {
                "status": "ok",
                "message": "HubSpot MCP server running",
                "servers": list(servers.keys()),
            }
        )

    async def health_check(request):
        """Health check endpoint"""
        return JSONResponse({"status": "ok", "servers": list(servers.keys())})

    routes.append(Route("/", endpoint=root_handler))
    routes.append(Route("/health_check", endpoint=health_check))

    return Starlette(routes=routes)


def run_metrics_server(host, port):
    """Run a separate metrics server on the specified port"""
    logger.info(f"Starting metrics server on {host}:{port}")
    uvicorn.run(create_metrics_app(), host=host, port=port)


def main():
    """Main entry point for the Starlette server"""
    parser = argparse.ArgumentParser(description="HubSpot MCP Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host for Starlette server")
    parser.add_argument(
        "--port", type=int, default=8000, help="Port for Starlette server"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=METRICS_PORT,
        help="Port for the Prometheus metrics server",
    )

    args = parser.parse_args()

    load_dotenv()

    metrics_thread = threading.Thread(
        target=run_metrics_server, args=(args.host, args.metrics_port), daemon=True
    )
    metrics_thread.start()

    app = create_starlette_app()
    logger.info(f"Starting Starlette server on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

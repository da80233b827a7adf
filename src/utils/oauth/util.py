import time
import logging
import requests
import threading
import webbrowser
import urllib.parse

from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Dict, List, Optional, Any, Callable

from src.auth.factory import create_auth_client


logger = logging.getLogger(__name__)

# Seconds before expiry at which a stored token is treated as expired
REFRESH_BUFFER_SECONDS = 300

# Seconds to wait on the token endpoint
TOKEN_REQUEST_TIMEOUT = 30


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """Receives the authorization code on the local redirect URI"""

    def do_GET(self):
        if self.path == "/favicon.ico":
            self.send_response(204)
            self.end_headers()
            return

        query_params = urllib.parse.parse_qs(urllib.parse.urlparse(self.path).query)

        if "code" in query_params:
            self.server.auth_code = query_params["code"][0]
            message = "Authentication successful! You can close this window."
        elif "error" in query_params:
            self.server.auth_error = query_params["error"][0]
            message = f"Authentication error: {self.server.auth_error}. You can close this window."
        else:
            self.server.auth_error = "No code or error received"
            message = "Authentication failed. You can close this window."

        self.send_response(200)
        self.send_header("Content-type", "text/html")
        self.end_headers()
        self.wfile.write(
            f"<html><head><title>OAuth Authentication</title></head>"
            f"<body><h1>{message}</h1></body></html>".encode("utf-8")
        )

    def log_message(self, format, *args):
        logger.debug(format % args)


def _wait_for_auth_code(server: HTTPServer, max_wait_time: int) -> str:
    waited = 0
    while not server.auth_code and not server.auth_error and waited < max_wait_time:
        time.sleep(1)
        waited += 1

    if server.auth_error:
        raise ValueError(f"Authentication failed: {server.auth_error}")
    if not server.auth_code:
        raise ValueError("Authentication timed out or was canceled")
    return server.auth_code


def run_oauth_flow(
    service_name: str,
    user_id: str,
    scopes: List[str],
    auth_url_base: str,
    token_url: str,
    auth_params_builder: Callable[[Dict[str, Any], str, List[str]], Dict[str, str]],
    token_data_builder: Callable[[Dict[str, Any], str, List[str], str], Dict[str, str]],
    process_token_response: Callable[[Dict[str, Any]], Dict[str, Any]],
    port: int = 8080,
    max_wait_time: int = 120,
) -> Dict[str, Any]:
    """
    Run a browser based OAuth authorization code flow and store the result

    Args:
        service_name: Name of the service the credentials belong to
        user_id: ID of the user authenticating
        scopes: OAuth scopes to request
        auth_url_base: Authorization URL of the provider
        token_url: Token exchange URL of the provider
        auth_params_builder: Builds the authorization URL query parameters
        token_data_builder: Builds the code exchange form data
        process_token_response: Normalizes the provider's token response
        port: Port of the local redirect listener
        max_wait_time: Seconds to wait for the browser redirect

    Returns:
        The stored credentials
    """
    logger.info(f"Launching {service_name} auth flow for user {user_id}")

    auth_client = create_auth_client()
    oauth_config = auth_client.get_oauth_config(service_name)

    if not oauth_config.get("client_id") or not oauth_config.get("client_secret"):
        raise ValueError(f"Missing OAuth credentials for {service_name}")

    redirect_uri = oauth_config.get("redirect_uri", f"http://localhost:{port}")

    server = HTTPServer(("localhost", port), OAuthCallbackHandler)
    server.auth_code = None
    server.auth_error = None
    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()

    auth_params = auth_params_builder(oauth_config, redirect_uri, scopes)
    auth_request_url = f"{auth_url_base}?{urllib.parse.urlencode(auth_params)}"

    print(f"\n===== {service_name.title()} Authentication =====")
    print(f"Opening browser for authentication: {auth_request_url}")
    webbrowser.open(auth_request_url)

    try:
        auth_code = _wait_for_auth_code(server, max_wait_time)
    finally:
        server.shutdown()
        server_thread.join()

    token_data = token_data_builder(oauth_config, redirect_uri, scopes, auth_code)
    response = requests.post(
        token_url, data=token_data, timeout=TOKEN_REQUEST_TIMEOUT
    )
    if response.status_code != 200:
        raise ValueError(
            f"Failed to exchange authorization code for tokens: {response.text}"
        )

    credentials = process_token_response(response.json())
    auth_client.save_user_credentials(service_name, user_id, credentials)

    logger.info(f"Credentials saved for user {user_id}. You can now run the server.")
    return credentials


def refresh_access_token(
    user_id: str,
    service_name: str,
    credentials: Dict[str, Any],
    token_url: str,
    refresh_data_builder: Callable[[Dict[str, Any], str], Dict[str, str]],
    process_token_response: Callable[[Dict[str, Any]], Dict[str, Any]],
) -> Optional[str]:
    """
    Return a usable access token from stored credentials, refreshing it first
    when it is expired or about to expire. Returns None if the refresh fails.
    """
    expires_at = credentials.get("expires_at")
    if expires_at is None or time.time() < expires_at - REFRESH_BUFFER_SECONDS:
        return credentials.get("access_token")

    refresh_token = credentials.get("refresh_token")
    if not refresh_token:
        logger.error(
            f"Stored {service_name} token for {user_id} expired without a refresh token"
        )
        return None

    auth_client = create_auth_client()
    oauth_config = auth_client.get_oauth_config(service_name)

    response = requests.post(
        token_url,
        data=refresh_data_builder(oauth_config, refresh_token),
        timeout=TOKEN_REQUEST_TIMEOUT,
    )
    if response.status_code != 200:
        logger.error(f"Token refresh failed: {response.text}")
        return None

    new_credentials = process_token_response(response.json())
    if not new_credentials.get("refresh_token"):
        new_credentials["refresh_token"] = refresh_token

    auth_client.save_user_credentials(service_name, user_id, new_credentials)
    return new_credentials.get("access_token")

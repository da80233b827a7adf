import os
import logging
import time
import requests
from dataclasses import dataclass
from typing import Dict, List, Any, Mapping, Optional

from src.auth.factory import create_auth_client
from src.utils.oauth.util import run_oauth_flow, refresh_access_token


HUBSPOT_OAUTH_AUTHORIZE_URL = "https://app.hubspot.com/oauth/authorize"
HUBSPOT_OAUTH_TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HubSpotConfig:
    """Configuration captured once when a server instance is created"""

    hubspot_access_token: Optional[str]
    # Present in configuration but not acted on
    telemetry_enabled: str = "true"


def build_hubspot_auth_params(
    oauth_config: Dict[str, Any], redirect_uri: str, scopes: List[str]
) -> Dict[str, str]:
    """Build the authorization parameters for HubSpot OAuth."""
    return {
        "client_id": oauth_config.get("client_id"),
        "scope": " ".join(scopes),
        "redirect_uri": redirect_uri,
        "response_type": "code",
    }


def build_hubspot_token_data(
    oauth_config: Dict[str, Any], redirect_uri: str, scopes: List[str], auth_code: str
) -> Dict[str, str]:
    """Build the token request data for HubSpot OAuth."""
    return {
        "client_id": oauth_config.get("client_id"),
        "client_secret": oauth_config.get("client_secret"),
        "code": auth_code,
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    }


def build_hubspot_refresh_data(
    oauth_config: Dict[str, Any], refresh_token: str
) -> Dict[str, str]:
    """Build the refresh token request data for HubSpot OAuth."""
    return {
        "client_id": oauth_config.get("client_id"),
        "client_secret": oauth_config.get("client_secret"),
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }


def process_hubspot_token_response(token_response: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a HubSpot token response and add an absolute expiry time."""
    if "error" in token_response:
        raise ValueError(
            f"Token exchange failed: {token_response.get('error')}: {token_response.get('error_description', '')}"
        )

    if not token_response.get("access_token"):
        raise ValueError("No access token found in response")

    expires_in = token_response.get("expires_in", 1800)

    return {
        "access_token": token_response["access_token"],
        "refresh_token": token_response.get("refresh_token"),
        "token_type": token_response.get("token_type", "bearer"),
        "expires_in": expires_in,
        "expires_at": token_response.get("expires_at", int(time.time()) + expires_in),
    }


def authenticate_and_save_credentials(
    user_id: str, service_name: str, scopes: List[str]
) -> Dict[str, Any]:
    """Authenticate with HubSpot and save credentials"""
    return run_oauth_flow(
        service_name=service_name,
        user_id=user_id,
        scopes=scopes,
        auth_url_base=HUBSPOT_OAUTH_AUTHORIZE_URL,
        token_url=HUBSPOT_OAUTH_TOKEN_URL,
        auth_params_builder=build_hubspot_auth_params,
        token_data_builder=build_hubspot_token_data,
        process_token_response=process_hubspot_token_response,
    )


def get_stored_access_token(user_id: str, service_name: str) -> Optional[str]:
    """
    Access token saved by the auth flow, refreshed if it has expired.

    Returns None when no usable token can be loaded.
    """
    try:
        credentials = create_auth_client().get_user_credentials(
            service_name, user_id
        )
        if not credentials:
            return None

        return refresh_access_token(
            user_id=user_id,
            service_name=service_name,
            credentials=credentials,
            token_url=HUBSPOT_OAUTH_TOKEN_URL,
            refresh_data_builder=build_hubspot_refresh_data,
            process_token_response=process_hubspot_token_response,
        )
    except (OSError, ValueError, requests.RequestException) as e:
        logger.error(
            f"Could not load stored {service_name} credentials for user {user_id}: {e}"
        )
        return None


def get_config(
    config: Optional[Mapping[str, Any]] = None,
    user_id: str = "local",
    service_name: str = "hubspot",
    use_stored_credentials: bool = True,
) -> HubSpotConfig:
    """
    Resolve server configuration.

    Each value is looked up in order: the explicit config mapping, then the
    environment. The access token additionally falls back to credentials
    stored by the auth flow unless use_stored_credentials is False.
    """
    config = config or {}

    access_token = config.get("HUBSPOT_ACCESS_TOKEN") or os.environ.get(
        "HUBSPOT_ACCESS_TOKEN"
    )
    if not access_token and use_stored_credentials:
        access_token = get_stored_access_token(user_id, service_name)
        if access_token:
            logger.info(f"Using stored {service_name} credentials for user {user_id}")

    telemetry_enabled = (
        config.get("TELEMETRY_ENABLED")
        or os.environ.get("TELEMETRY_ENABLED")
        or "true"
    )

    return HubSpotConfig(
        hubspot_access_token=access_token,
        telemetry_enabled=str(telemetry_enabled),
    )

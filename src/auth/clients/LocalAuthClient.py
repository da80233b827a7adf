import os
import re
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .BaseAuthClient import BaseAuthClient, CredentialsT

logger = logging.getLogger("LocalAuthClient")

USER_ID_PATTERN = re.compile(r"[\w.-]+")


class LocalAuthClient(BaseAuthClient[CredentialsT]):
    """
    Credentials store backed by JSON files on local disk.

    Layout:
        <oauth_config_dir>/<service>/oauth.json
        <credentials_dir>/<service>/<user_id>_credentials.json
    """

    def __init__(
        self,
        oauth_config_base_dir: Optional[str] = None,
        credentials_base_dir: Optional[str] = None,
    ):
        project_root = Path(__file__).parent.parent.parent.parent

        self.oauth_config_base_dir = Path(
            oauth_config_base_dir
            or os.environ.get(
                "HUBSPOT_MCP_OAUTH_CONFIG_DIR",
                str(project_root / "local_auth" / "oauth_configs"),
            )
        )
        self.credentials_base_dir = Path(
            credentials_base_dir
            or os.environ.get(
                "HUBSPOT_MCP_CREDENTIALS_DIR",
                str(project_root / "local_auth" / "credentials"),
            )
        )

    def _credentials_path(self, service_name: str, user_id: str) -> Path:
        # user_id becomes part of a file name and must not leave the service dir
        if not USER_ID_PATTERN.fullmatch(user_id) or user_id in (".", ".."):
            raise ValueError(f"Invalid user id: {user_id!r}")
        return self.credentials_base_dir / service_name / f"{user_id}_credentials.json"

    def get_oauth_config(self, service_name: str) -> Dict[str, Any]:
        """Read the OAuth app configuration for a service"""
        config_path = self.oauth_config_base_dir / service_name / "oauth.json"

        if not config_path.exists():
            raise FileNotFoundError(
                f"OAuth config not found for {service_name} at {config_path}"
            )

        with open(config_path, "r") as f:
            return json.load(f)

    def get_user_credentials(
        self, service_name: str, user_id: str
    ) -> Optional[CredentialsT]:
        creds_path = self._credentials_path(service_name, user_id)

        if not creds_path.exists():
            return None

        with open(creds_path, "r") as f:
            return json.load(f)

    def save_user_credentials(
        self, service_name: str, user_id: str, credentials: Dict[str, Any]
    ) -> None:
        creds_path = self._credentials_path(service_name, user_id)
        creds_path.parent.mkdir(parents=True, exist_ok=True)

        with open(creds_path, "w") as f:
            json.dump(credentials, f)

        logger.info(f"Saved {service_name} credentials for user {user_id}")

import abc
from typing import Dict, Any, Optional, TypeVar, Generic

# Credentials are whatever the OAuth flow stored, usually a token dict
CredentialsT = TypeVar("CredentialsT")


class BaseAuthClient(Generic[CredentialsT], abc.ABC):
    """
    Abstract credentials store used by the OAuth helpers.
    """

    @abc.abstractmethod
    def get_user_credentials(
        self, service_name: str, user_id: str
    ) -> Optional[CredentialsT]:
        """
        Look up stored credentials for a user of a service

        Args:
            service_name: Name of the service (e.g., "hubspot")
            user_id: Identifier for the user

        Returns:
            Credentials if found, None otherwise
        """

    @abc.abstractmethod
    def get_oauth_config(self, service_name: str) -> Dict[str, Any]:
        """
        Look up the OAuth app configuration (client_id, client_secret,
        redirect_uri) for a service
        """

    @abc.abstractmethod
    def save_user_credentials(
        self, service_name: str, user_id: str, credentials: CredentialsT
    ) -> None:
        """Persist credentials after authentication or refresh"""

"""
OAuth2 client-credentials authentication for the commerce platform API.
Access tokens are kept in memory only and refreshed shortly before expiry.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from project_sync.core.config import ClientCredentials
from project_sync.core.exceptions import ConfigurationError, TransientNetworkError

logger = logging.getLogger(__name__)


class CommerceAuthManager:
    """
    Fetches and caches access tokens for one project.

    The token is requested with the ``client_credentials`` grant against
    ``{auth_url}/oauth/token``; default scope is ``manage_project:{project_key}``.
    """

    EXPIRY_BUFFER = timedelta(minutes=5)

    def __init__(self, credentials: ClientCredentials, timeout: float = 30.0):
        self.credentials = credentials
        self.timeout = timeout
        self.token_url = f"{credentials.auth_url.rstrip('/')}/oauth/token"
        self.scopes = credentials.scopes or f"manage_project:{credentials.project_key}"

        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

        logger.debug(f"CommerceAuthManager initialized for project {credentials.project_key}")

    def _cached_token(self) -> Optional[str]:
        if self._access_token and self._expires_at:
            if datetime.now() < (self._expires_at - self.EXPIRY_BUFFER):
                return self._access_token
            logger.debug("Access token expired or expiring soon")
        return None

    async def get_access_token(self) -> str:
        """
        Get a valid access token, requesting a new one if necessary

        Raises:
            ConfigurationError: If the credentials are rejected
            TransientNetworkError: If the auth server cannot be reached
        """
        token = self._cached_token()
        if token:
            return token

        async with self._lock:
            # Another task may have refreshed while we waited
            token = self._cached_token()
            if token:
                return token

            logger.info(f"Requesting access token for project {self.credentials.project_key}")
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(
                        self.token_url,
                        data={"grant_type": "client_credentials", "scope": self.scopes},
                        auth=(self.credentials.client_id, self.credentials.client_secret)
                    )
            except (httpx.RequestError, httpx.TimeoutException) as e:
                logger.error(f"Network error requesting token: {str(e)}")
                raise TransientNetworkError(f"Network error requesting token: {str(e)}")

            if response.status_code in (429,) or response.status_code >= 500:
                raise TransientNetworkError(
                    f"Token request failed: {response.text}", status_code=response.status_code
                )
            if response.status_code != 200:
                logger.error(f"Token request rejected: {response.text}")
                raise ConfigurationError(
                    f"Token request for project {self.credentials.project_key} rejected: {response.text}"
                )

            data = response.json()
            self._access_token = data["access_token"]
            self._expires_at = datetime.now() + timedelta(seconds=int(data.get("expires_in", 172800)))
            logger.info(f"Obtained access token (expires: {self._expires_at})")
            return self._access_token

    def clear_token(self):
        """Forget the cached token, e.g. after a 401"""
        self._access_token = None
        self._expires_at = None

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from project_sync.core.config import ClientCredentials
from project_sync.core.exceptions import (
    PlatformAPIError,
    ResourceNotFoundError,
    TransientNetworkError,
    ValidationError,
    VersionConflictError
)
from project_sync.services.commerce.auth import CommerceAuthManager

logger = logging.getLogger(__name__)


class CommerceClient:
    """
    Asynchronous client for the commerce platform's HTTP API (one project).

    Functionality:
        - Querying collections with predicates, sorting and limits (query).
        - Fetching single resources by key or id (get_by_key, get_by_id).
        - Updating by key with an expected version and an ordered action list (update_by_key).
        - Creating resources from draft JSON (create).
        - Reading and writing custom objects (get_custom_object, upsert_custom_object).

    All requests go through _make_request, which maps HTTP failures onto the
    exception hierarchy: 400 ValidationError, 404 ResourceNotFoundError,
    409 VersionConflictError, 429/5xx/network TransientNetworkError.
    """

    RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)

    def __init__(
        self,
        credentials: ClientCredentials,
        auth: Optional[CommerceAuthManager] = None,
        timeout: float = 30.0
    ):
        """
        Initialize the client

        Args:
            credentials: Project key, client credentials and URLs
            auth: Token provider, built from credentials when omitted
            timeout: Timeout in seconds for every request
        """
        self.credentials = credentials
        self.project_key = credentials.project_key
        self.auth = auth or CommerceAuthManager(credentials, timeout=timeout)
        self.timeout = timeout
        self.BASE_URL = f"{credentials.api_url.rstrip('/')}/{credentials.project_key}"
        logger.info(f"Initializing CommerceClient for project {self.project_key}")

    async def _get_headers(self) -> Dict[str, str]:
        token = await self.auth.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
        _retry_auth: bool = True
    ) -> Dict:
        """
        Make a request to the platform API

        Args:
            method: HTTP method (GET, POST, DELETE)
            endpoint: API endpoint relative to the project URL
            data: Request payload for POST requests
            params: Query parameters

        Returns:
            Dict: Response data

        Raises:
            PlatformAPIError or one of its subclasses
        """
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        headers = await self._get_headers()

        logger.debug(f"Making {method} request to {url}")
        if params:
            logger.debug(f"Params: {params}")
        if data:
            logger.debug(f"Data: {json.dumps(data)[:500]}...")  # Log only first 500 chars of data

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    json=data,
                    params=params
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error: {str(e)}")
            raise TransientNetworkError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Network error: {str(e)}")
            raise TransientNetworkError(f"Network error: {str(e)}")

        if response.status_code in (200, 201):
            return response.json()

        if response.status_code == 401 and _retry_auth:
            logger.info("Access token rejected, requesting a new one")
            self.auth.clear_token()
            return await self._make_request(method, endpoint, data=data, params=params, _retry_auth=False)

        raise self._error_for(response)

    def _error_for(self, response: httpx.Response) -> PlatformAPIError:
        """Map an error response onto the exception hierarchy"""
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        errors = body.get("errors", []) if isinstance(body, dict) else []
        message = body.get("message") if isinstance(body, dict) else None
        message = message or response.text

        if status == 404:
            return ResourceNotFoundError(f"Resource not found: {message}", status, errors)
        if status == 409:
            return VersionConflictError(f"Version conflict: {message}", status, errors)
        if status == 400:
            logger.error(f"Platform rejected request: {message}")
            return ValidationError(f"Validation failed: {message}", status, errors)
        if status in self.RETRYABLE_STATUS_CODES:
            logger.warning(f"Platform returned {status}: {message}")
            return TransientNetworkError(f"Request failed ({status}): {message}", status, errors)
        logger.error(f"Platform API error: {response.text}")
        return PlatformAPIError(f"Request failed ({status}): {message}", status, errors)

    # Resource operations

    async def query(self, endpoint: str, params: Optional[Dict] = None) -> Dict:
        """
        Query a collection

        Returns:
            Dict: Paged query result with "results", "count", "offset", "limit"
        """
        return await self._make_request("GET", f"/{endpoint}", params=params)

    async def get_by_key(self, endpoint: str, key: str, params: Optional[Dict] = None) -> Dict:
        return await self._make_request("GET", f"/{endpoint}/key={quote(key, safe='')}", params=params)

    async def get_by_id(self, endpoint: str, resource_id: str, params: Optional[Dict] = None) -> Dict:
        return await self._make_request("GET", f"/{endpoint}/{resource_id}", params=params)

    async def update_by_key(self, endpoint: str, key: str, version: int, actions: List[Dict]) -> Dict:
        """
        Apply update actions to the resource with the given key

        Args:
            endpoint: Collection endpoint, e.g. "products"
            key: Resource key
            version: Expected current version of the resource
            actions: Ordered update action payloads

        Raises:
            VersionConflictError: If version is no longer current
            ValidationError: If the platform rejects an action
        """
        return await self._make_request(
            "POST",
            f"/{endpoint}/key={quote(key, safe='')}",
            data={"version": version, "actions": actions}
        )

    async def create(self, endpoint: str, draft: Dict) -> Dict:
        return await self._make_request("POST", f"/{endpoint}", data=draft)

    # Custom objects

    async def get_custom_object(self, container: str, key: str) -> Dict:
        return await self._make_request(
            "GET", f"/custom-objects/{quote(container, safe='')}/{quote(key, safe='')}"
        )

    async def upsert_custom_object(self, container: str, key: str, value: Any, version: Optional[int] = None) -> Dict:
        """
        Create or update a custom object. version 0 means create-only.
        """
        draft = {"container": container, "key": key, "value": value}
        if version is not None:
            draft["version"] = version
        return await self._make_request("POST", "/custom-objects", data=draft)

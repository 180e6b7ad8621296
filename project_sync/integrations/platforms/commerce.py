import base64
import json
import logging
from typing import Any, Dict, List, Optional

from project_sync.core.exceptions import ResourceNotFoundError
from project_sync.core.utils import format_timestamp
from project_sync.integrations.base import Page, QueryFilter, ResourceCollection
from project_sync.schemas.actions import UpdateAction
from project_sync.services.commerce.client import CommerceClient

logger = logging.getLogger(__name__)

# Products are read through their staged projection so that drafts and
# snapshots both describe the working copy, with published/hasStagedChanges flags.
PROJECTION_ENDPOINTS = {"products": "product-projections"}
PROJECTION_PARAMS = {"products": {"staged": "true"}}


def encode_cursor(item: Dict[str, Any]) -> str:
    raw = json.dumps({"lastModifiedAt": item.get("lastModifiedAt"), "id": item["id"]})
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(cursor: str) -> Dict[str, Any]:
    return json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())


class CommercePlatform(ResourceCollection):
    """ResourceCollection over the commerce platform HTTP API"""

    def __init__(self, client: CommerceClient):
        self.client = client

    def _read_endpoint(self, resource_type: str) -> str:
        return PROJECTION_ENDPOINTS.get(resource_type, resource_type)

    def _read_params(self, resource_type: str) -> Dict[str, Any]:
        return dict(PROJECTION_PARAMS.get(resource_type, {}))

    def build_query_params(self, resource_type: str, query_filter: QueryFilter, cursor: Optional[str]) -> Dict[str, Any]:
        predicates: List[str] = []
        if query_filter.where:
            predicates.append(query_filter.where)
        if query_filter.last_modified_since:
            predicates.append(f'lastModifiedAt >= "{format_timestamp(query_filter.last_modified_since)}"')
        if cursor:
            position = decode_cursor(cursor)
            predicates.append(
                f'(lastModifiedAt > "{position["lastModifiedAt"]}" or '
                f'(lastModifiedAt = "{position["lastModifiedAt"]}" and id > "{position["id"]}"))'
            )

        params = self._read_params(resource_type)
        params.update(query_filter.params)
        params.update({
            "sort": ["lastModifiedAt asc", "id asc"],
            "limit": query_filter.limit,
            "withTotal": "false",
        })
        if predicates:
            params["where"] = predicates
        return params

    async def fetch_page(self, resource_type: str, query_filter: QueryFilter, cursor: Optional[str] = None) -> Page:
        params = self.build_query_params(resource_type, query_filter, cursor)
        response = await self.client.query(self._read_endpoint(resource_type), params=params)
        items = response.get("results", [])

        next_cursor = encode_cursor(items[-1]) if len(items) >= query_filter.limit else None
        logger.debug(f"Fetched {len(items)} {resource_type} (more: {next_cursor is not None})")
        return Page(items=items, next_cursor=next_cursor)

    async def fetch_by_key(self, resource_type: str, key: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get_by_key(
                self._read_endpoint(resource_type), key, params=self._read_params(resource_type) or None
            )
        except ResourceNotFoundError:
            return None

    async def fetch_by_id(self, resource_type: str, resource_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get_by_id(
                self._read_endpoint(resource_type), resource_id, params=self._read_params(resource_type) or None
            )
        except ResourceNotFoundError:
            return None

    async def apply_update(
        self,
        resource_type: str,
        key: str,
        actions: List[UpdateAction],
        expected_version: int
    ) -> Dict[str, Any]:
        payload = [action.to_payload() for action in actions]
        return await self.client.update_by_key(resource_type, key, expected_version, payload)

    async def create(self, resource_type: str, draft: Dict[str, Any]) -> Dict[str, Any]:
        return await self.client.create(resource_type, draft)

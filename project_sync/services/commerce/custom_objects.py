"""
Key-value store backed by the target project's custom objects.
"""

import logging
from typing import Any, Dict, Optional

from project_sync.core.exceptions import ResourceNotFoundError
from project_sync.integrations.base import KeyValueStore, NamespacedKey, StoredValue
from project_sync.services.commerce.client import CommerceClient

logger = logging.getLogger(__name__)


class CustomObjectStore(KeyValueStore):

    def __init__(self, client: CommerceClient):
        self.client = client

    async def get(self, key: NamespacedKey) -> Optional[StoredValue]:
        try:
            custom_object = await self.client.get_custom_object(key.container, key.key)
        except ResourceNotFoundError:
            logger.debug(f"No custom object at {key.container}/{key.key}")
            return None
        return StoredValue(value=custom_object.get("value") or {}, version=custom_object["version"])

    async def set(self, key: NamespacedKey, value: Dict[str, Any], expected_version: Optional[int] = None) -> StoredValue:
        # Version 0 makes the platform reject the write if the object already exists
        version = 0 if expected_version is None else expected_version
        custom_object = await self.client.upsert_custom_object(key.container, key.key, value, version=version)
        return StoredValue(value=custom_object.get("value") or value, version=custom_object["version"])

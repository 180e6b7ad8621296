from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel

from project_sync.schemas.actions import UpdateAction


class QueryFilter(BaseModel):
    """Restricts which source resources a page query returns"""
    last_modified_since: Optional[datetime] = None
    where: Optional[str] = None
    limit: int = 100
    params: Dict[str, Any] = {}


class Page(NamedTuple):
    items: List[Dict[str, Any]]
    next_cursor: Optional[str]


class NamespacedKey(NamedTuple):
    container: str
    key: str


class StoredValue(NamedTuple):
    value: Dict[str, Any]
    version: int


class ResourceCollection(ABC):
    """A remote collection of resources on one project (source or target)"""

    @abstractmethod
    async def fetch_page(self, resource_type: str, query_filter: QueryFilter, cursor: Optional[str] = None) -> Page:
        """Fetch one page, ordered by lastModifiedAt then id. next_cursor is None on the last page"""
        pass

    @abstractmethod
    async def fetch_by_key(self, resource_type: str, key: str) -> Optional[Dict[str, Any]]:
        """Fetch a resource by key, None if it does not exist"""
        pass

    @abstractmethod
    async def fetch_by_id(self, resource_type: str, resource_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a resource by id, None if it does not exist"""
        pass

    @abstractmethod
    async def apply_update(
        self,
        resource_type: str,
        key: str,
        actions: List[UpdateAction],
        expected_version: int
    ) -> Dict[str, Any]:
        """Apply actions in order. Raises VersionConflictError or ValidationError"""
        pass

    @abstractmethod
    async def create(self, resource_type: str, draft: Dict[str, Any]) -> Dict[str, Any]:
        """Create a resource from draft JSON. Raises ValidationError"""
        pass


class KeyValueStore(ABC):
    """Durable store with optimistic concurrency"""

    @abstractmethod
    async def get(self, key: NamespacedKey) -> Optional[StoredValue]:
        pass

    @abstractmethod
    async def set(self, key: NamespacedKey, value: Dict[str, Any], expected_version: Optional[int] = None) -> StoredValue:
        """Write value. expected_version None means create-only. Raises VersionConflictError"""
        pass

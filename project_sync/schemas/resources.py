"""
Drafts and snapshots: the two sides a diff compares.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from project_sync.core.enums import ResourceType
from project_sync.schemas.base import FrozenSchema


class ResourceDraft(FrozenSchema):
    """
    Desired state of one resource as read from the source, with every
    reference already rewritten to ``{"typeId": ..., "key": ...}``.
    """
    resource_type: ResourceType
    key: str
    data: Dict[str, Any] = Field(default_factory=dict)
    publish: Optional[bool] = None
    last_modified_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        """Draft JSON used for the create call"""
        payload = {"key": self.key, **self.data}
        if self.publish is not None:
            payload["publish"] = self.publish
        return payload


class ResourceSnapshot(FrozenSchema):
    """Current state of the matching resource on the target"""
    resource_type: ResourceType
    id: str
    key: str
    version: int
    data: Dict[str, Any] = Field(default_factory=dict)
    published: bool = False
    has_staged_changes: bool = False
    last_modified_at: Optional[datetime] = None

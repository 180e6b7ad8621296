"""
Progress checkpoint persisted in the target's custom-object store.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from project_sync.core.enums import ResourceType
from project_sync.core.utils import parse_timestamp, format_timestamp
from project_sync.schemas.base import BaseSchema


class ProgressCheckpoint(BaseSchema):
    resource_type: ResourceType = Field(alias="resourceType")
    last_processed_timestamp: datetime = Field(alias="lastSyncTimestamp")
    runner_name: Optional[str] = Field(default=None, alias="runnerName")
    application_version: Optional[str] = Field(default=None, alias="applicationVersion")
    last_sync_statistics: Optional[Dict[str, Any]] = Field(default=None, alias="lastSyncStatistics")
    last_sync_duration_ms: Optional[int] = Field(default=None, alias="lastSyncDurationInMillis")

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["lastSyncTimestamp"] = format_timestamp(self.last_processed_timestamp)
        return payload

    @classmethod
    def from_payload(cls, value: Dict[str, Any]) -> "ProgressCheckpoint":
        data = dict(value)
        data["lastSyncTimestamp"] = parse_timestamp(data.get("lastSyncTimestamp"))
        return cls.model_validate(data)

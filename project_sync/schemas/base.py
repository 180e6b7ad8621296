"""
Base schemas with common functionality.
"""
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict


class BaseSchema(BaseModel):
    """Base schema with common functionality for all schemas"""

    model_config = ConfigDict(
        populate_by_name=True
    )

    def to_payload(self) -> Dict[str, Any]:
        """Render the schema as platform JSON (camelCase aliases, no nulls)"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FrozenSchema(BaseSchema):
    """Base schema for values that must not change once built"""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True
    )

"""
Shared enums and constants used across the application.
"""

from enum import Enum


class ResourceType(str, Enum):
    """Resource types that can be synchronized. Values are the collection endpoints."""
    CATEGORIES = "categories"
    PRODUCTS = "products"

    @property
    def type_id(self) -> str:
        # "products" -> "product", "categories" -> "category"
        return ReferenceType.from_endpoint(self.value).value


class ReferenceType(str, Enum):
    """typeId values that can appear inside a reference"""
    CATEGORY = "category"
    PRODUCT = "product"
    PRODUCT_TYPE = "product-type"
    TAX_CATEGORY = "tax-category"
    STATE = "state"
    CHANNEL = "channel"
    CUSTOMER_GROUP = "customer-group"

    @property
    def endpoint(self) -> str:
        if self.value == "category":
            return "categories"
        return f"{self.value}s"

    @classmethod
    def from_endpoint(cls, endpoint: str) -> "ReferenceType":
        for member in cls:
            if member.endpoint == endpoint:
                return member
        raise ValueError(f"Unknown endpoint: {endpoint}")


class SyncOutcomeType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    """Terminal state of one synchronization run"""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


class ClientSide(str, Enum):
    SOURCE = "SOURCE"
    TARGET = "TARGET"

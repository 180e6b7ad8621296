"""
Per-resource-type strategies for the generic syncer.

A strategy bundles everything that differs between resource types: which
fields make up a draft, how the source query is filtered, which diff
collaborator and which policy hook apply.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from project_sync.core.enums import ResourceType
from project_sync.integrations.base import QueryFilter
from project_sync.schemas.actions import UpdateAction
from project_sync.schemas.resources import ResourceDraft, ResourceSnapshot
from project_sync.services.diff import build_category_actions, build_product_actions
from project_sync.services.policy import PolicyHook, append_publish_if_published, keep_actions

DiffFunction = Callable[[ResourceDraft, ResourceSnapshot], List[UpdateAction]]


@dataclass(frozen=True)
class ResourceStrategy:
    resource_type: ResourceType
    draft_fields: Tuple[str, ...]
    diff: DiffFunction
    policy_hook: PolicyHook = keep_actions
    tracks_publish: bool = False
    base_where: Optional[str] = None
    query_params: Dict[str, Any] = field(default_factory=dict)

    def build_filter(self, last_modified_since: Optional[datetime], page_size: int) -> QueryFilter:
        return QueryFilter(
            last_modified_since=last_modified_since,
            where=self.base_where,
            limit=page_size,
            params=dict(self.query_params)
        )


PRODUCT_STRATEGY = ResourceStrategy(
    resource_type=ResourceType.PRODUCTS,
    draft_fields=(
        "productType", "name", "slug", "description",
        "metaTitle", "metaDescription", "metaKeywords",
        "categories", "taxCategory", "state",
        "masterVariant", "variants",
    ),
    diff=build_product_actions,
    policy_hook=append_publish_if_published,
    tracks_publish=True,
)

CATEGORY_STRATEGY = ResourceStrategy(
    resource_type=ResourceType.CATEGORIES,
    draft_fields=(
        "name", "slug", "description", "parent", "orderHint", "externalId",
        "metaTitle", "metaDescription", "metaKeywords",
    ),
    diff=build_category_actions,
)

STRATEGIES = {
    ResourceType.CATEGORIES: CATEGORY_STRATEGY,
    ResourceType.PRODUCTS: PRODUCT_STRATEGY,
}


def get_strategy(resource_type) -> ResourceStrategy:
    return STRATEGIES[ResourceType(resource_type)]

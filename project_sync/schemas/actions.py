"""
Update actions.

Each action is one atomic mutation of a target resource, tagged by its
``action`` name as the platform expects it on the wire. Lists of actions are
applied in order.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field

from project_sync.schemas.base import FrozenSchema

LocalizedString = Dict[str, str]
ResourceIdentifier = Dict[str, str]


class UpdateAction(FrozenSchema):
    """Generic update action. Subclasses pin the tag and declare their payload."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="allow"
    )

    action: str


# Shared by products and categories

class ChangeName(UpdateAction):
    action: Literal["changeName"] = "changeName"
    name: LocalizedString


class ChangeSlug(UpdateAction):
    action: Literal["changeSlug"] = "changeSlug"
    slug: LocalizedString


class SetDescription(UpdateAction):
    action: Literal["setDescription"] = "setDescription"
    description: Optional[LocalizedString] = None


class SetMetaTitle(UpdateAction):
    action: Literal["setMetaTitle"] = "setMetaTitle"
    meta_title: Optional[LocalizedString] = Field(default=None, alias="metaTitle")


class SetMetaDescription(UpdateAction):
    action: Literal["setMetaDescription"] = "setMetaDescription"
    meta_description: Optional[LocalizedString] = Field(default=None, alias="metaDescription")


class SetMetaKeywords(UpdateAction):
    action: Literal["setMetaKeywords"] = "setMetaKeywords"
    meta_keywords: Optional[LocalizedString] = Field(default=None, alias="metaKeywords")


# Products

class AddToCategory(UpdateAction):
    action: Literal["addToCategory"] = "addToCategory"
    category: ResourceIdentifier


class RemoveFromCategory(UpdateAction):
    action: Literal["removeFromCategory"] = "removeFromCategory"
    category: ResourceIdentifier


class SetTaxCategory(UpdateAction):
    action: Literal["setTaxCategory"] = "setTaxCategory"
    tax_category: Optional[ResourceIdentifier] = Field(default=None, alias="taxCategory")


class TransitionState(UpdateAction):
    action: Literal["transitionState"] = "transitionState"
    state: Optional[ResourceIdentifier] = None
    force: Optional[bool] = None


class AddVariant(UpdateAction):
    action: Literal["addVariant"] = "addVariant"
    sku: Optional[str] = None
    key: Optional[str] = None
    attributes: Optional[List[Dict[str, Any]]] = None
    prices: Optional[List[Dict[str, Any]]] = None
    images: Optional[List[Dict[str, Any]]] = None


class RemoveVariant(UpdateAction):
    action: Literal["removeVariant"] = "removeVariant"
    sku: str


class SetAttribute(UpdateAction):
    """Sets (or, with no value, removes) one attribute of the variant with ``sku``"""
    action: Literal["setAttribute"] = "setAttribute"
    sku: str
    name: str
    value: Any = None


class Publish(UpdateAction):
    action: Literal["publish"] = "publish"
    scope: Optional[str] = None


class Unpublish(UpdateAction):
    action: Literal["unpublish"] = "unpublish"


# Categories

class ChangeParent(UpdateAction):
    action: Literal["changeParent"] = "changeParent"
    parent: ResourceIdentifier


class ChangeOrderHint(UpdateAction):
    action: Literal["changeOrderHint"] = "changeOrderHint"
    order_hint: str = Field(alias="orderHint")


class SetExternalId(UpdateAction):
    action: Literal["setExternalId"] = "setExternalId"
    external_id: Optional[str] = Field(default=None, alias="externalId")


PUBLISH_ACTION = "publish"
UNPUBLISH_ACTION = "unpublish"

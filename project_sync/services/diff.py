"""
Default diff collaborators.

Each builder compares a draft against the target snapshot field by field and
returns the ordered list of update actions that converges the snapshot to the
draft. Builders are deterministic: two equal inputs always give an empty list.

Prices and the master variant's identity are compared only as part of new
variants; existing variants are converged through their attributes.
"""

from typing import Any, Dict, List, Optional

from project_sync.schemas.actions import (
    AddToCategory,
    AddVariant,
    ChangeName,
    ChangeOrderHint,
    ChangeParent,
    ChangeSlug,
    Publish,
    RemoveFromCategory,
    RemoveVariant,
    SetAttribute,
    SetDescription,
    SetExternalId,
    SetMetaDescription,
    SetMetaKeywords,
    SetMetaTitle,
    SetTaxCategory,
    TransitionState,
    Unpublish,
    UpdateAction
)
from project_sync.schemas.resources import ResourceDraft, ResourceSnapshot


def reference_identity(reference: Optional[Dict[str, Any]]) -> Optional[tuple]:
    """Key used to compare two references; key-based and id-based forms never match"""
    if not reference:
        return None
    if reference.get("key"):
        return reference["typeId"], "key", reference["key"]
    return reference["typeId"], "id", reference.get("id")


def _changed(draft: ResourceDraft, snapshot: ResourceSnapshot, field: str) -> bool:
    return draft.data.get(field) != snapshot.data.get(field)


def _common_actions(draft: ResourceDraft, snapshot: ResourceSnapshot) -> List[UpdateAction]:
    actions: List[UpdateAction] = []
    if draft.data.get("name") and _changed(draft, snapshot, "name"):
        actions.append(ChangeName(name=draft.data["name"]))
    if draft.data.get("slug") and _changed(draft, snapshot, "slug"):
        actions.append(ChangeSlug(slug=draft.data["slug"]))
    if _changed(draft, snapshot, "description"):
        actions.append(SetDescription(description=draft.data.get("description")))
    if _changed(draft, snapshot, "metaTitle"):
        actions.append(SetMetaTitle(meta_title=draft.data.get("metaTitle")))
    if _changed(draft, snapshot, "metaDescription"):
        actions.append(SetMetaDescription(meta_description=draft.data.get("metaDescription")))
    if _changed(draft, snapshot, "metaKeywords"):
        actions.append(SetMetaKeywords(meta_keywords=draft.data.get("metaKeywords")))
    return actions


def _category_membership_actions(draft: ResourceDraft, snapshot: ResourceSnapshot) -> List[UpdateAction]:
    wanted = {reference_identity(ref): ref for ref in draft.data.get("categories") or []}
    current = {reference_identity(ref): ref for ref in snapshot.data.get("categories") or []}

    actions: List[UpdateAction] = []
    for identity, reference in current.items():
        if identity not in wanted:
            actions.append(RemoveFromCategory(category=reference))
    for identity, reference in wanted.items():
        if identity not in current:
            actions.append(AddToCategory(category=reference))
    return actions


def _variants_by_sku(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    variants = [data.get("masterVariant")] + list(data.get("variants") or [])
    return {variant["sku"]: variant for variant in variants if variant and variant.get("sku")}


def _attribute_actions(sku: str, wanted: Dict[str, Any], current: Dict[str, Any]) -> List[UpdateAction]:
    wanted_values = {attribute["name"]: attribute.get("value") for attribute in wanted.get("attributes") or []}
    current_values = {attribute["name"]: attribute.get("value") for attribute in current.get("attributes") or []}

    actions: List[UpdateAction] = []
    for name in sorted(current_values):
        if name not in wanted_values:
            actions.append(SetAttribute(sku=sku, name=name))
    for name in sorted(wanted_values):
        if name not in current_values or current_values[name] != wanted_values[name]:
            actions.append(SetAttribute(sku=sku, name=name, value=wanted_values[name]))
    return actions


def _variant_actions(draft: ResourceDraft, snapshot: ResourceSnapshot) -> List[UpdateAction]:
    wanted = _variants_by_sku(draft.data)
    current = _variants_by_sku(snapshot.data)
    master_sku = (snapshot.data.get("masterVariant") or {}).get("sku")

    actions: List[UpdateAction] = []
    for sku in current:
        if sku not in wanted and sku != master_sku:
            actions.append(RemoveVariant(sku=sku))
    for sku, variant in wanted.items():
        if sku not in current:
            actions.append(AddVariant(
                sku=sku,
                key=variant.get("key"),
                attributes=variant.get("attributes"),
                prices=variant.get("prices"),
                images=variant.get("images")
            ))
    for sku, variant in wanted.items():
        if sku in current:
            actions.extend(_attribute_actions(sku, variant, current[sku]))
    return actions


def _publish_actions(draft: ResourceDraft, snapshot: ResourceSnapshot) -> List[UpdateAction]:
    if draft.publish is True and (not snapshot.published or snapshot.has_staged_changes):
        return [Publish()]
    if draft.publish is False and snapshot.published:
        return [Unpublish()]
    return []


def build_product_actions(draft: ResourceDraft, snapshot: ResourceSnapshot) -> List[UpdateAction]:
    actions = _common_actions(draft, snapshot)
    actions.extend(_category_membership_actions(draft, snapshot))

    if reference_identity(draft.data.get("taxCategory")) != reference_identity(snapshot.data.get("taxCategory")):
        actions.append(SetTaxCategory(tax_category=draft.data.get("taxCategory")))
    if draft.data.get("state") and (
            reference_identity(draft.data["state"]) != reference_identity(snapshot.data.get("state"))):
        actions.append(TransitionState(state=draft.data["state"], force=True))

    actions.extend(_variant_actions(draft, snapshot))
    actions.extend(_publish_actions(draft, snapshot))
    return actions


def build_category_actions(draft: ResourceDraft, snapshot: ResourceSnapshot) -> List[UpdateAction]:
    actions = _common_actions(draft, snapshot)

    parent = draft.data.get("parent")
    if parent and reference_identity(parent) != reference_identity(snapshot.data.get("parent")):
        actions.append(ChangeParent(parent=parent))
    if draft.data.get("orderHint") and _changed(draft, snapshot, "orderHint"):
        actions.append(ChangeOrderHint(order_hint=draft.data["orderHint"]))
    if _changed(draft, snapshot, "externalId"):
        actions.append(SetExternalId(external_id=draft.data.get("externalId")))
    return actions

"""
Update policy hooks.

A hook runs after the diff and before the actions are submitted:
``hook(actions, draft, snapshot) -> actions``. Hooks are pure; they return a
list and never touch the remote platform.
"""

from typing import Callable, List

from project_sync.schemas.actions import PUBLISH_ACTION, UNPUBLISH_ACTION, Publish, UpdateAction
from project_sync.schemas.resources import ResourceDraft, ResourceSnapshot

PolicyHook = Callable[[List[UpdateAction], ResourceDraft, ResourceSnapshot], List[UpdateAction]]


def append_publish_if_published(
    actions: List[UpdateAction],
    draft: ResourceDraft,
    snapshot: ResourceSnapshot
) -> List[UpdateAction]:
    """
    Publish the staged changes of a target resource that is already published.

    A Publish action is appended, after every staging action, only if there
    are actions at all, the target is published, and the actions carry no
    explicit publish or unpublish of their own.

    Args:
        actions: Update actions needed to sync draft to snapshot
        draft: Source draft with the changes
        snapshot: Target resource to be updated

    Returns:
        The actions, with a Publish appended when the staged changes should go live
    """
    if not actions or not snapshot.published:
        return actions
    if any(action.action in (PUBLISH_ACTION, UNPUBLISH_ACTION) for action in actions):
        return actions
    return [*actions, Publish()]


def keep_actions(
    actions: List[UpdateAction],
    draft: ResourceDraft,
    snapshot: ResourceSnapshot
) -> List[UpdateAction]:
    """Identity hook for resources without a published/staged distinction"""
    return actions

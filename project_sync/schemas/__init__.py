"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema, FrozenSchema

# Drafts and snapshots
from .resources import ResourceDraft, ResourceSnapshot

# Update actions
from .actions import (
    UpdateAction,
    ChangeName,
    ChangeSlug,
    SetDescription,
    SetMetaTitle,
    SetMetaDescription,
    SetMetaKeywords,
    AddToCategory,
    RemoveFromCategory,
    SetTaxCategory,
    TransitionState,
    AddVariant,
    RemoveVariant,
    SetAttribute,
    Publish,
    Unpublish,
    ChangeParent,
    ChangeOrderHint,
    SetExternalId
)

# Progress tracking
from .progress import ProgressCheckpoint

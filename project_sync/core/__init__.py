"""
Core module exports.
"""
from .enums import (
    ResourceType,
    ReferenceType,
    SyncOutcomeType,
    RunStatus,
    ClientSide
)

from .exceptions import (
    BaseServiceError,
    ConfigurationError,
    PlatformServiceError,
    PlatformAPIError,
    TransientNetworkError,
    VersionConflictError,
    ValidationError,
    ResourceNotFoundError,
    SyncError,
    PageFetchError,
    CheckpointConflictError,
    ReferenceResolutionError
)

from .utils import (
    retry_transient,
    utc_now,
    parse_timestamp,
    format_timestamp
)

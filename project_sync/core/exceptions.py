class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class ConfigurationError(BaseServiceError):
    """Raised when required settings are missing or a pre-flight check fails."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass

class PlatformAPIError(PlatformServiceError):
    """Raised when platform API calls fail."""

    def __init__(self, message: str, status_code: int = None, errors: list = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []

class TransientNetworkError(PlatformAPIError):
    """Raised for network failures, timeouts, throttling and 5xx responses. Safe to retry."""
    pass

class VersionConflictError(PlatformAPIError):
    """Raised when the expected version of a resource no longer matches."""
    pass

class ValidationError(PlatformAPIError):
    """Raised when the platform rejects a payload."""
    pass

class ResourceNotFoundError(PlatformAPIError):
    """Raised when a resource is not found on the platform."""
    pass

class SyncError(BaseServiceError):
    """Raised when platform synchronization fails."""
    pass

class PageFetchError(SyncError):
    """Raised when a source page cannot be fetched after all retries."""
    pass

class CheckpointConflictError(SyncError):
    """Raised when another run has written the checkpoint concurrently."""
    pass

class ReferenceResolutionError(SyncError):
    """Raised when a reference cannot be rewritten to a target key."""

    def __init__(self, message: str, type_id: str = None, reference_id: str = None):
        super().__init__(message)
        self.type_id = type_id
        self.reference_id = reference_id

# project_sync/core/config.py

import os
from functools import lru_cache
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from project_sync.core.enums import ClientSide
from project_sync.core.exceptions import ConfigurationError


class ClientCredentials(BaseModel):
    """Connection details for one side (source or target) of a sync"""
    project_key: str
    client_id: str
    client_secret: str
    auth_url: str
    api_url: str
    scopes: Optional[str] = None


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Source project
    SOURCE_PROJECT_KEY: str = ""
    SOURCE_CLIENT_ID: str = ""
    SOURCE_CLIENT_SECRET: str = ""
    SOURCE_AUTH_URL: str = "https://auth.europe-west1.gcp.commercetools.com"
    SOURCE_API_URL: str = "https://api.europe-west1.gcp.commercetools.com"
    SOURCE_SCOPES: Optional[str] = None

    # Target project
    TARGET_PROJECT_KEY: str = ""
    TARGET_CLIENT_ID: str = ""
    TARGET_CLIENT_SECRET: str = ""
    TARGET_AUTH_URL: str = "https://auth.europe-west1.gcp.commercetools.com"
    TARGET_API_URL: str = "https://api.europe-west1.gcp.commercetools.com"
    TARGET_SCOPES: Optional[str] = None

    # Sync tuning
    SYNC_PAGE_SIZE: int = Field(default=100, ge=1, le=500)
    SYNC_CONCURRENCY: int = Field(default=10, ge=1)
    SYNC_MAX_UPDATE_ATTEMPTS: int = Field(default=3, ge=1)
    SYNC_MAX_TRANSIENT_ATTEMPTS: int = Field(default=3, ge=1)
    SYNC_RETRY_BACKOFF_SECONDS: float = 1.0
    HTTP_TIMEOUT_SECONDS: float = 30.0
    # Run start is moved back by this much; covers a local clock ahead of the platform
    SYNC_CLOCK_SKEW_SECONDS: float = Field(default=60.0, ge=0)

    # Progress tracking
    CHECKPOINT_NAMESPACE: str = "project-sync"
    RUNNER_NAME: str = "runnerName"

    # Scheduling
    SYNC_SCHEDULE: str = "0 */4 * * *"  # every 4 hours
    SYNC_SCHEDULE_ENABLED: bool = False

    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists(os.environ.get('ENV_FILE', '.env')) else None,
        case_sensitive=True,
        extra="ignore"
    )

    def credentials_for(self, side: ClientSide) -> ClientCredentials:
        """Collect the credentials of one side, failing early if any is missing"""
        prefix = ClientSide(side).value
        values = {
            "project_key": getattr(self, f"{prefix}_PROJECT_KEY"),
            "client_id": getattr(self, f"{prefix}_CLIENT_ID"),
            "client_secret": getattr(self, f"{prefix}_CLIENT_SECRET"),
            "auth_url": getattr(self, f"{prefix}_AUTH_URL"),
            "api_url": getattr(self, f"{prefix}_API_URL"),
            "scopes": getattr(self, f"{prefix}_SCOPES"),
        }
        missing = [f"{prefix}_{name.upper()}" for name, value in values.items()
                   if name != "scopes" and not value]
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}. Please check your .env file."
            )
        return ClientCredentials(**values)


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file on every call"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()

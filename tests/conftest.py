# tests/conftest.py
from datetime import datetime, timezone

import pytest

from project_sync.core.config import Settings
from project_sync.services.progress_store import ProgressStore
from project_sync.services.reference_resolver import ReferenceResolver
from project_sync.services.sync_core import SyncOptions
from tests.mocks.mock_platform import MockCollection, MockKeyValueStore

RUN_START = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class CallbackRecorder:
    """Collects messages passed to the error/warning callbacks"""

    def __init__(self):
        self.errors = []
        self.warnings = []

    def on_error(self, message, cause=None):
        self.errors.append((message, cause))

    def on_warning(self, message):
        self.warnings.append(message)


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        _env_file=None,
        SOURCE_PROJECT_KEY="source-project",
        SOURCE_CLIENT_ID="source-id",
        SOURCE_CLIENT_SECRET="source-secret",
        TARGET_PROJECT_KEY="target-project",
        TARGET_CLIENT_ID="target-id",
        TARGET_CLIENT_SECRET="target-secret",
        SYNC_RETRY_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def source():
    collection = MockCollection("source")
    collection.add("product-types", {"id": "src-pt-1", "key": "pt"})
    return collection


@pytest.fixture
def target():
    collection = MockCollection("target")
    collection.add("product-types", {"id": "tgt-pt-1", "key": "pt"})
    return collection


@pytest.fixture
def store():
    return MockKeyValueStore()


@pytest.fixture
def progress_store(store):
    return ProgressStore(store, source_project_key="source-project", runner_name="test-runner")


@pytest.fixture
def callbacks():
    return CallbackRecorder()


@pytest.fixture
def options(callbacks):
    return SyncOptions(
        error_callback=callbacks.on_error,
        warning_callback=callbacks.on_warning,
        backoff_seconds=0,
        page_size=10,
    )


@pytest.fixture
def resolver(source, target):
    return ReferenceResolver(source, target, max_attempts=3, backoff_seconds=0)

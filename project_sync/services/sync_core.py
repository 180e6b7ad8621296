"""
Per-resource synchronization: fetch snapshot, diff, apply policy hook, submit.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from project_sync.core.exceptions import (
    PlatformAPIError,
    TransientNetworkError,
    ValidationError,
    VersionConflictError
)
from project_sync.core.utils import retry_transient
from project_sync.integrations.base import ResourceCollection
from project_sync.schemas.actions import UpdateAction
from project_sync.schemas.resources import ResourceDraft, ResourceSnapshot
from project_sync.services.policy import PolicyHook
from project_sync.services.reference_resolver import ReferenceResolver
from project_sync.services.strategies import ResourceStrategy
from project_sync.services.sync_stats_service import SyncOutcome

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, Optional[BaseException]], None]
WarningCallback = Callable[[str], None]


@dataclass
class SyncOptions:
    """Explicit configuration record handed to the syncer and its components"""
    error_callback: Optional[ErrorCallback] = None
    warning_callback: Optional[WarningCallback] = None
    before_update_callback: Optional[PolicyHook] = None
    max_update_attempts: int = 3
    max_transient_attempts: int = 3
    backoff_seconds: float = 1.0
    concurrency: int = 10
    page_size: int = 100
    clock_skew_seconds: float = 0.0

    def report_error(self, message: str, cause: Optional[BaseException] = None):
        if self.error_callback is None:
            return
        try:
            self.error_callback(message, cause)
        except Exception:
            logger.exception("error_callback raised; ignoring")

    def report_warning(self, message: str):
        if self.warning_callback is None:
            return
        try:
            self.warning_callback(message)
        except Exception:
            logger.exception("warning_callback raised; ignoring")


class ResourceSync:
    """
    Converges target resources of one type towards source drafts.

    sync() never raises for expected failures; every draft ends in exactly one
    SyncOutcome. Work on the same key is serialized, different keys run freely.
    """

    def __init__(
        self,
        target: ResourceCollection,
        strategy: ResourceStrategy,
        resolver: ReferenceResolver,
        options: SyncOptions
    ):
        self.target = target
        self.strategy = strategy
        self.resolver = resolver
        self.options = options
        self.policy_hook: PolicyHook = options.before_update_callback or strategy.policy_hook
        self._key_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def resource_type(self) -> str:
        return self.strategy.resource_type.value

    async def _retry(self, operation, description: str):
        return await retry_transient(
            operation,
            max_attempts=self.options.max_transient_attempts,
            backoff_seconds=self.options.backoff_seconds,
            description=description
        )

    def _fail(self, draft: ResourceDraft, verb: str, error: BaseException) -> SyncOutcome:
        message = f"Failed to {verb} {self.resource_type} with key: '{draft.key}'. Reason: {error}"
        self.options.report_error(message, error)
        return SyncOutcome.failed(draft.key, f"{type(error).__name__}: {error}")

    async def sync(self, draft: ResourceDraft) -> SyncOutcome:
        async with self._key_locks[draft.key]:
            try:
                return await self._sync(draft)
            except (TransientNetworkError, PlatformAPIError) as e:
                return self._fail(draft, "sync", e)

    async def _fetch(self, key: str) -> Optional[dict]:
        return await self._retry(
            lambda: self.target.fetch_by_key(self.resource_type, key),
            f"Fetching {self.resource_type} '{key}' from target"
        )

    async def _create(self, draft: ResourceDraft) -> SyncOutcome:
        try:
            created = await self._retry(
                lambda: self.target.create(self.resource_type, draft.to_payload()),
                f"Creating {self.resource_type} '{draft.key}'"
            )
        except (TransientNetworkError, PlatformAPIError) as e:
            return self._fail(draft, "create", e)
        # Later pages may reference what was just created
        self.resolver.mark_present(
            self.strategy.resource_type.type_id, draft.key, (created or {}).get("id")
        )
        logger.debug(f"Created {self.resource_type} '{draft.key}'")
        return SyncOutcome.created(draft.key)

    def _build_actions(self, draft: ResourceDraft, snapshot: ResourceSnapshot) -> List[UpdateAction]:
        actions = self.strategy.diff(draft, snapshot)
        if not actions:
            return []
        return self.policy_hook(list(actions), draft, snapshot)

    async def _sync(self, draft: ResourceDraft) -> SyncOutcome:
        raw = await self._fetch(draft.key)
        if raw is None:
            return await self._create(draft)

        attempt = 0
        while True:
            attempt += 1
            snapshot = await self.resolver.to_snapshot(raw, self.strategy)
            actions = self._build_actions(draft, snapshot)
            if not actions:
                return SyncOutcome.unchanged(draft.key)

            try:
                await self._retry(
                    lambda: self.target.apply_update(self.resource_type, draft.key, actions, snapshot.version),
                    f"Updating {self.resource_type} '{draft.key}'"
                )
            except VersionConflictError as e:
                if attempt >= self.options.max_update_attempts:
                    return self._fail(draft, "update", e)
                logger.warning(
                    f"Version conflict on {self.resource_type} '{draft.key}' "
                    f"(attempt {attempt}/{self.options.max_update_attempts}), refetching"
                )
                raw = await self._fetch(draft.key)
                if raw is None:
                    return await self._create(draft)
                continue
            except ValidationError as e:
                return self._fail(draft, "update", e)

            logger.debug(f"Updated {self.resource_type} '{draft.key}' with {len(actions)} actions")
            return SyncOutcome.updated(draft.key)

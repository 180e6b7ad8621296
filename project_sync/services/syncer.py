# project_sync/services/syncer.py
"""
Generic synchronization run for one resource type.

The syncer coordinates:
1. Reading the checkpoint and building the source query (incremental or full)
2. Fetching source pages one after the other
3. Resolving references and syncing every resource of a page through a
   bounded worker pool
4. Recording outcomes and writing the checkpoint once a page is complete
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from project_sync import __version__
from project_sync.core.config import Settings
from project_sync.core.enums import ClientSide, ResourceType, RunStatus
from project_sync.core.exceptions import (
    PlatformAPIError,
    ReferenceResolutionError,
    SyncError,
    TransientNetworkError
)
from project_sync.core.utils import parse_timestamp, retry_transient, utc_now
from project_sync.integrations.base import ResourceCollection
from project_sync.integrations.platforms.commerce import CommercePlatform
from project_sync.schemas.progress import ProgressCheckpoint
from project_sync.services.commerce import CommerceClient, CustomObjectStore
from project_sync.services.paginator import Paginator
from project_sync.services.progress_store import ProgressStore
from project_sync.services.reference_resolver import ReferenceResolver
from project_sync.services.strategies import ResourceStrategy, get_strategy
from project_sync.services.sync_core import ResourceSync, SyncOptions
from project_sync.services.sync_stats_service import SyncOutcome, SyncStatistics

logger = logging.getLogger(__name__)


@dataclass
class SyncRunResult:
    """Caller-visible result of one run"""
    resource_type: ResourceType
    status: RunStatus
    statistics: SyncStatistics
    checkpoint: Optional[ProgressCheckpoint] = None
    error: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.status == RunStatus.ABORTED


class Syncer:
    """
    Synchronizes one resource type from source to target.

    Everything resource-specific comes from the strategy; every collaborator
    is passed in. A Syncer may run several times, each run gets fresh
    statistics, a fresh reference memo and fresh per-key locks.
    """

    def __init__(
        self,
        source: ResourceCollection,
        target: ResourceCollection,
        strategy: ResourceStrategy,
        progress_store: ProgressStore,
        options: SyncOptions,
        resolver: Optional[ReferenceResolver] = None,
        clock: Callable[[], datetime] = utc_now,
        application_version: str = __version__
    ):
        self.source = source
        self.target = target
        self.strategy = strategy
        self.progress_store = progress_store
        self.options = options
        self.resolver = resolver or ReferenceResolver(
            source, target,
            max_attempts=options.max_transient_attempts,
            backoff_seconds=options.backoff_seconds,
            concurrency=options.concurrency
        )
        self.paginator = Paginator(source, options.max_transient_attempts, options.backoff_seconds)
        self.clock = clock
        self.application_version = application_version

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

    async def _process_item(
        self,
        raw: Dict[str, Any],
        resource_sync: ResourceSync,
        semaphore: asyncio.Semaphore
    ) -> SyncOutcome:
        key = raw.get("key")
        if not key:
            message = f"{self.resource_type} with id: '{raw.get('id')}' doesn't have a key and cannot be synced"
            self.options.report_warning(message)
            return SyncOutcome.skipped(None, "MissingKey")

        try:
            draft = self.resolver.resolve(raw, self.strategy)
        except ReferenceResolutionError as e:
            self.options.report_warning(
                f"Skipping {self.resource_type} with key: '{key}'. Reason: {e}"
            )
            return SyncOutcome.skipped(key, f"ReferenceResolutionError: {e}")
        except TransientNetworkError as e:
            self.options.report_error(f"Failed to resolve references of {self.resource_type} '{key}': {e}", e)
            return SyncOutcome.failed(key, f"TransientNetworkError: {e}")

        async with semaphore:
            return await resource_sync.sync(draft)

    async def _process_page(
        self,
        items: List[Dict[str, Any]],
        resource_sync: ResourceSync,
        statistics: SyncStatistics
    ) -> List[SyncOutcome]:
        await self.resolver.prepare(items)

        semaphore = asyncio.Semaphore(self.options.concurrency)
        outcomes = await asyncio.gather(
            *[self._process_item(raw, resource_sync, semaphore) for raw in items]
        )
        for outcome in outcomes:
            statistics.record(outcome)
        return list(outcomes)

    def _page_timestamp(self, items: List[Dict[str, Any]], previous: Optional[datetime], run_start: datetime) -> Optional[datetime]:
        """Highest lastModifiedAt of the page, capped at the run start and never below previous"""
        stamps = [parse_timestamp(raw.get("lastModifiedAt")) for raw in items]
        stamps = [stamp for stamp in stamps if stamp is not None]
        if not stamps:
            return previous
        candidate = min(max(stamps), run_start)
        if previous is not None and candidate < previous:
            return previous
        return candidate

    def _checkpoint(self, timestamp: datetime, statistics: SyncStatistics) -> ProgressCheckpoint:
        return ProgressCheckpoint(
            resource_type=self.strategy.resource_type,
            last_processed_timestamp=timestamp,
            runner_name=self.progress_store.runner_name,
            application_version=self.application_version,
            last_sync_statistics=statistics.as_dict(),
            last_sync_duration_ms=int(statistics.duration_seconds * 1000)
        )

    async def run(self, full_sync: bool = False, cancel_event: Optional[asyncio.Event] = None) -> SyncRunResult:
        """
        Run one synchronization.

        Args:
            full_sync: Ignore the stored checkpoint and read every source resource
            cancel_event: When set, the run stops after the current page

        Returns:
            SyncRunResult with the statistics and the last checkpoint written
        """
        # Held back by the allowed clock skew so the checkpoint never runs ahead of platform timestamps
        run_start = self.clock() - timedelta(seconds=self.options.clock_skew_seconds)
        statistics = SyncStatistics(self.resource_type)
        self.resolver.clear()
        resource_sync = ResourceSync(self.target, self.strategy, self.resolver, self.options)

        logger.info(f"Starting {'full' if full_sync else 'incremental'} sync of {self.resource_type}")

        try:
            checkpoint, version = await self._retry(
                lambda: self.progress_store.get(self.resource_type),
                f"Reading {self.resource_type} checkpoint"
            )
        except (TransientNetworkError, PlatformAPIError) as e:
            logger.error(f"Cannot read {self.resource_type} checkpoint, aborting before any work: {e}")
            statistics.finish()
            return SyncRunResult(self.strategy.resource_type, RunStatus.ABORTED, statistics, error=str(e))

        last_timestamp = checkpoint.last_processed_timestamp if checkpoint else None
        since = None if full_sync else last_timestamp
        query_filter = self.strategy.build_filter(since, self.options.page_size)

        status = RunStatus.COMPLETED
        try:
            async for items in self.paginator.pages(self.resource_type, query_filter):
                await self._process_page(items, resource_sync, statistics)

                page_timestamp = self._page_timestamp(items, last_timestamp, run_start)
                if page_timestamp is not None:
                    checkpoint = self._checkpoint(page_timestamp, statistics)
                    version = await self._write_checkpoint(checkpoint, version)
                    last_timestamp = page_timestamp

                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"Cancellation requested, stopping {self.resource_type} sync after current page")
                    status = RunStatus.CANCELLED
                    break

            if status == RunStatus.COMPLETED:
                final_timestamp = run_start if last_timestamp is None else max(last_timestamp, run_start)
                statistics.finish()
                checkpoint = self._checkpoint(final_timestamp, statistics)
                version = await self._write_checkpoint(checkpoint, version)
        except SyncError as e:
            logger.error(f"Aborting {self.resource_type} sync: {e}")
            statistics.finish()
            return SyncRunResult(self.strategy.resource_type, RunStatus.ABORTED, statistics, checkpoint, error=str(e))

        statistics.finish()
        logger.info(statistics.report_message())
        return SyncRunResult(self.strategy.resource_type, status, statistics, checkpoint)

    async def _write_checkpoint(self, checkpoint: ProgressCheckpoint, version: Optional[int]) -> int:
        try:
            return await self._retry(
                lambda: self.progress_store.set(self.resource_type, checkpoint, version),
                f"Writing {self.resource_type} checkpoint"
            )
        except (TransientNetworkError, PlatformAPIError) as e:
            raise SyncError(f"Could not write {self.resource_type} checkpoint: {e}") from e


def log_error(message: str, cause: Optional[BaseException] = None):
    logger.error(message, exc_info=cause)


def log_warning(message: str):
    logger.warning(message)


def build_options(settings: Settings) -> SyncOptions:
    return SyncOptions(
        error_callback=log_error,
        warning_callback=log_warning,
        max_update_attempts=settings.SYNC_MAX_UPDATE_ATTEMPTS,
        max_transient_attempts=settings.SYNC_MAX_TRANSIENT_ATTEMPTS,
        backoff_seconds=settings.SYNC_RETRY_BACKOFF_SECONDS,
        concurrency=settings.SYNC_CONCURRENCY,
        clock_skew_seconds=settings.SYNC_CLOCK_SKEW_SECONDS,
        page_size=settings.SYNC_PAGE_SIZE
    )


def build_syncer(resource_type, settings: Settings, runner_name: Optional[str] = None) -> Syncer:
    """
    Wire a Syncer for resource_type from settings: HTTP clients for both
    projects, the target's custom-object store for checkpoints, logging callbacks.

    Raises:
        ConfigurationError: If credentials for either project are missing
    """
    source_credentials = settings.credentials_for(ClientSide.SOURCE)
    target_credentials = settings.credentials_for(ClientSide.TARGET)

    source_client = CommerceClient(source_credentials, timeout=settings.HTTP_TIMEOUT_SECONDS)
    target_client = CommerceClient(target_credentials, timeout=settings.HTTP_TIMEOUT_SECONDS)

    progress_store = ProgressStore(
        CustomObjectStore(target_client),
        source_project_key=source_credentials.project_key,
        runner_name=runner_name or settings.RUNNER_NAME,
        namespace=settings.CHECKPOINT_NAMESPACE
    )
    return Syncer(
        source=CommercePlatform(source_client),
        target=CommercePlatform(target_client),
        strategy=get_strategy(resource_type),
        progress_store=progress_store,
        options=build_options(settings)
    )

# project_sync/cli/run_sync.py
import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import List

import click
from dotenv import load_dotenv

from project_sync import __version__
from project_sync.core.config import Settings, get_settings
from project_sync.core.enums import ResourceType
from project_sync.core.exceptions import ConfigurationError
from project_sync.core.logging_config import configure_logging
from project_sync.scheduler import run_scheduled
from project_sync.services.syncer import SyncRunResult, build_syncer

load_dotenv()

logger = logging.getLogger(__name__)

# Categories first: products reference them
SYNC_ORDER = [ResourceType.CATEGORIES, ResourceType.PRODUCTS]


def resolve_resource_types(sync_type: str) -> List[ResourceType]:
    if sync_type == "all":
        return list(SYNC_ORDER)
    return [ResourceType(sync_type)]


def _install_signal_handlers(cancel_event: asyncio.Event):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform (e.g. Windows); Ctrl+C raises KeyboardInterrupt instead
            pass


async def run_once(
    resource_types: List[ResourceType],
    settings: Settings,
    runner_name: str,
    full_sync: bool,
    cancel_event: asyncio.Event
) -> List[SyncRunResult]:
    """Run the syncers one after the other; stop early when cancelled or aborted"""
    # Build everything first so configuration problems surface before any work starts
    syncers = [build_syncer(resource_type, settings, runner_name) for resource_type in resource_types]

    results = []
    for syncer in syncers:
        if cancel_event.is_set():
            break
        result = await syncer.run(full_sync=full_sync, cancel_event=cancel_event)
        results.append(result)
        if result.aborted:
            logger.error(f"{result.resource_type.value} sync aborted: {result.error}")
            break
    return results


def print_results(results: List[SyncRunResult]):
    for result in results:
        click.echo(f"\n[{result.resource_type.value}] {result.status.value}")
        click.echo(result.statistics.report_message())
        if result.checkpoint:
            click.echo(f"Checkpoint: {result.checkpoint.last_processed_timestamp.isoformat()}")
        if result.error:
            click.echo(f"Error: {result.error}")


async def _main(sync_type: str, runner_name: str, full_sync: bool, scheduled: bool, settings: Settings) -> int:
    cancel_event = asyncio.Event()
    _install_signal_handlers(cancel_event)
    resource_types = resolve_resource_types(sync_type)

    if not scheduled:
        results = await run_once(resource_types, settings, runner_name, full_sync, cancel_event)
        print_results(results)
        return 1 if any(result.aborted for result in results) else 0

    running = asyncio.Lock()

    async def scheduled_task():
        async with running:
            results = await run_once(resource_types, settings, runner_name, full_sync, cancel_event)
            print_results(results)

    # Validate configuration up front instead of failing on the first tick
    for resource_type in resource_types:
        build_syncer(resource_type, settings, runner_name)

    await run_scheduled(scheduled_task, settings.SYNC_SCHEDULE, stop_event=cancel_event)
    # Let an in-flight run drain its current page
    async with running:
        pass
    return 0


@click.command()
@click.option('-s', '--sync', 'sync_type', required=True,
              type=click.Choice(['products', 'categories', 'all']),
              help='Resource type to sync; "all" syncs categories, then products')
@click.option('-r', '--runner-name', default=None,
              help='Name of this runner; separates checkpoints of independent runners (default: RUNNER_NAME)')
@click.option('-f', '--full', 'full_sync', is_flag=True,
              help='Ignore stored checkpoints and sync every source resource')
@click.option('--schedule', 'scheduled', is_flag=True,
              help='Keep running and sync on SYNC_SCHEDULE (cron syntax); also enabled by SYNC_SCHEDULE_ENABLED')
@click.version_option(__version__)
def run_sync(sync_type, runner_name, full_sync, scheduled):
    """Sync catalog resources from the source project into the target project"""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    start_time = datetime.now()
    logger.info(f"Starting project sync ({sync_type}) at {start_time}")

    runner_name = runner_name or settings.RUNNER_NAME
    scheduled = scheduled or settings.SYNC_SCHEDULE_ENABLED

    try:
        exit_code = asyncio.run(_main(sync_type, runner_name, full_sync, scheduled, settings))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        click.echo(f"Configuration error: {str(e)}", err=True)
        sys.exit(2)

    logger.info(f"Completed project sync in {datetime.now() - start_time}")
    sys.exit(exit_code)


if __name__ == "__main__":
    run_sync()

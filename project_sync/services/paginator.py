"""
Sequential, cursor-based page retrieval from the source collection.
"""

import logging
from typing import Any, AsyncIterator, Dict, List

from project_sync.core.exceptions import PageFetchError, TransientNetworkError
from project_sync.core.utils import retry_transient
from project_sync.integrations.base import QueryFilter, ResourceCollection

logger = logging.getLogger(__name__)


class Paginator:
    """
    Streams pages of raw resources until the collection reports no next cursor.

    A page that keeps failing transiently is never skipped: once the retries
    are exhausted PageFetchError is raised and the run has to stop, otherwise
    the checkpoint could move past resources that were never read.
    """

    def __init__(self, collection: ResourceCollection, max_attempts: int = 3, backoff_seconds: float = 1.0):
        self.collection = collection
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    async def pages(self, resource_type: str, query_filter: QueryFilter) -> AsyncIterator[List[Dict[str, Any]]]:
        cursor = None
        page_number = 0

        while True:
            page_number += 1
            try:
                page = await retry_transient(
                    lambda: self.collection.fetch_page(resource_type, query_filter, cursor),
                    max_attempts=self.max_attempts,
                    backoff_seconds=self.backoff_seconds,
                    description=f"Fetching {resource_type} page {page_number}"
                )
            except TransientNetworkError as e:
                raise PageFetchError(f"Could not fetch {resource_type} page {page_number}: {e}") from e

            logger.debug(f"Page {page_number}: {len(page.items)} {resource_type}")
            if page.items:
                yield page.items

            if page.next_cursor is None:
                break
            cursor = page.next_cursor

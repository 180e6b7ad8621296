"""
Resumable progress tracking.

One checkpoint per (runner, resource type), stored in the target project
under ``{namespace}.{runner_name}.{resource_type}`` with the source project
key as the object key. Writes use the version read last; a version conflict
means another run is writing the same checkpoint.
"""

import logging
from typing import Dict, Optional, Tuple

from project_sync.core.exceptions import CheckpointConflictError, VersionConflictError
from project_sync.integrations.base import KeyValueStore, NamespacedKey
from project_sync.schemas.progress import ProgressCheckpoint

logger = logging.getLogger(__name__)


class ProgressStore:

    def __init__(self, store: KeyValueStore, source_project_key: str, runner_name: str, namespace: str = "project-sync"):
        self.store = store
        self.source_project_key = source_project_key
        self.runner_name = runner_name
        self.namespace = namespace
        self._last_written: Dict[str, ProgressCheckpoint] = {}

    def key_for(self, resource_type: str) -> NamespacedKey:
        return NamespacedKey(
            container=f"{self.namespace}.{self.runner_name}.{resource_type}",
            key=self.source_project_key
        )

    async def get(self, resource_type: str) -> Tuple[Optional[ProgressCheckpoint], Optional[int]]:
        """Return the stored checkpoint and its version, (None, None) on a first run"""
        stored = await self.store.get(self.key_for(resource_type))
        if stored is None:
            logger.info(f"No checkpoint for {resource_type} (runner {self.runner_name}), starting from scratch")
            return None, None

        checkpoint = ProgressCheckpoint.from_payload(stored.value)
        self._last_written[resource_type] = checkpoint
        logger.info(f"Resuming {resource_type} from checkpoint {checkpoint.last_processed_timestamp.isoformat()}")
        return checkpoint, stored.version

    async def set(self, resource_type: str, checkpoint: ProgressCheckpoint, expected_version: Optional[int]) -> int:
        """
        Persist a checkpoint.

        Returns:
            The new version, to be passed as expected_version on the next write

        Raises:
            ValueError: If the timestamp would move backwards
            CheckpointConflictError: If another run changed the checkpoint
        """
        previous = self._last_written.get(resource_type)
        if previous and checkpoint.last_processed_timestamp < previous.last_processed_timestamp:
            raise ValueError(
                f"Checkpoint for {resource_type} cannot move back from "
                f"{previous.last_processed_timestamp.isoformat()} to {checkpoint.last_processed_timestamp.isoformat()}"
            )

        try:
            stored = await self.store.set(self.key_for(resource_type), checkpoint.to_payload(), expected_version)
        except VersionConflictError as e:
            raise CheckpointConflictError(
                f"Checkpoint for {resource_type} was modified by another run (runner {self.runner_name})"
            ) from e

        self._last_written[resource_type] = checkpoint
        logger.debug(f"Checkpoint for {resource_type} now {checkpoint.last_processed_timestamp.isoformat()} (v{stored.version})")
        return stored.version

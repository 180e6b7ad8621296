"""
Reference resolution: rewrites id-based references into key-based ones.

Source resources reference other resources by source ids, which mean nothing
on the target. Before a draft is built every reference is replaced by
``{"typeId": ..., "key": ...}``; target snapshots get the same treatment so
the diff compares keys with keys.

Lookups are memoized for the lifetime of one resolver, i.e. one run.
``prepare()`` warms the memo for a whole page with concurrent lookups, after
which ``resolve()`` is a pure function of the raw resource.
"""

import asyncio
import copy
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from project_sync.core.enums import ReferenceType
from project_sync.core.exceptions import PlatformAPIError, ReferenceResolutionError, TransientNetworkError
from project_sync.core.utils import parse_timestamp, retry_transient
from project_sync.integrations.base import ResourceCollection
from project_sync.schemas.resources import ResourceDraft, ResourceSnapshot

if TYPE_CHECKING:
    from project_sync.services.strategies import ResourceStrategy

logger = logging.getLogger(__name__)

SUPPORTED_TYPE_IDS = {reference_type.value for reference_type in ReferenceType}


def is_reference(value: Any) -> bool:
    return isinstance(value, dict) and "typeId" in value and ("id" in value or "key" in value)


def iter_references(value: Any) -> Iterator[Dict[str, Any]]:
    """Yield every reference dict nested anywhere inside value"""
    if is_reference(value):
        yield value
    elif isinstance(value, dict):
        for nested in value.values():
            yield from iter_references(nested)
    elif isinstance(value, list):
        for nested in value:
            yield from iter_references(nested)


class ReferenceResolver:

    def __init__(
        self,
        source: ResourceCollection,
        target: ResourceCollection,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        concurrency: int = 10
    ):
        self.source = source
        self.target = target
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        # Lookups share the per-resource concurrency limit
        self._semaphore = asyncio.Semaphore(concurrency)

        # typeId -> source id -> key (None when the id does not exist or has no key)
        self._source_keys: Dict[str, Dict[str, Optional[str]]] = defaultdict(dict)
        # typeId -> target id -> key
        self._target_keys: Dict[str, Dict[str, Optional[str]]] = defaultdict(dict)
        # typeId -> key -> exists on target
        self._target_has_key: Dict[str, Dict[str, bool]] = defaultdict(dict)
        # (typeId, id or key) lookups that kept failing transiently; never memoized as missing
        self._failed_lookups: Set[Tuple[str, str]] = set()

    def clear(self):
        """Drop the memo; a new run starts from nothing"""
        self._source_keys.clear()
        self._target_keys.clear()
        self._target_has_key.clear()
        self._failed_lookups.clear()

    async def _lookup(self, collection: ResourceCollection, type_id: str, lookup: str, by_key: bool) -> Optional[Dict[str, Any]]:
        endpoint = ReferenceType(type_id).endpoint
        fetch = collection.fetch_by_key if by_key else collection.fetch_by_id
        async with self._semaphore:
            return await retry_transient(
                lambda: fetch(endpoint, lookup),
                max_attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds,
                description=f"Looking up {type_id} {lookup}"
            )

    async def _load_source_key(self, type_id: str, reference_id: str):
        try:
            resource = await self._lookup(self.source, type_id, reference_id, by_key=False)
        except PlatformAPIError:
            self._failed_lookups.add((type_id, reference_id))
            return
        self._failed_lookups.discard((type_id, reference_id))
        self._source_keys[type_id][reference_id] = resource.get("key") if resource else None

    async def _load_target_presence(self, type_id: str, key: str):
        try:
            resource = await self._lookup(self.target, type_id, key, by_key=True)
        except PlatformAPIError:
            self._failed_lookups.add((type_id, key))
            return
        self._failed_lookups.discard((type_id, key))
        self._target_has_key[type_id][key] = resource is not None
        if resource is not None:
            self._target_keys[type_id][resource["id"]] = key

    def mark_present(self, type_id: str, key: str, target_id: Optional[str] = None):
        """Record a resource created on the target during this run"""
        self._target_has_key[type_id][key] = True
        self._failed_lookups.discard((type_id, key))
        if target_id:
            self._target_keys[type_id][target_id] = key

    async def _load_target_key(self, type_id: str, reference_id: str):
        try:
            resource = await self._lookup(self.target, type_id, reference_id, by_key=False)
        except PlatformAPIError:
            # Snapshot rewriting is best effort, the id form is kept
            return
        key = resource.get("key") if resource else None
        self._target_keys[type_id][reference_id] = key
        if key:
            self._target_has_key[type_id][key] = True

    def _supported(self, type_id: str) -> bool:
        return type_id in SUPPORTED_TYPE_IDS

    async def prepare(self, raw_items: Iterable[Dict[str, Any]]):
        """
        Warm the memo for every reference found in raw_items.

        Keys found missing on the target are checked again on every page,
        they may have been created in the meantime.
        """
        page_ids: Set[Tuple[str, str]] = set()
        page_keys: Set[Tuple[str, str]] = set()
        for raw in raw_items:
            for reference in iter_references(raw):
                type_id = reference["typeId"]
                if not self._supported(type_id):
                    continue
                reference_id = reference.get("id")
                expanded_key = (reference.get("obj") or {}).get("key")
                if reference_id is None:
                    page_keys.add((type_id, reference["key"]))
                    continue
                if expanded_key:
                    self._source_keys[type_id].setdefault(reference_id, expanded_key)
                page_ids.add((type_id, reference_id))

        source_ids = [(t, i) for t, i in page_ids if i not in self._source_keys[t]]
        if source_ids:
            logger.debug(f"Looking up {len(source_ids)} referenced ids on source")
            await asyncio.gather(*[self._load_source_key(t, i) for t, i in source_ids])

        for type_id, reference_id in page_ids:
            key = self._source_keys[type_id].get(reference_id)
            if key:
                page_keys.add((type_id, key))
        target_keys = [(t, k) for t, k in page_keys if not self._target_has_key[t].get(k)]
        if target_keys:
            logger.debug(f"Checking {len(target_keys)} referenced keys on target")
            await asyncio.gather(*[self._load_target_presence(t, k) for t, k in target_keys])

    def _resolve_reference(self, reference: Dict[str, Any]) -> Dict[str, str]:
        type_id = reference["typeId"]
        if not self._supported(type_id):
            raise ReferenceResolutionError(
                f"Unsupported reference type '{type_id}'", type_id=type_id, reference_id=reference.get("id")
            )

        reference_id = reference.get("id")
        if reference_id is None:
            key = reference["key"]
        else:
            if (type_id, reference_id) in self._failed_lookups:
                raise TransientNetworkError(f"Lookup of {type_id} {reference_id} failed on source")
            if reference_id not in self._source_keys[type_id]:
                raise ReferenceResolutionError(
                    f"Reference {type_id} {reference_id} was not prepared", type_id=type_id, reference_id=reference_id
                )
            key = self._source_keys[type_id][reference_id]
            if not key:
                raise ReferenceResolutionError(
                    f"Referenced {type_id} with id '{reference_id}' does not exist on source or has no key",
                    type_id=type_id, reference_id=reference_id
                )

        if (type_id, key) in self._failed_lookups:
            raise TransientNetworkError(f"Lookup of {type_id} '{key}' failed on target")
        if not self._target_has_key[type_id].get(key):
            raise ReferenceResolutionError(
                f"Referenced {type_id} with key '{key}' does not exist on target (not synced yet?)",
                type_id=type_id, reference_id=reference_id
            )
        return {"typeId": type_id, "key": key}

    def _rewrite(self, value: Any) -> Any:
        if is_reference(value):
            return self._resolve_reference(value)
        if isinstance(value, dict):
            return {name: self._rewrite(nested) for name, nested in value.items()}
        if isinstance(value, list):
            return [self._rewrite(nested) for nested in value]
        return copy.deepcopy(value)

    def resolve(self, raw: Dict[str, Any], strategy: "ResourceStrategy") -> ResourceDraft:
        """
        Build the draft for one raw source resource.

        Raises:
            ReferenceResolutionError: If any reference cannot be rewritten
            TransientNetworkError: If a needed lookup failed during prepare()
        """
        data = {
            field: self._rewrite(raw[field])
            for field in strategy.draft_fields
            if field in raw
        }
        return ResourceDraft(
            resource_type=strategy.resource_type,
            key=raw["key"],
            data=data,
            publish=raw.get("published") if strategy.tracks_publish else None,
            last_modified_at=parse_timestamp(raw.get("lastModifiedAt"))
        )

    def _rewrite_target(self, value: Any) -> Any:
        if is_reference(value) and value.get("id") and self._supported(value["typeId"]):
            key = self._target_keys[value["typeId"]].get(value["id"])
            if key:
                return {"typeId": value["typeId"], "key": key}
            return {"typeId": value["typeId"], "id": value["id"]}
        if isinstance(value, dict):
            return {name: self._rewrite_target(nested) for name, nested in value.items()}
        if isinstance(value, list):
            return [self._rewrite_target(nested) for nested in value]
        return copy.deepcopy(value)

    async def to_snapshot(self, raw: Dict[str, Any], strategy: "ResourceStrategy") -> ResourceSnapshot:
        """Build the snapshot of a raw target resource, rewriting its references to keys where known"""
        missing: List[Tuple[str, str]] = []
        for reference in iter_references(raw):
            type_id, reference_id = reference["typeId"], reference.get("id")
            if reference_id and self._supported(type_id) and reference_id not in self._target_keys[type_id]:
                missing.append((type_id, reference_id))
        if missing:
            await asyncio.gather(*[self._load_target_key(t, i) for t, i in set(missing)])

        data = {
            field: self._rewrite_target(raw[field])
            for field in strategy.draft_fields
            if field in raw
        }
        return ResourceSnapshot(
            resource_type=strategy.resource_type,
            id=raw["id"],
            key=raw["key"],
            version=raw["version"],
            data=data,
            published=bool(raw.get("published", False)),
            has_staged_changes=bool(raw.get("hasStagedChanges", False)),
            last_modified_at=parse_timestamp(raw.get("lastModifiedAt"))
        )

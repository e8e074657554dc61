"""
Ephemeral result snapshots.

Parks heavy query results under an opaque id so a UI can page and sort them
later without re-running the query. Entries expire after a TTL and the oldest
entry is evicted when the cache is full. Nothing is persisted.
"""

import copy
import functools
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from numbers import Number
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from shared.utils.config import settings
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

Payload = Union[List[Any], Dict[str, Any]]
Clock = Callable[[], datetime]

SORT_ORDERS = ("asc", "desc")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SnapshotEntry:
    """A cached result set; never updated in place."""
    id: str
    created_at: datetime
    payload: Payload
    summary: Dict[str, Any] = field(default_factory=dict)
    config: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "payload": self.payload,
            "summary": self.summary,
            "config": self.config,
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _sort_value(item: Any, sort_key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(sort_key)
    return getattr(item, sort_key, None)


def _compare(a: Any, b: Any, sort_key: str, descending: bool) -> int:
    """Numeric when both values are numbers, lexical otherwise; missing values last."""
    value_a, value_b = _sort_value(a, sort_key), _sort_value(b, sort_key)

    if value_a is None and value_b is None:
        return 0
    if value_a is None:
        return 1
    if value_b is None:
        return -1

    if not (_is_number(value_a) and _is_number(value_b)):
        value_a, value_b = str(value_a), str(value_b)

    if value_a == value_b:
        return 0
    result = -1 if value_a < value_b else 1
    return -result if descending else result


def sort_rows(rows: List[Any], sort_key: str, sort_order: str = "asc") -> List[Any]:
    """Sorted copy of rows; the input list is left untouched."""
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"Invalid sort order: {sort_order!r}. Allowed: asc, desc")
    descending = sort_order == "desc"
    return sorted(
        rows,
        key=functools.cmp_to_key(lambda a, b: _compare(a, b, sort_key, descending)),
    )


class SnapshotCache:
    """
    In-memory snapshot cache.

    Features:
    - TTL-based expiration, checked on read
    - FIFO eviction of the earliest-inserted entry on overflow (no access tracking)
    - Paginated and sorted retrieval
    - Thread-safe operations

    Example:
        >>> cache = SnapshotCache(max_entries=50, ttl_seconds=600)
        >>> snapshot_id = cache.save_snapshot(rows, {"count": len(rows)})
        >>> cache.get_snapshot_data(snapshot_id, skip=0, limit=20, sort_key="interactions")
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
        clock: Optional[Clock] = None,
        id_factory: Optional[Callable[[], str]] = None
    ):
        """
        Initialize cache.

        Args:
            max_entries: Capacity before FIFO eviction (defaults to settings)
            ttl_seconds: Time-to-live for entries (defaults to settings)
            clock: Returns the current aware datetime
            id_factory: Generates snapshot ids
        """
        if max_entries is None:
            max_entries = settings.SNAPSHOT_MAX_ENTRIES
        if ttl_seconds is None:
            ttl_seconds = settings.SNAPSHOT_TTL_SECONDS
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")

        self.max_entries = max_entries
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utc_now
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._entries: "OrderedDict[str, SnapshotEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def save_snapshot(
        self,
        payload: Payload,
        summary: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Store a result set and return its id.

        Args:
            payload: Heavy result (list of rows or keyed object)
            summary: Small digest of the payload
            config: Optional UI configuration rendered against the payload

        Returns:
            Snapshot id
        """
        with self._lock:
            snapshot_id = self._id_factory()
            while snapshot_id in self._entries:
                snapshot_id = self._id_factory()

            if len(self._entries) >= self.max_entries:
                evicted_id, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.info(f"Snapshot evicted (capacity {self.max_entries}): {evicted_id}")

            self._entries[snapshot_id] = SnapshotEntry(
                id=snapshot_id,
                created_at=self._clock(),
                payload=copy.deepcopy(payload),
                summary=copy.deepcopy(summary) or {},
                config=copy.deepcopy(config),
            )

        logger.info(f"Created snapshot {snapshot_id}")
        return snapshot_id

    def get_snapshot(self, snapshot_id: str) -> Optional[SnapshotEntry]:
        """
        Get a snapshot.

        Args:
            snapshot_id: Snapshot id

        Returns:
            A copy of the entry, or None if unknown, expired or evicted
        """
        entry = self._live_entry(snapshot_id)
        if entry is None:
            return None
        return replace(
            entry,
            payload=copy.deepcopy(entry.payload),
            summary=copy.deepcopy(entry.summary),
            config=copy.deepcopy(entry.config),
        )

    def _live_entry(self, snapshot_id: str) -> Optional[SnapshotEntry]:
        """Stored entry after the expiry check; callers must not hand it out."""
        with self._lock:
            entry = self._entries.get(snapshot_id)
            if entry is None:
                self.misses += 1
                logger.info(f"Snapshot miss: {snapshot_id}")
                return None

            if self._clock() - entry.created_at > self.ttl:
                del self._entries[snapshot_id]
                self.misses += 1
                self.expirations += 1
                logger.info(f"Snapshot expired: {snapshot_id}")
                return None

            self.hits += 1
            logger.debug(f"Snapshot hit: {snapshot_id}")
            return entry

    def get_snapshot_data(
        self,
        snapshot_id: str,
        skip: Optional[int] = None,
        limit: Optional[int] = None,
        sort_key: Optional[str] = None,
        sort_order: str = "asc",
        key: Optional[str] = None
    ) -> Optional[Any]:
        """
        Get a snapshot's payload, optionally sorted and paginated.

        Args:
            snapshot_id: Snapshot id
            skip: Rows to skip (>= 0)
            limit: Page size (> 0); defaults to all remaining rows
            sort_key: Row field to sort by
            sort_order: "asc" or "desc"
            key: Property of a keyed payload holding the rows to page

        Returns:
            A copy of the payload when no paging/sorting is asked for or it holds
            no rows; otherwise ``{"data": [...], "pagination": {...}}``; None when
            the snapshot is unavailable
        """
        entry = self._live_entry(snapshot_id)
        if entry is None:
            return None

        data: Any = entry.payload
        if key is not None and isinstance(data, Mapping) and key in data:
            data = data[key]

        if not isinstance(data, list):
            return copy.deepcopy(data)

        if skip is None and limit is None and sort_key is None:
            return copy.deepcopy(data)

        if skip is not None and skip < 0:
            raise ValueError("skip must be >= 0")
        if limit is not None and limit <= 0:
            raise ValueError("limit must be > 0")

        rows = sort_rows(data, sort_key, sort_order) if sort_key else list(data)
        total = len(rows)
        start = skip or 0
        page_size = limit if limit is not None else total

        return {
            "data": copy.deepcopy(rows[start:start + page_size]),
            "pagination": {
                "total": total,
                "skip": start,
                "limit": page_size,
            },
        }

    def purge_expired(self) -> int:
        """Remove all expired entries; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [
                snapshot_id for snapshot_id, entry in self._entries.items()
                if now - entry.created_at > self.ttl
            ]
            for snapshot_id in expired:
                del self._entries[snapshot_id]
            self.expirations += len(expired)

        if expired:
            logger.info(f"Purged {len(expired)} expired snapshots")
        return len(expired)

    def clear(self):
        """Clear all snapshots and counters."""
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0
            self.expirations = 0
        logger.info("Snapshot cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        with self._lock:
            total_requests = self.hits + self.misses
            hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0

            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": int(self.ttl.total_seconds()),
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "expirations": self.expirations,
                "hit_rate_percent": round(hit_rate, 2),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

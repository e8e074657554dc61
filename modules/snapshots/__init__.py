"""
Snapshot Module.

Volatile, capacity-bounded cache for heavy query results, addressed by an
opaque id and read back page by page.
"""

from modules.snapshots.snapshot_cache import SnapshotCache, SnapshotEntry, sort_rows

__all__ = [
    "SnapshotCache",
    "SnapshotEntry",
    "sort_rows",
]

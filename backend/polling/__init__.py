"""
Polling change detection for inFlow Inventory.

Each polling job watches one (resource, action) pair. On every cycle the
detector fetches one page of the watched collection, diffs it against the
job's checkpoint and emits created / updated / status-transition /
inventory-changed events.

Usage:
    from polling import ChangeDetector, InMemoryCheckpointStore, PollJobConfig

    detector = ChangeDetector(client, InMemoryCheckpointStore())
    job = PollJobConfig(event="salesOrder.fulfilled")
    items = await detector.poll(job)  # None on bootstrap / no changes
"""

from polling.detector import ChangeDetector, PollResult, PollStatus
from polling.models import (
    Checkpoint,
    EmittedEvent,
    PollJobConfig,
    PollOptions,
    ResourceState,
    SnapshotItem,
    UnsupportedWatchEventError,
    WatchedEvent,
)
from polling.snapshot import SnapshotFetcher
from polling.store import CheckpointStore, FileCheckpointStore, InMemoryCheckpointStore
from polling.watchers import ResourceWatcher, get_watcher, register_watcher

__all__ = [
    "ChangeDetector",
    "PollResult",
    "PollStatus",
    "Checkpoint",
    "EmittedEvent",
    "PollJobConfig",
    "PollOptions",
    "ResourceState",
    "SnapshotItem",
    "UnsupportedWatchEventError",
    "WatchedEvent",
    "SnapshotFetcher",
    "CheckpointStore",
    "FileCheckpointStore",
    "InMemoryCheckpointStore",
    "ResourceWatcher",
    "get_watcher",
    "register_watcher",
]

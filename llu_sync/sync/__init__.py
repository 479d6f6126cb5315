"""Sync core: normalization, the sync run, wearable mirroring and scheduling."""

from llu_sync.sync.normalizer import normalize_measurement, resolve_timestamp
from llu_sync.sync.orchestrator import SyncWorker, run_sync_once
from llu_sync.sync.scheduler import SyncScheduler
from llu_sync.sync.wearable import WearableMirror

__all__ = [
    "normalize_measurement",
    "resolve_timestamp",
    "SyncWorker",
    "run_sync_once",
    "SyncScheduler",
    "WearableMirror",
]

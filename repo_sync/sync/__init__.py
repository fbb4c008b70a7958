"""Synchronization components for reconciling a remote tree against a host snapshot."""

from repo_sync.sync.change_detector import ChangeDetector
from repo_sync.sync.identifiers import IdentifierCodec
from repo_sync.sync.models import ChangeSet, FetchFailure, FetchResult, SyncReport
from repo_sync.sync.path_filter import PathFilter
from repo_sync.sync.scheduler import UpdateScheduler, parse_interval
from repo_sync.sync.snapshot_fetcher import SnapshotFetcher
from repo_sync.sync.sync_coordinator import SyncCoordinator, reconcile

__all__ = [
    "ChangeDetector",
    "ChangeSet",
    "FetchFailure",
    "FetchResult",
    "IdentifierCodec",
    "PathFilter",
    "SnapshotFetcher",
    "SyncCoordinator",
    "SyncReport",
    "UpdateScheduler",
    "parse_interval",
    "reconcile",
]

"""Incremental sync of GitHub repository files into a downstream store."""

from repo_sync.exceptions import (
    ConfigurationError,
    InvalidIdentifierError,
    RefNotFoundError,
    RepoSyncError,
    TransportError,
)
from repo_sync.shop import GitHubRepoShop
from repo_sync.sync.sync_coordinator import SyncCoordinator, reconcile

__all__ = [
    "ConfigurationError",
    "GitHubRepoShop",
    "InvalidIdentifierError",
    "RefNotFoundError",
    "RepoSyncError",
    "SyncCoordinator",
    "TransportError",
    "reconcile",
]

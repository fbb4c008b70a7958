"""Data models for the GitHub repository sync engine."""

from repo_sync.models.config import (
    AppConfig,
    GitHubConfig,
    LoggingConfig,
    ShopConfig,
)
from repo_sync.models.document import (
    deleted_file_ids,
    to_langchain_document,
    to_langchain_documents,
)
from repo_sync.models.source import (
    ChangeAction,
    ChangeOperation,
    CommitInfo,
    PriorFileRecord,
    RemoteFileEntry,
    SourceRef,
    TreeEntry,
)

__all__ = [
    "AppConfig",
    "GitHubConfig",
    "LoggingConfig",
    "ShopConfig",
    "SourceRef",
    "TreeEntry",
    "RemoteFileEntry",
    "PriorFileRecord",
    "CommitInfo",
    "ChangeAction",
    "ChangeOperation",
    "to_langchain_document",
    "to_langchain_documents",
    "deleted_file_ids",
]

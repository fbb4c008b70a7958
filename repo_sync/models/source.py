"""Pydantic models for remote source trees, snapshots and change operations."""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from repo_sync.exceptions import ConfigurationError

GITHUB_URL_PATTERN = re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(\.git)?$", re.IGNORECASE)


class SourceRef(BaseModel):
    """Identifies one remote tree: owner, repository and branch/ref."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(default=..., min_length=1, description="Repository owner or namespace")
    repo: str = Field(default=..., min_length=1, description="Repository name")
    branch: str = Field(default=..., min_length=1, description="Branch or ref to reconcile")
    repo_url: str = Field(default=..., description="Canonical browser URL of the repository")

    @classmethod
    def from_url(cls, url: str, branch: str) -> "SourceRef":
        """Build a SourceRef from a configured repository URL.

        Accepts https and ssh style URLs, with or without a ``.git`` suffix.

        Raises:
            ConfigurationError: If the URL cannot be parsed
        """
        match = GITHUB_URL_PATTERN.search(url.strip().rstrip("/"))
        if not match or not branch:
            raise ConfigurationError(f"Invalid GitHub repo URL: {url}")

        owner, repo = match.group(1), match.group(2)
        return cls(
            owner=owner,
            repo=repo,
            branch=branch,
            repo_url=f"https://github.com/{owner}/{repo}",
        )

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.branch}"


class TreeEntry(BaseModel):
    """A single entry of a recursive tree listing."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(default=..., min_length=1)
    type: str = Field(default="blob", description="blob, tree or commit")
    content_id: str = Field(default=..., description="Blob SHA used to retrieve content")

    @property
    def is_blob(self) -> bool:
        return self.type == "blob"


class RemoteFileEntry(BaseModel):
    """A file of the current snapshot with its raw content."""

    model_config = ConfigDict(frozen=True)

    path: str
    identifier: str
    raw_content: str


class PriorFileRecord(BaseModel):
    """Host knowledge of a previously ingested file."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    last_seen_timestamp: int = Field(default=..., description="Epoch milliseconds")


class CommitInfo(BaseModel):
    """Most recent modification record for a path or a ref."""

    model_config = ConfigDict(frozen=True)

    revision_id: str = Field(default=..., min_length=1, description="Commit SHA")
    timestamp: int = Field(default=..., description="Commit time in epoch milliseconds")


class ChangeAction(str, Enum):
    """Operation kinds emitted by a reconciliation cycle."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


class ChangeOperation(BaseModel):
    """A single operation for the downstream consumer."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    action: ChangeAction
    content: str | None = None
    path: str | None = Field(default=None, description="Remote path, when known")
    modified_at: int | None = Field(
        default=None,
        description="Timestamp the host should record for the next cycle (epoch ms)",
    )

    @model_validator(mode="after")
    def check_content_matches_action(self) -> "ChangeOperation":
        if self.action is ChangeAction.DELETE and self.content is not None:
            raise ValueError("delete operations carry no content")
        if self.action is not ChangeAction.DELETE and self.content is None:
            raise ValueError(f"{self.action.value} operations require content")
        return self

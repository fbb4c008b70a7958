"""Data models for synchronization operations."""

from datetime import datetime

from pydantic import BaseModel, Field

from repo_sync.models.source import ChangeAction, ChangeOperation, RemoteFileEntry


class FetchFailure(BaseModel):
    """A file whose content could not be retrieved."""

    path: str
    content_id: str
    reason: str


class FetchResult(BaseModel):
    """Outcome of a snapshot fetch.

    Every filtered tree entry ends up either in ``entries`` or in ``failures``.
    """

    entries: dict[str, RemoteFileEntry] = Field(
        default_factory=dict, description="Successfully fetched files keyed by path"
    )
    failures: list[FetchFailure] = Field(
        default_factory=list, description="Files dropped because content retrieval failed"
    )

    @property
    def total(self) -> int:
        return len(self.entries) + len(self.failures)

    @property
    def dropped(self) -> int:
        return len(self.failures)

    @property
    def complete(self) -> bool:
        """False when the snapshot is best-effort."""
        return not self.failures


class ChangeSet(BaseModel):
    """Operations produced by the diff phases, grouped by phase."""

    orphaned: list[ChangeOperation] = Field(
        default_factory=list, description="Deletes for identifiers that could not be decoded"
    )
    deleted: list[ChangeOperation] = Field(
        default_factory=list, description="Deletes for paths absent from the current snapshot"
    )
    added: list[ChangeOperation] = Field(
        default_factory=list, description="Files new to the host"
    )
    updated: list[ChangeOperation] = Field(
        default_factory=list, description="Known files modified since last seen"
    )
    failed_lookups: list[str] = Field(
        default_factory=list, description="Paths whose commit lookup failed"
    )
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.orphaned or self.deleted or self.added or self.updated)

    @property
    def total_changes(self) -> int:
        return len(self.orphaned) + len(self.deleted) + len(self.added) + len(self.updated)

    def to_operations(self) -> dict[str, ChangeOperation]:
        """Merge all phases into the identifier-keyed result map."""
        operations: dict[str, ChangeOperation] = {}
        for operation in [*self.orphaned, *self.deleted, *self.added, *self.updated]:
            if operation.identifier in operations:
                raise ValueError(f"Identifier resolved twice: {operation.identifier}")
            operations[operation.identifier] = operation
        return operations


class SyncReport(BaseModel):
    """Report of one reconciliation cycle."""

    repo: str = Field(..., description="owner/repo that was synced")
    branch: str = Field(..., description="Branch or ref that was synced")
    skipped: bool = Field(default=False, description="True when the interval gate stopped the cycle")
    files_added: int = Field(default=0, ge=0)
    files_updated: int = Field(default=0, ge=0)
    files_deleted: int = Field(default=0, ge=0)
    files_orphaned: int = Field(default=0, ge=0, description="Deletes forced by invalid identifiers")
    files_dropped: int = Field(default=0, ge=0, description="Files excluded after fetch failures")
    failed_lookups: int = Field(default=0, ge=0, description="Commit lookups treated as unchanged")
    duration_seconds: float = Field(default=0.0, ge=0.0)
    start_time: datetime
    end_time: datetime
    warnings: list[str] = Field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return self.files_added + self.files_updated + self.files_deleted

    @property
    def degraded(self) -> bool:
        """True when some units were dropped or treated as unchanged."""
        return self.files_dropped > 0 or self.failed_lookups > 0

    @classmethod
    def count(cls, operations: dict[str, ChangeOperation], action: ChangeAction) -> int:
        return sum(1 for op in operations.values() if op.action is action)

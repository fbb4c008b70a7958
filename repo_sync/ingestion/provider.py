"""Collaborator interface for remote tree and commit metadata access."""

from typing import Protocol, Sequence

from repo_sync.models.source import CommitInfo, SourceRef, TreeEntry


class RemoteTreeProvider(Protocol):
    """What the sync engine needs from a hosting service.

    Implementations raise ``RefNotFoundError`` when the ref does not exist
    and ``TransportError`` for any other upstream failure, including a
    response body they cannot parse.
    """

    def list_tree(self, source: SourceRef) -> Sequence[TreeEntry]:
        """List every entry under the ref, recursively."""
        ...

    def get_content(self, content_id: str, source: SourceRef) -> bytes:
        """Return the raw bytes of a blob."""
        ...

    def get_branch_head(self, source: SourceRef) -> CommitInfo:
        """Return the latest commit of the ref."""
        ...

    def get_last_modification(self, source: SourceRef, path: str) -> CommitInfo | None:
        """Return the latest commit touching ``path``, or None without history."""
        ...

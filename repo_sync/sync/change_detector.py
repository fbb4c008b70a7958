"""Change detection between the host snapshot and the current remote snapshot."""

from collections.abc import Collection, Mapping
from concurrent.futures import ThreadPoolExecutor

import structlog

from repo_sync.exceptions import InvalidIdentifierError, RefNotFoundError, TransportError
from repo_sync.ingestion.provider import RemoteTreeProvider
from repo_sync.models.source import (
    ChangeAction,
    ChangeOperation,
    CommitInfo,
    RemoteFileEntry,
    SourceRef,
)
from repo_sync.processing.content_annotator import ContentAnnotator
from repo_sync.sync.identifiers import IdentifierCodec
from repo_sync.sync.models import ChangeSet

log = structlog.stdlib.get_logger()


class ChangeDetector:
    """Detects orphaned, deleted, added and updated files.

    Each phase is exposed on its own; :meth:`detect_changes` runs them in
    order. An identifier is resolved by at most one phase.
    """

    def __init__(
        self,
        source: SourceRef,
        codec: IdentifierCodec,
        provider: RemoteTreeProvider,
        annotator: ContentAnnotator,
        max_workers: int = 8,
    ):
        """
        Initialize change detector.

        Args:
            source: Repository and ref being reconciled
            codec: Identifier codec bound to the same source
            provider: Source of ref-head and per-path commit metadata
            annotator: Header renderer for emitted content
            max_workers: Upper bound on concurrent commit lookups
        """
        self._source = source
        self._codec = codec
        self._provider = provider
        self._annotator = annotator
        self._max_workers = max_workers

    def detect_changes(
        self,
        snapshot: Mapping[str, RemoteFileEntry],
        prior_records: Mapping[str, int],
        now: int,
        unavailable_paths: Collection[str] = (),
    ) -> ChangeSet:
        """
        Run every diff phase.

        Args:
            snapshot: Current files keyed by path
            prior_records: Host snapshot, identifier -> last seen epoch ms
            now: Cycle time in epoch ms, recorded for additions without
                ref-head metadata
            unavailable_paths: Paths listed upstream whose content could not
                be fetched; known files at these paths are left untouched

        Returns:
            ChangeSet with one entry per changed identifier
        """
        log.info(
            "detecting_changes",
            current_file_count=len(snapshot),
            prior_file_count=len(prior_records),
            unavailable_count=len(unavailable_paths),
        )

        prior_paths, orphaned = self.resolve_prior_paths(prior_records)
        if unavailable_paths:
            unavailable = set(unavailable_paths)
            prior_paths = {
                file_id: path for file_id, path in prior_paths.items() if path not in unavailable
            }
        deleted = self.detect_deleted(prior_paths, snapshot)

        change_set = ChangeSet(orphaned=orphaned, deleted=deleted)

        new_entries = self.new_entries(snapshot, prior_records)
        head = None
        if new_entries and self._annotator.enabled:
            head = self._load_branch_head(change_set.warnings)
        change_set.added = self.detect_added(new_entries, head, now)

        candidates = {
            file_id: path
            for file_id, path in prior_paths.items()
            if path in snapshot and snapshot[path].identifier == file_id
        }
        change_set.updated, change_set.failed_lookups = self.detect_updated(
            candidates, prior_records, snapshot
        )
        if change_set.failed_lookups:
            change_set.warnings.append(
                f"Commit lookup failed for {len(change_set.failed_lookups)} files; "
                f"treated as unchanged"
            )

        log.info(
            "changes_detected",
            orphaned=len(change_set.orphaned),
            deleted=len(change_set.deleted),
            added=len(change_set.added),
            updated=len(change_set.updated),
            failed_lookups=len(change_set.failed_lookups),
            total_changes=change_set.total_changes,
        )
        return change_set

    def resolve_prior_paths(
        self, prior_records: Mapping[str, int]
    ) -> tuple[dict[str, str], list[ChangeOperation]]:
        """
        Decode every prior identifier to its path.

        Returns:
            Tuple of (identifier -> path, forced deletes for identifiers that
            do not decode under the active source)
        """
        prior_paths: dict[str, str] = {}
        orphaned: list[ChangeOperation] = []

        for file_id in prior_records:
            try:
                prior_paths[file_id] = self._codec.decode(file_id)
            except InvalidIdentifierError as e:
                log.warning("orphaned_file_id", file_id=file_id, reason=e.reason)
                orphaned.append(ChangeOperation(identifier=file_id, action=ChangeAction.DELETE))

        return prior_paths, orphaned

    def detect_deleted(
        self, prior_paths: Mapping[str, str], snapshot: Mapping[str, RemoteFileEntry]
    ) -> list[ChangeOperation]:
        """Emit a delete for every prior file whose path is gone."""
        deleted = [
            ChangeOperation(identifier=file_id, action=ChangeAction.DELETE, path=path)
            for file_id, path in prior_paths.items()
            if path not in snapshot
        ]
        log.info("deleted_files_detected", count=len(deleted))
        return deleted

    def new_entries(
        self, snapshot: Mapping[str, RemoteFileEntry], prior_records: Mapping[str, int]
    ) -> list[RemoteFileEntry]:
        return [entry for entry in snapshot.values() if entry.identifier not in prior_records]

    def detect_added(
        self, new_entries: list[RemoteFileEntry], head: CommitInfo | None, now: int
    ) -> list[ChangeOperation]:
        """
        Emit an add for every file new to the host.

        Args:
            new_entries: Files whose identifier the host has not seen
            head: Ref-head commit shared by all additions, if known
            now: Fallback timestamp when head is unknown

        Returns:
            Add operations, annotated with the ref-head commit when available
        """
        added = [
            ChangeOperation(
                identifier=entry.identifier,
                action=ChangeAction.ADD,
                content=self._annotator.render(entry.raw_content, entry.path, head),
                path=entry.path,
                modified_at=head.timestamp if head else now,
            )
            for entry in new_entries
        ]
        log.info("added_files_detected", count=len(added))
        return added

    def detect_updated(
        self,
        candidates: Mapping[str, str],
        prior_records: Mapping[str, int],
        snapshot: Mapping[str, RemoteFileEntry],
    ) -> tuple[list[ChangeOperation], list[str]]:
        """
        Emit an update for known files modified after they were last seen.

        Commit lookups run concurrently. A lookup that fails or finds no
        history leaves the file unchanged.

        Args:
            candidates: identifier -> path for files present in both snapshots
            prior_records: Host snapshot, identifier -> last seen epoch ms
            snapshot: Current files keyed by path

        Returns:
            Tuple of (update operations, paths whose lookup failed)
        """
        if not candidates:
            log.info("no_existing_files_to_check")
            return [], []

        log.info("checking_files_for_modifications", count=len(candidates))

        items = list(candidates.items())
        workers = min(self._max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            lookups = list(executor.map(lambda item: self._lookup(item[1]), items))

        updated: list[ChangeOperation] = []
        failed: list[str] = []
        for (file_id, path), (commit, ok) in zip(items, lookups):
            if not ok:
                failed.append(path)
                continue
            if commit is None or commit.timestamp <= prior_records[file_id]:
                continue

            log.debug(
                "file_modified_detected",
                path=path,
                commit=commit.revision_id,
                commit_timestamp=commit.timestamp,
                last_seen=prior_records[file_id],
            )
            updated.append(
                ChangeOperation(
                    identifier=file_id,
                    action=ChangeAction.UPDATE,
                    content=self._annotator.render(snapshot[path].raw_content, path, commit),
                    path=path,
                    modified_at=commit.timestamp,
                )
            )

        log.info("modified_files_detected", count=len(updated), failed_lookups=len(failed))
        return updated, failed

    def _lookup(self, path: str) -> tuple[CommitInfo | None, bool]:
        try:
            return self._provider.get_last_modification(self._source, path), True
        except TransportError as e:
            log.warning("commit_lookup_failed", path=path, error=str(e))
            return None, False

    def _load_branch_head(self, warnings: list[str]) -> CommitInfo | None:
        try:
            return self._provider.get_branch_head(self._source)
        except (TransportError, RefNotFoundError) as e:
            log.warning("branch_info_unavailable", branch=self._source.branch, error=str(e))
            warnings.append(f"Added files emitted without header: {e}")
            return None

"""Fetching of the current remote snapshot."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

import structlog

from repo_sync.exceptions import TransportError
from repo_sync.ingestion.provider import RemoteTreeProvider
from repo_sync.models.source import RemoteFileEntry, SourceRef, TreeEntry
from repo_sync.sync.identifiers import IdentifierCodec
from repo_sync.sync.models import FetchFailure, FetchResult
from repo_sync.sync.path_filter import PathFilter

log = structlog.stdlib.get_logger()

ProgressCallback = Callable[[int, int], None]


class SnapshotFetcher:
    """Lists a ref and retrieves the content of every included file.

    Content retrieval runs on a bounded thread pool. A failed retrieval drops
    that file and is recorded in the result; failures while listing the tree
    propagate, since a partial listing would turn into spurious deletes.
    """

    def __init__(
        self,
        provider: RemoteTreeProvider,
        path_filter: PathFilter,
        codec: IdentifierCodec,
        max_workers: int = 8,
        progress: ProgressCallback | None = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._provider = provider
        self._path_filter = path_filter
        self._codec = codec
        self._max_workers = max_workers
        self._progress = progress

    def select_entries(self, tree: list[TreeEntry]) -> list[TreeEntry]:
        """Keep blob entries that pass the path filter."""
        return [entry for entry in tree if entry.is_blob and self._path_filter.include(entry.path)]

    def fetch(self, source: SourceRef) -> FetchResult:
        """
        Fetch the current snapshot of a source.

        Args:
            source: Repository and ref to list

        Returns:
            FetchResult with one entry or failure per included file

        Raises:
            RefNotFoundError: If the ref does not exist
            TransportError: If the tree listing fails
        """
        tree = list(self._provider.list_tree(source))
        selected = self.select_entries(tree)
        total = len(selected)

        if total == 0:
            log.info("no_files_matched_patterns", source=str(source), tree_size=len(tree))
            return FetchResult()

        log.info("fetching_files", source=str(source), file_count=total)

        result = FetchResult()
        completed = 0
        with ThreadPoolExecutor(max_workers=min(self._max_workers, total)) as executor:
            futures = [executor.submit(self._fetch_one, source, entry) for entry in selected]
            for future in as_completed(futures):
                outcome = future.result()
                if isinstance(outcome, FetchFailure):
                    result.failures.append(outcome)
                else:
                    result.entries[outcome.path] = outcome
                completed += 1
                self._report_progress(completed, total)

        if result.failures:
            log.warning(
                "files_dropped_from_snapshot",
                source=str(source),
                dropped=result.dropped,
                total=total,
            )

        log.info(
            "snapshot_fetched",
            source=str(source),
            fetched=len(result.entries),
            dropped=result.dropped,
        )
        return result

    def _fetch_one(self, source: SourceRef, entry: TreeEntry) -> RemoteFileEntry | FetchFailure:
        try:
            raw = self._provider.get_content(entry.content_id, source)
        except TransportError as e:
            log.error(
                "content_fetch_failed",
                path=entry.path,
                content_id=entry.content_id,
                error=str(e),
            )
            return FetchFailure(path=entry.path, content_id=entry.content_id, reason=str(e))

        return RemoteFileEntry(
            path=entry.path,
            identifier=self._codec.encode(entry.path),
            raw_content=raw.decode("utf-8", errors="replace"),
        )

    def _report_progress(self, completed: int, total: int) -> None:
        if self._progress is not None:
            self._progress(completed, total)
        log.debug("fetch_progress", completed=completed, total=total)

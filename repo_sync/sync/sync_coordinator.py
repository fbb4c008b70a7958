"""Synchronization coordinator for one reconciliation cycle."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from repo_sync.exceptions import RefNotFoundError, TransportError
from repo_sync.ingestion.provider import RemoteTreeProvider
from repo_sync.models.config import ShopConfig
from repo_sync.models.source import ChangeAction, ChangeOperation, SourceRef
from repo_sync.processing.content_annotator import ContentAnnotator
from repo_sync.sync.change_detector import ChangeDetector
from repo_sync.sync.identifiers import IdentifierCodec
from repo_sync.sync.models import SyncReport
from repo_sync.sync.path_filter import PathFilter
from repo_sync.sync.scheduler import UpdateScheduler, current_time_ms
from repo_sync.sync.snapshot_fetcher import ProgressCallback, SnapshotFetcher

log = structlog.stdlib.get_logger()


class SyncCoordinator:
    """Orchestrates gate, fetch and diff phases for one repository.

    The coordinator never mutates host state: it returns operations and the
    host persists whatever it accepts.
    """

    def __init__(
        self,
        provider: RemoteTreeProvider,
        config: ShopConfig,
        clock: Callable[[], int] = current_time_ms,
        progress: ProgressCallback | None = None,
    ):
        """
        Initialize sync coordinator.

        Args:
            provider: Remote tree, blob and commit metadata access
            config: Immutable per-repository options
            clock: Returns the current time in epoch milliseconds
            progress: Optional callback receiving (completed, total) during fetch
        """
        self._config: ShopConfig = config
        self._source: SourceRef = config.source_ref
        self._scheduler = UpdateScheduler(config.update_interval_ms, clock)
        self._codec = IdentifierCodec(self._source, config.id_scheme)
        self._fetcher = SnapshotFetcher(
            provider,
            PathFilter(config.include, config.ignore),
            self._codec,
            max_workers=config.max_concurrency,
            progress=progress,
        )
        self._change_detector = ChangeDetector(
            self._source,
            self._codec,
            provider,
            ContentAnnotator(self._source, enabled=config.include_header),
            max_workers=config.max_concurrency,
        )

        log.info("sync_coordinator_initialized", source=str(self._source))

    @property
    def source(self) -> SourceRef:
        return self._source

    @property
    def codec(self) -> IdentifierCodec:
        return self._codec

    def run_cycle(
        self,
        last_cycle: int,
        prior_records: Mapping[str, int],
        now: int | None = None,
    ) -> tuple[dict[str, ChangeOperation], SyncReport]:
        """
        Perform one reconciliation cycle.

        This method:
        1. Skips the cycle if the update interval has not elapsed
        2. Fetches the current snapshot
        3. Runs the delete, add and update phases

        Args:
            last_cycle: Epoch milliseconds of the previous cycle
            prior_records: Host snapshot, identifier -> last seen epoch ms
            now: Override for the current time

        Returns:
            Tuple of (identifier -> operation, SyncReport)

        Raises:
            RefNotFoundError: If the configured ref does not exist
            TransportError: If the tree could not be listed
        """
        now = self._scheduler.now() if now is None else now
        start_time = datetime.now(timezone.utc)

        if not self._scheduler.should_run(last_cycle, now):
            log.info("cycle_skipped", source=str(self._source), reason="update_interval_not_reached")
            return {}, self._report(start_time, {}, skipped=True)

        log.info(
            "cycle_started",
            source=str(self._source),
            prior_file_count=len(prior_records),
        )

        try:
            fetch_result = self._fetcher.fetch(self._source)
        except (RefNotFoundError, TransportError) as e:
            log.error("cycle_failed", source=str(self._source), error=str(e))
            raise

        change_set = self._change_detector.detect_changes(
            fetch_result.entries,
            prior_records,
            now,
            unavailable_paths=[failure.path for failure in fetch_result.failures],
        )
        operations = change_set.to_operations()

        warnings = list(change_set.warnings)
        if fetch_result.dropped:
            warnings.insert(0, f"Failed to fetch {fetch_result.dropped} files")

        report = self._report(
            start_time,
            operations,
            files_orphaned=len(change_set.orphaned),
            files_dropped=fetch_result.dropped,
            failed_lookups=len(change_set.failed_lookups),
            warnings=warnings,
        )

        if operations:
            log.info(
                "cycle_completed",
                source=str(self._source),
                added=report.files_added,
                updated=report.files_updated,
                deleted=report.files_deleted,
                degraded=report.degraded,
                duration_seconds=report.duration_seconds,
            )
        else:
            log.info("cycle_completed_no_changes", source=str(self._source))

        return operations, report

    def _report(
        self,
        start_time: datetime,
        operations: dict[str, ChangeOperation],
        skipped: bool = False,
        **counts: Any,
    ) -> SyncReport:
        end_time = datetime.now(timezone.utc)
        return SyncReport(
            repo=self._source.slug,
            branch=self._source.branch,
            skipped=skipped,
            files_added=SyncReport.count(operations, ChangeAction.ADD),
            files_updated=SyncReport.count(operations, ChangeAction.UPDATE),
            files_deleted=SyncReport.count(operations, ChangeAction.DELETE),
            duration_seconds=(end_time - start_time).total_seconds(),
            start_time=start_time,
            end_time=end_time,
            **counts,
        )


def reconcile(
    source_ref: SourceRef,
    config: ShopConfig | Mapping[str, Any],
    last_cycle_timestamp: int,
    prior_records: Mapping[str, int],
    provider: RemoteTreeProvider,
    now: int | None = None,
) -> dict[str, ChangeOperation]:
    """
    Reconcile a remote ref against the host snapshot.

    Args:
        source_ref: Repository and ref to reconcile; overrides the repository
            and branch named in ``config``
        config: ShopConfig or a host mapping with repoUrl, branch, ...
        last_cycle_timestamp: Epoch milliseconds of the previous cycle
        prior_records: identifier -> last seen epoch ms
        provider: Remote tree, blob and commit metadata access
        now: Override for the current time

    Returns:
        identifier -> ChangeOperation; empty when the interval has not elapsed

    Raises:
        ConfigurationError: If config is invalid
        RefNotFoundError: If the ref does not exist
    """
    if not isinstance(config, ShopConfig):
        config = ShopConfig.from_mapping(config)
    config = config.model_copy(
        update={"repo_url": source_ref.repo_url, "branch": source_ref.branch}
    )

    coordinator = SyncCoordinator(provider, config)
    operations, _ = coordinator.run_cycle(last_cycle_timestamp, prior_records, now=now)
    return operations

#!/usr/bin/env python3
"""
Scheduled synchronization script for a GitHub repository.

This script is a minimal host for the sync engine:
- Loads the snapshot (last cycle time and file_id -> timestamp) from a JSON file
- Runs one reconciliation cycle
- Applies the returned operations to the snapshot and writes it back

Designed to be run on a schedule (e.g., via cron or a CI workflow). Cycles
that run before the configured update interval has elapsed are skipped.

Usage:
    python scripts/scheduled_sync.py [--config CONFIG_PATH] [--state-file PATH] [--force]
"""

import argparse
import json
import sys
from pathlib import Path

import structlog

from repo_sync.exceptions import RepoSyncError
from repo_sync.ingestion.github_client import GitHubClient
from repo_sync.models.source import ChangeAction, ChangeOperation
from repo_sync.sync.scheduler import current_time_ms
from repo_sync.sync.sync_coordinator import SyncCoordinator
from repo_sync.utils.config_loader import ConfigLoader
from repo_sync.utils.logging_config import bind_source_context, configure_logging_from_config

log = structlog.stdlib.get_logger()


def load_state(state_file: Path) -> dict:
    """Read the host snapshot, returning an empty one if the file does not exist."""
    if not state_file.exists():
        return {"last_cycle": 0, "files": {}}
    with open(state_file, "r") as f:
        state = json.load(f)
    state.setdefault("last_cycle", 0)
    state.setdefault("files", {})
    return state


def save_state(state_file: Path, state: dict) -> None:
    tmp_file = state_file.with_suffix(state_file.suffix + ".tmp")
    with open(tmp_file, "w") as f:
        json.dump(state, f, indent=2, sort_keys=True)
    tmp_file.replace(state_file)


def apply_operations(files: dict[str, int], operations: dict[str, ChangeOperation], now: int) -> None:
    """Record accepted operations in the snapshot for the next cycle."""
    for file_id, operation in operations.items():
        if operation.action is ChangeAction.DELETE:
            files.pop(file_id, None)
        else:
            files[file_id] = operation.modified_at or now


def perform_sync(
    config_path: str | None = None,
    state_file: str | None = None,
    force: bool = False,
) -> dict:
    """
    Perform one synchronization cycle.

    Args:
        config_path: Optional path to configuration file
        state_file: Optional override for the snapshot location
        force: If True, ignore the update interval

    Returns:
        Dictionary with sync statistics
    """
    loader = ConfigLoader()
    config = loader.load_config(config_path)
    configure_logging_from_config(config.logging)
    loader.validate_config(config)

    client = GitHubClient(
        token=config.github.token,
        api_url=config.github.api_url,
        timeout_seconds=config.github.timeout_seconds,
    )
    coordinator = SyncCoordinator(client, config.shop)
    source = coordinator.source
    bind_source_context(source.owner, source.repo, source.branch)

    state_path = Path(state_file or config.state_file)
    state = load_state(state_path)
    last_cycle = 0 if force else state["last_cycle"]

    now = current_time_ms()
    operations, report = coordinator.run_cycle(last_cycle, state["files"], now=now)

    if not report.skipped:
        apply_operations(state["files"], operations, now)
        state["last_cycle"] = now
        save_state(state_path, state)

    stats = {
        "success": True,
        "skipped": report.skipped,
        "repo": report.repo,
        "branch": report.branch,
        "files_added": report.files_added,
        "files_updated": report.files_updated,
        "files_deleted": report.files_deleted,
        "files_dropped": report.files_dropped,
        "failed_lookups": report.failed_lookups,
        "tracked_files": len(state["files"]),
        "warnings": report.warnings,
        "duration_seconds": report.duration_seconds,
    }
    log.info("synchronization_finished", **stats)
    return stats


def main():
    """Main entry point for scheduled sync script."""
    parser = argparse.ArgumentParser(description="Scheduled synchronization for a GitHub repository")
    parser.add_argument("--config", type=str, help="Path to configuration file", default=None)
    parser.add_argument("--state-file", type=str, help="Path to the JSON snapshot", default=None)
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if the update interval has not elapsed",
    )

    args = parser.parse_args()

    try:
        stats = perform_sync(config_path=args.config, state_file=args.state_file, force=args.force)
    except RepoSyncError as e:
        log.error("synchronization_failed", error=str(e))
        stats = {"success": False, "error": str(e)}

    print("\n" + "=" * 60)
    print("SYNCHRONIZATION SUMMARY")
    print("=" * 60)

    if not stats.get("success"):
        print("Status: ✗ FAILED")
        print(f"Error: {stats.get('error', 'Unknown error')}")
    elif stats.get("skipped"):
        print("Status: - SKIPPED (update interval not reached)")
    else:
        print("Status: ✓ SUCCESS")
        print(f"Repository: {stats['repo']}#{stats['branch']}")
        print(f"Files Added: {stats['files_added']}")
        print(f"Files Updated: {stats['files_updated']}")
        print(f"Files Deleted: {stats['files_deleted']}")
        print(f"Tracked Files: {stats['tracked_files']}")
        if stats["files_dropped"] or stats["failed_lookups"]:
            print(f"Dropped Files: {stats['files_dropped']}")
            print(f"Failed Lookups: {stats['failed_lookups']}")
        print(f"Duration: {stats['duration_seconds']:.2f} seconds")

    print("=" * 60)

    sys.exit(0 if stats.get("success") else 1)


if __name__ == "__main__":
    main()

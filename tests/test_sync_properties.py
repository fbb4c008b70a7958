"""Property-based tests for the reconciliation engine.

**Feature: github-repo-sync, Property 6: Operations are disjoint and complete**
**Feature: github-repo-sync, Property 7: Reconciliation is idempotent**
**Feature: github-repo-sync, Property 8: The interval gate makes no remote calls**
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from repo_sync.exceptions import RefNotFoundError, TransportError
from repo_sync.models.source import ChangeAction, CommitInfo, SourceRef
from repo_sync.sync import SyncCoordinator, reconcile
from repo_sync.sync.identifiers import encode
from repo_sync.sync.scheduler import HOUR_MS
from tests.fakes import REPO_URL, FakeProvider, make_config

SOURCE = SourceRef.from_url(REPO_URL, "main")
NOW = 10 * HOUR_MS
LONG_AGO = 0

path_strategy = st.from_regex(r"[a-c]{1,3}(/[a-c-]{1,3}){0,2}\.md", fullmatch=True)


def file_id(path: str) -> str:
    return encode(SOURCE, path)


def run(provider, prior, last_cycle=LONG_AGO, now=NOW, **overrides):
    coordinator = SyncCoordinator(provider, make_config(**overrides))
    return coordinator.run_cycle(last_cycle, prior, now=now)


def test_modified_file_is_updated_with_header():
    provider = FakeProvider(
        files={"README.md": "# Hello"},
        commits={"README.md": CommitInfo(revision_id="c2", timestamp=2_000)},
    )

    operations, report = run(provider, {file_id("README.md"): 1_000})

    op = operations[file_id("README.md")]
    assert op.action is ChangeAction.UPDATE
    assert op.modified_at == 2_000
    assert op.content.startswith("File from the GitHub repo a/b\nPath: README.md\n")
    assert "https://github.com/a/b/blob/c2/README.md" in op.content
    assert op.content.endswith("# Hello\n[end of README.md]")
    assert report.files_updated == 1
    assert report.total_changes == 1


def test_new_file_without_header_is_added_raw():
    provider = FakeProvider(files={"docs/guide.md": "guide"})

    operations, _ = run(provider, {}, includeHeader=False)

    op = operations[file_id("docs/guide.md")]
    assert op.action is ChangeAction.ADD
    assert op.content == "guide"
    assert provider.calls["get_branch_head"] == 0


def test_new_file_is_stamped_with_branch_head():
    provider = FakeProvider(files={"a.md": "a", "b.md": "b"})

    operations, _ = run(provider, {})

    assert {op.modified_at for op in operations.values()} == {provider.head.timestamp}
    assert all("/blob/headsha/" in op.content for op in operations.values())
    assert provider.calls["get_branch_head"] == 1


def test_branch_head_not_fetched_without_additions():
    provider = FakeProvider(files={"a.md": "a"})

    run(provider, {file_id("a.md"): 1_000})

    assert provider.calls["get_branch_head"] == 0


def test_branch_head_failure_emits_raw_content_with_warning():
    provider = FakeProvider(files={"a.md": "a"})
    provider.head_error = TransportError("head unavailable", status_code=503)

    operations, report = run(provider, {})

    op = operations[file_id("a.md")]
    assert op.content == "a"
    assert op.modified_at == NOW
    assert any("without header" in warning for warning in report.warnings)


def test_removed_file_is_deleted():
    provider = FakeProvider(files={"keep.md": "k"})

    operations, report = run(provider, {file_id("keep.md"): 1_000, file_id("gone.md"): 1_000})

    op = operations[file_id("gone.md")]
    assert op.action is ChangeAction.DELETE
    assert op.content is None
    assert file_id("keep.md") not in operations
    assert report.files_deleted == 1


def test_interval_not_elapsed_makes_no_remote_calls():
    provider = FakeProvider(files={"a.md": "a"})

    operations, report = run(provider, {}, last_cycle=NOW - 1_000)

    assert operations == {}
    assert report.skipped
    assert provider.total_calls == 0


def test_unchanged_commit_is_not_reported():
    provider = FakeProvider(
        files={"a.md": "a"},
        commits={"a.md": CommitInfo(revision_id="c1", timestamp=1_000)},
    )

    operations, _ = run(provider, {file_id("a.md"): 1_000})

    assert operations == {}


def test_missing_history_is_treated_as_unchanged():
    provider = FakeProvider(files={"a.md": "a"}, commits={"a.md": None})

    operations, report = run(provider, {file_id("a.md"): 1_000})

    assert operations == {}
    assert report.failed_lookups == 0


def test_failed_lookup_is_treated_as_unchanged_and_counted():
    provider = FakeProvider(
        files={"a.md": "a", "b.md": "b"},
        commits={
            "a.md": CommitInfo(revision_id="c2", timestamp=2_000),
            "b.md": CommitInfo(revision_id="c2", timestamp=2_000),
        },
    )
    provider.failing_lookups = {"b.md"}

    operations, report = run(provider, {file_id("a.md"): 1_000, file_id("b.md"): 1_000})

    assert set(operations) == {file_id("a.md")}
    assert report.failed_lookups == 1
    assert report.degraded


def test_foreign_identifier_is_deleted_as_orphan():
    provider = FakeProvider(files={"a.md": "a"})
    foreign = "github-repo-other-repo-a.md"

    operations, report = run(provider, {file_id("a.md"): 1_000, foreign: 1_000})

    assert operations[foreign].action is ChangeAction.DELETE
    assert report.files_orphaned == 1
    assert report.files_deleted == 1


def test_non_canonical_identifier_is_deleted_and_path_re_added():
    provider = FakeProvider(files={"docs/x.md": "x"})
    stale = "github-repo-a-b-docs/x.md"

    operations, report = run(provider, {stale: 1_000})

    assert operations[stale].action is ChangeAction.DELETE
    assert operations[file_id("docs/x.md")].action is ChangeAction.ADD
    assert report.files_orphaned == 1


def test_rename_is_delete_plus_add():
    provider = FakeProvider(files={"new.md": "body"})

    operations, _ = run(provider, {file_id("old.md"): 1_000})

    assert operations[file_id("old.md")].action is ChangeAction.DELETE
    assert operations[file_id("new.md")].action is ChangeAction.ADD


def test_known_file_with_failed_fetch_is_not_deleted():
    provider = FakeProvider(
        files={"a.md": "a", "b.md": "b"},
        commits={"a.md": CommitInfo(revision_id="c2", timestamp=2_000)},
    )
    provider.failing_content = {"a.md"}

    operations, report = run(provider, {file_id("a.md"): 1_000})

    assert file_id("a.md") not in operations
    assert operations[file_id("b.md")].action is ChangeAction.ADD
    assert report.files_dropped == 1
    assert report.warnings[0] == "Failed to fetch 1 files"


def test_excluded_known_file_is_deleted():
    provider = FakeProvider(files={"a.md": "a", "b.txt": "b"})

    operations, _ = run(provider, {file_id("b.txt"): 1_000}, include=["**/*.md"])

    assert operations[file_id("b.txt")].action is ChangeAction.DELETE
    assert operations[file_id("a.md")].action is ChangeAction.ADD


def test_missing_ref_aborts_cycle():
    provider = FakeProvider(files={"a.md": "a"})
    provider.missing_ref = True

    with pytest.raises(RefNotFoundError) as exc_info:
        run(provider, {file_id("a.md"): 1_000})

    assert "Branch 'main' not found in repo a/b." in str(exc_info.value)


def test_tree_listing_failure_aborts_cycle():
    provider = FakeProvider(files={"a.md": "a"})
    provider.tree_error = TransportError("tree unavailable", status_code=500)

    with pytest.raises(TransportError):
        run(provider, {})


def test_reconcile_uses_source_ref_over_config():
    provider = FakeProvider(files={"a.md": "a"})
    other = SourceRef.from_url("https://github.com/x/y", "dev")

    operations = reconcile(
        other,
        {"repoUrl": REPO_URL, "updateInterval": "1h"},
        LONG_AGO,
        {},
        provider,
        now=NOW,
    )

    assert list(operations) == [encode(other, "a.md")]


def test_reconcile_propagates_missing_ref():
    provider = FakeProvider()
    provider.missing_ref = True

    with pytest.raises(RefNotFoundError):
        reconcile(SOURCE, make_config(), LONG_AGO, {}, provider, now=NOW)


def test_second_cycle_with_accepted_state_is_empty():
    provider = FakeProvider(
        files={"a.md": "a", "b.md": "b"},
        commits={
            "a.md": CommitInfo(revision_id="c1", timestamp=1_000),
            "b.md": CommitInfo(revision_id="c1", timestamp=1_000),
        },
    )

    first, _ = run(provider, {})
    accepted = {identifier: NOW for identifier in first}
    second, _ = run(provider, accepted, last_cycle=NOW, now=NOW + 2 * HOUR_MS)

    assert second == {}


@given(
    prior=st.dictionaries(path_strategy, st.integers(min_value=0, max_value=3_000), max_size=8),
    current=st.dictionaries(path_strategy, st.integers(min_value=0, max_value=3_000), max_size=8),
)
@settings(max_examples=50, deadline=None)
def test_property_6_operations_are_disjoint_and_complete(
    prior: dict[str, int], current: dict[str, int]
) -> None:
    """Property 6: every identifier is resolved by exactly the phase it belongs to.

    Deletes cover prior paths that vanished, adds cover new paths, and updates
    cover known paths whose last commit is newer than the host record.

    **Feature: github-repo-sync, Property 6: Operations are disjoint and complete**
    """
    provider = FakeProvider(
        files={path: path for path in current},
        commits={
            path: CommitInfo(revision_id=f"c{ts}", timestamp=ts) for path, ts in current.items()
        },
    )
    prior_records = {file_id(path): ts for path, ts in prior.items()}

    operations, report = run(provider, prior_records)

    expected_deleted = {file_id(p) for p in prior.keys() - current.keys()}
    expected_added = {file_id(p) for p in current.keys() - prior.keys()}
    expected_updated = {
        file_id(p) for p in prior.keys() & current.keys() if current[p] > prior[p]
    }

    def by_action(action):
        return {i for i, op in operations.items() if op.action is action}

    assert by_action(ChangeAction.DELETE) == expected_deleted
    assert by_action(ChangeAction.ADD) == expected_added
    assert by_action(ChangeAction.UPDATE) == expected_updated
    assert report.total_changes == len(operations)


@given(
    last_cycle=st.integers(min_value=0, max_value=NOW),
    interval_hours=st.integers(min_value=1, max_value=48),
)
@settings(max_examples=50, deadline=None)
def test_property_8_gate_makes_no_remote_calls(last_cycle: int, interval_hours: int) -> None:
    """Property 8: a gated cycle returns nothing and touches nothing remote.

    **Feature: github-repo-sync, Property 8: The interval gate makes no remote calls**
    """
    provider = FakeProvider(files={"a.md": "a"})

    operations, report = run(provider, {}, last_cycle=last_cycle, updateInterval=f"{interval_hours}h")

    if NOW - last_cycle >= interval_hours * HOUR_MS:
        assert not report.skipped
        assert provider.calls["list_tree"] == 1
    else:
        assert operations == {}
        assert report.skipped
        assert provider.total_calls == 0


@given(
    prior=st.dictionaries(path_strategy, st.integers(min_value=0, max_value=3_000), max_size=6),
    current=st.dictionaries(path_strategy, st.integers(min_value=0, max_value=3_000), max_size=6),
    include_header=st.booleans(),
)
@settings(max_examples=50, deadline=None)
def test_property_7_reconciliation_is_idempotent(
    prior: dict[str, int], current: dict[str, int], include_header: bool
) -> None:
    """Property 7: the same prior records and remote state yield the same operations.

    **Feature: github-repo-sync, Property 7: Reconciliation is idempotent**
    """
    provider = FakeProvider(
        files={path: f"content of {path}" for path in current},
        commits={
            path: CommitInfo(revision_id=f"c{ts}", timestamp=ts) for path, ts in current.items()
        },
    )
    prior_records = {file_id(path): ts for path, ts in prior.items()}

    first, _ = run(provider, prior_records, includeHeader=include_header)
    second, _ = run(provider, prior_records, includeHeader=include_header)

    assert first == second
    assert [op.model_dump() for op in first.values()] == [
        op.model_dump() for op in second.values()
    ]


def test_reconcile_twice_returns_identical_operations():
    provider = FakeProvider(
        files={"README.md": "# hi", "docs/new.md": "new"},
        commits={"README.md": CommitInfo(revision_id="c2", timestamp=2_000)},
    )
    prior = {file_id("README.md"): 1_000, file_id("gone.md"): 1_000}

    first = reconcile(SOURCE, make_config(), LONG_AGO, prior, provider, now=NOW)
    second = reconcile(SOURCE, make_config(), LONG_AGO, prior, provider, now=NOW)

    assert first == second
    assert first[file_id("README.md")].content == second[file_id("README.md")].content
    assert first[file_id("docs/new.md")].modified_at == provider.head.timestamp

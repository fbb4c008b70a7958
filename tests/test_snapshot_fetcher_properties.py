"""Property-based tests for the snapshot fetcher.

**Feature: github-repo-sync, Property 5: Every included file is accounted for**
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from repo_sync.exceptions import RefNotFoundError, TransportError
from repo_sync.models.source import SourceRef
from repo_sync.sync.identifiers import IdentifierCodec
from repo_sync.sync.path_filter import PathFilter
from repo_sync.sync.snapshot_fetcher import SnapshotFetcher
from tests.fakes import FakeProvider

SOURCE = SourceRef.from_url("https://github.com/a/b", "main")

file_name_strategy = st.from_regex(r"[a-z]{1,6}(/[a-z]{1,6}){0,2}\.(md|txt|py)", fullmatch=True)


def make_fetcher(provider, include=None, ignore=None, max_workers=4, progress=None):
    return SnapshotFetcher(
        provider,
        PathFilter(include, ignore),
        IdentifierCodec(SOURCE),
        max_workers=max_workers,
        progress=progress,
    )


def test_fetch_returns_entries_keyed_by_path():
    provider = FakeProvider(files={"README.md": "# hi", "src/app.py": "print()"})
    provider.directories = ["src"]

    result = make_fetcher(provider).fetch(SOURCE)

    assert set(result.entries) == {"README.md", "src/app.py"}
    assert result.entries["src/app.py"].identifier == "github-repo-a-b-src-app.py"
    assert result.entries["README.md"].raw_content == "# hi"
    assert result.complete
    assert result.dropped == 0
    assert provider.calls["get_content"] == 2


def test_fetch_applies_path_filter_before_retrieving_content():
    provider = FakeProvider(files={"docs/x.md": "x", "drafts/y.md": "y", "z.txt": "z"})

    result = make_fetcher(provider, include=["**/*.md"], ignore=["drafts/**"]).fetch(SOURCE)

    assert set(result.entries) == {"docs/x.md"}
    assert provider.calls["get_content"] == 1


def test_failed_content_is_dropped_and_counted():
    provider = FakeProvider(files={"a.txt": "a", "b.txt": "b", "c.txt": "c"})
    provider.failing_content = {"b.txt"}

    result = make_fetcher(provider).fetch(SOURCE)

    assert set(result.entries) == {"a.txt", "c.txt"}
    assert result.dropped == 1
    assert result.total == 3
    assert not result.complete
    assert result.failures[0].path == "b.txt"
    assert result.failures[0].content_id == "sha:b.txt"
    assert "unavailable" in result.failures[0].reason


def test_missing_ref_propagates():
    provider = FakeProvider(files={"a.txt": "a"})
    provider.missing_ref = True

    with pytest.raises(RefNotFoundError):
        make_fetcher(provider).fetch(SOURCE)
    assert provider.calls["get_content"] == 0


def test_tree_listing_failure_propagates():
    provider = FakeProvider(files={"a.txt": "a"})
    provider.tree_error = TransportError("boom", status_code=500)

    with pytest.raises(TransportError):
        make_fetcher(provider).fetch(SOURCE)


def test_empty_working_set_makes_no_content_calls():
    provider = FakeProvider(files={"a.txt": "a"})

    result = make_fetcher(provider, include=["**/*.md"]).fetch(SOURCE)

    assert result.entries == {}
    assert provider.calls["get_content"] == 0


def test_concurrency_is_bounded():
    provider = FakeProvider(files={f"f{i}.txt": str(i) for i in range(40)})

    result = make_fetcher(provider, max_workers=3).fetch(SOURCE)

    assert len(result.entries) == 40
    assert provider.max_active <= 3


def test_progress_reports_every_unit_without_changing_result():
    provider = FakeProvider(files={"a.txt": "a", "b.txt": "b", "c.txt": "c"})
    provider.failing_content = {"c.txt"}
    ticks: list[tuple[int, int]] = []

    with_progress = make_fetcher(provider, progress=lambda done, total: ticks.append((done, total)))
    without_progress = make_fetcher(provider)

    reported = with_progress.fetch(SOURCE)
    silent = without_progress.fetch(SOURCE)

    assert reported.entries == silent.entries
    assert reported.dropped == silent.dropped == 1
    assert [done for done, _ in ticks] == [1, 2, 3]
    assert all(total == 3 for _, total in ticks)


def test_undecodable_bytes_are_replaced():
    class BinaryProvider(FakeProvider):
        def get_content(self, content_id, source):
            return b"\xff\xfeok"

    result = make_fetcher(BinaryProvider(files={"bin.dat": ""})).fetch(SOURCE)

    assert result.entries["bin.dat"].raw_content.endswith("ok")


def test_invalid_worker_count_is_rejected():
    with pytest.raises(ValueError):
        make_fetcher(FakeProvider(), max_workers=0)


@given(
    files=st.sets(file_name_strategy, min_size=0, max_size=15),
    failing=st.sets(file_name_strategy, max_size=5),
)
@settings(max_examples=50, deadline=None)
def test_property_5_every_included_file_is_accounted_for(files: set[str], failing: set[str]) -> None:
    """Property 5: each included file is either fetched or reported as dropped.

    **Feature: github-repo-sync, Property 5: Every included file is accounted for**
    """
    provider = FakeProvider(files={path: path for path in files})
    provider.failing_content = failing

    result = make_fetcher(provider).fetch(SOURCE)

    assert set(result.entries) == files - failing
    assert {failure.path for failure in result.failures} == files & failing
    assert result.total == len(files)

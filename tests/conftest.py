"""Shared fixtures for sync engine tests."""

import pytest

from repo_sync.models.source import SourceRef
from tests.fakes import REPO_URL, FakeProvider


@pytest.fixture
def source() -> SourceRef:
    return SourceRef.from_url(REPO_URL, "main")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()

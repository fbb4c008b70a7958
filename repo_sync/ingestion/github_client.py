"""GitHub REST client for tree listing, blob content and commit metadata."""

import base64
import binascii
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import requests
import structlog
from requests.exceptions import RequestException

from repo_sync.exceptions import RefNotFoundError, TransportError
from repo_sync.models.source import CommitInfo, SourceRef, TreeEntry
from repo_sync.utils.retry import exponential_backoff_retry

log = structlog.stdlib.get_logger()

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"

# Statuses GitHub returns for an unknown ref or an empty repository
REF_MISSING_STATUSES = (404, 409, 422)


def parse_github_timestamp(value: str) -> int:
    """Convert an ISO-8601 timestamp from the API to epoch milliseconds."""
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def _is_retryable(error: Exception) -> bool:
    return isinstance(error, TransportError) and error.retryable


@contextmanager
def _unexpected_payload(what: str) -> Iterator[None]:
    """Report a response body of the wrong shape as a transport failure."""
    try:
        yield
    except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
        raise TransportError(f"Unexpected {what} response: {e!r}") from e


class GitHubClient:
    """Thin wrapper around the GitHub REST API built on ``requests``."""

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        session: requests.Session | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: Personal access token or app installation token
            api_url: REST API base URL (GitHub Enterprise uses /api/v3)
            timeout_seconds: Per-request timeout
            max_retries: Attempts after the first for retryable failures
            base_delay: Initial backoff delay in seconds
            session: Optional preconfigured session
        """
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )
        self._get_json = exponential_backoff_retry(
            max_retries=max_retries,
            base_delay=base_delay,
            max_delay=60.0,
            exceptions=(TransportError,),
            retry_if=_is_retryable,
        )(self._get_json_once)

        log.info("github_client_initialized", api_url=self._api_url)

    def _get_json_once(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except RequestException as e:
            raise TransportError(f"GET {path} failed: {e}", retryable=True) from e

        if response.status_code >= 400:
            raise TransportError(
                f"GET {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                retryable=self._is_retryable_status(response),
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"GET {path} returned invalid JSON: {e}") from e

    @staticmethod
    def _is_retryable_status(response: requests.Response) -> bool:
        if response.status_code >= 500 or response.status_code == 429:
            return True
        return (
            response.status_code == 403
            and response.headers.get("X-RateLimit-Remaining") == "0"
        )

    def list_tree(self, source: SourceRef) -> list[TreeEntry]:
        """
        Fetch the recursive tree of the repository at the source branch.

        Raises:
            RefNotFoundError: If the branch does not exist
            TransportError: For any other failure
        """
        log.info("fetching_repo_tree", repo=source.slug, branch=source.branch)
        try:
            data = self._get_json(
                f"/repos/{source.owner}/{source.repo}/git/trees/{source.branch}",
                params={"recursive": "1"},
            )
        except TransportError as e:
            if e.status_code in REF_MISSING_STATUSES:
                raise RefNotFoundError(source.owner, source.repo, source.branch) from e
            raise

        with _unexpected_payload("tree"):
            if data.get("truncated"):
                log.warning("repo_tree_truncated", repo=source.slug, branch=source.branch)

            entries = [
                TreeEntry(path=item["path"], type=item.get("type", "blob"), content_id=item["sha"])
                for item in data.get("tree", [])
                if item.get("path") and item.get("sha")
            ]
        log.info("repo_tree_fetched", repo=source.slug, entry_count=len(entries))
        return entries

    def get_content(self, content_id: str, source: SourceRef) -> bytes:
        """Fetch and decode the raw bytes of a blob."""
        data = self._get_json(f"/repos/{source.owner}/{source.repo}/git/blobs/{content_id}")
        with _unexpected_payload("blob"):
            content = data.get("content", "")
            if data.get("encoding", "base64") != "base64":
                return content.encode("utf-8")
        try:
            return base64.b64decode(content)
        except (binascii.Error, TypeError, ValueError) as e:
            raise TransportError(f"Blob {content_id} is not valid base64: {e}") from e

    def get_branch_head(self, source: SourceRef) -> CommitInfo:
        """
        Get the latest commit SHA and author date of the source branch.

        Raises:
            RefNotFoundError: If the branch does not exist
            TransportError: For any other failure
        """
        try:
            data = self._get_json(
                f"/repos/{source.owner}/{source.repo}/branches/{source.branch}"
            )
        except TransportError as e:
            if e.status_code == 404:
                raise RefNotFoundError(source.owner, source.repo, source.branch) from e
            raise

        with _unexpected_payload("branch"):
            commit = data.get("commit") or {}
            sha = commit.get("sha")
            if not sha:
                raise TransportError(f"Branch response for {source} carries no commit SHA")

            date = ((commit.get("commit") or {}).get("author") or {}).get("date")
            if not date:
                log.warning("branch_commit_date_missing", repo=source.slug, branch=source.branch)
                return CommitInfo(revision_id=sha, timestamp=int(time.time() * 1000))

            return CommitInfo(revision_id=sha, timestamp=parse_github_timestamp(date))

    def get_last_modification(self, source: SourceRef, path: str) -> CommitInfo | None:
        """Get the most recent commit touching a path on the source branch."""
        data = self._get_json(
            f"/repos/{source.owner}/{source.repo}/commits",
            params={"sha": source.branch, "path": path, "per_page": 1},
        )
        if not data:
            log.warning("no_commit_history_for_file", path=path, branch=source.branch)
            return None

        with _unexpected_payload("commit list"):
            latest = data[0]
            date = ((latest.get("commit") or {}).get("author") or {}).get("date")
            if not latest.get("sha") or not date:
                log.warning("no_commit_history_for_file", path=path, branch=source.branch)
                return None

            return CommitInfo(revision_id=latest["sha"], timestamp=parse_github_timestamp(date))

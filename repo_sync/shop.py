"""Host-facing connector that syncs one GitHub repository."""

from collections.abc import Mapping
from typing import Any, Callable

import structlog

from repo_sync.exceptions import ConfigurationError
from repo_sync.ingestion.github_client import DEFAULT_API_URL, GitHubClient
from repo_sync.ingestion.provider import RemoteTreeProvider
from repo_sync.models.config import ShopConfig
from repo_sync.models.source import ChangeOperation
from repo_sync.sync.models import SyncReport
from repo_sync.sync.scheduler import current_time_ms
from repo_sync.sync.snapshot_fetcher import ProgressCallback
from repo_sync.sync.sync_coordinator import SyncCoordinator

log = structlog.stdlib.get_logger()

TOKEN_CREDENTIAL = "github_token"

TOKEN_INSTRUCTIONS = """To obtain a GitHub token:
1. Go to https://github.com/settings/tokens
2. Click "Generate new token"
3. Select scopes (e.g., 'repo' for private repos)
4. Copy the token and paste it here."""


class GitHubRepoShop:
    """Reports the files of a GitHub repository that changed since the last run.

    Usage::

        shop = GitHubRepoShop()
        shop.init({"github_token": token}, {"repoUrl": "https://github.com/o/r"})
        operations = shop.update(last_used, existing_files)
    """

    def __init__(
        self,
        provider_factory: Callable[[str], RemoteTreeProvider] | None = None,
        clock: Callable[[], int] = current_time_ms,
        progress: ProgressCallback | None = None,
    ):
        self._provider_factory = provider_factory or self._default_provider
        self._clock = clock
        self._progress = progress
        self._coordinator: SyncCoordinator | None = None
        self.config: ShopConfig | None = None
        self.last_report: SyncReport | None = None

    @staticmethod
    def required_credentials() -> dict[str, str]:
        """Credentials the host must collect before calling :meth:`init`."""
        return {TOKEN_CREDENTIAL: TOKEN_INSTRUCTIONS}

    @staticmethod
    def _default_provider(token: str) -> RemoteTreeProvider:
        return GitHubClient(token=token, api_url=DEFAULT_API_URL)

    def init(self, credentials: Mapping[str, str], config: Mapping[str, Any]) -> None:
        """
        Validate credentials and configuration.

        Args:
            credentials: Must contain ``github_token``
            config: Host options (repoUrl, branch, updateInterval, include,
                ignore, includeHeader)

        Raises:
            ConfigurationError: If the token is missing or any option is invalid
        """
        token = credentials.get(TOKEN_CREDENTIAL)
        if not token:
            raise ConfigurationError("GitHub token is required.")

        self.config = ShopConfig.from_mapping(config)
        self._coordinator = SyncCoordinator(
            self._provider_factory(token),
            self.config,
            clock=self._clock,
            progress=self._progress,
        )
        log.info(
            "shop_initialized",
            repo_url=self.config.repo_url,
            branch=self.config.branch,
            update_interval=self.config.update_interval,
        )

    def update(
        self, last_used: int, existing_files: Mapping[str, int]
    ) -> dict[str, ChangeOperation]:
        """
        Compare the host's files with the current repository state.

        Args:
            last_used: Epoch milliseconds of the previous update
            existing_files: file_id -> last updated timestamp (epoch ms)

        Returns:
            file_id -> operation; empty when the update interval has not elapsed

        Raises:
            ConfigurationError: If called before :meth:`init`
            RefNotFoundError: If the configured branch does not exist
        """
        if self._coordinator is None:
            raise ConfigurationError("GitHubRepoShop.init() must be called before update().")

        operations, self.last_report = self._coordinator.run_cycle(last_used, existing_files)
        return operations

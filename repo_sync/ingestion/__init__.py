"""Remote access to hosted repositories"""

from repo_sync.ingestion.github_client import GitHubClient
from repo_sync.ingestion.provider import RemoteTreeProvider

__all__ = ["GitHubClient", "RemoteTreeProvider"]

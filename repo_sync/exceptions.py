"""Error taxonomy for the GitHub repository sync engine."""


class RepoSyncError(Exception):
    """Base class for all sync engine errors."""


class ConfigurationError(RepoSyncError):
    """Raised when configuration is invalid or missing.

    Fatal at initialization time and never retried.
    """


class RefNotFoundError(RepoSyncError):
    """Raised when the configured branch or ref does not exist upstream."""

    def __init__(self, owner: str, repo: str, ref: str):
        self.owner = owner
        self.repo = repo
        self.ref = ref
        super().__init__(f"Branch '{ref}' not found in repo {owner}/{repo}.")


class TransportError(RepoSyncError):
    """Raised for any upstream failure other than a missing ref."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class InvalidIdentifierError(RepoSyncError):
    """Raised when an identifier was not produced for the active source."""

    def __init__(self, identifier: str, reason: str = "unexpected prefix"):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Invalid fileId {identifier!r}: {reason}")

"""Configuration models for the GitHub repository sync engine."""

from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from repo_sync.exceptions import ConfigurationError
from repo_sync.models.source import SourceRef

DEFAULT_BRANCH = "master"
DEFAULT_UPDATE_INTERVAL = "1d"


class ShopConfig(BaseModel):
    """Per-repository sync options.

    Constructed once at initialization and passed to every component. Accepts
    the camelCase keys hosts use (``repoUrl``, ``updateInterval``, ...) as
    well as the snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    repo_url: str = Field(
        default=...,
        validation_alias=AliasChoices("repoUrl", "repo_url"),
        description="GitHub repository URL",
    )
    branch: str = Field(
        default=DEFAULT_BRANCH,
        min_length=1,
        validation_alias=AliasChoices("branch", "ref"),
        description="Branch or ref to sync",
    )
    update_interval: str = Field(
        default=DEFAULT_UPDATE_INTERVAL,
        validation_alias=AliasChoices("updateInterval", "update_interval"),
        description="Minimum time between cycles, e.g. 30m, 6h, 1d, 2w",
    )
    include: tuple[str, ...] = Field(
        default=("**/*",), description="Glob patterns a path must match"
    )
    ignore: tuple[str, ...] = Field(default=(), description="Glob patterns that exclude a path")
    include_header: bool = Field(
        default=True,
        validation_alias=AliasChoices("includeHeader", "include_header"),
        description="Wrap content with a provenance header and footer",
    )
    max_concurrency: int = Field(
        default=8,
        ge=1,
        le=64,
        validation_alias=AliasChoices("maxConcurrency", "max_concurrency"),
        description="Upper bound on parallel requests per phase",
    )
    id_scheme: str = Field(
        default="github-repo",
        min_length=1,
        validation_alias=AliasChoices("idScheme", "id_scheme"),
        description="Leading segment of every file identifier",
    )

    @field_validator("repo_url")
    @classmethod
    def validate_repo_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("GitHub repo URL (repoUrl) is required in config.")
        # pydantic only collects ValueError into a ValidationError
        try:
            SourceRef.from_url(v, DEFAULT_BRANCH)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return v.strip()

    @field_validator("update_interval")
    @classmethod
    def validate_update_interval(cls, v: str) -> str:
        from repo_sync.sync.scheduler import parse_interval

        try:
            parse_interval(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return v.strip()

    @field_validator("include", "ignore", mode="before")
    @classmethod
    def normalize_patterns(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, str):
            return (v,)
        return tuple(v)

    @field_validator("include")
    @classmethod
    def default_include(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return v or ("**/*",)

    @property
    def update_interval_ms(self) -> int:
        from repo_sync.sync.scheduler import parse_interval

        return parse_interval(self.update_interval)

    @property
    def source_ref(self) -> SourceRef:
        return SourceRef.from_url(self.repo_url, self.branch)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "ShopConfig":
        """Validate a host-supplied mapping.

        Raises:
            ConfigurationError: If any option is missing or invalid
        """
        try:
            return cls.model_validate(dict(config))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e


class GitHubConfig(BaseModel):
    """Configuration for the GitHub REST transport."""

    token: str = Field(default=..., min_length=1, description="GitHub API token")
    api_url: str = Field(default="https://api.github.com", description="REST API base URL")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the APP_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    github: GitHubConfig
    shop: ShopConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    state_file: str = Field(
        default="sync_state.json", description="Where the reference host keeps its snapshot"
    )

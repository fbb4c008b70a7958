"""Provenance header and footer for file content."""

from datetime import datetime, timedelta, timezone

import structlog

from repo_sync.models.source import CommitInfo, SourceRef

log = structlog.stdlib.get_logger()

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
HEADER_RULE = "----------"


def format_date(value: int | float | datetime | str) -> str:
    """Coerce a date to ISO-8601 UTC with millisecond precision.

    Args:
        value: Epoch milliseconds, a datetime (naive values are taken as UTC)
            or an ISO-8601 string

    Returns:
        A string such as ``2024-01-15T14:30:00.000Z``

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot interpret {value!r} as a date")
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, (int, float)):
        moment = EPOCH + timedelta(milliseconds=value)
    elif isinstance(value, str):
        moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
    else:
        raise ValueError(f"Cannot interpret {value!r} as a date")

    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{moment.microsecond // 1000:03d}Z"


def annotate(
    raw_content: str,
    path: str,
    revision_id: str,
    date: int | float | datetime | str,
    source: SourceRef,
    source_label: str = "GitHub",
) -> str:
    """Wrap raw content with a provenance header and an end-of-file footer.

    Args:
        raw_content: File content as fetched
        path: Path of the file in the repository
        revision_id: Commit SHA used for the permalink
        date: Modification date of that commit
        source: Repository the file belongs to
        source_label: Hosting service named in the first header line

    Returns:
        Annotated content
    """
    file_url = f"{source.repo_url}/blob/{revision_id}/{path}"
    lines = [
        f"File from the {source_label} repo {source.owner}/{source.repo}",
        f"Path: {path}",
        f"Repo URL: {source.repo_url}",
        f"File URL (permalink): {file_url}",
        f"Date modified: {format_date(date)}",
        HEADER_RULE,
        raw_content,
        f"[end of {path}]",
    ]
    return "\n".join(lines)


class ContentAnnotator:
    """Applies :func:`annotate` when headers are enabled."""

    def __init__(self, source: SourceRef, enabled: bool = True, source_label: str = "GitHub"):
        self.source: SourceRef = source
        self.enabled: bool = enabled
        self.source_label: str = source_label

    def render(self, raw_content: str, path: str, commit: CommitInfo | None) -> str:
        """Annotate content with commit metadata.

        Raw content passes through unchanged when headers are disabled or no
        commit metadata is available.
        """
        if not self.enabled:
            return raw_content
        if commit is None:
            log.warning("header_skipped_missing_commit_info", path=path)
            return raw_content

        return annotate(
            raw_content,
            path,
            commit.revision_id,
            commit.timestamp,
            self.source,
            self.source_label,
        )

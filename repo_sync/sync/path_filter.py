"""Include/ignore filtering of repository paths."""

from collections.abc import Iterable

import structlog
from wcmatch import glob

log = structlog.stdlib.get_logger()

MATCH_EVERYTHING = "**/*"

# Path globbing: ``**`` spans directories, dotfiles match like any other
# file, ``{a,b}`` expands and a leading ``!`` negates. Patterns are anchored
# at the repository root, so ``*.md`` only matches top-level files.
GLOB_FLAGS = (
    glob.GLOBSTAR
    | glob.DOTGLOB
    | glob.BRACE
    | glob.EXTGLOB
    | glob.NEGATE
    | glob.NEGATEALL
    | glob.FORCEUNIX
)


def matches(path: str, pattern: str) -> bool:
    """Match a repository path against a single glob pattern."""
    return glob.globmatch(path, pattern, flags=GLOB_FLAGS)


def _as_patterns(patterns: str | Iterable[str] | None) -> tuple[str, ...]:
    if patterns is None:
        return ()
    if isinstance(patterns, str):
        return (patterns,)
    return tuple(patterns)


class PathFilter:
    """Decides membership of a path in the working set.

    A path is included iff it matches at least one include pattern and none
    of the ignore patterns. Each pattern is matched on its own.
    """

    def __init__(
        self,
        include: str | Iterable[str] | None = None,
        ignore: str | Iterable[str] | None = None,
    ):
        self.include_patterns: tuple[str, ...] = _as_patterns(include) or (MATCH_EVERYTHING,)
        self.ignore_patterns: tuple[str, ...] = _as_patterns(ignore)

    def include(self, path: str) -> bool:
        if not any(matches(path, pattern) for pattern in self.include_patterns):
            return False
        return not any(matches(path, pattern) for pattern in self.ignore_patterns)

    def filter(self, paths: Iterable[str]) -> list[str]:
        """Return the included paths, preserving order."""
        kept = [path for path in paths if self.include(path)]
        log.debug(
            "paths_filtered",
            include=self.include_patterns,
            ignore=self.ignore_patterns,
            kept=len(kept),
        )
        return kept

"""Mapping between repository paths and flat file identifiers.

An identifier is ``<scheme>-<owner>-<repo>-`` followed by the escaped path.
Escaping keeps the mapping reversible for every path:

    ``/`` -> ``-``
    ``-`` -> ``~-``
    ``~`` -> ``~~``

Paths that contain neither ``-`` nor ``~`` encode to the same identifier as the
plain slash-to-hyphen form used by earlier versions of the connector.

Owner and repository names go into the prefix unescaped, so ``a/b-c`` and
``a-b/c`` share the prefix ``github-repo-a-b-c-``. A host store must not mix
sources whose names collide this way; give one of them its own ``scheme``.
"""

import structlog

from repo_sync.exceptions import InvalidIdentifierError
from repo_sync.models.source import SourceRef

log = structlog.stdlib.get_logger()

DEFAULT_SCHEME = "github-repo"
SEPARATOR = "-"
ESCAPE = "~"


def identifier_prefix(source: SourceRef, scheme: str = DEFAULT_SCHEME) -> str:
    return f"{scheme}-{source.owner}-{source.repo}-"


def escape_path(path: str) -> str:
    escaped = []
    for char in path:
        if char == ESCAPE:
            escaped.append(ESCAPE + ESCAPE)
        elif char == SEPARATOR:
            escaped.append(ESCAPE + SEPARATOR)
        elif char == "/":
            escaped.append(SEPARATOR)
        else:
            escaped.append(char)
    return "".join(escaped)


def unescape_path(encoded: str) -> str:
    """Reverse :func:`escape_path`.

    Raises:
        ValueError: On a dangling or unknown escape sequence
    """
    chars = []
    i = 0
    while i < len(encoded):
        char = encoded[i]
        if char == ESCAPE:
            if i + 1 >= len(encoded):
                raise ValueError("dangling escape at end of identifier")
            following = encoded[i + 1]
            if following not in (ESCAPE, SEPARATOR):
                raise ValueError(f"unknown escape sequence {ESCAPE + following!r}")
            chars.append(following)
            i += 2
            continue
        chars.append("/" if char == SEPARATOR else char)
        i += 1
    return "".join(chars)


def encode(source: SourceRef, path: str, scheme: str = DEFAULT_SCHEME) -> str:
    """Derive the file identifier for a path of the given source."""
    if not path:
        raise ValueError("path must not be empty")
    return identifier_prefix(source, scheme) + escape_path(path)


def decode(source: SourceRef, identifier: str, scheme: str = DEFAULT_SCHEME) -> str:
    """Recover the path an identifier was derived from.

    Raises:
        InvalidIdentifierError: If the identifier does not belong to this
            source or is malformed
    """
    prefix = identifier_prefix(source, scheme)
    if not identifier.startswith(prefix):
        raise InvalidIdentifierError(identifier, f"expected prefix {prefix!r}")

    remainder = identifier[len(prefix):]
    if not remainder:
        raise InvalidIdentifierError(identifier, "no path after prefix")

    try:
        path = unescape_path(remainder)
    except ValueError as e:
        raise InvalidIdentifierError(identifier, str(e)) from e

    # Only identifiers encode() can produce are accepted, so that every path
    # has exactly one live identifier.
    if escape_path(path) != remainder:
        raise InvalidIdentifierError(identifier, "not canonical")
    return path


class IdentifierCodec:
    """Identifier codec bound to one source."""

    def __init__(self, source: SourceRef, scheme: str = DEFAULT_SCHEME):
        self.source: SourceRef = source
        self.scheme: str = scheme
        self.prefix: str = identifier_prefix(source, scheme)

    def encode(self, path: str) -> str:
        return encode(self.source, path, self.scheme)

    def decode(self, identifier: str) -> str:
        return decode(self.source, identifier, self.scheme)

    def owns(self, identifier: str) -> bool:
        """Check whether an identifier decodes under this source."""
        try:
            self.decode(identifier)
        except InvalidIdentifierError:
            return False
        return True

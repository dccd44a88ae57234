"""Common base for every kind of package source.

A source answers one question for the resolver: where can a package come
from? Subclasses define their own identity (``__eq__``/``__hash__``) and a
display string (``__str__``) that the registry uses for deterministic
lock ordering.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class FetchMode(Enum):
    """How a source should satisfy its next fetch."""

    LOCAL = "local"
    CACHED = "cached"
    REMOTE = "remote"


class SourceOptionsError(ValueError):
    """Raised when a source is built from a malformed options mapping."""

    def __init__(self, message: str, kind: str | None = None):
        self.kind = kind
        full_message = f"[{kind}] {message}" if kind else message
        super().__init__(full_message)


class InvalidSourceKind(TypeError):
    """Raised when a source does not belong to any registry category."""

    def __init__(self, source: object):
        self.source = source
        super().__init__(f"Invalid source: {source!r}")


class Source:
    """Abstract package source."""

    kind: str = "source"

    def __init__(self) -> None:
        self.fetch_mode = FetchMode.LOCAL

    def cached(self) -> None:
        """Prefer locally cached artifacts on the next fetch."""
        self.fetch_mode = FetchMode.CACHED

    def remote(self) -> None:
        """Force remote resolution on the next fetch."""
        self.fetch_mode = FetchMode.REMOTE

    def to_lock(self) -> dict:
        """Serialize the identifying attributes for the lockfile."""
        raise NotImplementedError

    def __str__(self) -> str:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self}>"


def option_flag(options: Mapping[str, Any], key: str, kind: str) -> bool:
    """Read a boolean option, rejecting non-boolean values."""
    value = options.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise SourceOptionsError(f"Option '{key}' must be a boolean", kind)
    return value


def option_string(
    options: Mapping[str, Any], key: str, kind: str, required: bool = False
) -> str | None:
    """Read a string option."""
    value = options.get(key)
    if value is None or value == "":
        if required:
            raise SourceOptionsError(f"Missing required option: {key}", kind)
        return None
    if not isinstance(value, str):
        raise SourceOptionsError(f"Option '{key}' must be a string", kind)
    return value

"""Remote package registry sources.

A registry source is backed by one or more index endpoints (mirrors).
Two notions of sameness exist:

- strict equality (``==``): same remote set and same ``allow_local`` flag,
  used when deduplicating declarations;
- remote equivalence (:meth:`RegistrySource.equivalent_remotes`): the same
  set of credential-free endpoints, ignoring order, duplicates and flags,
  used when matching declarations against a lockfile.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit, urlunsplit

from depsources.sources.base import Source, SourceOptionsError, option_flag


def normalize_remote(uri: str) -> str:
    """Normalise a remote URI so equivalent spellings compare equal."""
    uri = uri.strip()
    if not uri:
        raise SourceOptionsError("Remote URI must not be empty", RegistrySource.kind)
    return uri if uri.endswith("/") else uri + "/"


def remove_auth(uri: str) -> str:
    """Strip any ``user:password@`` component from a remote URI."""
    parts = urlsplit(uri)
    if "@" not in parts.netloc:
        return uri
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


class RegistrySource(Source):
    """Packages served by remote registry endpoints."""

    kind = "registry"

    def __init__(self, remotes: Iterable[str] = (), allow_local: bool = False):
        super().__init__()
        self.remotes: list[str] = []
        self.allow_local = allow_local
        for uri in remotes:
            self.add_remote(uri)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "RegistrySource":
        """Create from a manifest options mapping.

        ``remotes`` may be a single URI or a list of URIs.
        """
        remotes = options.get("remotes") or []
        if isinstance(remotes, str):
            remotes = [remotes]
        if not isinstance(remotes, (list, tuple)) or not all(
            isinstance(r, str) for r in remotes
        ):
            raise SourceOptionsError("Option 'remotes' must be a list of URIs", cls.kind)
        return cls(remotes, allow_local=option_flag(options, "allow_local", cls.kind))

    def add_remote(self, uri: str) -> None:
        """Append a remote endpoint, ignoring ones already present."""
        uri = normalize_remote(uri)
        if uri not in self.remotes:
            self.remotes.append(uri)

    @property
    def credless_remotes(self) -> list[str]:
        return [remove_auth(r) for r in self.remotes]

    def equivalent_remotes(self, other_remotes: Iterable[str]) -> bool:
        """True if ``other_remotes`` names the same set of endpoints."""
        other = {remove_auth(normalize_remote(r)) for r in other_remotes}
        return other == set(self.credless_remotes)

    def to_lock(self) -> dict:
        result = {"type": self.kind, "remotes": self.credless_remotes}
        if self.allow_local:
            result["allow_local"] = True
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegistrySource):
            return NotImplemented
        return (
            set(self.credless_remotes) == set(other.credless_remotes)
            and self.allow_local == other.allow_local
        )

    # Remotes are mutable, so registry sources are compared but never hashed.
    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        if not self.remotes:
            return "locally installed packages"
        names = ", ".join(self.credless_remotes)
        if self.allow_local:
            return f"registry at {names} or installed locally"
        return f"registry at {names}"

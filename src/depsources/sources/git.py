"""Version-control (git) checkout sources."""

from __future__ import annotations

from typing import Any, Mapping

from depsources.sources.base import Source, option_string

INSECURE_SCHEME = "git://"


class GitSource(Source):
    """Packages checked out from a git repository.

    Identity is ``uri`` plus ``ref``. The resolved ``revision`` is filled in
    after a fetch (or recovered from the lockfile) and is not part of
    identity.
    """

    kind = "git"

    def __init__(self, uri: str, ref: str | None = None, revision: str | None = None):
        super().__init__()
        self.uri = uri
        self.ref = ref
        self.revision = revision

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "GitSource":
        """Create from a manifest options mapping.

        The effective ref is the first of ``ref``, ``branch`` and ``tag``
        that is set.
        """
        uri = option_string(options, "uri", cls.kind, required=True)
        ref = (
            option_string(options, "ref", cls.kind)
            or option_string(options, "branch", cls.kind)
            or option_string(options, "tag", cls.kind)
        )
        revision = option_string(options, "revision", cls.kind)
        return cls(uri, ref=ref, revision=revision)

    @property
    def is_insecure(self) -> bool:
        """True if the URI uses the unencrypted git protocol."""
        return self.uri.startswith(INSECURE_SCHEME)

    @property
    def short_revision(self) -> str | None:
        return self.revision[:7] if self.revision else None

    def to_lock(self) -> dict:
        result = {"type": self.kind, "uri": self.uri}
        if self.ref:
            result["ref"] = self.ref
        if self.revision:
            result["revision"] = self.revision
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GitSource):
            return NotImplemented
        return self.uri == other.uri and self.ref == other.ref

    def __hash__(self) -> int:
        return hash((self.kind, self.uri, self.ref))

    def __str__(self) -> str:
        if self.ref and self.revision:
            return f"{self.uri} (at {self.ref}@{self.short_revision})"
        if self.ref:
            return f"{self.uri} (at {self.ref})"
        if self.revision:
            return f"{self.uri} (at {self.short_revision})"
        return self.uri

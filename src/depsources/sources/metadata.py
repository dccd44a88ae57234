"""Synthetic metadata source for packages provided by the runtime itself."""

from __future__ import annotations

from depsources.sources.base import Source


class MetadataSource(Source):
    """Source of built-in packages; has no configurable attributes."""

    kind = "metadata"

    def to_lock(self) -> dict:
        return {"type": self.kind}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Source):
            return NotImplemented
        return isinstance(other, MetadataSource)

    def __hash__(self) -> int:
        return hash(self.kind)

    def __str__(self) -> str:
        return "the local package metadata"

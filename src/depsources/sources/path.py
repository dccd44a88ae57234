"""Local filesystem path sources."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from depsources.sources.base import Source, option_flag, option_string


class PathSource(Source):
    """Packages read from a directory on disk.

    Identity is the normalised path plus the gemspec flag. ``is_global_default``
    only records how the source was declared and is not part of identity.
    """

    kind = "path"

    def __init__(
        self,
        path: str | os.PathLike = ".",
        is_gemspec: bool = False,
        is_global_default: bool = False,
    ):
        super().__init__()
        self.path = Path(os.path.normpath(os.fspath(path)))
        self.is_gemspec = is_gemspec
        self.is_global_default = is_global_default

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "PathSource":
        """Create from a manifest options mapping."""
        path = option_string(options, "path", cls.kind) or "."
        return cls(
            path,
            is_gemspec=option_flag(options, "gemspec", cls.kind),
            is_global_default=option_flag(options, "global", cls.kind),
        )

    def to_lock(self) -> dict:
        result = {"type": self.kind, "path": self.path.as_posix()}
        if self.is_gemspec:
            result["gemspec"] = True
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathSource):
            return NotImplemented
        return self.path == other.path and self.is_gemspec == other.is_gemspec

    def __hash__(self) -> int:
        return hash((self.kind, self.path, self.is_gemspec))

    def __str__(self) -> str:
        label = "gemspec" if self.is_gemspec else "source"
        return f"{label} at `{self.path.as_posix()}`"

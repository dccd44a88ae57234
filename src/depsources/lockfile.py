"""Source lockfile for reproducible resolution.

Handles:
- Writing the registry's lock view to JSON
- Reading locked sources back into Source objects
- Detecting drift between declared and locked sources

Design principles:
- Deterministic JSON (sorted keys, lock-view order preserved)
- Content hash computed over everything except the hash itself
- Schema-versioned for forward compatibility
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from depsources import __version__
from depsources.source_registry import SourceRegistry
from depsources.sources.base import Source, SourceOptionsError
from depsources.sources.git import GitSource
from depsources.sources.metadata import MetadataSource
from depsources.sources.path import PathSource
from depsources.sources.plugin import (
    PluginIndex,
    PluginSource,
    UnknownPluginSourceError,
)
from depsources.sources.registry import RegistrySource

logger = logging.getLogger(__name__)

LOCKFILE_SCHEMA_VERSION = "1.0.0"
DEFAULT_LOCKFILE_NAME = "sources.lock.json"


class LockfileError(ValueError):
    """Raised when a lockfile cannot be read."""


def source_from_lock(data: dict, plugin_index: PluginIndex | None = None) -> Source:
    """Rebuild a source from its ``to_lock()`` form.

    Raises:
        LockfileError: If the entry is malformed or its type is unknown
    """
    if not isinstance(data, dict):
        raise LockfileError(f"Locked source must be a mapping, got {data!r}")

    source_type = data.get("type")
    try:
        if source_type == PathSource.kind:
            if not isinstance(data.get("path"), str):
                raise LockfileError("Locked path source needs a string 'path'")
            return PathSource.from_options(data)
        if source_type == GitSource.kind:
            return GitSource.from_options(data)
        if source_type == RegistrySource.kind:
            remotes = data.get("remotes")
            if not isinstance(remotes, list):
                raise LockfileError("Locked registry source needs a 'remotes' list")
            return RegistrySource.from_options(data)
        if source_type == PluginSource.kind:
            if plugin_index is not None:
                return plugin_index.build(data.get("plugin", ""), data.get("options"))
            return PluginSource(data.get("plugin", ""), data.get("options"))
        if source_type == MetadataSource.kind:
            return MetadataSource()
    except (SourceOptionsError, UnknownPluginSourceError) as e:
        raise LockfileError(f"Invalid locked {source_type} source: {e}") from e

    raise LockfileError(f"Unknown locked source type: {source_type!r}")


@dataclass
class SourceLockfile:
    """Locked sources of a manifest."""

    tool_version: str
    schema_version: str
    generated_at: str
    multisource: bool = False
    sources: list[Source] = field(default_factory=list)
    lockfile_hash: str = ""

    def to_dict(self, include_hash: bool = True) -> dict:
        """Serialize to dict."""
        result = {
            "tool_version": self.tool_version,
            "schema_version": self.schema_version,
            "generated_at": self.generated_at,
            "multisource": self.multisource,
            "sources": [s.to_lock() for s in self.sources],
        }
        if include_hash and self.lockfile_hash:
            result["lockfile_hash"] = self.lockfile_hash
        return result

    def to_json(self, pretty: bool = True) -> str:
        """Serialize to JSON string."""
        return json.dumps(
            self.to_dict(),
            indent=2 if pretty else None,
            ensure_ascii=False,
            sort_keys=True,
        )

    def compute_hash(self) -> str:
        """Compute SHA-256 hash of the sources (excluding timestamp and hash)."""
        data = self.to_dict(include_hash=False)
        del data["generated_at"]
        content = json.dumps(data, ensure_ascii=False, sort_keys=True)
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    @classmethod
    def from_registry(cls, registry: SourceRegistry) -> "SourceLockfile":
        """Build a lockfile from the registry's lock view."""
        lockfile = cls(
            tool_version=__version__,
            schema_version=LOCKFILE_SCHEMA_VERSION,
            generated_at=datetime.now(timezone.utc).isoformat(),
            multisource=registry.multisource_enabled,
            sources=registry.lock_sources(),
        )
        lockfile.lockfile_hash = lockfile.compute_hash()
        return lockfile

    @classmethod
    def from_dict(
        cls, data: dict, plugin_index: PluginIndex | None = None
    ) -> "SourceLockfile":
        """Deserialize from dict."""
        if not isinstance(data, dict):
            raise LockfileError("Lockfile must be a JSON object")
        try:
            return cls(
                tool_version=data["tool_version"],
                schema_version=data["schema_version"],
                generated_at=data["generated_at"],
                multisource=bool(data.get("multisource", False)),
                sources=[
                    source_from_lock(s, plugin_index) for s in data.get("sources", [])
                ],
                lockfile_hash=data.get("lockfile_hash", ""),
            )
        except KeyError as e:
            raise LockfileError(f"Lockfile is missing field: {e.args[0]}") from e

    @classmethod
    def load(cls, path: Path, plugin_index: PluginIndex | None = None) -> "SourceLockfile":
        """Load lockfile from JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise LockfileError(f"Lockfile is not valid JSON: {e}") from e
        return cls.from_dict(data, plugin_index)

    def save(self, path: Path) -> None:
        """Save lockfile to JSON file."""
        self.lockfile_hash = self.compute_hash()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(pretty=True), encoding="utf-8")
        logger.info(f"Lockfile written to: {path}")


@dataclass
class DriftResult:
    """Outcome of checking declared sources against a lockfile."""

    changed: bool
    declared: list[str] = field(default_factory=list)
    locked: list[str] = field(default_factory=list)

    @property
    def added(self) -> list[str]:
        """Declared sources missing from the lockfile."""
        return [s for s in self.declared if s not in self.locked]

    @property
    def removed(self) -> list[str]:
        """Locked sources no longer declared."""
        return [s for s in self.locked if s not in self.declared]

    def to_dict(self) -> dict:
        """Serialize to dict."""
        return {
            "changed": self.changed,
            "declared": self.declared,
            "locked": self.locked,
            "added": self.added,
            "removed": self.removed,
        }


def check_lockfile(registry: SourceRegistry, lockfile: SourceLockfile) -> DriftResult:
    """Reconcile ``registry`` with ``lockfile`` and report drift.

    Switches the registry to multisource mode first when the lockfile was
    written in that mode.
    """
    if lockfile.multisource:
        registry.enable_multisource()

    changed = registry.replace_sources(lockfile.sources)
    return DriftResult(
        changed=changed,
        declared=[str(s) for s in registry.lock_sources()],
        locked=[str(s) for s in lockfile.sources],
    )

"""Manifest loading: declarative source declarations -> SourceRegistry.

A manifest is a YAML mapping:

    source: https://registry.example.org/   # default remote(s), str or list
    sources:
      - path: ./vendor/lib
        global: true
      - git: https://github.com/org/repo.git
        branch: main
      - registry: [https://mirror-a.example/, https://mirror-b.example/]
      - plugin: s3
        uri: s3://bucket/packages

Declarations are applied in document order, so a later declaration of an
equal source replaces an earlier one.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from depsources.config import Settings
from depsources.source_registry import SourceRegistry
from depsources.sources.plugin import PluginIndex

DEFAULT_MANIFEST_NAME = "sources.yaml"

# Entry key -> option key holding the entry's value
ENTRY_KINDS = {
    "path": "path",
    "git": "uri",
    "registry": "remotes",
    "plugin": None,
}


class ManifestError(ValueError):
    """Raised when a manifest document is malformed."""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        full_message = f"[sources[{index}]] {message}" if index is not None else message
        super().__init__(full_message)


def _entry_kind(entry: dict, index: int) -> str:
    kinds = [k for k in ENTRY_KINDS if k in entry]
    if not kinds:
        raise ManifestError(
            f"Unknown source entry, expected one of: {list(ENTRY_KINDS)}", index
        )
    if len(kinds) > 1:
        raise ManifestError(f"Ambiguous source entry declares {kinds}", index)
    return kinds[0]


def add_entry(registry: SourceRegistry, entry: dict, index: int | None = None):
    """Apply a single ``sources`` entry to ``registry``."""
    if not isinstance(entry, dict):
        raise ManifestError("Source entry must be a mapping", index)

    kind = _entry_kind(entry, index)
    options = {k: v for k, v in entry.items() if k != kind}

    if kind == "plugin":
        return registry.add_plugin_source(entry["plugin"], options)

    options[ENTRY_KINDS[kind]] = entry[kind]
    if kind == "path":
        return registry.add_path_source(options)
    if kind == "git":
        return registry.add_git_source(options)
    return registry.add_registry_source(options)


def build_registry(
    document: dict,
    settings: Settings | None = None,
    plugin_index: PluginIndex | None = None,
) -> SourceRegistry:
    """Populate a new registry from a parsed manifest document."""
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ManifestError("Manifest must be a YAML mapping")

    registry = SourceRegistry(settings=settings, plugin_index=plugin_index)

    remotes = document.get("source") or []
    if isinstance(remotes, str):
        remotes = [remotes]
    if not isinstance(remotes, list) or not all(isinstance(r, str) for r in remotes):
        raise ManifestError("'source' must be a URI or a list of URIs")
    for uri in remotes:
        registry.add_registry_remote(uri)

    entries = document.get("sources") or []
    if not isinstance(entries, list):
        raise ManifestError("'sources' must be a list")
    for index, entry in enumerate(entries):
        add_entry(registry, entry, index)

    return registry


def load_manifest(
    path: Path | str,
    settings: Settings | None = None,
    plugin_index: PluginIndex | None = None,
) -> SourceRegistry:
    """Load a manifest file into a new registry.

    Raises:
        ManifestError: If the manifest is malformed
        FileNotFoundError: If the manifest does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ManifestError(f"Manifest is not valid YAML: {e}") from e

    return build_registry(document, settings=settings, plugin_index=plugin_index)

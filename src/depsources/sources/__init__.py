"""Package source variants.

- base.py: Source base class, fetch modes, shared errors
- path.py: local directory sources
- git.py: git checkout sources
- registry.py: remote registry sources and remote equivalence
- plugin.py: plugin-provided sources and the plugin index
- metadata.py: the synthetic metadata source
"""

from depsources.sources.base import (
    FetchMode,
    InvalidSourceKind,
    Source,
    SourceOptionsError,
)
from depsources.sources.git import GitSource
from depsources.sources.metadata import MetadataSource
from depsources.sources.path import PathSource
from depsources.sources.plugin import (
    PluginIndex,
    PluginSource,
    UnknownPluginSourceError,
)
from depsources.sources.registry import RegistrySource

__all__ = [
    "FetchMode",
    "InvalidSourceKind",
    "Source",
    "SourceOptionsError",
    "GitSource",
    "MetadataSource",
    "PathSource",
    "PluginIndex",
    "PluginSource",
    "UnknownPluginSourceError",
    "RegistrySource",
]

"""Source registry: the declared sources of one resolution session.

The manifest reader populates the registry through the ``add_*`` methods.
The lock persister then either asks for :meth:`SourceRegistry.lock_sources`
to write, or hands back sources read from an existing lockfile to
:meth:`SourceRegistry.replace_sources` to find out whether the declared
sources drifted from the locked ones.

Two registry-source modes exist:

- multisource disabled (default): every registry source is locked on its
  own, deduplicated and sorted;
- multisource enabled: all registry remotes are collapsed into a single
  synthetic source, and reconciliation may reassign the default aggregate
  source from the lockfile.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from depsources.config import Settings
from depsources.sources.base import InvalidSourceKind, Source
from depsources.sources.git import GitSource
from depsources.sources.metadata import MetadataSource
from depsources.sources.path import PathSource
from depsources.sources.plugin import PluginIndex, PluginSource
from depsources.sources.registry import RegistrySource

logger = logging.getLogger(__name__)

INSECURE_GIT_WARNING = (
    "The git source `{uri}` uses the `git` protocol, which transmits data "
    "without encryption. Disable this warning with `git.allow_insecure: true` "
    "in your depsources config, or switch to the `https` protocol to keep "
    "your data secure."
)


def _display_key(source: Source) -> str:
    return str(source)


def _remote_set_key(source: RegistrySource) -> tuple:
    """Sort key that pairs registry sources with equal remote sets."""
    return tuple(sorted(set(source.credless_remotes)))


def _unique(sources: Iterable[Source]) -> list:
    unique: list = []
    for source in sources:
        if not any(source == kept for kept in unique):
            unique.append(source)
    return unique


def _add_source_to_list(source: Source, sources: list) -> Source:
    """Insert ``source`` at the front and drop later strict duplicates."""
    sources.insert(0, source)
    sources[:] = _unique(sources)
    return source


class SourceRegistry:
    """Ordered, deduplicated collections of every declared source.

    Not thread-safe: callers that fetch from several sources in parallel
    must not mutate the registry concurrently.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        plugin_index: PluginIndex | None = None,
    ):
        """Initialize registry.

        Args:
            settings: Settings consulted on git-source insertion
                      (defaults to ``Settings()``)
            plugin_index: Installed plugin source types. If None, any plugin
                          type is accepted as a plain PluginSource
        """
        self.settings = settings or Settings()
        self.plugin_index = plugin_index

        self.path_sources: list[PathSource] = []
        self.git_sources: list[GitSource] = []
        self.plugin_sources: list[PluginSource] = []
        self._registry_sources: list[RegistrySource] = []
        self._global_registry_source: RegistrySource | None = None
        self.global_path_source: PathSource | None = None
        self.metadata_source = MetadataSource()

        self.multisource_enabled = False

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    def enable_multisource(self) -> None:
        """Switch to collapsing registry sources in the lock view.

        Called once, early, when the lockfile format carries merged
        registry sections.
        """
        self.multisource_enabled = True

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def add_path_source(self, options: Mapping[str, Any] | None = None) -> PathSource:
        """Declare a local path source.

        The first non-gemspec path source flagged ``global`` becomes the
        default source for unqualified dependencies.
        """
        options = options or {}
        source = _add_source_to_list(PathSource.from_options(options), self.path_sources)
        if self.global_path_source is not None and not any(
            s is self.global_path_source for s in self.path_sources
        ):
            # The global source was superseded by an equal redeclaration
            self.global_path_source = source
        if source.is_global_default and not source.is_gemspec:
            if self.global_path_source is None:
                self.global_path_source = source
        logger.debug(f"Added path source: {source}")
        return source

    def add_git_source(self, options: Mapping[str, Any] | None = None) -> GitSource:
        """Declare a git source, warning if it uses the git:// protocol."""
        source = _add_source_to_list(GitSource.from_options(options or {}), self.git_sources)
        self._warn_on_git_protocol(source)
        logger.debug(f"Added git source: {source}")
        return source

    def add_registry_source(
        self, options: Mapping[str, Any] | None = None
    ) -> RegistrySource:
        """Declare an explicit registry source."""
        source = _add_source_to_list(
            RegistrySource.from_options(options or {}), self._registry_sources
        )
        logger.debug(f"Added registry source: {source}")
        return source

    def add_plugin_source(
        self, source_type: str, options: Mapping[str, Any] | None = None
    ) -> PluginSource:
        """Declare a source provided by the plugin registered as ``source_type``."""
        if self.plugin_index is not None:
            source = self.plugin_index.build(source_type, options)
        else:
            source = PluginSource(source_type, options)
        source = _add_source_to_list(source, self.plugin_sources)
        logger.debug(f"Added plugin source: {source}")
        return source

    def _warn_on_git_protocol(self, source: GitSource) -> None:
        if self.settings["git.allow_insecure"]:
            return
        if source.is_insecure:
            logger.warning(INSECURE_GIT_WARNING.format(uri=source.uri))

    # ------------------------------------------------------------------
    # Default aggregate registry source
    # ------------------------------------------------------------------

    @property
    def default_registry_source(self) -> RegistrySource:
        """The aggregate registry source, created on first access."""
        if self._global_registry_source is None:
            self._global_registry_source = RegistrySource(allow_local=True)
            logger.debug("Created default aggregate registry source")
        return self._global_registry_source

    def set_default_registry_source(self, uri: str) -> RegistrySource:
        """Create the aggregate with a single remote, unless it already exists."""
        if self._global_registry_source is None:
            self._global_registry_source = RegistrySource([uri], allow_local=True)
        return self._global_registry_source

    def add_registry_remote(self, uri: str) -> RegistrySource:
        """Add a remote to the aggregate registry source and return it."""
        aggregate = self.default_registry_source
        aggregate.add_remote(uri)
        return aggregate

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def default_source(self) -> Source:
        """Where unqualified dependencies resolve from."""
        return self.global_path_source or self.default_registry_source

    def registry_sources(self) -> list[RegistrySource]:
        """Explicit registry sources followed by the aggregate."""
        return self._registry_sources + [self.default_registry_source]

    def registry_remotes(self) -> list[str]:
        """Union of all registry remotes, in first-seen order."""
        remotes: list[str] = []
        for source in self.registry_sources():
            for remote in source.remotes:
                if remote not in remotes:
                    remotes.append(remote)
        return remotes

    def all_sources(self) -> list[Source]:
        return (
            self.path_sources
            + self.git_sources
            + self.plugin_sources
            + self.registry_sources()
            + [self.metadata_source]
        )

    def lock_other_sources(self) -> list[Source]:
        """Path, git and plugin sources in display order."""
        return sorted(
            self.path_sources + self.git_sources + self.plugin_sources,
            key=_display_key,
        )

    def lock_registry_sources(self) -> list[RegistrySource]:
        if self.multisource_enabled:
            return [RegistrySource(self.registry_remotes())]
        return _unique(sorted(self.registry_sources(), key=_display_key))

    def lock_sources(self) -> list[Source]:
        """The canonical ordered sources to persist."""
        return self.lock_other_sources() + self.lock_registry_sources()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, source: Source) -> Source | None:
        """Find the declared source equivalent to ``source``.

        Registry sources match on remote equivalence; every other kind
        matches on strict equality.

        Raises:
            InvalidSourceKind: If ``source`` does not belong to a category
        """
        for candidate in self._source_list_for(source):
            if _equivalent_source(source, candidate):
                return candidate
        return None

    def _source_list_for(self, source: Source) -> Sequence[Source]:
        if isinstance(source, GitSource):
            return self.git_sources
        if isinstance(source, PathSource):
            return self.path_sources
        if isinstance(source, RegistrySource):
            return self.registry_sources()
        if isinstance(source, PluginSource):
            return self.plugin_sources
        raise InvalidSourceKind(source)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def replace_sources(self, replacements: Sequence[Source]) -> bool:
        """Merge locked source instances into the declared ones.

        Declared path, git and plugin sources are swapped for the strictly
        equal locked instance, which may carry extra state such as a
        resolved git revision.

        Returns:
            True if the declared sources differ from ``replacements``
            and a re-lock is required
        """
        if not replacements:
            logger.debug("No locked sources to reconcile, treating as changed")
            return True

        for sources in (self.path_sources, self.git_sources, self.plugin_sources):
            for index, source in enumerate(sources):
                replacement = next((r for r in replacements if r == source), None)
                if replacement is None:
                    continue
                if source is self.global_path_source:
                    self.global_path_source = replacement
                sources[index] = replacement

        if self.multisource_enabled:
            registry_replacements = [
                r for r in replacements if isinstance(r, RegistrySource)
            ]
            if registry_replacements:
                self._global_registry_source = registry_replacements[-1]

        changed = not self.equivalent_sources(replacements)
        logger.debug(f"Reconciled {len(replacements)} locked sources, changed={changed}")
        return changed

    def equivalent_sources(self, replacements: Sequence[Source]) -> bool:
        """True if ``replacements`` describe the same sources as the lock view."""
        registry_replacements = [r for r in replacements if isinstance(r, RegistrySource)]
        other_replacements = [r for r in replacements if not isinstance(r, RegistrySource)]
        return self._equal_other_sources(other_replacements) and (
            self._equivalent_registry_sources(registry_replacements)
        )

    def _equal_other_sources(self, replacements: Sequence[Source]) -> bool:
        return self.lock_other_sources() == sorted(replacements, key=_display_key)

    def _equivalent_registry_sources(self, replacements: Sequence[RegistrySource]) -> bool:
        locked = sorted(self.lock_registry_sources(), key=_remote_set_key)
        replaced = sorted(replacements, key=_remote_set_key)
        if len(locked) != len(replaced):
            return False
        return all(
            lock_source.equivalent_remotes(replacement.remotes)
            for lock_source, replacement in zip(locked, replaced)
        )

    # ------------------------------------------------------------------
    # Fetch mode
    # ------------------------------------------------------------------

    def cached(self) -> None:
        """Tell every source to prefer cached artifacts."""
        for source in self.all_sources():
            source.cached()

    def remote(self) -> None:
        """Tell every source to resolve against remotes."""
        for source in self.all_sources():
            source.remote()


def _equivalent_source(source: Source, other: Source) -> bool:
    if isinstance(source, RegistrySource) and isinstance(other, RegistrySource):
        return source.equivalent_remotes(other.remotes)
    return source == other

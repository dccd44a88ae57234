"""Tests for SourceRegistry insertion, lookup and lock views."""

from __future__ import annotations

import logging

import pytest

from depsources.config import Settings
from depsources.source_registry import SourceRegistry
from depsources.sources import (
    FetchMode,
    GitSource,
    InvalidSourceKind,
    MetadataSource,
    PathSource,
    PluginIndex,
    PluginSource,
    RegistrySource,
    UnknownPluginSourceError,
)

REGISTRY_LOGGER = "depsources.source_registry"


@pytest.fixture
def registry():
    return SourceRegistry()


def _no_strict_duplicates(sources) -> bool:
    return all(
        not (a == b) for i, a in enumerate(sources) for b in sources[i + 1 :]
    )


# ============================================================================
# Insertion
# ============================================================================


class TestInsertion:
    """Test add_* deduplication and front insertion."""

    def test_most_recent_first(self, registry):
        registry.add_path_source({"path": "a"})
        registry.add_path_source({"path": "b"})
        assert [str(s) for s in registry.path_sources] == [
            "source at `b`",
            "source at `a`",
        ]

    def test_later_duplicate_wins(self, registry):
        registry.add_git_source({"uri": "https://example.com/x", "ref": "main"})
        latest = registry.add_git_source(
            {"uri": "https://example.com/x", "ref": "main", "revision": "deadbeef"}
        )
        assert len(registry.git_sources) == 1
        assert registry.git_sources[0] is latest
        assert registry.git_sources[0].revision == "deadbeef"

    def test_no_duplicates_in_any_category(self, registry):
        for _ in range(3):
            registry.add_path_source({"path": "lib"})
            registry.add_path_source({"path": "lib", "gemspec": True})
            registry.add_git_source({"uri": "https://example.com/x"})
            registry.add_registry_source({"remotes": ["https://a.example"]})
            registry.add_registry_source({"remotes": ["https://b.example", "https://a.example"]})
            registry.add_plugin_source("s3", {"uri": "s3://bucket"})

            assert _no_strict_duplicates(registry.path_sources)
            assert _no_strict_duplicates(registry.git_sources)
            assert _no_strict_duplicates(registry.plugin_sources)
            assert _no_strict_duplicates(registry.registry_sources())

        assert len(registry.path_sources) == 2
        assert len(registry.git_sources) == 1
        assert len(registry.plugin_sources) == 1
        # Two explicit sources plus the aggregate
        assert len(registry.registry_sources()) == 3

    def test_add_returns_inserted_source(self, registry):
        source = registry.add_registry_source({"remotes": "https://a.example"})
        assert isinstance(source, RegistrySource)
        assert registry.registry_sources()[0] is source

    def test_plugin_source_without_index_accepts_any_type(self, registry):
        source = registry.add_plugin_source("anything", {"uri": "x://y"})
        assert type(source) is PluginSource

    def test_plugin_source_uses_index(self):
        class S3Source(PluginSource):
            pass

        index = PluginIndex()
        index.register("s3", S3Source)
        registry = SourceRegistry(plugin_index=index)

        assert isinstance(registry.add_plugin_source("s3", {"uri": "s3://b"}), S3Source)
        with pytest.raises(UnknownPluginSourceError):
            registry.add_plugin_source("gcs")


class TestGlobalPathSource:
    """Test global path source tracking."""

    def test_first_global_path_source_recorded(self, registry):
        registry.add_path_source({"path": "local"})
        first = registry.add_path_source({"path": "one", "global": True})
        registry.add_path_source({"path": "two", "global": True})
        assert registry.global_path_source is first
        assert registry.default_source is first

    def test_gemspec_never_becomes_global(self, registry):
        registry.add_path_source({"path": ".", "gemspec": True, "global": True})
        assert registry.global_path_source is None

    def test_global_stays_member_after_redeclaration(self, registry):
        registry.add_path_source({"path": "one", "global": True})
        again = registry.add_path_source({"path": "one"})
        assert registry.global_path_source is again
        assert any(s is registry.global_path_source for s in registry.path_sources)


class TestInsecureGitWarning:
    """Test the git:// protocol warning."""

    def test_warns_and_still_inserts(self, registry, caplog):
        registry.add_path_source({"global": True})
        with caplog.at_level(logging.WARNING, logger=REGISTRY_LOGGER):
            source = registry.add_git_source({"uri": "git://example.com/x"})

        assert "uses the `git` protocol" in caplog.text
        assert "git://example.com/x" in caplog.text
        assert source in registry.git_sources

    def test_allow_insecure_suppresses_warning(self, caplog):
        registry = SourceRegistry(settings=Settings(git_allow_insecure=True))
        with caplog.at_level(logging.WARNING, logger=REGISTRY_LOGGER):
            registry.add_git_source({"uri": "git://example.com/x"})
        assert "git` protocol" not in caplog.text

    def test_https_does_not_warn(self, registry, caplog):
        with caplog.at_level(logging.WARNING, logger=REGISTRY_LOGGER):
            registry.add_git_source({"uri": "https://example.com/x"})
        assert caplog.records == []


# ============================================================================
# Default aggregate registry source
# ============================================================================


class TestDefaultRegistrySource:
    """Test lazy aggregate creation and assign-once semantics."""

    def test_lazily_created_once(self, registry):
        aggregate = registry.default_registry_source
        assert aggregate.allow_local
        assert aggregate.remotes == []
        assert registry.default_registry_source is aggregate

    def test_default_source_falls_back_to_aggregate(self, registry):
        assert registry.default_source is registry.default_registry_source

    def test_set_default_assigns_once(self, registry):
        first = registry.set_default_registry_source("https://a.example")
        second = registry.set_default_registry_source("https://b.example")
        assert first is second
        assert first.remotes == ["https://a.example/"]
        assert first.allow_local

    def test_set_default_noop_after_access(self, registry):
        registry.default_registry_source
        registry.set_default_registry_source("https://a.example")
        assert registry.default_registry_source.remotes == []

    def test_add_registry_remote(self, registry):
        aggregate = registry.add_registry_remote("https://a.example")
        registry.add_registry_remote("https://b.example")
        registry.add_registry_remote("https://a.example")
        assert aggregate is registry.default_registry_source
        assert aggregate.remotes == ["https://a.example/", "https://b.example/"]


# ============================================================================
# Derived views
# ============================================================================


class TestDerivedViews:
    """Test registry_sources, remotes and all_sources."""

    def test_registry_sources_end_with_aggregate(self, registry):
        explicit = registry.add_registry_source({"remotes": ["https://a.example"]})
        assert registry.registry_sources() == [explicit, registry.default_registry_source]
        assert registry.registry_sources()[-1] is registry.default_registry_source

    def test_registry_remotes_first_seen_order(self, registry):
        registry.add_registry_source({"remotes": ["https://b.example", "https://a.example"]})
        registry.add_registry_remote("https://a.example")
        registry.add_registry_remote("https://c.example")
        assert registry.registry_remotes() == [
            "https://b.example/",
            "https://a.example/",
            "https://c.example/",
        ]

    def test_all_sources_category_order(self, registry):
        registry.add_registry_source({"remotes": ["https://a.example"]})
        plugin = registry.add_plugin_source("s3")
        git = registry.add_git_source({"uri": "https://example.com/x"})
        path = registry.add_path_source({"path": "lib"})

        sources = registry.all_sources()
        assert sources[:3] == [path, git, plugin]
        assert isinstance(sources[3], RegistrySource)
        assert sources[4] is registry.default_registry_source
        assert sources[-1] is registry.metadata_source

    def test_single_metadata_source(self, registry):
        first = registry.metadata_source
        registry.add_path_source({"path": "lib"})
        registry.cached()
        assert registry.metadata_source is first
        assert sum(isinstance(s, MetadataSource) for s in registry.all_sources()) == 1


class TestLockView:
    """Test lock_sources ordering and multisource collapse."""

    def _declare(self, registry, order):
        declarations = {
            "path": lambda: registry.add_path_source({"path": "vendor/lib"}),
            "git": lambda: registry.add_git_source(
                {"uri": "https://example.com/x.git", "branch": "main"}
            ),
            "plugin": lambda: registry.add_plugin_source("s3", {"uri": "s3://bucket"}),
            "registry_a": lambda: registry.add_registry_source(
                {"remotes": ["https://a.example"]}
            ),
            "registry_b": lambda: registry.add_registry_source(
                {"remotes": ["https://b.example"]}
            ),
            "remote": lambda: registry.add_registry_remote("https://default.example"),
        }
        for name in order:
            declarations[name]()

    def test_lock_other_sources_sorted_by_display(self, registry):
        registry.add_path_source({"path": "zeta"})
        registry.add_git_source({"uri": "https://example.com/x.git"})
        registry.add_plugin_source("s3", {"uri": "s3://bucket"})
        displays = [str(s) for s in registry.lock_other_sources()]
        assert displays == sorted(displays)
        assert len(displays) == 3

    def test_lock_view_independent_of_insertion_order(self):
        order = ["path", "git", "plugin", "registry_a", "registry_b", "remote"]
        first = SourceRegistry()
        second = SourceRegistry()
        self._declare(first, order)
        self._declare(second, list(reversed(order)))

        assert [str(s) for s in first.lock_sources()] == [
            str(s) for s in second.lock_sources()
        ]
        assert first.lock_sources() == second.lock_sources()

    def test_multisource_disabled_keeps_each_registry_source(self, registry):
        registry.add_registry_source({"remotes": ["https://a.example"]})
        registry.add_registry_source({"remotes": ["https://b.example"]})
        locked = registry.lock_registry_sources()

        remote_sets = [set(s.remotes) for s in locked]
        assert {"https://a.example/"} in remote_sets
        assert {"https://b.example/"} in remote_sets
        assert [str(s) for s in locked] == sorted(str(s) for s in locked)

    def test_multisource_enabled_collapses_to_union(self, registry):
        registry.add_registry_source({"remotes": ["https://a.example"]})
        registry.add_registry_source({"remotes": ["https://b.example"]})
        registry.add_registry_remote("https://c.example")
        registry.enable_multisource()

        locked = registry.lock_registry_sources()
        assert len(locked) == 1
        assert set(locked[0].remotes) == {
            "https://a.example/",
            "https://b.example/",
            "https://c.example/",
        }

    def test_lock_registry_sources_deduplicated(self, registry):
        registry.add_registry_source({"remotes": ["https://a.example"], "allow_local": True})
        registry.add_registry_remote("https://a.example")
        # Explicit source equals the aggregate
        assert len(registry.lock_registry_sources()) == 1

    def test_lock_sources_is_other_then_registry(self, registry):
        self._declare(registry, ["registry_a", "path", "git"])
        locked = registry.lock_sources()
        assert locked[:2] == registry.lock_other_sources()
        assert all(isinstance(s, RegistrySource) for s in locked[2:])
        assert not any(isinstance(s, MetadataSource) for s in locked)


# ============================================================================
# Lookup
# ============================================================================


class TestGet:
    """Test lookup by equivalence."""

    def test_registry_lookup_by_remote_equivalence(self, registry):
        declared = registry.add_registry_source(
            {"remotes": ["https://a.example", "https://b.example"]}
        )
        found = registry.get(RegistrySource(["https://b.example", "https://a.example"]))
        assert found is declared

    def test_registry_lookup_finds_aggregate(self, registry):
        registry.add_registry_remote("https://a.example")
        assert registry.get(RegistrySource(["https://a.example"])) is (
            registry.default_registry_source
        )

    def test_git_lookup_by_strict_equality(self, registry):
        declared = registry.add_git_source({"uri": "https://example.com/x", "ref": "main"})
        found = registry.get(GitSource("https://example.com/x", ref="main", revision="abc"))
        assert found is declared
        assert registry.get(GitSource("https://example.com/x", ref="dev")) is None

    def test_path_and_plugin_lookup(self, registry):
        path = registry.add_path_source({"path": "lib"})
        plugin = registry.add_plugin_source("s3", {"uri": "s3://b"})
        assert registry.get(PathSource("./lib")) is path
        assert registry.get(PluginSource("s3", {"uri": "s3://b"})) is plugin

    def test_missing_returns_none(self, registry):
        assert registry.get(PathSource("nowhere")) is None

    def test_invalid_source_kind(self, registry):
        with pytest.raises(InvalidSourceKind):
            registry.get(MetadataSource())
        with pytest.raises(InvalidSourceKind):
            registry.get("not a source")


# ============================================================================
# Fetch mode propagation
# ============================================================================


class TestFetchModePropagation:
    """Test cached() / remote() broadcast."""

    def test_cached_reaches_every_source(self, registry):
        registry.add_path_source({"path": "lib"})
        registry.add_git_source({"uri": "https://example.com/x"})
        registry.add_plugin_source("s3")
        registry.add_registry_source({"remotes": ["https://a.example"]})

        registry.cached()
        assert all(s.fetch_mode is FetchMode.CACHED for s in registry.all_sources())

        registry.remote()
        assert all(s.fetch_mode is FetchMode.REMOTE for s in registry.all_sources())

"""depsources: source registry and lockfile reconciliation for dependency managers."""

__version__ = "0.1.0"

from depsources.source_registry import SourceRegistry  # noqa: E402

__all__ = ["SourceRegistry", "__version__"]

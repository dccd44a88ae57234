"""Sources provided by installed plugins.

Plugins register a source type name (e.g. ``"s3"``) against a
:class:`PluginSource` subclass in a :class:`PluginIndex`. The registry asks
the index for the class when a manifest declares ``plugin: <type>``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from depsources.sources.base import Source, SourceOptionsError


class UnknownPluginSourceError(KeyError):
    """Raised when no installed plugin provides a source type."""

    def __init__(self, source_type: str, available: list[str] | None = None):
        self.source_type = source_type
        self.available = available or []
        super().__init__(source_type)

    def __str__(self) -> str:
        message = f"No plugin provides source type '{self.source_type}'"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        return message


class PluginSource(Source):
    """A source whose behaviour lives in a plugin.

    Identity is structural over the plugin type and its options.
    """

    kind = "plugin"

    def __init__(self, source_type: str, options: Mapping[str, Any] | None = None):
        super().__init__()
        if not source_type or not isinstance(source_type, str):
            raise SourceOptionsError("Plugin source type must be a non-empty string", self.kind)
        self.source_type = source_type
        self.options = dict(options or {})

    @property
    def uri(self) -> str | None:
        return self.options.get("uri")

    def to_lock(self) -> dict:
        return {"type": self.kind, "plugin": self.source_type, "options": self.options}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PluginSource):
            return NotImplemented
        return self.source_type == other.source_type and self.options == other.options

    def __hash__(self) -> int:
        return hash((self.kind, self.source_type))

    def __str__(self) -> str:
        if self.uri:
            return f"plugin source for {self.source_type} at {self.uri}"
        return f"plugin source for {self.source_type}"


@dataclass
class PluginIndex:
    """Installed plugin source types, keyed by type name."""

    source_types: dict[str, type[PluginSource]] = field(default_factory=dict)

    def register(
        self, source_type: str, source_class: type[PluginSource] = PluginSource
    ) -> None:
        """Register the class that implements ``source_type``."""
        if not issubclass(source_class, PluginSource):
            raise TypeError(f"{source_class!r} is not a PluginSource subclass")
        self.source_types[source_type] = source_class

    def is_registered(self, source_type: str) -> bool:
        return source_type in self.source_types

    def source_class(self, source_type: str) -> type[PluginSource]:
        """Get the class for a plugin source type.

        Raises:
            UnknownPluginSourceError: If no plugin registered the type
        """
        try:
            return self.source_types[source_type]
        except KeyError:
            raise UnknownPluginSourceError(
                source_type, sorted(self.source_types)
            ) from None

    def build(self, source_type: str, options: Mapping[str, Any] | None = None) -> PluginSource:
        """Instantiate a plugin source of ``source_type``."""
        return self.source_class(source_type)(source_type, options)

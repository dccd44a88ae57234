"""Configuration settings for depsources.

Settings come from, in increasing precedence:
1. dataclass defaults
2. a YAML config file (DEPSOURCES_CONFIG_PATH env override,
   else ~/.depsources/config.yaml when present)
3. DEPSOURCES_<SECTION>__<KEY> environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

ENV_PREFIX = "DEPSOURCES_"
TRUE_VALUES = {"1", "true", "yes", "on"}

# Dotted setting key -> Settings field
SETTING_KEYS = {
    "git.allow_insecure": "git_allow_insecure",
}


class ConfigError(ValueError):
    """Raised when a config file cannot be used."""


def default_config_path() -> Path:
    return Path.home() / ".depsources" / "config.yaml"


@dataclass
class Settings:
    """Application settings."""

    # Suppress the warning for git:// sources
    git_allow_insecure: bool = False

    # Where the settings were read from, if anywhere
    path: Path | None = field(default=None, compare=False)

    def __getitem__(self, key: str):
        """Look up a setting by its dotted name (e.g. ``git.allow_insecure``)."""
        try:
            return getattr(self, SETTING_KEYS[key])
        except KeyError:
            raise KeyError(f"Unknown setting: {key}") from None

    def set(self, key: str, value) -> None:
        """Set a setting by its dotted name."""
        if key not in SETTING_KEYS:
            raise KeyError(f"Unknown setting: {key}")
        setattr(self, SETTING_KEYS[key], _coerce_bool(value, key))

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Settings":
        """Load settings from a YAML file and the environment.

        Args:
            path: Config file. If None, uses DEPSOURCES_CONFIG_PATH or
                  ~/.depsources/config.yaml (skipped when missing)

        Raises:
            ConfigError: If the file is not a mapping or holds unknown keys
            FileNotFoundError: If an explicit path does not exist
        """
        explicit = path is not None
        if path is None:
            env_path = os.environ.get(f"{ENV_PREFIX}CONFIG_PATH")
            if env_path:
                path = Path(env_path)
                explicit = True
            else:
                path = default_config_path()

        if isinstance(path, str):
            path = Path(path)

        settings = cls()
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            if not isinstance(raw, dict):
                raise ConfigError(f"Config must be a YAML mapping: {path}")
            for key, value in _flatten(raw).items():
                if key not in SETTING_KEYS:
                    raise ConfigError(f"Unknown setting '{key}' in {path}")
                settings.set(key, value)
            settings.path = path
        elif explicit:
            raise FileNotFoundError(f"Config not found: {path}")

        settings.apply_env(os.environ)
        return settings

    def apply_env(self, environ) -> None:
        """Override settings from ``DEPSOURCES_GIT__ALLOW_INSECURE`` style variables."""
        for key in SETTING_KEYS:
            env_name = ENV_PREFIX + key.upper().replace(".", "__")
            if env_name in environ:
                self.set(key, environ[env_name])

    def to_dict(self) -> dict:
        """Serialize to dict keyed by dotted setting name."""
        return {key: self[key] for key in SETTING_KEYS}


def _flatten(data: dict, prefix: str = "") -> dict:
    """Flatten nested mappings into dotted keys."""
    flat = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{name}."))
        else:
            flat[name] = value
    return flat


def _coerce_bool(value, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUE_VALUES
    if isinstance(value, int):
        return bool(value)
    raise ConfigError(f"Setting '{key}' must be a boolean")

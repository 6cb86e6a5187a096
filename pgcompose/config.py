"""
ProjectConfig: Project-level configuration loader for pgcompose.

This module provides:

- find_config_file: Walk up directories to locate pgcompose.toml
- deep_merge: Recursively merge two dicts (override wins for leaf values)
- ProjectInfo: Typed project metadata
- ProjectConfig: Main config object holding every PostgreSQL instance

Configuration is loaded from ``pgcompose.toml`` with optional
``pgcompose.local.toml`` overrides deep-merged on top.  Each
``[postgres.NAME]`` table describes one instance.

Example:
    >>> config = ProjectConfig.load()
    >>> config.instance("pg1").port
    5432
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pgcompose.exceptions import ConfigError
from pgcompose.postgres.config import PostgresServiceConfig

CONFIG_FILENAME = "pgcompose.toml"
LOCAL_CONFIG_FILENAME = "pgcompose.local.toml"
DEFAULT_GENERATED_DIR = ".pgcompose"
DEFAULT_LAUNCHER = "pgcompose"


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """
    Walk up from *start_dir* to find ``pgcompose.toml``.

    Args:
        start_dir: Directory to start searching from. Defaults to ``Path.cwd()``.

    Returns:
        Path to the config file, or ``None`` if not found.
    """
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts. *override* wins for leaf values.

    Neither input is mutated; a new dict is returned.  Keys keep the order
    of *base*, followed by keys only present in *override*.
    """
    merged: dict[str, Any] = dict(base)

    for key, over_val in override.items():
        base_val = base.get(key)
        if isinstance(base_val, dict) and isinstance(over_val, dict):
            merged[key] = deep_merge(base_val, over_val)
        else:
            merged[key] = over_val

    return merged


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectInfo:
    """
    Typed project metadata from the ``[project]`` table.

    Attributes:
        generated_dir: Where per-instance generated files are written.
        launcher: Command used to invoke pgcompose from the init process.
    """

    generated_dir: Path = Path(DEFAULT_GENERATED_DIR)
    launcher: str = DEFAULT_LAUNCHER


@dataclass
class ProjectConfig:
    """
    Main project configuration loaded from ``pgcompose.toml``.

    Typical usage::

        config = ProjectConfig.load()
        for instance in config.enabled_instances():
            ...
    """

    project: ProjectInfo
    instances: dict[str, PostgresServiceConfig] = field(default_factory=dict)
    path: Path | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, config_path: Path | None = None, start_dir: Path | None = None) -> ProjectConfig:
        """
        Find and load project configuration.

        Args:
            config_path: Explicit config file.  When omitted, walks up from
                *start_dir* (default: cwd) to locate ``pgcompose.toml``.
            start_dir: Directory to start searching from.

        Raises:
            FileNotFoundError: If no config file is found.
            ConfigError: If the file is not valid TOML or has bad options.
        """
        if config_path is None:
            config_path = find_config_file(start_dir)
            if config_path is None:
                raise FileNotFoundError(
                    f"Could not find {CONFIG_FILENAME} in {start_dir or Path.cwd()} "
                    f"or any parent directory"
                )
        config_path = Path(config_path)

        data = _read_toml(config_path)
        local_path = config_path.parent / LOCAL_CONFIG_FILENAME
        if local_path.is_file():
            data = deep_merge(data, _read_toml(local_path))

        config = cls.from_dict(data)
        config.path = config_path
        return config

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectConfig:
        """
        Create a :class:`ProjectConfig` from a parsed TOML dict.

        Raises:
            ConfigError: If an instance table is malformed.
        """
        project_raw = data.get("project", {})
        project = ProjectInfo(
            generated_dir=Path(project_raw.get("generated_dir", DEFAULT_GENERATED_DIR)),
            launcher=project_raw.get("launcher", DEFAULT_LAUNCHER),
        )

        instances: dict[str, PostgresServiceConfig] = {}
        for name, raw in data.get("postgres", {}).items():
            if not isinstance(raw, dict):
                raise ConfigError(f"[postgres.{name}] must be a table")
            instances[name] = PostgresServiceConfig.from_dict(name, raw)

        return cls(project=project, instances=instances)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def instance(self, name: str) -> PostgresServiceConfig:
        """
        Return the instance named *name*.

        Raises:
            KeyError: If no instance with that name exists.
        """
        try:
            return self.instances[name]
        except KeyError:
            available = ", ".join(sorted(self.instances)) or "(none)"
            raise KeyError(
                f"No postgres instance {name!r} in config. Available: {available}"
            ) from None

    def enabled_instances(self) -> list[PostgresServiceConfig]:
        return [i for i in self.instances.values() if i.enable]

    def instance_dir(self, name: str) -> Path:
        """Generated-files directory for instance *name*."""
        return self.project.generated_dir / name


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from None

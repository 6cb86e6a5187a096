"""
PostgreSQL instance configuration.

Contains:
- ``PostgresServiceConfig``: All options for one PostgreSQL instance, with
  documented defaults and an eager ``validate()``.
- ``PostgresPackage``: Where the PostgreSQL binaries come from and whether
  extensions can be added to them.
- ``HbaRule``, ``DatabaseSpec``, ``InitialScript``: Option sub-records.
- ``default_user``: The invoking user's name, read from the environment.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from pgcompose.exceptions import (
    ConfigError,
    DuplicateDatabaseName,
    InvalidSettingType,
    MissingExtensionSupport,
)
from pgcompose.postgres.process import DependencyCondition, ReadinessProbe

DEFAULT_PORT = 5432
DEFAULT_INITDB_ARGS = ("--locale=C", "--encoding=UTF8")

SettingValue = bool | float | int | str

# Upstream option spellings accepted alongside the snake_case field names.
_KEY_ALIASES = {
    "dataDir": "data_dir",
    "socketDir": "socket_dir",
    "hbaConf": "hba_conf",
    "createDatabase": "create_database",
    "initdbArgs": "initdb_args",
    "initialDatabases": "initial_databases",
    "initialScript": "initial_script",
    "dependsOn": "depends_on",
}


def default_user() -> str:
    """Return the invoking user's name (``$USER``), or ``postgres``."""
    return os.environ.get("USER") or "postgres"


@dataclass(frozen=True)
class HbaRule:
    """One ``pg_hba.conf`` entry."""

    type: str
    database: str
    user: str
    address: str
    method: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HbaRule:
        missing = [k for k in ("type", "database", "user", "method") if k not in data]
        if missing:
            raise ConfigError(f"HBA rule {data!r} is missing: {', '.join(missing)}")
        return cls(
            type=str(data["type"]),
            database=str(data["database"]),
            user=str(data["user"]),
            address=str(data.get("address", "")),
            method=str(data["method"]),
        )


@dataclass(frozen=True)
class DatabaseSpec:
    """
    A database to create on first start.

    Attributes:
        name: Database name, unique across the list.
        schemas: Ordered schema sources (``.sql`` files or directories of
            them).  ``None`` creates an empty database.
    """

    name: str
    schemas: tuple[Path, ...] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> DatabaseSpec:
        if isinstance(data, str):
            return cls(name=data)
        if "name" not in data:
            raise ConfigError(f"Initial database {data!r} has no name")
        schemas = data.get("schemas")
        return cls(
            name=str(data["name"]),
            schemas=None if schemas is None else tuple(Path(s) for s in schemas),
        )


@dataclass(frozen=True)
class InitialScript:
    """SQL run before and after database creation on first start."""

    before: str | None = None
    after: str | None = None


@dataclass(frozen=True)
class PostgresPackage:
    """
    The PostgreSQL installation used for an instance.

    Attributes:
        bin_dir: Directory holding ``postgres``, ``initdb``, ``pg_ctl`` etc.
            ``None`` resolves binaries from ``PATH``.
        supports_extensions: Whether extensions may be added to this package.
        extensions: Extensions already applied to the package.
    """

    bin_dir: Path | None = None
    supports_extensions: bool = True
    extensions: tuple[str, ...] = ()

    def binary(self, name: str) -> str:
        """Return the command for binary *name* within this package."""
        if self.bin_dir is None:
            return name
        return str(self.bin_dir / name)

    def with_extensions(self, extensions: list[str]) -> PostgresPackage:
        """Return a copy of this package with *extensions* added.

        Raises:
            MissingExtensionSupport: If the package cannot be extended, or
                already has extensions applied.
        """
        if not self.supports_extensions:
            raise MissingExtensionSupport(
                "Cannot add extensions to this PostgreSQL package: "
                "it does not support extensions"
            )
        if self.extensions:
            raise MissingExtensionSupport(
                "Cannot add extensions to this PostgreSQL package: "
                f"extensions {list(self.extensions)} were already applied"
            )
        return replace(self, extensions=tuple(extensions))


@dataclass
class PostgresServiceConfig:
    """
    Configuration for one PostgreSQL instance.

    Attributes:
        name: Instance name; also the process name and namespace.
        enable: Whether the instance is included in generated output.
        package: PostgreSQL installation to use.
        extensions: Extensions to add to *package* (``None`` for none).
        data_dir: PGDATA directory (default ``./data/<name>``).
        socket_dir: Unix socket directory (default: *data_dir*).
        hba_conf: Extra ``pg_hba.conf`` rules, appended after the defaults.
        listen_addresses: TCP listen addresses ('' for socket only).
        port: TCP port.
        superuser: Superuser name (``None`` means ``$USER``).
        create_database: Create a database named after the invoking user on
            first start.  Only applies when *initial_databases* is empty.
        initdb_args: Extra arguments passed to ``initdb``.
        settings: ``postgresql.conf`` overrides.
        initial_databases: Databases (and schemas) created on first start.
        depends_on: Extra dependency edges for the ``<name>-init`` process.
        initial_script: SQL run before/after database creation.
        readiness: Readiness probe timing for the main process.
    """

    name: str
    enable: bool = True
    package: PostgresPackage = field(default_factory=PostgresPackage)
    extensions: list[str] | None = None
    data_dir: Path | None = None
    socket_dir: Path | None = None
    hba_conf: list[HbaRule] = field(default_factory=list)
    listen_addresses: str = ""
    port: int = DEFAULT_PORT
    superuser: str | None = None
    create_database: bool = True
    initdb_args: list[str] = field(default_factory=lambda: list(DEFAULT_INITDB_ARGS))
    settings: dict[str, SettingValue] = field(default_factory=dict)
    initial_databases: list[DatabaseSpec] = field(default_factory=list)
    depends_on: dict[str, DependencyCondition] | None = None
    initial_script: InitialScript = field(default_factory=InitialScript)
    readiness: ReadinessProbe = field(default_factory=ReadinessProbe)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir) if self.data_dir else Path("data") / self.name
        self.socket_dir = Path(self.socket_dir) if self.socket_dir else self.data_dir

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> PostgresServiceConfig:
        """
        Build a config from a parsed ``[postgres.<name>]`` table.

        Keys may use snake_case field names or the upstream camelCase
        spellings (``dataDir``, ``initialDatabases``, ...).

        Raises:
            ConfigError: On unknown keys or malformed sub-tables.
        """
        raw = {_KEY_ALIASES.get(k, k): v for k, v in data.items()}
        known = set(cls.__dataclass_fields__) - {"name"}
        unknown = sorted(set(raw) - known - {"bin_dir"})
        if unknown:
            raise ConfigError(f"Unknown option(s) for {name!r}: {', '.join(unknown)}")

        kwargs: dict[str, Any] = {}
        for key in ("enable", "listen_addresses", "port", "superuser", "create_database"):
            if key in raw:
                kwargs[key] = raw[key]
        for key in ("data_dir", "socket_dir"):
            if raw.get(key):
                kwargs[key] = Path(raw[key])
        if "extensions" in raw:
            kwargs["extensions"] = list(raw["extensions"]) if raw["extensions"] is not None else None
        if "initdb_args" in raw:
            kwargs["initdb_args"] = [str(a) for a in raw["initdb_args"]]
        if "settings" in raw:
            kwargs["settings"] = dict(raw["settings"])

        package = raw.get("package", {})
        if isinstance(package, str):
            package = {"bin_dir": package}
        if "bin_dir" in raw:
            package = {**package, "bin_dir": raw["bin_dir"]}
        if package:
            kwargs["package"] = PostgresPackage(
                bin_dir=Path(package["bin_dir"]) if package.get("bin_dir") else None,
                supports_extensions=package.get("supports_extensions", True),
                extensions=tuple(package.get("extensions", ())),
            )

        kwargs["hba_conf"] = [HbaRule.from_dict(r) for r in raw.get("hba_conf", [])]
        kwargs["initial_databases"] = [
            DatabaseSpec.from_dict(d) for d in raw.get("initial_databases", [])
        ]

        script = raw.get("initial_script", {})
        kwargs["initial_script"] = InitialScript(
            before=script.get("before"), after=script.get("after")
        )

        if raw.get("depends_on") is not None:
            kwargs["depends_on"] = _parse_depends_on(name, raw["depends_on"])

        if "readiness" in raw:
            # The probe command is always pg_isready; only timing is configurable.
            if "command" in raw["readiness"]:
                raise ConfigError(
                    f"readiness.command cannot be set for {name!r}; "
                    f"only probe timing is configurable"
                )
            try:
                kwargs["readiness"] = ReadinessProbe(**raw["readiness"])
            except TypeError as e:
                raise ConfigError(f"Invalid readiness options for {name!r}: {e}") from None

        return cls(name=name, **kwargs)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check the configuration before any side effect.

        Raises:
            ConfigError: Bad name, port or initdb arguments.
            InvalidSettingType: A settings value is not a scalar.
            DuplicateDatabaseName: Two initial databases share a name.
            MissingExtensionSupport: Extensions cannot be added to the package.
        """
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", self.name):
            raise ConfigError(f"Invalid instance name {self.name!r}")
        # bool is an int subclass; reject it explicitly
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigError(f"Port for {self.name!r} must be an integer, got {self.port!r}")
        if not 0 < self.port < 65536:
            raise ConfigError(f"Port for {self.name!r} out of range: {self.port}")

        for key, value in self.settings.items():
            if not isinstance(value, (bool, float, int, str)):
                raise InvalidSettingType(key, value)

        seen: set[str] = set()
        for db in self.initial_databases:
            if db.name in seen:
                raise DuplicateDatabaseName(db.name)
            seen.add(db.name)

        if self.depends_on:
            for dep, condition in self.depends_on.items():
                if not isinstance(condition, DependencyCondition):
                    raise ConfigError(f"Invalid condition {condition!r} for dependency {dep!r}")

        self.resolved_package()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def resolved_package(self) -> PostgresPackage:
        """Return *package* with *extensions* applied."""
        if self.extensions is None:
            return self.package
        return self.package.with_extensions(self.extensions)

    def effective_superuser(self) -> str:
        """The superuser name: *superuser* if set, else the invoking user."""
        return self.superuser or default_user()


def _parse_depends_on(name: str, data: dict[str, Any]) -> dict[str, DependencyCondition]:
    deps: dict[str, DependencyCondition] = {}
    for dep, value in data.items():
        condition = value.get("condition") if isinstance(value, dict) else value
        try:
            deps[dep] = DependencyCondition(condition)
        except ValueError:
            allowed = ", ".join(c.value for c in DependencyCondition)
            raise ConfigError(
                f"Invalid condition {condition!r} for {name!r} dependency {dep!r}. "
                f"Expected one of: {allowed}"
            ) from None
    return deps

"""
pgcompose: Local PostgreSQL instances for process-compose.

Turns a declarative ``pgcompose.toml`` into generated ``pg_hba.conf`` /
``postgresql.conf`` files, a bootstrap plan, and a ``<name>-init`` /
``<name>`` process pair per instance for the process-compose supervisor.

Example:
    # pgcompose.toml
    [postgres.pg1]
    port = 5433
    initialDatabases = [{ name = "app", schemas = ["./schema"] }]

    $ pgcompose generate
    $ process-compose up
"""

from pgcompose.compose import render_compose, write_compose
from pgcompose.config import ProjectConfig, deep_merge, find_config_file
from pgcompose.exceptions import (
    ConfigError,
    DuplicateDatabaseName,
    InitTimeout,
    InvalidSettingType,
    MissingExtensionSupport,
    PgComposeError,
    ServerUnavailable,
    SqlScriptFailure,
)
from pgcompose.postgres import (
    DatabaseSpec,
    DependencyCondition,
    HbaRule,
    InitialScript,
    PostgresPackage,
    PostgresServiceConfig,
    build_processes,
    compile_hba,
    merge_settings,
    plan_bootstrap,
    render_settings,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "DatabaseSpec",
    "DependencyCondition",
    "DuplicateDatabaseName",
    "HbaRule",
    "InitTimeout",
    "InitialScript",
    "InvalidSettingType",
    "MissingExtensionSupport",
    "PgComposeError",
    "PostgresPackage",
    "PostgresServiceConfig",
    "ProjectConfig",
    "ServerUnavailable",
    "SqlScriptFailure",
    "__version__",
    "build_processes",
    "compile_hba",
    "deep_merge",
    "find_config_file",
    "merge_settings",
    "plan_bootstrap",
    "render_compose",
    "render_settings",
    "write_compose",
]

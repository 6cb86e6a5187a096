"""
PostgreSQL instance configuration, file generation and initialisation.

Re-exports the public API so callers can ``from pgcompose.postgres import ...``.
"""

from pgcompose.postgres.bootstrap import InitPlan, plan_bootstrap, schema_files
from pgcompose.postgres.config import (
    DEFAULT_PORT,
    DatabaseSpec,
    HbaRule,
    InitialScript,
    PostgresPackage,
    PostgresServiceConfig,
    default_user,
)
from pgcompose.postgres.hba import DEFAULT_HBA_RULES, compile_hba
from pgcompose.postgres.process import (
    DependencyCondition,
    ProcessDescriptor,
    ReadinessProbe,
    build_processes,
)
from pgcompose.postgres.settings import (
    default_settings,
    format_value,
    merge_settings,
    render_settings,
)

__all__ = [
    "DEFAULT_HBA_RULES",
    "DEFAULT_PORT",
    "DatabaseSpec",
    "DependencyCondition",
    "HbaRule",
    "InitPlan",
    "InitialScript",
    "PostgresPackage",
    "PostgresServiceConfig",
    "ProcessDescriptor",
    "ReadinessProbe",
    "build_processes",
    "compile_hba",
    "default_settings",
    "default_user",
    "format_value",
    "merge_settings",
    "plan_bootstrap",
    "render_settings",
    "schema_files",
]

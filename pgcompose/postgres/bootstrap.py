"""
Database bootstrap planning.

Turns the ``initial_databases`` / ``initial_script`` / ``create_database``
options into an ordered ``InitPlan``.  The plan is pure data; it is executed
by :func:`pgcompose.postgres.lifecycle.execute_plan` against a running
server.

Ordering contract:

1. Wait for the server to accept connections.
2. ``initial_script.before`` (if set).
3. For each database: create it if absent, then apply its schema sources
   in declared order.  With no databases and ``create_default_db``, create
   one database named after the invoking user.
4. ``initial_script.after`` (if set), always last.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from pgcompose.exceptions import DuplicateDatabaseName
from pgcompose.postgres.config import DatabaseSpec, InitialScript

# Database that before/after scripts and existence checks connect to.
MAINTENANCE_DB = "postgres"


@dataclass(frozen=True)
class WaitForServer:
    def describe(self) -> str:
        return "wait for server"


@dataclass(frozen=True)
class RunSql:
    label: str
    sql: str
    database: str = MAINTENANCE_DB

    def describe(self) -> str:
        return f"run {self.label} script on {self.database}"


@dataclass(frozen=True)
class CreateDatabase:
    name: str

    def describe(self) -> str:
        return f"create database {self.name} (if absent)"


@dataclass(frozen=True)
class ApplySchema:
    database: str
    source: Path

    def describe(self) -> str:
        return f"apply {self.source} to {self.database}"


Step = Union[WaitForServer, RunSql, CreateDatabase, ApplySchema]


@dataclass(frozen=True)
class InitPlan:
    """Ordered bootstrap steps for one instance."""

    steps: tuple[Step, ...]

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def databases(self) -> list[str]:
        """Names of the databases this plan creates, in order."""
        return [s.name for s in self.steps if isinstance(s, CreateDatabase)]


def plan_bootstrap(
    databases: Sequence[DatabaseSpec],
    initial_script: InitialScript,
    create_default_db: bool,
    *,
    default_user: str,
) -> InitPlan:
    """
    Build the ordered bootstrap plan.

    Args:
        databases: Databases to create, each with optional schema sources.
        initial_script: SQL to run before/after database creation.
        create_default_db: Create a database named *default_user* when
            *databases* is empty.
        default_user: The invoking user's name.

    Raises:
        DuplicateDatabaseName: If two entries share a name.
    """
    seen: set[str] = set()
    for db in databases:
        if db.name in seen:
            raise DuplicateDatabaseName(db.name)
        seen.add(db.name)

    steps: list[Step] = [WaitForServer()]

    if initial_script.before:
        steps.append(RunSql("before", initial_script.before))

    if databases:
        for db in databases:
            steps.append(CreateDatabase(db.name))
            for source in db.schemas or ():
                steps.append(ApplySchema(db.name, Path(source)))
    elif create_default_db:
        steps.append(CreateDatabase(default_user))

    if initial_script.after:
        steps.append(RunSql("after", initial_script.after))

    return InitPlan(tuple(steps))


def schema_files(source: Path) -> list[Path]:
    """
    Expand a schema source into the files to apply, in order.

    A file yields itself.  A directory yields every ``*.sql`` file beneath
    it, sorted by path.

    Raises:
        FileNotFoundError: If *source* does not exist.
    """
    source = Path(source)
    if source.is_dir():
        return sorted(p for p in source.rglob("*.sql") if p.is_file())
    if source.is_file():
        return [source]
    raise FileNotFoundError(f"Schema source not found: {source}")

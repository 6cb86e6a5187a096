"""
PostgreSQL instance initialisation.

Body of the ``<name>-init`` process.  Initialises the data directory on
first start, installs the generated configuration, and runs the bootstrap
plan against a temporary socket-only server.  Later runs only refresh the
configuration.

Any failure raises; the CLI turns it into a non-zero exit so the
supervisor never starts the main server.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import time
from pathlib import Path
from typing import Any, Callable

import psycopg
from psycopg import sql

from pgcompose.exceptions import (
    InitTimeout,
    MissingExtensionSupport,
    ServerUnavailable,
    SqlScriptFailure,
)
from pgcompose.postgres.bootstrap import (
    MAINTENANCE_DB,
    ApplySchema,
    CreateDatabase,
    InitPlan,
    RunSql,
    WaitForServer,
    plan_bootstrap,
    schema_files,
)
from pgcompose.postgres.config import PostgresPackage, PostgresServiceConfig, default_user
from pgcompose.postgres.render import CONF_FILENAME, write_instance_files

logger = logging.getLogger(__name__)

# Written into PGDATA once the bootstrap plan has completed.
INIT_MARKER = "pgcompose.initialized"

DEFAULT_RETRIES = 30
DEFAULT_RETRY_INTERVAL = 1.0
DEFAULT_START_TIMEOUT = 60


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _find_postgres_binaries(package: PostgresPackage) -> dict[str, str | None]:
    """Find PostgreSQL binaries in the package's bin dir or on PATH."""
    binaries = ["initdb", "pg_ctl", "psql", "pg_config"]
    found: dict[str, str | None] = {}
    for name in binaries:
        if package.bin_dir is not None:
            candidate = package.bin_dir / name
            found[name] = str(candidate) if candidate.exists() else None
        else:
            found[name] = shutil.which(name)
    return found


def _require_binaries(package: PostgresPackage) -> dict[str, str]:
    binaries = _find_postgres_binaries(package)
    missing = [name for name, path in binaries.items() if path is None]
    if missing:
        where = package.bin_dir or "PATH"
        raise RuntimeError(f"PostgreSQL binaries not found in {where}: {', '.join(missing)}")
    return {name: path for name, path in binaries.items() if path is not None}


def _run_cmd(
    cmd: list[str],
    *,
    input: str | None = None,
    timeout: float = 30.0,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run a PostgreSQL tool, feeding *input* on stdin.

    With *check*, a non-zero exit raises ``RuntimeError`` carrying the
    tool's output; otherwise the caller inspects ``returncode``.
    """
    command_line = shlex.join(cmd)
    logger.debug(f"Running: {command_line}")
    result = subprocess.run(cmd, capture_output=True, text=True, input=input, timeout=timeout)
    if check and result.returncode:
        raise RuntimeError(
            f"{Path(cmd[0]).name} exited with {result.returncode}: {command_line}\n"
            f"stdout: {result.stdout}\n"
            f"stderr: {result.stderr}"
        )
    return result


def wait_for_server(
    conninfo: dict[str, Any],
    *,
    retries: int = DEFAULT_RETRIES,
    interval: float = DEFAULT_RETRY_INTERVAL,
    connect: Callable[..., Any] = psycopg.connect,
) -> None:
    """
    Poll until the server accepts connections.

    Raises:
        ServerUnavailable: If every attempt fails.
    """
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")
    last_error: Exception | None = None
    for attempt in range(1, retries + 1):
        try:
            with connect(**conninfo, connect_timeout=max(1, int(interval))):
                logger.debug(f"Server accepted connection on attempt {attempt}")
                return
        except psycopg.OperationalError as e:
            last_error = e
            logger.debug(f"Server not ready (attempt {attempt}/{retries}): {e}")
        if attempt < retries:
            time.sleep(interval)

    raise ServerUnavailable(
        f"PostgreSQL at {conninfo.get('host')}:{conninfo.get('port')} did not accept "
        f"connections after {retries} attempts: {last_error}"
    )


def _database_exists(conn: Any, name: str) -> bool:
    row = conn.execute("SELECT 1 FROM pg_database WHERE datname = %s", (name,)).fetchone()
    return row is not None


def _create_database(conn: Any, name: str) -> None:
    conn.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name)))
    logger.info(f"Created database {name}")


def _run_psql(
    psql: str,
    conninfo: dict[str, Any],
    database: str,
    label: str,
    *,
    sql_text: str | None = None,
    file: Path | None = None,
) -> None:
    cmd = [
        psql,
        "-X",
        "-v", "ON_ERROR_STOP=1",
        "-h", str(conninfo["host"]),
        "-p", str(conninfo["port"]),
        "-U", str(conninfo["user"]),
        "-d", database,
        "-f", str(file) if file is not None else "-",
    ]
    result = _run_cmd(cmd, input=sql_text, timeout=3600, check=False)
    if result.returncode != 0:
        raise SqlScriptFailure(label, result.returncode, result.stderr)


# ---------------------------------------------------------------------------
# Plan execution
# ---------------------------------------------------------------------------


def execute_plan(
    plan: InitPlan,
    conninfo: dict[str, Any],
    *,
    psql: str = "psql",
    retries: int = DEFAULT_RETRIES,
    interval: float = DEFAULT_RETRY_INTERVAL,
    connect: Callable[..., Any] = psycopg.connect,
) -> None:
    """
    Execute bootstrap steps in order against a running server.

    Args:
        plan: Steps from :func:`plan_bootstrap`.
        conninfo: ``host``, ``port`` and ``user`` for connections.
        psql: ``psql`` binary used for scripts and schema files.
        retries: Connection attempts for ``WaitForServer``.
        interval: Seconds between connection attempts.
        connect: psycopg connect function.

    Raises:
        ServerUnavailable: The server never accepted connections.
        SqlScriptFailure: A script, schema file or database creation
            failed.  Not retried.
    """
    for step in plan:
        logger.info(f"Bootstrap: {step.describe()}")
        if isinstance(step, WaitForServer):
            wait_for_server(
                {**conninfo, "dbname": MAINTENANCE_DB},
                retries=retries,
                interval=interval,
                connect=connect,
            )
        elif isinstance(step, RunSql):
            _run_psql(psql, conninfo, step.database, step.label, sql_text=step.sql)
        elif isinstance(step, CreateDatabase):
            try:
                with connect(**conninfo, dbname=MAINTENANCE_DB, autocommit=True) as conn:
                    if _database_exists(conn, step.name):
                        logger.info(f"Database {step.name} already exists")
                        continue
                    _create_database(conn, step.name)
            except psycopg.Error as e:
                raise SqlScriptFailure(step.describe(), 1, str(e)) from e
        elif isinstance(step, ApplySchema):
            for path in schema_files(step.source):
                _run_psql(psql, conninfo, step.database, str(path), file=path)
        else:
            raise TypeError(f"Unknown bootstrap step: {step!r}")


# ---------------------------------------------------------------------------
# Init process
# ---------------------------------------------------------------------------


def _check_extensions(pg_config: str, extensions: tuple[str, ...]) -> None:
    """Ensure every requested extension is installed in the package."""
    if not extensions:
        return
    sharedir = Path(_run_cmd([pg_config, "--sharedir"]).stdout.strip())
    missing = [e for e in extensions if not (sharedir / "extension" / f"{e}.control").exists()]
    if missing:
        raise MissingExtensionSupport(
            f"Extensions not installed in {sharedir}: {', '.join(missing)}"
        )


def _initdb(config: PostgresServiceConfig, initdb: str, data_dir: Path) -> None:
    logger.info(f"Initializing PostgreSQL data directory: {data_dir}")
    data_dir.mkdir(parents=True, exist_ok=True)
    cmd = [initdb, "-D", str(data_dir), *config.initdb_args]
    if config.superuser:
        cmd.extend(["-U", config.superuser])
    _run_cmd(cmd, timeout=300)


def _start_temporary_server(
    pg_ctl: str, data_dir: Path, socket_dir: Path, port: int, log_file: Path
) -> None:
    options = f"-c listen_addresses='' -k {shlex.quote(str(socket_dir))} -p {port}"
    cmd = [
        pg_ctl,
        "-D", str(data_dir),
        "-l", str(log_file),
        "-o", options,
        "-w", "-t", str(DEFAULT_START_TIMEOUT),
        "start",
    ]
    try:
        result = _run_cmd(cmd, timeout=DEFAULT_START_TIMEOUT + 10, check=False)
    except subprocess.TimeoutExpired:
        raise InitTimeout(
            f"Temporary server did not start within {DEFAULT_START_TIMEOUT}s; see {log_file}"
        ) from None
    if result.returncode != 0:
        raise InitTimeout(
            f"Temporary server failed to start (exit {result.returncode}); see {log_file}\n"
            f"stderr: {result.stderr}"
        )


def _stop_temporary_server(pg_ctl: str, data_dir: Path) -> None:
    _run_cmd([pg_ctl, "-D", str(data_dir), "-m", "fast", "-w", "stop"], check=False)


def run_init(
    config: PostgresServiceConfig,
    generated_dir: Path,
    *,
    retries: int = DEFAULT_RETRIES,
    interval: float = DEFAULT_RETRY_INTERVAL,
) -> bool:
    """
    Prepare an instance's data directory.

    Safe to invoke on every start: configuration files are always
    refreshed, while ``initdb`` and the bootstrap plan only run until the
    init marker has been written.

    Args:
        config: Instance configuration.
        generated_dir: Directory for this instance's generated files.
        retries: Connection attempts while waiting for the temporary server.
        interval: Seconds between connection attempts.

    Returns:
        True if the bootstrap plan ran, False if it was already done.
    """
    config.validate()
    plan = plan_bootstrap(
        config.initial_databases,
        config.initial_script,
        config.create_database,
        default_user=default_user(),
    )
    package = config.resolved_package()
    binaries = _require_binaries(package)

    files = write_instance_files(config, generated_dir)
    data_dir = Path(config.data_dir).resolve()
    socket_dir = Path(config.socket_dir).resolve()
    socket_dir.mkdir(parents=True, exist_ok=True)

    if not (data_dir / "PG_VERSION").exists():
        _initdb(config, binaries["initdb"], data_dir)

    shutil.copyfile(files.conf_file, data_dir / CONF_FILENAME)
    logger.info(f"Installed {CONF_FILENAME} into {data_dir}")

    marker = data_dir / INIT_MARKER
    if marker.exists():
        logger.info(f"{config.name} already initialized; skipping bootstrap")
        return False

    _check_extensions(binaries["pg_config"], package.extensions)

    _start_temporary_server(
        binaries["pg_ctl"], data_dir, socket_dir, config.port, files.root / "init-server.log"
    )
    try:
        conninfo = {
            "host": str(socket_dir),
            "port": config.port,
            "user": config.effective_superuser(),
        }
        execute_plan(
            plan,
            conninfo,
            psql=binaries["psql"],
            retries=retries,
            interval=interval,
        )
    finally:
        _stop_temporary_server(binaries["pg_ctl"], data_dir)

    marker.write_text(f"{time.strftime('%Y-%m-%dT%H:%M:%S')}\n")
    logger.info(f"{config.name} initialization complete")
    return True

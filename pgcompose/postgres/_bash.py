"""
Bash template generation for the PostgreSQL server process.

The supervisor runs the rendered start script as the ``<name>`` process.
The server runs in the foreground (``exec``) so the supervisor owns its
lifetime and delivers the shutdown signal directly.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PgBashParams:
    """Parameters consumed by the bash templates."""

    name: str
    postgres: str
    data_dir: Path
    socket_dir: Path


def render_start_script(p: PgBashParams) -> str:
    """Render the start script for the main server process.

    1. Resolves PGDATA and the socket directory to absolute paths.
    2. Refuses to start if the data directory was never initialised.
    3. Execs ``postgres`` with the socket directory.
    """
    return f"""#!/usr/bin/env bash
set -euo pipefail

echo "Starting PostgreSQL instance {p.name}"

mkdir -p {shlex.quote(str(p.socket_dir))}
PGDATA=$(readlink -f {shlex.quote(str(p.data_dir))})
PGSOCKETDIR=$(readlink -f {shlex.quote(str(p.socket_dir))})
export PGDATA

if [ ! -f "$PGDATA/PG_VERSION" ]; then
    echo "Data directory $PGDATA is not initialised; run the {p.name}-init process first" >&2
    exit 1
fi

exec {shlex.quote(p.postgres)} -k "$PGSOCKETDIR"
"""
